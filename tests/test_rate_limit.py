import time

from cli_bridge.rate_limit import InMemoryWindowStore, RateLimiter


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now


def test_window_admits_up_to_max_then_rejects():
    clock = FakeClock()
    limiter = RateLimiter(window_s=1.0, max_requests=3, clock=clock)
    results = []
    for offset in (0.0, 0.3, 0.6, 0.999):
        clock.now = 1000.0 + offset
        results.append(limiter.admit("10.0.0.1"))
    assert results == [True, True, True, False]

    clock.now = 1001.5
    assert limiter.admit("10.0.0.1") is True


def test_real_clock_window_expiry():
    limiter = RateLimiter(window_s=0.2, max_requests=1)
    assert limiter.admit("client") is True
    assert limiter.admit("client") is False
    time.sleep(0.25)
    assert limiter.admit("client") is True


def test_clients_are_independent():
    limiter = RateLimiter(window_s=60, max_requests=1, clock=FakeClock())
    assert limiter.admit("a") is True
    assert limiter.admit("a") is False
    assert limiter.admit("b") is True


def test_rejections_are_not_recorded():
    clock = FakeClock()
    store = InMemoryWindowStore()
    limiter = RateLimiter(store=store, window_s=10, max_requests=2, clock=clock)
    for _ in range(5):
        limiter.admit("a")
    assert store.get("a") == [1000.0, 1000.0]


def test_store_prune_drops_expired_entries():
    store = InMemoryWindowStore()
    for ts in (1.0, 2.0, 3.0):
        store.append("k", ts)
    assert store.prune("k", 2.0) == [3.0]
    assert store.get("k") == [3.0]
    assert store.get("missing") == []


def test_retry_after_rounds_up():
    assert RateLimiter(window_s=60).retry_after == 60
    assert RateLimiter(window_s=0.2).retry_after == 1
