import json
import signal
from typing import List

import pytest
from fastapi.testclient import TestClient

from cli_bridge import router as router_mod
from cli_bridge.errors import CommandNotFoundError
from cli_bridge.rate_limit import RateLimiter
from cli_bridge.relay import ExecutionRegistry
from data_ops_bridge import app

ENV_ID = "123e4567-e89b-12d3-a456-426614174000"
API_KEY = "a" * 20


class FakeHandle:
    """Stands in for ProcessHandle; records kill() calls."""

    def __init__(self, on_data, on_exit, on_error):
        self.on_data = on_data
        self.on_exit = on_exit
        self.on_error = on_error
        self.kill_calls: List[int] = []

    def kill(self, sig=signal.SIGTERM):
        self.kill_calls.append(sig)
        return len(self.kill_calls) == 1


class FakeRunner:
    """
    Replays a script of ("data", stream, text) / ("exit", code) / ("error", err)
    items as soon as the process is started. A script without an exit item
    behaves like a process that never finishes.
    """

    def __init__(self, script=None, executable_exists=True):
        self.script = list(script or [])
        self.executable_exists = executable_exists
        self.start_calls = 0
        self.argv = None
        self.handle = None

    def ensure_executable(self):
        if not self.executable_exists:
            raise CommandNotFoundError("/opt/data-ops/build/src/index.js")

    async def start(self, argv, *, on_data, on_exit, on_error, command_name=""):
        self.ensure_executable()
        self.start_calls += 1
        self.argv = list(argv)
        self.handle = FakeHandle(on_data, on_exit, on_error)
        for item in self.script:
            if item[0] == "data":
                on_data(item[1], item[2])
            elif item[0] == "exit":
                on_exit(item[1])
            else:
                on_error(item[1])
        return self.handle


def parse_sse(body: str):
    """Decode `data: <json>` frames, skipping keep-alive comments."""
    events = []
    for frame in body.split("\n\n"):
        frame = frame.strip()
        if frame.startswith("data: "):
            events.append(json.loads(frame[len("data: "):]))
    return events


@pytest.fixture
def fake_runner():
    return FakeRunner(script=[
        ("data", "stdout", "Backing up content...\n"),
        ("data", "stdout", "Exported 5 of 10 items\n"),
        ("exit", 0),
    ])


@pytest.fixture
def registry():
    return ExecutionRegistry()


@pytest.fixture
def rate_limiter():
    return RateLimiter(window_s=60, max_requests=1000)


@pytest.fixture
def client(fake_runner, registry, rate_limiter):
    app.dependency_overrides[router_mod.get_runner] = lambda: fake_runner
    app.dependency_overrides[router_mod.get_registry] = lambda: registry
    app.dependency_overrides[router_mod.get_rate_limiter] = lambda: rate_limiter
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
