"""
CLI Bridge: Stream relay.

One Execution object per request owns the process handle and walks
IDLE -> CONNECTED -> RUNNING -> COMPLETE | ERROR | CANCELLED.
Events come out of Execution.events(); sse_stream() frames them as
server-sent events for the HTTP response.
"""
import asyncio
import json
import logging
import re
import time
import uuid
from enum import Enum
from typing import AsyncIterator, Callable, Dict, Iterator, List, Optional

from . import config
from .errors import BridgeError, ProcessExitError
from .executor import ProcessHandle, ProcessRunner
from .models import (
    CompleteEvent, ConnectedEvent, ErrorEvent, OutputEvent, ProgressEvent, StreamEvent,
)
from .progress import classify

logger = logging.getLogger(__name__)

_LINE_BREAK = re.compile(r"\r\n|\r|\n")
_CANCELLED = object()

KEEP_ALIVE = ": keep-alive\n\n"


class State(str, Enum):
    IDLE = "idle"
    CONNECTED = "connected"
    RUNNING = "running"
    COMPLETE = "complete"
    ERROR = "error"
    CANCELLED = "cancelled"


TERMINAL_STATES = (State.COMPLETE, State.ERROR, State.CANCELLED)


def new_execution_id() -> str:
    return uuid.uuid4().hex[:10]


def encode_event(event: StreamEvent) -> str:
    payload = event.model_dump(by_alias=True, exclude_none=True)
    return f"data: {json.dumps(payload)}\n\n"


class Execution:
    def __init__(
        self,
        command: str,
        argv: List[str],
        runner: ProcessRunner,
        *,
        execution_id: Optional[str] = None,
        progress_interval_s: float = config.PROGRESS_MIN_INTERVAL_S,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.id = execution_id or new_execution_id()
        self.command = command
        self.argv = argv
        self.state = State.IDLE
        self.progress_interval_s = progress_interval_s
        self.last_progress_emit: Optional[float] = None
        self._runner = runner
        self._clock = clock
        self._handle: Optional[ProcessHandle] = None
        self._queue: Optional[asyncio.Queue] = None
        self._buffers: Dict[str, str] = {"stdout": "", "stderr": ""}

    @property
    def finished(self) -> bool:
        return self.state in TERMINAL_STATES

    # ─── Runner listeners ─────────────────────────────────────────────────

    def _on_data(self, stream: str, chunk: str) -> None:
        self._queue.put_nowait(("data", stream, chunk))

    def _on_exit(self, code: int) -> None:
        self._queue.put_nowait(("exit", None, code))

    def _on_error(self, error: BridgeError) -> None:
        self._queue.put_nowait(("error", None, error))

    # ─── Transitions ──────────────────────────────────────────────────────

    def cancel(self) -> bool:
        """Caller-initiated stop. No-op once the execution has finished."""
        if self.finished:
            return False
        self.state = State.CANCELLED
        if self._handle is not None:
            self._handle.kill()
        if self._queue is not None:
            self._queue.put_nowait(_CANCELLED)
        logger.info("Execution %s (%s) cancelled by client", self.id, self.command)
        return True

    async def events(self, heartbeat_s: Optional[float] = None) -> AsyncIterator[Optional[StreamEvent]]:
        """
        Drive the execution and yield its events in order. The last event is
        exactly one CompleteEvent or ErrorEvent, unless the execution was
        cancelled, in which case the iterator simply stops. With heartbeat_s
        set, None is yielded whenever the child has been silent that long.
        """
        if self.state is not State.IDLE:
            return
        self._queue = asyncio.Queue()
        self.state = State.CONNECTED
        try:
            yield ConnectedEvent(execution_id=self.id)
            if self.state is State.CANCELLED:
                return

            try:
                self._handle = await self._runner.start(
                    self.argv,
                    on_data=self._on_data,
                    on_exit=self._on_exit,
                    on_error=self._on_error,
                    command_name=self.command,
                )
            except BridgeError as e:
                if self.state is State.CANCELLED:
                    return
                self.state = State.ERROR
                yield ErrorEvent(message=e.message, solution=e.solution)
                return

            if self.state is State.CANCELLED:
                self._handle.kill()
                return
            self.state = State.RUNNING

            while True:
                try:
                    item = await asyncio.wait_for(self._queue.get(), timeout=heartbeat_s)
                except asyncio.TimeoutError:
                    yield None
                    continue
                if item is _CANCELLED or self.state is State.CANCELLED:
                    return

                kind, stream, payload = item
                if kind == "data":
                    for event in self._line_events(stream, payload):
                        if self.state is State.CANCELLED:
                            return
                        yield event
                    continue

                for event in self._flush():
                    yield event
                if self.state is State.CANCELLED:
                    return
                if kind == "exit":
                    self.state = State.COMPLETE
                    yield self._completion(payload)
                else:
                    self.state = State.ERROR
                    yield ErrorEvent(message=payload.message, solution=payload.solution)
                return
        finally:
            if not self.finished:
                self.cancel()

    # ─── Helpers ──────────────────────────────────────────────────────────

    def _completion(self, code: int) -> CompleteEvent:
        if code == 0:
            return CompleteEvent(success=True, message="Command completed successfully")
        return CompleteEvent(success=False, message=ProcessExitError(code).message)

    def _progress_due(self) -> bool:
        now = self._clock()
        if self.last_progress_emit is not None and now - self.last_progress_emit < self.progress_interval_s:
            return False
        self.last_progress_emit = now
        return True

    def _line_events(self, stream: str, chunk: str) -> Iterator[StreamEvent]:
        parts = _LINE_BREAK.split(self._buffers.get(stream, "") + chunk)
        self._buffers[stream] = parts.pop()
        for line in parts:
            yield from self._events_for_line(stream, line)

    def _flush(self) -> Iterator[StreamEvent]:
        for stream in list(self._buffers):
            rest, self._buffers[stream] = self._buffers[stream], ""
            yield from self._events_for_line(stream, rest)

    def _events_for_line(self, stream: str, line: str) -> Iterator[StreamEvent]:
        if not line.strip():
            return
        signal = classify(line)
        if signal is not None and self._progress_due():
            yield ProgressEvent(percent=signal.percent, message=line, stage=signal.stage)
        yield OutputEvent(level="info" if stream == "stdout" else "error", message=line)


class ExecutionRegistry:
    """In-flight executions by id, so an explicit cancel can find them."""

    def __init__(self):
        self._executions: Dict[str, Execution] = {}

    def register(self, execution: Execution) -> None:
        self._executions[execution.id] = execution

    def discard(self, execution_id: str) -> None:
        self._executions.pop(execution_id, None)

    def get(self, execution_id: str) -> Optional[Execution]:
        return self._executions.get(execution_id)

    def __len__(self) -> int:
        return len(self._executions)


async def sse_stream(
    execution: Execution,
    registry: Optional[ExecutionRegistry] = None,
    heartbeat_s: Optional[float] = 15.0,
) -> AsyncIterator[str]:
    """Frame an execution's events as `data: <json>\\n\\n` chunks."""
    if registry is not None:
        registry.register(execution)
        logger.debug("Registered execution %s (%d in flight)", execution.id, len(registry))
    events = execution.events(heartbeat_s=heartbeat_s)
    try:
        async for event in events:
            yield KEEP_ALIVE if event is None else encode_event(event)
    finally:
        await events.aclose()
        if registry is not None:
            registry.discard(execution.id)
