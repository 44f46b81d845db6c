"""
CLI Bridge: Execution engine.
Spawns the data-ops CLI as a child process, pumps its stdout/stderr to
listeners, enforces the wall-clock timeout and reports exactly one terminal
outcome (exit or error) per process.
"""
import asyncio
import codecs
import logging
import os
import signal
import time
from pathlib import Path
from typing import Callable, List, Optional, Sequence

from . import config
from .errors import BridgeError, CommandNotFoundError, ProcessTimeoutError, SpawnError

logger = logging.getLogger(__name__)

DataListener = Callable[[str, str], None]
ExitListener = Callable[[int], None]
ErrorListener = Callable[[BridgeError], None]

READ_CHUNK = 4096


class ProcessHandle:
    """
    A live child process. Owned by the runner that created it; callers only
    ever kill() it or wait() on it.
    """

    def __init__(
        self,
        process: asyncio.subprocess.Process,
        *,
        command_name: str,
        timeout_s: float,
        on_data: DataListener,
        on_exit: ExitListener,
        on_error: ErrorListener,
        kill_grace_s: float = config.KILL_GRACE_S,
    ):
        self._process = process
        self.command_name = command_name
        self.timeout_s = timeout_s
        self.kill_grace_s = kill_grace_s
        self.kill_grace_s = kill_grace_s
        self.started_at = time.time()
        self.timed_out = False
        self.killed = False
        self._on_data = on_data
        self._on_exit = on_exit
        self._on_error = on_error
        self._escalation: Optional[asyncio.Task] = None
        self._task = asyncio.create_task(self._supervise())

    @property
    def pid(self) -> int:
        return self._process.pid

    @property
    def returncode(self) -> Optional[int]:
        return self._process.returncode

    def kill(self, sig: int = signal.SIGTERM) -> bool:
        """
        Signal the child. Returns False (and does nothing) once it has exited
        or was already killed. A child still running kill_grace_s after a
        softer signal gets SIGKILL.
        """
        if self.killed or not self._signal(sig):
            return False
        self.killed = True
        if sig != signal.SIGKILL and self._escalation is None:
            self._escalation = asyncio.create_task(self._force_kill_after(self.kill_grace_s))
        return True

    async def wait(self) -> None:
        await self._task

    def _signal(self, sig: int) -> bool:
        if self._process.returncode is not None:
            return False
        try:
            self._process.send_signal(sig)
        except ProcessLookupError:
            return False
        logger.info("Sent signal %s to %s (pid %s)", sig, self.command_name, self.pid)
        return True

    async def _force_kill_after(self, grace_s: float) -> None:
        await asyncio.sleep(grace_s)
        if self._process.returncode is None:
            logger.warning("%s still running %ss after termination, killing", self.command_name, grace_s)
            self._signal(signal.SIGKILL)

    async def _terminate(self) -> None:
        # The timeout always applies, even after an earlier kill() that was ignored
        self._signal(signal.SIGTERM)
        try:
            await asyncio.wait_for(self._process.wait(), timeout=self.kill_grace_s)
        except asyncio.TimeoutError:
            logger.warning("%s ignored SIGTERM, sending SIGKILL", self.command_name)
            self._signal(signal.SIGKILL)
            await self._process.wait()

    async def _pump(self, name: str, stream: Optional[asyncio.StreamReader]) -> None:
        if stream is None:
            return
        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        while True:
            chunk = await stream.read(READ_CHUNK)
            if not chunk:
                break
            text = decoder.decode(chunk)
            if text:
                self._on_data(name, text)
        tail = decoder.decode(b"", final=True)
        if tail:
            self._on_data(name, tail)

    async def _supervise(self) -> None:
        readers = [
            asyncio.create_task(self._pump("stdout", self._process.stdout)),
            asyncio.create_task(self._pump("stderr", self._process.stderr)),
        ]
        try:
            try:
                await asyncio.wait_for(self._process.wait(), timeout=self.timeout_s)
            except asyncio.TimeoutError:
                self.timed_out = True
                logger.warning("%s exceeded %ss, terminating", self.command_name, self.timeout_s)
                await self._terminate()
            # Grandchildren may keep the pipes open after a kill
            drain_s = self.kill_grace_s if self.timed_out or self.killed else None
            done, pending = await asyncio.wait(readers, timeout=drain_s)
            for reader in pending:
                reader.cancel()
            for reader in done:
                reader.result()
        except asyncio.CancelledError:
            for reader in readers:
                reader.cancel()
            raise
        except OSError as e:
            logger.error("Runtime error from %s: %s", self.command_name, e)
            self._on_error(SpawnError(str(e)))
            return
        finally:
            if self._escalation is not None:
                self._escalation.cancel()

        if self.timed_out:
            self._on_error(ProcessTimeoutError(self.timeout_s))
        else:
            logger.info("%s exited with code %s", self.command_name, self._process.returncode)
            self._on_exit(self._process.returncode)


class ProcessRunner:
    """
    Starts the wrapped CLI as `<runtime> <executable> <argv...>`.
    No pooling and no retries: every start() is an independent process.
    """

    def __init__(
        self,
        executable: Path = config.DATA_OPS_CLI_PATH,
        runtime: str = config.DATA_OPS_RUNTIME,
        cwd: Path = config.PROJECT_ROOT,
        timeout_s: float = config.EXECUTION_TIMEOUT_S,
        kill_grace_s: float = config.KILL_GRACE_S,
    ):
        self.executable = Path(executable)
        self.runtime = runtime
        self.cwd = Path(cwd)
        self.timeout_s = timeout_s
        self.kill_grace_s = kill_grace_s

    def ensure_executable(self) -> Path:
        if not self.executable.is_file():
            raise CommandNotFoundError(self.executable)
        return self.executable

    def command_line(self, argv: Sequence[str]) -> List[str]:
        prefix = [self.runtime] if self.runtime else []
        return prefix + [str(self.executable)] + list(argv)

    async def start(
        self,
        argv: Sequence[str],
        *,
        on_data: DataListener,
        on_exit: ExitListener,
        on_error: ErrorListener,
        command_name: str = "",
    ) -> ProcessHandle:
        """
        Spawn the CLI. Raises CommandNotFoundError if the executable is missing
        and SpawnError if the OS refuses to create the process.
        """
        self.ensure_executable()
        cmd = self.command_line(argv)
        try:
            process = await asyncio.create_subprocess_exec(
                *cmd,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=str(self.cwd),
                env=os.environ.copy(),
                start_new_session=True,
            )
        except OSError as e:
            logger.error("Failed to spawn %s: %s", cmd[0], e)
            raise SpawnError(f"Failed to start {cmd[0]}: {e}") from e

        return ProcessHandle(
            process,
            command_name=command_name or " ".join(argv[:2]),
            timeout_s=self.timeout_s,
            kill_grace_s=self.kill_grace_s,
            on_data=on_data,
            on_exit=on_exit,
            on_error=on_error,
        )
