"""
Serialized execution of external commands (osascript, sqlite3, open).

System Events stalls, or corrupts unrelated calls, when one controlling
process drives it concurrently, and spawning one osascript per request from a
1-second poller piles up processes. Every external call therefore goes
through a single CommandQueue: one asyncio.Queue, one worker task, one child
process at a time, each bounded by a hard timeout.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple, Union

from ..constants import DEFAULT_COMMAND_TIMEOUT
from ..errors import CommandTimeoutError, ExternalFailureError, SwitcherError
from ..logging_config import log_timing

logger = logging.getLogger(__name__)

# Signature of asyncio.create_subprocess_exec; injectable for tests
SpawnFunc = Callable[..., Awaitable[Any]]


@dataclass(frozen=True)
class ExternalCommand:
    """An external program invocation.

    Attributes:
        argv: Program and arguments, passed to exec without a shell
        label: Short name used in logs and error messages
    """

    argv: Tuple[str, ...]
    label: str = "command"

    @classmethod
    def applescript(cls, script: str, label: str = "osascript") -> ExternalCommand:
        return cls(argv=("osascript", "-e", script), label=label)

    @classmethod
    def sqlite_query(cls, db_path: Union[str, Path], sql: str, label: str = "sqlite3") -> ExternalCommand:
        return cls(argv=("sqlite3", "-readonly", str(db_path), sql), label=label)

    @classmethod
    def open_with_app(cls, app_name: str, target: Union[str, Path], label: str = "open") -> ExternalCommand:
        """`open -a` works even when the editor's own CLI is not on PATH."""
        return cls(argv=("open", "-a", app_name, str(target)), label=label)


@dataclass
class QueuedCommand:
    """A submitted command waiting for (or holding) the worker."""

    command: ExternalCommand
    future: asyncio.Future
    timeout: float
    enqueued_at: float = field(default_factory=time.monotonic)


class CommandQueue:
    """Strict FIFO, single-concurrency dispatcher for external commands.

    Guarantees:
    - At most one child process exists at any time.
    - Items start, and therefore complete, in submission order.
    - A command running longer than its timeout is killed, its caller gets
      CommandTimeoutError, and the next item starts immediately.
    - Callers only ever see CommandTimeoutError or ExternalFailureError.

    Example:
        >>> queue = CommandQueue(timeout=3.0)
        >>> queue.start()
        >>> output = await queue.submit(ExternalCommand.applescript(script))
    """

    def __init__(self, timeout: float = DEFAULT_COMMAND_TIMEOUT, spawn: Optional[SpawnFunc] = None):
        """Initialize the command queue.

        Args:
            timeout: Default per-command budget in seconds
            spawn: Process factory (defaults to asyncio.create_subprocess_exec)
        """
        self.timeout = timeout
        self._spawn = spawn or asyncio.create_subprocess_exec
        self._queue: Optional[asyncio.Queue[QueuedCommand]] = None
        self._worker_task: Optional[asyncio.Task] = None
        self._current: Optional[QueuedCommand] = None
        self._stopped = False

        self._submitted = 0
        self._completed = 0
        self._failed = 0
        self._timed_out = 0
        self._spawned = 0

    def start(self) -> None:
        """Start the worker task if it is not already running."""
        if self._worker_task is not None and not self._worker_task.done():
            return

        if self._queue is None:
            self._queue = asyncio.Queue()

        self._stopped = False
        self._worker_task = asyncio.create_task(self._worker(), name="command-queue-worker")
        logger.info(f"Command queue started (timeout: {self.timeout}s)")

    async def stop(self) -> None:
        """Stop the worker, killing any running process.

        Items that never started are failed with ExternalFailureError.
        """
        self._stopped = True
        task, self._worker_task = self._worker_task, None

        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

        if self._queue is not None:
            while not self._queue.empty():
                item = self._queue.get_nowait()
                self._queue.task_done()
                self._fail(item, ExternalFailureError(item.command.label, "command queue stopped"))

        logger.info("Command queue stopped")

    async def submit(self, command: ExternalCommand, timeout: Optional[float] = None) -> str:
        """Queue a command and wait for its output.

        A caller that stops waiting (e.g. is cancelled) does not remove the
        item; it still runs in order and its result is discarded.

        Args:
            command: Command to run
            timeout: Per-call budget overriding the queue default

        Returns:
            Decoded stdout of the command

        Raises:
            CommandTimeoutError: The command exceeded its budget and was killed
            ExternalFailureError: Spawn failure, nonzero exit, or queue stopped
        """
        if self._stopped:
            raise ExternalFailureError(command.label, "command queue stopped")

        self.start()

        loop = asyncio.get_running_loop()
        item = QueuedCommand(
            command=command,
            future=loop.create_future(),
            timeout=timeout if timeout is not None else self.timeout,
        )
        self._queue.put_nowait(item)
        self._submitted += 1
        logger.debug(f"Queued {command.label} (pending: {self._queue.qsize()})")

        return await asyncio.shield(item.future)

    async def _worker(self) -> None:
        """Take items one at a time, in order, forever."""
        while True:
            item = await self._queue.get()
            try:
                await self._execute(item)
            finally:
                self._queue.task_done()

    async def _execute(self, item: QueuedCommand) -> None:
        self._current = item
        wait_ms = (time.monotonic() - item.enqueued_at) * 1000
        logger.debug(f"Running {item.command.label} (waited {wait_ms:.1f}ms)")

        try:
            output = await self._run(item)
        except SwitcherError as e:
            if isinstance(e, CommandTimeoutError):
                self._timed_out += 1
            else:
                self._failed += 1
            self._fail(item, e)
        except asyncio.CancelledError:
            self._fail(item, ExternalFailureError(item.command.label, "command queue stopped"))
            raise
        except Exception as e:
            logger.error(f"Unexpected error running {item.command.label}: {e}", exc_info=True)
            self._failed += 1
            self._fail(item, ExternalFailureError(item.command.label, f"{type(e).__name__}: {e}"))
        else:
            self._completed += 1
            if not item.future.done():
                item.future.set_result(output)
        finally:
            self._current = None

    async def _run(self, item: QueuedCommand) -> str:
        command = item.command

        try:
            proc = await self._spawn(
                *command.argv,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            logger.warning(f"Could not start {command.label}: {e}")
            raise ExternalFailureError(command.label, str(e)) from e

        self._spawned += 1

        try:
            with log_timing(f"{command.label}", logger):
                stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=item.timeout)
        except asyncio.TimeoutError:
            logger.warning(f"{command.label} timed out after {item.timeout}s, killing pid {proc.pid}")
            await self._kill(proc)
            raise CommandTimeoutError(command.label, item.timeout)
        except asyncio.CancelledError:
            await self._kill(proc)
            raise

        if proc.returncode != 0:
            stderr_text = (stderr or b"").decode("utf-8", errors="replace").strip()
            logger.debug(f"{command.label} exited {proc.returncode}: {stderr_text}")
            raise ExternalFailureError(
                command.label,
                stderr_text or f"exit status {proc.returncode}",
                returncode=proc.returncode,
            )

        return (stdout or b"").decode("utf-8", errors="replace")

    @staticmethod
    async def _kill(proc: Any) -> None:
        if proc.returncode is None:
            try:
                proc.kill()
            except ProcessLookupError:
                pass
        await proc.wait()

    @staticmethod
    def _fail(item: QueuedCommand, error: SwitcherError) -> None:
        if not item.future.done():
            item.future.set_exception(error)
            # The caller may have stopped waiting; mark the error as retrieved
            item.future.exception()

    @property
    def pending(self) -> int:
        """Items waiting to start."""
        return self._queue.qsize() if self._queue is not None else 0

    @property
    def is_busy(self) -> bool:
        return self._current is not None

    def get_stats(self) -> Dict[str, Any]:
        """Get queue statistics.

        Returns:
            Dictionary with counters and current state
        """
        return {
            "submitted": self._submitted,
            "completed": self._completed,
            "failed": self._failed,
            "timed_out": self._timed_out,
            "spawned": self._spawned,
            "pending": self.pending,
            "running": self._current.command.label if self._current else None,
            "timeout_s": self.timeout,
        }
