"""
Pytest configuration and fixtures for zed-switcher tests.

Provides fake process spawners and a fake command queue so the services can
be exercised without osascript, sqlite3 or a running Zed.
"""

import asyncio
import itertools
import sys
from collections import deque
from pathlib import Path
from typing import Any, Callable, Deque, Dict, List, Optional, Union

import pytest

# Add repository root to Python path BEFORE importing the package
package_root = Path(__file__).parent.parent
if str(package_root) not in sys.path:
    sys.path.insert(0, str(package_root))

from zed_switcher.errors import ExternalFailureError, SwitcherError
from zed_switcher.services.command_queue import ExternalCommand


_pids = itertools.count(1000)


class FakeProcess:
    """Stand-in for asyncio.subprocess.Process."""

    def __init__(
        self,
        spawner: "FakeSpawner",
        argv: tuple,
        stdout: bytes = b"",
        stderr: bytes = b"",
        returncode: int = 0,
        delay: float = 0.0,
        hang: bool = False,
    ):
        self.spawner = spawner
        self.argv = argv
        self.pid = next(_pids)
        self.returncode: Optional[int] = None
        self.killed = False
        self._stdout = stdout
        self._stderr = stderr
        self._exit = returncode
        self._delay = delay
        self._hang = hang
        spawner._started(self)

    async def communicate(self):
        if self._hang:
            await asyncio.get_running_loop().create_future()
        if self._delay:
            await asyncio.sleep(self._delay)
        self.returncode = self._exit
        self.spawner._finished(self)
        return self._stdout, self._stderr

    def kill(self):
        self.killed = True
        if self.returncode is None:
            self.returncode = -9
            self.spawner._finished(self)

    async def wait(self):
        return self.returncode


class FakeSpawner:
    """Async replacement for asyncio.create_subprocess_exec.

    Each spawn consumes the next scripted behaviour (keyword arguments of
    FakeProcess, or spawn_error=True). Tracks how many processes are alive
    at once.
    """

    def __init__(self):
        self.behaviours: Deque[Dict[str, Any]] = deque()
        self.calls: List[tuple] = []
        self.processes: List[FakeProcess] = []
        self.alive = 0
        self.max_alive = 0
        self.finish_order: List[tuple] = []

    def script(self, **behaviour) -> None:
        self.behaviours.append(behaviour)

    async def __call__(self, *argv, stdout=None, stderr=None):
        self.calls.append(argv)
        behaviour = self.behaviours.popleft() if self.behaviours else {}
        if behaviour.pop("spawn_error", False):
            raise FileNotFoundError(2, "No such file or directory", argv[0])
        process = FakeProcess(self, argv, **behaviour)
        self.processes.append(process)
        return process

    def _started(self, process: FakeProcess) -> None:
        self.alive += 1
        self.max_alive = max(self.max_alive, self.alive)

    def _finished(self, process: FakeProcess) -> None:
        self.alive -= 1
        self.finish_order.append(process.argv)


Response = Union[str, Exception, Callable[[ExternalCommand], Any]]


class FakeQueue:
    """CommandQueue double answering by command label.

    Responses may be a string, an exception instance (raised), or a callable
    taking the command. An optional gate holds every submit until set.
    """

    def __init__(self, responses: Optional[Dict[str, Response]] = None, default: Response = ""):
        self.responses: Dict[str, Response] = dict(responses or {})
        self.default = default
        self.commands: List[ExternalCommand] = []
        self.gate: Optional[asyncio.Event] = None

    def labels(self) -> List[str]:
        return [command.label for command in self.commands]

    async def submit(self, command: ExternalCommand, timeout: Optional[float] = None) -> str:
        self.commands.append(command)
        if self.gate is not None:
            await self.gate.wait()

        response = self.responses.get(command.label, self.default)
        if callable(response) and not isinstance(response, Exception):
            response = response(command)
        if isinstance(response, Exception):
            raise response
        return response


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def spawner() -> FakeSpawner:
    return FakeSpawner()


@pytest.fixture
def fake_queue() -> FakeQueue:
    return FakeQueue()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def workspace_db_output() -> str:
    """sqlite3 output, most recently used first."""
    return "\n".join([
        "/Users/x/myapp",
        "/Users/x/foo",
        "/Users/x/archive/myapp",
        "/Users/x/bar/",
    ]) + "\n"


@pytest.fixture
def db_failure() -> SwitcherError:
    return ExternalFailureError("workspace-db", "Error: unable to open database file", returncode=1)


@pytest.fixture
def make_queue():
    """Factory for FakeQueue instances."""
    return FakeQueue
