"""Error taxonomy for running commands inside a target root.

Only ConfigurationError, SetupError, SpawnError and CommandFailedError are
raised to callers. Problems hit while tearing down (unmount, emulator
removal, re-enabling services) are recorded as TeardownWarning and logged.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional, Sequence

if TYPE_CHECKING:
    from .executor import RunResult


class RootfsRunnerError(RuntimeError):
    """Base class for all errors raised by rootfs_runner."""


class ConfigurationError(RootfsRunnerError):
    """Invalid configuration, e.g. an architecture with no known emulator.

    Raised before anything is copied, mounted or spawned.
    """


class SetupError(RootfsRunnerError):
    """Preparing the target root failed before the command could run."""


class SpawnError(RootfsRunnerError):
    """The child process could not be started."""

    def __init__(self, argv: Sequence[str], cause: OSError) -> None:
        self.argv = list(argv)
        self.cause = cause
        super().__init__(f"Unable to start {self.argv[0] if self.argv else '<empty>'}: {cause}")


class CommandFailedError(RootfsRunnerError):
    """The child process exited non-zero or was killed by a signal."""

    def __init__(self, argv: Sequence[str], returncode: int, result: Optional["RunResult"] = None) -> None:
        self.argv = list(argv)
        self.returncode = returncode
        self.result = result
        if returncode < 0:
            msg = f"Command killed by signal {-returncode}: {' '.join(self.argv)}"
        else:
            msg = f"Command failed ({returncode}): {' '.join(self.argv)}"
        super().__init__(msg)


@dataclass(frozen=True)
class TeardownWarning:
    """A non-fatal failure while attaching or releasing a resource."""

    step: str
    target: str
    error: str

    def __str__(self) -> str:
        return f"{self.step} {self.target}: {self.error}"
