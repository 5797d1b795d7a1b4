"""rootfs-runner: run build commands inside an image root filesystem.

Handles the three things every such command needs:
- entering the root (none, chroot, or a namespace launcher)
- qemu user-mode emulation for foreign-architecture roots
- host bind mounts, with teardown on every exit path
"""

from .command_spec import CommandSpec, IsolationMethod
from .context import BuildContext, ImagePartition, new_chroot_command_for_context
from .errors import (
    CommandFailedError,
    ConfigurationError,
    RootfsRunnerError,
    SetupError,
    SpawnError,
    TeardownWarning,
)
from .executor import ExecState, Executor, RunResult, run_in_root

__all__ = [
    "BuildContext",
    "CommandFailedError",
    "CommandSpec",
    "ConfigurationError",
    "ExecState",
    "Executor",
    "ImagePartition",
    "IsolationMethod",
    "RootfsRunnerError",
    "RunResult",
    "SetupError",
    "SpawnError",
    "TeardownWarning",
    "new_chroot_command_for_context",
    "run_in_root",
]
