from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Sequence

from .errors import ConfigurationError
from .lib.mounts import BindMount

logger = logging.getLogger(__name__)

DEFAULT_LAUNCHER = "systemd-nspawn"


class IsolationMethod(Enum):
    """How a command enters the target root."""

    NONE = "none"  # run on the host, no root switch
    CHROOT = "chroot"
    NSPAWN = "nspawn"  # namespace launcher, handles binds itself
    DEFAULT = "default"  # substitute the configured default

    @classmethod
    def parse(cls, value: str) -> "IsolationMethod":
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            choices = ", ".join(m.value for m in cls)
            raise ConfigurationError(f"Unknown isolation method {value!r} (expected one of: {choices})") from None


@dataclass
class CommandSpec:
    """Describes where and how a command runs relative to a target root.

    Built up by its owner (add_env/add_bind_mount) and then handed to an
    Executor; the executor only reads it.
    """

    architecture: str = ""  # empty means same as host
    working_dir: str = ""
    chroot_path: str = ""
    isolation_method: IsolationMethod = IsolationMethod.DEFAULT
    default_method: IsolationMethod = IsolationMethod.NSPAWN
    launcher: str = DEFAULT_LAUNCHER
    extra_env: List[str] = field(default_factory=list)
    bind_mounts: List[BindMount] = field(default_factory=list)

    def __post_init__(self) -> None:
        if self.default_method is IsolationMethod.DEFAULT:
            raise ConfigurationError("default_method cannot itself be 'default'")

    def add_env(self, env: str) -> None:
        if "=" not in env:
            raise ValueError(f"environment entry must look like KEY=VALUE, got {env!r}")
        self.extra_env.append(env)

    def add_env_key(self, key: str, value: str) -> None:
        self.add_env(f"{key}={value}")

    def add_bind_mount(self, source: str, target: Optional[str] = None) -> None:
        self.bind_mounts.append(BindMount(source=source, target=target or source))

    def resolve_method(self) -> IsolationMethod:
        if self.isolation_method is IsolationMethod.DEFAULT:
            return self.default_method
        return self.isolation_method

    def build_argv(self, cmdline: Sequence[str], method: Optional[IsolationMethod] = None) -> List[str]:
        method = method or self.resolve_method()
        if method is IsolationMethod.NONE:
            return list(cmdline)

        if not self.chroot_path:
            raise ConfigurationError(f"isolation method {method.value!r} needs a target root")

        if method is IsolationMethod.CHROOT:
            return ["chroot", self.chroot_path, *cmdline]

        argv = [self.launcher, "-q", "-D", self.chroot_path]
        for e in self.extra_env:
            argv += ["--setenv", e]
        for b in self.bind_mounts:
            argv += ["--bind", f"{b.source}:{b.target}"]
        return argv + list(cmdline)

    def build_env(self, method: Optional[IsolationMethod] = None) -> Optional[Dict[str, str]]:
        """Return the host environment for the child, or None to inherit as-is.

        The namespace launcher receives extra variables as --setenv flags, so
        only the other methods merge them into the host environment.
        """

        method = method or self.resolve_method()
        if not self.extra_env or method is IsolationMethod.NSPAWN:
            return None
        env = dict(os.environ)
        for e in self.extra_env:
            k, _, v = e.partition("=")
            env[k] = v
        return env
