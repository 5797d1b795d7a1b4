from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict

import yaml

from .command_spec import DEFAULT_LAUNCHER, IsolationMethod
from .errors import ConfigurationError
from .lib.mounts import UNMOUNT_ORDERS, UNMOUNT_REVERSE

DEFAULT_LOG_PATH = "logs/rootfs-runner.log"


@dataclass(frozen=True)
class RunnerConfig:
    raw: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        # Fail early on bad values instead of on first use.
        _ = (self.default_method, self.unmount_order)

    @property
    def default_method(self) -> IsolationMethod:
        method = IsolationMethod.parse(self.raw.get("default_method") or IsolationMethod.NSPAWN.value)
        if method is IsolationMethod.DEFAULT:
            raise ConfigurationError("default_method cannot itself be 'default'")
        return method

    @property
    def launcher(self) -> str:
        return str(self.raw.get("launcher") or DEFAULT_LAUNCHER)

    @property
    def unmount_order(self) -> str:
        order = str(self.raw.get("unmount_order") or UNMOUNT_REVERSE)
        if order not in UNMOUNT_ORDERS:
            raise ConfigurationError(f"unmount_order must be one of {UNMOUNT_ORDERS}, got {order!r}")
        return order

    @property
    def log_path(self) -> str:
        return str(self.raw.get("log_path") or DEFAULT_LOG_PATH)


def load_runner_config(path: str) -> RunnerConfig:
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(path)

    if p.suffix.lower() not in {".yaml", ".yml"}:
        raise ValueError("runner config must be YAML")

    raw = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
    if not isinstance(raw, dict):
        raise ValueError("runner config must contain a mapping/object")

    return RunnerConfig(raw=raw)
