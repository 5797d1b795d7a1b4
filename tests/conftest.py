"""Pytest fixtures: a throwaway target root and recording fakes for host commands."""

from __future__ import annotations

import io
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import pytest

import rootfs_runner.executor as executor_mod
import rootfs_runner.lib.emulator as emulator_mod
import rootfs_runner.lib.mounts as mounts_mod
from rootfs_runner.lib.command import CmdResult
from rootfs_runner.lib.emulator import EmulatorInjector
from rootfs_runner.lib.services import ServiceGate


class Recorder:
    """Collects every host side effect in the order it happened."""

    def __init__(self) -> None:
        self.events: List[tuple] = []
        self.popen_calls: List[Dict[str, Any]] = []
        self.output = b""
        self.returncode = 0
        self.spawn_error: Optional[OSError] = None
        self.failing_cmds: Dict[str, int] = {}

    def names(self) -> List[str]:
        return [e[0] for e in self.events]

    def of(self, name: str) -> List[tuple]:
        return [e for e in self.events if e[0] == name]

    def run_cmd(self, argv: Sequence[str], *, check: bool = True, dry_run: bool = False, **kw: Any) -> CmdResult:
        argv = list(argv)
        self.events.append((argv[0], *argv[1:]))
        rc = self.failing_cmds.get(argv[-1], 0)
        return CmdResult(argv=argv, returncode=rc, stderr="boom" if rc else "")

    def copy_file(self, src: str, dst: str, mode: int = 0o755, *, dry_run: bool = False) -> None:
        self.events.append(("copy", src, dst))
        if not dry_run:
            Path(dst).parent.mkdir(parents=True, exist_ok=True)
            Path(dst).write_bytes(b"\x7fELF")


class FakePopen:
    recorder: Recorder

    def __init__(self, argv: List[str], **kwargs: Any) -> None:
        rec = self.recorder
        if rec.spawn_error is not None:
            raise rec.spawn_error
        rec.events.append(("spawn", *argv))
        rec.popen_calls.append({"argv": argv, **kwargs})
        self.stdout = io.BytesIO(rec.output)
        self._rc = rec.returncode

    def wait(self) -> int:
        return self._rc

    def __enter__(self) -> "FakePopen":
        return self

    def __exit__(self, *exc: object) -> None:
        self.stdout.close()


@pytest.fixture
def root(tmp_path: Path) -> Path:
    r = tmp_path / "build" / "root"
    (r / "usr" / "bin").mkdir(parents=True)
    return r


@pytest.fixture
def recorder(monkeypatch: pytest.MonkeyPatch) -> Recorder:
    rec = Recorder()
    monkeypatch.setattr(mounts_mod, "run_cmd", rec.run_cmd)
    monkeypatch.setattr(emulator_mod, "copy_file", rec.copy_file)

    fake = type("BoundFakePopen", (FakePopen,), {"recorder": rec})
    monkeypatch.setattr(executor_mod.subprocess, "Popen", fake)

    def _wrap(cls: type, attr: str, name: str) -> None:
        orig = getattr(cls, attr)

        def wrapper(self: Any) -> None:
            # No-op emulator cleanups (native arch) are not side effects.
            if getattr(self, "binding", True) is not None:
                rec.events.append((name,))
            orig(self)

        monkeypatch.setattr(cls, attr, wrapper)

    _wrap(ServiceGate, "deny", "deny")
    _wrap(ServiceGate, "allow", "allow")
    _wrap(EmulatorInjector, "cleanup", "remove-emulator")
    return rec


@pytest.fixture
def lines() -> List[tuple]:
    return []


@pytest.fixture
def emit(lines: List[tuple]):
    def _emit(label: str, line: str) -> None:
        lines.append((label, line))

    return _emit
