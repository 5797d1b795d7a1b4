from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Sequence

from ..errors import TeardownWarning
from .command import run_cmd

logger = logging.getLogger(__name__)

UNMOUNT_REVERSE = "reverse"
UNMOUNT_ATTACH_ORDER = "attach"
UNMOUNT_ORDERS = (UNMOUNT_REVERSE, UNMOUNT_ATTACH_ORDER)


@dataclass(frozen=True)
class BindMount:
    source: str
    target: str  # relative to the target root

    def mountpoint(self, root: str) -> str:
        return f"{root.rstrip('/')}/{self.target.lstrip('/')}"


class BindMountSet:
    """Attach/detach host bind mounts below a target root.

    Both directions are best-effort: a failing entry is logged and recorded
    as a TeardownWarning, and the remaining entries are still processed.
    """

    def __init__(
        self,
        root: str,
        mounts: Sequence[BindMount],
        *,
        unmount_order: str = UNMOUNT_REVERSE,
        dry_run: bool = False,
    ) -> None:
        if unmount_order not in UNMOUNT_ORDERS:
            raise ValueError(f"unmount_order must be one of {UNMOUNT_ORDERS}, got {unmount_order!r}")
        self.root = root
        self.mounts = list(mounts)
        self.unmount_order = unmount_order
        self.dry_run = dry_run

    def attach(self) -> List[TeardownWarning]:
        warnings: List[TeardownWarning] = []
        for m in self.mounts:
            dst = m.mountpoint(self.root)
            try:
                self._make_mountpoint(m.source, dst)
                r = run_cmd(["mount", "--bind", m.source, dst], check=False, dry_run=self.dry_run)
            except OSError as e:
                warnings.append(self._warn("mount", dst, str(e)))
                continue
            if not r.ok:
                warnings.append(self._warn("mount", dst, r.reason))
        return warnings

    def detach(self) -> List[TeardownWarning]:
        warnings: List[TeardownWarning] = []
        order = self.mounts if self.unmount_order == UNMOUNT_ATTACH_ORDER else list(reversed(self.mounts))
        for m in order:
            dst = m.mountpoint(self.root)
            try:
                r = run_cmd(["umount", dst], check=False, dry_run=self.dry_run)
            except OSError as e:
                warnings.append(self._warn("umount", dst, str(e)))
                continue
            if not r.ok:
                warnings.append(self._warn("umount", dst, r.reason))
        return warnings

    def _make_mountpoint(self, source: str, dst: str) -> None:
        if self.dry_run:
            return
        p = Path(dst)
        if p.exists():
            return
        if Path(source).is_file():
            # Files (disk images) need a file to bind over, not a directory.
            p.parent.mkdir(parents=True, exist_ok=True)
            p.touch()
        else:
            p.mkdir(mode=0o755, parents=True, exist_ok=True)

    @staticmethod
    def _warn(step: str, target: str, error: str) -> TeardownWarning:
        w = TeardownWarning(step=step, target=target, error=error)
        logger.warning("Non-fatal: %s", w)
        return w
