from __future__ import annotations

import logging
import shlex
import subprocess
from dataclasses import dataclass
from typing import Sequence

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CmdResult:
    argv: list[str]
    returncode: int
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def reason(self) -> str:
        """Short failure text for a TeardownWarning."""
        return self.stderr.strip() or f"exit {self.returncode}"


def fmt_argv(argv: Sequence[str]) -> str:
    return " ".join(shlex.quote(a) for a in argv)


def run_cmd(argv: Sequence[str], *, check: bool = True, dry_run: bool = False) -> CmdResult:
    """Run a short host-side helper (mount --bind, umount) next to a target root.

    These helpers print nothing useful on success, so only stderr is kept
    for the failure report. stdin is closed: a helper must never wait on the
    terminal while the root is half set up.
    """

    argv_list = list(argv)
    logger.info("CMD %s", fmt_argv(argv_list))

    if dry_run:
        return CmdResult(argv=argv_list, returncode=0, stderr="")

    p = subprocess.run(
        argv_list,
        text=True,
        stdin=subprocess.DEVNULL,
        stdout=subprocess.DEVNULL,
        stderr=subprocess.PIPE,
    )
    r = CmdResult(argv=argv_list, returncode=p.returncode, stderr=p.stderr or "")
    if not r.ok:
        logger.debug("STDERR %s", r.reason)

    if check and not r.ok:
        raise RuntimeError(f"Command failed ({r.returncode}): {fmt_argv(argv_list)}\n{r.stderr}")

    return r
