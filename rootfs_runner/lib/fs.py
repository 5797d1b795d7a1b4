from __future__ import annotations

import logging
import os
import shutil
from pathlib import Path

logger = logging.getLogger(__name__)


def real_path(path: str) -> str:
    """Resolve symlinks and return an absolute path.

    Raises FileNotFoundError when the path does not exist.
    """

    if not path:
        raise FileNotFoundError("empty path")
    return str(Path(path).resolve(strict=True))


def copy_file(src: str, dst: str, mode: int = 0o755, *, dry_run: bool = False) -> None:
    s = Path(src)
    d = Path(dst)
    if not s.exists():
        raise FileNotFoundError(src)

    if dry_run:
        logger.info("Would copy %s -> %s (mode %o)", str(s), str(d), mode)
        return

    d.parent.mkdir(parents=True, exist_ok=True)
    shutil.copyfile(s, d)
    os.chmod(d, mode)
