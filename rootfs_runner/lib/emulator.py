from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional

from ..errors import ConfigurationError
from .fs import copy_file

logger = logging.getLogger(__name__)


# Architectures that run natively on the build host map to None.
EMULATORS: Dict[str, Optional[str]] = {
    "arm": "/usr/bin/qemu-arm-static",
    "armhf": "/usr/bin/qemu-arm-static",
    "armel": "/usr/bin/qemu-arm-static",
    "arm64": "/usr/bin/qemu-aarch64-static",
    "mips": "/usr/bin/qemu-mips-static",
    "mipsel": "/usr/bin/qemu-mipsel-static",
    "mips64el": "/usr/bin/qemu-mips64el-static",
    "riscv64": "/usr/bin/qemu-riscv64-static",
    "amd64": None,
    "i386": None,
}


def resolve_emulator(architecture: str) -> Optional[str]:
    """Return the host emulator binary for an architecture, or None if native.

    Raises ConfigurationError for architectures we have no emulator for.
    """

    try:
        return EMULATORS[architecture]
    except KeyError:
        raise ConfigurationError(f"Don't know qemu for architecture {architecture!r}") from None


@dataclass(frozen=True)
class EmulatorBinding:
    host_path: str
    target_path: str


def bind_emulator(architecture: str, root: str) -> Optional[EmulatorBinding]:
    if not root or not architecture:
        return None
    src = resolve_emulator(architecture)
    if src is None:
        return None
    return EmulatorBinding(host_path=src, target_path=os.path.join(root, src.lstrip("/")))


class EmulatorInjector:
    """Copy a qemu user-mode binary into the target root for one run."""

    def __init__(self, architecture: str, root: str, *, dry_run: bool = False) -> None:
        self.binding = bind_emulator(architecture, root)
        self.dry_run = dry_run

    def setup(self) -> None:
        if self.binding is None:
            return
        logger.debug("Injecting %s -> %s", self.binding.host_path, self.binding.target_path)
        copy_file(self.binding.host_path, self.binding.target_path, 0o755, dry_run=self.dry_run)

    def cleanup(self) -> None:
        if self.binding is None:
            return
        if self.dry_run:
            logger.info("Would remove %s", self.binding.target_path)
            return
        Path(self.binding.target_path).unlink(missing_ok=True)
