from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from .command_spec import DEFAULT_LAUNCHER, CommandSpec, IsolationMethod
from .lib.fs import real_path

logger = logging.getLogger(__name__)

DISK_BY_DIR = "/dev/disk"


@dataclass(frozen=True)
class ImagePartition:
    name: str
    device_path: str


@dataclass(frozen=True)
class BuildContext:
    """The slice of build state needed to run commands in the image root."""

    architecture: str
    rootdir: str
    environ_vars: Dict[str, str] = field(default_factory=dict)
    image: str = ""
    image_partitions: List[ImagePartition] = field(default_factory=list)


def new_chroot_command_for_context(
    context: BuildContext,
    *,
    default_method: IsolationMethod = IsolationMethod.NSPAWN,
    launcher: str = DEFAULT_LAUNCHER,
    config=None,
) -> CommandSpec:
    """Build a CommandSpec that runs inside the context's root filesystem.

    When a disk image is attached, the image file, each partition device and
    /dev/disk are bind mounted at their host paths so tools like grub-install
    can find them from inside the root.
    """

    if config is not None:
        default_method = config.default_method
        launcher = config.launcher

    spec = CommandSpec(
        architecture=context.architecture,
        chroot_path=context.rootdir,
        isolation_method=IsolationMethod.DEFAULT,
        default_method=default_method,
        launcher=launcher,
    )

    for k, v in context.environ_vars.items():
        spec.add_env_key(k, v)

    if context.image:
        _bind_real_path(spec, context.image)
        for part in context.image_partitions:
            _bind_real_path(spec, part.device_path)
        spec.add_bind_mount(DISK_BY_DIR)

    return spec


def _bind_real_path(spec: CommandSpec, path: Optional[str]) -> None:
    try:
        resolved = real_path(path or "")
    except OSError as e:
        logger.warning("Failed to get realpath for %s, %s", path, e)
        return
    spec.add_bind_mount(resolved)
