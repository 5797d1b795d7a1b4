from __future__ import annotations

import logging
import os
from pathlib import Path

from ..errors import ConfigurationError

logger = logging.getLogger(__name__)

POLICY_RC_D = "usr/sbin/policy-rc.d"
POLICY_BACKUP_SUFFIX = ".rootfs-runner"
DENY_POLICY = "#!/bin/sh\nexit 101\n"


class ServiceGate:
    """Stop invoke-rc.d from starting daemons inside a target root.

    deny() installs a policy-rc.d that exits 101 ("action forbidden");
    allow() removes it again and restores any policy that was there before.
    """

    def __init__(self, root: str, *, dry_run: bool = False) -> None:
        if not root:
            raise ConfigurationError("ServiceGate needs a target root")
        self.root = root
        self.dry_run = dry_run

    @property
    def policy_path(self) -> Path:
        return Path(self.root) / POLICY_RC_D

    @property
    def backup_path(self) -> Path:
        return self.policy_path.with_name(self.policy_path.name + POLICY_BACKUP_SUFFIX)

    def deny(self) -> None:
        pf = self.policy_path
        if self.dry_run:
            logger.info("Would write %s", str(pf))
            return

        pf.parent.mkdir(parents=True, exist_ok=True)
        if pf.exists() and not self.backup_path.exists():
            # Keep the image's own policy; it comes back on allow().
            os.replace(pf, self.backup_path)
        pf.write_text(DENY_POLICY, encoding="utf-8")
        os.chmod(pf, 0o755)
        logger.debug("Services denied in %s", self.root)

    def allow(self) -> None:
        pf = self.policy_path
        if self.dry_run:
            logger.info("Would remove %s", str(pf))
            return

        pf.unlink(missing_ok=True)
        if self.backup_path.exists():
            os.replace(self.backup_path, pf)
        logger.debug("Services allowed in %s", self.root)
