"""Thin host filesystem surface used when provisioning home directories."""
from __future__ import annotations

import os
import shutil
from pathlib import Path


class HostFilesystem:
    """Directory, ownership and permission primitives for the local host.

    Subclass and override individual methods to observe or fake host
    mutations (e.g. recording ``chown`` calls when not running as root).
    """

    def makedirs(self, path: Path) -> None:
        """Create *path* and any missing parents."""
        path.mkdir(parents=True, exist_ok=True)

    def chown(self, path: Path, user: str, group: str | None = None) -> None:
        """Assign *path* to *user* (and *group* when given)."""
        if group:
            shutil.chown(path, user=user, group=group)
        else:
            shutil.chown(path, user=user)

    def chmod(self, path: Path, mode: int) -> None:
        """Apply permission bits *mode* to *path*."""
        os.chmod(path, mode)

    def write_text(self, path: Path, text: str, *, mode: int = 0o600) -> None:
        """Write *text* to *path*, created with *mode* so it is never wider."""
        fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, mode)
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(text)
        os.chmod(path, mode)


__all__ = ["HostFilesystem"]
