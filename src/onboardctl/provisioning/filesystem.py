"""Home directory layout provisioning."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Protocol

from .errors import FilesystemError
from .models import AccountRecord, DirectoryPlan

LOGGER = logging.getLogger(__name__)


class FilesystemService(Protocol):
    """Host filesystem primitives required by the provisioner."""

    def makedirs(self, path: Path) -> None: ...

    def chown(self, path: Path, user: str, group: str | None = None) -> None: ...

    def chmod(self, path: Path, mode: int) -> None: ...

    def write_text(self, path: Path, text: str, *, mode: int = 0o600) -> None: ...


def provision_home(
    account: AccountRecord,
    plan: DirectoryPlan,
    filesystem: FilesystemService,
) -> list[Path]:
    """Create every directory in *plan* under the account home.

    Directories are created and handed to the account in plan order; modes
    are applied only once all of them exist. The first failure stops the run
    and is raised as :class:`FilesystemError`. Directories created before the
    failure are left in place.
    """
    created: list[Path] = []
    for spec in plan.directories:
        path = account.home_path / spec.name
        try:
            filesystem.makedirs(path)
            filesystem.chown(path, account.username, account.primary_group)
        except OSError as exc:
            raise FilesystemError(
                f"Failed to create directory '{spec.name}' at {path}: {exc.strerror or exc}",
                path=path,
                cause=exc,
            ) from exc
        LOGGER.debug("Provisioned %s for %s", path, account.username)
        created.append(path)

    for spec, path in zip(plan.directories, created, strict=True):
        try:
            filesystem.chmod(path, spec.mode)
        except OSError as exc:
            raise FilesystemError(
                f"Failed to set mode {spec.mode:04o} on '{spec.name}' at {path}: "
                f"{exc.strerror or exc}",
                path=path,
                cause=exc,
            ) from exc
    return created


__all__ = ["FilesystemService", "provision_home"]
