"""Welcome file rendering for newly provisioned accounts."""
from __future__ import annotations

import socket
from dataclasses import dataclass

from jinja2 import TemplateError

from ..templates import TemplateEngine
from .errors import WelcomeRecordError
from .filesystem import FilesystemService
from .models import (
    AccountRecord,
    DirectoryPlan,
    DirectorySpec,
    IssuedCredential,
    WelcomeRecord,
)

WELCOME_TEMPLATE = "welcome/welcome.txt.j2"
WELCOME_MODE = 0o600

_DESCRIPTIONS = {
    "Documents": "personal documents",
    "Projects": "working area for your projects",
    "Private": "private files, accessible only by you",
}


def describe_directory(spec: DirectorySpec) -> str:
    """Return a short human description of a layout directory."""
    known = _DESCRIPTIONS.get(spec.name)
    if known:
        return known
    if spec.is_private:
        return "accessible only by you"
    return "readable by your group"


@dataclass(slots=True)
class WelcomeWriter:
    """Render the welcome file and hand it to the new account."""

    templates: TemplateEngine
    filesystem: FilesystemService
    plan: DirectoryPlan
    filename: str = "bienvenido.txt"

    def write(self, account: AccountRecord, credential: IssuedCredential) -> WelcomeRecord:
        """Write the welcome file for *account* containing *credential*."""
        path = account.home_path / self.filename
        if not credential.applied:
            raise WelcomeRecordError(
                f"Refusing to write {path}: the temporary password was not applied."
            )
        context = {
            "full_name": account.full_name,
            "username": account.username,
            "password": credential.plaintext,
            "home": str(account.home_path),
            "hostname": socket.gethostname(),
            "groups": [account.primary_group, *sorted(account.secondary_groups)],
            "directories": [
                {"name": spec.name, "description": describe_directory(spec)}
                for spec in self.plan.directories
            ],
        }
        try:
            text = self.templates.render_to_string(WELCOME_TEMPLATE, context)
        except TemplateError as exc:
            raise WelcomeRecordError(
                f"Failed to render welcome template: {exc}", cause=exc
            ) from exc
        try:
            self.filesystem.write_text(path, text, mode=WELCOME_MODE)
            self.filesystem.chown(path, account.username, account.primary_group)
        except OSError as exc:
            raise WelcomeRecordError(
                f"Failed to write welcome file {path}: {exc.strerror or exc}", cause=exc
            ) from exc
        return WelcomeRecord(path=path, owner=account.username)


__all__ = ["WELCOME_TEMPLATE", "WelcomeWriter", "describe_directory"]
