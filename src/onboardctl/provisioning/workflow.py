"""Sequential account provisioning workflow.

The workflow runs a fixed chain of steps against the host identity directory
and filesystem. Each step's postcondition is the next step's precondition:

1. privilege check
2. request validation
3. account collision check
4. secondary group (created when absent)
5. primary group named after the user (created when absent, reused otherwise)
6. account creation
7. home directory layout
8. temporary password and forced rotation
9. welcome file
10. summary

Any fatal failure raises a :class:`~.errors.ProvisioningError` immediately.
Nothing is rolled back: a partially provisioned account is left for the
operator to inspect.
"""
from __future__ import annotations

import logging
import os
import re
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from ..templates import TemplateEngine
from .credentials import CredentialIssuer
from .errors import (
    AccountCreationError,
    ConflictError,
    GroupCreationError,
    PrivilegeError,
    ValidationError,
)
from .filesystem import FilesystemService, provision_home
from .models import (
    DEFAULT_DIRECTORY_PLAN,
    AccountRecord,
    DirectoryPlan,
    GroupRef,
    ProvisioningRequest,
    ProvisioningSummary,
)
from .welcome import WelcomeWriter

LOGGER = logging.getLogger(__name__)

NAME_PATTERN = re.compile(r"^[a-z_][a-z0-9_-]*\$?$")
NAME_MAX_LENGTH = 32


class IdentityService(Protocol):
    """Identity directory operations the workflow depends on."""

    def group_exists(self, name: str) -> bool: ...

    def create_group(self, name: str) -> None: ...

    def account_exists(self, username: str) -> bool: ...

    def create_account(
        self,
        username: str,
        full_name: str,
        primary_group: str,
        secondary_groups: Iterable[str],
        home: Path,
    ) -> AccountRecord: ...

    def set_password(self, username: str, plaintext: str) -> None: ...

    def expire_password_now(self, username: str) -> None: ...


class StepRecorder(Protocol):
    """Receives progress events as the workflow advances."""

    def record(self, step: str, status: str, message: str) -> None: ...


def running_as_root() -> bool:
    """Return ``True`` when the effective user is root."""
    return os.geteuid() == 0


def require_privileges(check: Callable[[], bool] = running_as_root) -> None:
    """Raise :class:`PrivilegeError` unless *check* reports elevated privileges."""
    if not check():
        raise PrivilegeError("onboardctl must be run as root (try sudo).")


def validate_request(request: ProvisioningRequest) -> ProvisioningRequest:
    """Return the trimmed *request* or raise :class:`ValidationError`."""
    normalised = request.normalised()
    missing = [
        label
        for label, value in (
            ("username", normalised.username),
            ("full name", normalised.full_name),
            ("secondary group", normalised.secondary_group),
        )
        if not value
    ]
    if missing:
        raise ValidationError(f"Missing required value(s): {', '.join(missing)}.")

    for label, value in (
        ("username", normalised.username),
        ("secondary group", normalised.secondary_group),
    ):
        if len(value) > NAME_MAX_LENGTH or not NAME_PATTERN.match(value):
            raise ValidationError(
                f"Invalid {label} '{value}': use lowercase letters, digits, '_' or '-', "
                f"starting with a letter or '_' (max {NAME_MAX_LENGTH} characters)."
            )

    # The full name lands in the colon-separated GECOS field of /etc/passwd.
    if ":" in normalised.full_name or not normalised.full_name.isprintable():
        raise ValidationError("Full name must not contain ':' or control characters.")
    return normalised


class _NullRecorder:
    def record(self, step: str, status: str, message: str) -> None:
        LOGGER.debug("%s [%s] %s", step, status, message)


@dataclass(slots=True)
class ProvisioningWorkflow:
    """Orchestrate creation of a single onboarded account."""

    identity: IdentityService
    filesystem: FilesystemService
    templates: TemplateEngine
    home_root: Path = Path("/home")
    plan: DirectoryPlan = DEFAULT_DIRECTORY_PLAN
    password_length: int = 16
    welcome_file: str = "bienvenido.txt"
    privilege_check: Callable[[], bool] = running_as_root

    def provision(
        self,
        request: ProvisioningRequest,
        *,
        recorder: StepRecorder | None = None,
    ) -> ProvisioningSummary:
        """Provision the account described by *request* and return a summary."""
        steps = recorder or _NullRecorder()
        warnings: list[str] = []

        require_privileges(self.privilege_check)
        request = validate_request(request)
        username = request.username
        steps.record("validate", "success", f"Request for '{username}' is valid.")

        steps.record("account.check", "start", f"Checking that account '{username}' is new.")
        if self.identity.account_exists(username):
            raise ConflictError(f"Account '{username}' already exists; refusing to modify it.")
        steps.record("account.check", "success", f"Account '{username}' does not exist yet.")

        secondary = self._ensure_group(
            request.secondary_group, step="group.secondary", steps=steps
        )
        if secondary.name == username:
            primary = secondary
        else:
            primary = self._ensure_group(username, step="group.primary", steps=steps)
        if primary.existed_before:
            message = f"Primary group '{username}' already existed and will be reused."
            warnings.append(message)
            steps.record("group.primary", "warning", message)

        home = self.home_root / username
        steps.record("account.create", "start", f"Creating account '{username}'.")
        try:
            account = self.identity.create_account(
                username,
                request.full_name,
                primary.name,
                [secondary.name],
                home,
            )
        except (RuntimeError, OSError) as exc:
            raise AccountCreationError(
                f"Failed to create account '{username}': {exc}", cause=exc
            ) from exc
        steps.record("account.create", "success", f"Account '{username}' created ({home}).")

        steps.record("filesystem", "start", f"Creating {', '.join(self.plan.names())}.")
        provision_home(account, self.plan, self.filesystem)
        steps.record("filesystem", "success", "Directories created with permissions applied.")

        steps.record("credential", "start", "Issuing temporary password.")
        issuer = CredentialIssuer(store=self.identity, length=self.password_length)
        credential = issuer.issue_and_apply(account)
        steps.record("credential", "success", "Temporary password applied.")
        for message in issuer.warnings:
            warnings.append(message)
            steps.record("credential.expire", "warning", message)
        if credential.force_rotate:
            steps.record("credential.expire", "success", "Password change forced at next login.")

        writer = WelcomeWriter(
            templates=self.templates,
            filesystem=self.filesystem,
            plan=self.plan,
            filename=self.welcome_file,
        )
        steps.record("welcome", "start", "Writing welcome file.")
        record = writer.write(account, credential)
        steps.record("welcome", "success", f"Welcome file written to {record.path}.")

        return ProvisioningSummary(
            username=account.username,
            full_name=account.full_name,
            home_path=account.home_path,
            groups=(account.primary_group, *sorted(account.secondary_groups - {primary.name})),
            password=credential.plaintext,
            welcome_path=record.path,
            force_rotate=credential.force_rotate,
            warnings=tuple(warnings),
        )

    def _ensure_group(self, name: str, *, step: str, steps: StepRecorder) -> GroupRef:
        if self.identity.group_exists(name):
            steps.record(step, "success", f"Group '{name}' already exists.")
            return GroupRef(name=name, existed_before=True)
        steps.record(step, "start", f"Creating group '{name}'.")
        try:
            self.identity.create_group(name)
        except (RuntimeError, OSError) as exc:
            raise GroupCreationError(
                f"Failed to create group '{name}': {exc}", step=step, cause=exc
            ) from exc
        steps.record(step, "success", f"Group '{name}' created.")
        return GroupRef(name=name, existed_before=False)


__all__ = [
    "IdentityService",
    "ProvisioningWorkflow",
    "StepRecorder",
    "require_privileges",
    "running_as_root",
    "validate_request",
]
