"""Error taxonomy for the provisioning workflow.

Every fatal failure is raised as a :class:`ProvisioningError` subclass naming
the step that failed. The workflow never attempts compensating actions, so a
raised error means earlier steps remain applied on the host.
"""
from __future__ import annotations

from pathlib import Path


class ProvisioningError(RuntimeError):
    """Base class for fatal provisioning failures."""

    default_step = "provision"

    def __init__(
        self,
        message: str,
        *,
        step: str | None = None,
        cause: BaseException | None = None,
    ) -> None:
        """Store *message* along with the failing *step* and underlying *cause*."""
        super().__init__(message)
        self.step = step or self.default_step
        self.cause = cause


class PrivilegeError(ProvisioningError):
    """Raised when the caller lacks administrative privileges."""

    default_step = "privileges"


class ValidationError(ProvisioningError):
    """Raised when request fields are missing or malformed."""

    default_step = "validate"


class ConflictError(ProvisioningError):
    """Raised when the target account already exists."""

    default_step = "account.check"


class GroupCreationError(ProvisioningError):
    """Raised when a required group cannot be created."""

    default_step = "group"


class AccountCreationError(ProvisioningError):
    """Raised when the account cannot be created."""

    default_step = "account.create"


class FilesystemError(ProvisioningError):
    """Raised when a home directory entry cannot be provisioned."""

    default_step = "filesystem"

    def __init__(
        self,
        message: str,
        *,
        path: Path,
        step: str | None = None,
        cause: BaseException | None = None,
    ) -> None:
        """Record the failing *path* in addition to the base attributes."""
        super().__init__(message, step=step, cause=cause)
        self.path = path


class CredentialError(ProvisioningError):
    """Raised when the temporary password cannot be applied."""

    default_step = "credential"


class WelcomeRecordError(ProvisioningError):
    """Raised when the welcome file cannot be written."""

    default_step = "welcome"


__all__ = [
    "AccountCreationError",
    "ConflictError",
    "CredentialError",
    "FilesystemError",
    "GroupCreationError",
    "PrivilegeError",
    "ProvisioningError",
    "ValidationError",
    "WelcomeRecordError",
]
