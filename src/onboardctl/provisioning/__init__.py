"""Account provisioning workflow and its building blocks."""
from __future__ import annotations

from .credentials import CredentialIssuer, generate_password
from .errors import (
    AccountCreationError,
    ConflictError,
    CredentialError,
    FilesystemError,
    GroupCreationError,
    PrivilegeError,
    ProvisioningError,
    ValidationError,
    WelcomeRecordError,
)
from .filesystem import provision_home
from .models import (
    DEFAULT_DIRECTORY_PLAN,
    AccountRecord,
    DirectoryPlan,
    DirectorySpec,
    GroupRef,
    IssuedCredential,
    ProvisioningRequest,
    ProvisioningSummary,
    WelcomeRecord,
)
from .welcome import WelcomeWriter
from .workflow import ProvisioningWorkflow, require_privileges, validate_request

__all__ = [
    # workflow
    "ProvisioningWorkflow",
    "require_privileges",
    "validate_request",
    # collaborators
    "CredentialIssuer",
    "generate_password",
    "provision_home",
    "WelcomeWriter",
    # models
    "AccountRecord",
    "DEFAULT_DIRECTORY_PLAN",
    "DirectoryPlan",
    "DirectorySpec",
    "GroupRef",
    "IssuedCredential",
    "ProvisioningRequest",
    "ProvisioningSummary",
    "WelcomeRecord",
    # errors
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
