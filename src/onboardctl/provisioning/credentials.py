"""Temporary password generation and application."""
from __future__ import annotations

import secrets
import string
from dataclasses import dataclass, field
from typing import Protocol

from ..config import MIN_PASSWORD_LENGTH
from .errors import CredentialError
from .models import AccountRecord, IssuedCredential

# No whitespace and no ':' (chpasswd splits its input on colons).
PASSWORD_ALPHABET = string.ascii_letters + string.digits + "-_.@#%+="


class CredentialStore(Protocol):
    """Password primitives provided by the identity directory."""

    def set_password(self, username: str, plaintext: str) -> None: ...

    def expire_password_now(self, username: str) -> None: ...


def generate_password(length: int = 16) -> str:
    """Return a random password of *length* characters from a CSPRNG."""
    if length < MIN_PASSWORD_LENGTH:
        raise ValueError(f"Password length must be at least {MIN_PASSWORD_LENGTH}.")
    return "".join(secrets.choice(PASSWORD_ALPHABET) for _ in range(length))


@dataclass(slots=True)
class CredentialIssuer:
    """Issue a temporary password and schedule its forced rotation."""

    store: CredentialStore
    length: int = 16
    warnings: list[str] = field(default_factory=list)

    def issue_and_apply(self, account: AccountRecord) -> IssuedCredential:
        """Generate and apply a password for *account*.

        Failure to set the password raises :class:`CredentialError`. Failure
        to expire it afterwards is appended to :attr:`warnings` because the
        account is already usable at that point.
        """
        credential = IssuedCredential(plaintext=generate_password(self.length))
        try:
            self.store.set_password(account.username, credential.plaintext)
        except (RuntimeError, OSError) as exc:
            raise CredentialError(
                f"Failed to set password for '{account.username}': {exc}",
                cause=exc,
            ) from exc
        credential.applied = True

        try:
            self.store.expire_password_now(account.username)
        except (RuntimeError, OSError) as exc:
            self.warnings.append(
                f"Password for '{account.username}' is set but could not be expired; "
                f"rotation at first login is not enforced: {exc}"
            )
        else:
            credential.force_rotate = True
        return credential


__all__ = ["CredentialIssuer", "CredentialStore", "PASSWORD_ALPHABET", "generate_password"]
