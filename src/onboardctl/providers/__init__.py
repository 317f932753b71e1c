"""Host-facing providers for onboardctl."""
from __future__ import annotations

from .filesystem import HostFilesystem
from .identity import IdentityDirectory, IdentityError

__all__ = [
    "HostFilesystem",
    "IdentityDirectory",
    "IdentityError",
]
