"""Data models shared by the provisioning workflow and its collaborators."""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from pathlib import Path

from ..config import LayoutEntry

PRIVATE_MODE_MASK = 0o077


@dataclass(frozen=True, slots=True)
class ProvisioningRequest:
    """Operator-supplied input for a single onboarding run."""

    username: str
    full_name: str
    secondary_group: str

    def normalised(self) -> ProvisioningRequest:
        """Return a copy with surrounding whitespace removed from every field."""
        return replace(
            self,
            username=(self.username or "").strip(),
            full_name=(self.full_name or "").strip(),
            secondary_group=(self.secondary_group or "").strip(),
        )


@dataclass(frozen=True, slots=True)
class GroupRef:
    """A group resolved before the account is created."""

    name: str
    existed_before: bool


@dataclass(frozen=True, slots=True)
class AccountRecord:
    """An account created by the identity directory."""

    username: str
    full_name: str
    primary_group: str
    secondary_groups: frozenset[str]
    home_path: Path


@dataclass(frozen=True, slots=True)
class DirectorySpec:
    """A directory to create under the account's home with its mode."""

    name: str
    mode: int

    @property
    def is_private(self) -> bool:
        """Return ``True`` when group and other have no access."""
        return not self.mode & PRIVATE_MODE_MASK


@dataclass(frozen=True, slots=True)
class DirectoryPlan:
    """Ordered set of directories provisioned under a new home."""

    directories: tuple[DirectorySpec, ...]

    @classmethod
    def from_layout(cls, layout: tuple[LayoutEntry, ...]) -> DirectoryPlan:
        """Build a plan from configured layout entries."""
        return cls(tuple(DirectorySpec(name=entry.name, mode=entry.mode) for entry in layout))

    def names(self) -> list[str]:
        """Return directory names in plan order."""
        return [spec.name for spec in self.directories]


DEFAULT_DIRECTORY_PLAN = DirectoryPlan(
    (
        DirectorySpec(name="Documents", mode=0o750),
        DirectorySpec(name="Projects", mode=0o750),
        DirectorySpec(name="Private", mode=0o700),
    )
)


@dataclass(slots=True)
class IssuedCredential:
    """A generated temporary password and whether it is live on the account."""

    plaintext: str = field(repr=False)
    applied: bool = False
    force_rotate: bool = False


@dataclass(frozen=True, slots=True)
class WelcomeRecord:
    """The onboarding file written into the new home."""

    path: Path
    owner: str


@dataclass(frozen=True, slots=True)
class ProvisioningSummary:
    """Read-only projection of a completed run for operator display."""

    username: str
    full_name: str
    home_path: Path
    groups: tuple[str, ...]
    password: str = field(repr=False)
    welcome_path: Path | None = None
    force_rotate: bool = True
    warnings: tuple[str, ...] = ()

    @property
    def groups_display(self) -> str:
        """Return the group list joined with commas."""
        return ",".join(self.groups)

    def to_dict(self) -> dict[str, object]:
        """Return a JSON-serialisable representation."""
        return {
            "username": self.username,
            "full_name": self.full_name,
            "home": str(self.home_path),
            "groups": list(self.groups),
            "password": self.password,
            "welcome_file": str(self.welcome_path) if self.welcome_path else None,
            "force_rotate": self.force_rotate,
            "warnings": list(self.warnings),
        }


__all__ = [
    "AccountRecord",
    "DEFAULT_DIRECTORY_PLAN",
    "DirectoryPlan",
    "DirectorySpec",
    "GroupRef",
    "IssuedCredential",
    "ProvisioningRequest",
    "ProvisioningSummary",
    "WelcomeRecord",
]
