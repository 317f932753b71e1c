"""Identity directory adapter backed by the host passwd/group databases.

Lookups use the :mod:`pwd` and :mod:`grp` modules; mutations shell out to the
shadow-utils binaries (``groupadd``, ``useradd``, ``chpasswd``, ``chage``).
Every command goes through an injectable runner so tests never touch the
host.
"""
from __future__ import annotations

import grp
import pwd
import subprocess
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from pathlib import Path

from ..config import ToolsConfig
from ..provisioning.models import AccountRecord

Runner = Callable[[list[str], str | None], subprocess.CompletedProcess[str]]


class IdentityError(RuntimeError):
    """Raised when an identity directory operation fails."""


@dataclass(slots=True)
class IdentityDirectory:
    """Create and inspect local accounts and groups."""

    tools: ToolsConfig = ToolsConfig()
    shell: str | None = "/bin/bash"
    runner: Runner | None = None

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    def group_exists(self, name: str) -> bool:
        """Return ``True`` when group *name* is present in the group database."""
        try:
            grp.getgrnam(name)
        except KeyError:
            return False
        return True

    def account_exists(self, username: str) -> bool:
        """Return ``True`` when *username* is present in the passwd database."""
        try:
            pwd.getpwnam(username)
        except KeyError:
            return False
        return True

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------
    def create_group(self, name: str) -> None:
        """Create group *name*."""
        self._run([self.tools.groupadd, name])

    def create_account(
        self,
        username: str,
        full_name: str,
        primary_group: str,
        secondary_groups: Iterable[str],
        home: Path,
    ) -> AccountRecord:
        """Create *username* with its home directory and group memberships."""
        secondary = sorted({group for group in secondary_groups if group})
        command = [
            self.tools.useradd,
            "--create-home",
            "--home-dir",
            str(home),
            "--comment",
            full_name,
            "--gid",
            primary_group,
        ]
        if secondary:
            command.extend(["--groups", ",".join(secondary)])
        if self.shell:
            command.extend(["--shell", self.shell])
        command.append(username)
        self._run(command)
        return AccountRecord(
            username=username,
            full_name=full_name,
            primary_group=primary_group,
            secondary_groups=frozenset(secondary),
            home_path=home,
        )

    def set_password(self, username: str, plaintext: str) -> None:
        """Set the password for *username*; the secret is passed on stdin only."""
        self._run([self.tools.chpasswd], stdin=f"{username}:{plaintext}\n")

    def expire_password_now(self, username: str) -> None:
        """Mark the password for *username* as expired so it must change at login."""
        self._run([self.tools.chage, "-d", "0", username])

    # ------------------------------------------------------------------
    def _run(
        self,
        args: Sequence[str],
        *,
        stdin: str | None = None,
    ) -> subprocess.CompletedProcess[str]:
        runner = self.runner or _default_runner
        try:
            result = runner(list(args), stdin)
        except FileNotFoundError as exc:
            raise IdentityError(f"{args[0]} not found: {exc.strerror or exc}") from exc
        if result.returncode != 0:
            stdout = getattr(result, "stdout", "") or ""
            stderr = getattr(result, "stderr", "") or ""
            message = stderr.strip() or stdout.strip() or "no output"
            raise IdentityError(f"{args[0]} failed (exit {result.returncode}): {message}")
        return result


def _default_runner(
    command: list[str],
    stdin: str | None,
) -> subprocess.CompletedProcess[str]:
    return subprocess.run(  # noqa: S603
        command,
        input=stdin,
        capture_output=True,
        text=True,
        check=False,
    )


__all__ = ["IdentityDirectory", "IdentityError", "Runner"]
