"""Unit tests for the identity directory adapter."""
from __future__ import annotations

import subprocess
from pathlib import Path
from types import SimpleNamespace

import pytest

from onboardctl.config import ToolsConfig
from onboardctl.providers import IdentityDirectory, IdentityError


def _raise_key_error(*args: object, **kwargs: object) -> None:
    raise KeyError


class RecordingRunner:
    """Capture commands and return scripted results."""

    def __init__(self, returncode: int = 0, stderr: str = "") -> None:
        """Return *returncode*/*stderr* for every command."""
        self.returncode = returncode
        self.stderr = stderr
        self.calls: list[tuple[list[str], str | None]] = []

    def __call__(
        self, command: list[str], stdin: str | None
    ) -> subprocess.CompletedProcess[str]:
        self.calls.append((command, stdin))
        return subprocess.CompletedProcess(
            command, returncode=self.returncode, stdout="", stderr=self.stderr
        )


def test_existence_checks_use_host_databases(monkeypatch: pytest.MonkeyPatch) -> None:
    """Lookups consult pwd/grp and translate KeyError into False."""
    from onboardctl.providers import identity as identity_module

    monkeypatch.setattr(identity_module.pwd, "getpwnam", _raise_key_error)
    monkeypatch.setattr(
        identity_module.grp,
        "getgrnam",
        lambda name: SimpleNamespace(gr_gid=5678, gr_name=name, gr_mem=[]),
    )
    directory = IdentityDirectory(runner=RecordingRunner())

    assert directory.account_exists("lvaldez") is False
    assert directory.group_exists("marketing") is True


def test_create_group_runs_groupadd() -> None:
    """Group creation shells out to the configured groupadd binary."""
    runner = RecordingRunner()
    directory = IdentityDirectory(tools=ToolsConfig(groupadd="/usr/sbin/groupadd"), runner=runner)

    directory.create_group("marketing")

    assert runner.calls == [(["/usr/sbin/groupadd", "marketing"], None)]


def test_create_account_binds_groups_and_home() -> None:
    """useradd receives home, comment, primary and supplementary groups."""
    runner = RecordingRunner()
    directory = IdentityDirectory(shell="/bin/zsh", runner=runner)

    record = directory.create_account(
        "lvaldez",
        "Lucia Valdez",
        "lvaldez",
        ["marketing"],
        Path("/home/lvaldez"),
    )

    assert runner.calls == [
        (
            [
                "useradd",
                "--create-home",
                "--home-dir",
                "/home/lvaldez",
                "--comment",
                "Lucia Valdez",
                "--gid",
                "lvaldez",
                "--groups",
                "marketing",
                "--shell",
                "/bin/zsh",
                "lvaldez",
            ],
            None,
        )
    ]
    assert record.primary_group == "lvaldez"
    assert record.secondary_groups == frozenset({"marketing"})
    assert record.home_path == Path("/home/lvaldez")


def test_password_travels_on_stdin_only() -> None:
    """chpasswd gets the secret on stdin; chage expires it immediately."""
    runner = RecordingRunner()
    directory = IdentityDirectory(runner=runner)

    directory.set_password("lvaldez", "s3cret-Value")
    directory.expire_password_now("lvaldez")

    (chpasswd_cmd, chpasswd_stdin), (chage_cmd, chage_stdin) = runner.calls
    assert chpasswd_cmd == ["chpasswd"]
    assert chpasswd_stdin == "lvaldez:s3cret-Value\n"
    assert chage_cmd == ["chage", "-d", "0", "lvaldez"]
    assert chage_stdin is None


def test_nonzero_exit_raises_identity_error() -> None:
    """Failures wrap the binary name, exit code and stderr."""
    runner = RecordingRunner(returncode=9, stderr="useradd: user 'lvaldez' already exists\n")
    directory = IdentityDirectory(runner=runner)

    with pytest.raises(IdentityError, match=r"useradd failed \(exit 9\): useradd: user"):
        directory.create_account("lvaldez", "Lucia", "lvaldez", [], Path("/home/lvaldez"))


def test_password_not_leaked_in_errors() -> None:
    """chpasswd failures never echo the secret back."""
    directory = IdentityDirectory(runner=RecordingRunner(returncode=1, stderr="PAM failure"))

    with pytest.raises(IdentityError) as excinfo:
        directory.set_password("lvaldez", "s3cret-Value")

    assert "s3cret-Value" not in str(excinfo.value)


def test_missing_binary_raises_identity_error() -> None:
    """A missing executable is reported as an IdentityError."""

    def missing(command: list[str], stdin: str | None) -> subprocess.CompletedProcess[str]:
        raise FileNotFoundError(2, "No such file or directory", command[0])

    directory = IdentityDirectory(runner=missing)

    with pytest.raises(IdentityError, match="chage not found"):
        directory.expire_password_now("lvaldez")
