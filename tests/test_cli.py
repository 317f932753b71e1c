"""Tests for the onboardctl command line interface."""
from __future__ import annotations

import json
import stat
from pathlib import Path

import pytest
from typer.testing import CliRunner

from onboardctl import __version__, cli
from onboardctl.cli import app
from tests.fakes import FakeIdentity, RecordingFilesystem

runner = CliRunner()

LUCIA_INPUT = "lvaldez\nLucia Valdez\nmarketing\n"


def _prepare_environment(tmp_path: Path) -> dict[str, str]:
    """Point every configurable path at *tmp_path*."""
    return {
        "ONBOARDCTL_CONFIG_FILE": str(tmp_path / "etc" / "config.yml"),
        "ONBOARDCTL_HOME_ROOT": str(tmp_path / "home"),
        "ONBOARDCTL_LOGS_DIR": str(tmp_path / "logs"),
        "ONBOARDCTL_TEMPLATES_DIR": str(tmp_path / "templates"),
    }


@pytest.fixture
def fake_host(monkeypatch: pytest.MonkeyPatch) -> FakeIdentity:
    """Run the CLI as root against in-memory identity and recording filesystem."""
    identity = FakeIdentity()
    monkeypatch.setattr(cli, "running_as_root", lambda: True)
    monkeypatch.setattr(cli, "IdentityDirectory", lambda **kwargs: identity)
    monkeypatch.setattr(cli, "HostFilesystem", RecordingFilesystem)
    return identity


def test_version_option_outputs_package_version(tmp_path: Path) -> None:
    """CLI ``--version`` flag emits the package version."""
    result = runner.invoke(app, ["--version"], env=_prepare_environment(tmp_path))

    assert result.exit_code == 0
    assert __version__ in result.stdout


def test_non_root_fails_before_prompting(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    """Unprivileged runs exit 1 without asking for anything."""
    identity = FakeIdentity()
    monkeypatch.setattr(cli, "running_as_root", lambda: False)
    monkeypatch.setattr(cli, "IdentityDirectory", lambda **kwargs: identity)

    result = runner.invoke(app, input=LUCIA_INPUT, env=_prepare_environment(tmp_path))

    assert result.exit_code == 1
    assert "must be run as root" in result.stdout
    assert "Username" not in result.stdout
    assert identity.calls == []


def test_interactive_provisioning_prints_summary(
    tmp_path: Path, fake_host: FakeIdentity
) -> None:
    """Prompted values provision the account and the summary shows the password."""
    result = runner.invoke(app, input=LUCIA_INPUT, env=_prepare_environment(tmp_path))

    assert result.exit_code == 0, result.stdout
    password = fake_host.passwords["lvaldez"]
    assert "Username" in result.stdout
    assert "Account provisioned" in result.stdout
    assert "lvaldez,marketing" in result.stdout
    assert password in result.stdout
    assert "must change this password at first login" in result.stdout
    assert fake_host.mutations == [
        ("create_group", "marketing"),
        ("create_group", "lvaldez"),
        ("create_account", "lvaldez"),
        ("set_password", "lvaldez"),
        ("expire_password_now", "lvaldez"),
    ]

    home = tmp_path / "home" / "lvaldez"
    assert stat.S_IMODE((home / "Private").stat().st_mode) == 0o700
    assert password in (home / "bienvenido.txt").read_text(encoding="utf-8")


def test_empty_answer_aborts_without_changes(
    tmp_path: Path, fake_host: FakeIdentity
) -> None:
    """An empty prompt answer is a failure and nothing is touched."""
    result = runner.invoke(app, input="\n\n\n", env=_prepare_environment(tmp_path))

    assert result.exit_code == 1
    assert "Username is required" in result.stdout
    assert fake_host.calls == []


def test_existing_account_is_refused(tmp_path: Path, fake_host: FakeIdentity) -> None:
    """A username collision exits 1 with no mutations."""
    fake_host.accounts.add("lvaldez")

    result = runner.invoke(app, input=LUCIA_INPUT, env=_prepare_environment(tmp_path))

    assert result.exit_code == 1
    assert "already exists" in result.stdout
    assert fake_host.mutations == []


def test_invalid_username_is_rejected(tmp_path: Path, fake_host: FakeIdentity) -> None:
    """Validation failures exit 1 before any identity lookups."""
    result = runner.invoke(
        app,
        ["--username", "Bad User", "--full-name", "Bad", "--group", "marketing"],
        env=_prepare_environment(tmp_path),
    )

    assert result.exit_code == 1
    assert "Invalid" in result.stdout
    assert fake_host.calls == []


def test_json_output_is_parseable(tmp_path: Path, fake_host: FakeIdentity) -> None:
    """``--json`` emits only the summary document."""
    result = runner.invoke(
        app,
        [
            "--username",
            "lvaldez",
            "--full-name",
            "Lucia Valdez",
            "--group",
            "marketing",
            "--json",
        ],
        env=_prepare_environment(tmp_path),
    )

    assert result.exit_code == 0, result.stdout
    payload = json.loads(result.stdout)
    assert payload["username"] == "lvaldez"
    assert payload["groups"] == ["lvaldez", "marketing"]
    assert payload["password"] == fake_host.passwords["lvaldez"]
    assert payload["force_rotate"] is True
    assert payload["welcome_file"].endswith("bienvenido.txt")


def test_operations_log_never_contains_password(
    tmp_path: Path, fake_host: FakeIdentity
) -> None:
    """The structured log records steps but not the issued secret."""
    result = runner.invoke(app, input=LUCIA_INPUT, env=_prepare_environment(tmp_path))
    assert result.exit_code == 0, result.stdout

    log_text = (tmp_path / "logs" / "operations.jsonl").read_text(encoding="utf-8")
    assert fake_host.passwords["lvaldez"] not in log_text
    record = json.loads(log_text.splitlines()[-1])
    assert record["command"] == "provision"
    assert record["target"] == {"kind": "account", "name": "lvaldez"}
    assert record["result"]["status"] == "success"
    steps = [entry["step"] for entry in record["steps"]]
    assert steps[0] == "validate"
    assert steps[-1] == "welcome"


def test_failure_is_logged_with_step(tmp_path: Path, fake_host: FakeIdentity) -> None:
    """Fatal errors exit 1 and land in the operations log."""
    fake_host.fail["create_account"] = "useradd failed (exit 9): boom"

    result = runner.invoke(app, input=LUCIA_INPUT, env=_prepare_environment(tmp_path))

    assert result.exit_code == 1
    assert "account.create" in result.stdout
    record = json.loads(
        (tmp_path / "logs" / "operations.jsonl").read_text(encoding="utf-8").splitlines()[-1]
    )
    assert record["result"]["status"] == "error"
    assert record["result"]["rc"] == 1


def test_expire_failure_still_succeeds_with_warning(
    tmp_path: Path, fake_host: FakeIdentity
) -> None:
    """A password that cannot be expired is reported but does not fail the run."""
    fake_host.fail["expire_password_now"] = "chage not found"

    result = runner.invoke(app, input=LUCIA_INPUT, env=_prepare_environment(tmp_path))

    assert result.exit_code == 0, result.stdout
    assert "NOT enforced" in result.stdout
    record = json.loads(
        (tmp_path / "logs" / "operations.jsonl").read_text(encoding="utf-8").splitlines()[-1]
    )
    assert record["result"]["status"] == "warning"


def test_config_error_exits_nonzero(tmp_path: Path, fake_host: FakeIdentity) -> None:
    """A malformed config file is reported before any prompt."""
    env = _prepare_environment(tmp_path)
    config_path = Path(env["ONBOARDCTL_CONFIG_FILE"])
    config_path.parent.mkdir(parents=True)
    config_path.write_text("surprise: true\n", encoding="utf-8")

    result = runner.invoke(app, input=LUCIA_INPUT, env=env)

    assert result.exit_code == 1
    assert "Configuration error" in result.stdout
    assert "Username" not in result.stdout
    assert fake_host.calls == []


@pytest.mark.parametrize("shape", ["not-utf8", "directory"])
def test_unreadable_config_is_reported(
    tmp_path: Path, fake_host: FakeIdentity, shape: str
) -> None:
    """Unreadable config files end in an [ERROR] line, not a traceback."""
    env = _prepare_environment(tmp_path)
    config_path = Path(env["ONBOARDCTL_CONFIG_FILE"])
    if shape == "directory":
        config_path.mkdir(parents=True)
    else:
        config_path.parent.mkdir(parents=True)
        config_path.write_bytes(b"shell: \xff\xfe\n")

    result = runner.invoke(app, input=LUCIA_INPUT, env=env)

    assert result.exit_code == 1
    assert result.exception is None or isinstance(result.exception, SystemExit)
    assert "[ERROR] Configuration error" in result.stdout
    assert fake_host.calls == []
