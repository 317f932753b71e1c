"""Typer-powered command line entry point for ``onboardctl``.

A single command prompts for the new account's username, full name and
secondary group, then runs the provisioning workflow and prints a summary
containing the temporary password.
"""
from __future__ import annotations

import textwrap
from collections.abc import Sequence
from pathlib import Path
from typing import NoReturn

import typer
from rich.console import Console
from rich.table import Table
from rich.text import Text

from . import __version__
from .config import AppConfig, ConfigError, load_config
from .exit_codes import ExitCode
from .logging import OperationScope, StructuredLogger
from .providers import HostFilesystem, IdentityDirectory
from .provisioning import (
    DirectoryPlan,
    ProvisioningError,
    ProvisioningRequest,
    ProvisioningSummary,
    ProvisioningWorkflow,
    require_privileges,
)
from .provisioning.workflow import running_as_root
from .templates import TemplateEngine

console = Console()

_TAGS = {
    "start": ("[INFO]", "bold cyan"),
    "success": ("[OK]", "bold green"),
    "warning": ("[WARN]", "bold yellow"),
    "error": ("[ERROR]", "bold red"),
}

CONFIG_FILE_OPTION = typer.Option(
    None,
    "--config-file",
    dir_okay=False,
    help="Override the path to onboardctl's YAML config file.",
)
USERNAME_OPTION = typer.Option(
    None,
    "--username",
    "-u",
    help="Username for the new account (prompted when omitted).",
)
FULL_NAME_OPTION = typer.Option(
    None,
    "--full-name",
    "-n",
    help="Full name stored on the account (prompted when omitted).",
)
GROUP_OPTION = typer.Option(
    None,
    "--group",
    "-g",
    help="Secondary group to add the account to (prompted when omitted).",
)
JSON_OPTION = typer.Option(
    False,
    "--json",
    help="Emit the provisioning summary as JSON instead of a table.",
)


def _print_status(status: str, message: str) -> None:
    tag, style = _TAGS.get(status, ("[INFO]", "bold cyan"))
    console.print(Text.assemble((tag, style), " ", message))


class ConsoleRecorder:
    """Mirror workflow progress to the console and the operation log."""

    def __init__(self, op: OperationScope, *, quiet: bool = False) -> None:
        """Bind the recorder to *op*; suppress console output when *quiet*."""
        self._op = op
        self._quiet = quiet

    def record(self, step: str, status: str, message: str) -> None:
        """Handle a single workflow progress event."""
        if not self._quiet:
            _print_status(status, message)
        if status != "start":
            self._op.add_step(step, status=status, detail=message)


def _fatal(message: str) -> NoReturn:
    _print_status("error", message)
    raise typer.Exit(code=ExitCode.FAILURE)


def _command_error(
    op: OperationScope,
    message: str,
    *,
    rc: int = ExitCode.FAILURE,
    errors: Sequence[str] | None = None,
) -> NoReturn:
    """Emit a structured error and terminate the command."""
    _print_status("error", message)
    op.error(message, errors=list(errors or [message]), rc=rc)
    raise typer.Exit(code=rc)


def _prompt_value(value: str | None, label: str) -> str:
    if value is None:
        value = typer.prompt(label, default="", show_default=False)
    value = value.strip()
    if not value:
        _fatal(f"{label} is required.")
    return value


def _build_workflow(config: AppConfig) -> ProvisioningWorkflow:
    identity = IdentityDirectory(tools=config.tools, shell=config.shell)
    return ProvisioningWorkflow(
        identity=identity,
        filesystem=HostFilesystem(),
        templates=TemplateEngine.with_overrides(config.templates_dir),
        home_root=config.home_root,
        plan=DirectoryPlan.from_layout(config.layout),
        password_length=config.password.length,
        welcome_file=config.welcome_file,
        privilege_check=running_as_root,
    )


def _render_summary(summary: ProvisioningSummary) -> None:
    table = Table(title="Account provisioned", show_header=False)
    table.add_column("Field", style="bold")
    table.add_column("Value", overflow="fold")
    table.add_row("Username", summary.username)
    table.add_row("Full name", summary.full_name)
    table.add_row("Home", str(summary.home_path))
    table.add_row("Groups", summary.groups_display)
    table.add_row("Temporary password", summary.password)
    if summary.welcome_path is not None:
        table.add_row("Welcome file", str(summary.welcome_path))
    console.print(table)
    if summary.force_rotate:
        console.print("The user must change this password at first login.")
    else:
        _print_status("warning", "Password change at first login is NOT enforced.")


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"onboardctl {__version__}")
        raise typer.Exit(code=ExitCode.OK)


app = typer.Typer(
    add_completion=False,
    help=textwrap.dedent(
        """
        Onboard a new local user account.

        Creates the account and its groups, the standard home layout, a
        temporary password that must be changed at first login, and a welcome
        file. Must be run as root.
        """
    ).strip(),
)


@app.command()
def main(
    username: str | None = USERNAME_OPTION,
    full_name: str | None = FULL_NAME_OPTION,
    group: str | None = GROUP_OPTION,
    config_file: Path | None = CONFIG_FILE_OPTION,
    json_output: bool = JSON_OPTION,
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        help="Show the onboardctl version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """Provision a new local account interactively."""
    try:
        require_privileges(running_as_root)
    except ProvisioningError as exc:
        _fatal(str(exc))

    try:
        config = load_config(config_file=config_file)
    except ConfigError as exc:
        _fatal(f"Configuration error: {exc}")

    username = _prompt_value(username, "Username")
    full_name = _prompt_value(full_name, "Full name")
    group = _prompt_value(group, "Secondary group")

    request = ProvisioningRequest(
        username=username,
        full_name=full_name,
        secondary_group=group,
    )
    workflow = _build_workflow(config)
    logger = StructuredLogger(config.logs_dir)
    with logger.operation(
        "provision",
        args={"username": username, "full_name": full_name, "group": group},
        target={"kind": "account", "name": username},
    ) as op:
        recorder = ConsoleRecorder(op, quiet=json_output)
        try:
            summary = workflow.provision(request, recorder=recorder)
        except ProvisioningError as exc:
            _command_error(op, f"{exc.step}: {exc}")

        context = {
            "home": summary.home_path,
            "groups": list(summary.groups),
            "welcome_file": summary.welcome_path,
            "force_rotate": summary.force_rotate,
        }
        if summary.warnings:
            op.warning(
                "Account provisioned with warnings.",
                warnings=summary.warnings,
                changed=1,
                context=context,
            )
        else:
            op.success("Account provisioned.", changed=1, context=context)

    if json_output:
        console.print_json(data=summary.to_dict())
        return
    _render_summary(summary)


__all__ = ["app", "main"]
