"""Configuration loader for onboardctl.

Configuration values are merged from multiple sources, later sources winning:

1. Built-in defaults.
2. ``/etc/onboardctl/config.yml`` (or an override path).
3. Environment variables prefixed with ``ONBOARDCTL_``.

Environment keys use double underscores to express nesting, e.g.::

    export ONBOARDCTL_HOME_ROOT=/srv/home
    export ONBOARDCTL_PASSWORD__LENGTH=20

Values are coerced via PyYAML's ``safe_load`` so that booleans and numbers are
parsed naturally. The resulting configuration is exposed as immutable
``dataclasses`` for convenient access and type safety.
"""
from __future__ import annotations

import os
from collections.abc import Mapping, MutableMapping, Sequence
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import cast

try:  # PyYAML is a runtime dependency (declared in pyproject.toml).
    import yaml
except Exception as exc:  # pragma: no cover - import failure covered in tests
    raise RuntimeError(
        "PyYAML is required to load onboardctl configuration. Install with "
        "`pip install onboardctl` or ensure PyYAML>=6.0 is available."
    ) from exc


ENV_PREFIX = "ONBOARDCTL_"
CONFIG_ENV_VAR = f"{ENV_PREFIX}CONFIG_FILE"
RESERVED_ENV_KEYS = {CONFIG_ENV_VAR}

MIN_PASSWORD_LENGTH = 12


class ConfigError(RuntimeError):
    """Raised when configuration parsing fails."""


@dataclass(frozen=True)
class PasswordConfig:
    """Temporary password generation settings."""

    length: int = 16


@dataclass(frozen=True)
class LayoutEntry:
    """A directory created under each new home and the mode applied to it."""

    name: str
    mode: int


@dataclass(frozen=True)
class ToolsConfig:
    """Account-management binaries invoked by the identity adapter."""

    groupadd: str = "groupadd"
    useradd: str = "useradd"
    chpasswd: str = "chpasswd"
    chage: str = "chage"


@dataclass(frozen=True)
class AppConfig:
    """Resolved configuration values for onboardctl."""

    config_file: Path
    home_root: Path
    logs_dir: Path
    templates_dir: Path
    welcome_file: str
    shell: str
    password: PasswordConfig
    layout: tuple[LayoutEntry, ...]
    tools: ToolsConfig


DEFAULTS: dict[str, object] = {
    "config_file": "/etc/onboardctl/config.yml",
    "home_root": "/home",
    "logs_dir": "/var/log/onboardctl",
    "templates_dir": "/etc/onboardctl/templates",
    "welcome_file": "bienvenido.txt",
    "shell": "/bin/bash",
    "password": {
        "length": 16,
    },
    "layout": [
        {"name": "Documents", "mode": "0750"},
        {"name": "Projects", "mode": "0750"},
        {"name": "Private", "mode": "0700"},
    ],
    "tools": {
        "groupadd": "groupadd",
        "useradd": "useradd",
        "chpasswd": "chpasswd",
        "chage": "chage",
    },
}

ALLOWED_TOP_LEVEL_KEYS = set(DEFAULTS.keys())


def load_config(
    config_file: str | os.PathLike[str] | None = None,
    *,
    env: Mapping[str, str] | None = None,
) -> AppConfig:
    """Load and merge configuration sources into an :class:`AppConfig`."""
    merged: dict[str, object] = _deep_copy(DEFAULTS)
    resolved_env = dict(os.environ if env is None else env)

    config_default = _expect_str(merged["config_file"], "config_file")
    config_path = _determine_config_path(config_default, config_file, resolved_env)

    file_values = _load_yaml_file(config_path)
    if file_values:
        _deep_merge(merged, file_values)

    env_values = _build_env_overrides(resolved_env)
    if env_values:
        _deep_merge(merged, env_values)

    merged["config_file"] = str(config_path)

    _validate_structure(merged)

    return _build_app_config(merged)


def _determine_config_path(
    default_path: str,
    cli_override: str | os.PathLike[str] | None,
    env: Mapping[str, str],
) -> Path:
    if cli_override:
        return Path(cli_override)
    if CONFIG_ENV_VAR in env:
        return Path(env[CONFIG_ENV_VAR])
    return Path(default_path)


def _load_yaml_file(path: Path) -> dict[str, object]:
    if not path.exists():
        return {}
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise ConfigError(f"Failed to read config file {path}: {exc}") from exc
    try:
        data = yaml.safe_load(text) or {}
    except yaml.YAMLError as exc:  # pragma: no cover - PyYAML owns detailed error
        raise ConfigError(f"Failed to parse config file {path}: {exc}") from exc
    if not isinstance(data, Mapping):
        raise ConfigError(f"Config file {path} must contain a mapping at the top level.")
    return _as_dict(data, f"file:{path}")


def _validate_structure(raw: Mapping[str, object]) -> None:
    unknown_keys = set(raw.keys()) - ALLOWED_TOP_LEVEL_KEYS
    if unknown_keys:
        joined = ", ".join(sorted(unknown_keys))
        raise ConfigError(f"Unknown configuration keys: {joined}.")

    password = raw.get("password")
    if password is not None:
        password_map = _as_dict(password, "password")
        unknown = set(password_map.keys()) - {"length"}
        if unknown:
            joined = ", ".join(sorted(unknown))
            raise ConfigError(f"Unknown password configuration keys: {joined}.")

    tools = raw.get("tools")
    if tools is not None:
        tools_map = _as_dict(tools, "tools")
        unknown = set(tools_map.keys()) - {"groupadd", "useradd", "chpasswd", "chage"}
        if unknown:
            joined = ", ".join(sorted(unknown))
            raise ConfigError(f"Unknown tools configuration keys: {joined}.")

    layout = raw.get("layout")
    if layout is not None:
        for index, entry in enumerate(_as_sequence(layout, "layout")):
            mapping = _as_dict(entry, f"layout[{index}]")
            unknown = set(mapping.keys()) - {"name", "mode"}
            if unknown:
                joined = ", ".join(sorted(unknown))
                raise ConfigError(f"Unknown keys for layout[{index}]: {joined}.")


def _build_app_config(raw: Mapping[str, object]) -> AppConfig:
    welcome_file = _expect_segment(raw.get("welcome_file"), "welcome_file")
    shell = str(raw.get("shell") or "/bin/bash")

    password_mapping = _as_dict(raw.get("password"), "password")
    length = _expect_int(password_mapping.get("length"), "password.length", default=16)
    if length < MIN_PASSWORD_LENGTH:
        raise ConfigError(
            f"password.length must be at least {MIN_PASSWORD_LENGTH}. Got {length}."
        )

    tools_mapping = _as_dict(raw.get("tools"), "tools")
    tools = ToolsConfig(
        groupadd=_tool_path(tools_mapping, "groupadd"),
        useradd=_tool_path(tools_mapping, "useradd"),
        chpasswd=_tool_path(tools_mapping, "chpasswd"),
        chage=_tool_path(tools_mapping, "chage"),
    )

    return AppConfig(
        config_file=_to_path(raw.get("config_file")),
        home_root=_to_path(raw.get("home_root")),
        logs_dir=_to_path(raw.get("logs_dir")),
        templates_dir=_to_path(raw.get("templates_dir")),
        welcome_file=welcome_file,
        shell=shell,
        password=PasswordConfig(length=length),
        layout=_build_layout(raw.get("layout")),
        tools=tools,
    )


def _tool_path(mapping: Mapping[str, object], name: str) -> str:
    """Return the configured binary for *name*, falling back to the bare name."""
    value = mapping.get(name)
    if value is None:
        return name
    if not isinstance(value, str):
        raise ConfigError(f"tools.{name} must be a string. Got {type(value).__name__}.")
    return value.strip() or name


def _build_layout(value: object) -> tuple[LayoutEntry, ...]:
    entries: list[LayoutEntry] = []
    seen: set[str] = set()
    for index, entry in enumerate(_as_sequence(value, "layout")):
        mapping = _as_dict(entry, f"layout[{index}]")
        name = _expect_segment(mapping.get("name"), f"layout[{index}].name")
        if name in seen:
            raise ConfigError(f"Duplicate layout directory '{name}'.")
        seen.add(name)
        mode = _parse_permission_mode(mapping.get("mode", "0750"), f"layout[{index}].mode")
        entries.append(LayoutEntry(name=name, mode=mode))
    if not entries:
        raise ConfigError("layout must list at least one directory.")
    return tuple(entries)


def _build_env_overrides(env: Mapping[str, str]) -> dict[str, object]:
    overrides: dict[str, object] = {}
    for key, value in env.items():
        if key in RESERVED_ENV_KEYS:
            continue
        if not key.startswith(ENV_PREFIX):
            continue
        suffix = key[len(ENV_PREFIX) :]
        path_segments = [segment.lower() for segment in suffix.split("__") if segment]
        if not path_segments:
            continue
        _assign_nested(overrides, path_segments, _coerce_value(value))
    return overrides


def _assign_nested(tree: MutableMapping[str, object], path: list[str], value: object) -> None:
    current: MutableMapping[str, object] = tree
    for segment in path[:-1]:
        existing = current.get(segment)
        if existing is None:
            new_child: MutableMapping[str, object] = {}
            current[segment] = new_child
            current = new_child
            continue
        if isinstance(existing, MutableMapping):
            current = cast(MutableMapping[str, object], existing)
            continue
        raise ConfigError(
            "Environment overrides conflict with existing scalar value at "
            f"{'.'.join(path)}"
        )
    current[path[-1]] = value


def _deep_merge(target: MutableMapping[str, object], overrides: Mapping[str, object]) -> None:
    for key, value in overrides.items():
        existing = target.get(key)
        if isinstance(existing, MutableMapping) and isinstance(value, Mapping):
            _deep_merge(existing, _as_dict(value, f"merge.{key}"))
            continue
        target[key] = value


def _deep_copy(source: Mapping[str, object]) -> dict[str, object]:
    result: dict[str, object] = {}
    for key, value in source.items():
        if isinstance(value, Mapping):
            result[key] = _deep_copy(_as_dict(value, f"copy.{key}"))
        elif isinstance(value, list):
            result[key] = [
                _deep_copy(_as_dict(item, f"copy.{key}")) if isinstance(item, Mapping) else item
                for item in value
            ]
        else:
            result[key] = value
    return result


def _as_sequence(value: object, label: str) -> Sequence[object]:
    if isinstance(value, (str, bytes)):
        raise ConfigError(f"Expected {label} to be a sequence. Got {type(value).__name__}.")
    if not isinstance(value, Sequence):
        raise ConfigError(f"Expected {label} to be a sequence. Got {type(value).__name__}.")
    return value


def _parse_permission_mode(value: object, label: str) -> int:
    if value is None:
        raise ConfigError(f"{label} must be specified.")
    if isinstance(value, bool):
        raise ConfigError(f"{label} must be an octal integer string. Got boolean {value!r}.")
    if isinstance(value, int):
        mode = value
    elif isinstance(value, str):
        text = value.strip().lower()
        if not text:
            raise ConfigError(f"{label} must be an octal integer string.")
        if text.startswith("0o"):
            text = text[2:]
        try:
            mode = int(text, 8)
        except ValueError as exc:
            raise ConfigError(f"{label} must be an octal integer string.") from exc
    else:
        raise ConfigError(f"{label} must be an octal integer or string.")
    if mode < 0 or mode > 0o777:
        raise ConfigError(f"{label} must be between 0000 and 0777 inclusive.")
    return mode


def _expect_segment(value: object, label: str) -> str:
    """Return *value* as a single relative path component."""
    if not isinstance(value, str) or not value.strip():
        raise ConfigError(f"{label} must be a non-empty string.")
    text = value.strip()
    parts = PurePosixPath(text).parts
    if len(parts) != 1 or parts[0] in {".", "..", "/"}:
        raise ConfigError(f"{label} must be a single relative path segment. Got {text!r}.")
    return text


def _coerce_value(raw: str) -> object:
    raw = raw.strip()
    try:
        parsed = yaml.safe_load(raw)
    except yaml.YAMLError:  # pragma: no cover - treat as string if parsing fails
        return raw
    return parsed


def _to_path(value: object) -> Path:
    if value is None:
        raise ConfigError("Expected a filesystem path, received None.")
    if isinstance(value, Path):
        return value.expanduser()
    if isinstance(value, str):
        return Path(value).expanduser()
    raise ConfigError(f"Cannot convert value {value!r} to Path.")


def _expect_int(value: object | None, label: str, *, default: int) -> int:
    if value is None:
        return default
    if isinstance(value, bool):
        raise ConfigError(f"Expected {label} to be an integer. Got boolean {value!r}.")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value, 0)
        except ValueError as exc:
            raise ConfigError(f"Invalid integer for {label}: {value!r}.") from exc
    raise ConfigError(f"Expected {label} to be an integer. Got {type(value).__name__}.")


def _expect_str(value: object, key: str) -> str:
    if isinstance(value, str):
        return value
    raise ConfigError(f"Expected {key} to resolve to a string. Got {value!r}.")


def _as_dict(value: object | None, label: str) -> dict[str, object]:
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise ConfigError(f"Expected {label} to be a mapping. Got {type(value).__name__}.")
    result: dict[str, object] = {}
    for key, item in value.items():
        if not isinstance(key, str):
            raise ConfigError(f"Mapping {label} must use string keys. Got {key!r}.")
        result[key] = item
    return result


__all__ = [
    "AppConfig",
    "ConfigError",
    "LayoutEntry",
    "MIN_PASSWORD_LENGTH",
    "PasswordConfig",
    "ToolsConfig",
    "load_config",
]
