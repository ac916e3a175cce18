"""Resolve settings from defaults, config files, environment variables and CLI flags."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

from .exceptions import ConfigError
from .models import Settings

logger = logging.getLogger(__name__)

CONFIG_DIR_NAME = "git-smart-branch-delete"
CONFIG_FILE_NAME = "config.json"
LOCAL_CONFIG_FILE_NAME = ".gsbdrc"

FALLBACK_PROTECTED = ("main", "master", "develop", "release")

DEFAULTS: dict[str, Any] = {
    "remote": False,
    "local_only": False,
    "dry_run": False,
    "yes": False,
    "force": False,
    "fetch": False,
    "pattern": None,
    "protected_branches": ["main", "master", "develop"],
    "default_remote": "origin",
    "cleanup_merged_days": None,
}

_BOOL_KEYS = frozenset({"remote", "local_only", "dry_run", "yes", "force", "fetch"})
_STRING_KEYS = frozenset({"pattern", "default_remote"})


@dataclass(frozen=True)
class ConfigResult:
    values: dict[str, Any]
    sources: dict[str, str] = field(default_factory=dict)


def global_config_path() -> Path:
    override = os.environ.get("GSBD_CONFIG")
    if override:
        return Path(override).expanduser()
    base = os.environ.get("XDG_CONFIG_HOME")
    root = Path(base).expanduser() if base else Path.home() / ".config"
    return root / CONFIG_DIR_NAME / CONFIG_FILE_NAME


def local_config_path(repo_root: Path) -> Path:
    return repo_root / LOCAL_CONFIG_FILE_NAME


def validate_config(data: Any, *, source: str) -> dict[str, Any]:
    """Type-check a mapping of config values; unknown keys are rejected."""

    if not isinstance(data, dict):
        raise ConfigError(f"{source}: configuration must be a JSON object.")
    errors: list[str] = []
    for key, value in data.items():
        if key not in DEFAULTS:
            errors.append(f"'{key}': unknown option")
        elif value is None:
            continue
        elif key in _BOOL_KEYS and not isinstance(value, bool):
            errors.append(f"'{key}': expected true or false")
        elif key in _STRING_KEYS and not isinstance(value, str):
            errors.append(f"'{key}': expected a string")
        elif key == "protected_branches" and (
            not isinstance(value, list) or not all(isinstance(item, str) for item in value)
        ):
            errors.append(f"'{key}': expected a list of strings")
        elif key == "cleanup_merged_days" and (
            isinstance(value, bool) or not isinstance(value, int) or value < 0
        ):
            errors.append(f"'{key}': expected an integer >= 0")
    if errors:
        details = "\n- ".join(errors)
        raise ConfigError(f"Configuration errors in {source}:\n- {details}")
    return dict(data)


def read_config_file(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    try:
        data = json.loads(path.read_text(encoding="utf-8") or "{}")
    except json.JSONDecodeError as exc:
        raise ConfigError(f"{path}: invalid JSON ({exc.msg} at line {exc.lineno}).") from exc
    except OSError as exc:
        raise ConfigError(f"{path}: {exc.strerror or exc}") from exc
    return validate_config(data, source=str(path))


def parse_protected(value: str | None) -> list[str] | None:
    if value is None:
        return None
    return [item.strip() for item in value.split(",") if item.strip()]


def env_overrides() -> dict[str, Any]:
    overrides: dict[str, Any] = {}
    protected = parse_protected(os.environ.get("GSBD_PROTECTED"))
    if protected:
        overrides["protected_branches"] = protected
    remote = os.environ.get("GSBD_DEFAULT_REMOTE", "").strip()
    if remote:
        overrides["default_remote"] = remote
    return overrides


def load_config(repo_root: Path | None = None, *, use_files: bool = True) -> ConfigResult:
    """Merge defaults, the global file, the repo-local file and env vars."""

    values = dict(DEFAULTS)
    sources = {key: "default" for key in DEFAULTS}
    layers: list[tuple[str, dict[str, Any]]] = []
    if use_files:
        layers.append(("global", read_config_file(global_config_path())))
        if repo_root is not None:
            layers.append(("local", read_config_file(local_config_path(repo_root))))
    layers.append(("env", env_overrides()))
    for name, layer in layers:
        for key, value in layer.items():
            if value is None:
                continue
            values[key] = value
            sources[key] = name
    logger.debug("Loaded configuration sources: %s", sources)
    return ConfigResult(values=values, sources=sources)


def resolve_settings(config: ConfigResult, overrides: Mapping[str, Any] | None = None) -> Settings:
    """Build the immutable settings for a session; CLI overrides that are None are ignored."""

    values = dict(config.values)
    for key, value in (overrides or {}).items():
        if key not in DEFAULTS:
            raise ConfigError(f"Unknown option: {key}")
        if value is not None:
            values[key] = value
    validate_config(values, source="options")

    protected = tuple(values["protected_branches"] or ()) or FALLBACK_PROTECTED
    return Settings(
        pattern=values["pattern"] or None,
        include_remote=bool(values["remote"]),
        local_only=bool(values["local_only"]),
        dry_run=bool(values["dry_run"]),
        skip_confirmation=bool(values["yes"]),
        force=bool(values["force"]),
        protected_branches=protected,
        default_remote=values["default_remote"] or "origin",
        cleanup_merged_days=values["cleanup_merged_days"],
        fetch=bool(values["fetch"]),
    )


def coerce_value(key: str, raw: str) -> Any:
    """Convert a command-line string into the typed value stored for ``key``."""

    if key not in DEFAULTS:
        raise ConfigError(f"Unknown option: {key}. Known options: {', '.join(sorted(DEFAULTS))}")
    if key in _BOOL_KEYS:
        normalized = raw.strip().lower()
        if normalized in {"true", "yes", "1", "on"}:
            return True
        if normalized in {"false", "no", "0", "off"}:
            return False
        raise ConfigError(f"'{key}' expects true or false, got {raw!r}.")
    if key == "cleanup_merged_days":
        try:
            days = int(raw)
        except ValueError as exc:
            raise ConfigError(f"'{key}' expects an integer >= 0, got {raw!r}.") from exc
        if days < 0:
            raise ConfigError(f"'{key}' expects an integer >= 0, got {raw!r}.")
        return days
    if key == "protected_branches":
        return parse_protected(raw) or []
    return raw


def write_global_config(values: Mapping[str, Any], path: Path | None = None) -> Path:
    target = path or global_config_path()
    validated = validate_config(dict(values), source=str(target))
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(json.dumps(validated, indent=2, sort_keys=True) + "\n", encoding="utf-8")
    return target


def set_global_value(key: str, raw: str, path: Path | None = None) -> Path:
    target = path or global_config_path()
    current = read_config_file(target)
    current[key] = coerce_value(key, raw)
    return write_global_config(current, target)


def unset_global_value(key: str, path: Path | None = None) -> Path:
    if key not in DEFAULTS:
        raise ConfigError(f"Unknown option: {key}")
    target = path or global_config_path()
    current = read_config_file(target)
    current.pop(key, None)
    return write_global_config(current, target)


def reset_global_config(path: Path | None = None) -> Path:
    return write_global_config({}, path)
