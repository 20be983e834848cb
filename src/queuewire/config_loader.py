"""Load SyncConfig from queuewire.yaml if present.

Merges file config with CLI kwargs. CLI overrides file.
"""

from __future__ import annotations

import tomllib
from pathlib import Path

import yaml

from queuewire._errors import ConfigError
from queuewire.config import SyncConfig

_KNOWN_KEYS = frozenset({
    "api_url", "reconnect_delay", "request_timeout", "history_limit",
    "token_path", "verbose", "max_events",
})


def load_config(root: Path, **overrides: object) -> SyncConfig:
    """Load SyncConfig from root, optionally merging queuewire.yaml.

    Looks for queuewire.yaml, queuewire.yml, or queuewire.toml in root. If
    found, loads and merges with overrides. Overrides set to ``None`` are
    ignored so unset CLI flags do not mask file values.
    """
    file_config = _read_config_file(root)
    merged = {**file_config, **{k: v for k, v in overrides.items() if v is not None}}
    if "token_path" in merged:
        token_path = Path(str(merged["token_path"]))
        merged["token_path"] = token_path if token_path.is_absolute() else root / token_path
    return SyncConfig(**merged)


def _read_config_file(root: Path) -> dict[str, object]:
    """Read config from yaml/toml if present. Returns empty dict otherwise."""
    for name in ("queuewire.yaml", "queuewire.yml"):
        path = root / name
        if path.is_file():
            return _parse_yaml(path)
    toml_path = root / "queuewire.toml"
    if toml_path.is_file():
        return _parse_toml(toml_path)
    return {}


def _parse_yaml(path: Path) -> dict[str, object]:
    try:
        data = yaml.safe_load(path.read_text()) or {}
    except (OSError, yaml.YAMLError) as exc:
        msg = f"Cannot read {path.name}: {exc}"
        raise ConfigError(msg) from exc
    if not isinstance(data, dict):
        msg = f"{path.name} must contain a mapping"
        raise ConfigError(msg)
    return _flatten_section(data)


def _parse_toml(path: Path) -> dict[str, object]:
    try:
        data = tomllib.loads(path.read_text())
    except (OSError, tomllib.TOMLDecodeError) as exc:
        msg = f"Cannot read {path.name}: {exc}"
        raise ConfigError(msg) from exc
    return _flatten_section(data)


def _flatten_section(data: dict[str, object]) -> dict[str, object]:
    """Extract queuewire.* keys and known top-level keys into one mapping."""
    result: dict[str, object] = {}
    for k, v in data.items():
        if k in _KNOWN_KEYS:
            result[k] = v
    section = data.get("queuewire")
    if isinstance(section, dict):
        for k, v in section.items():
            if k in _KNOWN_KEYS:
                result[k] = v
    return result
