"""Configuration handling for the fetch client."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict

import yaml


class ConfigError(ValueError):
    """Raised when configuration files are invalid or incomplete."""


@dataclass
class TransportSettings:
    """Transport configuration section."""

    timeout: float = 10.0
    user_agent: str = "resilient-fetch/0.1"
    headers: Dict[str, str] = field(default_factory=dict)


@dataclass
class Settings:
    """Container for all runtime settings."""

    transport: TransportSettings = field(default_factory=TransportSettings)


def _section(raw: Dict[str, Any], name: str) -> Dict[str, Any]:
    section = raw.get(name) or {}
    if not isinstance(section, dict):
        raise ConfigError(f"{name} section must be a mapping.")
    return section


def load_settings(path: str) -> Settings:
    """Load client settings from a YAML file."""
    raw = yaml.safe_load(_read_file(path)) or {}
    if not isinstance(raw, dict):
        raise ConfigError("Settings YAML must be a mapping/object.")

    transport_section = _section(raw, "transport")
    headers = transport_section.get("headers") or {}
    if not isinstance(headers, dict):
        raise ConfigError("transport.headers must be a mapping.")

    try:
        timeout = float(transport_section.get("timeout", TransportSettings().timeout))
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"transport.timeout must be a number: {exc}") from exc
    if timeout <= 0:
        raise ConfigError("transport.timeout must be positive.")

    transport_settings = TransportSettings(
        timeout=timeout,
        user_agent=str(transport_section.get("user_agent") or TransportSettings().user_agent),
        headers={str(key): str(value) for key, value in headers.items()},
    )
    return Settings(transport=transport_settings)


def _read_file(path: str) -> str:
    try:
        with open(path, "r", encoding="utf-8") as handle:
            return handle.read()
    except FileNotFoundError as exc:
        raise ConfigError(f"Configuration file not found: {path}") from exc
