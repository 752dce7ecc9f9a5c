"""Configuration loading for the RCON client."""

from __future__ import annotations

import tomllib
from dataclasses import dataclass
from pathlib import Path

CONFIG_DIR = Path.home() / ".config" / "srcon"
CONFIG_FILE = CONFIG_DIR / "config.toml"
HISTORY_FILE = CONFIG_DIR / "history"

DEFAULT_PORT = 27015


@dataclass(frozen=True)
class ServerConfig:
    """Connection settings for a single server."""

    name: str
    host: str
    port: int = DEFAULT_PORT
    password: str | None = None


@dataclass(frozen=True)
class AppConfig:
    """Top-level application configuration."""

    default_server: str | None
    servers: dict[str, ServerConfig]
    interactive: bool = True


def load_config(path: Path = CONFIG_FILE) -> AppConfig:
    """Load and parse the configuration file.

    Returns hardcoded defaults if no config file exists.
    """
    if not path.exists():
        return _default_config()

    with path.open("rb") as f:
        raw = tomllib.load(f)

    defaults = raw.get("defaults", {})

    servers: dict[str, ServerConfig] = {}
    for key, val in raw.get("servers", {}).items():
        servers[key] = ServerConfig(
            name=val.get("name", key),
            host=val["host"],
            port=val.get("port", DEFAULT_PORT),
            password=val.get("password"),
        )

    return AppConfig(
        default_server=defaults.get("server"),
        servers=servers,
        interactive=defaults.get("interactive", True),
    )


def _default_config() -> AppConfig:
    """Return the hardcoded default configuration."""
    return AppConfig(
        default_server="local",
        servers={
            "local": ServerConfig(name="Local server", host="127.0.0.1"),
        },
    )


def ensure_config_dir() -> None:
    """Create the config directory if it does not exist."""
    CONFIG_DIR.mkdir(parents=True, exist_ok=True)
