"""
sshm configuration.

Settings are read from ``SSHM_*`` environment variables via pydantic-settings
and exposed through a process-wide singleton. The CLI overrides individual
fields with ``configure_settings()`` before building the store handle.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_CONFIG_DIR = Path("~/.sshm")

CONFIG_FILENAME = "config.json"
CREDENTIALS_FILENAME = "credentials.json"
KEYS_DIRNAME = "keys"


class SSHMSettings(BaseSettings):
    """Runtime settings for sshm."""

    model_config = SettingsConfigDict(
        env_prefix="SSHM_",
        extra="ignore",
    )

    # Storage
    config_dir: Path = DEFAULT_CONFIG_DIR

    # External executables
    ssh_command: str = "ssh"
    password_relay_command: str = "sshpass"
    password_relay: Literal["auto", "always", "never"] = "auto"

    # Session
    max_secret_attempts: int = Field(default=1, ge=1, le=5)
    read_size: int = Field(default=4096, ge=256, le=65536)

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "WARNING"
    log_json: bool = False
    log_file: Path | None = None

    @field_validator("config_dir", "log_file")
    @classmethod
    def _expand_user(cls, value: Path | None) -> Path | None:
        if value is None:
            return None
        return value.expanduser()

    @field_validator("log_level", mode="before")
    @classmethod
    def _upper_level(cls, value: object) -> object:
        if isinstance(value, str):
            return value.upper()
        return value

    @property
    def config_file(self) -> Path:
        """Server-list document."""
        return self.config_dir / CONFIG_FILENAME

    @property
    def credentials_file(self) -> Path:
        """Secrets document."""
        return self.config_dir / CREDENTIALS_FILENAME

    @property
    def keys_dir(self) -> Path:
        """Directory holding regenerated key files."""
        return self.config_dir / KEYS_DIRNAME


_settings: SSHMSettings | None = None


def get_settings() -> SSHMSettings:
    """Return the process-wide settings, creating them on first use."""
    global _settings
    if _settings is None:
        _settings = SSHMSettings()
    return _settings


def configure_settings(**overrides: object) -> SSHMSettings:
    """Replace the singleton with settings built from ``overrides``.

    ``None`` values are dropped so CLI options that were not given fall
    back to the environment.
    """
    global _settings
    values = {k: v for k, v in overrides.items() if v is not None}
    _settings = SSHMSettings(**values)
    return _settings


def reset_settings() -> None:
    """Forget the singleton (used by tests)."""
    global _settings
    _settings = None


__all__ = [
    "SSHMSettings",
    "get_settings",
    "configure_settings",
    "reset_settings",
    "CONFIG_FILENAME",
    "CREDENTIALS_FILENAME",
    "KEYS_DIRNAME",
]
