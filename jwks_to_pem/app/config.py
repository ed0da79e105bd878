"""
Configuration for jwks-to-pem.

Values come from (highest priority first) command line flags, ``JWKS_*``
environment variables, a ``.env`` file and the defaults below.
"""

from typing import Any, Dict, List

from pydantic import Field, ValidationError, field_validator, model_validator
from pydantic_settings import SettingsConfigDict

from shared.config import BaseConfig, parse_duration
from shared.errors import ConfigError
from .reload.signals import parse_signal

DEFAULT_PATTERN = "{{ key_id }}.pem"


class JwksToPemConfig(BaseConfig):
    """Settings for fetching, writing and reloading."""

    model_config = SettingsConfigDict(
        env_prefix="JWKS_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore"
    )

    # Source
    url: str = Field(default="")
    timeout: float = Field(default=5.0)
    fetch_attempts: int = Field(default=1, ge=1)

    # Output
    out: str = Field(default="")
    pattern: str = Field(default=DEFAULT_PATTERN)
    file_mode: int = Field(default=0o644)

    # Reload
    reload_url: str = Field(default="")
    reload_method: str = Field(default="POST")
    reload_pid: int = Field(default=0, ge=0)
    reload_pidfile: str = Field(default="")
    reload_signal: str = Field(default="HUP")
    reload_socket: str = Field(default="")
    reload_payload: str = Field(default="")

    # Scheduling
    schedule: str = Field(default="")
    run_on_start: bool = Field(default=False)

    @field_validator("timeout", mode="before")
    @classmethod
    def _parse_timeout(cls, value: Any) -> float:
        seconds = parse_duration(value)
        if seconds <= 0:
            raise ValueError("timeout must be positive")
        return seconds

    @field_validator("file_mode", mode="before")
    @classmethod
    def _parse_file_mode(cls, value: Any) -> int:
        if isinstance(value, str):
            text = value.strip().lower()
            if text.startswith("0o"):
                text = text[2:]
            value = int(text, 8)
        if not 0 <= value <= 0o777:
            raise ValueError(f"invalid file mode: {oct(value)}")
        return value

    @field_validator("reload_method", mode="before")
    @classmethod
    def _normalize_method(cls, value: Any) -> str:
        return str(value).strip().upper()

    @field_validator("reload_signal")
    @classmethod
    def _check_signal(cls, value: str) -> str:
        try:
            parse_signal(value)
        except ConfigError as e:
            raise ValueError(e.message) from None
        return value

    @model_validator(mode="after")
    def _check_reload_targets(self) -> "JwksToPemConfig":
        if not self.url:
            raise ValueError("a JWKS URL is required (--url or JWKS_URL)")

        if self.reload_pid and self.reload_pidfile:
            raise ValueError("reload.pid and reload.pidfile cannot be used together")

        targets = self.reload_targets()
        if len(targets) > 1:
            raise ValueError(f"only one reload target may be set, got: {', '.join(targets)}")

        return self

    def reload_targets(self) -> List[str]:
        """Names of the reload targets that are configured."""
        targets = []
        if self.reload_url:
            targets.append("url")
        if self.reload_pid or self.reload_pidfile:
            targets.append("process")
        if self.reload_socket:
            targets.append("socket")
        return targets


def load_config(**overrides: Any) -> JwksToPemConfig:
    """Build the configuration, with ``overrides`` taking priority over the environment."""
    values: Dict[str, Any] = {k: v for k, v in overrides.items() if v is not None}
    try:
        return JwksToPemConfig(**values)
    except ValidationError as e:
        problems = "; ".join(_describe(error) for error in e.errors())
        raise ConfigError(f"invalid configuration: {problems}") from e


def _describe(error: Dict[str, Any]) -> str:
    location = ".".join(str(part) for part in error.get("loc", ()))
    message = error.get("msg", "invalid value")
    if message.startswith("Value error, "):
        message = message[len("Value error, "):]
    return f"{location}: {message}" if location else message
