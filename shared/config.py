"""
Shared configuration management for jwks-to-pem.
"""

import re
from typing import Any, Union

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_DURATION_PART = re.compile(r"(\d+(?:\.\d+)?)(ms|s|m|h)")
_DURATION_UNITS = {"ms": 0.001, "s": 1.0, "m": 60.0, "h": 3600.0}


def parse_duration(value: Union[str, int, float]) -> float:
    """Parse a duration such as ``5``, ``2.5``, ``500ms`` or ``1m30s`` into seconds."""
    if isinstance(value, bool):
        raise ValueError(f"invalid duration: {value!r}")
    if isinstance(value, (int, float)):
        return float(value)

    text = str(value).strip().lower()
    if not text:
        raise ValueError("empty duration")

    try:
        return float(text)
    except ValueError:
        pass

    total = 0.0
    position = 0
    for match in _DURATION_PART.finditer(text):
        if match.start() != position:
            break
        total += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
        position = match.end()

    if position != len(text):
        raise ValueError(f"invalid duration: {value!r}")

    return total


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore"
    )

    # Logging
    debug: bool = Field(default=False)
    log_format: str = Field(default="text")

    @field_validator("log_format", mode="before")
    @classmethod
    def _normalize_log_format(cls, value: Any) -> str:
        value = str(value).strip().lower()
        if value not in ("text", "json"):
            raise ValueError(f"unsupported log format: {value}")
        return value

    @property
    def log_level(self) -> str:
        return "debug" if self.debug else "info"
