"""Application configuration from environment variables and CLI overrides."""

import ipaddress
import re
from pathlib import Path
from typing import List, Optional, Union

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_DURATION_PART = re.compile(r"(\d+(?:\.\d+)?)(ms|s|m|h)")
_DURATION_UNITS = {"ms": 0.001, "s": 1.0, "m": 60.0, "h": 3600.0}

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
LOG_FORMATS = ("text", "json")


def parse_duration(value: Union[str, int, float]) -> float:
    """Convert a duration to seconds.

    Accepts plain numbers (seconds) and Go-style strings such as ``500ms``,
    ``5s``, ``2m`` or ``1m30s``.

    Raises:
        ValueError: If the string is not a valid duration.
    """
    if isinstance(value, (int, float)):
        return float(value)

    text = value.strip().lower()
    if not text:
        raise ValueError("duration cannot be empty")

    try:
        return float(text)
    except ValueError:
        pass

    position = 0
    total = 0.0
    for match in _DURATION_PART.finditer(text):
        if match.start() != position:
            break
        total += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
        position = match.end()

    if position != len(text):
        raise ValueError(f"invalid duration: {value!r}")
    return total


class Settings(BaseSettings):
    """Pinger settings loaded from environment variables.

    Every field can be overridden with a ``NETPINGER_``-prefixed variable,
    from a ``.env`` file, or by keyword arguments built from the command line.
    """

    model_config = SettingsConfigDict(
        env_prefix="NETPINGER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",  # Ignore unknown environment variables
    )

    # Comma-separated IPv4 addresses, e.g. "192.168.1.1,8.8.8.8"
    targets: str

    @field_validator("targets")
    @classmethod
    def validate_targets(cls, v: str) -> str:
        """Validate and normalise the target list.

        Only IPv4 literals are accepted. Duplicates are collapsed, keeping the
        first occurrence.
        """
        seen: List[str] = []
        for entry in v.split(","):
            entry = entry.strip()
            if not entry:
                continue
            try:
                address = ipaddress.IPv4Address(entry)
            except ipaddress.AddressValueError:
                raise ValueError(f"invalid IPv4 address: {entry!r}")
            if str(address) not in seen:
                seen.append(str(address))

        if not seen:
            raise ValueError("at least one target address is required")
        return ",".join(seen)

    @property
    def target_list(self) -> List[str]:
        """Targets as a list of address strings."""
        return self.targets.split(",")

    # Probe timing (seconds)
    wait_timeout: float = 1.0     # Reply deadline for a single round
    pause_duration: float = 5.0   # Sleep between rounds

    @field_validator("wait_timeout", "pause_duration", "action_timeout", mode="before")
    @classmethod
    def validate_duration(cls, v):
        """Accept Go-style duration strings as well as seconds."""
        if isinstance(v, str):
            return parse_duration(v)
        return v

    @field_validator("wait_timeout", "action_timeout")
    @classmethod
    def validate_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("must be greater than zero")
        return v

    @field_validator("pause_duration")
    @classmethod
    def validate_not_negative(cls, v: float) -> float:
        if v < 0:
            raise ValueError("cannot be negative")
        return v

    # Per-host hysteresis
    alive_count: int = Field(3, ge=1, le=255)  # Consecutive replies before host is up
    dead_count: int = Field(3, ge=1, le=255)   # Consecutive timeouts before host is down

    # Group thresholds
    group_alive: Optional[int] = Field(None, ge=1)  # Defaults to number of targets
    group_dead: int = Field(0, ge=0)

    @property
    def group_alive_threshold(self) -> int:
        """Up hosts required to call the group alive."""
        if self.group_alive is None:
            return len(self.target_list)
        return self.group_alive

    @model_validator(mode="after")
    def validate_group_thresholds(self) -> "Settings":
        total = len(self.target_list)
        if self.group_alive is not None and self.group_alive > total:
            raise ValueError(
                f"group_alive ({self.group_alive}) exceeds the number of targets ({total})"
            )
        return self

    # Actions
    alive_cmd: Optional[str] = None   # Shell command run when the group becomes alive
    dead_cmd: Optional[str] = None    # Shell command run when the group becomes dead
    webhook_url: Optional[str] = None
    action_timeout: float = 60.0

    @property
    def webhook_configured(self) -> bool:
        """Check if webhook is configured."""
        return bool(self.webhook_url)

    # Transport
    privileged: bool = False  # Raw socket instead of unprivileged ICMP datagram socket

    # Logging
    log_level: str = "INFO"
    log_format: str = "text"  # "text" or "json"
    log_file: Optional[Path] = None

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in LOG_LEVELS:
            raise ValueError(f"log_level must be one of {', '.join(LOG_LEVELS)}")
        return level

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        fmt = v.lower()
        if fmt not in LOG_FORMATS:
            raise ValueError(f"log_format must be one of {', '.join(LOG_FORMATS)}")
        return fmt

    # Status web server
    web_enabled: bool = False
    web_host: str = "0.0.0.0"
    web_port: int = Field(8080, ge=1, le=65535)
