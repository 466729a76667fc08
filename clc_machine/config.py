"""Driver configuration with pydantic-settings.

Every option can be passed as a keyword argument or read from an environment
variable prefixed with ``CENTURYLINKCLOUD_`` (``CENTURYLINKCLOUD_GROUP_ID``,
``CENTURYLINKCLOUD_MEMORYGB``, ...). The password is accepted but never
serialized.

Usage:
    from clc_machine.config import Settings

    settings = Settings(username="jdoe", server_name="demo", group_id="g1")
"""

from typing import Literal

from pydantic import AliasChoices, Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .constants import Defaults, Polling, Timeouts
from .errors import ConfigError
from .logging_config import setup_logging

ENV_PREFIX = "CENTURYLINKCLOUD_"


class Settings(BaseSettings):
    """CenturyLink Cloud driver settings."""

    model_config = SettingsConfigDict(
        env_prefix=ENV_PREFIX,
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # === Account ===

    username: str = Field(default="", description="CenturyLink Cloud username")
    password: SecretStr | None = Field(
        default=None,
        exclude=True,
        description="CenturyLink Cloud password (prompted for when missing)",
    )

    # === Server ===

    server_name: str = Field(default="", description="CenturyLink Cloud server name")
    group_id: str = Field(default="", description="CenturyLink Cloud group ID")
    source_server_id: str = Field(
        default=Defaults.SOURCE_SERVER_ID,
        description="CenturyLink Cloud source server (template) ID",
    )
    cpu: int = Field(default=Defaults.CPU, ge=1, description="CenturyLink Cloud CPU count")
    memory_gb: int = Field(
        default=Defaults.MEMORY_GB,
        ge=1,
        validation_alias=AliasChoices(f"{ENV_PREFIX}MEMORYGB", f"{ENV_PREFIX}MEMORY_GB"),
        description="CenturyLink Cloud memory in GB",
    )

    # === API and waits ===

    api_url: str = Field(default=Defaults.API_URL, description="CenturyLink Cloud API v2 base URL")
    status_wait_seconds: float = Field(
        default=Polling.STATUS_WAIT_SECONDS,
        gt=0,
        description="Delay between operation status polls",
    )
    operation_timeout: float = Field(
        default=Timeouts.OPERATION,
        gt=0,
        description="Maximum time to wait for a provider operation",
    )
    ssh_wait_timeout: float = Field(
        default=Timeouts.SSH_WAIT,
        gt=0,
        description="Maximum time to wait for the SSH port to open",
    )

    # === Logging ===

    log_format: Literal["json", "console"] = Field(
        default="console",
        validation_alias=AliasChoices("log_format", "LOG_FORMAT"),
        description="Log output format",
    )
    log_level: str = Field(
        default="INFO",
        validation_alias=AliasChoices("log_level", "LOG_LEVEL"),
        description="Log level (DEBUG, INFO, WARNING, ERROR)",
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Ensure log level is valid."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper_v = v.upper()
        if upper_v not in valid_levels:
            raise ValueError(f"Invalid log level: {v}. Must be one of {valid_levels}")
        return upper_v

    def secret(self) -> str | None:
        """Plain-text password, if one was supplied."""
        if self.password is None:
            return None
        return self.password.get_secret_value() or None

    def validate_for_create(self) -> None:
        """Raise ConfigError for the first required create option that is empty."""
        required = (
            ("username", "--centurylinkcloud-username"),
            ("server_name", "--centurylinkcloud-server-name"),
            ("group_id", "--centurylinkcloud-group-id"),
        )
        for field, option in required:
            if not getattr(self, field):
                raise ConfigError(f"centurylinkcloud driver requires the {option} option")

    def configure_logging(self, service_name: str | None = None) -> None:
        """Set up structlog with this configuration's format and level."""
        setup_logging(
            service_name=service_name,
            log_format=self.log_format,
            log_level=self.log_level,
        )
