"""Run configuration, loaded from YAML and validated with pydantic.

Example ``ircts.yaml``:

    server:
      address: irc.example.org:6697
      tls: true
      reset-between-tests: false
    accounts:
      - username: alice
        password: hunter2
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .transport import parse_address


class ConfigError(Exception):
    """Configuration file missing, unreadable or invalid."""
    pass


class AccountConfig(BaseModel):
    """A single IRC user account (for SASL tests)."""

    username: str = Field(min_length=1)
    password: str = Field(min_length=1)


class ServerConfig(BaseModel):
    """The server under test."""

    model_config = ConfigDict(populate_by_name=True)

    address: str
    tls: bool = False
    password: Optional[str] = None
    reset_between_tests: bool = Field(default=False, alias="reset-between-tests")
    # Read/write deadline in seconds; None blocks forever
    timeout: Optional[float] = Field(default=None, gt=0)

    @field_validator("address")
    @classmethod
    def _check_address(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("server address must not be empty")
        parse_address(value)
        return value


class Config(BaseModel):
    server: ServerConfig
    accounts: list[AccountConfig] = Field(default_factory=list)

    @field_validator("accounts", mode="before")
    @classmethod
    def _null_accounts(cls, value):
        # A bare "accounts:" key loads as None
        return [] if value is None else value


def load_config(path: str | Path) -> Config:
    """Load and validate the given YAML configuration file.

    Raises:
        ConfigError: If the file cannot be read, parsed or validated
    """
    path = Path(path)
    try:
        with open(path) as f:
            raw = yaml.safe_load(f) or {}
    except OSError as e:
        raise ConfigError(f"Cannot read config file {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"Config file {path} is not valid YAML: {e}") from e

    if not isinstance(raw, dict):
        raise ConfigError(f"Config file {path} must contain a mapping at the top level")

    try:
        return Config.model_validate(raw)
    except ValidationError as e:
        raise ConfigError(f"Invalid config file {path}:\n{e}") from e
