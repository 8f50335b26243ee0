"""Configuration loading and Pydantic models for r2call."""

import os
import re
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from r2call.addressing import UrlStyle
from r2call.credentials import DEFAULT_USER_AGENT
from r2call.errors import ConfigurationError

ENV_ACCOUNT_ID = "CF_ACCOUNT_ID"
ENV_API_TOKEN = "CF_API_TOKEN"

# Profile names: start with a letter, end with a letter or digit,
# lowercase letters, digits, underscore and hyphen, 37 characters or less.
_PROFILE_NAME_RE = re.compile(r"^[a-z][a-z0-9_-]{0,36}$")
_ACCOUNT_ID_RE = re.compile(r"^(regex:.*|[0-9a-f]{32})$")
_API_TOKEN_RE = re.compile(r"^[^\s]{10,}$")


class ProfileConfig(BaseModel):
    """Cloudflare account credentials."""

    account_id: str
    api_token: str = Field(repr=False)
    default: bool = False

    @field_validator("account_id")
    @classmethod
    def _check_account_id(cls, value: str) -> str:
        if not _ACCOUNT_ID_RE.match(value):
            raise ValueError(f"Bad account_id: {value}")
        return value

    @field_validator("api_token")
    @classmethod
    def _check_api_token(cls, value: str) -> str:
        if not _API_TOKEN_RE.match(value):
            raise ValueError("Bad api_token")
        return value


class ClientConfig(BaseModel):
    """Request pipeline settings."""

    url_style: UrlStyle = UrlStyle.PATH
    unsigned_payload: bool = False
    user_agent: str = DEFAULT_USER_AGENT
    timeout: float | None = 60.0


class LoggingConfig(BaseModel):
    """Logging output settings."""

    level: str = "WARNING"
    format: str = "text"


class MetricsConfig(BaseModel):
    """Prometheus metrics settings."""

    enabled: bool = False


class R2CallConfig(BaseModel):
    """Top-level r2call configuration."""

    profiles: dict[str, ProfileConfig] = Field(default_factory=dict)
    client: ClientConfig = Field(default_factory=ClientConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    metrics: MetricsConfig = Field(default_factory=MetricsConfig)

    @field_validator("profiles")
    @classmethod
    def _check_profile_names(cls, value: dict[str, ProfileConfig]) -> dict[str, ProfileConfig]:
        for name in value:
            if not is_valid_profile_name(name):
                raise ValueError(f"Bad profile name: {name}")
        return value


def is_valid_profile_name(name: str) -> bool:
    """Whether ``name`` is usable as a profile name."""
    return bool(_PROFILE_NAME_RE.match(name)) and name[-1].isalnum()


def _describe(exc: ValidationError) -> str:
    """Summarize validation errors without echoing input values (tokens)."""
    return "; ".join(
        f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}" for err in exc.errors()
    )


def _check_section(name: str, value: Any) -> dict[str, Any]:
    """Ensure a YAML section is a mapping (or absent)."""
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ConfigurationError(
            f"Bad {name}: expected mapping, found {type(value).__name__}"
        )
    return value


def parse_config(raw: Any) -> R2CallConfig:
    """Validate an already-parsed YAML document.

    Raises:
        ConfigurationError: If the document has the wrong shape.
    """
    data = _check_section("config", raw)
    profiles = _check_section("profiles", data.get("profiles"))
    try:
        return R2CallConfig(
            profiles={
                name: ProfileConfig(**_check_section(f"profiles.{name}", profile))
                for name, profile in profiles.items()
            },
            client=_check_section("client", data.get("client")),
            logging=_check_section("logging", data.get("logging")),
            metrics=_check_section("metrics", data.get("metrics")),
        )
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid configuration: {_describe(exc)}") from exc


def load_config(path: Path) -> R2CallConfig:
    """Load an R2CallConfig from a YAML file.

    Args:
        path: Path to the YAML configuration file.

    Returns:
        A fully populated R2CallConfig validated by Pydantic.

    Raises:
        FileNotFoundError: If the config file does not exist.
        yaml.YAMLError: If the file is not valid YAML.
        ConfigurationError: If the YAML has the wrong shape.
    """
    with open(path, "r") as fh:
        raw = yaml.safe_load(fh) or {}
    return parse_config(raw)


def resolve_profile(
    config: R2CallConfig,
    name: str | None = None,
    env: Mapping[str, str] | None = None,
) -> ProfileConfig:
    """Pick the credentials for this invocation.

    Order: the named profile, then ``CF_ACCOUNT_ID``/``CF_API_TOKEN`` from
    the environment, then the profile flagged ``default``, then the only
    profile.

    Raises:
        ConfigurationError: If no profile can be chosen.
    """
    if name is not None:
        profile = config.profiles.get(name)
        if profile is None:
            raise ConfigurationError(f"Profile not found: {name}")
        return profile

    env = os.environ if env is None else env
    account_id = env.get(ENV_ACCOUNT_ID)
    api_token = env.get(ENV_API_TOKEN)
    if account_id and api_token:
        try:
            return ProfileConfig(account_id=account_id, api_token=api_token)
        except ValidationError as exc:
            raise ConfigurationError(
                f"Invalid credentials in environment: {_describe(exc)}"
            ) from exc

    defaults = [p for p in config.profiles.values() if p.default]
    if len(defaults) > 1:
        raise ConfigurationError("More than one profile is marked default")
    if defaults:
        return defaults[0]
    if len(config.profiles) == 1:
        return next(iter(config.profiles.values()))
    if not config.profiles:
        raise ConfigurationError(
            "No credentials found: add a profile or set CF_ACCOUNT_ID and CF_API_TOKEN"
        )
    raise ConfigurationError("Multiple profiles found: pass --profile or mark one default")
