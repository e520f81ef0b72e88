"""
Configuration management using Pydantic Settings.

Loads client settings from environment variables (TALLY_*) and an optional
.env file, with an optional YAML file for deployments that keep settings
next to other service configuration.

The protocol core (envelope builder, formula encoder, transport, extractor)
never reads this module. Values are passed in by the caller, which is
normally TallyClient.
"""

from pathlib import Path
from typing import Optional, Union
import yaml
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from tally_xml_client.validators import validate_dialect_name


class TallyConfig(BaseSettings):
    """
    Connection and query settings for a Tally instance.

    Environment Variables (from .env):
        TALLY_HOST: Host running Tally with the HTTP server enabled
        TALLY_PORT: Tally HTTP server port (tally.ini ServerPort)
        TALLY_TIMEOUT_SECONDS: Per-request timeout
        TALLY_FILTER_DIALECT: Formula dialect for "contains" filters
        TALLY_COMPANY_NAME: Company to select via SVCURRENTCOMPANY
        TALLY_PREVIEW_LIMIT: Default cap on extracted records

    Example:
        >>> config = TallyConfig(host="192.168.1.20", port=9000)
        >>> config.endpoint
        'http://192.168.1.20:9000'
    """

    host: str = Field(
        default="localhost",
        description="Host running Tally with the HTTP server enabled"
    )

    port: int = Field(
        default=9000,
        ge=1,
        le=65535,
        description="Tally HTTP server port"
    )

    timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Timeout for a single request/response cycle"
    )

    filter_dialect: str = Field(
        default="infix_contains",
        description="Formula dialect used for Contains filters"
    )

    company_name: Optional[str] = Field(
        default=None,
        description="Current company context (SVCURRENTCOMPANY); None uses Tally's active company"
    )

    preview_limit: int = Field(
        default=3,
        ge=0,
        description="Default number of records extracted when the caller gives no limit"
    )

    model_config = SettingsConfigDict(
        env_prefix='TALLY_',
        env_file='.env',
        env_file_encoding='utf-8',
        case_sensitive=False,
        extra='ignore'
    )

    @field_validator('filter_dialect')
    @classmethod
    def validate_filter_dialect(cls, v: str) -> str:
        """Reject dialect names with no registered strategy."""
        return validate_dialect_name(v)

    @property
    def endpoint(self) -> str:
        """Construct the HTTP endpoint URL from host and port."""
        return f"http://{self.host}:{self.port}"


def load_config(path: Union[str, Path]) -> TallyConfig:
    """
    Load configuration from a YAML file.

    Keys in the file override environment values. Unknown keys are ignored.

    Args:
        path: Path to a YAML mapping, e.g. config/tally.yaml

    Returns:
        TallyConfig instance

    Raises:
        FileNotFoundError: If the file does not exist
        ValueError: If the file does not contain a mapping

    Example:
        >>> config = load_config('config/tally.yaml')
        >>> config.port
        9000
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found at {config_path}")

    with open(config_path, 'r', encoding='utf-8') as f:
        data = yaml.safe_load(f) or {}

    if not isinstance(data, dict):
        raise ValueError(
            f"Config file {config_path} must contain a mapping, "
            f"got {type(data).__name__}"
        )

    return TallyConfig(**data)


# Singleton pattern - loaded once, cached forever
_config: Optional[TallyConfig] = None


def get_config() -> TallyConfig:
    """
    Get global config instance (lazy-loaded singleton).

    Returns:
        Singleton TallyConfig instance

    Example:
        >>> config = get_config()
        >>> config2 = get_config()
        >>> config is config2
        True
    """
    global _config
    if _config is None:
        _config = TallyConfig()
    return _config


def reset_config() -> None:
    """Drop the cached singleton so the next get_config() re-reads the environment."""
    global _config
    _config = None
