"""Configuration management for Bot Bridge using Pydantic.

This module provides type-safe configuration models for the destination
store, import behaviour, HTTP performance tuning and logging.
"""

import os
from pathlib import Path

import yaml
from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class PathConfig(BaseModel):
    """Configuration for file paths."""

    import_dir: str = Field(
        default="tmp/import",
        description="Working area where each import extracts its archive into a unique subdirectory",
    )


class TargetConfig(BaseModel):
    """Configuration for the destination resource store."""

    url: str = Field(..., description="Resource store base URL")
    token: str | None = Field(default=None, description="Optional bearer token")
    verify_ssl: bool = Field(default=True, description="Verify SSL certificates")
    timeout: int = Field(default=30, ge=1, le=1200, description="API request timeout in seconds")

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        """Validate and normalize URL."""
        if not v.startswith(("http://", "https://")):
            raise ValueError("URL must start with http:// or https://")
        return v.rstrip("/")

    @field_validator("token")
    @classmethod
    def validate_token(cls, v: str | None) -> str | None:
        """Treat a blank token as no token."""
        if v is not None and v.strip() == "":
            return None
        return v


class ImportConfig(BaseModel):
    """Behaviour of the import pipeline."""

    response_timeout: float = Field(
        default=60.0,
        gt=0,
        le=3600,
        description="Seconds the caller waits for an import outcome before receiving a timeout",
    )
    max_concurrent: int = Field(
        default=5,
        ge=1,
        le=30,
        description="Maximum concurrent leaf creations within one resource category",
    )
    keep_workdir: bool = Field(
        default=False, description="Keep the extracted archive after the import finishes"
    )
    strict_references: bool = Field(
        default=False,
        description=(
            "Fail a package whose body still contains unresolved leaf references after "
            "rewriting. Disabled by default: unresolved references are logged and passed through."
        ),
    )


class PerformanceConfig(BaseModel):
    """HTTP performance tuning configuration."""

    rate_limit: int = Field(default=20, ge=1, le=50, description="Requests per second limit")
    http_max_connections: int = Field(
        default=50,
        ge=1,
        le=200,
        description="Maximum number of connections in the connection pool",
    )
    http_max_keepalive_connections: int = Field(
        default=20,
        ge=1,
        le=100,
        description="Maximum number of keepalive connections",
    )


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = Field(
        default="WARNING",
        description="Console log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )
    file_level: str = Field(
        default="DEBUG",
        description="File log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )
    format: str = Field(default="json", description="Log format (json or console)")
    file: str | None = Field(default="logs/import.log", description="Log file path")

    log_payloads: bool = Field(
        default=False,
        description=(
            "Enable request/response payload logging at DEBUG level. "
            "WARNING: May log sensitive data (tokens will be redacted)."
        ),
    )
    max_payload_size: int = Field(
        default=10000,
        ge=100,
        le=1000000,
        description="Maximum payload size (characters) to log. Larger payloads will be truncated.",
    )

    @field_validator("level", "file_level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"Log level must be one of: {', '.join(valid_levels)}")
        return v_upper

    @field_validator("format")
    @classmethod
    def validate_format(cls, v: str) -> str:
        """Validate log format."""
        valid_formats = ["json", "console"]
        v_lower = v.lower()
        if v_lower not in valid_formats:
            raise ValueError(f"Log format must be one of: {', '.join(valid_formats)}")
        return v_lower


class MigrationConfig(BaseSettings):
    """Main Bot Bridge configuration."""

    model_config = SettingsConfigDict(
        env_prefix="BOT_BRIDGE_",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    target: TargetConfig = Field(..., description="Destination resource store")
    paths: PathConfig = Field(default_factory=PathConfig, description="Path configuration")
    # "import" is a keyword, hence the alias
    import_options: ImportConfig = Field(
        default_factory=ImportConfig, alias="import", description="Import configuration"
    )
    performance: PerformanceConfig = Field(
        default_factory=PerformanceConfig, description="Performance configuration"
    )
    logging: LoggingConfig = Field(
        default_factory=LoggingConfig, description="Logging configuration"
    )


def load_config_from_yaml(config_path: str | Path) -> MigrationConfig:
    """Load configuration from YAML file.

    Args:
        config_path: Path to YAML configuration file

    Returns:
        MigrationConfig: Loaded configuration

    Raises:
        FileNotFoundError: If config file doesn't exist
        ValueError: If config file is empty or references unset variables
    """
    config_path = Path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(config_path) as f:
        config_data = yaml.safe_load(f)

    if not config_data:
        raise ValueError(f"Empty configuration file: {config_path}")

    config_data = _expand_env_vars(config_data)

    return MigrationConfig(**config_data)


def _expand_env_vars(data):
    """Recursively expand ``${VAR_NAME}`` values from the environment."""
    if isinstance(data, dict):
        return {k: _expand_env_vars(v) for k, v in data.items()}
    elif isinstance(data, list):
        return [_expand_env_vars(item) for item in data]
    elif isinstance(data, str):
        if data.startswith("${") and data.endswith("}"):
            var_name = data[2:-1]
            env_value = os.environ.get(var_name)
            if env_value is None:
                raise ValueError(
                    f"Environment variable '{var_name}' not found. "
                    f"Please set it in your environment or .env file."
                )
            return env_value
        return data
    else:
        return data


def save_config_to_yaml(config: MigrationConfig, output_path: str | Path) -> None:
    """Save configuration to YAML file, with the token redacted.

    Args:
        config: Configuration to save
        output_path: Path to output YAML file
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    config_dict = config.model_dump(by_alias=True)
    if config_dict["target"].get("token"):
        config_dict["target"]["token"] = "[REDACTED]"

    with open(output_path, "w") as f:
        yaml.dump(config_dict, f, default_flow_style=False, sort_keys=False)
