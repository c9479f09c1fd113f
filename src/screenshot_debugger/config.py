"""
Screenshot Debugger Configuration
=================================

This module handles configuration loading for the screenshot debugger.

Configuration Sources (in order of precedence):
    1. Environment variables (highest priority)
    2. config.yaml file
    3. Default values (lowest priority)

Environment Variable Mapping:
    DEBUGGER_S3_BUCKET        -> storage.bucket
    AWS_S3_BUCKET             -> storage.bucket (fallback)
    AWS_DEFAULT_REGION        -> storage.region
    DEBUGGER_S3_ENDPOINT      -> storage.endpoint_url
    DEBUGGER_SIGNED_URL_TTL   -> storage.signed_url_expiry_seconds
    DEBUGGER_PREFETCH_AHEAD   -> storage.prefetch_ahead
    DEBUGGER_SHOW_BOXES       -> viewer.show_bounding_boxes
    DEBUGGER_PORT             -> server.port
    PORT                      -> server.port (takes precedence)
    DEBUGGER_LOG_LEVEL        -> logging.level
    DEBUGGER_LOG_FORMAT       -> logging.format

There is no module-level settings instance. Entry points call
``load_config()`` once and pass the result to the components they build.

Example:
    from screenshot_debugger.config import load_config, setup_logging

    settings = load_config()
    setup_logging(settings)
    print(settings.storage.bucket)
"""

import os
import logging
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field


logger = logging.getLogger(__name__)


_TRUTHY = {"1", "true", "yes", "on"}


# =============================================================================
# Configuration Models
# =============================================================================

class AppConfig(BaseModel):
    """Application identification configuration."""

    name: str = Field(default="screenshot-debugger", description="Application name")
    version: str = Field(default="v0.1.0", description="Application version")


class StorageConfig(BaseModel):
    """Object storage configuration for screenshot retrieval."""

    bucket: str = Field(default="", description="S3 bucket holding screenshots")
    region: str = Field(default="eu-west-1", description="AWS region of the bucket")
    endpoint_url: Optional[str] = Field(
        default=None,
        description="Custom S3-compatible endpoint (MinIO, localstack)",
    )
    key_prefix: str = Field(
        default="",
        description="Prefix prepended to screenshot keys that lack one",
    )
    signed_url_expiry_seconds: int = Field(
        default=3600,
        ge=1,
        le=604800,
        description="Lifetime of presigned GET URLs",
    )
    fetch_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        description="HTTP timeout when downloading a screenshot",
    )
    cache_size: int = Field(
        default=128,
        ge=0,
        description="Maximum screenshots held in the in-memory cache (0 = disabled)",
    )
    prefetch_ahead: int = Field(
        default=3,
        ge=0,
        description="Screenshots to prefetch after the selected one",
    )


class ViewerConfig(BaseModel):
    """Viewer presentation defaults."""

    show_bounding_boxes: bool = Field(
        default=False,
        description="Draw inference bounding boxes on screenshots",
    )
    highlight_discrepancies: bool = Field(
        default=True,
        description="Highlight frames with discrepancies on the timeline",
    )
    timeline_max_markers: int = Field(
        default=500,
        ge=10,
        description="Maximum markers drawn on the timeline strip",
    )


class ServerConfig(BaseModel):
    """Server configuration."""

    host: str = Field(default="0.0.0.0", description="Bind host")
    port: int = Field(default=8080, ge=1, le=65535, description="Bind port")


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = Field(default="INFO", description="Log level")
    format: str = Field(default="text", description="Log format: json or text")


class Settings(BaseModel):
    """
    Main settings class for the screenshot debugger.

    Loads configuration from YAML file and environment variables.
    Environment variables take precedence over file values.
    """

    app: AppConfig = Field(default_factory=AppConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    viewer: ViewerConfig = Field(default_factory=ViewerConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


# =============================================================================
# Configuration Loading
# =============================================================================

def load_config(config_path: Optional[str] = None) -> Settings:
    """
    Load configuration from YAML file and environment variables.

    Priority (highest to lowest):
        1. Environment variables
        2. YAML config file
        3. Default values

    Args:
        config_path: Path to config.yaml. If None, searches common locations.

    Returns:
        Settings: Loaded configuration
    """
    # Find config file
    if config_path is None:
        if env_path := os.environ.get("DEBUGGER_CONFIG"):
            config_path = env_path
        else:
            search_paths = [
                Path("config.yaml"),
                Path("config.yml"),
                Path(__file__).parent.parent.parent / "config.yaml",
            ]
            for path in search_paths:
                if path.exists():
                    config_path = str(path)
                    break

    # Load from YAML if exists
    config_data = {}
    if config_path and Path(config_path).exists():
        logger.info(f"Loading config from: {config_path}")
        with open(config_path, "r") as f:
            config_data = yaml.safe_load(f) or {}
    else:
        logger.warning("No config file found, using defaults and environment variables")

    # Apply environment variable overrides
    _apply_env_overrides(config_data)

    return Settings.model_validate(config_data)


def _apply_env_overrides(config_data: dict) -> None:
    """Apply environment variable overrides to config data."""

    # Storage settings
    if env_bucket := os.environ.get("DEBUGGER_S3_BUCKET"):
        config_data.setdefault("storage", {})["bucket"] = env_bucket
    elif env_bucket := os.environ.get("AWS_S3_BUCKET"):
        config_data.setdefault("storage", {})["bucket"] = env_bucket
    if env_region := os.environ.get("AWS_DEFAULT_REGION"):
        config_data.setdefault("storage", {})["region"] = env_region
    if env_endpoint := os.environ.get("DEBUGGER_S3_ENDPOINT"):
        config_data.setdefault("storage", {})["endpoint_url"] = env_endpoint
    if env_ttl := os.environ.get("DEBUGGER_SIGNED_URL_TTL"):
        config_data.setdefault("storage", {})["signed_url_expiry_seconds"] = int(env_ttl)
    if env_ahead := os.environ.get("DEBUGGER_PREFETCH_AHEAD"):
        config_data.setdefault("storage", {})["prefetch_ahead"] = int(env_ahead)

    # Viewer settings
    if env_boxes := os.environ.get("DEBUGGER_SHOW_BOXES"):
        config_data.setdefault("viewer", {})["show_bounding_boxes"] = env_boxes.lower() in _TRUTHY

    # Server settings (container platforms use PORT env var)
    if env_port := os.environ.get("PORT"):
        config_data.setdefault("server", {})["port"] = int(env_port)
    elif env_port := os.environ.get("DEBUGGER_PORT"):
        config_data.setdefault("server", {})["port"] = int(env_port)

    # Logging settings
    if env_log := os.environ.get("DEBUGGER_LOG_LEVEL"):
        config_data.setdefault("logging", {})["level"] = env_log
    if env_fmt := os.environ.get("DEBUGGER_LOG_FORMAT"):
        config_data.setdefault("logging", {})["format"] = env_fmt


def setup_logging(settings: Settings) -> None:
    """Configure logging based on settings."""
    log_level = getattr(logging, settings.logging.level.upper(), logging.INFO)

    if settings.logging.format == "json":
        log_format = '{"time": "%(asctime)s", "level": "%(levelname)s", "module": "%(name)s", "message": "%(message)s"}'
    else:
        log_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    logging.basicConfig(
        level=log_level,
        format=log_format,
        datefmt="%Y-%m-%dT%H:%M:%S",
    )
