"""
==============================================================================
Application Settings Module
==============================================================================

Configuration management for the scan engine using Pydantic Settings.

This module implements the Singleton pattern to ensure a single global
configuration instance throughout the application lifecycle.

Features:
---------
- Environment variable loading with type validation
- .env file support for local development
- Scanner preferences (camera, torch, barcode formats, quantity type)
- Engine limits (infinite loop threshold, repeat debounce window)

Configuration Priority (highest to lowest):
------------------------------------------
1. Environment variables
2. .env file
3. Default values

==============================================================================
"""

from __future__ import annotations

import json
import logging
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


# Module logger
logger = logging.getLogger(__name__)


DEFAULT_BARCODE_FORMATS = [
    {"name": "QR_CODE", "enabled": True},
    {"name": "DATA_MATRIX", "enabled": True},
    {"name": "UPC_E", "enabled": True},
    {"name": "UPC_A", "enabled": True},
    {"name": "EAN_8", "enabled": True},
    {"name": "EAN_13", "enabled": True},
    {"name": "CODE_128", "enabled": True},
    {"name": "CODE_39", "enabled": True},
    {"name": "CODE_32", "enabled": False},
    {"name": "CODE_93", "enabled": True},
    {"name": "CODABAR", "enabled": True},
    {"name": "ITF", "enabled": True},
    {"name": "RSS14", "enabled": True},
    {"name": "RSS_EXPANDED", "enabled": True},
    {"name": "PDF_417", "enabled": True},
    {"name": "AZTEC", "enabled": True},
    {"name": "MSI", "enabled": True},
]


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Attributes:
        app_name: Display name for the application
        app_env: Environment mode (development/staging/production)
        debug: Enable debug mode for verbose logging
        host: Server bind address
        port: Server port number
        cors_origins: Allowed CORS origins (JSON array string)
        profiles_file: Path to the output profiles JSON file
        device_name: Name injected as the deviceName variable
        quantity_type: Input type of the quantity prompt (number/text)
        continue_mode_timeout: Add-more countdown in seconds (0 = none)
        prefer_front_camera: Ask the barcode source for the front camera
        torch_on: Ask the barcode source to turn the torch on
        enable_limit_barcode_formats: Restrict acquisition to enabled formats
        barcode_formats: Barcode formats with enabled flags (JSON array string)
        continuous_mode_supported: Barcode source can stream autonomously
        default_acquisition_label: Scanner prompt for unlabeled barcode blocks
        infinite_loop_threshold: Identical passes before asking the user
        repeat_reset_seconds: Idle window that resets the repeat counter

    Example:
        >>> settings = Settings()
        >>> print(settings.infinite_loop_threshold)
        30
    """

    # =========================================================================
    # PYDANTIC SETTINGS CONFIGURATION
    # =========================================================================
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="SCANFLOW_",
        case_sensitive=False,
        extra="ignore",
        validate_default=True,
    )

    # =========================================================================
    # APPLICATION SETTINGS
    # =========================================================================
    app_name: str = Field(
        default="Scanflow Engine",
        description="Display name for the application"
    )

    app_env: str = Field(
        default="development",
        description="Environment mode: development, staging, production"
    )

    debug: bool = Field(
        default=False,
        description="Enable debug mode for verbose logging"
    )

    # =========================================================================
    # SERVER SETTINGS
    # =========================================================================
    host: str = Field(
        default="0.0.0.0",
        description="Server bind address"
    )

    port: int = Field(
        default=8000,
        ge=1,
        le=65535,
        description="Server port number"
    )

    cors_origins: str = Field(
        default='["*"]',
        description="Allowed CORS origins as JSON array string"
    )

    # =========================================================================
    # PROFILE SETTINGS
    # =========================================================================
    profiles_file: str = Field(
        default="data/output_profiles.json",
        description="Path to the output profiles JSON file"
    )

    # =========================================================================
    # SCANNER PREFERENCES
    # =========================================================================
    device_name: str = Field(
        default="scanner",
        description="Name injected as the deviceName variable"
    )

    quantity_type: str = Field(
        default="number",
        description="Quantity prompt input type: number or text"
    )

    continue_mode_timeout: int = Field(
        default=0,
        ge=0,
        le=3600,
        description="Add-more countdown in seconds, 0 disables the timeout"
    )

    prefer_front_camera: bool = Field(default=False)

    torch_on: bool = Field(default=False)

    enable_limit_barcode_formats: bool = Field(
        default=False,
        description="Restrict acquisition to the enabled barcode formats"
    )

    barcode_formats: str = Field(
        default=json.dumps(DEFAULT_BARCODE_FORMATS),
        description="Barcode formats as JSON array of {name, enabled}"
    )

    continuous_mode_supported: bool = Field(
        default=True,
        description="Barcode source can stream barcodes autonomously"
    )

    default_acquisition_label: str = Field(
        default="Place a barcode inside the scan area",
        description="Scanner prompt used when a barcode block has no label"
    )

    # =========================================================================
    # ENGINE LIMITS
    # =========================================================================
    infinite_loop_threshold: int = Field(
        default=30,
        ge=1,
        description="Identical consecutive passes tolerated before asking"
    )

    repeat_reset_seconds: float = Field(
        default=0.5,
        gt=0,
        description="Idle window that resets the repeat counter"
    )

    # =========================================================================
    # VALIDATORS
    # =========================================================================
    @field_validator("app_env")
    @classmethod
    def validate_app_env(cls, value: str) -> str:
        """
        Validate and normalize application environment.

        Args:
            value: Raw environment value

        Returns:
            Lowercase normalized environment name
        """
        valid_envs = {"development", "staging", "production"}
        normalized = value.lower().strip()

        if normalized not in valid_envs:
            logger.warning(
                f"Unknown environment '{value}', defaulting to 'development'"
            )
            return "development"

        return normalized

    @field_validator("quantity_type")
    @classmethod
    def validate_quantity_type(cls, value: str) -> str:
        """
        Validate the quantity prompt input type.

        Raises:
            ValueError: If the type is neither number nor text
        """
        normalized = value.lower().strip()
        if normalized not in {"number", "text"}:
            raise ValueError(
                f"Unsupported quantity type: {value}. Supported: number, text"
            )
        return normalized

    # =========================================================================
    # COMPUTED PROPERTIES
    # =========================================================================
    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.app_env == "production"

    @property
    def profiles_path(self) -> Path:
        """Get profiles file as Path object."""
        return Path(self.profiles_file)

    @property
    def cors_origins_list(self) -> List[str]:
        """
        Parse CORS origins from JSON string to list.

        Returns:
            List of allowed origin strings
        """
        try:
            origins = json.loads(self.cors_origins)
            if isinstance(origins, list):
                return origins
            return ["*"]
        except json.JSONDecodeError:
            logger.warning(
                f"Invalid CORS origins JSON: {self.cors_origins}, "
                "defaulting to ['*']"
            )
            return ["*"]

    @property
    def barcode_formats_list(self) -> List[Dict[str, Any]]:
        """
        Parse barcode formats from JSON string.

        Returns:
            List of {name, enabled} dictionaries
        """
        try:
            formats = json.loads(self.barcode_formats)
            if isinstance(formats, list):
                return [f for f in formats if isinstance(f, dict) and "name" in f]
        except json.JSONDecodeError:
            logger.warning("Invalid barcode formats JSON, using defaults")
        return list(DEFAULT_BARCODE_FORMATS)

    def __repr__(self) -> str:
        """String representation for debugging."""
        return (
            f"Settings(app_name={self.app_name!r}, "
            f"app_env={self.app_env!r}, "
            f"debug={self.debug})"
        )


# =============================================================================
# SINGLETON INSTANCE MANAGEMENT
# =============================================================================

@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Get the global Settings instance (singleton pattern).

    Returns:
        Global Settings instance
    """
    settings = Settings()

    if settings.debug:
        logger.info(f"Configuration loaded: {settings}")

    return settings
