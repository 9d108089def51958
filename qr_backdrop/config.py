"""
qr_backdrop.config
------------------

Centralized configuration management for QR Backdrop.

All configuration is loaded from environment variables with sensible defaults
for development. Embedding values are clamped into range here, before they
reach the verification loop.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass

from .core import (
    ERROR_CORRECTION_LEVELS,
    MAX_RELATIVE_SIZE,
    MIN_RELATIVE_SIZE,
    VALID_POSITIONS,
    Anchor,
    EmbedSpec,
)
from .pipeline import ESCALATION_SCHEDULE, MAX_ATTEMPTS

logger = logging.getLogger(__name__)


def _parse_bool(value: str) -> bool:
    """Parse boolean from environment variable string."""
    return value.lower() in ("true", "1", "yes", "on")


@dataclass(frozen=True)
class ServerConfig:
    """HTTP API server settings."""
    host: str = "0.0.0.0"
    port: int = 8000
    reload: bool = False
    log_level: str = "info"


@dataclass(frozen=True)
class ProviderConfig:
    """Background image provider settings."""
    unsplash_api_key: str | None = None
    image_width: int = 1920
    image_height: int = 1080
    timeout: float = 30.0
    user_agent: str = "QR-Backdrop/0.1"


@dataclass(frozen=True)
class EmbedConfig:
    """QR placement defaults and verification limits."""
    qr_size_ratio: float = 0.25
    position: str = "bottom-right"
    background_opacity: int = 230
    fill_color: str = "black"
    back_color: str = "white"
    max_validation_attempts: int = MAX_ATTEMPTS
    error_correction: str = "M"

    def to_spec(self) -> EmbedSpec:
        """Build the initial embedding spec, clamped into valid range."""
        return EmbedSpec(
            relative_size=self.qr_size_ratio,
            anchor=Anchor.parse(self.position),
            backing_opacity=self.background_opacity,
            fill_color=self.fill_color,
            back_color=self.back_color,
        ).clamped()


@dataclass
class AppConfig:
    """Main application configuration."""
    server: ServerConfig
    provider: ProviderConfig
    embed: EmbedConfig

    # Environment
    environment: str = "development"
    debug: bool = False

    @classmethod
    def from_env(cls) -> AppConfig:
        """Load configuration from environment variables."""
        environment = os.getenv("QR_BACKDROP_ENV", "development")

        server = ServerConfig(
            host=os.getenv("QR_BACKDROP_HOST", "0.0.0.0"),
            port=int(os.getenv("QR_BACKDROP_PORT", "8000")),
            reload=_parse_bool(os.getenv("QR_BACKDROP_RELOAD", "false")),
            log_level=os.getenv("QR_BACKDROP_LOG_LEVEL", "info"),
        )

        provider = ProviderConfig(
            unsplash_api_key=os.getenv("UNSPLASH_API_KEY") or None,
            image_width=int(os.getenv("QR_BACKDROP_IMAGE_WIDTH", "1920")),
            image_height=int(os.getenv("QR_BACKDROP_IMAGE_HEIGHT", "1080")),
            timeout=float(os.getenv("QR_BACKDROP_TIMEOUT", "30")),
        )

        embed = EmbedConfig(
            qr_size_ratio=float(os.getenv("QR_BACKDROP_QR_SIZE", "0.25")),
            position=os.getenv("QR_BACKDROP_POSITION", "bottom-right"),
            background_opacity=int(os.getenv("QR_BACKDROP_OPACITY", "230")),
            fill_color=os.getenv("QR_BACKDROP_FILL_COLOR", "black"),
            back_color=os.getenv("QR_BACKDROP_BACK_COLOR", "white"),
            max_validation_attempts=int(os.getenv("QR_BACKDROP_MAX_ATTEMPTS", str(MAX_ATTEMPTS))),
            error_correction=os.getenv("QR_BACKDROP_ERROR_CORRECTION", "M"),
        )

        return cls(
            server=server,
            provider=provider,
            embed=embed,
            environment=environment,
            debug=_parse_bool(os.getenv("QR_BACKDROP_DEBUG", "false")),
        )

    def validate(self) -> list[str]:
        """Validate configuration and return list of issues."""
        issues = []

        if self.server.port < 1 or self.server.port > 65535:
            issues.append(f"Invalid port: {self.server.port}")

        if self.provider.image_width < 1 or self.provider.image_height < 1:
            issues.append("Image dimensions must be positive")

        if not MIN_RELATIVE_SIZE <= self.embed.qr_size_ratio <= MAX_RELATIVE_SIZE:
            issues.append(
                f"qr_size_ratio {self.embed.qr_size_ratio} outside "
                f"[{MIN_RELATIVE_SIZE}, {MAX_RELATIVE_SIZE}], it will be clamped"
            )

        if self.embed.position.lower() not in VALID_POSITIONS:
            issues.append(f"Unsupported position: {self.embed.position}")

        if not 0 <= self.embed.background_opacity <= 255:
            issues.append(f"background_opacity {self.embed.background_opacity} outside [0, 255], it will be clamped")

        if not 1 <= self.embed.max_validation_attempts <= len(ESCALATION_SCHEDULE):
            issues.append(f"max_validation_attempts must be between 1 and {len(ESCALATION_SCHEDULE)}")

        if self.embed.error_correction.upper() not in ERROR_CORRECTION_LEVELS:
            issues.append(f"Unknown error correction level: {self.embed.error_correction}")

        return issues


# Global configuration instance (lazy loaded)
_config: AppConfig | None = None


def get_config() -> AppConfig:
    """Get the application configuration (lazy loaded singleton)."""
    global _config
    if _config is None:
        _config = AppConfig.from_env()
        for issue in _config.validate():
            logger.warning("Configuration issue: %s", issue)
    return _config


def reset_config() -> None:
    """Reset configuration (useful for testing)."""
    global _config
    _config = None
