"""
Configuration for PulseOps
==========================
Main application runtime settings loaded from environment variables.
Sets up the logging configuration as well.
"""

import os
from contextlib import suppress
from dataclasses import dataclass, field
from typing import Any

from app.domain.exceptions import ConfigurationError


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.lower() in {"1", "true", "t", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        raise ConfigurationError(f"Environment variable {name} must be an integer.") from None


_DEFAULT_SECRET_KEY = "PulseOpsDevSecretKey"


@dataclass
class AppConfig:
    """Runtime configuration loaded from environment variables."""

    environment: str = field(default_factory=lambda: os.getenv("PULSE_ENV", "development"))
    secret_key: str = field(default_factory=lambda: os.getenv("PULSE_SECRET_KEY", _DEFAULT_SECRET_KEY))
    database_path: str = field(default_factory=lambda: os.getenv("PULSE_DATABASE_PATH", "database/pulseops.db"))
    DEBUG: bool = field(default_factory=lambda: _env_bool("PULSE_DEBUG", False))
    log_level: str = field(default_factory=lambda: os.getenv("PULSE_LOG_LEVEL", "INFO").upper())
    audit_log_path: str = field(default_factory=lambda: os.getenv("PULSE_AUDIT_LOG_PATH", "logs/audit.log"))
    socketio_cors_origins: str = field(default_factory=lambda: os.getenv("PULSE_SOCKETIO_CORS", "*"))

    # Plant used when a request does not name one; seeded on first start.
    default_plant_id: int = field(default_factory=lambda: _env_int("PULSE_DEFAULT_PLANT_ID", 1))
    # How long a scheme-trigger claim blocks other requests before it may be retried.
    scheme_lock_seconds: int = field(default_factory=lambda: _env_int("PULSE_SCHEME_LOCK_SECONDS", 120))

    # LLM Configuration (scheme matcher)
    # Provider: "openai", "anthropic", or "none" (static scheme list)
    llm_provider: str = field(default_factory=lambda: os.getenv("LLM_PROVIDER", "none"))
    llm_api_key: str = field(default_factory=lambda: os.getenv("LLM_API_KEY", ""))
    llm_model: str = field(default_factory=lambda: os.getenv("LLM_MODEL", ""))
    llm_base_url: str = field(default_factory=lambda: os.getenv("LLM_BASE_URL", ""))
    llm_timeout: int = field(default_factory=lambda: _env_int("LLM_TIMEOUT", 30))
    llm_max_tokens: int = field(default_factory=lambda: _env_int("LLM_MAX_TOKENS", 2000))

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        # Fail fast if using default secret key in production
        if self.environment == "production" and self.secret_key == _DEFAULT_SECRET_KEY:
            raise ConfigurationError(
                "Cannot use default secret key in production. "
                "Set PULSE_SECRET_KEY environment variable to a secure random value."
            )
        if self.scheme_lock_seconds <= 0:
            raise ConfigurationError("PULSE_SCHEME_LOCK_SECONDS must be positive.")

    def as_flask_config(self) -> dict[str, Any]:
        """Render configuration values for Flask application."""
        if not self.secret_key:
            raise ConfigurationError("Missing PULSE_SECRET_KEY environment variable.")

        return {
            "ENV": self.environment,
            "SECRET_KEY": self.secret_key,
            "DATABASE_PATH": self.database_path,
            "SOCKETIO_CORS_ALLOWED_ORIGINS": self.socketio_cors_origins,
            "AUDIT_LOG_PATH": self.audit_log_path,
            "DEFAULT_PLANT_ID": self.default_plant_id,
            "DEBUG": self.DEBUG,
            "JSON_SORT_KEYS": False,
        }


def setup_logging(debug: bool = False, level: str | None = None) -> None:
    """Setup logging configuration."""
    import logging
    import sys
    from logging.handlers import RotatingFileHandler

    log_level = logging.DEBUG if debug else logging.getLevelName(level or "INFO")
    if not isinstance(log_level, int):
        log_level = logging.INFO

    # Root logger
    root = logging.getLogger()
    root.setLevel(log_level)

    # Keep existing handlers but avoid adding duplicates when create_app is called multiple times
    has_console = any(getattr(h, "name", "") == "pulseops_console" for h in root.handlers)
    has_file = any(getattr(h, "name", "") == "pulseops_file" for h in root.handlers)
    added_handler = False

    # Console handler (force UTF-8 so ₹ amounts survive Windows terminals)
    stream = sys.stdout
    with suppress(AttributeError, ValueError):
        stream.reconfigure(encoding="utf-8", errors="replace")
    formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    if not has_console:
        console_handler = logging.StreamHandler(stream=stream)
        console_handler.name = "pulseops_console"
        console_handler.setLevel(log_level)
        console_handler.setFormatter(formatter)
        root.addHandler(console_handler)
        added_handler = True

    # File handler
    if not has_file:
        os.makedirs("logs", exist_ok=True)
        file_handler = RotatingFileHandler(
            "logs/pulseops.log",
            maxBytes=10 * 1024 * 1024,
            backupCount=5,
            encoding="utf-8",
        )
        file_handler.name = "pulseops_file"
        file_handler.setLevel(log_level)
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)
        added_handler = True

    # Ensure handler levels follow the desired log level
    for handler in root.handlers:
        if getattr(handler, "name", "") in {"pulseops_console", "pulseops_file"}:
            handler.setLevel(log_level)

    if added_handler:
        root.info(f"Logging initialized at level: {logging.getLevelName(log_level)}")

    if _env_bool("PULSE_SILENCE_WERKZEUG", True):
        logging.getLogger("werkzeug").setLevel(logging.WARNING)

    # Dashboard clients poll; engine.io logs every poll at INFO
    logging.getLogger("socketio").setLevel(logging.WARNING)
    logging.getLogger("engineio").setLevel(logging.WARNING)


def load_config() -> AppConfig:
    """Helper for callers to load and validate configuration."""
    return AppConfig()
