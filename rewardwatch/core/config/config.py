"""
Static configuration management for RewardWatch.

Purpose
-------
Provides centralized static configuration loaded from environment variables
with sensible defaults, type validation, and bounds checking. All values are
read once at startup; the update scheduler, caches, fetch dispatcher and bot
receive them from here.

Responsibilities
----------------
- Load configuration from environment variables with .env support
- Provide type-safe access to all static configuration values
- Clamp the update interval to its enforced floor
- Create required directories (logs, data)
- Track which values came from the environment vs defaults

Non-Responsibilities
--------------------
- Secrets management (use environment variables)
- Runtime configuration changes

Architecture Notes
------------------
- Singleton pattern via class methods (no instantiation)
- Directory paths relative to project root for portability
- Invalid values fall back to defaults with a warning; only a missing
  Discord token is fatal, and only when `validate(strict=True)` is used

Environment Variables
---------------------
Required:
- DISCORD_TOKEN: Bot authentication token

Optional (with defaults):
- COMMAND_PREFIX: Command prefix (default: "!")
- CREATOR_ID / CREATOR_ONLY: Restrict the bot to a single Discord user
- DATABASE_URL: SQLAlchemy async URL (default: SQLite under data/)
- API_BASE_URL / API_TIMEOUT_SECONDS: Upstream rewards API
- UPDATE_INTERVAL: Seconds between sweeps (floor: 30)
- CACHE_TTL_SECONDS / CACHE_SWEEP_INTERVAL_SECONDS: Read-through caches
- MAX_PARALLELISM: Concurrent upstream lookups per fetch batch
- ENVIRONMENT / LOG_LEVEL / LOG_JSON / LOG_COLORS: Logging behavior
"""

import logging
import os
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

# ============================================================================
# Enums and Constants
# ============================================================================

UPDATE_INTERVAL_FLOOR_SECONDS = 30


class Environment(Enum):
    """Deployment environment types."""

    DEVELOPMENT = "development"
    TESTING = "testing"
    STAGING = "staging"
    PRODUCTION = "production"

    @classmethod
    def from_string(cls, value: str) -> "Environment":
        """
        Parse environment string safely with fallback.

        Example
        -------
        >>> Environment.from_string("production") == Environment.PRODUCTION
        True
        >>> Environment.from_string("invalid") == Environment.DEVELOPMENT
        True
        """
        try:
            return cls(value.lower())
        except ValueError:
            # Structured logger is not initialized yet during bootstrap
            logging.warning(f"Unknown environment '{value}', defaulting to development")
            return cls.DEVELOPMENT


# ============================================================================
# Configuration Metrics Tracker
# ============================================================================


class _ConfigLoadMetrics:
    """
    Internal tracker for configuration loading.

    Records which configuration values came from environment variables
    versus defaults, and any validation errors encountered.
    """

    def __init__(self) -> None:
        self.env_vars_loaded: Dict[str, bool] = {}
        self.validation_errors: Dict[str, str] = {}
        self.defaults_used: Dict[str, Any] = {}

    def record_env_load(self, key: str, from_env: bool, default: Any) -> None:
        self.env_vars_loaded[key] = from_env
        if not from_env:
            self.defaults_used[key] = default

    def record_validation_error(self, key: str, error: str) -> None:
        self.validation_errors[key] = error

    def get_summary(self) -> Dict[str, Any]:
        return {
            "total_configs": len(self.env_vars_loaded),
            "from_environment": sum(1 for v in self.env_vars_loaded.values() if v),
            "from_defaults": sum(1 for v in self.env_vars_loaded.values() if not v),
            "validation_errors": len(self.validation_errors),
            "defaults_used": list(self.defaults_used.keys()),
        }


# ============================================================================
# Main Configuration Class
# ============================================================================


class Config:
    """
    Centralized static configuration for the RewardWatch bot.

    Usage
    -----
    >>> Config.validate()
    >>> interval = Config.UPDATE_INTERVAL
    >>> summary = Config.get_config_summary()
    """

    # =========================================================================
    # Internal State
    # =========================================================================

    _metrics: Optional[_ConfigLoadMetrics] = None
    _validated: bool = False

    # =========================================================================
    # Discord Configuration
    # =========================================================================

    DISCORD_TOKEN: str = ""
    COMMAND_PREFIX: str = "!"
    CREATOR_ID: Optional[int] = None
    CREATOR_ONLY: bool = True

    # =========================================================================
    # Directory Configuration
    # =========================================================================

    PROJECT_ROOT = Path(__file__).resolve().parents[3]
    LOGS_DIR = PROJECT_ROOT / "logs"
    DATA_DIR = PROJECT_ROOT / "data"

    # =========================================================================
    # Database Configuration
    # =========================================================================

    DATABASE_URL: str = f"sqlite+aiosqlite:///{DATA_DIR / 'main.db'}"
    DATABASE_ECHO: bool = False

    # =========================================================================
    # Upstream API
    # =========================================================================

    API_BASE_URL: str = "https://www.patreon.com/"
    API_TIMEOUT_SECONDS: int = 15
    MAX_PARALLELISM: int = 4

    # =========================================================================
    # Update Sweep & Caches
    # =========================================================================

    UPDATE_INTERVAL: int = 120
    CACHE_TTL_SECONDS: int = 600
    CACHE_SWEEP_INTERVAL_SECONDS: int = 900

    # =========================================================================
    # Environment Configuration
    # =========================================================================

    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"
    LOG_JSON: Optional[bool] = None
    LOG_COLORS: bool = True

    # =========================================================================
    # Bot Metadata
    # =========================================================================

    BOT_NAME: str = "RewardWatch"
    BOT_VERSION: str = "1.0.0"
    BOT_DESCRIPTION: str = "Notifies you when sold-out Patreon reward tiers open up again"

    # =========================================================================
    # Helper Methods
    # =========================================================================

    @classmethod
    def _init_metrics(cls) -> None:
        if cls._metrics is None:
            cls._metrics = _ConfigLoadMetrics()

    @classmethod
    def _record_error(cls, key: str, error: str) -> None:
        logging.warning(error)
        if cls._metrics:
            cls._metrics.record_validation_error(key, error)

    @classmethod
    def _safe_int(
        cls,
        key: str,
        default: int,
        min_val: Optional[int] = None,
        max_val: Optional[int] = None,
    ) -> int:
        """
        Safely parse integer from environment with validation.

        Values outside ``[min_val, max_val]`` or unparseable values fall back
        to ``default``.

        Example
        -------
        >>> Config._safe_int("MAX_PARALLELISM", 4, min_val=1, max_val=64)
        4
        """
        cls._init_metrics()

        raw_value = os.getenv(key)

        if raw_value is None:
            if cls._metrics:
                cls._metrics.record_env_load(key, False, default)
            return default

        try:
            value = int(raw_value)
        except ValueError:
            cls._record_error(
                key, f"{key}='{raw_value}' is not a valid integer, using default {default}"
            )
            return default

        if min_val is not None and value < min_val:
            cls._record_error(
                key, f"{key}={value} is below minimum {min_val}, using default {default}"
            )
            return default

        if max_val is not None and value > max_val:
            cls._record_error(
                key, f"{key}={value} exceeds maximum {max_val}, using default {default}"
            )
            return default

        if cls._metrics:
            cls._metrics.record_env_load(key, True, default)
        return value

    @classmethod
    def _safe_bool(cls, key: str, default: bool) -> bool:
        """
        Safely parse boolean from environment.

        Recognizes: true/false, yes/no, 1/0, on/off (case-insensitive).
        """
        cls._init_metrics()

        raw_value = os.getenv(key)

        if raw_value is None:
            if cls._metrics:
                cls._metrics.record_env_load(key, False, default)
            return default

        normalized = raw_value.lower().strip()
        if normalized in {"true", "yes", "1", "on"}:
            value = True
        elif normalized in {"false", "no", "0", "off"}:
            value = False
        else:
            cls._record_error(
                key, f"{key}='{raw_value}' is not a valid boolean, using default {default}"
            )
            return default

        if cls._metrics:
            cls._metrics.record_env_load(key, True, default)
        return value

    @classmethod
    def _safe_str(cls, key: str, default: str, required: bool = False) -> str:
        """Safely get string from environment."""
        cls._init_metrics()

        value = os.getenv(key, default)
        if cls._metrics:
            cls._metrics.record_env_load(key, key in os.environ, default)

        if required and not value:
            error = f"Required environment variable {key} is not set"
            logging.error(error)
            if cls._metrics:
                cls._metrics.record_validation_error(key, error)

        return value

    @classmethod
    def _safe_optional_int(cls, key: str) -> Optional[int]:
        """Parse an optional integer; unset or invalid values yield None."""
        cls._init_metrics()

        raw_value = os.getenv(key)

        if raw_value is None or not raw_value.strip():
            if cls._metrics:
                cls._metrics.record_env_load(key, False, None)
            return None

        try:
            value = int(raw_value)
        except ValueError:
            cls._record_error(key, f"{key}='{raw_value}' is not a valid integer, ignoring")
            return None

        if cls._metrics:
            cls._metrics.record_env_load(key, True, None)
        return value

    @classmethod
    def _optional_bool(cls, key: str) -> Optional[bool]:
        if os.getenv(key) is None:
            return None
        return cls._safe_bool(key, False)

    # =========================================================================
    # Configuration Loading
    # =========================================================================

    @classmethod
    def clamp_update_interval(cls, seconds: int) -> int:
        """Raise ``seconds`` to the sweep interval floor, warning when clamped."""
        if seconds < UPDATE_INTERVAL_FLOOR_SECONDS:
            logging.warning(
                f"UPDATE_INTERVAL={seconds}s is below the {UPDATE_INTERVAL_FLOOR_SECONDS}s "
                f"floor, using {UPDATE_INTERVAL_FLOOR_SECONDS}s"
            )
            return UPDATE_INTERVAL_FLOOR_SECONDS
        return seconds

    @classmethod
    def load(cls) -> None:
        """Load all configuration from environment variables with validation."""
        cls._init_metrics()

        # Discord
        cls.DISCORD_TOKEN = cls._safe_str("DISCORD_TOKEN", "", required=True)
        cls.COMMAND_PREFIX = cls._safe_str("COMMAND_PREFIX", "!")
        cls.CREATOR_ID = cls._safe_optional_int("CREATOR_ID")
        cls.CREATOR_ONLY = cls._safe_bool("CREATOR_ONLY", True)

        # Database
        cls.DATABASE_URL = cls._safe_str(
            "DATABASE_URL", f"sqlite+aiosqlite:///{cls.DATA_DIR / 'main.db'}"
        )
        cls.DATABASE_ECHO = cls._safe_bool("DATABASE_ECHO", False)

        # Upstream API
        cls.API_BASE_URL = cls._safe_str("API_BASE_URL", "https://www.patreon.com/")
        cls.API_TIMEOUT_SECONDS = cls._safe_int(
            "API_TIMEOUT_SECONDS", 15, min_val=1, max_val=300
        )
        cls.MAX_PARALLELISM = cls._safe_int("MAX_PARALLELISM", 4, min_val=1, max_val=64)

        # Update sweep & caches
        cls.UPDATE_INTERVAL = cls.clamp_update_interval(
            cls._safe_int("UPDATE_INTERVAL", 120)
        )
        cls.CACHE_TTL_SECONDS = cls._safe_int("CACHE_TTL_SECONDS", 600, min_val=1)
        cls.CACHE_SWEEP_INTERVAL_SECONDS = cls._safe_int(
            "CACHE_SWEEP_INTERVAL_SECONDS", 900, min_val=1
        )

        # Environment
        cls.ENVIRONMENT = Environment.from_string(
            cls._safe_str("ENVIRONMENT", "development")
        ).value
        cls.LOG_LEVEL = cls._safe_str("LOG_LEVEL", "INFO")
        cls.LOG_JSON = cls._optional_bool("LOG_JSON")
        cls.LOG_COLORS = cls._safe_bool("LOG_COLORS", True)

    @classmethod
    def validate(cls, strict: bool = False) -> None:
        """
        Load and validate configuration values on startup.

        Parameters
        ----------
        strict:
            Raise instead of warn when required values are missing. The process
            entry point uses strict mode; tests and tooling do not.

        Raises
        ------
        ConfigurationError
            If ``strict`` and a required value is missing.
        """
        if cls._validated:
            return

        from rewardwatch.core.exceptions import ConfigurationError

        logger = logging.getLogger(__name__)
        cls.load()

        if not cls.DISCORD_TOKEN:
            if strict:
                raise ConfigurationError("DISCORD_TOKEN", "environment variable is required")
            logger.warning("DISCORD_TOKEN is not set; the bot cannot connect")

        valid_log_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if cls.LOG_LEVEL.upper() not in valid_log_levels:
            logger.warning(f"Invalid LOG_LEVEL '{cls.LOG_LEVEL}', using INFO")
            cls.LOG_LEVEL = "INFO"

        if cls.CACHE_SWEEP_INTERVAL_SECONDS < cls.CACHE_TTL_SECONDS:
            logger.warning(
                "CACHE_SWEEP_INTERVAL_SECONDS is shorter than CACHE_TTL_SECONDS; "
                "sweeps will mostly find nothing to evict"
            )

        if cls.CREATOR_ONLY and cls.CREATOR_ID is None:
            logger.info("CREATOR_ONLY is set but CREATOR_ID is not; bot is public")

        cls.LOGS_DIR.mkdir(exist_ok=True)
        cls.DATA_DIR.mkdir(exist_ok=True)

        cls._validated = True

        if cls._metrics:
            logger.info(f"Configuration loaded: {cls._metrics.get_summary()}")
            if cls._metrics.validation_errors:
                logger.warning(f"Configuration warnings: {cls._metrics.validation_errors}")

    # =========================================================================
    # Feature Checks
    # =========================================================================

    @classmethod
    def creator_only_enabled(cls) -> bool:
        """Creator-only mode needs both the flag and a configured creator id."""
        return cls.CREATOR_ONLY and cls.CREATOR_ID is not None and cls.CREATOR_ID > 0

    # =========================================================================
    # Metrics & Summary
    # =========================================================================

    @classmethod
    def get_config_summary(cls) -> Dict[str, Any]:
        """Get non-sensitive configuration summary for the startup log."""
        return {
            "environment": cls.ENVIRONMENT,
            "log_level": cls.LOG_LEVEL,
            "command_prefix": cls.COMMAND_PREFIX,
            "creator_only": cls.creator_only_enabled(),
            "api_base_url": cls.API_BASE_URL,
            "update_interval": cls.UPDATE_INTERVAL,
            "cache_ttl_seconds": cls.CACHE_TTL_SECONDS,
            "cache_sweep_interval_seconds": cls.CACHE_SWEEP_INTERVAL_SECONDS,
            "max_parallelism": cls.MAX_PARALLELISM,
            "database_url_scheme": cls.DATABASE_URL.split(":", 1)[0],
            "discord_token_set": bool(cls.DISCORD_TOKEN),
            "bot_version": cls.BOT_VERSION,
        }
