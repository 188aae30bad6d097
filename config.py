# propmarket/config.py
"""
Configuration management for PropMarket.
Loads from .env and validates critical keys.
"""
import os
import logging
from typing import Any, Dict, List
from dotenv import load_dotenv

logger = logging.getLogger(__name__)


class ConfigurationError(Exception):
    """Configuration error exception."""
    pass


class Config:
    """
    Configuration manager with static and dynamic values.

    Usage:
        # Load from .env
        Config.initialize_from_env()

        # Get value
        url = Config.get(Config.DATABASE_URL)

        # Set dynamic value
        Config.set(Config.SYSTEM_READY, True)
    """

    # ═══════════════════════════════════════════════════════════════════════
    # CONFIGURATION KEYS
    # ═══════════════════════════════════════════════════════════════════════

    # Database
    DATABASE_URL = "DATABASE_URL"

    # Admin contacts
    ADMIN_EMAIL = "ADMIN_EMAIL"
    ADMIN_TELEGRAM_IDS = "ADMIN_TELEGRAM_IDS"

    # Telegram
    TELEGRAM_BOT_TOKEN = "TELEGRAM_BOT_TOKEN"

    # Email - SMTP
    SMTP_HOST = "SMTP_HOST"
    SMTP_PORT = "SMTP_PORT"
    SMTP_USERNAME = "SMTP_USERNAME"
    SMTP_PASSWORD = "SMTP_PASSWORD"
    SMTP_FROM_EMAIL = "SMTP_FROM_EMAIL"

    # Expiry sweeper
    SWEEP_INTERVAL_SECONDS = "SWEEP_INTERVAL_SECONDS"
    SWEEP_INITIAL_DELAY_SECONDS = "SWEEP_INITIAL_DELAY_SECONDS"

    # Commissions
    COMMISSION_MAX_LEVELS = "COMMISSION_MAX_LEVELS"

    # System
    SYSTEM_READY = "SYSTEM_READY"

    # ═══════════════════════════════════════════════════════════════════════
    # CRITICAL KEYS (must be present)
    # ═══════════════════════════════════════════════════════════════════════

    CRITICAL_KEYS = [
        DATABASE_URL,
    ]

    # ═══════════════════════════════════════════════════════════════════════
    # STORAGE
    # ═══════════════════════════════════════════════════════════════════════

    _config: Dict[str, Any] = {}
    _initialized: bool = False

    # ═══════════════════════════════════════════════════════════════════════
    # METHODS
    # ═══════════════════════════════════════════════════════════════════════

    @classmethod
    def initialize_from_env(cls) -> None:
        """
        Load configuration from .env file.

        Raises:
            ConfigurationError: If a value cannot be parsed
        """
        load_dotenv()

        logger.info("Loading configuration from environment...")

        try:
            # Database
            cls._config[cls.DATABASE_URL] = os.getenv(
                "DATABASE_URL",
                "sqlite:///propmarket.db"
            )

            # Admin contacts
            cls._config[cls.ADMIN_EMAIL] = os.getenv(
                "ADMIN_EMAIL",
                "admin@propertyplatform.com"
            )

            admin_ids_str = os.getenv("ADMIN_TELEGRAM_IDS", "")
            if admin_ids_str:
                cls._config[cls.ADMIN_TELEGRAM_IDS] = [
                    int(x.strip()) for x in admin_ids_str.split(',') if x.strip()
                ]
            else:
                cls._config[cls.ADMIN_TELEGRAM_IDS] = []

            # Telegram
            cls._config[cls.TELEGRAM_BOT_TOKEN] = os.getenv("TELEGRAM_BOT_TOKEN")

            # Email - SMTP
            cls._config[cls.SMTP_HOST] = os.getenv("SMTP_HOST")
            cls._config[cls.SMTP_PORT] = int(os.getenv("SMTP_PORT", "587"))
            cls._config[cls.SMTP_USERNAME] = os.getenv("SMTP_USERNAME")
            cls._config[cls.SMTP_PASSWORD] = os.getenv("SMTP_PASSWORD")
            cls._config[cls.SMTP_FROM_EMAIL] = os.getenv(
                "SMTP_FROM_EMAIL",
                "noreply@propertyplatform.com"
            )

            # Expiry sweeper (hourly, first run one minute after boot)
            cls._config[cls.SWEEP_INTERVAL_SECONDS] = int(
                os.getenv("SWEEP_INTERVAL_SECONDS", "3600")
            )
            cls._config[cls.SWEEP_INITIAL_DELAY_SECONDS] = int(
                os.getenv("SWEEP_INITIAL_DELAY_SECONDS", "60")
            )

            # Commissions
            cls._config[cls.COMMISSION_MAX_LEVELS] = int(
                os.getenv("COMMISSION_MAX_LEVELS", "3")
            )

            # System
            cls._config[cls.SYSTEM_READY] = False

            cls._initialized = True
            logger.info("Configuration loaded from environment successfully")

        except ValueError as e:
            logger.error(f"Failed to load configuration: {e}")
            raise ConfigurationError(f"Configuration loading failed: {e}")

    @classmethod
    def validate_critical_keys(cls) -> None:
        """
        Validate that all critical configuration keys are present.

        Raises:
            ConfigurationError: If any critical key is missing
        """
        missing = []
        for key in cls.CRITICAL_KEYS:
            if not cls.get(key):
                missing.append(key)

        if missing:
            error_msg = f"Missing critical configuration keys: {', '.join(missing)}"
            logger.critical(error_msg)
            raise ConfigurationError(error_msg)

        logger.info("All critical configuration keys validated ✓")

    @classmethod
    def get(cls, key: str, default: Any = None) -> Any:
        """
        Get configuration value.

        Args:
            key: Configuration key
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        return cls._config.get(key, default)

    @classmethod
    def set(cls, key: str, value: Any, source: str = "runtime") -> None:
        """
        Set configuration value (for dynamic updates).

        Args:
            key: Configuration key
            value: New value
            source: Source of the update (for logging)
        """
        cls._config[key] = value
        logger.debug(f"Config updated: {key} = {value} (source: {source})")

    @classmethod
    def get_admin_telegram_ids(cls) -> List[int]:
        """Telegram chat IDs that receive admin notifications."""
        return list(cls.get(cls.ADMIN_TELEGRAM_IDS, []))
