"""
Configuration management for Tugrik.

Uses pydantic-settings for environment variable binding.
All settings can be overridden via environment variables with TUGRIK_ prefix.

Sessions never read process-wide state on their own: build a Settings value
(usually through `configure()`) and hand it to the Session.
"""

import logging
import sys
from pathlib import Path
from typing import Any

from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_DSN = "mongodb://localhost:27017"


class Settings(BaseSettings):
    """Application settings with environment variable binding."""

    model_config = SettingsConfigDict(
        env_prefix="TUGRIK_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ==========================================
    # Document Store
    # ==========================================
    database: str = ""
    """Name of the target database. Empty means "not configured"."""

    dsn: str = ""
    """Connection string: mongodb://..., mongodb+srv://... or sqlite:///path."""

    connect_timeout_ms: int = 5000
    """Server selection timeout for MongoDB connections."""

    # ==========================================
    # Engine
    # ==========================================
    max_depth: int = 100
    """Maximum nesting depth walked by flatten/rebuild."""

    ledger_retries: int = 3
    """Attempts for a pointer ledger upsert before giving up."""

    ledger_backoff: float = 0.05
    """Initial delay in seconds between ledger attempts (doubles each retry)."""

    # ==========================================
    # Logging
    # ==========================================
    log_level: str = "INFO"
    log_file: Path | None = None

    # ==========================================
    # Computed Properties
    # ==========================================
    @property
    def is_configured(self) -> bool:
        return bool(self.database) and bool(self.dsn)

    @property
    def backend(self) -> str:
        """Backend name derived from the DSN scheme."""
        scheme = self.dsn.split("://", 1)[0].lower() if "://" in self.dsn else ""
        if scheme in ("mongodb", "mongodb+srv"):
            return "mongo"
        if scheme == "sqlite":
            return "sqlite"
        return ""

    @property
    def sqlite_path(self) -> Path:
        """
        Database file for sqlite DSNs.

        Follows the usual convention: sqlite:///relative.db and
        sqlite:////absolute/path.db.
        """
        rest = self.dsn.split("://", 1)[1] if "://" in self.dsn else self.dsn
        if rest.startswith("/"):
            rest = rest[1:]
        return Path(rest)


# Global settings instance (environment defaults only)
settings = Settings()


def configure(database: str, dsn: str = DEFAULT_DSN, **overrides: Any) -> Settings:
    """
    Build the settings value a Session is created from.

    This is the one-time bootstrap call: pass the result to `Session(...)`.
    Environment variables still supply anything not given here.
    """
    return Settings(database=database, dsn=dsn, **overrides)


def setup_logging(level: str | None = None, config: Settings | None = None) -> None:
    """
    Configure logging for the `tugrik.*` loggers.

    Records go to stderr, keeping stdout for command output, and to
    `config.log_file` when one is set. `level` wins over `config.log_level`.
    """
    config = config or settings
    log_level = getattr(logging, (level or config.log_level).upper())

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if config.log_file:
        handlers.append(logging.FileHandler(config.log_file))

    logging.basicConfig(
        level=log_level,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        handlers=handlers,
    )
    # basicConfig is a no-op once the root logger has handlers
    logging.getLogger("tugrik").setLevel(log_level)
    logging.getLogger("pymongo").setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Get a logger with the given name."""
    return logging.getLogger(f"tugrik.{name}")
