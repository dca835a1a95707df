import os
import threading
from urllib.parse import urlparse

from dotenv import load_dotenv
from pydantic import BaseModel, Field

_SUPPORTED_DATABASE_SCHEMES = {"postgresql+asyncpg", "sqlite+aiosqlite"}
_LOCK_BACKENDS = {"memory", "redis"}


def _parse_bool(name: str, raw: str) -> bool:
    value = raw.strip().lower()
    if value in {"1", "true", "yes", "on"}:
        return True
    if value in {"0", "false", "no", "off"}:
        return False
    raise ValueError(f"{name} must be a boolean value")


class Settings(BaseModel):
    app_name: str = Field(default="Event Marketplace Admin Core")
    debug: bool = Field(default=False)
    log_level: str = Field(default="INFO")
    database_url: str = Field(default="sqlite+aiosqlite:///./admin_core.db")
    db_pool_size: int = Field(default=5)
    db_max_overflow: int = Field(default=10)
    db_pool_recycle: int = Field(default=1800)
    db_pool_pre_ping: bool = Field(default=True)
    redis_url: str = Field(default="redis://localhost:6379/0")
    entity_lock_backend: str = Field(default="memory")
    entity_lock_ttl_seconds: int = Field(default=30)
    entity_lock_wait_seconds: float = Field(default=5.0)

    @classmethod
    def from_env(cls) -> "Settings":
        fields = cls.model_fields

        database_url = os.getenv("DATABASE_URL", fields["database_url"].default).strip()
        if not database_url:
            raise ValueError("DATABASE_URL environment variable must be set")
        parsed_db = urlparse(database_url)
        if parsed_db.scheme not in _SUPPORTED_DATABASE_SCHEMES:
            raise ValueError(
                "DATABASE_URL must start with one of: "
                + ", ".join(f"'{scheme}://'" for scheme in sorted(_SUPPORTED_DATABASE_SCHEMES))
            )
        if parsed_db.scheme == "postgresql+asyncpg" and not parsed_db.hostname:
            raise ValueError("DATABASE_URL must include hostname")

        db_pool_size = int(os.getenv("DB_POOL_SIZE", fields["db_pool_size"].default))
        if db_pool_size <= 0:
            raise ValueError("DB_POOL_SIZE must be greater than 0")

        db_max_overflow = int(os.getenv("DB_MAX_OVERFLOW", fields["db_max_overflow"].default))
        if db_max_overflow < 0:
            raise ValueError("DB_MAX_OVERFLOW must be greater than or equal to 0")

        db_pool_recycle = int(os.getenv("DB_POOL_RECYCLE", fields["db_pool_recycle"].default))
        if db_pool_recycle <= 0:
            raise ValueError("DB_POOL_RECYCLE must be greater than 0")

        db_pool_pre_ping = _parse_bool(
            "DB_POOL_PRE_PING",
            os.getenv("DB_POOL_PRE_PING", str(fields["db_pool_pre_ping"].default)),
        )

        entity_lock_backend = (
            os.getenv("ENTITY_LOCK_BACKEND", fields["entity_lock_backend"].default)
            .strip()
            .lower()
        )
        if entity_lock_backend not in _LOCK_BACKENDS:
            raise ValueError(
                f"ENTITY_LOCK_BACKEND must be one of: {', '.join(sorted(_LOCK_BACKENDS))}"
            )

        entity_lock_ttl_seconds = int(
            os.getenv("ENTITY_LOCK_TTL_SECONDS", fields["entity_lock_ttl_seconds"].default)
        )
        if entity_lock_ttl_seconds <= 0:
            raise ValueError("ENTITY_LOCK_TTL_SECONDS must be greater than 0")

        entity_lock_wait_seconds = float(
            os.getenv("ENTITY_LOCK_WAIT_SECONDS", fields["entity_lock_wait_seconds"].default)
        )
        if entity_lock_wait_seconds <= 0:
            raise ValueError("ENTITY_LOCK_WAIT_SECONDS must be greater than 0")

        redis_url = os.getenv("REDIS_URL", fields["redis_url"].default).strip()
        if entity_lock_backend == "redis" and not redis_url:
            raise ValueError("REDIS_URL must be set when ENTITY_LOCK_BACKEND=redis")

        return cls(
            app_name=os.getenv("APP_NAME", fields["app_name"].default),
            debug=os.getenv("DEBUG", "false").lower() == "true",
            log_level=os.getenv("LOG_LEVEL", fields["log_level"].default).upper(),
            database_url=database_url,
            db_pool_size=db_pool_size,
            db_max_overflow=db_max_overflow,
            db_pool_recycle=db_pool_recycle,
            db_pool_pre_ping=db_pool_pre_ping,
            redis_url=redis_url,
            entity_lock_backend=entity_lock_backend,
            entity_lock_ttl_seconds=entity_lock_ttl_seconds,
            entity_lock_wait_seconds=entity_lock_wait_seconds,
        )


# Settings and the .env file are loaded on first access so importing the
# package never reads the environment.
_settings_instance: Settings | None = None
_settings_lock = threading.Lock()


def get_settings() -> Settings:
    """Get settings instance, creating it on first access.

    Uses double-checked locking so concurrent first calls from threads or
    tasks build exactly one instance.

    Raises:
        ValueError: If an environment variable is missing or invalid
    """
    global _settings_instance

    if _settings_instance is not None:
        return _settings_instance

    with _settings_lock:
        if _settings_instance is None:
            load_dotenv()
            _settings_instance = Settings.from_env()

    return _settings_instance


def reset_settings() -> None:
    global _settings_instance
    with _settings_lock:
        _settings_instance = None


class _SettingsProxy:
    """Proxy to defer settings creation until first attribute access."""

    def __getattr__(self, name: str):
        return getattr(get_settings(), name)


settings = _SettingsProxy()  # type: ignore[assignment]
