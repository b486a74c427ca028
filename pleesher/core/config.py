"""Client configuration (settings and environment).

Single source of truth for all configuration. Uses pydantic-settings
with .env support. Cache chain and backend choices are validated at
load time.
"""

from functools import lru_cache

from pydantic import SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from pleesher.core.constants import CACHE_LAYERS, SESSION_STORE_BACKENDS


class Settings(BaseSettings):
    """Client settings loaded from environment and .env.

    All settings are optional with defaults. validate_cache_chain checks
    the layer names and that a database layer has a DATABASE_URL.
    """

    # App
    app_name: str = "pleesher-client"
    app_version: str = "1.0.0"
    debug: bool = False

    # Remote API
    api_root_url: str = "https://pleesher.com/api"
    api_version: str = "1.0"
    client_id: str = ""
    client_secret: SecretStr = SecretStr("")
    http_timeout_seconds: float = 30.0

    # Cache chain: comma-separated layers, front first (e.g. "local,database")
    cache_chain: str = "local"
    cache_scope: str | None = None
    # When True, the database layer refuses to run before a scope is selected
    cache_require_scope: bool = False

    # Database (persistent cache layer)
    database_url: str = ""
    database_echo: bool = False
    # Optional pool overrides (None = use defaults in database.py)
    db_pool_size: int | None = None
    db_max_overflow: int | None = None

    # Session store (session cache layer): "memory" or "redis"
    session_store_backend: str = "memory"
    session_key: str = "default"
    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_db: int = 0
    redis_password: SecretStr | None = None

    model_config = SettingsConfigDict(
        env_prefix="PLEESHER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    @property
    def cache_layers(self) -> list[str]:
        """Cache chain as a list of layer names, front layer first."""
        return [
            layer.strip().lower()
            for layer in self.cache_chain.split(",")
            if layer.strip()
        ]

    @model_validator(mode="after")
    def validate_cache_chain(self) -> "Settings":
        """Validate cache chain layers and their backing configuration.

        - Every layer must be one of 'local', 'session', 'database'.
        - A 'database' layer requires DATABASE_URL.
        - session_store_backend must be 'memory' or 'redis'.
        """
        layers = self.cache_layers
        if not layers:
            raise ValueError("PLEESHER_CACHE_CHAIN must name at least one layer.")
        unknown = [layer for layer in layers if layer not in CACHE_LAYERS]
        if unknown:
            raise ValueError(
                f"Unknown cache layer(s) {unknown!r}. "
                f"Must be one of: {', '.join(CACHE_LAYERS)}"
            )
        if "database" in layers and not self.database_url:
            raise ValueError(
                "PLEESHER_DATABASE_URL is required when the cache chain has a "
                "'database' layer (e.g. sqlite:///pleesher_cache.db)."
            )
        if self.session_store_backend not in SESSION_STORE_BACKENDS:
            raise ValueError(
                f"Invalid session_store_backend '{self.session_store_backend}'. "
                f"Must be one of: {', '.join(SESSION_STORE_BACKENDS)}"
            )
        return self


@lru_cache
def get_settings() -> Settings:
    """Return cached client settings (single instance per process).

    Validation runs on first call, not at import time. In tests, call
    get_settings.cache_clear() before overriding env vars so the next
    get_settings() uses the new values.

    Returns:
        Loaded and validated Settings instance.
    """
    return Settings()
