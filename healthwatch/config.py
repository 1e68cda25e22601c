from __future__ import annotations

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Central configuration loaded from environment / .env file."""

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}

    # Storage (services + probe results share one SQLite file)
    database_path: str = "data/healthwatch.db"

    # Status cache
    cache_backend: str = "redis"  # "redis" | "memory"
    redis_url: str = "redis://localhost:6379/0"
    redis_socket_timeout: float = 2.0  # seconds, keeps a dead cache from stalling checks
    cache_max_entries: int = 10_000  # memory backend only

    # Fixed TTLs for derived views (per-service status uses check_interval)
    service_list_ttl: int = 60
    metrics_ttl: int = 60

    # Probing
    probe_max_redirects: int = 5

    # Retention window for `healthwatch prune`
    retention_days: int = 30

    # API
    api_host: str = "0.0.0.0"
    api_port: int = 8000

    # Logging
    log_level: str = "INFO"


settings = Settings()
