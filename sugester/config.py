"""Application configuration and constants."""
from __future__ import annotations

import os
from dataclasses import dataclass


def _get_env(name: str, default: str) -> str:
    value = os.getenv(name)
    return value if value is not None else default


def _get_flag(name: str, default: str) -> bool:
    return _get_env(name, default).lower() in {"1", "true", "yes"}


@dataclass(frozen=True)
class Settings:
    """Simple settings container with environment variable overrides."""

    es_host: str = _get_env("ES_HOST", "http://localhost:9200")
    es_cloud_id: str = _get_env("ES_CLOUD_ID", "")
    es_username: str = _get_env("ES_USERNAME", "")
    es_password: str = _get_env("ES_PASSWORD", "")
    es_index: str = _get_env("ES_INDEX", "products")
    es_request_timeout: float = float(_get_env("ES_REQUEST_TIMEOUT", "10"))
    es_max_retries: int = int(_get_env("ES_MAX_RETRIES", "3"))
    redis_host: str = _get_env("REDIS_HOST", "localhost")
    redis_port: int = int(_get_env("REDIS_PORT", "6379"))
    cache_enabled: bool = _get_flag("CACHE_ENABLED", "true")
    trending_cache_ttl_seconds: int = int(_get_env("TRENDING_CACHE_TTL_SECONDS", "300"))
    merchandising_dir: str = _get_env("MERCHANDISING_DIR", "data/merchandising")
    fallback_result_size: int = int(_get_env("FALLBACK_RESULT_SIZE", "10"))
    log_level: str = _get_env("LOG_LEVEL", "INFO")


settings = Settings()
