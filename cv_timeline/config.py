"""
Configuration for the CV timeline pipeline.

Values come from environment variables (or a local .env file).
"""
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_name: str = "CV Timeline Pipeline"

    # MongoDB
    mongodb_uri: str = "mongodb://localhost:27017"
    mongodb_database: str = "cv_timeline"
    mongodb_collection_jobs: str = "jobs"
    mongodb_timeout_ms: int = 5000

    # Timeline document location inside a job document
    timeline_field: str = "enhancedFeatures.timeline"

    # Storage safety
    storage_retry_attempts: int = 3
    storage_backoff_seconds: float = 0.5
    storage_max_depth: int = 15
    storage_max_document_bytes: int = 1_048_576  # 1 MiB

    # Tag written to dataQuality.cleaningVersion
    cleaning_version: str = "2.1.0"

    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
        case_sensitive=False,
    )


@lru_cache()
def get_settings() -> Settings:
    return Settings()
