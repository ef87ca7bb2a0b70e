"""Application configuration."""

from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    app_name: str = "MITRE Data Quality"
    app_version: str = "0.1.0"
    debug: bool = False
    environment: str = "development"

    # Elasticsearch
    # Comma-separated list of hosts, e.g. "https://es-1:9200,https://es-2:9200"
    elasticsearch_hosts: str = "http://localhost:9200"
    elasticsearch_username: Optional[str] = None
    elasticsearch_password: Optional[str] = None
    elasticsearch_api_key: Optional[str] = None
    elasticsearch_verify_certs: bool = True
    elasticsearch_request_timeout: int = 30

    # Indices
    logs_index_pattern: str = "logs-*"
    ecs_index_name: str = ".mitre-data-quality-ecs-default"
    results_index_name: str = ".mitre-data-quality-results-default"
    settings_index_name: str = ".mitre-data-quality-settings"

    # Paged scans over the ECS and results indices
    scroll_page_size: int = 100
    scroll_keep_alive: str = "1m"

    # Scoring schedule
    score_refresh_interval_seconds: int = 7 * 24 * 60 * 60  # 7 days
    score_jitter_min_seconds: int = 60
    score_jitter_max_seconds: int = 360
    settings_cache_ttl_seconds: float = 60.0

    # Background incremental scoring
    scoring_schedule_enabled: bool = True
    scoring_schedule_interval_minutes: int = 60

    # MITRE ATT&CK STIX data
    stix_data_url: str = (
        "https://raw.githubusercontent.com/mitre-attack/attack-stix-data/"
        "refs/heads/master/enterprise-attack/enterprise-attack-18.1.json"
    )
    stix_data_path: str = "attack-stix-data/enterprise-attack/enterprise-attack.json"
    stix_download_timeout_seconds: float = 30.0
    stix_download_on_startup: bool = True

    # Analytics ECS mapping seed file
    ecs_mapping_path: str = (
        "attack-stix-data/mapping/analytics_ecs_mapping_template.json"
    )

    # CORS
    cors_origins: str = "http://localhost:5601"

    def model_post_init(self, __context) -> None:
        """Validate scoring settings after initialization."""
        if self.score_refresh_interval_seconds <= 0:
            raise ValueError("SCORE_REFRESH_INTERVAL_SECONDS must be positive")

        if self.score_jitter_min_seconds < 0:
            raise ValueError("SCORE_JITTER_MIN_SECONDS must not be negative")

        if self.score_jitter_min_seconds > self.score_jitter_max_seconds:
            raise ValueError(
                "SCORE_JITTER_MIN_SECONDS must not exceed SCORE_JITTER_MAX_SECONDS"
            )

        if self.settings_cache_ttl_seconds < 0:
            raise ValueError("SETTINGS_CACHE_TTL_SECONDS must not be negative")

        if self.scroll_page_size <= 0:
            raise ValueError("SCROLL_PAGE_SIZE must be positive")

    @property
    def elasticsearch_host_list(self) -> list[str]:
        """Configured Elasticsearch hosts as a list."""
        return [h.strip() for h in self.elasticsearch_hosts.split(",") if h.strip()]

    @property
    def cors_origin_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
