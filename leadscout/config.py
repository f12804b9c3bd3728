from __future__ import annotations

from pydantic import ConfigDict
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    app_name: str = "LeadScout"
    app_version: str = "0.1.0"
    environment: str = "development"
    debug: bool = False
    log_level: str = "INFO"

    # Providers
    exa_api_key: str | None = None
    exa_base_url: str = "https://api.exa.ai"
    openai_api_key: str | None = None

    # Models
    research_model: str = "gpt-4o"
    metadata_model: str = "gpt-4o-mini"
    model_temperature: float | None = None

    # Pipeline limits
    research_max_round_trips: int = 3
    people_max_round_trips: int = 5
    revalidation_max_round_trips: int = 3
    search_default_results: int = 5
    search_max_results: int = 10
    search_timeout_seconds: float = 15.0
    search_max_attempts: int = 2
    evidence_snippet_max_chars: int = 1500
    min_evidence_chars: int = 100
    low_confidence_fallback_limit: int = 3
    domain_resolve_timeout_seconds: float = 5.0

    # Collaborators
    database_url: str | None = None
    email_enrichment_url: str | None = None
    email_enrichment_api_key: str | None = None
    email_enrichment_timeout_seconds: float = 30.0

    # Metrics
    metrics_backend: str = "stdout"
    metrics_namespace: str = "leadscout"
    metrics_disable: bool = False
    metrics_sample_rate: float = 1.0
    metrics_statsd_host: str = "127.0.0.1"
    metrics_statsd_port: int = 8125

    # Server
    cors_origins: list[str] = []

    model_config = ConfigDict(env_file=".env", case_sensitive=False)


settings = Settings()
