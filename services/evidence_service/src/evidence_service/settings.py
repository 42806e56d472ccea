from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="BRANDLENS_", extra="ignore")

    user_agent: str = "Mozilla/5.0 (compatible; EvidenceResolver/1.0)"
    request_timeout_s: float = 10.0
    archive_timeout_s: float = 8.0
    max_bytes: int = 5_000_000
    crawl_delay_s: float = 0.0
    http_max_retries: int = 1

    default_mode: str = "agency-first"
    default_limit: int = 50
    # Pacing between citations; success_pause_s is added after a resolved citation.
    citation_pause_s: float = 0.1
    success_pause_s: float = 0.3
    breaker_threshold: int = 25

    backfill_pause_s: float = 1.0


settings = Settings()
