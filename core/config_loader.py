import yaml
import os
from typing import Optional, Literal
from pydantic import BaseModel, Field, model_validator


class DatabaseConfig(BaseModel):
    url: str
    connect_timeout_seconds: int = 10


class LlmConfig(BaseModel):
    enabled: bool = True
    base_url: Optional[str] = None
    api_key: Optional[str] = None  # Falls back to OPENAI_API_KEY in the client
    scoring_model: str = "gpt-4o-mini"
    scoring_temperature: float = 0.1
    request_timeout_seconds: float = 20.0
    max_attempts: int = Field(default=3, ge=1)


class IngestConfig(BaseModel):
    """Configuration for batch persistence of scraped postings."""
    chunk_size: int = Field(default=100, ge=1)
    max_workers: int = Field(default=4, ge=1)
    inter_chunk_delay_seconds: float = Field(default=0.5, ge=0.0)

    # Postings not seen for this many days are deactivated (no filter reason)
    stale_after_days: int = Field(default=30, ge=1)


class SelectorConfig(BaseModel):
    """
    Configuration for the CandidateSelector.

    min_pool_size is the smallest candidate set accepted before a
    constraint is relaxed.
    """
    min_pool_size: int = Field(default=5, ge=1)
    max_candidates: int = Field(default=50, ge=1)


class ScorerConfig(BaseModel):
    timeout_seconds: float = 30.0
    fallback_min: float = Field(default=0.40, ge=0.0, le=1.0)
    fallback_max: float = Field(default=0.70, ge=0.0, le=1.0)

    @model_validator(mode='after')
    def _check_band(self) -> "ScorerConfig":
        if self.fallback_min > self.fallback_max:
            raise ValueError("scorer.fallback_min must not exceed scorer.fallback_max")
        return self


class DistributionConfig(BaseModel):
    """
    Configuration for the DiversityDistributor.

    Picks the final target_count matches per user under a per-source cap,
    per-city quotas and an optional work-environment balance.
    """
    target_count: int = Field(default=5, ge=1)
    max_per_source: int = Field(default=2, ge=1)
    source_key: Literal["origin_source", "employer"] = "origin_source"
    city_balance: bool = True
    work_environment_balance: bool = False
    quality_threshold: float = Field(default=0.60, ge=0.0, le=1.0)


class MatchingConfig(BaseModel):
    """
    Top-level matching configuration.
    """
    enabled: bool = True

    # JSON list of user profiles, used when the CLI is not given --profiles
    profiles_file: Optional[str] = None

    max_user_workers: int = Field(default=4, ge=1)


class NotificationConfig(BaseModel):
    """
    Configuration for notifications.

    When disabled, digests are built but not handed to the sink.
    """
    enabled: bool = False  # Disabled by default - user must opt-in


class AppConfig(BaseModel):
    database: DatabaseConfig
    llm: LlmConfig = Field(default_factory=LlmConfig)
    ingest: IngestConfig = Field(default_factory=IngestConfig)
    selector: SelectorConfig = Field(default_factory=SelectorConfig)
    scorer: ScorerConfig = Field(default_factory=ScorerConfig)
    distribution: DistributionConfig = Field(default_factory=DistributionConfig)
    matching: MatchingConfig = Field(default_factory=MatchingConfig)
    notifications: NotificationConfig = Field(default_factory=NotificationConfig)


def load_config(config_path: str = "config.yaml") -> AppConfig:
    # If not found at relative path (e.g. running from elsewhere), use the repo-root config
    if not os.path.exists(config_path):
        base_dir = os.path.dirname(os.path.abspath(__file__))
        config_path = os.path.join(base_dir, "..", "config.yaml")

    with open(config_path, "r") as f:
        data = yaml.safe_load(f) or {}

    # Allow env var override for DB URL
    env_db_url = os.environ.get("DATABASE_URL")
    if env_db_url:
        if not data.get('database'):
            data['database'] = {}
        data['database']['url'] = env_db_url

    # Allow env var override for LLM Base URL
    env_llm_base_url = os.environ.get("LLM_BASE_URL")
    if env_llm_base_url:
        if not data.get('llm'):
            data['llm'] = {}
        data['llm']['base_url'] = env_llm_base_url

    return AppConfig(**data)
