"""Application configuration"""
from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    """Application settings"""

    # Redis
    redis_url: str = "redis://localhost:6379/0"

    # OpenAI
    openai_api_key: str
    openai_base_url: Optional[str] = None
    openai_model: str = "gpt-4-turbo-preview"
    openai_timeout_seconds: float = 30.0
    ai_max_retries: int = 3
    ai_backoff_seconds: float = 1.0

    # Supabase (PostgREST persistence, optional)
    supabase_url: Optional[str] = None
    supabase_service_role_key: Optional[str] = None

    # Security
    secret_key: str = "change-me"
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 60

    # Application
    environment: str = "development"
    log_level: str = "INFO"

    # Cache
    cache_key_prefix: str = "smart-recruiter:"
    cache_default_ttl: int = 3600
    cache_ttl_cv_analysis: int = 3600
    cache_ttl_questions: int = 7200
    cache_ttl_interview_analysis: int = 1800
    cache_ttl_job_requirements: int = 14400

    # Queues
    queue_key_prefix: str = "queue:"
    queue_concurrency: int = 2
    queue_max_attempts: int = 3
    queue_backoff_seconds: float = 2.0
    queue_poll_interval: float = 0.5
    queue_keep_completed: int = 100
    queue_keep_failed: int = 50
    queue_stalled_job_seconds: int = 0  # 0 disables stall recovery on start

    # Rate limiting
    rate_limit_enabled: bool = True
    rate_limit_window_seconds: int = 900
    rate_limit_max_requests: int = 100

    # Batch CV analysis
    batch_size_limit: int = 5
    batch_delay_seconds: float = 1.0

    class Config:
        env_file = ".env"
        case_sensitive = False


def get_settings() -> Settings:
    """Build settings from the environment."""
    return Settings()
