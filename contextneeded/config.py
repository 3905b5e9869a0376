"""ContextNeeded configuration — loaded from environment variables."""

from typing import Literal

from pydantic_settings import BaseSettings

from contextneeded.models.submission import RateLimitPolicy


class Settings(BaseSettings):
    model_config = {"env_prefix": "CONTEXTNEEDED_", "env_file": ".env"}

    # Question sources
    question_source: Literal["api", "store", "csv"] = "api"
    random_question_api_url: str = (
        "https://us-central1-contextisneeded.cloudfunctions.net/getRandomQuestion"
    )
    csv_url: str = (
        "https://hebbkx1anhila5yf.public.blob.vercel-storage.com/"
        "ContextIsNeeded-aRVPvaGSpJEhXQ7RKlXGxn9UxL769l.csv"
    )
    batch_size: int = 12
    batch_timeout_ms: int = 8000
    http_timeout: float = 10.0

    # Submission limits
    rate_limit_max_per_hour: int = 3
    rate_limit_max_per_day: int = 10
    rate_limit_cooldown_minutes: int = 5

    # Database
    database_path: str = "contextneeded.db"

    # Server
    cors_origins: list[str] = ["http://localhost:3000"]
    host: str = "0.0.0.0"
    port: int = 8000

    def rate_limit_policy(self) -> RateLimitPolicy:
        return RateLimitPolicy(
            max_per_hour=self.rate_limit_max_per_hour,
            max_per_day=self.rate_limit_max_per_day,
            cooldown_minutes=self.rate_limit_cooldown_minutes,
        )


settings = Settings()
