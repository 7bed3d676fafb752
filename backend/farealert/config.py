from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    env: str = "dev"
    database_url: str = "sqlite:///./data/farealert.db"
    database_timeout_seconds: int = 10
    log_level: str = "INFO"

    scheduler_enabled: bool = True
    price_check_interval_hours: int = 6
    pipeline_timeout_seconds: int = 600

    amadeus_client_id: str = ""
    amadeus_client_secret: str = ""
    amadeus_base_url: str = "https://test.api.amadeus.com"
    token_request_timeout_seconds: float = 10.0
    fare_request_timeout_seconds: float = 30.0
    token_expiry_margin_seconds: int = 60

    # Single fixed origin per deployment
    origin_airport: str = "ATL"
    currency: str = "USD"
    departure_lookahead_days: int = 30
    search_adults: int = 1
    search_max_results: int = 5

    rate_limit_delay_seconds: float = 1.0
    statistics_window_days: int = 90

    default_cooldown_days: int = 7
    default_max_alerts_per_week: int = 5
    default_timezone: str = "America/New_York"

    base_url: str = "http://localhost:8000"

    def model_post_init(self, __context):
        if self.env == "prod" and self.database_url.startswith("sqlite"):
            raise ValueError(
                "Production requires explicit DATABASE_URL (not SQLite)"
            )

    class Config:
        env_file = ".env"


@lru_cache
def get_settings() -> Settings:
    return Settings()
