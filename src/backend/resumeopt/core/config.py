from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    database_url: str = "postgresql+asyncpg://localhost:5432/resumeopt"
    redis_url: str = "redis://localhost:6379/0"

    openai_api_key: str = ""
    openai_model: str = "gpt-4o"

    jwt_secret: str = "change-me-in-production"
    jwt_algorithm: str = "HS256"

    stripe_secret_key: str = ""
    stripe_webhook_secret: str = ""
    stripe_subscription_price_id: str = ""
    client_url: str = "http://localhost:3000"

    upload_dir: str = "uploads"
    max_upload_bytes: int = 5 * 1024 * 1024

    # Pay-per-use
    ppu_click_limit: int = 5
    service_prices: dict[str, int] = {  # cents, one-time services only
        "ats_report": 500,
        "job_optimization": 500,
        "review": 2500,
    }
    discount_codes: dict[str, float] = {}  # code -> fraction off

    analysis_cache_ttl: int = 86400  # 24 hours, 0 disables

    log_level: str = "INFO"
    expose_error_details: bool = False

    model_config = {"env_prefix": "RESUMEOPT_"}
