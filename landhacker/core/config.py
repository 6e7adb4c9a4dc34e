import os
from pydantic import BaseModel

class Settings(BaseModel):
    # Basic
    ENV: str = os.getenv("ENV", "dev")
    CACHE_TTL_SECONDS: int = int(os.getenv("CACHE_TTL_SECONDS", "43200"))

    # Models
    MODEL_PROVIDER: str = os.getenv("MODEL_PROVIDER", "mock")  # mock | openai
    AI_TIMEOUT_SECONDS: float = float(os.getenv("AI_TIMEOUT_SECONDS", "60"))

    # LLM
    OPENAI_API_KEY: str | None = os.getenv("OPENAI_API_KEY")
    OPENAI_MODEL: str = os.getenv("OPENAI_MODEL", "gpt-4o")

    # Data providers
    DISTANCE_PROVIDER: str = os.getenv("DISTANCE_PROVIDER", "mock")    # mock | http
    GOOGLE_MAPS_API_KEY: str | None = os.getenv("GOOGLE_MAPS_API_KEY")
    DISTANCE_BASE_URL: str = os.getenv(
        "DISTANCE_BASE_URL", "https://maps.googleapis.com/maps/api/distancematrix/json"
    )
    STORAGE_PROVIDER: str = os.getenv("STORAGE_PROVIDER", "memory")    # memory | http
    STORAGE_BASE_URL: str | None = os.getenv("STORAGE_BASE_URL")

    # Billing
    ANALYSIS_CREDIT_COST: int = int(os.getenv("ANALYSIS_CREDIT_COST", "1"))
    DEMO_USER_CREDITS: int = int(os.getenv("DEMO_USER_CREDITS", "100"))

    # Security
    AUTH_PROVIDER: str = os.getenv("AUTH_PROVIDER", "dev")             # dev | http
    AUTH_BASE_URL: str | None = os.getenv("AUTH_BASE_URL")

    # CORS
    ALLOW_ORIGINS: str = os.getenv("ALLOW_ORIGINS", "*")

    # Cache
    USE_REDIS: bool = os.getenv("USE_REDIS", "false").lower() == "true"
    REDIS_URL: str = os.getenv("REDIS_URL", "redis://localhost:6379/0")

    # Metrics
    PROMETHEUS_ENABLED: bool = os.getenv("PROMETHEUS_ENABLED", "true").lower() == "true"

settings = Settings()
