"""Configuration for PersonaChat."""

from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """PersonaChat configuration settings."""

    # Storage
    DATABASE_URL: str = "sqlite+aiosqlite:///./data/personachat.db"

    # Redis for Celery
    REDIS_URL: str = "redis://redis:6379/0"

    # Zone used by the trigger to compute "now" for each tick
    TIMEZONE: str = "UTC"

    # Dispatch policy
    DISPATCH_SEND_HOUR: int = 9
    DISPATCH_WEEKLY_WEEKDAY: int = 0  # Monday

    # Quota
    DEFAULT_USAGE_LIMIT: int = 100

    # Text generation (OpenAI-compatible chat completions)
    OPENAI_API_KEY: Optional[str] = None
    OPENAI_BASE_URL: str = "https://api.openai.com/v1"
    OPENAI_MODEL: str = "gpt-4o"
    OPENAI_MAX_TOKENS: int = 200
    OPENAI_TEMPERATURE: float = 0.7

    # Voice synthesis
    VOICE_ENABLED: bool = False
    OPENAI_TTS_MODEL: str = "tts-1"
    OPENAI_TTS_VOICE: str = "alloy"
    VOICE_STORAGE_DIR: str = "./data/voice"
    VOICE_URL_PREFIX: str = "/voice"

    # WhatsApp relay (Green API)
    GREEN_API_URL: str = "https://api.green-api.com"
    GREEN_API_INSTANCE_ID: Optional[str] = None
    GREEN_API_TOKEN: Optional[str] = None

    # Capability timeouts (seconds)
    GENERATION_TIMEOUT: float = 30.0
    VOICE_TIMEOUT: float = 30.0
    DELIVERY_TIMEOUT: float = 15.0

    # API server
    API_HOST: str = "0.0.0.0"
    API_PORT: int = 8000
    LOG_LEVEL: str = "INFO"

    # Generation circuit breaker
    GENERATION_FAILURE_THRESHOLD: int = 3
    GENERATION_RECOVERY_TIMEOUT: float = 300.0

    class Config:
        env_file = ".env"


# Global settings instance
settings = Settings()
