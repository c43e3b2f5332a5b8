import os
from functools import lru_cache
from typing import List

from dotenv import load_dotenv
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Vision/text classifier (OpenAI-compatible chat completions)
    OPENAI_API_KEY: str = ""
    CLASSIFIER_BASE_URL: str = "https://api.openai.com/v1"
    CLASSIFIER_MODEL: str = "gpt-4o"
    CLASSIFIER_TIMEOUT: float = 30.0
    CLASSIFIER_MAX_TOKENS: int = 500
    CLASSIFIER_IMAGE_DETAIL: str = "low"  # low detail keeps token usage down

    # Keyword fallback scorer
    VIOLENCE_KEYWORDS: List[str] = [
        "fight", "kill", "death", "blood", "weapon", "gun", "violence",
        "attack", "murder", "war", "combat", "shoot", "stab", "gore",
    ]
    INAPPROPRIATE_KEYWORDS: List[str] = [
        "adult", "explicit", "mature", "sex", "nude", "porn", "drug",
        "alcohol", "gambling", "profanity", "hate", "discrimination",
    ]

    # Push delivery (Expo push API format)
    PUSH_GATEWAY_URL: str = "https://exp.host/--/api/v2/push/send"
    PUSH_TIMEOUT: float = 10.0

    # Storage
    DATA_DIR: str = os.getenv("CHILDWATCH_DATA", "./.data")

    # General
    LOG_LEVEL: str = "INFO"
    CORS_ORIGINS: List[str] = ["http://localhost:8081", "http://localhost:19006"]
    ENV: str = os.getenv("ENV", "development")

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    # Ensure .env is loaded once
    load_dotenv(override=False)
    return Settings()
