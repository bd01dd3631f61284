from typing import Literal

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    PROJECT_TITLE: str = "Timekeeper"
    MONGODB_URL: str = "mongodb://localhost:27017"
    DATABASE_NAME: str = "timekeeper"
    PRODUCTION_MODE: bool = False
    SECRET_KEY: str = "change-me"
    ALGORITHM: str = "HS256"

    # calendar days in reports are cut at midnight in this zone
    REPORT_TIMEZONE: str = "UTC"
    CHECKOUT_OPEN_BREAK_POLICY: Literal["reject", "auto_close"] = "reject"

    OPENAI_API_KEY: str = ""
    OPENAI_API_URL: str = "https://api.openai.com/v1/chat/completions"
    OPENAI_MODEL: str = "gpt-3.5-turbo"
    INSIGHT_MAX_TOKENS: int = 150
    BREAK_ADVICE_MAX_TOKENS: int = 100
    INSIGHT_TIMEOUT_SECONDS: float = 30.0

    BREAK_SUGGESTION_INTERVAL_MINUTES: int = 5

    class Config:
        env_file = ".env"

settings = Settings()
