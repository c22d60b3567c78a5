from pydantic_settings import BaseSettings
from typing import List, Union, Optional
from pydantic import field_validator
from zoneinfo import ZoneInfo


DEFAULT_AI_SUMMARY_PROMPT = """Analyze and summarize the RSS articles below:

1. Overview: briefly describe the main topics
2. Categories: group the articles by theme, one "Theme: titles" line per group
3. Highlights: pick the 3-5 most valuable articles
4. Key insights: extract the key takeaways

Use a clear, structured format."""


class Settings(BaseSettings):
    # Database
    DATABASE_URL: str = "sqlite:///rssy.db"

    # Identity
    DEFAULT_EMAIL: str = "admin@localhost"
    REFRESH_EMAILS: Union[List[str], str] = []  # Empty means every feed owner

    @field_validator("REFRESH_EMAILS", mode="before")
    @classmethod
    def parse_refresh_emails(cls, v):
        if isinstance(v, str):
            return [email.strip() for email in v.split(",") if email.strip()]
        return v

    # Time
    TIMEZONE: str = "Asia/Shanghai"  # CST, UTC+8

    @field_validator("TIMEZONE")
    @classmethod
    def validate_timezone(cls, v):
        ZoneInfo(v)  # Raises for unknown zones
        return v

    @property
    def tz(self) -> ZoneInfo:
        return ZoneInfo(self.TIMEZONE)

    # Scheduling
    FEED_REFRESH_INTERVAL_MINUTES: int = 30
    MIN_REFETCH_AGE_SECONDS: int = 3600
    DAILY_TICK_SECONDS: int = 60
    TRIGGER_WINDOW_MINUTES: int = 10
    CLEANUP_INTERVAL_HOURS: int = 24
    DAILY_MAX_CONCURRENT: int = 5  # Users handled at once by the daily jobs

    # Ingestion
    RECENCY_LOOKBACK_DAYS: int = 7
    FETCH_MAX_CONCURRENT: int = 5  # Bounded worker pool for feed refresh
    INSERT_BATCH_SIZE: int = 10
    HTTP_TIMEOUT_SECONDS: float = 30.0
    USER_AGENT: str = "rssy/1.0 (+https://github.com/abcdlsj/rssy)"

    # LLM
    OPENAI_API_KEY: Optional[str] = None
    OPENAI_ENDPOINT: Optional[str] = None
    LLM_MODEL: str = "gpt-4o-mini"
    AI_CONTENT_CAP: int = 500  # Characters of content per article in the prompt
    AI_MIN_CONTENT_LENGTH: int = 100
    AI_MAX_ARTICLES: int = 200
    AI_SUMMARY_PROMPT: str = DEFAULT_AI_SUMMARY_PROMPT

    # Notifications
    NOTIFY_WEBHOOK_URL: Optional[str] = None

    # Caching
    CACHE_TTL_SECONDS: int = 3600

    # Logging
    LOG_LEVEL: str = "INFO"
    JSON_LOGS: bool = True

    # Application
    DEBUG: bool = False
    HOST: str = "0.0.0.0"
    PORT: int = 8080

    @property
    def has_llm_key(self) -> bool:
        return bool(self.OPENAI_API_KEY)

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"  # Ignore extra fields in .env


settings = Settings()
