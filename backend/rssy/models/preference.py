from sqlalchemy import Column, Integer, String, Text, Boolean, DateTime
from datetime import datetime
from rssy.core.database import Base
from rssy.core.config import DEFAULT_AI_SUMMARY_PROMPT


DEFAULT_CLEANUP_EXPIRED_DAYS = 30


class UserPreference(Base):
    __tablename__ = "user_preferences"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, nullable=False, index=True)

    # Cleanup
    cleanup_expired_days = Column(Integer, default=DEFAULT_CLEANUP_EXPIRED_DAYS)
    enable_auto_cleanup = Column(Boolean, default=False)

    # Daily digest notification
    enable_notify = Column(Boolean, default=False)
    notify_time = Column(String, default="09:00")  # HH:MM

    # AI summary
    enable_ai_summary = Column(Boolean, default=False)
    ai_summary_time = Column(String, default="08:00")  # HH:MM
    ai_summary_prompt = Column(Text, default=DEFAULT_AI_SUMMARY_PROMPT)

    # IANA zone name; falls back to the configured TIMEZONE when empty
    timezone = Column(String, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
