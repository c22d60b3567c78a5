from sqlalchemy import Column, Integer, String, Text, DateTime, UniqueConstraint
from datetime import datetime
from rssy.core.database import Base


class AISummary(Base):
    __tablename__ = "ai_summaries"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, nullable=False, index=True)
    date = Column(String, nullable=False, index=True)  # YYYY-MM-DD in the user's zone

    title = Column(String, nullable=False)
    summary = Column(Text, nullable=False)
    categories = Column(Text, default="")
    article_count = Column(Integer, default=0)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # At most one digest per user and day; generation is an upsert
    __table_args__ = (UniqueConstraint("email", "date", name="uq_ai_summary_email_date"),)
