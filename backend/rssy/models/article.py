from sqlalchemy import (
    Column,
    Integer,
    String,
    Text,
    Boolean,
    BigInteger,
    ForeignKey,
    Index,
)
from sqlalchemy.orm import relationship
from rssy.core.database import Base
import time
import uuid


class Article(Base):
    __tablename__ = "articles"

    # Generated, never derived from the source item
    uid = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    feed_id = Column(
        Integer, ForeignKey("feeds.id", ondelete="CASCADE"), nullable=False, index=True
    )
    email = Column(String, nullable=False, index=True)
    name = Column(String, default="")  # Source (feed) title at ingestion time

    # Original item data
    title = Column(String, nullable=False)
    link = Column(String, default="")
    content = Column(Text, default="")

    # State
    read = Column(Boolean, default=False, index=True)
    deleted = Column(Boolean, default=False)

    create_at = Column(BigInteger, default=lambda: int(time.time()))
    publish_at = Column(BigInteger, nullable=False, index=True)

    # Relationships
    feed = relationship("Feed", back_populates="articles")

    # Title uniqueness per (feed, owner) is checked before insert, not enforced here
    __table_args__ = (Index("idx_article_feed_email_title", "feed_id", "email", "title"),)
