from sqlalchemy import Column, Integer, String, Boolean, BigInteger, UniqueConstraint
from sqlalchemy.orm import relationship
from rssy.core.database import Base
import time


class Feed(Base):
    __tablename__ = "feeds"

    id = Column(Integer, primary_key=True, index=True)
    url = Column(String, nullable=False, index=True)
    title = Column(String, default="")
    email = Column(String, nullable=False, index=True)  # Owner identity
    create_at = Column(BigInteger, default=lambda: int(time.time()))
    priority = Column(Integer, default=1)

    # Unix time of the last successful ingestion, 0 = never fetched
    last_fetched_at = Column(BigInteger, default=0, nullable=False)

    # Display flags
    hide_unread = Column(Boolean, default=False)
    enable_readability = Column(Boolean, default=False)
    highlight = Column(Boolean, default=False)

    # Relationships
    articles = relationship(
        "Article",
        back_populates="feed",
        cascade="all, delete-orphan",
    )

    __table_args__ = (UniqueConstraint("url", "email", name="uq_feed_url_email"),)

    def __repr__(self):
        return f"<Feed {self.id} {self.url} ({self.email})>"
