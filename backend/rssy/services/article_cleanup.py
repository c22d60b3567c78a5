"""
Article cleanup service - retention policies for stored articles.

Removes a user's articles older than their retention window, or all of their
read articles on demand.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional
from sqlalchemy.orm import Session

from rssy.models.article import Article
from rssy.models.preference import DEFAULT_CLEANUP_EXPIRED_DAYS

logger = logging.getLogger(__name__)


class ArticleCleanupService:
    """Service for pruning old or read articles."""

    def __init__(self, db: Session):
        self.db = db

    def cleanup_expired_articles(
        self, email: str, days: int, now: Optional[datetime] = None
    ) -> int:
        """
        Delete the user's articles published more than `days` days ago.

        Args:
            email: Owner of the articles
            days: Retention window; values <= 0 use the default of 30
            now: Reference time (defaults to the current time)

        Returns:
            Number of articles deleted
        """
        if days <= 0:
            days = DEFAULT_CLEANUP_EXPIRED_DAYS

        now = now or datetime.now(timezone.utc)
        cutoff = int((now - timedelta(days=days)).timestamp())

        deleted = (
            self.db.query(Article)
            .filter(Article.email == email, Article.publish_at < cutoff)
            .delete(synchronize_session=False)
        )
        self.db.commit()

        logger.info(f"Deleted {deleted} articles older than {days} days for {email}")
        return deleted

    def cleanup_read_articles(self, email: str) -> int:
        """Delete every read article of the user. Returns the number deleted."""
        deleted = (
            self.db.query(Article)
            .filter(Article.email == email, Article.read == True)
            .delete(synchronize_session=False)
        )
        self.db.commit()

        logger.info(f"Deleted {deleted} read articles for {email}")
        return deleted
