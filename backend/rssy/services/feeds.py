"""Feed lookup, maintenance and cached display metadata."""

import logging
import time
from typing import Dict, List, Optional
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from rssy.core.cache import SCOPE_FEED_META, TTLCache
from rssy.core.exceptions import FeedNotFoundError
from rssy.models.article import Article
from rssy.models.feed import Feed
from rssy.schemas.feed import FeedFlagsUpdate, FeedMeta

logger = logging.getLogger(__name__)


def get_or_create_feed(db: Session, url: str, email: str, title: str = "") -> Feed:
    """Return the (url, email) feed, creating it with a zero watermark if absent."""
    feed = db.query(Feed).filter(Feed.url == url, Feed.email == email).first()
    if feed:
        return feed

    feed = Feed(
        url=url,
        email=email,
        title=title or "",
        create_at=int(time.time()),
        priority=1,
        last_fetched_at=0,
    )
    db.add(feed)
    try:
        db.commit()
    except IntegrityError:
        # Created concurrently by another subscriber
        db.rollback()
        return db.query(Feed).filter(Feed.url == url, Feed.email == email).one()

    db.refresh(feed)
    logger.info(f"Created feed {feed.id} for {email}: {url}")
    return feed


class FeedService:
    """Feed maintenance operations that keep the feed-meta cache coherent."""

    def __init__(self, cache: TTLCache):
        self.cache = cache

    def list_feeds(self, db: Session, email: str) -> List[Feed]:
        return (
            db.query(Feed)
            .filter(Feed.email == email)
            .order_by(Feed.create_at.desc())
            .all()
        )

    def get_feed(self, db: Session, feed_id: int, email: str) -> Feed:
        feed = db.query(Feed).filter(Feed.id == feed_id, Feed.email == email).first()
        if not feed:
            raise FeedNotFoundError(feed_id, email)
        return feed

    def get_feed_meta(self, db: Session, feed_id: int) -> FeedMeta:
        """Read-through cached display flags of a feed (defaults if it is gone)."""

        def load() -> Optional[FeedMeta]:
            feed = db.query(Feed).filter(Feed.id == feed_id).first()
            if feed is None:
                logger.info(f"Could not get feed {feed_id} for metadata")
                return None
            return FeedMeta.model_validate(feed)

        return self.cache.get_or_load(SCOPE_FEED_META, feed_id, load) or FeedMeta()

    def get_feed_metas(self, db: Session, feed_ids: List[int]) -> Dict[int, FeedMeta]:
        return {feed_id: self.get_feed_meta(db, feed_id) for feed_id in feed_ids}

    def update_feed_flags(
        self, db: Session, feed_id: int, email: str, update: FeedFlagsUpdate
    ) -> Feed:
        feed = self.get_feed(db, feed_id, email)

        changes = {
            key: value
            for key, value in update.model_dump(exclude_unset=True).items()
            if value is not None and getattr(feed, key) != value
        }
        if not changes:
            return feed

        for key, value in changes.items():
            setattr(feed, key, value)

        try:
            db.commit()
        finally:
            self.cache.delete(SCOPE_FEED_META, feed_id)

        db.refresh(feed)
        return feed

    def delete_feed(self, db: Session, feed_id: int, email: str) -> int:
        """Delete a feed and its articles. Returns the number of articles removed."""
        feed = self.get_feed(db, feed_id, email)

        deleted = (
            db.query(Article)
            .filter(Article.feed_id == feed_id, Article.email == email)
            .delete(synchronize_session=False)
        )
        db.delete(feed)
        try:
            db.commit()
        finally:
            self.cache.delete(SCOPE_FEED_META, feed_id)

        logger.info(f"Deleted feed {feed_id} and {deleted} articles for {email}")
        return deleted

    def mark_article_read(self, db: Session, uid: str, email: str) -> Optional[Article]:
        article = (
            db.query(Article).filter(Article.uid == uid, Article.email == email).first()
        )
        if article is None:
            return None

        if not article.read:
            article.read = True
            db.commit()
            db.refresh(article)
        return article

    def delete_article(self, db: Session, uid: str, email: str) -> Optional[Article]:
        """
        Soft-delete an article. Returns None if it is unknown or already deleted.

        The row is kept so its title stays in the feed's duplicate index and
        the item is not stored again on the next refresh.
        """
        article = (
            db.query(Article)
            .filter(Article.uid == uid, Article.email == email, Article.deleted == False)
            .first()
        )
        if article is None:
            return None

        article.deleted = True
        db.commit()
        db.refresh(article)
        logger.info(f"Deleted article {uid} for {email}")
        return article
