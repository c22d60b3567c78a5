"""
Title-based duplicate detection for incoming feed items.

Known limitation: equality of titles is a coarse heuristic. Two different
items that share a title within one feed are treated as duplicates and the
second is never stored. The index is scoped per (feed, owner), so identical
generic titles in different feeds do not collide.
"""

import logging
from typing import Iterable, List, Set
from sqlalchemy.orm import Session
from rssy.models.article import Article
from rssy.services.rss_fetcher import FeedItem

logger = logging.getLogger(__name__)


class DuplicateDetector:
    """Skips items whose title is already stored for the same feed and owner."""

    def __init__(self, db: Session):
        self.db = db

    def load_titles(self, feed_id: int, email: str) -> Set[str]:
        """Load every stored title for (feed, owner) in one query."""
        rows = (
            self.db.query(Article.title)
            .filter(Article.feed_id == feed_id, Article.email == email)
            .all()
        )
        return {title for (title,) in rows}

    def filter_new(
        self, items: Iterable[FeedItem], known_titles: Set[str]
    ) -> List[FeedItem]:
        """
        Return the items whose titles are not in `known_titles`.

        Titles accepted from this batch are added to the set, so an item
        repeated inside one payload is stored once.
        """
        seen = set(known_titles)
        fresh = []
        for item in items:
            if item.title in seen:
                logger.info(f"Skipping duplicate article: {item.title}")
                continue
            seen.add(item.title)
            fresh.append(item)
        return fresh
