"""
Feed ingestion: recency filter, title dedup and the atomic article insert.

The pipeline for one feed is Fetcher -> Recency Filter -> Duplicate Detector
-> ArticleIngestor. The insert and the watermark update commit together; if
the insert fails the watermark stays put so the next cycle retries the same
window.
"""

import asyncio
import logging
import uuid
from datetime import datetime, timezone
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Set, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from rssy.core.config import settings
from rssy.core.exceptions import FeedFetchError, FeedNotFoundError, IngestionError
from rssy.models.article import Article
from rssy.models.feed import Feed
from rssy.schemas.feed import Feed as FeedSchema, RefreshResult
from rssy.services.duplicate_detector import DuplicateDetector
from rssy.services.feeds import get_or_create_feed
from rssy.services.recency import should_ingest
from rssy.services.rss_fetcher import FeedItem, ParsedFeed, RSSFetcher

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ArticleIngestor:
    """Persists a feed's new items and advances its watermark in one transaction."""

    def __init__(self, db: Session, batch_size: Optional[int] = None):
        self.db = db
        self.batch_size = batch_size or settings.INSERT_BATCH_SIZE

    def ingest(
        self,
        feed: Feed,
        items: Sequence[FeedItem],
        source_name: str,
        now: Optional[datetime] = None,
    ) -> List[Article]:
        """
        Insert `items` as articles of `feed` and set its watermark to `now`.

        `items` must already be recency-filtered and deduplicated.

        Raises:
            IngestionError: the insert or the watermark update failed; nothing
                was committed.
        """
        now_ts = int((now or utcnow()).timestamp())
        feed_id, email = feed.id, feed.email
        watermark = max(feed.last_fetched_at or 0, now_ts)

        articles = [
            Article(
                uid=str(uuid.uuid4()),
                feed_id=feed_id,
                email=email,
                name=source_name,
                title=item.title,
                link=item.link,
                content=item.content,
                read=False,
                deleted=False,
                create_at=now_ts,
                publish_at=int(item.published.timestamp()),
            )
            for item in items
        ]

        try:
            for start in range(0, len(articles), self.batch_size):
                self.db.add_all(articles[start : start + self.batch_size])
                self.db.flush()

            self.db.query(Feed).filter(Feed.id == feed_id).update(
                {"last_fetched_at": watermark}, synchronize_session=False
            )
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(
                f"Could not save articles for feed {feed_id}: {str(e)}",
                extra={"feed_id": feed_id, "email": email},
            )
            raise IngestionError(feed_id, f"could not create articles: {e}") from e

        logger.info(f"Stored {len(articles)} new articles for feed {feed_id} ({email})")
        return articles


class FeedRefresher:
    """
    Runs the fetch/filter/dedup/ingest pipeline for feeds.

    Each feed is handled in its own session. A feed already being refreshed
    is skipped rather than fetched twice concurrently.
    """

    def __init__(
        self,
        session_factory: sessionmaker,
        fetcher: Optional[RSSFetcher] = None,
        clock: Callable[[], datetime] = utcnow,
        max_concurrent: Optional[int] = None,
        min_refetch_age: Optional[int] = None,
    ):
        self.session_factory = session_factory
        self.fetcher = fetcher or RSSFetcher()
        self.clock = clock
        self.max_concurrent = max_concurrent or settings.FETCH_MAX_CONCURRENT
        if min_refetch_age is None:
            min_refetch_age = settings.MIN_REFETCH_AGE_SECONDS
        self.min_refetch_age = min_refetch_age
        self._in_flight: Set[int] = set()

    def is_due(self, last_fetched_at: int, now: datetime) -> bool:
        return now.timestamp() >= (last_fetched_at or 0) + self.min_refetch_age

    async def refresh_feed(
        self, feed_id: int, email: Optional[str] = None
    ) -> RefreshResult:
        """
        Fetch one feed and store its new articles.

        Raises:
            FeedNotFoundError: no such feed (for `email`, when given)
            IngestionError: the insert failed
        """
        if feed_id in self._in_flight:
            logger.info(f"Feed {feed_id} is already being refreshed, skipping")
            return RefreshResult(feed_id=feed_id, new_articles=0, skipped=True)

        self._in_flight.add(feed_id)
        try:
            with self.session_factory() as db:
                query = db.query(Feed).filter(Feed.id == feed_id)
                if email is not None:
                    query = query.filter(Feed.email == email)
                feed = query.first()
                if feed is None:
                    raise FeedNotFoundError(feed_id, email or "any user")
                url = feed.url

            parsed = await self.fetcher.fetch_feed(url)
            if not parsed.ok:
                # Watermark is left alone so the missed window is retried
                return RefreshResult(feed_id=feed_id, new_articles=0)

            return self._store(feed_id, parsed)
        finally:
            self._in_flight.discard(feed_id)

    def _store(self, feed_id: int, parsed: ParsedFeed) -> RefreshResult:
        now = self.clock()
        with self.session_factory() as db:
            feed = db.get(Feed, feed_id)
            if feed is None:
                logger.info(f"Feed {feed_id} was deleted during refresh")
                return RefreshResult(feed_id=feed_id, new_articles=0, skipped=True)

            recent = [
                item
                for item in parsed.items
                if should_ingest(item.published, feed.last_fetched_at, now)
            ]

            detector = DuplicateDetector(db)
            try:
                known = detector.load_titles(feed.id, feed.email)
            except SQLAlchemyError as e:
                db.rollback()
                raise IngestionError(feed_id, f"could not load existing titles: {e}") from e
            fresh = detector.filter_new(recent, known)

            logger.debug(
                f"Feed {feed_id}: {len(parsed.items)} fetched, {len(recent)} recent, "
                f"{len(fresh)} new"
            )

            articles = ArticleIngestor(db).ingest(
                feed, fresh, parsed.title or feed.title or "", now
            )

        return RefreshResult(feed_id=feed_id, new_articles=len(articles))

    async def refresh_all(self, emails: Optional[Iterable[str]] = None) -> Dict[str, int]:
        """
        Refresh every due feed owned by `emails` (all owners when empty).

        Feeds run concurrently up to `max_concurrent`; a failing feed is logged
        and does not affect the others.
        """
        now = self.clock()
        emails = list(emails or [])

        with self.session_factory() as db:
            query = db.query(Feed.id, Feed.url, Feed.last_fetched_at)
            if emails:
                query = query.filter(Feed.email.in_(emails))
            feeds = query.order_by(Feed.create_at.desc()).all()

        due = [f for f in feeds if f.id and self.is_due(f.last_fetched_at, now)]
        semaphore = asyncio.Semaphore(self.max_concurrent)

        async def run(feed_id: int, url: str) -> Optional[RefreshResult]:
            async with semaphore:
                try:
                    return await self.refresh_feed(feed_id)
                except IngestionError as e:
                    logger.error(
                        f"Ingestion failed for feed {feed_id} ({url}): {str(e)}",
                        extra={"feed_id": feed_id},
                    )
                except Exception as e:
                    logger.error(
                        f"Error refreshing feed {feed_id} ({url}): {str(e)}",
                        extra={"feed_id": feed_id},
                    )
                return None

        results = await asyncio.gather(*(run(f.id, f.url) for f in due))

        summary = {
            "feeds": len(feeds),
            "due": len(due),
            "refreshed": sum(1 for r in results if r is not None and not r.skipped),
            "failed": sum(1 for r in results if r is None),
            "new_articles": sum(r.new_articles for r in results if r is not None),
        }
        logger.info(
            f"Feed refresh cycle: {summary['due']}/{summary['feeds']} due, "
            f"{summary['new_articles']} new articles, {summary['failed']} failed"
        )
        return summary

    async def subscribe(self, url: str, email: str) -> Tuple[FeedSchema, int]:
        """
        Fetch `url`, look up or create the (url, email) feed and ingest it.

        Returns the feed and the number of articles stored.

        Raises:
            FeedFetchError: the URL did not yield a parseable feed
        """
        parsed = await self.fetcher.fetch_feed(url)
        if not parsed.ok:
            raise FeedFetchError(url)

        with self.session_factory() as db:
            feed = get_or_create_feed(db, url, email, parsed.title)
            feed_id = feed.id

        result = self._store(feed_id, parsed)

        with self.session_factory() as db:
            feed = FeedSchema.model_validate(db.get(Feed, feed_id))

        return feed, result.new_articles
