"""
Daily digest notifications.

Collects a user's unread articles from highlighted feeds published yesterday
and pushes them as one markdown message to a webhook. Delivery is a single
best-effort POST; failures are logged and never retried.
"""

import httpx
import logging
from datetime import date, datetime
from typing import List, Optional
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from rssy.core.config import settings
from rssy.models.article import Article
from rssy.models.feed import Feed
from rssy.services.feeds import FeedService
from rssy.services.time_window import day_bounds, resolve_timezone, yesterday

logger = logging.getLogger(__name__)


def format_digest(email: str, day: date, articles: List[Article]) -> dict:
    """Build the webhook payload: title, markdown content and a short description."""
    lines = [f"Unread highlighted RSS articles from yesterday ({day.isoformat()}):", ""]
    for article in articles:
        lines.append(f"- [{article.title}]({article.link})")

    return {
        "title": f"Daily RSS digest - {email}",
        "content": "\n".join(lines) + "\n",
        "description": f"{len(articles)} articles in total",
    }


class NotificationDispatcher:
    def __init__(
        self,
        feeds: FeedService,
        webhook_url: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        self.feeds = feeds
        self.webhook_url = webhook_url if webhook_url is not None else settings.NOTIFY_WEBHOOK_URL
        self.timeout = timeout or settings.HTTP_TIMEOUT_SECONDS

    def highlighted_unread_articles(
        self, db: Session, email: str, day: date, tz=None
    ) -> List[Article]:
        """Unread, non-deleted articles of the user's highlighted feeds published on `day`."""
        feed_ids = [fid for (fid,) in db.query(Feed.id).filter(Feed.email == email).all()]
        metas = self.feeds.get_feed_metas(db, feed_ids)
        highlighted = [fid for fid, meta in metas.items() if meta.highlight]
        if not highlighted:
            return []

        start, end = day_bounds(day, tz or settings.tz)
        return (
            db.query(Article)
            .filter(
                Article.email == email,
                Article.feed_id.in_(highlighted),
                Article.read == False,
                Article.deleted == False,
                Article.publish_at >= start,
                Article.publish_at < end,
            )
            .order_by(Article.publish_at.asc())
            .all()
        )

    async def dispatch(
        self, db: Session, email: str, now: datetime, timezone_name: Optional[str] = None
    ) -> bool:
        """
        Send yesterday's digest for `email`. Returns True if a POST was made.

        Nothing is sent when there are no matching articles or the lookup fails.
        """
        tz = resolve_timezone(timezone_name)
        day = yesterday(now.astimezone(tz))

        try:
            articles = self.highlighted_unread_articles(db, email, day, tz)
        except SQLAlchemyError as e:
            logger.error(f"Could not load digest articles for {email}: {str(e)}")
            return False

        if not articles:
            logger.info(f"No unread highlighted articles for {email} on {day}, skipping digest")
            return False

        if not self.webhook_url:
            logger.warning(f"NOTIFY_WEBHOOK_URL is not set, digest for {email} not sent")
            return False

        payload = format_digest(email, day, articles)
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(self.webhook_url, json=payload)
        except httpx.HTTPError as e:
            logger.error(f"Failed to send digest for {email}: {str(e)}")
            return True

        try:
            result = response.json()
        except ValueError:
            result = response.text
        logger.info(
            f"Notification result for {email}: status={response.status_code} body={result}"
        )
        return True
