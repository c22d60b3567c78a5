"""Recency filter deciding which remote items an ingestion cycle considers."""

from datetime import datetime, timedelta, timezone
from typing import Optional

from rssy.core.config import settings


def should_ingest(
    published: Optional[datetime],
    watermark: int,
    now: Optional[datetime] = None,
    lookback: Optional[timedelta] = None,
) -> bool:
    """
    Decide whether an item published at `published` is new enough.

    Cold start (watermark == 0): accept items published within `lookback` of
    `now` (7 days by default). Incremental: accept items published strictly
    after the watermark. Items without a publish time are always rejected.
    """
    if published is None:
        return False

    if published.tzinfo is None:
        published = published.replace(tzinfo=timezone.utc)

    if not watermark:
        now = now or datetime.now(timezone.utc)
        if lookback is None:
            lookback = timedelta(days=settings.RECENCY_LOOKBACK_DAYS)
        return published > now - lookback

    return published.timestamp() > watermark
