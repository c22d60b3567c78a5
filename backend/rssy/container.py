"""Long-lived service objects, built once at startup and shared by jobs and routes."""

from dataclasses import dataclass
from typing import Optional
from sqlalchemy.orm import sessionmaker

from rssy.core.cache import TTLCache
from rssy.core.config import settings
from rssy.core.database import SessionLocal
from rssy.services.feeds import FeedService
from rssy.services.ingestion import FeedRefresher
from rssy.services.notifier import NotificationDispatcher
from rssy.services.preferences import PreferenceService
from rssy.services.rss_fetcher import RSSFetcher
from rssy.services.summary_generator import CompletionFn, build_completion

_UNSET = object()


@dataclass
class Services:
    session_factory: sessionmaker
    cache: TTLCache
    feeds: FeedService
    preferences: PreferenceService
    refresher: FeedRefresher
    notifier: NotificationDispatcher
    completion: Optional[CompletionFn]


def build_services(
    session_factory: sessionmaker = SessionLocal,
    fetcher: Optional[RSSFetcher] = None,
    completion=_UNSET,
    webhook_url: Optional[str] = None,
) -> Services:
    cache = TTLCache(ttl=settings.CACHE_TTL_SECONDS)
    feeds = FeedService(cache)

    return Services(
        session_factory=session_factory,
        cache=cache,
        feeds=feeds,
        preferences=PreferenceService(cache),
        refresher=FeedRefresher(session_factory, fetcher=fetcher),
        notifier=NotificationDispatcher(feeds, webhook_url=webhook_url),
        completion=build_completion() if completion is _UNSET else completion,
    )
