"""
Pytest configuration and fixtures for rssy tests.
"""

import pytest
from datetime import datetime, timezone
from typing import Generator
from unittest.mock import AsyncMock, Mock
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

import rssy.models  # noqa: F401
from rssy.container import build_services
from rssy.core.cache import TTLCache
from rssy.core.database import Base
from rssy.models.article import Article
from rssy.models.feed import Feed
from rssy.services.rss_fetcher import FeedItem, ParsedFeed


# Use in-memory SQLite database for tests
TEST_DATABASE_URL = "sqlite:///:memory:"

TEST_EMAIL = "test@example.com"


def ts(dt: datetime) -> int:
    return int(dt.timestamp())


def make_item(title: str, published: datetime, content: str = "") -> FeedItem:
    return FeedItem(
        title=title,
        link=f"https://example.com/{title.lower().replace(' ', '-')}",
        content=content,
        published=published,
    )


def make_article(feed: Feed, title: str, published: datetime, **kwargs) -> Article:
    values = dict(
        feed_id=feed.id,
        email=feed.email,
        name=feed.title,
        title=title,
        link=f"https://example.com/{title.lower().replace(' ', '-')}",
        content="",
        read=False,
        deleted=False,
        create_at=ts(published),
        publish_at=ts(published),
    )
    values.update(kwargs)
    return Article(**values)


@pytest.fixture(scope="function")
def db_engine():
    """Create a test database engine."""
    engine = create_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(scope="function")
def session_factory(db_engine):
    """Session factory bound to the test engine, as used by the services."""
    return sessionmaker(autocommit=False, autoflush=False, bind=db_engine)


@pytest.fixture(scope="function")
def db_session(session_factory) -> Generator[Session, None, None]:
    """Create a test database session."""
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(scope="function")
def fixed_now() -> datetime:
    return datetime(2024, 5, 10, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture(scope="function")
def cache() -> TTLCache:
    return TTLCache(ttl=3600)


@pytest.fixture(scope="function")
def mock_fetcher():
    """Fetcher double whose fetch_feed result each test sets."""
    fetcher = Mock()
    fetcher.fetch_feed = AsyncMock(
        return_value=ParsedFeed(url="https://example.com/feed.xml", title="Example Feed")
    )
    return fetcher


@pytest.fixture(scope="function")
def services(session_factory, mock_fetcher):
    """Service container wired to the test database, without LLM or webhook."""
    return build_services(
        session_factory=session_factory,
        fetcher=mock_fetcher,
        completion=None,
        webhook_url="",
    )


@pytest.fixture(scope="function")
def test_feed(db_session) -> Feed:
    """Create a test feed that has never been fetched."""
    feed = Feed(
        url="https://example.com/feed.xml",
        title="Example Feed",
        email=TEST_EMAIL,
        create_at=1700000000,
        priority=1,
        last_fetched_at=0,
    )
    db_session.add(feed)
    db_session.commit()
    db_session.refresh(feed)
    return feed


@pytest.fixture(scope="function")
def other_feed(db_session) -> Feed:
    """A second feed of the same user."""
    feed = Feed(
        url="https://other.example.org/rss",
        title="Other Feed",
        email=TEST_EMAIL,
        create_at=1700000100,
        priority=1,
        last_fetched_at=0,
    )
    db_session.add(feed)
    db_session.commit()
    db_session.refresh(feed)
    return feed


@pytest.fixture
def mock_rss_feed_data():
    """Mock RSS feed XML data."""
    return """<?xml version="1.0" encoding="UTF-8"?>
    <rss version="2.0">
        <channel>
            <title>Example Feed</title>
            <link>https://example.com</link>
            <description>Example RSS feed</description>
            <item>
                <title>Test Article 1</title>
                <link>https://example.com/article-1</link>
                <description>First test article</description>
                <pubDate>Fri, 10 May 2024 10:00:00 GMT</pubDate>
            </item>
            <item>
                <title>Test Article 2</title>
                <link>https://example.com/article-2</link>
                <description>Second test article</description>
                <pubDate>Thu, 09 May 2024 10:00:00 GMT</pubDate>
            </item>
            <item>
                <title>Undated Article</title>
                <link>https://example.com/article-3</link>
                <description>No date at all</description>
            </item>
        </channel>
    </rss>
    """
