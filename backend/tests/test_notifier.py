"""Tests for the daily digest notification."""

import httpx
import pytest
from datetime import date, datetime
from unittest.mock import AsyncMock, Mock, patch
from zoneinfo import ZoneInfo
from conftest import TEST_EMAIL, make_article
from rssy.services.feeds import FeedService
from rssy.services.notifier import NotificationDispatcher, format_digest

SHANGHAI = ZoneInfo("Asia/Shanghai")
NOW = datetime(2024, 5, 10, 9, 5, tzinfo=SHANGHAI)
WEBHOOK = "https://hooks.example.com/notify"


@pytest.fixture
def dispatcher(cache):
    return NotificationDispatcher(FeedService(cache), webhook_url=WEBHOOK)


@pytest.fixture
def highlighted_feed(db_session, test_feed):
    test_feed.highlight = True
    db_session.commit()
    return test_feed


@pytest.fixture
def digest_articles(db_session, highlighted_feed, other_feed):
    articles = [
        make_article(highlighted_feed, "Wanted", datetime(2024, 5, 9, 12, 0, tzinfo=SHANGHAI)),
        make_article(
            highlighted_feed, "Already Read", datetime(2024, 5, 9, 13, 0, tzinfo=SHANGHAI), read=True
        ),
        make_article(highlighted_feed, "Today", datetime(2024, 5, 10, 8, 0, tzinfo=SHANGHAI)),
        make_article(other_feed, "Not Highlighted", datetime(2024, 5, 9, 12, 0, tzinfo=SHANGHAI)),
    ]
    db_session.add_all(articles)
    db_session.commit()
    return articles


def ok_response(body=None):
    response = Mock(status_code=200, text="ok")
    response.json = Mock(return_value=body or {"code": 0})
    return response


@pytest.mark.unit
class TestFormatDigest:
    def test_payload_shape(self):
        articles = [
            Mock(title="First", link="https://example.com/1"),
            Mock(title="Second", link="https://example.com/2"),
        ]

        payload = format_digest(TEST_EMAIL, date(2024, 5, 9), articles)

        assert set(payload) == {"title", "content", "description"}
        assert TEST_EMAIL in payload["title"]
        assert "- [First](https://example.com/1)" in payload["content"]
        assert "- [Second](https://example.com/2)" in payload["content"]
        assert payload["description"] == "2 articles in total"


@pytest.mark.unit
class TestNotificationDispatcher:
    def test_selects_unread_highlighted_from_yesterday(self, dispatcher, db_session, digest_articles):
        articles = dispatcher.highlighted_unread_articles(
            db_session, TEST_EMAIL, date(2024, 5, 9), SHANGHAI
        )

        assert [a.title for a in articles] == ["Wanted"]

    def test_article_deleted_by_user_is_left_out(self, dispatcher, db_session, digest_articles):
        dispatcher.feeds.delete_article(db_session, digest_articles[0].uid, TEST_EMAIL)

        articles = dispatcher.highlighted_unread_articles(
            db_session, TEST_EMAIL, date(2024, 5, 9), SHANGHAI
        )

        assert articles == []

    @pytest.mark.asyncio
    async def test_dispatch_posts_once(self, dispatcher, db_session, digest_articles):
        with patch("httpx.AsyncClient.post", new_callable=AsyncMock) as mock_post:
            mock_post.return_value = ok_response()

            sent = await dispatcher.dispatch(db_session, TEST_EMAIL, NOW, "Asia/Shanghai")

        assert sent is True
        mock_post.assert_awaited_once()
        assert mock_post.await_args.args[0] == WEBHOOK
        payload = mock_post.await_args.kwargs["json"]
        assert payload["description"] == "1 articles in total"
        assert "[Wanted]" in payload["content"]

    @pytest.mark.asyncio
    async def test_no_articles_no_post(self, dispatcher, db_session, highlighted_feed):
        with patch("httpx.AsyncClient.post", new_callable=AsyncMock) as mock_post:
            sent = await dispatcher.dispatch(db_session, TEST_EMAIL, NOW, "Asia/Shanghai")

        assert sent is False
        mock_post.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_no_highlighted_feeds_no_post(self, dispatcher, db_session, test_feed):
        db_session.add(make_article(test_feed, "Plain", datetime(2024, 5, 9, 12, 0, tzinfo=SHANGHAI)))
        db_session.commit()

        with patch("httpx.AsyncClient.post", new_callable=AsyncMock) as mock_post:
            sent = await dispatcher.dispatch(db_session, TEST_EMAIL, NOW, "Asia/Shanghai")

        assert sent is False
        mock_post.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_missing_webhook_no_post(self, cache, db_session, digest_articles):
        dispatcher = NotificationDispatcher(FeedService(cache), webhook_url="")

        with patch("httpx.AsyncClient.post", new_callable=AsyncMock) as mock_post:
            sent = await dispatcher.dispatch(db_session, TEST_EMAIL, NOW, "Asia/Shanghai")

        assert sent is False
        mock_post.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_post_failure_is_not_retried(self, dispatcher, db_session, digest_articles):
        with patch("httpx.AsyncClient.post", new_callable=AsyncMock) as mock_post:
            mock_post.side_effect = httpx.ConnectError("connection refused")

            sent = await dispatcher.dispatch(db_session, TEST_EMAIL, NOW, "Asia/Shanghai")

        assert sent is True
        assert mock_post.await_count == 1

    @pytest.mark.asyncio
    async def test_non_json_response_is_logged(self, dispatcher, db_session, digest_articles):
        response = Mock(status_code=502, text="bad gateway")
        response.json = Mock(side_effect=ValueError("not json"))

        with patch("httpx.AsyncClient.post", new_callable=AsyncMock) as mock_post:
            mock_post.return_value = response

            sent = await dispatcher.dispatch(db_session, TEST_EMAIL, NOW, "Asia/Shanghai")

        assert sent is True
