"""Tests for AI summary generation and its fallback digest."""

import pytest
from datetime import date, datetime
from types import SimpleNamespace
from unittest.mock import AsyncMock, Mock, patch
from zoneinfo import ZoneInfo
from conftest import TEST_EMAIL, make_article
from rssy.core.exceptions import CompletionError
from rssy.models.ai_summary import AISummary
from rssy.schemas.preference import UserPreferenceUpdate
from rssy.services.feeds import FeedService
from rssy.services.preferences import PreferenceService
from rssy.services.summary_generator import (
    AISummaryGenerator,
    OpenAICompletion,
    extract_categories,
    fallback_summary,
    format_articles_for_ai,
)

UTC = ZoneInfo("UTC")
DAY = date(2024, 5, 9)

COMPLETION_TEXT = """Overview of the day.

## Categories
- Technology: 2 articles
- Science: 1 article

## Highlights
The rest of the text.
"""


@pytest.fixture
def preferences(cache, db_session):
    service = PreferenceService(cache)
    service.update(db_session, TEST_EMAIL, UserPreferenceUpdate(timezone="UTC"))
    return service


@pytest.fixture
def day_articles(db_session, test_feed, other_feed):
    articles = [
        make_article(test_feed, "Morning", datetime(2024, 5, 9, 8, 0, tzinfo=UTC)),
        make_article(test_feed, "Evening", datetime(2024, 5, 9, 22, 0, tzinfo=UTC)),
        make_article(other_feed, "Noon", datetime(2024, 5, 9, 12, 0, tzinfo=UTC)),
        make_article(test_feed, "Next Day", datetime(2024, 5, 10, 0, 30, tzinfo=UTC)),
        make_article(
            test_feed, "Deleted", datetime(2024, 5, 9, 9, 0, tzinfo=UTC), deleted=True
        ),
    ]
    db_session.add_all(articles)
    db_session.commit()
    return articles


@pytest.mark.unit
class TestAISummaryGenerator:
    def test_articles_for_day_respects_bounds(self, db_session, preferences, day_articles):
        generator = AISummaryGenerator(db_session, preferences)

        titles = [a.title for a in generator.articles_for_day(TEST_EMAIL, DAY, UTC)]

        assert titles == ["Morning", "Noon", "Evening"]

    @pytest.mark.asyncio
    async def test_generate_with_completion(self, db_session, preferences, day_articles):
        completion = AsyncMock(return_value=COMPLETION_TEXT)
        generator = AISummaryGenerator(db_session, preferences, completion)

        summary = await generator.generate(TEST_EMAIL, DAY)

        assert summary.title == "Daily Summary - 2024-05-09"
        assert summary.summary == COMPLETION_TEXT
        assert summary.categories == "- Technology: 2 articles\n- Science: 1 article"
        assert summary.article_count == 3
        system_prompt, content = completion.await_args.args
        assert system_prompt == preferences.get(db_session, TEST_EMAIL).ai_summary_prompt
        assert "Morning" in content and "Next Day" not in content

    @pytest.mark.asyncio
    async def test_completion_failure_falls_back(self, db_session, preferences, day_articles):
        completion = AsyncMock(side_effect=CompletionError("rate limited"))
        generator = AISummaryGenerator(db_session, preferences, completion)

        summary = await generator.generate(TEST_EMAIL, DAY)

        assert summary.title == "Daily Digest - 2024-05-09"
        assert summary.article_count == 3
        assert "Morning" in summary.summary
        assert db_session.query(AISummary).count() == 1

    @pytest.mark.asyncio
    async def test_empty_completion_falls_back(self, db_session, preferences, day_articles):
        completion = AsyncMock(return_value="")
        generator = AISummaryGenerator(db_session, preferences, completion)

        summary = await generator.generate(TEST_EMAIL, DAY)

        assert summary.title == "Daily Digest - 2024-05-09"
        assert "Morning" in summary.summary

    @pytest.mark.asyncio
    async def test_article_deleted_by_user_is_left_out(
        self, cache, db_session, preferences, day_articles
    ):
        morning = day_articles[0]
        FeedService(cache).delete_article(db_session, morning.uid, TEST_EMAIL)

        summary = await AISummaryGenerator(db_session, preferences).generate(TEST_EMAIL, DAY)

        assert summary.article_count == 2
        assert "Morning" not in summary.summary

    @pytest.mark.asyncio
    async def test_no_completion_configured_uses_fallback(self, db_session, preferences, day_articles):
        summary = await AISummaryGenerator(db_session, preferences).generate(TEST_EMAIL, DAY)

        assert summary.title.startswith("Daily Digest")
        assert summary.categories == "- Example Feed: 2 articles\n- Other Feed: 1 articles"

    @pytest.mark.asyncio
    async def test_regenerate_updates_single_row(self, db_session, preferences, day_articles):
        first = AsyncMock(return_value="first version")
        second = AsyncMock(return_value="second version")

        await AISummaryGenerator(db_session, preferences, first).generate(TEST_EMAIL, DAY)
        summary = await AISummaryGenerator(db_session, preferences, second).generate(
            TEST_EMAIL, DAY
        )

        rows = db_session.query(AISummary).all()
        assert len(rows) == 1
        assert rows[0].summary == "second version"
        assert summary.id == rows[0].id

    @pytest.mark.asyncio
    async def test_no_articles_stores_nothing(self, db_session, preferences):
        completion = AsyncMock(return_value="unused")

        result = await AISummaryGenerator(db_session, preferences, completion).generate(
            TEST_EMAIL, DAY
        )

        assert result is None
        completion.assert_not_awaited()
        assert db_session.query(AISummary).count() == 0

    @pytest.mark.asyncio
    async def test_exists(self, db_session, preferences, day_articles):
        generator = AISummaryGenerator(db_session, preferences)
        assert generator.exists(TEST_EMAIL, DAY) is False

        await generator.generate(TEST_EMAIL, DAY)

        assert generator.exists(TEST_EMAIL, DAY) is True
        assert generator.exists("other@example.com", DAY) is False


@pytest.mark.unit
class TestPromptFormatting:
    def test_short_content_omitted(self):
        article = SimpleNamespace(title="T", name="Src", link="https://x", content="too short")
        text = format_articles_for_ai([article], content_cap=500, min_content_length=100)

        assert "1. Title: T" in text
        assert "Excerpt" not in text

    def test_long_content_capped(self):
        article = SimpleNamespace(title="T", name="Src", link="https://x", content="<p>" + "a" * 800 + "</p>")
        text = format_articles_for_ai([article], content_cap=500, min_content_length=100)

        assert "Excerpt: " + "a" * 500 + "..." in text
        assert "<p>" not in text


@pytest.mark.unit
class TestExtractCategories:
    def test_bullets_after_marker(self):
        assert extract_categories(COMPLETION_TEXT) == (
            "- Technology: 2 articles\n- Science: 1 article"
        )

    def test_chinese_marker_and_colons(self):
        text = "总结\n\n分类：\n科技：3篇\n财经：1篇\n\n其他内容"
        assert extract_categories(text) == "科技：3篇\n财经：1篇"

    def test_no_marker(self):
        assert extract_categories("just prose\n- a bullet") == ""


@pytest.mark.unit
class TestFallbackSummary:
    def test_groups_by_source_and_truncates(self):
        articles = [SimpleNamespace(title=f"Big {i}", name="Big Source") for i in range(7)]
        articles.append(SimpleNamespace(title="Lonely", name="Small Source"))

        title, summary, categories = fallback_summary(articles, DAY)

        assert title == "Daily Digest - 2024-05-09"
        assert "## Big Source (7)" in summary
        assert "- Big 4" in summary
        assert "- Big 5" not in summary
        assert "- ... and 2 more" in summary
        assert categories == "- Big Source: 7 articles\n- Small Source: 1 articles"


@pytest.mark.unit
class TestOpenAICompletion:
    @pytest.mark.asyncio
    async def test_returns_message_content(self):
        completion = OpenAICompletion(api_key="test-key", model="test-model")
        response = Mock(choices=[Mock(message=Mock(content="summary"))], usage=None)

        with patch.object(
            completion.client.chat.completions, "create", new=AsyncMock(return_value=response)
        ) as create:
            result = await completion("system", "user")

        assert result == "summary"
        assert create.await_args.kwargs["model"] == "test-model"
        assert create.await_args.kwargs["messages"][0] == {"role": "system", "content": "system"}

    @pytest.mark.asyncio
    async def test_api_error_raises_completion_error(self):
        completion = OpenAICompletion(api_key="test-key")

        with patch.object(
            completion.client.chat.completions,
            "create",
            new=AsyncMock(side_effect=RuntimeError("boom")),
        ):
            with pytest.raises(CompletionError):
                await completion("system", "user")

    @pytest.mark.asyncio
    async def test_empty_content_raises_completion_error(self):
        completion = OpenAICompletion(api_key="test-key")
        response = Mock(choices=[Mock(message=Mock(content=""))], usage=None)

        with patch.object(
            completion.client.chat.completions, "create", new=AsyncMock(return_value=response)
        ):
            with pytest.raises(CompletionError):
                await completion("system", "user")
