from openai import AsyncOpenAI
from bs4 import BeautifulSoup
from collections import OrderedDict
from datetime import date
from typing import Awaitable, Callable, List, Optional, Tuple
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from rssy.core.config import settings
from rssy.core.exceptions import CompletionError
from rssy.models.ai_summary import AISummary
from rssy.models.article import Article
from rssy.schemas.ai_summary import AISummary as AISummarySchema
from rssy.services.preferences import PreferenceService
from rssy.services.time_window import day_bounds, resolve_timezone
import logging

logger = logging.getLogger(__name__)

# complete(system_prompt, user_content) -> text
CompletionFn = Callable[[str, str], Awaitable[str]]

CATEGORY_MARKERS = ("categories", "category", "分类", "类别")
BULLET_PREFIXES = ("-", "•", "*")
FALLBACK_TITLES_PER_SOURCE = 5


class OpenAICompletion:
    """Chat-completion collaborator backed by the OpenAI API (or a compatible endpoint)."""

    def __init__(
        self,
        api_key: str,
        base_url: Optional[str] = None,
        model: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        self.model = model or settings.LLM_MODEL
        self.client = AsyncOpenAI(
            api_key=api_key,
            base_url=base_url or None,
            timeout=timeout or settings.HTTP_TIMEOUT_SECONDS,
        )

    async def __call__(self, system_prompt: str, user_content: str) -> str:
        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_content},
                ],
            )
        except Exception as e:
            raise CompletionError(f"failed to create completion: {e}") from e

        if not response.choices or not response.choices[0].message.content:
            raise CompletionError("completion returned no content")

        logger.debug(f"LLM usage: {response.usage}")
        return response.choices[0].message.content


def build_completion() -> Optional[OpenAICompletion]:
    """The configured completion function, or None when no API key is set."""
    if not settings.has_llm_key:
        logger.info("OPENAI_API_KEY is not set, AI summaries will use the fallback digest")
        return None
    return OpenAICompletion(
        api_key=settings.OPENAI_API_KEY,
        base_url=settings.OPENAI_ENDPOINT,
        model=settings.LLM_MODEL,
    )


def html_to_text(content: str) -> str:
    if not content:
        return ""
    return BeautifulSoup(content, "html.parser").get_text(separator=" ", strip=True)


def format_articles_for_ai(
    articles: List[Article],
    content_cap: Optional[int] = None,
    min_content_length: Optional[int] = None,
) -> str:
    """
    Render articles as a numbered list for the prompt.

    Content shorter than `min_content_length` is omitted; longer content is
    cut to `content_cap` characters so the prompt size stays bounded.
    """
    if content_cap is None:
        content_cap = settings.AI_CONTENT_CAP
    if min_content_length is None:
        min_content_length = settings.AI_MIN_CONTENT_LENGTH

    lines = ["Here are the RSS articles of the day:", ""]
    for i, article in enumerate(articles, start=1):
        lines.append(f"{i}. Title: {article.title}")
        lines.append(f"   Source: {article.name or 'Unknown'}")
        lines.append(f"   Link: {article.link}")

        content = html_to_text(article.content)
        if len(content) > min_content_length:
            if len(content) > content_cap:
                content = content[:content_cap] + "..."
            lines.append(f"   Excerpt: {content}")
        lines.append("")

    return "\n".join(lines)


def extract_categories(summary: str) -> str:
    """
    Pull the category listing out of a completion.

    After a line mentioning a category marker, collect bullet lines and
    "label: value" lines; the first other line (or heading) after at least
    one match ends the section.
    """
    categories: List[str] = []
    in_section = False

    for raw in summary.splitlines():
        line = raw.strip()
        lowered = line.lower()

        if any(marker in lowered for marker in CATEGORY_MARKERS) and not categories:
            in_section = True
            continue

        if not in_section or not line:
            continue

        if line.startswith("#") and categories:
            break
        if line.startswith(BULLET_PREFIXES) or ":" in line or "：" in line:
            categories.append(line)
        elif categories:
            break

    return "\n".join(categories)


def fallback_summary(articles: List[Article], day: date) -> Tuple[str, str, str]:
    """
    Deterministic digest used when no completion is available.

    Groups articles by source and lists up to five titles per source.
    Returns (title, summary, categories).
    """
    groups: "OrderedDict[str, List[Article]]" = OrderedDict()
    for article in articles:
        groups.setdefault(article.name or "Unknown source", []).append(article)

    ordered = sorted(groups.items(), key=lambda kv: (-len(kv[1]), kv[0]))

    lines = [f"{len(articles)} articles from {len(ordered)} sources on {day.isoformat()}.", ""]
    category_lines = []
    for source, items in ordered:
        lines.append(f"## {source} ({len(items)})")
        for article in items[:FALLBACK_TITLES_PER_SOURCE]:
            lines.append(f"- {article.title}")
        if len(items) > FALLBACK_TITLES_PER_SOURCE:
            lines.append(f"- ... and {len(items) - FALLBACK_TITLES_PER_SOURCE} more")
        lines.append("")
        category_lines.append(f"- {source}: {len(items)} articles")

    title = f"Daily Digest - {day.isoformat()}"
    return title, "\n".join(lines).rstrip(), "\n".join(category_lines)


class AISummaryGenerator:
    """Builds and stores one digest per (user, day)."""

    def __init__(
        self,
        db: Session,
        preferences: PreferenceService,
        completion: Optional[CompletionFn] = None,
    ):
        self.db = db
        self.preferences = preferences
        self.completion = completion

    def articles_for_day(self, email: str, day: date, tz=None) -> List[Article]:
        start, end = day_bounds(day, tz or settings.tz)
        return (
            self.db.query(Article)
            .filter(
                Article.email == email,
                Article.deleted == False,
                Article.publish_at >= start,
                Article.publish_at < end,
            )
            .order_by(Article.publish_at.asc())
            .all()
        )

    async def generate(self, email: str, day: date) -> Optional[AISummarySchema]:
        """
        Summarize the user's articles published on `day` (user's zone).

        Returns None when there is nothing to summarize. Completion failures
        fall back to the grouped-by-source digest and still store a row.
        """
        pref = self.preferences.get(self.db, email)
        tz = resolve_timezone(pref.timezone)
        articles = self.articles_for_day(email, day, tz)

        if not articles:
            logger.info(f"No articles found for AI summary for user {email} on {day}")
            return None

        title = categories = summary = None
        if self.completion is not None:
            prompt = pref.ai_summary_prompt or settings.AI_SUMMARY_PROMPT
            content = format_articles_for_ai(articles[: settings.AI_MAX_ARTICLES])
            try:
                summary = await self.completion(prompt, content)
            except Exception as e:
                logger.error(f"AI completion failed for user {email} on {day}: {str(e)}")

            if summary:
                title = f"Daily Summary - {day.isoformat()}"
                categories = extract_categories(summary)
            else:
                summary = None

        if summary is None:
            title, summary, categories = fallback_summary(articles, day)

        record = self._upsert(email, day.isoformat(), title, summary, categories, len(articles))
        logger.info(
            f"Generated AI summary for user {email} on {day} with {len(articles)} articles"
        )
        return record

    def exists(self, email: str, day: date) -> bool:
        return (
            self.db.query(AISummary.id)
            .filter(AISummary.email == email, AISummary.date == day.isoformat())
            .first()
            is not None
        )

    def _upsert(
        self,
        email: str,
        day: str,
        title: str,
        summary: str,
        categories: str,
        article_count: int,
    ) -> AISummarySchema:
        values = {
            "title": title,
            "summary": summary,
            "categories": categories,
            "article_count": article_count,
        }

        for attempt in range(2):
            existing = (
                self.db.query(AISummary)
                .filter(AISummary.email == email, AISummary.date == day)
                .first()
            )
            if existing:
                for key, value in values.items():
                    setattr(existing, key, value)
                record = existing
            else:
                record = AISummary(email=email, date=day, **values)
                self.db.add(record)

            try:
                self.db.commit()
            except IntegrityError:
                # Another writer inserted the same (email, date) first
                self.db.rollback()
                if attempt:
                    raise
                continue

            self.db.refresh(record)
            return AISummarySchema.model_validate(record)
