import feedparser
import httpx
from dataclasses import dataclass, field
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import List, Optional
from rssy.core.config import settings
import calendar
import logging

logger = logging.getLogger(__name__)


@dataclass
class FeedItem:
    """A normalized remote feed entry."""

    title: str
    link: str
    content: str
    published: Optional[datetime]  # None when the entry carries no parseable date


@dataclass
class ParsedFeed:
    """A fetched feed. An empty item list stands for "nothing usable this cycle"."""

    url: str
    title: str = ""
    items: List[FeedItem] = field(default_factory=list)
    ok: bool = True


class RSSFetcher:
    """Fetches and parses one remote feed URL at a time."""

    def __init__(
        self, timeout: Optional[float] = None, user_agent: Optional[str] = None
    ):
        self.timeout = timeout or settings.HTTP_TIMEOUT_SECONDS
        self.user_agent = user_agent or settings.USER_AGENT

    async def fetch_feed(self, url: str) -> ParsedFeed:
        """
        Fetch and parse a single feed.

        Network and parse failures are logged and reported as an empty feed,
        never raised: one broken source must not stop a refresh cycle.
        """
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout,
                follow_redirects=True,
                headers={"User-Agent": self.user_agent},
            ) as client:
                response = await client.get(url)
                response.raise_for_status()

            return self.parse(url, response.text)

        except httpx.HTTPStatusError as e:
            logger.error(
                f"HTTP error fetching feed {url}: {e.response.status_code}"
            )
        except httpx.RequestError as e:
            logger.error(f"Network error fetching feed {url}: {str(e)}")
        except Exception as e:
            logger.error(f"Error fetching feed {url}: {str(e)}")

        return ParsedFeed(url=url, ok=False)

    def parse(self, url: str, payload: str) -> ParsedFeed:
        """Parse an RSS/Atom payload into normalized items."""
        parsed = feedparser.parse(payload)

        if parsed.bozo and not parsed.entries:
            raise ValueError(f"Failed to parse feed: {parsed.get('bozo_exception')}")

        items = []
        for entry in parsed.entries:
            items.append(
                FeedItem(
                    title=(entry.get("title") or "").strip(),
                    link=entry.get("link", ""),
                    content=self._extract_content(entry),
                    published=self._published_at(entry),
                )
            )

        title = parsed.feed.get("title", "")
        logger.debug(f"Parsed {len(items)} items from {url}")
        return ParsedFeed(url=url, title=title, items=items)

    def _extract_content(self, entry) -> str:
        """Prefer full content over summary/description."""
        if entry.get("content"):
            return entry["content"][0].get("value", "")
        return entry.get("summary", entry.get("description", "")) or ""

    def _published_at(self, entry) -> Optional[datetime]:
        for key in ("published_parsed", "updated_parsed"):
            struct = entry.get(key)
            if struct:
                try:
                    # feedparser normalizes parsed dates to UTC
                    return datetime.fromtimestamp(calendar.timegm(struct), tz=timezone.utc)
                except (TypeError, ValueError, OverflowError):
                    continue

        return self._parse_date(entry.get("published", entry.get("updated")))

    def _parse_date(self, date_string: Optional[str]) -> Optional[datetime]:
        """Parse RFC 2822 or ISO 8601 date strings feedparser could not handle."""
        if not date_string:
            return None

        try:
            parsed = parsedate_to_datetime(date_string)
        except (TypeError, ValueError):
            try:
                parsed = datetime.fromisoformat(date_string.replace("Z", "+00:00"))
            except ValueError:
                logger.warning(f"Could not parse date: {date_string}")
                return None

        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed
