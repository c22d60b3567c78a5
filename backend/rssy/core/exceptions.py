"""
Error types raised by the ingestion, scheduling and summary services.
"""


class RssyError(Exception):
    """Base class for application errors."""


class TimeConfigError(RssyError):
    """A configured HH:MM value could not be parsed."""


class IngestionError(RssyError):
    """Persisting a batch of articles or advancing a feed watermark failed."""

    def __init__(self, feed_id: int, message: str):
        self.feed_id = feed_id
        super().__init__(f"feed {feed_id}: {message}")


class CompletionError(RssyError):
    """The text-completion collaborator failed or is not configured."""


class FeedNotFoundError(RssyError):
    """No feed with the given id belongs to the user."""

    def __init__(self, feed_id: int, email: str):
        self.feed_id = feed_id
        self.email = email
        super().__init__(f"Feed {feed_id} not found for {email}")


class FeedFetchError(RssyError):
    """A feed could not be fetched or parsed when subscribing to it."""

    def __init__(self, url: str):
        self.url = url
        super().__init__(f"could not fetch feed: {url}")
