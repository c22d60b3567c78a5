from pydantic import BaseModel
from typing import Optional


class FeedCreate(BaseModel):
    url: str


class FeedFlagsUpdate(BaseModel):
    hide_unread: Optional[bool] = None
    enable_readability: Optional[bool] = None
    highlight: Optional[bool] = None


class FeedMeta(BaseModel):
    """Display flags cached per feed id."""

    hide_unread: bool = False
    enable_readability: bool = False
    highlight: bool = False

    class Config:
        from_attributes = True


class Feed(BaseModel):
    id: int
    url: str
    title: Optional[str] = None
    email: str
    create_at: int
    priority: int = 1
    last_fetched_at: int = 0
    hide_unread: bool = False
    enable_readability: bool = False
    highlight: bool = False

    class Config:
        from_attributes = True


class RefreshResult(BaseModel):
    feed_id: int
    new_articles: int
    skipped: bool = False
