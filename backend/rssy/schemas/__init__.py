from rssy.schemas.feed import Feed, FeedCreate, FeedFlagsUpdate, FeedMeta, RefreshResult
from rssy.schemas.preference import UserPreference, UserPreferenceUpdate
from rssy.schemas.ai_summary import AISummary

__all__ = [
    "Feed",
    "FeedCreate",
    "FeedFlagsUpdate",
    "FeedMeta",
    "RefreshResult",
    "UserPreference",
    "UserPreferenceUpdate",
    "AISummary",
]
