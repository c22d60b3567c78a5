from .feed import Feed
from .article import Article
from .preference import UserPreference
from .ai_summary import AISummary

__all__ = [
    "Feed",
    "Article",
    "UserPreference",
    "AISummary",
]
