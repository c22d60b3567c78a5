"""
rssy - personal RSS aggregator backend.

Scheduled feed ingestion with title-based deduplication, daily digest
notifications and AI summaries of the previous day's articles.
"""

__version__ = "1.0.0"
