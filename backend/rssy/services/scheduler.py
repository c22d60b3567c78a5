import asyncio
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from datetime import date, datetime, timezone
from typing import Callable, Dict, Iterable, List, Optional
from rssy.container import Services
from rssy.core.config import settings
from rssy.core.exceptions import TimeConfigError
from rssy.core.logging_config import job_context
from rssy.schemas.preference import UserPreference
from rssy.services.article_cleanup import ArticleCleanupService
from rssy.services.summary_generator import AISummaryGenerator
from rssy.services.time_window import in_trigger_window, resolve_timezone, yesterday
import logging

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DailyRunMarker:
    """Remembers the last local date a daily job ran for each user."""

    def __init__(self):
        self._last_run: Dict[str, date] = {}

    def done(self, email: str, today: date) -> bool:
        return self._last_run.get(email) == today

    def mark(self, email: str, today: date) -> None:
        self._last_run[email] = today


class FeedRefreshJob:
    name = "feed_refresh"
    description = "Refresh due RSS feeds"

    def __init__(
        self,
        services: Services,
        clock: Callable[[], datetime] = utcnow,
        window_minutes: Optional[int] = None,
        max_concurrent: Optional[int] = None,
    ):
        self.services = services
        self.clock = clock
        self.window_minutes = window_minutes or settings.TRIGGER_WINDOW_MINUTES
        self.max_concurrent = max_concurrent or settings.DAILY_MAX_CONCURRENT
        self.marker = DailyRunMarker()

    def candidates(self, db) -> List[UserPreference]:
        raise NotImplementedError

    def configured_time(self, pref: UserPreference) -> str:
        raise NotImplementedError

    async def run_for_user(self, pref: UserPreference, local_now: datetime) -> None:
        raise NotImplementedError

    def _due(self, pref: UserPreference, now: datetime) -> Optional[datetime]:
        """The user's local time if the job should run for them now, else None."""
        local_now = now.astimezone(resolve_timezone(pref.timezone))
        if self.marker.done(pref.email, local_now.date()):
            return None

        try:
            matched = in_trigger_window(
                self.configured_time(pref), local_now, self.window_minutes
            )
        except TimeConfigError as e:
            logger.error(
                f"Failed to parse {self.name} time for user {pref.email}: {e}",
                extra={"job": self.name, "email": pref.email},
            )
            return None

        return local_now if matched else None

    async def tick(self, now: Optional[datetime] = None) -> List[str]:
        """Evaluate every candidate user once. Returns the emails that ran."""
        now = now or self.clock()
        ran = []

        with job_context(self.name):
            try:
                with self.services.session_factory() as db:
                    prefs = self.candidates(db)
            except Exception as e:
                logger.error(f"Failed to load users for {self.name}: {str(e)}")
                return ran

            scheduled = []
            for pref in prefs:
                local_now = self._due(pref, now)
                if local_now is None:
                    continue
                self.marker.mark(pref.email, local_now.date())
                ran.append(pref.email)
                scheduled.append((pref, local_now))

            semaphore = asyncio.Semaphore(self.max_concurrent)

            async def run(pref: UserPreference, local_now: datetime) -> None:
                async with semaphore:
                    logger.info(
                        f"Running {self.name} for user {pref.email} at {local_now.isoformat()}",
                        extra={"job": self.name, "email": pref.email},
                    )
                    await self.run_for_user(pref, local_now)

            results = await asyncio.gather(
                *(run(pref, local_now) for pref, local_now in scheduled),
                return_exceptions=True,
            )
            for (pref, _), result in zip(scheduled, results):
                if isinstance(result, Exception):
                    logger.error(
                        f"{self.name} failed for user {pref.email}: {str(result)}",
                        extra={"job": self.name, "email": pref.email},
                    )

        return ran


class DailyNotifyJob(DailyUserJob):
    name = "daily_notify"
    description = "Send daily digest notifications"

    def candidates(self, db) -> List[UserPreference]:
        return self.services.preferences.with_notify_enabled(db)

    def configured_time(self, pref: UserPreference) -> str:
        return pref.notify_time

    async def run_for_user(self, pref: UserPreference, local_now: datetime) -> None:
        with self.services.session_factory() as db:
            await self.services.notifier.dispatch(db, pref.email, local_now, pref.timezone)


class AISummaryJob(DailyUserJob):
    """Summarizes the previous local day once that day is complete."""

    name = "ai_summary"
    description = "Generate AI summaries of yesterday's articles"

    def candidates(self, db) -> List[UserPreference]:
        return self.services.preferences.with_ai_summary_enabled(db)

    def configured_time(self, pref: UserPreference) -> str:
        return pref.ai_summary_time

    async def run_for_user(self, pref: UserPreference, local_now: datetime) -> None:
        day = yesterday(local_now)
        with self.services.session_factory() as db:
            generator = AISummaryGenerator(
                db, self.services.preferences, self.services.completion
            )
            if generator.exists(pref.email, day):
                logger.info(f"AI summary for {pref.email} on {day} already exists, skipping")
                return
            await generator.generate(pref.email, day)


class CleanupJob:
    name = "auto_cleanup"
    description = "Apply article retention and purge expired cache entries"

    def __init__(self, services: Services, clock: Callable[[], datetime] = utcnow):
        self.services = services
        self.clock = clock

    async def tick(self, now: Optional[datetime] = None) -> int:
        now = now or self.clock()
        total = 0
        with job_context(self.name):
            try:
                with self.services.session_factory() as db:
                    prefs = self.services.preferences.with_auto_cleanup_enabled(db)
                    for pref in prefs:
                        try:
                            total += ArticleCleanupService(db).cleanup_expired_articles(
                                pref.email, pref.cleanup_expired_days, now=now
                            )
                        except Exception as e:
                            db.rollback()
                            logger.error(f"Cleanup failed for user {pref.email}: {str(e)}")
            except Exception as e:
                logger.error(f"Error in scheduled cleanup: {str(e)}")

            purged = self.services.cache.purge_expired()
            logger.info(f"Cleanup completed: {total} articles deleted, {purged} cache entries purged")
        return total


class FeedScheduler:
    """Runs each periodic job as an independent APScheduler interval job."""

    def __init__(self, services: Services):
        self.services = services
        self.scheduler = AsyncIOScheduler(timezone=settings.tz)
        self.feed_refresh_job = FeedRefreshJob(services)
        self.notify_job = DailyNotifyJob(services)
        self.ai_summary_job = AISummaryJob(services)
        self.cleanup_job = CleanupJob(services)

    def _add(self, job, trigger) -> None:
        self.scheduler.add_job(
            job.tick,
            trigger=trigger,
            id=job.name,
            name=job.description,
            replace_existing=True,
            max_instances=1,  # An overrunning tick is skipped, not stacked
            coalesce=True,
        )

    def start(self):
        """Start the scheduler."""
        self._add(
            self.feed_refresh_job,
            IntervalTrigger(minutes=settings.FEED_REFRESH_INTERVAL_MINUTES),
        )
        self._add(self.notify_job, IntervalTrigger(seconds=settings.DAILY_TICK_SECONDS))
        self._add(self.ai_summary_job, IntervalTrigger(seconds=settings.DAILY_TICK_SECONDS))
        self._add(self.cleanup_job, IntervalTrigger(hours=settings.CLEANUP_INTERVAL_HOURS))
        self.scheduler.start()
        logger.info(
            f"Scheduler started: feed refresh every {settings.FEED_REFRESH_INTERVAL_MINUTES} "
            f"minutes, daily jobs every {settings.DAILY_TICK_SECONDS} seconds"
        )

    def shutdown(self):
        """Stop scheduling; a tick already running is left to finish."""
        self.scheduler.shutdown(wait=False)
        logger.info("Scheduler shutdown")
