from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.orm import Session
from datetime import date, datetime, timezone
from typing import Optional
from rssy.api.deps import get_current_email, get_db, get_services, limiter
from rssy.container import Services
from rssy.schemas.ai_summary import AISummary as AISummarySchema
from rssy.services.article_cleanup import ArticleCleanupService
from rssy.services.summary_generator import AISummaryGenerator
from rssy.services.time_window import resolve_timezone, yesterday

router = APIRouter()


@router.post("/ai-summary", response_model=AISummarySchema)
@limiter.limit("10/hour")
async def generate_ai_summary(
    request: Request,
    day: Optional[date] = Query(None, alias="date"),
    db: Session = Depends(get_db),
    services: Services = Depends(get_services),
    email: str = Depends(get_current_email),
):
    """Generate (or regenerate) the summary for one day.

    Args:
        date: Day to summarize as YYYY-MM-DD. Defaults to yesterday in the user's zone.
    """
    if day is None:
        pref = services.preferences.get(db, email)
        day = yesterday(datetime.now(timezone.utc).astimezone(resolve_timezone(pref.timezone)))

    generator = AISummaryGenerator(db, services.preferences, services.completion)
    summary = await generator.generate(email, day)
    if summary is None:
        raise HTTPException(status_code=404, detail=f"No articles on {day.isoformat()}")
    return summary


@router.post("/cleanup/expired")
@limiter.limit("10/minute")
def cleanup_expired(
    request: Request,
    days: Optional[int] = None,
    db: Session = Depends(get_db),
    services: Services = Depends(get_services),
    email: str = Depends(get_current_email),
):
    """Delete articles older than `days` (defaults to the user's retention setting)."""
    if days is None:
        days = services.preferences.get(db, email).cleanup_expired_days

    deleted = ArticleCleanupService(db).cleanup_expired_articles(email, days)
    return {"message": "Expired articles deleted", "deleted": deleted}


@router.post("/cleanup/read")
@limiter.limit("10/minute")
def cleanup_read(
    request: Request,
    db: Session = Depends(get_db),
    email: str = Depends(get_current_email),
):
    deleted = ArticleCleanupService(db).cleanup_read_articles(email)
    return {"message": "Read articles deleted", "deleted": deleted}
