from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session
from typing import List
from rssy.api.deps import get_current_email, get_db, get_services, limiter
from rssy.container import Services
from rssy.core.exceptions import FeedFetchError, FeedNotFoundError, IngestionError
from rssy.schemas.feed import Feed as FeedSchema, FeedCreate, FeedFlagsUpdate, RefreshResult
import logging

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("", response_model=List[FeedSchema])
def get_feeds(
    db: Session = Depends(get_db),
    services: Services = Depends(get_services),
    email: str = Depends(get_current_email),
):
    """List the current user's feeds, newest first."""
    return services.feeds.list_feeds(db, email)


@router.post("")
@limiter.limit("10/minute")
async def subscribe(
    request: Request,
    feed: FeedCreate,
    services: Services = Depends(get_services),
    email: str = Depends(get_current_email),
):
    """Subscribe to a feed URL and ingest its recent articles."""
    try:
        created, new_articles = await services.refresher.subscribe(feed.url, email)
    except FeedFetchError as e:
        raise HTTPException(status_code=502, detail=str(e))
    except IngestionError as e:
        logger.error(f"Subscribe failed for {feed.url}: {str(e)}")
        raise HTTPException(status_code=502, detail=str(e))

    return {"feed": created.model_dump(), "new_articles": new_articles}


@router.post("/{feed_id}/refresh", response_model=RefreshResult)
@limiter.limit("30/minute")
async def refresh_feed(
    request: Request,
    feed_id: int,
    services: Services = Depends(get_services),
    email: str = Depends(get_current_email),
):
    """Fetch one feed now, regardless of when it was last fetched."""
    try:
        return await services.refresher.refresh_feed(feed_id, email)
    except FeedNotFoundError:
        raise HTTPException(status_code=404, detail="Feed not found")
    except IngestionError as e:
        raise HTTPException(status_code=502, detail=str(e))


@router.patch("/{feed_id}", response_model=FeedSchema)
def update_feed(
    feed_id: int,
    update: FeedFlagsUpdate,
    db: Session = Depends(get_db),
    services: Services = Depends(get_services),
    email: str = Depends(get_current_email),
):
    try:
        return services.feeds.update_feed_flags(db, feed_id, email, update)
    except FeedNotFoundError:
        raise HTTPException(status_code=404, detail="Feed not found")


@router.delete("/{feed_id}")
def delete_feed(
    feed_id: int,
    db: Session = Depends(get_db),
    services: Services = Depends(get_services),
    email: str = Depends(get_current_email),
):
    """Delete a feed together with its articles."""
    try:
        deleted = services.feeds.delete_feed(db, feed_id, email)
    except FeedNotFoundError:
        raise HTTPException(status_code=404, detail="Feed not found")
    return {"message": "Feed deleted successfully", "deleted_articles": deleted}
