from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from rssy.api.deps import get_current_email, get_db, get_services
from rssy.container import Services

router = APIRouter()


@router.post("/{uid}/read")
def mark_read(
    uid: str,
    db: Session = Depends(get_db),
    services: Services = Depends(get_services),
    email: str = Depends(get_current_email),
):
    article = services.feeds.mark_article_read(db, uid, email)
    if article is None:
        raise HTTPException(status_code=404, detail="Article not found")
    return {"uid": article.uid, "read": article.read}


@router.delete("/{uid}")
def delete_article(
    uid: str,
    db: Session = Depends(get_db),
    services: Services = Depends(get_services),
    email: str = Depends(get_current_email),
):
    article = services.feeds.delete_article(db, uid, email)
    if article is None:
        raise HTTPException(status_code=404, detail="Article not found")
    return {"uid": article.uid, "deleted": article.deleted}
