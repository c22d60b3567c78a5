from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from rssy.api.deps import get_current_email, get_db, get_services
from rssy.container import Services
from rssy.schemas.preference import UserPreference, UserPreferenceUpdate

router = APIRouter()


@router.get("", response_model=UserPreference)
def get_preferences(
    db: Session = Depends(get_db),
    services: Services = Depends(get_services),
    email: str = Depends(get_current_email),
):
    """Get the current user's preferences (created with defaults on first access)."""
    return services.preferences.get(db, email)


@router.put("", response_model=UserPreference)
def update_preferences(
    update: UserPreferenceUpdate,
    db: Session = Depends(get_db),
    services: Services = Depends(get_services),
    email: str = Depends(get_current_email),
):
    """Update the current user's preferences. Times must be zero-padded HH:MM."""
    return services.preferences.update(db, email, update)
