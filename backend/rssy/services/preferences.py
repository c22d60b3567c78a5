"""Per-user preferences, lazily created and cached by email."""

import logging
from typing import List
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from rssy.core.cache import SCOPE_USER_PREF, TTLCache
from rssy.core.config import settings
from rssy.models.preference import UserPreference
from rssy.schemas.preference import (
    UserPreference as PreferenceSchema,
    UserPreferenceUpdate,
)

logger = logging.getLogger(__name__)


class PreferenceService:
    def __init__(self, cache: TTLCache):
        self.cache = cache

    def _get_or_create_row(self, db: Session, email: str) -> UserPreference:
        pref = db.query(UserPreference).filter(UserPreference.email == email).first()
        if pref:
            return pref

        pref = UserPreference(email=email, ai_summary_prompt=settings.AI_SUMMARY_PROMPT)
        db.add(pref)
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            return db.query(UserPreference).filter(UserPreference.email == email).one()

        db.refresh(pref)
        logger.info(f"Created default preferences for {email}")
        return pref

    def get(self, db: Session, email: str) -> PreferenceSchema:
        """Return the user's preferences, creating the defaults on first access."""
        return self.cache.get_or_load(
            SCOPE_USER_PREF,
            email,
            lambda: PreferenceSchema.model_validate(self._get_or_create_row(db, email)),
        )

    def update(
        self, db: Session, email: str, update: UserPreferenceUpdate
    ) -> PreferenceSchema:
        pref = self._get_or_create_row(db, email)

        for key, value in update.model_dump(exclude_unset=True).items():
            if value is None and key != "timezone":
                continue
            setattr(pref, key, value)

        try:
            db.commit()
        finally:
            self.cache.delete(SCOPE_USER_PREF, email)

        db.refresh(pref)
        logger.info(f"Updated preferences for {email}")
        return PreferenceSchema.model_validate(pref)

    def with_notify_enabled(self, db: Session) -> List[PreferenceSchema]:
        rows = db.query(UserPreference).filter(UserPreference.enable_notify == True).all()
        return [PreferenceSchema.model_validate(row) for row in rows]

    def with_ai_summary_enabled(self, db: Session) -> List[PreferenceSchema]:
        rows = (
            db.query(UserPreference).filter(UserPreference.enable_ai_summary == True).all()
        )
        return [PreferenceSchema.model_validate(row) for row in rows]

    def with_auto_cleanup_enabled(self, db: Session) -> List[PreferenceSchema]:
        rows = (
            db.query(UserPreference)
            .filter(UserPreference.enable_auto_cleanup == True)
            .all()
        )
        return [PreferenceSchema.model_validate(row) for row in rows]
