from fastapi import Depends, Request
from slowapi import Limiter
from slowapi.util import get_remote_address
from rssy.container import Services
from rssy.core.config import settings

limiter = Limiter(key_func=get_remote_address, default_limits=["100/minute"])


def get_services(request: Request) -> Services:
    return request.app.state.services


def get_db(services: Services = Depends(get_services)):
    """Request-scoped session from the application's session factory."""
    db = services.session_factory()
    try:
        yield db
    finally:
        db.close()


def get_current_email() -> str:
    """Single-user deployment: every request acts as DEFAULT_EMAIL."""
    return settings.DEFAULT_EMAIL
