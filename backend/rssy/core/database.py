from sqlalchemy import create_engine, text
from sqlalchemy.orm import sessionmaker, declarative_base
from rssy.core.config import settings
import logging

logger = logging.getLogger(__name__)


def _connect_args(url: str) -> dict:
    # SQLite connections are shared between the scheduler tasks and request threads
    if url.startswith("sqlite"):
        return {"check_same_thread": False}
    return {}


engine = create_engine(
    settings.DATABASE_URL,
    connect_args=_connect_args(settings.DATABASE_URL),
    pool_pre_ping=True,
)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


def init_db(bind=None) -> None:
    """
    Create tables and verify the store is reachable.

    Any failure here propagates: the process cannot run without its store.
    """
    import rssy.models  # noqa: F401  (registers the mappers on Base)

    bind = bind or engine
    with bind.connect() as conn:
        conn.execute(text("SELECT 1"))
    Base.metadata.create_all(bind=bind)
    logger.info(f"Database ready at {bind.url.render_as_string(hide_password=True)}")
