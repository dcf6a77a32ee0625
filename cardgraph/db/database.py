from __future__ import annotations

from collections.abc import Generator
from contextlib import contextmanager

from loguru import logger
from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session, sessionmaker

from cardgraph.config import get_settings
from cardgraph.db.models import Base


def create_db_engine(database_url: str | None = None) -> Engine:
    """Create an engine for the given URL (default from settings) and ensure tables exist."""
    settings = get_settings()
    url = database_url or settings.database_url
    engine = create_engine(url, echo=settings.log_level == "DEBUG", pool_pre_ping=True)
    init_db(engine)
    return engine


def init_db(engine: Engine) -> None:
    """Initialize database tables."""
    Base.metadata.create_all(bind=engine)
    logger.debug(f"Database tables initialized ({engine.url.render_as_string(hide_password=True)})")


def make_session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)


@contextmanager
def session_scope(factory: sessionmaker[Session]) -> Generator[Session, None, None]:
    """Provide a transactional scope around a series of operations."""
    session = factory()
    try:
        yield session
        session.commit()
    except Exception:  # Intentionally broad - rollback on any error before re-raising
        session.rollback()
        raise
    finally:
        session.close()
