"""Engine, session factory and the FastAPI session dependency."""

from typing import Generator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from reviewhub.config.settings import get_settings
from reviewhub.db.base import Base


def _create_engine() -> Engine:
    settings = get_settings()
    connect_args = {}
    if settings.database_url.startswith("sqlite"):
        # Sessions are handed across threadpool workers by FastAPI
        connect_args["check_same_thread"] = False
    return create_engine(
        settings.database_url,
        pool_pre_ping=True,
        echo=settings.database_echo,
        connect_args=connect_args,
    )


engine = _create_engine()

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db() -> Generator[Session, None, None]:
    """Yield a request-scoped session and always close it afterwards."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db(bind: Engine | None = None) -> None:
    """Create all tables that do not exist yet."""
    # Importing models registers every table on Base.metadata
    from reviewhub.db import models  # noqa: F401

    Base.metadata.create_all(bind=bind or engine)
