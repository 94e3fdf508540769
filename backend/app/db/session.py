"""Database session management."""

from collections.abc import Callable, Generator
from contextlib import contextmanager
from typing import Annotated, Optional

from fastapi import Depends
from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session, sessionmaker

from app.core.config import settings

connect_args = {}
pool_config = {}

if settings.database_url.startswith("sqlite"):
    # Request handlers run in the threadpool, pollers on the event loop
    connect_args = {"check_same_thread": False, "timeout": 15}
    pool_config = {"pool_pre_ping": True}
else:
    pool_config = {
        "pool_size": 5,
        "max_overflow": 10,
        "pool_pre_ping": True,
        "pool_recycle": 3600,
    }

engine = create_engine(
    settings.database_url,
    connect_args=connect_args,
    echo=False,
    **pool_config,
)

if settings.database_url.startswith("sqlite"):
    @event.listens_for(engine, "connect")
    def set_sqlite_pragma(dbapi_connection, connection_record):
        # Readers (screens polling orders) must not block the writer
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.close()

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@contextmanager
def session_scope(session_factory: Optional[Callable[[], Session]] = None) -> Generator[Session, None, None]:
    """Short-lived session for code outside a request (stores, background loops)."""
    db = (session_factory or SessionLocal)()
    try:
        yield db
    finally:
        db.close()


def get_db() -> Generator[Session, None, None]:
    """Get database session dependency."""
    with session_scope() as db:
        yield db


# Type alias for dependency injection
DbSession = Annotated[Session, Depends(get_db)]
