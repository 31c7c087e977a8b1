"""
Database session and engine.
"""
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from parkbook.config import settings
from parkbook.db.base import Base

engine = create_engine(
    settings.database_url,
    pool_size=8,
    max_overflow=10,
    pool_pre_ping=True,
    pool_recycle=300,
    pool_timeout=30,
)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def transaction(db: Session) -> Iterator[Session]:
    """
    Commit on success, roll back on any exception and re-raise.
    Every read-then-write in the services runs inside one of these so a failed
    step never leaves half the writes behind.
    """
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
