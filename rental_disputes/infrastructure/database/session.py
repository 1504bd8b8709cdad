"""Database session management with connection pooling and unit-of-work boundary"""

from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import create_engine
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.orm.exc import StaleDataError

from rental_disputes.config import settings
from rental_disputes.domain.exceptions import InvalidStateError

engine = create_engine(
    settings.database_url,
    pool_pre_ping=True,  # Verify connections before using
    pool_size=10,
    max_overflow=10,
    pool_recycle=3600,
)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db() -> Session:
    """Dependency injection for database sessions"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def unit_of_work(db: Session) -> Iterator[Session]:
    """
    One transaction per command: commit on success, roll back on any error.

    Concurrent writers surface as InvalidStateError: a stale version on a
    versioned row, or a second resolution/refund hitting a UNIQUE constraint.
    """
    try:
        yield db
        db.commit()
    except StaleDataError as e:
        db.rollback()
        raise InvalidStateError("Record was modified by a concurrent request; reload and retry") from e
    except IntegrityError as e:
        db.rollback()
        raise InvalidStateError(f"Concurrent write rejected: {e.orig}") from e
    except Exception:
        db.rollback()
        raise
