"""
Database base configuration for SQLAlchemy models.

This module uses SQLAlchemy 2.0 style with DeclarativeBase. Only a sync
engine is configured: scoring and assembly run as short, request-scoped
computations and the lookup adapters in ``assessment.db.repositories``
operate on a plain ``Session``.
"""

from typing import Generator

from sqlalchemy import create_engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker
from dotenv import load_dotenv

from assessment.core.config import settings

# Load environment variables
load_dotenv()

DATABASE_URL = settings.DATABASE_URL

# SQLite needs check_same_thread disabled when sessions cross threads
# (e.g. scoring several sessions from a worker pool).
_connect_args = (
    {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}
)

engine = create_engine(
    DATABASE_URL,
    echo=settings.DATABASE_ECHO,
    pool_pre_ping=True,
    connect_args=_connect_args,
)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


class Base(DeclarativeBase):
    """
    SQLAlchemy 2.0 declarative base class with type annotation support.
    """

    pass


def get_db() -> Generator[Session, None, None]:
    """
    Yield a database session and ensure it is closed afterwards.

    Rolls back on error so a failed scoring run never leaves a half-written
    transaction behind.
    """
    db = SessionLocal()
    try:
        yield db
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
