"""Database engine, session factory and row timestamps."""

from __future__ import annotations

import datetime as dt
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker

from app.config import settings


def make_engine(url: str) -> Engine:
    # sqlite connections are shared between the event loop and threadpool
    connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
    return create_engine(url, connect_args=connect_args)


def _zone(name: str) -> ZoneInfo:
    try:
        return ZoneInfo(name)
    except ZoneInfoNotFoundError:
        return ZoneInfo("UTC")


TZ = _zone(settings.timezone or "UTC")


def now_local() -> dt.datetime:
    """Timestamp default for rows, in the configured ``TIMEZONE``."""
    return dt.datetime.now(TZ)


engine = make_engine(settings.db_url)
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)
Base = declarative_base()
