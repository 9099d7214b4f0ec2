"""models for DBs"""

from __future__ import annotations

from sqlalchemy import Column, DateTime, Integer, String, Text

from .db import Base, now_local


class WebhookRegistration(Base):
    """The Asana webhook installed on the project (at most one row)."""

    __tablename__ = "webhooks"
    id = Column(Integer, primary_key=True)
    webhook_gid = Column(String, nullable=True, index=True)
    secret = Column(String, nullable=True)
    created_at = Column(DateTime, default=now_local)
    updated_at = Column(DateTime, default=now_local, onupdate=now_local)


class UserLink(Base):
    """One person known on both sides."""

    __tablename__ = "user_links"
    id = Column(Integer, primary_key=True)
    email = Column(String, default="")
    name = Column(String, nullable=False)
    asana_gid = Column(String, unique=True, index=True)
    gitlab_id = Column(Integer, unique=True, index=True)
    # Asana user task list id, needed for @mention links
    asana_utl = Column(String, default="")


class WebhookEventLog(Base):
    """Stored webhook deliveries from both platforms."""

    __tablename__ = "webhook_event_logs"

    id = Column(Integer, primary_key=True)
    created_at = Column(DateTime, default=now_local, index=True)
    source = Column(String, index=True)
    event_type = Column(String, index=True)
    status = Column(String, default="success", index=True)
    summary = Column(Text, default="")
    error_message = Column(Text, nullable=True)
