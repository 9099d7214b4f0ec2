"""Webhook registration and user map persistence."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Optional

from sqlalchemy.orm import Session, sessionmaker

from app.models import UserLink, WebhookEventLog, WebhookRegistration

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StoredWebhook:
    webhook_gid: Optional[str]
    secret: Optional[str]


@dataclass(frozen=True)
class LinkedUser:
    name: str
    asana_gid: str
    gitlab_id: int
    # Asana user task list id, needed for @mention links
    asana_utl: str


class StorageService:
    """
    Thin accessors over the DB rows the bridge needs.

    The webhook secret and the user maps are read often and change rarely,
    so both stay in memory once loaded.
    """

    def __init__(self, session_factory: sessionmaker) -> None:
        self._session_factory = session_factory
        self._secret: str = ""
        self.gitlab_users: dict[int, LinkedUser] = {}
        self.asana_users: dict[str, LinkedUser] = {}

    # -- webhook -----------------------------------------------------------

    @staticmethod
    def _current(db: Session) -> Optional[WebhookRegistration]:
        return db.query(WebhookRegistration).order_by(WebhookRegistration.id.desc()).first()

    def get_webhook(self) -> Optional[StoredWebhook]:
        with self._session_factory() as db:
            row = self._current(db)
            if not row:
                return None
            return StoredWebhook(webhook_gid=row.webhook_gid, secret=row.secret)

    def get_webhook_secret(self) -> str:
        if not self._secret:
            webhook = self.get_webhook()
            if webhook and webhook.secret:
                self._secret = webhook.secret
        return self._secret

    def save_webhook(self, webhook_gid: Optional[str], secret: Optional[str]) -> None:
        """Replace whatever registration was stored."""
        with self._session_factory() as db:
            db.query(WebhookRegistration).delete()
            db.add(WebhookRegistration(webhook_gid=webhook_gid, secret=secret))
            db.commit()
        self._secret = secret or ""

    def update_webhook(
        self,
        webhook_gid: Optional[str] = None,
        secret: Optional[str] = None,
    ) -> None:
        """Set only the given fields, keeping the stored ones otherwise."""
        old = self.get_webhook()
        if old:
            webhook_gid = webhook_gid or old.webhook_gid
            secret = secret or old.secret
        self.save_webhook(webhook_gid, secret)

    def delete_webhook(self) -> None:
        with self._session_factory() as db:
            db.query(WebhookRegistration).delete()
            db.commit()
        self._secret = ""

    # -- users -------------------------------------------------------------

    def load_users(self) -> int:
        with self._session_factory() as db:
            rows = db.query(UserLink).all()
            users = [
                LinkedUser(
                    name=row.name,
                    asana_gid=row.asana_gid or "",
                    gitlab_id=row.gitlab_id,
                    asana_utl=row.asana_utl or "",
                )
                for row in rows
            ]
        self.gitlab_users = {u.gitlab_id: u for u in users if u.gitlab_id is not None}
        self.asana_users = {u.asana_gid: u for u in users if u.asana_gid}
        logger.debug("Loaded %d linked users", len(users))
        return len(users)

    def gitlab_user(self, gitlab_id: Any) -> Optional[LinkedUser]:
        try:
            return self.gitlab_users.get(int(gitlab_id))
        except (TypeError, ValueError):
            return None

    def asana_user(self, asana_gid: str) -> Optional[LinkedUser]:
        return self.asana_users.get(str(asana_gid))

    def import_users(self, records: Iterable[Mapping[str, Any]]) -> int:
        """
        Upsert users from the JSON user map format
        (``email``, ``name``, ``aId``, ``gId``, ``aUtl``).
        """
        count = 0
        with self._session_factory() as db:
            for record in records:
                gitlab_id = int(record["gId"])
                row = db.query(UserLink).filter_by(gitlab_id=gitlab_id).first()
                if not row:
                    row = UserLink(gitlab_id=gitlab_id)
                    db.add(row)
                row.email = record.get("email") or ""
                row.name = record["name"]
                row.asana_gid = str(record["aId"])
                row.asana_utl = str(record.get("aUtl") or "")
                count += 1
            db.commit()
        self.load_users()
        return count

    # -- delivery log ------------------------------------------------------

    def log_delivery(
        self,
        source: str,
        event_type: str,
        status: str,
        summary: str = "",
        error_message: Optional[str] = None,
    ) -> None:
        with self._session_factory() as db:
            db.add(
                WebhookEventLog(
                    source=source,
                    event_type=event_type,
                    status=status,
                    summary=summary,
                    error_message=error_message,
                )
            )
            db.commit()
