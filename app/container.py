"""Wire the bridge services together."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from sqlalchemy.orm import sessionmaker

from app.config import Settings, settings
from app.db import Base, SessionLocal
from app.services import identifiers
from app.services.asana import AsanaClient
from app.services.dispatcher import EventDispatcher
from app.services.gitlab import GitLabClient
from app.services.outbound import OutboundQueue
from app.services.storage import StorageService
from app.services.tracker import AsanaSync


@dataclass
class Services:
    cfg: Settings
    storage: StorageService
    queue: OutboundQueue
    sync: AsanaSync
    dispatcher: EventDispatcher

    async def start(self) -> None:
        self.queue.start()

    async def stop(self) -> None:
        await self.queue.stop()


def build_services(
    cfg: Settings = settings,
    *,
    session_factory: Optional[sessionmaker] = None,
    asana: Optional[AsanaClient] = None,
    gitlab: Optional[GitLabClient] = None,
) -> Services:
    if not identifiers.valid_prefix(cfg.asana_project_prefix):
        # stamped titles would never be recognised, and get stamped again
        raise ValueError(
            f"ASANA_PROJECT_PREFIX {cfg.asana_project_prefix!r} cannot be used in a task id"
        )

    factory = session_factory or SessionLocal
    Base.metadata.create_all(factory.kw["bind"])

    storage = StorageService(factory)
    storage.load_users()
    queue = OutboundQueue(
        maxsize=cfg.outbound_queue_size,
        workers=cfg.outbound_workers,
        max_attempts=cfg.outbound_max_attempts,
        retry_delay=cfg.outbound_retry_delay,
    )
    sync = AsanaSync(asana or AsanaClient(cfg), storage, queue, cfg)
    dispatcher = EventDispatcher(sync, gitlab or GitLabClient(cfg), storage, queue, cfg)
    return Services(cfg, storage, queue, sync, dispatcher)
