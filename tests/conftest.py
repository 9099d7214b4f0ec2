from __future__ import annotations

import os

# Keep the module-level app (app.app) off the real database file.
os.environ.setdefault("DB_URL", "sqlite://")

import copy
from typing import Any

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.config import Settings
from app.container import build_services
from app.db import Base
from app.services.asana import AsanaAPIError
from app.services.storage import StorageService

PROGRESS_OPTIONS = [
    {"gid": "opt-ip", "name": "In Progress"},
    {"gid": "opt-test", "name": "Testing"},
    {"gid": "opt-dep", "name": "Deploying"},
]


def make_task(gid: str, name: str, progress: str | None = None) -> dict[str, Any]:
    enum_value = next((o for o in PROGRESS_OPTIONS if o["name"] == progress), None)
    return {
        "gid": gid,
        "name": name,
        "custom_fields": [
            {
                "gid": "cf-progress",
                "name": "Progress",
                "enum_value": dict(enum_value) if enum_value else None,
                "enum_options": copy.deepcopy(PROGRESS_OPTIONS),
            }
        ],
    }


class FakeAsana:
    """In-memory stand-in for AsanaClient that records every write."""

    def __init__(self) -> None:
        self.tasks: dict[str, dict[str, Any]] = {}
        self.notes = ""
        self.searches: list[str] = []
        self.updates: list[tuple[str, dict[str, Any]]] = []
        self.comments: list[tuple[str, str]] = []
        self.notes_updates: list[str] = []
        self.webhooks: list[dict[str, Any]] = []
        self.deleted_webhooks: list[str] = []
        self.fail_notes_update = False
        # gid -> number of add_comment calls that fail before one succeeds
        self.failing_comments: dict[str, int] = {}

    def add(self, gid: str, name: str, progress: str | None = None) -> dict[str, Any]:
        self.tasks[gid] = make_task(gid, name, progress)
        return self.tasks[gid]

    def progress_of(self, gid: str) -> str | None:
        value = self.tasks[gid]["custom_fields"][0]["enum_value"]
        return value["name"] if value else None

    async def get_task(self, gid: str) -> dict[str, Any]:
        if gid not in self.tasks:
            raise AsanaAPIError(404, "Not Found")
        return copy.deepcopy(self.tasks[gid])

    async def update_task(self, gid: str, fields: dict[str, Any]) -> dict[str, Any]:
        self.updates.append((gid, fields))
        task = self.tasks[gid]
        if "name" in fields:
            task["name"] = fields["name"]
        for field_gid, option_gid in (fields.get("custom_fields") or {}).items():
            for field in task["custom_fields"]:
                if field["gid"] == field_gid:
                    field["enum_value"] = next(
                        o for o in field["enum_options"] if o["gid"] == option_gid
                    )
        return copy.deepcopy(task)

    async def add_comment(self, gid: str, html_text: str) -> dict[str, Any]:
        if self.failing_comments.get(gid):
            self.failing_comments[gid] -= 1
            raise AsanaAPIError(503, "Service Unavailable")
        self.comments.append((gid, html_text))
        return {"gid": f"story-{len(self.comments)}"}

    async def search_tasks(self, text: str) -> list[dict[str, Any]]:
        self.searches.append(text)
        return [
            {"gid": t["gid"], "name": t["name"]}
            for t in self.tasks.values()
            if text in t["name"]
        ]

    async def get_project_notes(self) -> str:
        return self.notes

    async def update_project_notes(self, notes: str) -> dict[str, Any]:
        if self.fail_notes_update:
            raise AsanaAPIError(500, "boom")
        self.notes_updates.append(notes)
        self.notes = notes
        return {"notes": notes}

    async def list_webhooks(self) -> list[dict[str, Any]]:
        return list(self.webhooks)

    async def create_webhook(self, target: str) -> dict[str, Any]:
        hook = {"gid": "hook-1", "target": target, "active": True, "resource": {"name": "Proj"}}
        self.webhooks.append(hook)
        return hook

    async def delete_webhook(self, gid: str) -> None:
        self.deleted_webhooks.append(gid)


class FakeGitLab:
    def __init__(self) -> None:
        self.mr_commits: dict[int, list[dict[str, Any]]] = {}
        self.commits: dict[str, dict[str, Any]] = {}
        self.calls: list[tuple[str, Any, Any]] = []
        self.fail = False

    async def merge_request_commits(self, project_id, iid):
        self.calls.append(("mr_commits", project_id, iid))
        if self.fail:
            raise RuntimeError("gitlab down")
        return self.mr_commits.get(iid, [])

    async def get_commit(self, project_id, sha):
        self.calls.append(("commit", project_id, sha))
        return self.commits[sha]


@pytest.fixture
def cfg() -> Settings:
    return Settings(
        db_url="sqlite://",
        base_url="https://bridge.example",
        asana_project_id="proj-1",
        asana_workspace_id="ws-1",
        asana_project_prefix="PROJ",
        asana_custom_field_name="Progress",
        gitlab_webhook_secret="gl-secret",
        excluded_refs=frozenset({"refs/heads/master", "refs/heads/staging"}),
        outbound_workers=2,
        outbound_max_attempts=3,
        outbound_retry_delay=0,
    )


@pytest.fixture
def session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield sessionmaker(bind=engine, autoflush=False, autocommit=False)
    engine.dispose()


@pytest.fixture
def storage(session_factory) -> StorageService:
    return StorageService(session_factory)


@pytest.fixture
def fake_asana() -> FakeAsana:
    return FakeAsana()


@pytest.fixture
def fake_gitlab() -> FakeGitLab:
    return FakeGitLab()


@pytest.fixture
def services(cfg, session_factory, fake_asana, fake_gitlab):
    return build_services(
        cfg,
        session_factory=session_factory,
        asana=fake_asana,
        gitlab=fake_gitlab,
    )
