"""Route inbound webhook deliveries to the bridge's use cases."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from functools import partial
from typing import Any, Mapping, Optional

from app.config import Settings, settings
from app.schemas import AsanaWebhookBody
from app.services import identifiers, notes
from app.services.gitlab import GitLabClient
from app.services.outbound import OutboundQueue
from app.services.progress import (
    Progress,
    is_wip,
    merge_request_transition,
    push_transition,
)
from app.services.storage import StorageService
from app.services.tracker import AsanaSync

logger = logging.getLogger(__name__)


class EventKind(str, Enum):
    HANDSHAKE = "handshake"
    SIGNED_TASK_EVENT = "signed-task-event"
    VCS_PUSH = "vcs-push"
    VCS_MERGE_REQUEST = "vcs-merge-request"
    UNRECOGNIZED = "unrecognized"


GITLAB_EVENTS = {
    "Push Hook": EventKind.VCS_PUSH,
    "Merge Request Hook": EventKind.VCS_MERGE_REQUEST,
}


def classify_asana(hook_secret: Optional[str]) -> EventKind:
    return EventKind.HANDSHAKE if hook_secret else EventKind.SIGNED_TASK_EVENT


def classify_gitlab(event_header: Optional[str]) -> EventKind:
    return GITLAB_EVENTS.get((event_header or "").strip(), EventKind.UNRECOGNIZED)


@dataclass
class DispatchResult:
    kind: EventKind
    status: str = "success"
    summary: str = ""
    headers: dict[str, str] = field(default_factory=dict)


class EventDispatcher:
    def __init__(
        self,
        sync: AsanaSync,
        gitlab: GitLabClient,
        storage: StorageService,
        queue: OutboundQueue,
        cfg: Settings = settings,
    ) -> None:
        self.sync = sync
        self.gitlab = gitlab
        self.storage = storage
        self.queue = queue
        self.cfg = cfg

    def _display_name(self, gitlab_id: Any, fallback: str) -> str:
        user = self.storage.gitlab_user(gitlab_id)
        return user.name if user else fallback

    async def _submit_update(self, token: str, note: str, progress: Progress) -> None:
        await self.queue.submit(
            f"gitlab -> {token}",
            partial(self.sync.apply_vcs_update, token, note, progress),
        )

    # -- Asana -------------------------------------------------------------

    async def dispatch_asana(
        self,
        *,
        hook_secret: Optional[str],
        signature: Optional[str],
        body: bytes,
    ) -> DispatchResult:
        kind = classify_asana(hook_secret)
        if kind is EventKind.HANDSHAKE:
            self.sync.handle_handshake(hook_secret)
            # Asana expects the very same header back
            return DispatchResult(
                kind, summary="handshake", headers={"X-Hook-Secret": hook_secret}
            )

        if not body:
            return DispatchResult(kind, status="ignored", summary="empty body")
        if not self.sync.verify(body, signature):
            return DispatchResult(kind, status="rejected", summary="invalid signature")

        payload = AsanaWebhookBody.model_validate(json.loads(body))
        assigned = await self.sync.handle_task_events(payload.events)
        summary = ", ".join(assigned.values()) or f"{len(payload.events)} events, no new task"
        return DispatchResult(kind, summary=summary)

    # -- GitLab ------------------------------------------------------------

    async def dispatch_gitlab(
        self, event_header: Optional[str], payload: Mapping[str, Any]
    ) -> DispatchResult:
        kind = classify_gitlab(event_header)
        if kind is EventKind.VCS_PUSH:
            tokens = await self.handle_push(payload)
        elif kind is EventKind.VCS_MERGE_REQUEST:
            tokens = await self.handle_merge_request(payload)
        else:
            logger.warning("Unhandled event %s", event_header)
            return DispatchResult(kind, status="ignored", summary=event_header or "")
        if not tokens:
            return DispatchResult(kind, status="ignored")
        return DispatchResult(kind, summary=", ".join(tokens))

    async def handle_push(self, payload: Mapping[str, Any]) -> list[str]:
        ref = payload.get("ref") or ""
        # direct commits / merges to production-like branches are not tracked
        if ref in self.cfg.excluded_refs:
            logger.warning("Push hook ignored: %s", ref)
            return []

        commits = payload.get("commits") or []
        logger.debug("Push hook, commits: %s", payload.get("total_commits_count", len(commits)))

        by_token: dict[str, list[Mapping[str, Any]]] = {}
        for commit in commits:
            found = identifiers.extract(commit.get("message") or commit.get("title"))
            if found:
                by_token.setdefault(found.token, []).append(commit)

        transition = push_transition(sum(len(c) for c in by_token.values()))
        if not transition:
            logger.warning("No task Ids found")
            return []

        pusher = payload.get("user_name") or ""
        user_name = self._display_name(payload.get("user_id"), pusher)
        project = payload.get("project") or {}
        for token, token_commits in by_token.items():
            note = notes.push_note(
                user_name=user_name,
                pusher_name=pusher,
                project_name=project.get("name") or "",
                project_url=project.get("web_url") or "",
                ref=ref,
                commits=token_commits,
            )
            await self._submit_update(token, note, transition.progress)
        return list(by_token)

    async def handle_merge_request(self, payload: Mapping[str, Any]) -> list[str]:
        attrs = payload.get("object_attributes") or {}
        action = attrs.get("action")
        iid = attrs.get("iid")
        logger.debug("MR hook: %s - %s", action, iid)

        transition = merge_request_transition(
            action,
            attrs.get("state"),
            wip=is_wip(attrs),
            title_changed=bool((payload.get("changes") or {}).get("title")),
        )
        if not transition:
            return []

        project = payload.get("project") or {}
        project_id = project.get("id")
        user_name = self._display_name(
            attrs.get("author_id"), (payload.get("user") or {}).get("name") or ""
        )
        header = notes.merge_request_header(
            iid=iid,
            url=attrs.get("url"),
            headline=transition.headline,
            user_name=user_name,
            project_name=project.get("name") or "",
            project_url=project.get("web_url") or "",
            source=attrs.get("source_branch") or "",
            target=attrs.get("target_branch") or "",
        )

        commits = await self.gitlab.merge_request_commits(project_id, iid)

        items = [notes.message_item(attrs.get("title") or attrs.get("description"))]
        if action in ("open", "update"):
            items.append(
                notes.assignees_item(
                    attrs.get("assignee_ids"),
                    payload.get("assignees"),
                    self.storage.gitlab_user,
                )
            )
        elif action == "merge" and attrs.get("merge_commit_sha"):
            merge_commit = await self.gitlab.get_commit(project_id, attrs["merge_commit_sha"])
            items.append(
                notes.commit_item(
                    merge_commit.get("id") or "",
                    merge_commit.get("web_url"),
                    merge_commit.get("title"),
                )
            )
        note = notes.finish(header, items)

        tokens: list[str] = []
        for commit in commits:
            found = identifiers.extract(commit.get("title") or commit.get("message"))
            if found and found.token not in tokens:
                tokens.append(found.token)
        if not tokens:
            logger.warning("No task Ids found in MR !%s", iid)
        for token in tokens:
            await self._submit_update(token, note, transition.progress)
        return tokens
