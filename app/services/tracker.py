"""Asana-side use cases of the bridge."""

from __future__ import annotations

import asyncio
import logging
from functools import partial
from typing import Any, Iterable, Optional

import httpx

from app.config import Settings, settings
from app.schemas import AsanaEvent
from app.services import counter, identifiers
from app.services.asana import AsanaAPIError, AsanaClient
from app.services.outbound import OutboundQueue
from app.services.progress import Progress
from app.services.resolver import TaskResolver
from app.services.storage import StorageService
from app.utils import asana_verify

logger = logging.getLogger(__name__)

JSONDict = dict[str, Any]


class WebhookNotFoundError(LookupError):
    """Raised when no Asana webhook registration is stored."""


def progress_field(task: JSONDict, field_name: str) -> Optional[JSONDict]:
    for field in task.get("custom_fields") or []:
        if field.get("name") == field_name:
            return field
    return None


def progress_option(field: JSONDict, name: str) -> Optional[JSONDict]:
    for option in field.get("enum_options") or []:
        if option.get("name") == name:
            return option
    return None


class AsanaSync:
    """
    Everything the bridge does to Asana.

    The running task id lives in the project notes, which only Asana can
    store. Batches are serialised with a lock so two deliveries handled by
    this process never hand out the same id; separate processes sharing the
    project can still race.
    """

    def __init__(
        self,
        client: AsanaClient,
        storage: StorageService,
        queue: OutboundQueue,
        cfg: Settings = settings,
    ) -> None:
        self.client = client
        self.storage = storage
        self.queue = queue
        self.cfg = cfg
        self.resolver = TaskResolver(client.search_tasks)
        self._counter_lock = asyncio.Lock()

    # -- webhook handshake & signature -------------------------------------

    def handle_handshake(self, secret: str) -> None:
        logger.debug("Webhook handshake...")
        self.storage.update_webhook(secret=secret)

    def verify(self, body: bytes, signature: Optional[str]) -> bool:
        return asana_verify(self.storage.get_webhook_secret(), body, signature)

    # -- task creation -----------------------------------------------------

    @staticmethod
    def added_task_gids(events: Iterable[AsanaEvent]) -> list[str]:
        """Unique gids of tasks added to the project, in delivery order."""
        gids: list[str] = []
        for event in events:
            if event.is_task_added_to_project and event.resource.gid not in gids:
                gids.append(event.resource.gid)
        return gids

    async def handle_task_events(self, events: Iterable[AsanaEvent]) -> dict[str, str]:
        """
        Stamp newly added tasks with the next task ids.

        Returns ``{task gid: token}`` for the tasks that got one.
        """
        gids = self.added_task_gids(events)
        if not gids:
            return {}

        async with self._counter_lock:
            # fetched every time: someone may have edited the notes in Asana
            notes = await self.client.get_project_notes()

            tasks: list[JSONDict] = []
            for gid in gids:
                try:
                    tasks.append(await self.client.get_task(gid))
                except (AsanaAPIError, httpx.HTTPError) as exc:
                    logger.warning("Webhook with wrong gid %s: %s", gid, exc)

            allocation = counter.claim(notes, [task.get("name") or "" for task in tasks])
            assigned: dict[str, str] = {}
            for task, task_id in zip(tasks, allocation.ids):
                name = task.get("name") or ""
                logger.debug("Task Created hook: %s", name)
                if task_id is None:
                    continue
                token = identifiers.make_token(self.cfg.asana_project_prefix, task_id)
                logger.debug("Adding taskId: %s", token)
                assigned[str(task["gid"])] = token
                await self.queue.submit(
                    f"title {token}",
                    partial(
                        self.client.update_task,
                        str(task["gid"]),
                        {"name": identifiers.embed(name, token)},
                    ),
                )

            if allocation.changed:
                try:
                    await self.client.update_project_notes(allocation.notes)
                except (AsanaAPIError, httpx.HTTPError) as exc:
                    # ids already went into titles; nothing to undo
                    logger.error(
                        "Could not store running task id %d: %s", allocation.end, exc
                    )
        return assigned

    # -- GitLab driven updates ---------------------------------------------

    async def set_progress(self, task: JSONDict, progress: Progress | str) -> bool:
        """Set the Progress field unless it already has that value."""
        target = progress.value if isinstance(progress, Progress) else str(progress)
        field = progress_field(task, self.cfg.asana_custom_field_name)
        if not field:
            logger.warning(
                "Task %s has no '%s' field", task.get("gid"), self.cfg.asana_custom_field_name
            )
            return False
        current = (field.get("enum_value") or {}).get("name")
        if current == target:
            return False
        option = progress_option(field, target)
        if not option:
            logger.warning("'%s' is not an option of '%s'", target, field.get("name"))
            return False
        logger.debug("Update task Progress to '%s'", target)
        await self.client.update_task(
            str(task["gid"]), {"custom_fields": {field["gid"]: option["gid"]}}
        )
        return True

    async def apply_vcs_update(self, token: str, note: str, progress: Progress) -> list[str]:
        """
        Find the tasks carrying ``token`` and queue one update per task.

        Each task is its own job, so a retry only repeats the task that
        failed and never comments twice on the others.
        """
        gids = await self.resolver.resolve(token)
        for gid in gids:
            await self.queue.submit(
                f"{token} -> {gid}",
                partial(self.update_task_from_vcs, gid, note, progress),
            )
        return gids

    async def update_task_from_vcs(self, gid: str, note: str, progress: Progress) -> None:
        try:
            task = await self.client.get_task(gid)
        except AsanaAPIError as exc:
            if exc.status_code == 404:
                # deleted or moved; search again next time
                self.resolver.forget(gid)
            raise
        await self.set_progress(task, progress)
        logger.debug("Add note to task %s", gid)
        await self.client.add_comment(gid, note)

    # -- admin helpers -----------------------------------------------------

    async def list_hooks(self) -> list[JSONDict]:
        return await self.client.list_webhooks()

    async def create_hook(self) -> str:
        """
        Install the project webhook.

        Asana calls back with a handshake while this request is in flight;
        the running server stores that secret, we store the webhook gid.
        """
        res = await self.client.create_webhook(f"{self.cfg.base_url.rstrip('/')}/webhooks/asana")
        gid = str(res["gid"])
        self.storage.update_webhook(webhook_gid=gid)
        return gid

    async def delete_hook(self) -> str:
        webhook = self.storage.get_webhook()
        if not webhook or not webhook.webhook_gid:
            raise WebhookNotFoundError("No Webhook saved")
        await self.client.delete_webhook(webhook.webhook_gid)
        self.storage.delete_webhook()
        return webhook.webhook_gid

    async def add_token_to_title(self, gid: str, token: str) -> str:
        task = await self.client.get_task(gid)
        name = identifiers.embed(task.get("name") or "", token)
        await self.client.update_task(gid, {"name": name})
        return name

    async def change_progress(self, gid: str, progress: Progress | str) -> bool:
        return await self.set_progress(await self.client.get_task(gid), progress)
