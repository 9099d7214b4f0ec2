"""Yet another Asana REST client"""

from __future__ import annotations

from typing import Any, Optional

import httpx

from app.config import Settings, settings

JSONDict = dict[str, Any]


class AsanaAPIError(RuntimeError):
    """Raised when Asana answers with a non-2xx status."""

    def __init__(self, status_code: int, text: str) -> None:
        super().__init__(f"Asana error: {status_code} {text}")
        self.status_code = status_code
        self.text = text


class AsanaClient:
    """The handful of Asana endpoints the bridge talks to."""

    def __init__(
        self,
        cfg: Settings = settings,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.cfg = cfg
        self._transport = transport

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[JSONDict] = None,
        data: Optional[JSONDict] = None,
    ) -> Any:
        url = f"{self.cfg.asana_api_url.rstrip('/')}{path}"
        headers = {
            "Authorization": f"Bearer {self.cfg.asana_token}",
            "Accept": "application/json",
        }
        payload = {"data": data} if data is not None else None
        async with httpx.AsyncClient(
            timeout=self.cfg.http_timeout, transport=self._transport
        ) as client:
            r = await client.request(method, url, params=params, json=payload, headers=headers)
        if r.status_code >= 300:
            raise AsanaAPIError(r.status_code, r.text)
        if not r.content:
            return None
        return r.json().get("data")

    # -- tasks -------------------------------------------------------------

    async def get_task(self, gid: str) -> JSONDict:
        return await self._request("GET", f"/tasks/{gid}")

    async def update_task(self, gid: str, fields: JSONDict) -> JSONDict:
        return await self._request("PUT", f"/tasks/{gid}", data=fields)

    async def add_comment(self, gid: str, html_text: str) -> JSONDict:
        return await self._request("POST", f"/tasks/{gid}/stories", data={"html_text": html_text})

    async def search_tasks(self, text: str) -> list[JSONDict]:
        """Full-text search limited to the configured project."""
        params = {
            "text": text,
            "projects.all": self.cfg.asana_project_id,
            "opt_fields": "name",
        }
        return await self._request(
            "GET", f"/workspaces/{self.cfg.asana_workspace_id}/tasks/search", params=params
        ) or []

    # -- project -----------------------------------------------------------

    async def get_project_notes(self) -> str:
        project = await self._request(
            "GET", f"/projects/{self.cfg.asana_project_id}", params={"opt_fields": "notes"}
        )
        return (project or {}).get("notes") or ""

    async def update_project_notes(self, notes: str) -> JSONDict:
        return await self._request(
            "PUT", f"/projects/{self.cfg.asana_project_id}", data={"notes": notes}
        )

    # -- webhooks ----------------------------------------------------------

    async def list_webhooks(self) -> list[JSONDict]:
        params = {
            "workspace": self.cfg.asana_workspace_id,
            "resource": self.cfg.asana_project_id,
        }
        return await self._request("GET", "/webhooks", params=params) or []

    async def create_webhook(self, target: str) -> JSONDict:
        """Watch the project for tasks being added to it."""
        data = {
            "resource": self.cfg.asana_project_id,
            "target": target,
            "filters": [{"action": "added", "resource_type": "task"}],
        }
        return await self._request("POST", "/webhooks", data=data)

    async def delete_webhook(self, gid: str) -> None:
        await self._request("DELETE", f"/webhooks/{gid}")
