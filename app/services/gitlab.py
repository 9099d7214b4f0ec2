"""Yet another GitLab REST client"""

from __future__ import annotations

from typing import Any, Optional
from urllib.parse import quote

import httpx

from app.config import Settings, settings

JSONDict = dict[str, Any]


class GitLabAPIError(RuntimeError):
    """Raised when GitLab answers with a non-2xx status."""

    def __init__(self, status_code: int, text: str) -> None:
        super().__init__(f"GitLab error: {status_code} {text}")
        self.status_code = status_code
        self.text = text


class GitLabClient:
    def __init__(
        self,
        cfg: Settings = settings,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.cfg = cfg
        self._transport = transport

    def _project_url(self, project_id: int | str) -> str:
        base = self.cfg.gitlab_url.rstrip("/")
        return f"{base}/api/v4/projects/{quote(str(project_id), safe='')}"

    async def _get(self, url: str, params: Optional[JSONDict] = None) -> Any:
        headers = {"PRIVATE-TOKEN": self.cfg.gitlab_token}
        async with httpx.AsyncClient(
            timeout=self.cfg.http_timeout, transport=self._transport
        ) as client:
            r = await client.get(url, params=params, headers=headers)
        if r.status_code >= 300:
            raise GitLabAPIError(r.status_code, r.text)
        return r.json()

    async def merge_request_commits(self, project_id: int | str, iid: int) -> list[JSONDict]:
        url = f"{self._project_url(project_id)}/merge_requests/{iid}/commits"
        return await self._get(url, params={"per_page": 100}) or []

    async def get_commit(self, project_id: int | str, sha: str) -> JSONDict:
        url = f"{self._project_url(project_id)}/repository/commits/{sha}"
        return await self._get(url)
