"""Find the Asana task(s) carrying a given token."""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Optional

from app.services import identifiers

logger = logging.getLogger(__name__)

SearchFn = Callable[[str], Awaitable[list[dict[str, Any]]]]


class TaskResolver:
    """
    Token -> task gids, remembering the last unique hit.

    GitLab tends to send bursts about the same task (push, then MR open,
    then merge), so one cached slot saves most searches. Ambiguous or empty
    results are never cached.
    """

    def __init__(self, search: SearchFn) -> None:
        self._search = search
        self._last: Optional[tuple[str, str]] = None

    @property
    def cached(self) -> Optional[tuple[str, str]]:
        return self._last

    def forget(self, gid: Optional[str] = None) -> None:
        """Drop the cached hit; with ``gid``, only if it is the cached one."""
        if gid is None or (self._last and self._last[1] == gid):
            self._last = None

    async def resolve(self, token: str) -> list[str]:
        if self._last and self._last[0] == token:
            return [self._last[1]]

        results = await self._search(token)
        # search is full-text: "[P-1]" also hits "[P-12]" or a mention in notes
        gids = [
            str(task["gid"])
            for task in results
            if identifiers.has_token(token, task.get("name"))
        ]
        if len(gids) == 1:
            self._last = (token, gids[0])
        else:
            self._last = None
            if gids:
                logger.warning("Token %s matches %d tasks", token, len(gids))
            else:
                logger.warning("Token %s matches no task", token)
        return gids
