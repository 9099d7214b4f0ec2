"""Map GitLab events to the Asana "Progress" field."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping, Optional


class Progress(str, Enum):
    IN_PROGRESS = "In Progress"
    TESTING = "Testing"
    DEPLOYING = "Deploying"


@dataclass(frozen=True)
class Transition:
    progress: Progress
    headline: str = ""


OPENED = "⚔ Opened"
MERGED = "🏆 Merged"
CLOSED = "⚰ Closed"


def push_transition(identified_commits: int) -> Optional[Transition]:
    """A push moves its tasks to In Progress once any commit names one."""
    if identified_commits > 0:
        return Transition(Progress.IN_PROGRESS)
    return None


def merge_request_transition(
    action: str | None,
    state: str | None,
    *,
    wip: bool = False,
    title_changed: bool = False,
) -> Optional[Transition]:
    """
    Pick the progress for a merge request event, or None for no change.

    Work-in-progress MRs never move tasks, except when they get merged.
    """
    if action in ("open", "reopen") and not wip:
        return Transition(Progress.TESTING, OPENED)
    if action == "update" and state == "opened" and not wip:
        # only the "no longer WIP" edit touches the title
        if title_changed:
            return Transition(Progress.TESTING, OPENED)
        return None
    if action == "merge" and state == "merged":
        return Transition(Progress.DEPLOYING, MERGED)
    if action == "close" and not wip:
        return Transition(Progress.IN_PROGRESS, CLOSED)
    return None


def is_wip(attributes: Mapping[str, Any]) -> bool:
    """GitLab renamed ``work_in_progress`` to ``draft``; accept both."""
    if "work_in_progress" in attributes:
        return bool(attributes.get("work_in_progress"))
    return bool(attributes.get("draft"))
