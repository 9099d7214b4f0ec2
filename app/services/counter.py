"""Running task id counter stored inside the Asana project notes.

The project ``notes`` field is free text owned by Asana; somewhere inside it
lives a single ``[currentTaskId: <n>]`` marker. We only ever swap that marker
substring and leave the rest of the text alone.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Optional

from app.services import identifiers

MARKER_OPEN = "[currentTaskId:"


@dataclass
class Allocation:
    """Result of claiming ids for one batch of created tasks."""

    notes: str
    start: int
    end: int
    ids: list[Optional[int]] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return self.end != self.start


def render_marker(value: int) -> str:
    return f"{MARKER_OPEN} {value}]"


def find_marker(notes: str | None) -> Optional[tuple[int, int, int]]:
    """Return ``(start, end, value)`` of the first well-formed marker."""
    if not notes:
        return None
    pos = notes.find(MARKER_OPEN)
    while pos != -1:
        end = notes.find("]", pos)
        if end == -1:
            return None
        raw = notes[pos + len(MARKER_OPEN) : end].strip()
        if raw.isdigit():
            return pos, end + 1, int(raw)
        pos = notes.find(MARKER_OPEN, pos + 1)
    return None


def read_counter(notes: str | None) -> int:
    """Current counter value; an absent marker counts as 0."""
    found = find_marker(notes)
    return found[2] if found else 0


def write_counter(notes: str | None, value: int) -> str:
    """Replace the marker in ``notes`` or append one if there is none."""
    text = notes or ""
    found = find_marker(text)
    if found:
        start, end, _ = found
        return text[:start] + render_marker(value) + text[end:]
    if not text:
        return render_marker(value)
    return f"{text} {render_marker(value)}"


def next_batch(notes: str | None, count: int) -> tuple[str, int]:
    """
    Reserve ``count`` consecutive ids.

    Returns the rewritten notes and the first id handed out.
    """
    current = read_counter(notes)
    return write_counter(notes, current + count), current + 1


def claim(notes: str | None, titles: Iterable[str]) -> Allocation:
    """
    Hand out one id per title, in order.

    Titles that already start with a task token keep it: the slot that was
    tentatively taken for them is given back, so the next title reuses it.
    """
    start = read_counter(notes)
    current = start
    ids: list[Optional[int]] = []
    for title in titles:
        current += 1
        if identifiers.extract(title, anchored=True):
            current -= 1
            ids.append(None)
            continue
        ids.append(current)
    new_notes = write_counter(notes, current) if current != start else (notes or "")
    return Allocation(notes=new_notes, start=start, end=current, ids=ids)
