"""HTML comments posted on Asana tasks for GitLab activity.

Asana renders ``html_text`` as-is, so the markup here is exact: a ``<body>``
root, one header line, then an optional ``<ul>`` of details.
"""

from __future__ import annotations

from html import escape as _escape
from typing import Any, Callable, Iterable, Mapping, Optional, Sequence

from app.services.storage import LinkedUser

ASANA_USER_LIST_URL = "https://app.asana.com/0/{utl}/list"
SHORT_SHA = 8

UserLookup = Callable[[Any], Optional[LinkedUser]]


def _esc(value: Any) -> str:
    return _escape(str(value if value is not None else ""), quote=False)


def _esc_attr(value: Any) -> str:
    return _esc(value).replace('"', "&quot;")


def link(text: Any, url: str | None) -> str:
    """Same shape as JavaScript's ``String.prototype.link``."""
    return f'<a href="{_esc_attr(url or "")}">{_esc(text)}</a>'


def branch_name(ref: str) -> str:
    return ref[ref.rfind("/") + 1 :]


def commit_item(
    commit_id: str,
    url: str | None,
    title: str | None,
    author: str | None = None,
) -> str:
    by = f" by <em>{_esc(author)}</em>" if author else ""
    sha = link((commit_id or "")[:SHORT_SHA], url)
    return f"<li>Commit {sha}{by}: {_esc(title)}</li>"


def push_note(
    *,
    user_name: str,
    pusher_name: str,
    project_name: str,
    project_url: str,
    ref: str,
    commits: Sequence[Mapping[str, Any]],
) -> str:
    """
    Note for the commits of one push that mention the same task.

    The commit author is only named when it differs from the pusher.
    """
    branch = branch_name(ref)
    branch_url = f"{project_url}/-/commits/{branch}"
    note = (
        f"<body><strong>GitLab Push ⚙</strong> by <em>{_esc(user_name)}</em>: "
        f"➡️ {link(project_name, project_url)} branch {link(branch, branch_url)}"
    )
    if not commits:
        return note + "</body>"

    note += "<ul>"
    for commit in commits:
        author = (commit.get("author") or {}).get("name") or ""
        note += commit_item(
            commit.get("id") or "",
            commit.get("url"),
            commit.get("title"),
            author if author != pusher_name else None,
        )
    return note + "</ul></body>"


def merge_request_header(
    *,
    iid: Any,
    url: str | None,
    headline: str,
    user_name: str,
    project_name: str,
    project_url: str,
    source: str,
    target: str,
) -> str:
    return (
        f"<body><strong>GitLab MR {link(f'!{iid}', url)} {headline}</strong>"
        f" by <em>{_esc(user_name)}</em>: {link(project_name, project_url)}"
        f" ({_esc(source)} ➡️ {_esc(target)})"
    )


def message_item(message: str | None) -> str:
    return f"<li>{_esc(message)}</li>" if message else ""


def assignees_item(
    assignee_ids: Sequence[Any] | None,
    assignees: Sequence[Mapping[str, Any]] | None,
    lookup: UserLookup,
) -> str:
    """
    ``Assignee(s): ...`` list entry.

    Linked users become an @mention to their Asana task list; anybody else
    shows with their GitLab display name.
    """
    if not assignee_ids:
        return "<li>Unassigned!</li>"

    known = [a for a in (assignees or []) if isinstance(a, Mapping)]
    by_id = {a.get("id"): a for a in known if a.get("id") is not None}
    names: list[str] = []
    for idx, assignee_id in enumerate(assignee_ids):
        user = lookup(assignee_id)
        if user:
            names.append(link(f"@{user.name}", ASANA_USER_LIST_URL.format(utl=user.asana_utl)))
            continue
        entry = by_id.get(assignee_id) or (known[idx] if idx < len(known) else {})
        names.append(_esc(entry.get("name") or entry.get("username") or assignee_id))

    label = "Assignee" if len(assignee_ids) == 1 else "Assignees"
    return f"<li>{label}: {', '.join(names)}</li>"


def finish(header: str, items: Iterable[str]) -> str:
    """Close a note, wrapping non-empty detail items in a list."""
    body = "".join(item for item in items if item)
    if body:
        header += f"<ul>{body}</ul>"
    return header + "</body>"
