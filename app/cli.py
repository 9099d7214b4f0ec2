"""Admin CLI: Asana webhook management, user map import and task pokes."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
from pathlib import Path

import httpx

from app.config import settings
from app.container import Services, build_services
from app.logging_config import setup_logging
from app.services.asana import AsanaAPIError
from app.services.progress import Progress
from app.services.tracker import WebhookNotFoundError

logger = logging.getLogger(__name__)


def load_services() -> Services:
    return build_services(settings)


async def cmd_hooks_create(services: Services, args: argparse.Namespace) -> int:
    print("Creating hook...")
    gid = await services.sync.create_hook()
    print(f"Asana Webhook created: ID {gid}")
    return 0


async def cmd_hooks_show(services: Services, args: argparse.Namespace) -> int:
    hooks = await services.sync.list_hooks()
    if args.json:
        print(json.dumps(hooks, indent=2))
        return 0
    print("--- Hooks ---")
    for hook in hooks:
        print(f"gid    : {hook.get('gid')}")
        print(f"active : {hook.get('active')}")
        print(f"resrce : {(hook.get('resource') or {}).get('name')}")
        print(f"target : {hook.get('target')}")
        print("---")
    return 0


async def cmd_hooks_delete(services: Services, args: argparse.Namespace) -> int:
    print("Deleting hook...")
    gid = await services.sync.delete_hook()
    print(f"Asana Webhook with ID {gid} deleted")
    return 0


async def cmd_users_import(services: Services, args: argparse.Namespace) -> int:
    records = json.loads(Path(args.file).read_text(encoding="utf-8"))
    count = services.storage.import_users(records)
    print(f"Imported {count} users")
    return 0


async def cmd_task_search(services: Services, args: argparse.Namespace) -> int:
    for task in await services.sync.client.search_tasks(args.text):
        print(f"{task.get('gid')}: {task.get('name')}")
    return 0


async def cmd_task_title(services: Services, args: argparse.Namespace) -> int:
    name = await services.sync.add_token_to_title(args.gid, args.token)
    print(f"Renamed to: {name}")
    return 0


async def cmd_task_progress(services: Services, args: argparse.Namespace) -> int:
    changed = await services.sync.change_progress(args.gid, args.progress)
    print("Progress updated" if changed else "Progress unchanged")
    return 0


async def cmd_task_note(services: Services, args: argparse.Namespace) -> int:
    await services.sync.client.add_comment(args.gid, args.html)
    print("Done, check Asana")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Asana ⇄ GitLab bridge admin")
    sub = parser.add_subparsers(dest="cmd")

    p_hooks = sub.add_parser("hooks", help="Manage the Asana project webhook")
    hooks = p_hooks.add_subparsers(dest="hooks_cmd")
    p_create = hooks.add_parser("create", help="Create the Asana hook")
    p_create.set_defaults(func=cmd_hooks_create)
    p_show = hooks.add_parser("show", help="Show installed Asana hooks")
    p_show.add_argument("--json", action="store_true", help="Output JSON")
    p_show.set_defaults(func=cmd_hooks_show)
    p_delete = hooks.add_parser("delete", help="Delete the installed Asana hook")
    p_delete.set_defaults(func=cmd_hooks_delete)

    p_users = sub.add_parser("users", help="Manage the Asana/GitLab user map")
    users = p_users.add_subparsers(dest="users_cmd")
    p_import = users.add_parser("import", help="Import a JSON user map")
    p_import.add_argument("file", help="JSON list of {email, name, aId, gId, aUtl}")
    p_import.set_defaults(func=cmd_users_import)

    p_task = sub.add_parser("task", help="Manual task operations")
    task = p_task.add_subparsers(dest="task_cmd")
    p_search = task.add_parser("search", help="Search a task by text")
    p_search.add_argument("text")
    p_search.set_defaults(func=cmd_task_search)
    p_title = task.add_parser("title", help="Add a task id to a task title")
    p_title.add_argument("gid")
    p_title.add_argument("token")
    p_title.set_defaults(func=cmd_task_title)
    p_progress = task.add_parser("progress", help="Change a task's Progress")
    p_progress.add_argument("gid")
    p_progress.add_argument("progress", choices=[p.value for p in Progress])
    p_progress.set_defaults(func=cmd_task_progress)
    p_note = task.add_parser("note", help="Add an HTML note to a task")
    p_note.add_argument("gid")
    p_note.add_argument("html")
    p_note.set_defaults(func=cmd_task_note)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not hasattr(args, "func"):
        parser.print_help()
        return 1

    setup_logging()
    services = load_services()
    try:
        return asyncio.run(args.func(services, args))
    except (AsanaAPIError, httpx.HTTPError, WebhookNotFoundError) as exc:
        logger.error("%s", exc)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
