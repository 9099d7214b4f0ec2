"""Ruter info & health"""

from __future__ import annotations

from fastapi import APIRouter, Request
from fastapi.responses import PlainTextResponse

router = APIRouter()

INFO_TEXT = "Asana-GitLab integration: hooks on webhooks/asana and webhooks/gitlab"


@router.get("/", response_class=PlainTextResponse)
def root() -> str:
    return INFO_TEXT


@router.get("/health")
def health(request: Request) -> dict:
    """Queue counters and whether the Asana handshake already happened."""
    services = request.app.state.services
    return {
        "status": "ok",
        "webhook_secret": bool(services.storage.get_webhook_secret()),
        "queue": {
            "running": services.queue.running,
            "pending": services.queue.pending,
            **services.queue.stats.as_dict(),
        },
    }
