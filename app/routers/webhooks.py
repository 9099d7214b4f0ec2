"""Ruter webhooks: Asana & GitLab"""

from __future__ import annotations

import json
import logging
from typing import Optional

from fastapi import APIRouter, Header, HTTPException, Request, Response

from app.container import Services
from app.services.dispatcher import DispatchResult
from app.utils import gitlab_verify

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


def _services(request: Request) -> Services:
    return request.app.state.services


def _record(services: Services, source: str, result: DispatchResult) -> None:
    services.storage.log_delivery(
        source, result.kind.value, result.status, summary=result.summary
    )


@router.post("/asana")
async def asana_webhook(
    request: Request,
    x_hook_secret: Optional[str] = Header(None),
    x_hook_signature: Optional[str] = Header(None),
) -> Response:
    """
    Asana webhook endpoint.

    Always answers 200: Asana deactivates webhooks that keep failing, so
    problems are only logged. A handshake echoes ``X-Hook-Secret`` back.
    """
    services = _services(request)
    body = await request.body()
    try:
        result = await services.dispatcher.dispatch_asana(
            hook_secret=x_hook_secret, signature=x_hook_signature, body=body
        )
        _record(services, "asana", result)
    except Exception as exc:  # noqa: BLE001 - never fail towards Asana
        logger.exception("Asana webhook failed")
        try:
            services.storage.log_delivery("asana", "task", "error", error_message=str(exc))
        except Exception:  # noqa: BLE001
            logger.exception("Could not record failed Asana delivery")
        return Response(status_code=200)
    return Response(status_code=200, headers=result.headers)


@router.post("/gitlab")
async def gitlab_webhook(
    request: Request,
    x_gitlab_token: Optional[str] = Header(None),
    x_gitlab_event: Optional[str] = Header(None),
) -> Response:
    """
    GitLab webhook endpoint, authenticated by the static ``X-Gitlab-Token``.

    GitLab copes with retries, so processing errors surface as 500.
    """
    services = _services(request)
    if not gitlab_verify(services.cfg.gitlab_webhook_secret, x_gitlab_token):
        raise HTTPException(401, "Invalid token")

    body = await request.body()
    if not body:
        return Response(status_code=200)
    try:
        payload = json.loads(body)
    except ValueError:
        raise HTTPException(400, "Invalid JSON body")
    if not isinstance(payload, dict):
        raise HTTPException(400, "Invalid JSON body")

    event = x_gitlab_event or "unknown"
    try:
        result = await services.dispatcher.dispatch_gitlab(x_gitlab_event, payload)
    except Exception as exc:
        logger.exception("GitLab %s processing failed", event)
        services.storage.log_delivery("gitlab", event, "error", error_message=str(exc))
        raise HTTPException(500, "Processing failed")
    _record(services, "gitlab", result)
    return Response(status_code=200)
