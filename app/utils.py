"""Webhook authenticity checks."""

from __future__ import annotations

import hashlib
import hmac
import logging

logger = logging.getLogger(__name__)


def asana_signature(secret: str, body: bytes) -> str:
    """Hex HMAC-SHA256 of the raw body, as Asana sends in X-Hook-Signature."""
    return hmac.new(secret.encode(), msg=body, digestmod=hashlib.sha256).hexdigest()


def asana_verify(secret: str | None, body: bytes, signature_header: str | None) -> bool:
    """
    Verify an Asana webhook delivery.

    Before the handshake has stored a secret there is nothing to check
    against, so the delivery is accepted (with a warning).

    Returns
    -------
    bool
        True if valid, False otherwise.
    """
    if not signature_header:
        logger.warning("Asana delivery rejected: no signature")
        return False
    if not secret:
        logger.warning("Asana delivery accepted: no webhook secret stored yet")
        return True
    ok = hmac.compare_digest(asana_signature(secret, body), signature_header)
    if not ok:
        logger.warning("Asana delivery rejected: signature mismatch")
    return ok


def gitlab_verify(expected: str, token_header: str | None) -> bool:
    """Compare GitLab's static X-Gitlab-Token to the configured secret."""
    if not expected or not token_header:
        return False
    return hmac.compare_digest(expected.encode(), token_header.encode())
