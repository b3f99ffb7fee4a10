"""Periodic housekeeping tasks."""

from __future__ import annotations

import logging

from backend.app.workers.celery_app import celery

logger = logging.getLogger(__name__)


@celery.task(name="backend.app.workers.tasks.cleanup.cleanup_revoked_tokens")
def cleanup_revoked_tokens() -> dict:
    """Drop revoked JWTs whose ``exp`` has passed; they are unusable anyway."""
    from backend.app.core.security import cleanup_expired_tokens

    removed = cleanup_expired_tokens()
    if removed:
        logger.info("Purged %d expired revoked tokens", removed)
    return {"removed": removed}
