# Overview: Append-only activity log writes (audit trail).

"""
Activity Log Service

WHY: Every state-changing action and every denied permission check is
recorded with tenant context for auditing.

Audit writes are best-effort: they run after the business transaction has
committed, in their own commit, and a failure is logged instead of raised.
The operation the user asked for has already succeeded at that point.
"""

from __future__ import annotations

import logging

from flask import g, has_request_context, request
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import ActivityLog
from bms.time_utils import utcnow


logger = logging.getLogger(__name__)


def _request_context() -> dict:
    if not has_request_context():
        return {"request_id": None, "ip_address": None, "user_agent": None}
    return {
        "request_id": getattr(g, "request_id", None),
        "ip_address": request.remote_addr,
        "user_agent": request.headers.get("User-Agent"),
    }


def log_activity(
    *,
    action: str,
    company_id: int | None,
    user_id: int | None,
    entity_type: str | None = None,
    entity_id: int | None = None,
    details: dict | None = None,
) -> ActivityLog | None:
    """
    Record one activity entry and commit it.

    Returns the entry, or None when the write failed (already logged).
    """
    entry = ActivityLog(
        company_id=company_id,
        user_id=user_id,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        details=details,
        occurred_at=utcnow(),
        **_request_context(),
    )
    try:
        db.session.add(entry)
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        logger.warning("Failed to write activity log entry %s for %s %s", action, entity_type, entity_id, exc_info=True)
        return None
    return entry


def list_activity(
    *,
    company_id: int | None,
    entity_type: str | None = None,
    entity_id: int | None = None,
    limit: int = 100,
) -> list[ActivityLog]:
    query = db.session.query(ActivityLog)
    if company_id is not None:
        query = query.filter(ActivityLog.company_id == company_id)
    if entity_type:
        query = query.filter(ActivityLog.entity_type == entity_type)
    if entity_id is not None:
        query = query.filter(ActivityLog.entity_id == entity_id)
    return query.order_by(ActivityLog.id.desc()).limit(max(1, min(limit, 500))).all()
