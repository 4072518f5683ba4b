# Overview: Per-user notifications; creation is best-effort.

from __future__ import annotations

import logging

from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import Notification, User
from ..models.communications import NOTIFICATION_TYPES
from bms.time_utils import utcnow


logger = logging.getLogger(__name__)

RECENT_LIMIT = 50


class NotificationError(Exception):
    """Raised for notification operation errors."""
    pass


def notify(
    *,
    user_id: int,
    title: str,
    message: str,
    type: str = "system",
    link: str | None = None,
) -> Notification | None:
    """
    Create a notification and commit it.

    Best-effort: a failure is logged and None returned, so callers can fire
    this after their own commit without risking the primary operation.
    """
    if type not in NOTIFICATION_TYPES:
        type = "system"
    try:
        user = db.session.get(User, user_id)
        if not user:
            logger.warning("Notification skipped: user %s not found", user_id)
            return None
        notification = Notification(
            user_id=user_id,
            company_id=user.company_id,
            type=type,
            title=title,
            message=message,
            link=link,
        )
        db.session.add(notification)
        db.session.commit()
        return notification
    except SQLAlchemyError:
        db.session.rollback()
        logger.warning("Failed to create notification for user %s", user_id, exc_info=True)
        return None


def list_notifications(user_id: int, *, unread_only: bool = False, limit: int = RECENT_LIMIT) -> list[Notification]:
    query = db.session.query(Notification).filter(Notification.user_id == user_id)
    if unread_only:
        query = query.filter(Notification.is_read.is_(False))
    return query.order_by(Notification.created_at.desc(), Notification.id.desc()).limit(limit).all()


def unread_count(user_id: int) -> int:
    return db.session.query(Notification).filter(
        Notification.user_id == user_id,
        Notification.is_read.is_(False),
    ).count()


def _get_own(notification_id: int, user_id: int) -> Notification:
    notification = db.session.query(Notification).filter_by(id=notification_id, user_id=user_id).first()
    if not notification:
        raise NotificationError("Notification not found")
    return notification


def mark_read(notification_id: int, user_id: int) -> Notification:
    notification = _get_own(notification_id, user_id)
    if not notification.is_read:
        notification.is_read = True
        notification.read_at = utcnow()
        db.session.commit()
    return notification


def mark_all_read(user_id: int) -> int:
    updated = db.session.query(Notification).filter(
        Notification.user_id == user_id,
        Notification.is_read.is_(False),
    ).update({"is_read": True, "read_at": utcnow()}, synchronize_session=False)
    db.session.commit()
    return updated


def delete_notification(notification_id: int, user_id: int) -> None:
    notification = _get_own(notification_id, user_id)
    db.session.delete(notification)
    db.session.commit()
