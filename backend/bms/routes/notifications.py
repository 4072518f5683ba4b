# Overview: Flask API routes for the current user's notifications.

from flask import Blueprint, jsonify, g

from ..decorators import require_auth
from ..services import notification_service
from ..services.notification_service import NotificationError
from .common import query_bool


notifications_bp = Blueprint("notifications", __name__, url_prefix="/api/notifications")


@notifications_bp.get("")
@require_auth
def list_notifications_route():
    """Latest 50 notifications of the caller, newest first."""
    user_id = g.current_user.id
    notifications = notification_service.list_notifications(user_id, unread_only=bool(query_bool("unread")))
    return jsonify({
        "notifications": [n.to_dict() for n in notifications],
        "unread_count": notification_service.unread_count(user_id),
    }), 200


@notifications_bp.patch("/<int:notification_id>/read")
@require_auth
def mark_read_route(notification_id: int):
    try:
        notification = notification_service.mark_read(notification_id, g.current_user.id)
    except NotificationError as e:
        return jsonify({"error": str(e)}), 404
    return jsonify({"notification": notification.to_dict()}), 200


@notifications_bp.patch("/read-all")
@require_auth
def mark_all_read_route():
    updated = notification_service.mark_all_read(g.current_user.id)
    return jsonify({"updated": updated}), 200


@notifications_bp.delete("/<int:notification_id>")
@require_auth
def delete_notification_route(notification_id: int):
    try:
        notification_service.delete_notification(notification_id, g.current_user.id)
    except NotificationError as e:
        return jsonify({"error": str(e)}), 404
    return jsonify({"message": "Notification deleted"}), 200
