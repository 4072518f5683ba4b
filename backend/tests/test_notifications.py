# Overview: Pytest coverage for per-user notifications.

import pytest

from bms.services import notification_service
from bms.services.notification_service import NotificationError

from conftest import login_headers


class TestNotificationService:
    def test_notify_stamps_company(self, company_a, admin_a):
        notification = notification_service.notify(user_id=admin_a.id, title="Hi", message="Welcome")
        assert notification.company_id == company_a.id
        assert notification.type == "system"
        assert notification.is_read is False

    def test_unknown_type_falls_back_to_system(self, admin_a):
        notification = notification_service.notify(user_id=admin_a.id, title="x", message="y", type="carrier-pigeon")
        assert notification.type == "system"

    def test_missing_user_is_skipped(self, db_session):
        assert notification_service.notify(user_id=999999, title="x", message="y") is None

    def test_newest_first_and_unread_filter(self, admin_a):
        first = notification_service.notify(user_id=admin_a.id, title="first", message=".")
        notification_service.notify(user_id=admin_a.id, title="second", message=".")
        notification_service.mark_read(first.id, admin_a.id)

        assert [n.title for n in notification_service.list_notifications(admin_a.id)] == ["second", "first"]
        assert [n.title for n in notification_service.list_notifications(admin_a.id, unread_only=True)] == ["second"]
        assert notification_service.unread_count(admin_a.id) == 1

    def test_mark_all_read(self, admin_a, staff_a):
        for i in range(3):
            notification_service.notify(user_id=admin_a.id, title=f"n{i}", message=".")
        notification_service.notify(user_id=staff_a.id, title="other", message=".")

        assert notification_service.mark_all_read(admin_a.id) == 3
        assert notification_service.unread_count(admin_a.id) == 0
        assert notification_service.unread_count(staff_a.id) == 1

    def test_cannot_touch_someone_elses(self, admin_a, staff_a):
        notification = notification_service.notify(user_id=admin_a.id, title="private", message=".")
        with pytest.raises(NotificationError):
            notification_service.mark_read(notification.id, staff_a.id)
        with pytest.raises(NotificationError):
            notification_service.delete_notification(notification.id, staff_a.id)


class TestNotificationRoutes:
    def test_list_and_read(self, client, staff_a):
        notification = notification_service.notify(user_id=staff_a.id, title="Ping", message=".")
        headers = login_headers(client, staff_a)

        body = client.get("/api/notifications", headers=headers).get_json()
        assert body["unread_count"] == 1
        assert body["notifications"][0]["title"] == "Ping"

        resp = client.patch(f"/api/notifications/{notification.id}/read", headers=headers)
        assert resp.status_code == 200
        assert client.get("/api/notifications?unread=true", headers=headers).get_json()["notifications"] == []

    def test_read_all(self, client, staff_a):
        notification_service.notify(user_id=staff_a.id, title="a", message=".")
        notification_service.notify(user_id=staff_a.id, title="b", message=".")
        resp = client.patch("/api/notifications/read-all", headers=login_headers(client, staff_a))
        assert resp.get_json() == {"updated": 2}

    def test_foreign_notification_is_404(self, client, admin_a, staff_a):
        notification = notification_service.notify(user_id=admin_a.id, title="mine", message=".")
        headers = login_headers(client, staff_a)
        assert client.patch(f"/api/notifications/{notification.id}/read", headers=headers).status_code == 404
        assert client.delete(f"/api/notifications/{notification.id}", headers=headers).status_code == 404

    def test_delete_own(self, client, staff_a):
        notification = notification_service.notify(user_id=staff_a.id, title="bye", message=".")
        resp = client.delete(f"/api/notifications/{notification.id}", headers=login_headers(client, staff_a))
        assert resp.status_code == 200
        assert notification_service.unread_count(staff_a.id) == 0
