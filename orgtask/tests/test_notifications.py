"""
Tests for in-app notifications and push delivery
"""
import json
from datetime import datetime, timedelta

import httpx

from orgtask.models.notification import Notification
from orgtask.services.notification_service import (
    add_notification,
    deliver_notifications,
    list_notifications,
    mark_all_read,
    unread_count,
)
from orgtask.services.push_service import ExpoPushSender
from orgtask.utils.datetime_utils import UTC

NOW = datetime(2030, 3, 20, 12, 0, tzinfo=UTC)


def _add(db, user, days_ago, title="Ping"):
    notification = add_notification(
        db, user_id=user.id, title=title, message="...", category="task",
        now=NOW - timedelta(days=days_ago),
    )
    db.commit()
    return notification


def test_list_notifications_is_windowed_and_newest_first(db, org):
    _add(db, org.bob, 1, title="recent")
    _add(db, org.bob, 3, title="older")
    _add(db, org.bob, 30, title="stale")
    _add(db, org.carol, 1, title="someone else")

    titles = [n.title for n in list_notifications(db, org.bob.id, now=NOW)]
    assert titles == ["recent", "older"]
    assert [n.title for n in list_notifications(db, org.bob.id, days=2, now=NOW)] == ["recent"]


def test_mark_all_read(db, org):
    _add(db, org.bob, 1)
    _add(db, org.bob, 2)
    _add(db, org.bob, 30)
    assert unread_count(db, org.bob.id, now=NOW) == 2

    assert mark_all_read(db, org.bob.id, now=NOW) == 2

    assert unread_count(db, org.bob.id, now=NOW) == 0
    # outside the window stays unread
    assert db.query(Notification).filter(Notification.read.is_(False)).count() == 1


def test_deliver_skips_users_without_token(db, org, sender):
    notifications = [
        add_notification(db, user_id=org.bob.id, title="a", message="m", category="task", url="/x"),
        add_notification(db, user_id=org.carol.id, title="b", message="m", category="task"),
    ]
    db.commit()

    assert deliver_notifications(db, notifications, sender) == 1
    assert sender.sent == [{"token": "tok-bob", "title": "a", "body": "m", "url": "/x", "data": None}]


def test_deliver_without_sender_is_a_no_op(db, org):
    notification = add_notification(db, user_id=org.bob.id, title="a", message="m", category="task")
    db.commit()

    assert deliver_notifications(db, [notification], None) == 0


def test_expo_sender_posts_payload():
    captured = {}

    def handler(request):
        captured["url"] = str(request.url)
        captured["body"] = json.loads(request.content)
        return httpx.Response(200, json={"data": {"status": "ok"}})

    client = httpx.Client(transport=httpx.MockTransport(handler))
    with ExpoPushSender(url="https://push.example.org/send", client=client) as push:
        ok = push.send("tok-1", "Task approved", "'Pump' has been approved",
                       url="/departments/1/tasks/2", data={"taskId": 2})

    assert ok
    assert captured["url"] == "https://push.example.org/send"
    assert captured["body"] == {
        "to": "tok-1",
        "sound": "default",
        "title": "Task approved",
        "body": "'Pump' has been approved",
        "data": {"taskId": 2, "url": "/departments/1/tasks/2"},
    }


def test_expo_sender_reports_gateway_errors():
    client = httpx.Client(transport=httpx.MockTransport(lambda request: httpx.Response(503)))
    push = ExpoPushSender(url="https://push.example.org/send", client=client)

    assert push.send("tok-1", "t", "b") is False


def test_expo_sender_reports_transport_errors():
    def handler(request):
        raise httpx.ConnectTimeout("timed out", request=request)

    push = ExpoPushSender(url="https://push.example.org/send", client=httpx.Client(transport=httpx.MockTransport(handler)))

    assert push.send("tok-1", "t", "b") is False
