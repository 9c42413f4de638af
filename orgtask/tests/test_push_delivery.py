"""
Tests for pushes deferred until after the HTTP response
"""
import asyncio
import json
import time

import httpx
from fastapi import BackgroundTasks, status

from orgtask.main import app
from orgtask.core.deps import get_push_sender
from orgtask.services.push_service import BackgroundPushSender, ExpoPushSender

GATEWAY_DELAY = 1.0


def _use_background_sender(factory):
    def override(background_tasks: BackgroundTasks):
        return BackgroundPushSender(background_tasks, sender_factory=factory)
    app.dependency_overrides[get_push_sender] = override


def test_send_only_queues_until_flush(sender):
    background_tasks = BackgroundTasks()
    deferred = BackgroundPushSender(background_tasks, sender_factory=lambda: sender)

    assert deferred.send("tok-1", "a", "m", url="/x") is True
    assert deferred.send("tok-2", "b", "m", data={"taskId": 3}) is True

    assert sender.sent == []
    assert len(background_tasks.tasks) == 1

    assert deferred.flush() == 2
    assert sender.tokens() == ["tok-1", "tok-2"]
    assert sender.sent[1]["data"] == {"taskId": 3}


def test_flush_keeps_going_after_a_failure(sender):
    sender.failing_tokens.add("tok-1")
    deferred = BackgroundPushSender(BackgroundTasks(), sender_factory=lambda: sender)
    deferred.send("tok-1", "a", "m")
    deferred.send("tok-2", "b", "m")

    assert deferred.flush() == 1
    assert sender.tokens() == ["tok-2"]
    assert deferred.flush() == 0


def test_task_push_goes_out_with_the_request(client, org, sender, auth_headers):
    _use_background_sender(lambda: sender)

    response = client.post(
        "/api/v1/tasks",
        json={"department_id": org.ops.id, "assignee_id": org.bob.id, "title": "Sweep the yard"},
        headers=auth_headers(org.alice),
    )

    assert response.status_code == status.HTTP_201_CREATED
    assert sender.tokens() == ["tok-bob"]


def test_slow_gateway_does_not_stall_other_requests(client, org, auth_headers):
    gateway_calls = []

    def slow_gateway(request):
        time.sleep(GATEWAY_DELAY)
        gateway_calls.append(json.loads(request.content)["to"])
        return httpx.Response(200, json={"data": {"status": "ok"}})

    _use_background_sender(lambda: ExpoPushSender(
        url="https://push.example.org/send",
        client=httpx.Client(transport=httpx.MockTransport(slow_gateway)),
    ))
    headers = auth_headers(org.alice)
    payload = {"department_id": org.ops.id, "assignee_id": org.bob.id, "title": "Sweep the yard"}

    async def scenario():
        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as http:
            create = asyncio.create_task(http.post("/api/v1/tasks", json=payload, headers=headers))
            # let the create request reach the gateway call
            await asyncio.sleep(0.2)
            started = time.perf_counter()
            health = await http.get("/api/v1/health")
            elapsed = time.perf_counter() - started
            created = await create
        return created, health, elapsed

    created, health, elapsed = asyncio.run(scenario())

    assert health.status_code == status.HTTP_200_OK
    assert elapsed < GATEWAY_DELAY / 2
    assert created.status_code == status.HTTP_201_CREATED
    assert gateway_calls == ["tok-bob"]
