"""Tests for the SSE change feed bridge (F6)."""

import asyncio
import json

import pytest

from ecertify.web.events import open_listener
from ecertify.web.routes.events import event_generator


class TestFeedListener:
    """Tests for FeedListener."""

    @pytest.mark.asyncio
    async def test_receives_institute_events(self, world, services):
        listener = open_listener(services.feed, "institute", world.institute_a)
        services.certificates.issue(world.student, world.institute_a, "cid-a")

        event = await asyncio.wait_for(listener.queue.get(), timeout=1.0)
        message = listener.message_for(event)

        assert message["change"]["table"] == "certificates"
        assert message["needs_refresh"] is True
        assert message["notice"]["title"] == "New Certificate"
        listener.close()

    @pytest.mark.asyncio
    async def test_filters_other_entities(self, world, services):
        listener = open_listener(services.feed, "institute", world.institute_b)
        services.certificates.issue(world.student, world.institute_a, "cid-a")
        await asyncio.sleep(0)
        assert listener.queue.empty()
        listener.close()

    @pytest.mark.asyncio
    async def test_close_unsubscribes(self, world, services):
        listener = open_listener(services.feed, "student", world.student)
        assert services.feed.subscription_count == 3

        listener.close()
        assert services.feed.subscription_count == 0
        assert await asyncio.wait_for(listener.queue.get(), timeout=1.0) is None


class TestEventGenerator:
    """Tests for SSE message formatting."""

    @pytest.mark.asyncio
    async def test_change_then_close(self, world, services):
        listener = open_listener(services.feed, "student", world.student)
        stream = event_generator(listener)

        services.certificates.issue(world.student, world.institute_a, "cid-a")
        chunk = await asyncio.wait_for(stream.__anext__(), timeout=1.0)

        header, data = chunk.strip().split("\n")
        assert header == "event: change"
        payload = json.loads(data.removeprefix("data: "))
        assert payload["notice"]["title"] == "Certificate Added"

        listener.close()
        assert await stream.__anext__() == "event: close\ndata: Feed closed\n\n"
        with pytest.raises(StopAsyncIteration):
            await stream.__anext__()


class TestStreamEndpoints:
    def test_unknown_institute(self, client):
        assert client.get("/api/events/institutes/999").status_code == 404

    def test_unknown_student(self, client):
        assert client.get("/api/events/students/999").status_code == 404
