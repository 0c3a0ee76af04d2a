"""Unit tests for MessageBus."""

import asyncio

import pytest

from devswarm.errors import MessageUndeliverable
from devswarm.swarm.message_bus import (
    BROADCAST_TOPIC,
    DIRECT_TOPIC,
    Message,
    MessageBus,
    MessageType,
)


class TestMessage:
    """Test Message class."""

    def test_to_dict(self):
        message = Message(
            message_id="msg_000001",
            topic=MessageType.TASK_CREATED.value,
            sender="orchestrator",
            payload={"task_id": "t1"},
        )
        data = message.to_dict()
        assert data["topic"] == "task.created"
        assert data["recipient"] is None
        assert data["payload"] == {"task_id": "t1"}

    def test_topic_values(self):
        assert MessageType.AGENT_THOUGHTS.value == "agent.thoughts"
        assert MessageType.WORKER_UNHEALTHY.value == "worker.unhealthy"
        assert len(MessageType) == 15


class TestPublishSubscribe:
    """Test topic delivery."""

    @pytest.mark.asyncio
    async def test_publish_reaches_subscribers_except_sender(self, message_bus):
        received = {"a": [], "b": []}

        async def handler_a(msg):
            received["a"].append(msg)

        def handler_b(msg):
            received["b"].append(msg)

        await message_bus.subscribe("a", MessageType.TASK_CREATED, handler_a)
        await message_bus.subscribe("b", MessageType.TASK_CREATED, handler_b)

        message = await message_bus.publish("a", MessageType.TASK_CREATED, {"task_id": "t1"})
        await message_bus.drain()

        assert received["a"] == []
        assert [m.message_id for m in received["b"]] == [message.message_id]

    @pytest.mark.asyncio
    async def test_publish_does_not_wait_for_handlers(self, message_bus):
        gate = asyncio.Event()
        received = []

        async def slow(msg):
            await gate.wait()
            received.append(msg)

        await message_bus.subscribe("a", "custom.topic", slow)
        await message_bus.publish("x", "custom.topic", {})
        assert received == []

        gate.set()
        await message_bus.drain()
        assert len(received) == 1

    @pytest.mark.asyncio
    async def test_per_subscriber_order(self, message_bus):
        received = []

        async def handler(msg):
            await asyncio.sleep(0)
            received.append(msg.payload["n"])

        await message_bus.subscribe("a", MessageType.AGENT_THOUGHTS, handler)
        await message_bus.subscribe("a", MessageType.WORKER_STATUS, handler)
        for n in range(10):
            topic = MessageType.AGENT_THOUGHTS if n % 2 else MessageType.WORKER_STATUS
            await message_bus.publish("x", topic, {"n": n})
        await message_bus.drain()

        assert received == list(range(10))

    @pytest.mark.asyncio
    async def test_handler_error_is_absorbed(self, message_bus):
        received = []

        async def broken(msg):
            raise RuntimeError("handler failure")

        async def healthy(msg):
            received.append(msg)

        await message_bus.subscribe("a", "topic", broken)
        await message_bus.subscribe("b", "topic", healthy)
        await message_bus.publish("x", "topic", {})
        await message_bus.publish("x", "topic", {})
        await message_bus.drain()

        stats = message_bus.get_statistics()
        assert stats["handler_errors"] == 2
        assert stats["delivered"] == 2
        assert len(received) == 2

    @pytest.mark.asyncio
    async def test_unsubscribe(self, message_bus):
        received = []
        await message_bus.subscribe("a", "topic", received.append)

        assert await message_bus.unsubscribe("a", "topic")
        assert not await message_bus.unsubscribe("a", "topic")

        await message_bus.publish("x", "topic", {})
        await message_bus.drain()
        assert received == []

    @pytest.mark.asyncio
    async def test_unsubscribe_unknown_topic_leaves_no_entry(self, message_bus):
        assert not await message_bus.unsubscribe("a", "never-subscribed")
        assert message_bus.get_statistics()["subscribed_topics"] == []

        await message_bus.subscribe("b", "topic", lambda m: None)
        await message_bus.unsubscribe("b", "topic")
        assert message_bus.get_statistics()["subscribed_topics"] == []


class TestDirectAndBroadcast:
    """Test inbox delivery."""

    @pytest.mark.asyncio
    async def test_send_direct(self, message_bus):
        inbox = []
        await message_bus.register_agent("b", inbox.append)

        message = await message_bus.send_direct("a", "b", {"question": "status?"})
        await message_bus.drain()

        assert message.topic == DIRECT_TOPIC
        assert message.recipient == "b"
        assert inbox == [message]

    @pytest.mark.asyncio
    async def test_send_direct_to_unknown_agent_is_undelivered(self, message_bus):
        await message_bus.register_agent("no-inbox")

        await message_bus.send_direct("a", "ghost", {})
        await message_bus.send_direct("a", "no-inbox", {})

        assert message_bus.get_statistics()["undelivered"] == 2

    @pytest.mark.asyncio
    async def test_broadcast_skips_sender(self, message_bus):
        inboxes = {"a": [], "b": [], "c": []}
        for agent_id, inbox in inboxes.items():
            await message_bus.register_agent(agent_id, inbox.append)

        message = await message_bus.broadcast("a", {"note": "hello"})
        await message_bus.drain()

        assert message.topic == BROADCAST_TOPIC
        assert inboxes["a"] == []
        assert inboxes["b"] == [message]
        assert inboxes["c"] == [message]

    @pytest.mark.asyncio
    async def test_unregister_drops_subscriptions(self, message_bus):
        received = []
        await message_bus.register_agent("a", received.append)
        await message_bus.subscribe("a", "topic", received.append)

        await message_bus.unregister_agent("a")
        await message_bus.publish("x", "topic", {})
        await message_bus.broadcast("x", {})
        await message_bus.drain()

        assert received == []
        assert message_bus.get_agent_count() == 0

    @pytest.mark.asyncio
    async def test_unregister_discards_mailbox(self, message_bus):
        started = asyncio.Event()
        handled = []

        async def stuck_inbox(msg):
            started.set()
            await asyncio.Event().wait()
            handled.append(msg)

        await message_bus.register_agent("a", stuck_inbox)
        await message_bus.send_direct("x", "a", {"n": 1})
        await message_bus.send_direct("x", "a", {"n": 2})
        await asyncio.wait_for(started.wait(), timeout=1)
        assert message_bus.get_statistics()["mailboxes"] == 1

        await message_bus.unregister_agent("a")

        assert message_bus.get_statistics()["mailboxes"] == 0
        await asyncio.wait_for(message_bus.drain(), timeout=1)
        assert handled == []

    @pytest.mark.asyncio
    async def test_agent_can_unregister_from_its_own_inbox(self, message_bus):
        handled = []

        async def inbox(msg):
            handled.append(msg.payload["n"])
            await message_bus.unregister_agent("a")

        await message_bus.register_agent("a", inbox)
        await message_bus.send_direct("x", "a", {"n": 1})
        await message_bus.send_direct("x", "a", {"n": 2})
        await asyncio.sleep(0.05)

        assert handled == [1]
        assert message_bus.get_agent_count() == 0


class TestRequestResponse:
    """Test correlated request/response over inboxes."""

    @pytest.mark.asyncio
    async def test_round_trip(self, message_bus):
        async def answer(msg):
            await message_bus.respond(msg, "b", {"echo": msg.payload["q"]})

        await message_bus.register_agent("b", answer)

        reply = await message_bus.request("a", "b", {"q": "ping"}, timeout=1)

        assert reply == {"echo": "ping"}
        response, request = (await message_bus.get_history())[:2]
        assert request.topic == MessageType.AGENT_QUESTION.value
        assert request.correlation_id is not None
        assert response.topic == MessageType.AGENT_ANSWER.value
        assert response.recipient == "a"
        assert response.correlation_id == request.correlation_id
        assert message_bus.get_statistics()["pending_requests"] == 0

    @pytest.mark.asyncio
    async def test_timeout(self, message_bus):
        received = []
        await message_bus.register_agent("b", received.append)

        with pytest.raises(TimeoutError):
            await message_bus.request("a", "b", {"q": "anyone?"}, timeout=0.05)
        assert message_bus.get_statistics()["pending_requests"] == 0

        # A response after the timeout is recorded but reaches nobody
        await message_bus.respond(received[0], "b", {"late": True})
        assert message_bus.get_statistics()["undelivered"] == 1

    @pytest.mark.asyncio
    async def test_unknown_target(self, message_bus):
        await message_bus.register_agent("no-inbox")

        with pytest.raises(MessageUndeliverable) as exc_info:
            await message_bus.request("a", "ghost", {})
        assert exc_info.value.recipient == "ghost"
        with pytest.raises(MessageUndeliverable):
            await message_bus.request("a", "no-inbox", {})
        assert message_bus.get_statistics()["pending_requests"] == 0

    @pytest.mark.asyncio
    async def test_close_fails_pending_requests(self):
        bus = MessageBus()
        await bus.register_agent("b", lambda msg: None)
        waiting = asyncio.create_task(bus.request("a", "b", {}, timeout=5))
        await asyncio.sleep(0.01)

        await bus.close()

        with pytest.raises(MessageUndeliverable, match="bus closed"):
            await waiting

    @pytest.mark.asyncio
    async def test_request_on_closed_bus(self):
        bus = MessageBus()
        await bus.register_agent("b", lambda msg: None)
        await bus.close()

        with pytest.raises(MessageUndeliverable, match="bus closed"):
            await bus.request("a", "b", {})


class TestHistory:
    """Test history and statistics."""

    @pytest.mark.asyncio
    async def test_history_is_bounded_and_newest_first(self):
        bus = MessageBus(max_history=3)
        for n in range(5):
            await bus.publish("x", "topic", {"n": n})

        history = await bus.get_history()
        assert [m.payload["n"] for m in history] == [4, 3, 2]
        assert bus.get_statistics()["published_by_topic"] == {"topic": 5}
        await bus.close()

    @pytest.mark.asyncio
    async def test_history_filters(self, message_bus):
        await message_bus.publish("a", MessageType.TASK_CREATED, {})
        await message_bus.publish("b", MessageType.TASK_CREATED, {})
        await message_bus.publish("a", MessageType.TASK_FAILED, {})

        by_topic = await message_bus.get_history(topic=MessageType.TASK_CREATED)
        by_sender = await message_bus.get_history(sender="a", limit=1)

        assert len(by_topic) == 2
        assert len(by_sender) == 1
        assert by_sender[0].topic == "task.failed"

    @pytest.mark.asyncio
    async def test_closed_bus_drops_messages(self):
        bus = MessageBus()
        await bus.close()
        await bus.publish("x", "topic", {})
        assert await bus.get_history() == []
