"""
MessageBus for inter-agent communication.

This module provides asynchronous, at-most-once messaging between the
workers and the orchestrator of a swarm.

Features:
- Topic publish/subscribe
- Direct agent-to-agent messages and broadcasts to every inbox
- Request/response over direct messages, matched by correlation id
- Per-agent mailboxes, so one agent sees messages in publish order
- Bounded message history and delivery counters
"""

from __future__ import annotations

import asyncio
import inspect
import itertools
import uuid
from collections import Counter, defaultdict, deque
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

import structlog

from devswarm.errors import MessageUndeliverable

logger = structlog.get_logger(__name__)


class MessageType(str, Enum):
    """Topics used by the swarm."""

    # Task lifecycle
    TASK_CREATED = "task.created"
    TASK_CLAIMED = "task.claimed"
    TASK_COMPLETED = "task.completed"
    TASK_FAILED = "task.failed"
    TASK_RELEASED = "task.released"

    # Solutions
    SOLUTION_PROPOSED = "solution.proposed"
    SOLUTION_REJECTED = "solution.rejected"

    # Agent coordination
    AGENT_THOUGHTS = "agent.thoughts"
    AGENT_QUESTION = "agent.question"
    AGENT_ANSWER = "agent.answer"

    # Worker status
    WORKER_STATUS = "worker.status"
    WORKER_STARTED = "worker.started"
    WORKER_STOPPED = "worker.stopped"
    WORKER_UNHEALTHY = "worker.unhealthy"
    WORKER_RESTARTED = "worker.restarted"


DIRECT_TOPIC = "direct"
BROADCAST_TOPIC = "broadcast"


@dataclass
class Message:
    """A message on the bus."""

    message_id: str
    topic: str
    sender: str
    payload: dict[str, Any]
    recipient: str | None = None  # None = topic or broadcast delivery
    correlation_id: str | None = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "message_id": self.message_id,
            "topic": self.topic,
            "sender": self.sender,
            "payload": self.payload,
            "recipient": self.recipient,
            "correlation_id": self.correlation_id,
            "timestamp": self.timestamp.isoformat(),
        }


# Handlers may be coroutine functions or plain callables
MessageHandler = Callable[[Message], Awaitable[None] | None]


def _topic_name(topic: MessageType | str) -> str:
    return topic.value if isinstance(topic, MessageType) else str(topic)


class _Mailbox:
    """Ordered delivery queue for one agent, drained by a single consumer task."""

    def __init__(self, agent_id: str, bus: MessageBus) -> None:
        self.agent_id = agent_id
        self._bus = bus
        self._queue: asyncio.Queue[tuple[MessageHandler, Message]] = asyncio.Queue()
        self._consumer: asyncio.Task[None] | None = None
        self._closing = False
        self.pending = 0

    def put(self, handler: MessageHandler, message: Message) -> None:
        self.pending += 1
        self._queue.put_nowait((handler, message))
        if self._consumer is None or self._consumer.done():
            self._consumer = asyncio.create_task(
                self._consume(), name=f"mailbox-{self.agent_id}"
            )

    async def _consume(self) -> None:
        while not self._closing:
            handler, message = await self._queue.get()
            try:
                await self._bus._invoke(self.agent_id, handler, message)
            finally:
                self.pending -= 1
                self._queue.task_done()

    async def join(self) -> None:
        await self._queue.join()

    def close(self) -> None:
        consumer, self._consumer = self._consumer, None
        if consumer is None or consumer.done():
            return
        if consumer is asyncio.current_task():
            # Closed from one of its own handlers: stop after the current message
            self._closing = True
        else:
            consumer.cancel()


class MessageBus:
    """
    Central message bus for inter-agent communication.

    Publishing never waits for handlers: messages are queued in the
    recipient's mailbox and handled by that mailbox's consumer task.
    Handler exceptions are logged and counted, never propagated.
    """

    def __init__(self, max_history: int = 1000) -> None:
        """
        Initialize the message bus.

        Args:
            max_history: Maximum messages to keep in history
        """
        self._max_history = max_history
        self._ids = itertools.count(1)

        # Subscriptions: topic -> {agent_id: handler}
        self._subscriptions: dict[str, dict[str, MessageHandler]] = defaultdict(dict)

        # Agent registry: agent_id -> inbox handler for direct/broadcast messages
        self._inboxes: dict[str, MessageHandler | None] = {}

        self._mailboxes: dict[str, _Mailbox] = {}
        # Outstanding requests: correlation id -> (recipient, future resolved by respond())
        self._pending_requests: dict[str, tuple[str, asyncio.Future[dict[str, Any]]]] = {}
        self._history: deque[Message] = deque(maxlen=max_history)

        self._published: Counter[str] = Counter()
        self._delivered = 0
        self._undelivered = 0
        self._handler_errors = 0

        self._lock = asyncio.Lock()
        self._closed = False

        logger.info("message_bus_initialized", max_history=max_history)

    def _next_id(self) -> str:
        return f"msg_{next(self._ids):06d}"

    def _mailbox(self, agent_id: str) -> _Mailbox:
        mailbox = self._mailboxes.get(agent_id)
        if mailbox is None:
            mailbox = self._mailboxes[agent_id] = _Mailbox(agent_id, self)
        return mailbox

    async def _invoke(self, agent_id: str, handler: MessageHandler, message: Message) -> None:
        try:
            result = handler(message)
            if inspect.isawaitable(result):
                await result
            self._delivered += 1
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self._handler_errors += 1
            logger.error(
                "message_handler_error",
                message_id=message.message_id,
                topic=message.topic,
                agent_id=agent_id,
                error=str(e),
            )

    def _record(self, message: Message) -> None:
        self._history.append(message)
        self._published[message.topic] += 1

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    async def register_agent(self, agent_id: str, inbox: MessageHandler | None = None) -> None:
        """
        Register an agent with the bus.

        Args:
            agent_id: Unique agent identifier
            inbox: Handler for direct messages and broadcasts
        """
        async with self._lock:
            self._inboxes[agent_id] = inbox
        logger.debug("agent_registered", agent_id=agent_id, has_inbox=inbox is not None)

    async def unregister_agent(self, agent_id: str) -> None:
        """
        Unregister an agent and drop its subscriptions and mailbox.

        Messages still queued for the agent are discarded.

        Args:
            agent_id: Agent to unregister
        """
        async with self._lock:
            self._inboxes.pop(agent_id, None)
            for name, subscribers in list(self._subscriptions.items()):
                subscribers.pop(agent_id, None)
                if not subscribers:
                    del self._subscriptions[name]
            mailbox = self._mailboxes.pop(agent_id, None)
            if mailbox is not None:
                mailbox.close()
        logger.debug("agent_unregistered", agent_id=agent_id)

    async def subscribe(
        self, agent_id: str, topic: MessageType | str, handler: MessageHandler
    ) -> None:
        """
        Subscribe to a topic, replacing any previous handler of the agent.

        Args:
            agent_id: Subscribing agent
            topic: Topic to receive
            handler: Function to handle messages
        """
        name = _topic_name(topic)
        async with self._lock:
            self._subscriptions[name][agent_id] = handler
        logger.debug("agent_subscribed", agent_id=agent_id, topic=name)

    async def unsubscribe(self, agent_id: str, topic: MessageType | str) -> bool:
        """
        Remove an agent's subscription to a topic.

        Returns:
            True if a subscription was removed
        """
        name = _topic_name(topic)
        async with self._lock:
            subscribers = self._subscriptions.get(name, {})
            removed = subscribers.pop(agent_id, None) is not None
            if name in self._subscriptions and not subscribers:
                del self._subscriptions[name]
        logger.debug("agent_unsubscribed", agent_id=agent_id, topic=name, removed=removed)
        return removed

    # ------------------------------------------------------------------
    # Sending
    # ------------------------------------------------------------------

    async def publish(
        self, sender: str, topic: MessageType | str, payload: dict[str, Any]
    ) -> Message:
        """
        Publish a message to every subscriber of a topic except the sender.

        Args:
            sender: Sending agent ID
            topic: Message topic
            payload: Message content

        Returns:
            The published message
        """
        message = Message(
            message_id=self._next_id(),
            topic=_topic_name(topic),
            sender=sender,
            payload=payload,
        )

        async with self._lock:
            if self._closed:
                logger.debug("message_dropped_bus_closed", topic=message.topic, sender=sender)
                return message
            self._record(message)
            for agent_id, handler in self._subscriptions.get(message.topic, {}).items():
                if agent_id != sender:
                    self._mailbox(agent_id).put(handler, message)

        logger.debug(
            "message_published",
            message_id=message.message_id,
            topic=message.topic,
            sender=sender,
        )
        return message

    async def send_direct(
        self,
        sender: str,
        target: str,
        payload: dict[str, Any],
        topic: MessageType | str = DIRECT_TOPIC,
        correlation_id: str | None = None,
    ) -> Message:
        """
        Send a message to one registered agent's inbox.

        Messages to unknown agents, or agents without an inbox, are dropped
        and counted as undelivered.

        Args:
            sender: Sending agent ID
            target: Recipient agent ID
            payload: Message content
            topic: Topic recorded on the message
            correlation_id: Request id the recipient should answer with

        Returns:
            The message
        """
        message = Message(
            message_id=self._next_id(),
            topic=_topic_name(topic),
            sender=sender,
            payload=payload,
            recipient=target,
            correlation_id=correlation_id,
        )
        await self._deliver_direct(message)
        return message

    async def _deliver_direct(self, message: Message) -> bool:
        target = message.recipient or ""
        async with self._lock:
            if self._closed:
                return False
            self._record(message)
            inbox = self._inboxes.get(target)
            if inbox is None:
                self._undelivered += 1
                logger.warning(
                    "message_undelivered",
                    message_id=message.message_id,
                    sender=message.sender,
                    recipient=target,
                )
                return False
            self._mailbox(target).put(inbox, message)
        return True

    async def request(
        self,
        sender: str,
        target: str,
        payload: dict[str, Any],
        topic: MessageType | str = MessageType.AGENT_QUESTION,
        timeout: float = 30.0,
    ) -> dict[str, Any]:
        """
        Send a direct message and wait for the recipient to ``respond`` to it.

        Args:
            sender: Requesting agent ID
            target: Recipient agent ID
            payload: Request content
            topic: Topic recorded on the request
            timeout: Seconds to wait for the response

        Returns:
            The response payload

        Raises:
            MessageUndeliverable: If the target has no inbox or the bus is closed
            TimeoutError: If no response arrives in time
        """
        correlation_id = f"req_{uuid.uuid4().hex[:12]}"
        future: asyncio.Future[dict[str, Any]] = asyncio.get_running_loop().create_future()
        self._pending_requests[correlation_id] = (target, future)

        message = Message(
            message_id=self._next_id(),
            topic=_topic_name(topic),
            sender=sender,
            payload=payload,
            recipient=target,
            correlation_id=correlation_id,
        )
        try:
            if not await self._deliver_direct(message):
                reason = "bus closed" if self._closed else "no inbox registered"
                raise MessageUndeliverable(target, reason)
            return await asyncio.wait_for(future, timeout=timeout)
        except TimeoutError:
            logger.warning(
                "request_timed_out",
                correlation_id=correlation_id,
                sender=sender,
                recipient=target,
                timeout=timeout,
            )
            raise
        finally:
            self._pending_requests.pop(correlation_id, None)

    async def respond(
        self,
        request: Message,
        sender: str,
        payload: dict[str, Any],
        topic: MessageType | str = MessageType.AGENT_ANSWER,
    ) -> Message:
        """
        Answer a message received through ``request``.

        A response nobody is waiting for any more (timed out, or the
        message was not a request) is recorded and counted as undelivered.

        Args:
            request: The request being answered
            sender: Responding agent ID
            payload: Response content
            topic: Topic recorded on the response

        Returns:
            The response message
        """
        message = Message(
            message_id=self._next_id(),
            topic=_topic_name(topic),
            sender=sender,
            payload=payload,
            recipient=request.sender,
            correlation_id=request.correlation_id,
        )

        async with self._lock:
            if self._closed:
                return message
            self._record(message)
            pending = (
                self._pending_requests.get(request.correlation_id)
                if request.correlation_id
                else None
            )
            future = pending[1] if pending else None
            if future is not None and not future.done():
                future.set_result(payload)
                self._delivered += 1
            else:
                self._undelivered += 1
                logger.warning(
                    "response_unclaimed",
                    correlation_id=request.correlation_id,
                    sender=sender,
                    recipient=request.sender,
                )
        return message

    async def broadcast(self, sender: str, payload: dict[str, Any]) -> Message:
        """
        Send a message to the inbox of every registered agent except the sender.

        Args:
            sender: Sending agent ID
            payload: Message content

        Returns:
            The message
        """
        message = Message(
            message_id=self._next_id(),
            topic=BROADCAST_TOPIC,
            sender=sender,
            payload=payload,
        )

        async with self._lock:
            if self._closed:
                return message
            self._record(message)
            for agent_id, inbox in self._inboxes.items():
                if agent_id != sender and inbox is not None:
                    self._mailbox(agent_id).put(inbox, message)

        return message

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def drain(self) -> None:
        """Wait until every queued message has been handled."""
        # Handlers may publish while we wait, so loop until every mailbox is idle
        while True:
            busy = [m for m in self._mailboxes.values() if m.pending]
            if not busy:
                return
            await asyncio.gather(*(m.join() for m in busy))

    async def close(self) -> None:
        """
        Stop all mailbox consumers. Undelivered messages are discarded and
        outstanding requests fail with ``MessageUndeliverable``.
        """
        async with self._lock:
            self._closed = True
            for mailbox in self._mailboxes.values():
                mailbox.close()
            self._mailboxes.clear()
            for target, future in self._pending_requests.values():
                if not future.done():
                    future.set_exception(MessageUndeliverable(target, "bus closed"))
        logger.info("message_bus_closed", **self.get_statistics())

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    async def get_history(
        self,
        topic: MessageType | str | None = None,
        sender: str | None = None,
        limit: int = 100,
    ) -> list[Message]:
        """
        Get message history.

        Args:
            topic: Filter by topic
            sender: Filter by sender
            limit: Maximum messages to return

        Returns:
            List of messages (newest first)
        """
        async with self._lock:
            messages = list(self._history)

        if topic is not None:
            name = _topic_name(topic)
            messages = [m for m in messages if m.topic == name]
        if sender is not None:
            messages = [m for m in messages if m.sender == sender]

        messages.reverse()
        return messages[:limit]

    def get_agent_count(self) -> int:
        """Get number of registered agents."""
        return len(self._inboxes)

    def get_statistics(self) -> dict[str, Any]:
        """Delivery counters and per-topic publish counts."""
        return {
            "registered_agents": len(self._inboxes),
            "subscribed_topics": sorted(self._subscriptions),
            "mailboxes": len(self._mailboxes),
            "history_size": len(self._history),
            "published_by_topic": dict(self._published),
            "delivered": self._delivered,
            "undelivered": self._undelivered,
            "handler_errors": self._handler_errors,
            "pending_requests": len(self._pending_requests),
        }
