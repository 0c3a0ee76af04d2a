"""Unit tests for the agent worker."""

import asyncio

import pytest

from devswarm.config.settings import WorkerConfig
from devswarm.errors import ConfigurationError
from devswarm.providers.echo import EchoInferenceProvider
from devswarm.quality import IssueSeverity, IssueType, QualityCheck, QualityGate, QualityIssue
from devswarm.swarm.message_bus import MessageType
from devswarm.swarm.worker import AgentWorker, WorkerState
from devswarm.tasks.models import Task, TaskStatus


class RejectEverything(QualityCheck):
    def __init__(self) -> None:
        super().__init__(name="reject_everything")

    async def run(self, solution, workspace=None):
        return [
            QualityIssue(
                issue_type=IssueType.STANDARDS,
                severity=IssueSeverity.CRITICAL,
                message="not good enough",
                penalty=100.0,
            )
        ]


class BrokenBindProvider(EchoInferenceProvider):
    """Provider that blows up before any prompt is sent."""

    def bind(self, task):
        raise RuntimeError("no route for task")


@pytest.fixture
def make_worker(task_queue, message_bus, echo_provider, clock):
    """Factory for workers sharing the test queue and bus."""

    def factory(worker_id="backend-1", provider=None, gate=None, **config):
        return AgentWorker(
            WorkerConfig(worker_id=worker_id, **config),
            queue=task_queue,
            bus=message_bus,
            provider=provider or echo_provider,
            gate=gate or QualityGate(),
            poll_interval=0.01,
            clock=clock,
        )

    return factory


async def _topics(bus, sender):
    await bus.drain()
    return [m.topic for m in reversed(await bus.get_history(sender=sender, limit=1000))]


class TestRunOnce:
    """Test a single claim/process iteration."""

    @pytest.mark.asyncio
    async def test_nothing_to_claim(self, make_worker):
        worker = make_worker()
        assert not await worker.run_once()
        assert worker.completed_count == 0

    @pytest.mark.asyncio
    async def test_completes_task(self, make_worker, task_queue, message_bus):
        worker = make_worker()
        task = await task_queue.enqueue(Task(description="Add health endpoint", task_id="t1"))

        assert await worker.run_once()

        assert task.status == TaskStatus.COMPLETED
        assert task.assigned_worker == "backend-1"
        assert set(task.result) == {"solution", "quality"}
        assert task.result["quality"]["passed"]
        assert worker.completed_count == 1
        assert worker.state == WorkerState.IDLE
        assert worker.current_task_id is None

        topics = await _topics(message_bus, "backend-1")
        assert topics[0] == MessageType.TASK_CLAIMED.value
        assert topics.count(MessageType.AGENT_THOUGHTS.value) == 4
        assert topics[-3:] == [
            MessageType.SOLUTION_PROPOSED.value,
            MessageType.TASK_COMPLETED.value,
            MessageType.WORKER_STATUS.value,
        ]

    @pytest.mark.asyncio
    async def test_rejected_solution_fails_task(self, make_worker, task_queue, message_bus):
        gate = QualityGate()
        gate.register_check(RejectEverything())
        worker = make_worker(gate=gate)
        task = await task_queue.enqueue(Task(description="Add health endpoint"))

        assert await worker.run_once()

        assert task.status == TaskStatus.FAILED
        assert task.error.startswith("Quality gate failed: score 0/70")
        assert "not good enough" in task.error
        assert worker.failed_count == 1

        topics = await _topics(message_bus, "backend-1")
        assert MessageType.SOLUTION_REJECTED.value in topics
        assert MessageType.TASK_FAILED.value in topics
        assert MessageType.TASK_COMPLETED.value not in topics

    @pytest.mark.asyncio
    async def test_pipeline_error_fails_task(self, make_worker, task_queue):
        worker = make_worker(provider=BrokenBindProvider())
        task = await task_queue.enqueue(Task(description="Add health endpoint"))

        assert await worker.run_once()

        assert task.status == TaskStatus.FAILED
        assert task.error == "Worker error: no route for task"
        assert worker.failed_count == 1
        assert worker.state == WorkerState.IDLE

    @pytest.mark.asyncio
    async def test_capabilities_filter_claims(self, make_worker, task_queue):
        worker = make_worker(specialization="frontend", capabilities=["frontend", "ui"])
        backend_task = await task_queue.enqueue(
            Task(description="Add index", required_capabilities=frozenset({"database"}))
        )

        assert not await worker.run_once()
        assert backend_task.status == TaskStatus.PENDING

    @pytest.mark.asyncio
    async def test_stale_completion_is_ignored(self, make_worker, task_queue):
        worker = make_worker()
        task = await task_queue.enqueue(Task(description="Add health endpoint"))

        original_validate = worker.gate.validate

        async def validate_after_release(solution):
            # Simulates the orchestrator recovering the task mid-validation
            await task_queue.release(task.task_id)
            return await original_validate(solution)

        worker.gate.validate = validate_after_release
        assert await worker.run_once()

        assert task.status == TaskStatus.PENDING
        assert worker.completed_count == 0


class TestLifecycle:
    """Test the worker loop and heartbeats."""

    @pytest.mark.asyncio
    async def test_unknown_specialization(self, make_worker):
        worker = make_worker(specialization="wizard")
        with pytest.raises(ConfigurationError):
            worker.prepare()

    @pytest.mark.asyncio
    async def test_heartbeat(self, make_worker, clock):
        worker = make_worker()
        clock.advance(30)
        assert worker.seconds_since_heartbeat() == 30
        worker.heartbeat()
        assert worker.seconds_since_heartbeat() == 0

    @pytest.mark.asyncio
    async def test_loop_processes_until_stopped(self, make_worker, task_queue):
        worker = make_worker()
        loop = worker.start()
        task = await task_queue.enqueue(Task(description="Add health endpoint"))

        for _ in range(200):
            if task.status == TaskStatus.COMPLETED:
                break
            await asyncio.sleep(0.01)

        worker.stop()
        await asyncio.wait_for(loop, timeout=5)

        assert task.status == TaskStatus.COMPLETED
        assert worker.state == WorkerState.STOPPED
        assert worker.status()["completed"] == 1

    @pytest.mark.asyncio
    async def test_cancelled_loop(self, make_worker):
        worker = make_worker()
        loop = worker.start()
        await asyncio.sleep(0.02)

        loop.cancel()
        with pytest.raises(asyncio.CancelledError):
            await loop
        assert worker.state == WorkerState.STOPPED


class TestInbox:
    """Test direct messages to a worker."""

    def test_answer(self, make_worker):
        worker = make_worker(capabilities=["backend", "api"])

        answer = worker.answer({"capabilities": [" API "]})
        assert answer["worker_id"] == "backend-1"
        assert answer["state"] == "created"
        assert answer["can_handle"] is True
        assert worker.answer({"capabilities": ["ui"]})["can_handle"] is False
        assert worker.answer({})["can_handle"] is True

    @pytest.mark.asyncio
    async def test_request_is_answered(self, make_worker, message_bus):
        worker = make_worker(capabilities=["backend"])
        await message_bus.register_agent(worker.worker_id, inbox=worker.handle_message)

        answer = await message_bus.request("lead", worker.worker_id, {"capabilities": ["backend"]})
        await message_bus.broadcast("lead", {"notice": "code freeze"})
        await message_bus.drain()

        assert answer["can_handle"] is True
        assert worker.messages_received == 2
        history = await message_bus.get_history(topic=MessageType.AGENT_ANSWER)
        assert history[0].sender == worker.worker_id
