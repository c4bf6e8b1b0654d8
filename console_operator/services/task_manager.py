"""
Task Manager
Consumes console tasks with a pool of asyncio workers and tracks their status.
"""
import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Dict, List, Optional

from ..schemas import TASK_ADD_CONSOLE, TASK_DELETE_CONSOLE, ProvisioningTask
from .lifecycle import LifecycleOrchestrator
from .orchestration.kubernetes.client import KubernetesClient

logger = logging.getLogger(__name__)

# How often finished task records are checked for eviction
CLEANUP_INTERVAL_SECONDS = 600


class TaskStatus(str, Enum):
    """Task execution statuses"""
    QUEUED = "queued"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class TaskRecord:
    """Tracks one task through the pool"""
    task: ProvisioningTask
    status: TaskStatus = TaskStatus.QUEUED
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    error: Optional[str] = None

    @property
    def key(self) -> str:
        return f"{self.task.namespace}/{self.task.name}"


class TaskManager:
    """
    Dispatches add/delete console tasks to the lifecycle orchestrator.

    Each worker handles one task at a time; tasks for different clusters
    run concurrently on different workers without shared state.
    """

    def __init__(
        self,
        orchestrator: LifecycleOrchestrator,
        worker_count: int = 4,
        record_ttl_hours: float = 24
    ):
        self.orchestrator = orchestrator
        self.worker_count = worker_count
        self.record_ttl_hours = record_ttl_hours
        self._queue: "asyncio.Queue[TaskRecord]" = asyncio.Queue()
        self._records: Dict[str, TaskRecord] = {}
        self._workers: List[asyncio.Task] = []

    def submit(self, task: ProvisioningTask) -> TaskRecord:
        """Queue a task, ignoring one already queued, running or seen before"""
        key = f"{task.namespace}/{task.name}"
        existing = self._records.get(key)
        if existing and (
            existing.status in (TaskStatus.QUEUED, TaskStatus.RUNNING)
            or (task.uid and existing.task.uid == task.uid)
        ):
            logger.debug(f"[TASK-MANAGER] Task {key} already {existing.status.value}")
            return existing

        record = TaskRecord(task=task)
        self._records[key] = record
        self._queue.put_nowait(record)
        return record

    def get_record(self, namespace: str, name: str) -> Optional[TaskRecord]:
        return self._records.get(f"{namespace}/{name}")

    async def dispatch(self, record: TaskRecord) -> None:
        """Run one task and record how it ended"""
        task = record.task
        record.status = TaskStatus.RUNNING
        record.started_at = datetime.now(timezone.utc)
        logger.info(f"[TASK-MANAGER] Running {task.task_type} task {record.key}")

        try:
            if task.task_type == TASK_ADD_CONSOLE:
                await self.orchestrator.add_from_task(task)
            elif task.task_type == TASK_DELETE_CONSOLE:
                await self.orchestrator.delete_from_task(task)
            else:
                raise ValueError(f"Unknown task type: {task.task_type}")
        except Exception as e:
            record.status = TaskStatus.FAILED
            record.error = str(e)
            logger.error(f"[TASK-MANAGER] Task {record.key} failed: {e}")
        else:
            record.status = TaskStatus.COMPLETED
            logger.info(f"[TASK-MANAGER] Task {record.key} completed")
        finally:
            record.completed_at = datetime.now(timezone.utc)

    async def _worker(self, index: int) -> None:
        while True:
            record = await self._queue.get()
            try:
                await self.dispatch(record)
            finally:
                self._queue.task_done()

    def start(self) -> None:
        if self._workers:
            return
        self._workers = [
            asyncio.create_task(self._worker(i), name=f"console-worker-{i}")
            for i in range(self.worker_count)
        ]
        self._workers.append(asyncio.create_task(self._cleanup_loop(), name="console-task-cleanup"))
        logger.info(f"[TASK-MANAGER] Started {self.worker_count} workers")

    def cleanup_old_records(self, max_age_hours: Optional[float] = None) -> int:
        """
        Drop completed and failed records older than max_age_hours.

        Until a record is dropped, a replayed task with the same uid is
        ignored. A failed task still present in the cluster after that is
        picked up again on the next watch re-list.

        Returns:
            Number of records removed
        """
        if max_age_hours is None:
            max_age_hours = self.record_ttl_hours
        cutoff = datetime.now(timezone.utc) - timedelta(hours=max_age_hours)

        stale = [
            key for key, record in self._records.items()
            if record.status in (TaskStatus.COMPLETED, TaskStatus.FAILED)
            and record.completed_at
            and record.completed_at < cutoff
        ]
        for key in stale:
            del self._records[key]
        return len(stale)

    async def _cleanup_loop(self) -> None:
        while True:
            await asyncio.sleep(CLEANUP_INTERVAL_SECONDS)
            removed = self.cleanup_old_records()
            if removed:
                logger.debug(f"[TASK-MANAGER] Removed {removed} finished task records")

    async def join(self) -> None:
        """Wait until every queued task has been handled"""
        await self._queue.join()

    async def stop(self) -> None:
        for worker in self._workers:
            worker.cancel()
        await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers = []

    async def watch(self, k8s_client: KubernetesClient, namespace: str) -> None:
        """
        Feed newly added task resources from a namespace into the pool.

        The blocking watch runs in a thread; each stream is restarted when
        the server closes it.
        """
        loop = asyncio.get_running_loop()
        queue: "asyncio.Queue[ProvisioningTask]" = asyncio.Queue()

        def stream_events() -> None:
            for event in k8s_client.watch_tasks(namespace):
                if event.get("type") != "ADDED":
                    continue
                try:
                    task = ProvisioningTask.from_resource(event["object"])
                except (KeyError, ValueError) as e:
                    logger.warning(f"[TASK-MANAGER] Ignoring malformed task in {namespace}: {e}")
                    continue
                if task.task_type in (TASK_ADD_CONSOLE, TASK_DELETE_CONSOLE):
                    loop.call_soon_threadsafe(queue.put_nowait, task)

        async def pump() -> None:
            while True:
                self.submit(await queue.get())

        pump_task = asyncio.create_task(pump())
        try:
            while True:
                try:
                    await asyncio.to_thread(stream_events)
                except Exception as e:
                    logger.error(f"[TASK-MANAGER] Task watch in {namespace} failed: {e}")
                    await asyncio.sleep(5)
        finally:
            pump_task.cancel()
