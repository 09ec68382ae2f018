"""
Orchestrator

Sequences one task per tick:
dequeue → select agent → build context → derive queries → gather knowledge →
ingest (+ curious exploration) → process → update user context →
store result → notify → release agent.

A tick with no free agent leaves the task at the head of the queue and
changes nothing else. Any failure after an agent is claimed marks the task
failed, publishes one task-error event and releases the agent.
"""

import logging
import random
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..common.analyst import LLMAnalyst
from ..common.config import DATA_DIR, MindloomConfig
from ..common.llm_client import LLMClient
from ..common.schemas import Task, TaskStatus, generate_task_id
from ..retriever.query_builder import QueryBuilder
from ..retriever.seeker import KnowledgeSeeker
from .agents import Agent, AgentPool, AgentSelector
from .context_builder import ContextBuilder
from .notifier import TASK_ERROR, TASK_PROGRESS, EventBroker, Notifier
from .processor import TaskProcessor
from .scheduler import PeriodicScheduler
from .store import ContextStore, StoreError, TaskStore
from .task_queue import QueueError, TaskQueue

logger = logging.getLogger("mindloom.orchestrator")


class TickOutcome(str, Enum):
    """What one run_once call did"""
    IDLE = "idle"  # queue empty
    DEFERRED = "deferred"  # no agent free, task left pending
    COMPLETED = "completed"
    FAILED = "failed"


class Orchestrator:
    """
    Owns the agent pool and drives tasks through their lifecycle.

    ``rng`` decides curious exploration (explore when ``rng.random()`` is
    below the agent's curiosity level); pass a seeded or stub generator to
    make that branch deterministic.
    """

    def __init__(
        self,
        *,
        pool: AgentPool,
        queue: TaskQueue,
        task_store: TaskStore,
        context_builder: ContextBuilder,
        query_builder: QueryBuilder,
        seeker: KnowledgeSeeker,
        processor: TaskProcessor,
        analyst: LLMAnalyst,
        notifier: Notifier,
        rng: Optional[random.Random] = None,
        knowledge_context_limit: int = 5,
        poll_interval: float = 1.0,
    ):
        self.pool = pool
        self.queue = queue
        self.task_store = task_store
        self.notifier = notifier
        self._selector = AgentSelector(pool)
        self._context_builder = context_builder
        self._query_builder = query_builder
        self._seeker = seeker
        self._processor = processor
        self._analyst = analyst
        self._rng = rng or random.Random()
        self._knowledge_context_limit = knowledge_context_limit
        self.poll_interval = poll_interval

    @classmethod
    def from_config(
        cls,
        config: MindloomConfig,
        llm: Optional[LLMClient] = None,
        notifier: Optional[Notifier] = None,
        rng: Optional[random.Random] = None,
    ) -> "Orchestrator":
        """Wire every component from configuration."""
        llm = llm or LLMClient.from_config(config.llm)
        analyst = LLMAnalyst(
            llm,
            model=config.llm.model or None,
            fast_model=config.llm.fast_model or None,
            timeout=config.orchestrator.llm_timeout,
        )

        if config.orchestrator.in_memory:
            store_dir = queue_path = None
        else:
            store_dir = Path(config.orchestrator.store_dir or DATA_DIR)
            queue_path = Path(config.orchestrator.queue_path or store_dir / "queue.json")
            logger.info("Persisting tasks under %s (queue: %s)", store_dir, queue_path)
        task_store = TaskStore(store_dir / "tasks.json" if store_dir else None)
        context_store = ContextStore(store_dir / "contexts.json" if store_dir else None)

        return cls(
            pool=AgentPool(),
            queue=TaskQueue(queue_path),
            task_store=task_store,
            context_builder=ContextBuilder(context_store, task_store),
            query_builder=QueryBuilder(analyst),
            seeker=KnowledgeSeeker.from_config(config.knowledge, analyst),
            processor=TaskProcessor(analyst),
            analyst=analyst,
            notifier=notifier or EventBroker(),
            rng=rng,
            knowledge_context_limit=config.orchestrator.knowledge_context_limit,
            poll_interval=config.orchestrator.poll_interval,
        )

    # =========================================================================
    # Boundary operations
    # =========================================================================

    def submit_task(
        self,
        user_id: str,
        prompt: str,
        context: Optional[Dict[str, Any]] = None,
        priority: int = 1,
    ) -> str:
        """Persist and enqueue a pending task. Returns immediately with its id."""
        task = Task(
            id=generate_task_id(),
            user_id=user_id,
            prompt=prompt,
            context=context or {},
            priority=priority,
        )
        self.task_store.create(task)
        try:
            self.queue.enqueue(task)
        except QueueError:
            # No pending record without a queue entry
            try:
                self.task_store.delete(task.id)
            except StoreError as e:
                logger.error("Could not roll back task %s: %s", task.id, e)
            raise
        logger.info("Task %s submitted by %s", task.id, user_id)
        return task.id

    def get_agent_status(self) -> List[Dict[str, Any]]:
        return self.pool.snapshot()

    def get_task(self, task_id: str) -> Optional[Task]:
        return self.task_store.get(task_id)

    def get_user_tasks(self, user_id: str, limit: int = 50) -> List[Task]:
        return self.task_store.list_for_user(user_id, limit=limit)

    def get_user_metrics(self, user_id: str, days: int = 30) -> Dict[str, Any]:
        return self.task_store.metrics(user_id, days=days)

    def scheduler(self, stop_event=None) -> PeriodicScheduler:
        return PeriodicScheduler(self.run_once, interval=self.poll_interval, stop_event=stop_event)

    # =========================================================================
    # Processing
    # =========================================================================

    async def run_once(self) -> TickOutcome:
        """
        One orchestration tick.

        Queue and store outages propagate to the caller (the scheduler logs
        them and keeps ticking). A task is only taken off the queue once an
        idle agent exists.
        """
        if not self.pool.idle_agents():
            if len(self.queue) == 0:
                return TickOutcome.IDLE
            logger.debug("No agent available, %d task(s) waiting", len(self.queue))
            return TickOutcome.DEFERRED

        task = self.queue.dequeue()
        if task is None:
            return TickOutcome.IDLE

        agent = self._selector.select_agent(task)
        if agent is None:
            # Another worker claimed the last idle agent in between
            try:
                self.queue.requeue(task)
            except QueueError as e:
                logger.error("Could not requeue task %s: %s", task.id, e)
                await self._fail(task, "requeue", e)
                raise
            logger.debug("No agent available for %s, deferring", task.id)
            return TickOutcome.DEFERRED

        return await self.process_task(task, agent)

    async def recover_interrupted(self) -> List[str]:
        """
        Settle tasks left behind by a previous run. Call before the loop starts.

        Tasks still ``processing`` lost their agent when the process stopped:
        they are marked failed and their users get a task-error. Pending
        tasks missing from the queue are queued again. Returns the ids of
        the failed tasks.
        """
        interrupted = []
        for task in self.task_store.with_status(TaskStatus.PROCESSING):
            logger.warning("Task %s was interrupted while processing", task.id)
            await self._fail(task, "interrupted", RuntimeError("processing stopped before the task finished"))
            interrupted.append(task.id)

        queued = set(self.queue.pending_ids())
        for task in self.task_store.with_status(TaskStatus.PENDING):
            if task.id not in queued:
                logger.info("Requeueing orphaned task %s", task.id)
                self.queue.enqueue(task)

        return interrupted

    async def process_task(self, task: Task, agent: Agent) -> TickOutcome:
        """Run a task on an agent already claimed for it; always releases the agent."""
        stage = "start"
        try:
            stage = "mark-processing"
            self.task_store.transition(task.id, TaskStatus.PROCESSING)

            stage = "build-context"
            context = self._context_builder.build_context(task.user_id, task.prompt)

            stage = "derive-queries"
            queries = await self._query_builder.derive_queries(task.prompt, context.interests)

            stage = "seek-knowledge"
            gathered = await self._seeker.seek_knowledge(queries)

            stage = "ingest-knowledge"
            self.pool.merge_knowledge(agent.id, gathered)

            stage = "curious-exploration"
            if self._rng.random() < agent.curiosity_level:
                await self._explore(agent, gathered)

            stage = "process"
            known = self.pool.recent_knowledge(agent.id, limit=self._knowledge_context_limit)
            result = await self._processor.process(task, context, agent, known, gathered)

            stage = "update-context"
            interests = await self._analyst.extract_interests(task.prompt, result.content)
            self._context_builder.update_user_context(task.user_id, interests)

            stage = "store-result"
            self.task_store.transition(task.id, TaskStatus.COMPLETED, result=result)

            stage = "notify"
            await self.notifier.publish(
                task.user_id,
                TASK_PROGRESS,
                {
                    "taskId": task.id,
                    "status": TaskStatus.COMPLETED.value,
                    "result": result.model_dump(mode="json"),
                    "agent": agent.name,
                },
            )

            logger.info("Task %s completed by agent %s", task.id, agent.name)
            return TickOutcome.COMPLETED

        except Exception as e:
            logger.error(
                "Error processing task %s for user %s at stage %s: %s",
                task.id, task.user_id, stage, e,
            )
            await self._fail(task, stage, e)
            return TickOutcome.FAILED

        finally:
            self.pool.release(agent.id)

    async def _explore(self, agent: Agent, recent) -> None:
        """Follow up on freshly ingested knowledge while the agent is learning."""
        self.pool.begin_learning(agent.id)
        try:
            follow_ups = self._query_builder.follow_up_queries(recent)
            additional = await self._seeker.seek_knowledge(follow_ups)
            self.pool.merge_knowledge(agent.id, additional)
            logger.info("Agent %s completed curious exploration (%d item(s))", agent.name, len(additional))
        finally:
            self.pool.end_learning(agent.id)

    async def _fail(self, task: Task, stage: str, error: Exception) -> None:
        message = str(error) or error.__class__.__name__

        stored = self.task_store.get(task.id)
        if stored is not None and not stored.status.is_terminal:
            try:
                if stored.status == TaskStatus.PENDING:
                    self.task_store.transition(task.id, TaskStatus.PROCESSING)
                self.task_store.transition(task.id, TaskStatus.FAILED, error=f"{stage}: {message}")
            except StoreError as store_error:
                logger.error("Could not mark task %s failed: %s", task.id, store_error)

        try:
            await self.notifier.publish(task.user_id, TASK_ERROR, {"taskId": task.id, "error": message})
        except Exception as notify_error:
            logger.error("Could not publish task-error for %s: %s", task.id, notify_error)
