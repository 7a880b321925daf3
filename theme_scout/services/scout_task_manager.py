"""Redis-backed queueing and worker pool for theme scout jobs."""

from __future__ import annotations

import asyncio
import json
import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Literal

from redis.asyncio import Redis

from theme_scout.config import settings
from theme_scout.core.database import get_session_context
from theme_scout.core.exceptions import ScoutQueueFullError, ThemeScoutError
from theme_scout.core.redis import get_redis_client
from theme_scout.services.job_status import ScoutJobStatusStore
from theme_scout.services.scout.types import ScoutResult

logger = logging.getLogger(__name__)

BackoffKind = Literal["fixed", "exponential"]

QUEUE_KEY = "theme-scout:queue"
DELAYED_KEY = "theme-scout:delayed"
FAILED_KEY = "theme-scout:failed"
PROMOTE_BATCH_SIZE = 100


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    """How many deliveries a job gets and how long to wait between them."""

    max_attempts: int = 3
    backoff_kind: BackoffKind = "exponential"
    base_delay_seconds: float = 5.0

    def delay_for_attempt(self, attempt: int) -> float:
        """Delay before re-delivering a job whose `attempt` just failed."""
        if self.backoff_kind == "fixed":
            return self.base_delay_seconds
        return self.base_delay_seconds * 2 ** (max(1, attempt) - 1)

    def should_retry(self, attempt: int) -> bool:
        return attempt < self.max_attempts

    @classmethod
    def from_settings(cls) -> RetryPolicy:
        return cls(
            max_attempts=max(1, settings.theme_scout_retry_attempts),
            backoff_kind="exponential",
            base_delay_seconds=settings.theme_scout_retry_base_delay_seconds,
        )


@dataclass(slots=True)
class ScoutTaskJob:
    """Queued theme scout job."""

    asset_id: str
    user_id: str
    focus_keywords: list[str] | None = None
    job_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    attempt: int = 1
    retry_policy: RetryPolicy = field(default_factory=RetryPolicy)

    @property
    def name(self) -> str:
        return f"scout-themes:{self.asset_id}"


class ScoutTaskManager:
    """Enqueue, dequeue and reschedule theme scout jobs in Redis."""

    def __init__(
        self,
        *,
        worker_count: int,
        queue_size: int,
        redis_client: Redis | None = None,
        status_store: ScoutJobStatusStore | None = None,
    ) -> None:
        self._worker_count = max(1, worker_count)
        self._queue_size_limit = max(1, queue_size)
        self._redis = redis_client or get_redis_client()
        self.status_store = status_store or ScoutJobStatusStore(self._redis)

    @property
    def worker_count(self) -> int:
        """Configured worker count."""
        return self._worker_count

    @property
    def queue_size_limit(self) -> int:
        """Configured queue size cap."""
        return self._queue_size_limit

    async def get_queue_size(self) -> int:
        """Get current queue length from Redis."""
        return int(await self._redis.llen(QUEUE_KEY))

    async def enqueue(
        self,
        asset_id: str,
        user_id: str,
        focus_keywords: list[str] | None = None,
    ) -> ScoutTaskJob:
        """Queue a scouting job for one asset."""
        job = ScoutTaskJob(
            asset_id=asset_id,
            user_id=user_id,
            focus_keywords=list(focus_keywords) if focus_keywords else None,
            retry_policy=RetryPolicy.from_settings(),
        )
        await self._enqueue(job, enforce_capacity=True)
        await self.status_store.set_job_state(
            job.job_id,
            status="queued",
            name=job.name,
            asset_id=job.asset_id,
            user_id=job.user_id,
            attempt=job.attempt,
        )
        return job

    async def requeue(self, job: ScoutTaskJob) -> None:
        """Requeue a job without hard-failing on the configured queue cap."""
        await self._enqueue(job, enforce_capacity=False)

    async def schedule_retry(self, job: ScoutTaskJob, delay_seconds: float) -> None:
        """Park the job in the delayed set until its backoff elapses."""
        due_at = time.time() + max(0.0, delay_seconds)
        await self._redis.zadd(DELAYED_KEY, {self._serialize_job(job): due_at})
        logger.info(
            "Theme scout retry scheduled",
            extra={
                "job_id": job.job_id,
                "asset_id": job.asset_id,
                "attempt": job.attempt,
                "delay_s": delay_seconds,
            },
        )

    async def mark_failed(self, job: ScoutTaskJob, error_message: str) -> None:
        """Move a job to the failed list for operator inspection."""
        entry = json.loads(self._serialize_job(job))
        entry["error_message"] = error_message
        entry["failed_at"] = time.time()
        await self._redis.rpush(FAILED_KEY, json.dumps(entry, separators=(",", ":")))
        logger.warning(
            "Theme scout job moved to failed list",
            extra={
                "job_id": job.job_id,
                "asset_id": job.asset_id,
                "attempt": job.attempt,
                "error": error_message,
            },
        )

    async def _enqueue(self, job: ScoutTaskJob, *, enforce_capacity: bool) -> None:
        if enforce_capacity:
            pending = int(await self._redis.llen(QUEUE_KEY))
            if pending >= self._queue_size_limit:
                raise ScoutQueueFullError(self._queue_size_limit)
        queue_size = int(await self._redis.rpush(QUEUE_KEY, self._serialize_job(job)))
        logger.info(
            "Theme scout task queued",
            extra={
                "job_id": job.job_id,
                "asset_id": job.asset_id,
                "attempt": job.attempt,
                "queue_size": queue_size,
            },
        )

    async def pop_next(self, *, timeout_seconds: int = 5) -> ScoutTaskJob | None:
        """Pop the next queued job, promoting due retries first."""
        await self._promote_due_retries()
        timeout = max(1, int(timeout_seconds))
        popped = await self._redis.blpop(QUEUE_KEY, timeout=timeout)
        if not popped:
            return None
        _, payload = popped
        try:
            return self._deserialize_job(payload)
        except (json.JSONDecodeError, KeyError, TypeError, ValueError):
            logger.warning(
                "Dropping malformed theme scout job payload",
                extra={"payload": payload},
            )
            return None

    async def _promote_due_retries(self) -> int:
        due = await self._redis.zrangebyscore(
            DELAYED_KEY,
            0,
            time.time(),
            start=0,
            num=PROMOTE_BATCH_SIZE,
        )
        promoted = 0
        for payload in due:
            # zrem decides which worker owns the promotion
            if await self._redis.zrem(DELAYED_KEY, payload):
                await self._redis.rpush(QUEUE_KEY, payload)
                promoted += 1
        return promoted

    @staticmethod
    def _serialize_job(job: ScoutTaskJob) -> str:
        return json.dumps(
            {
                "job_id": job.job_id,
                "name": job.name,
                "asset_id": job.asset_id,
                "user_id": job.user_id,
                "focus_keywords": job.focus_keywords,
                "attempt": job.attempt,
                "retry_policy": {
                    "max_attempts": job.retry_policy.max_attempts,
                    "backoff_kind": job.retry_policy.backoff_kind,
                    "base_delay_seconds": job.retry_policy.base_delay_seconds,
                },
            },
            separators=(",", ":"),
        )

    @staticmethod
    def _deserialize_job(payload: str) -> ScoutTaskJob:
        data = json.loads(payload)
        job_id = data["job_id"]
        asset_id = data["asset_id"]
        user_id = data["user_id"]
        attempt = int(data.get("attempt", 1))
        focus_keywords = data.get("focus_keywords")
        if not isinstance(job_id, str) or not job_id:
            raise ValueError("Invalid job_id")
        if not isinstance(asset_id, str) or not asset_id:
            raise ValueError("Invalid asset_id")
        if not isinstance(user_id, str) or not user_id:
            raise ValueError("Invalid user_id")
        if attempt < 1:
            raise ValueError("Invalid attempt")
        if focus_keywords is not None and not isinstance(focus_keywords, list):
            raise ValueError("Invalid focus_keywords")

        policy_data: dict[str, Any] = data.get("retry_policy") or {}
        backoff_kind = policy_data.get("backoff_kind", "exponential")
        if backoff_kind not in {"fixed", "exponential"}:
            raise ValueError("Invalid backoff_kind")
        policy = RetryPolicy(
            max_attempts=int(policy_data.get("max_attempts", 3)),
            backoff_kind=backoff_kind,
            base_delay_seconds=float(policy_data.get("base_delay_seconds", 5.0)),
        )
        return ScoutTaskJob(
            job_id=job_id,
            asset_id=asset_id,
            user_id=user_id,
            focus_keywords=[str(keyword) for keyword in focus_keywords]
            if focus_keywords
            else None,
            attempt=attempt,
            retry_policy=policy,
        )


class ScoutTaskWorker:
    """Async worker pool consuming theme scout jobs from Redis."""

    def __init__(
        self,
        *,
        manager: ScoutTaskManager,
        poll_timeout_seconds: int = 5,
        requeue_delay_seconds: float = 1.0,
    ) -> None:
        self.manager = manager
        self.poll_timeout_seconds = max(1, int(poll_timeout_seconds))
        self.requeue_delay_seconds = max(0.1, float(requeue_delay_seconds))
        self._workers: list[asyncio.Task[None]] = []
        self._stopping = asyncio.Event()
        self._asset_locks: dict[str, asyncio.Lock] = {}

    async def start(self) -> None:
        """Start worker tasks if not already running."""
        if self._workers:
            return
        self._stopping.clear()
        self._workers = [
            asyncio.create_task(
                self._worker_loop(index + 1),
                name=f"theme-scout-worker-{index + 1}",
            )
            for index in range(self.manager.worker_count)
        ]
        logger.info(
            "Theme scout worker pool started",
            extra={"worker_count": self.manager.worker_count},
        )

    async def stop(self) -> None:
        """Stop worker tasks."""
        if not self._workers:
            return
        self._stopping.set()
        for worker in self._workers:
            worker.cancel()
        await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers = []
        logger.info("Theme scout worker pool stopped")

    async def _worker_loop(self, worker_index: int) -> None:
        logger.info("Theme scout worker started", extra={"worker_index": worker_index})
        try:
            while not self._stopping.is_set():
                try:
                    job = await self.manager.pop_next(
                        timeout_seconds=self.poll_timeout_seconds
                    )
                except Exception:
                    logger.exception(
                        "Theme scout dequeue failed",
                        extra={"worker_index": worker_index},
                    )
                    await asyncio.sleep(self.requeue_delay_seconds)
                    continue
                if job is None:
                    continue
                try:
                    await self.process(job, worker_index=worker_index)
                except Exception:
                    logger.exception(
                        "Theme scout worker job failed",
                        extra={
                            "worker_index": worker_index,
                            "job_id": job.job_id,
                            "asset_id": job.asset_id,
                        },
                    )
        except asyncio.CancelledError:
            pass
        finally:
            logger.info("Theme scout worker stopped", extra={"worker_index": worker_index})

    async def process(self, job: ScoutTaskJob, *, worker_index: int = 0) -> None:
        """Run one delivered job, or requeue it if its asset is already in flight."""
        lock = self._asset_locks.setdefault(job.asset_id, asyncio.Lock())
        if lock.locked():
            logger.info(
                "Asset busy, requeueing theme scout job",
                extra={
                    "job_id": job.job_id,
                    "asset_id": job.asset_id,
                    "worker_index": worker_index,
                },
            )
            await asyncio.sleep(self.requeue_delay_seconds)
            await self.manager.requeue(job)
            return

        try:
            async with lock:
                await self._run_job(job, worker_index=worker_index)
        finally:
            if not lock.locked():
                self._asset_locks.pop(job.asset_id, None)

    async def _run_job(self, job: ScoutTaskJob, *, worker_index: int) -> None:
        # Once the job is completed, rescheduled or dead-lettered it belongs to
        # the queue again; before that, any interruption must redeliver it.
        handed_off = False
        status_store = self.manager.status_store
        try:
            await status_store.set_job_state(
                job.job_id,
                status="running",
                name=job.name,
                asset_id=job.asset_id,
                user_id=job.user_id,
                attempt=job.attempt,
            )
            try:
                result = await self._execute(job)
            except Exception as exc:
                fields = await self._hand_off_failure(job, exc, worker_index=worker_index)
                handed_off = True
                await status_store.set_job_state(job.job_id, **fields)
                return

            handed_off = True
            await status_store.set_job_state(
                job.job_id,
                status="completed",
                result_status=result.status,
                suggestion_ids=result.suggestion_ids,
                ranking_source=result.ranking_source,
                error_message=None,
            )
        except asyncio.CancelledError:
            if not handed_off:
                await self._redeliver(job, worker_index=worker_index, reason="cancelled")
            raise
        except Exception:
            if not handed_off:
                await self._redeliver(job, worker_index=worker_index, reason="worker_error")
            raise

    async def _hand_off_failure(
        self,
        job: ScoutTaskJob,
        exc: Exception,
        *,
        worker_index: int,
    ) -> dict[str, Any]:
        """Dead-letter or reschedule a failed job and return its status fields."""
        if isinstance(exc, ThemeScoutError) and not exc.retryable:
            logger.warning(
                "Theme scout job failed permanently",
                extra={
                    "job_id": job.job_id,
                    "asset_id": job.asset_id,
                    "worker_index": worker_index,
                    "error": exc.message,
                    **exc.details,
                },
            )
            await self.manager.mark_failed(job, exc.message)
            return {"status": "failed", "error_message": exc.message}

        error_message = f"{type(exc).__name__}: {exc}"
        logger.exception(
            "Theme scout job failed",
            extra={
                "job_id": job.job_id,
                "asset_id": job.asset_id,
                "attempt": job.attempt,
                "worker_index": worker_index,
            },
        )
        if not job.retry_policy.should_retry(job.attempt):
            await self.manager.mark_failed(job, error_message)
            return {"status": "failed", "error_message": error_message}

        delay = job.retry_policy.delay_for_attempt(job.attempt)
        job.attempt += 1
        await self.manager.schedule_retry(job, delay)
        return {"status": "retrying", "attempt": job.attempt, "error_message": error_message}

    async def _redeliver(self, job: ScoutTaskJob, *, worker_index: int, reason: str) -> None:
        """Put an interrupted job back on the queue with its attempt unchanged."""
        logger.warning(
            "Theme scout job interrupted, requeueing",
            extra={
                "job_id": job.job_id,
                "asset_id": job.asset_id,
                "attempt": job.attempt,
                "worker_index": worker_index,
                "reason": reason,
            },
        )
        await self.manager.requeue(job)
        try:
            await self.manager.status_store.set_job_state(job.job_id, status="queued")
        except Exception:
            logger.warning(
                "Could not record requeued status",
                extra={"job_id": job.job_id, "worker_index": worker_index},
            )

    async def _execute(self, job: ScoutTaskJob) -> ScoutResult:
        async with get_session_context() as session:
            # Local import keeps model/agent wiring out of module import time.
            from theme_scout.services.scout.orchestrator import build_theme_scout_service

            service = build_theme_scout_service(session)
            return await service.run(
                asset_id=job.asset_id,
                user_id=job.user_id,
                focus_keywords=job.focus_keywords,
            )


_scout_task_manager: ScoutTaskManager | None = None


def get_scout_task_manager() -> ScoutTaskManager:
    """Get singleton theme scout task manager."""
    global _scout_task_manager
    if _scout_task_manager is None:
        _scout_task_manager = ScoutTaskManager(
            worker_count=settings.theme_scout_task_workers,
            queue_size=settings.theme_scout_task_queue_size,
        )
    return _scout_task_manager
