"""Scout job status records backed by Redis."""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any

from redis.asyncio import Redis

from theme_scout.config import settings
from theme_scout.core.redis import get_redis_client

logger = logging.getLogger(__name__)

JOB_KEY_PREFIX = "theme-scout:job"
UNSET: object = object()


class ScoutJobStatusStore:
    """Store and fetch scout job outcomes from Redis."""

    def __init__(self, redis_client: Redis | None = None) -> None:
        self.redis = redis_client or get_redis_client()
        self.ttl_seconds = settings.cache_ttl_seconds

    async def get_job_status(self, job_id: str) -> dict[str, Any] | None:
        """Get job status by job ID."""
        raw = await self.redis.get(self._job_key(job_id))
        if raw is None:
            return None

        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Invalid job status payload in Redis", extra={"job_id": job_id})
            return None

    async def set_job_state(
        self,
        job_id: str,
        *,
        status: str | None = None,
        name: str | None = None,
        asset_id: str | None = None,
        user_id: str | None = None,
        attempt: int | None = None,
        suggestion_ids: list[str] | None = None,
        ranking_source: str | None = None,
        result_status: str | None = None,
        error_message: str | None | object = UNSET,
    ) -> dict[str, Any]:
        """Create or update job state, keeping fields that are not passed."""
        now = datetime.now(timezone.utc).isoformat()
        payload = await self.get_job_status(job_id) or {"job_id": job_id, "created_at": now}
        payload["updated_at"] = now

        updates = {
            "status": status,
            "name": name,
            "asset_id": asset_id,
            "user_id": user_id,
            "attempt": attempt,
            "suggestion_ids": suggestion_ids,
            "ranking_source": ranking_source,
            "result_status": result_status,
        }
        for key, value in updates.items():
            if value is not None:
                payload[key] = value
        if error_message is not UNSET:
            payload["error_message"] = error_message

        await self.redis.set(
            self._job_key(job_id),
            json.dumps(payload),
            ex=self.ttl_seconds,
        )
        return payload

    @staticmethod
    def _job_key(job_id: str) -> str:
        return f"{JOB_KEY_PREFIX}:{job_id}"
