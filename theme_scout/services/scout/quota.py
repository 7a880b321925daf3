"""Token quota reservation and reconciliation for scout jobs."""

from __future__ import annotations

import json
import logging
import math
from collections.abc import Callable, Sequence
from contextlib import AbstractAsyncContextManager
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta, timezone
from typing import Protocol

from sqlalchemy import or_, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from theme_scout.core.database import get_session_context
from theme_scout.models.base import generate_uuid
from theme_scout.models.usage_meter import UsageMeter
from theme_scout.services.scout.types import CandidateTheme, RankedTheme

logger = logging.getLogger(__name__)

CHARS_PER_TOKEN = 4
BILLING_PERIOD_DAYS = 30
DEFAULT_PLAN = "free"
WARNING_THRESHOLDS: tuple[int, ...] = (50, 80, 90, 100)


@dataclass(frozen=True)
class PlanLimits:
    """Base token allowance plus grace; `tokens=None` means unlimited."""

    tokens: int | None
    grace: int = 0

    @property
    def hard_cap(self) -> int | None:
        if self.tokens is None:
            return None
        return self.tokens + self.grace


PLAN_LIMITS: dict[str, PlanLimits] = {
    "free": PlanLimits(tokens=150_000, grace=50_000),
    "pro": PlanLimits(tokens=1_000_000, grace=100_000),
    "enterprise": PlanLimits(tokens=None),
}


class QuotaService(Protocol):
    """Per-user token ledger."""

    async def check_and_reserve(self, user_id: str, estimated_tokens: int) -> bool:
        """Reserve tokens atomically; return True when the quota would be exceeded."""
        ...

    async def charge_additional(self, user_id: str, delta_tokens: int) -> None: ...


def resolve_plan_limits(plan: str | None) -> PlanLimits:
    """Limits for a plan name, defaulting unknown plans to free."""
    normalized = (plan or DEFAULT_PLAN).strip().lower()
    return PLAN_LIMITS.get(normalized, PLAN_LIMITS[DEFAULT_PLAN])


def crossed_warning_threshold(
    *,
    previous_tokens: int,
    current_tokens: int,
    base_limit: int | None,
) -> int | None:
    """Return the highest usage percentage threshold crossed by this debit."""
    if not base_limit or base_limit <= 0:
        return None
    previous_percent = math.floor(previous_tokens * 100 / base_limit)
    current_percent = math.floor(current_tokens * 100 / base_limit)
    for threshold in reversed(WARNING_THRESHOLDS):
        if previous_percent < threshold <= current_percent:
            return threshold
    return None


def estimate_token_usage(
    candidates: Sequence[CandidateTheme],
    ranked: Sequence[RankedTheme],
) -> int:
    """Rough token count of the payloads sent to and returned from the model."""
    serialized = json.dumps([asdict(candidate) for candidate in candidates]) + json.dumps(
        [asdict(theme) for theme in ranked]
    )
    return math.ceil(len(serialized) / CHARS_PER_TOKEN)


async def reconcile_token_usage(
    quota: QuotaService,
    *,
    user_id: str,
    estimated_tokens: int,
    actual_tokens: int,
) -> int:
    """Charge usage beyond the reserved estimate. Under-use is not refunded."""
    delta = actual_tokens - estimated_tokens
    if delta <= 0:
        return 0
    await quota.charge_additional(user_id, delta)
    logger.info(
        "Charged additional scout tokens",
        extra={
            "user_id": user_id,
            "estimated_tokens": estimated_tokens,
            "actual_tokens": actual_tokens,
            "delta_tokens": delta,
        },
    )
    return delta


class SqlQuotaService:
    """Usage ledger on the `usage_meters` table.

    Each operation runs in its own short transaction so a reservation is
    visible to concurrent jobs immediately and no row lock is held across the
    model call.
    """

    def __init__(
        self,
        session_factory: Callable[[], AbstractAsyncContextManager[AsyncSession]] = get_session_context,
    ) -> None:
        self._session_factory = session_factory

    async def check_and_reserve(self, user_id: str, estimated_tokens: int) -> bool:
        now = datetime.now(timezone.utc)
        async with self._session_factory() as session:
            await self._ensure_meter(session, user_id=user_id, now=now)
            await self._roll_expired_period(session, user_id=user_id, now=now)

            # Single conditional debit: the cap check and the increment are one statement.
            result = await session.execute(
                update(UsageMeter)
                .where(
                    UsageMeter.user_id == user_id,
                    or_(
                        UsageMeter.hard_cap.is_(None),
                        UsageMeter.tokens_used + estimated_tokens <= UsageMeter.hard_cap,
                    ),
                )
                .values(tokens_used=UsageMeter.tokens_used + estimated_tokens)
                .returning(UsageMeter.tokens_used, UsageMeter.plan)
            )
            row = result.one_or_none()

        if row is None:
            logger.warning(
                "Quota exceeded",
                extra={"user_id": user_id, "estimated_tokens": estimated_tokens},
            )
            return True

        tokens_used, plan = row
        threshold = crossed_warning_threshold(
            previous_tokens=int(tokens_used) - estimated_tokens,
            current_tokens=int(tokens_used),
            base_limit=resolve_plan_limits(plan).tokens,
        )
        if threshold is not None:
            logger.warning(
                "User crossed quota threshold",
                extra={
                    "user_id": user_id,
                    "plan": plan,
                    "threshold_percent": threshold,
                    "tokens_used": int(tokens_used),
                },
            )
        return False

    async def charge_additional(self, user_id: str, delta_tokens: int) -> None:
        if delta_tokens <= 0:
            return
        async with self._session_factory() as session:
            await session.execute(
                update(UsageMeter)
                .where(UsageMeter.user_id == user_id)
                .values(tokens_used=UsageMeter.tokens_used + delta_tokens)
            )

    @staticmethod
    async def _ensure_meter(session: AsyncSession, *, user_id: str, now: datetime) -> None:
        limits = resolve_plan_limits(DEFAULT_PLAN)
        await session.execute(
            pg_insert(UsageMeter)
            .values(
                id=generate_uuid(),
                user_id=user_id,
                plan=DEFAULT_PLAN,
                tokens_used=0,
                hard_cap=limits.hard_cap,
                period_start=now,
                period_end=now + timedelta(days=BILLING_PERIOD_DAYS),
            )
            .on_conflict_do_nothing(index_elements=[UsageMeter.user_id])
        )

    @staticmethod
    async def _roll_expired_period(session: AsyncSession, *, user_id: str, now: datetime) -> None:
        await session.execute(
            update(UsageMeter)
            .where(UsageMeter.user_id == user_id, UsageMeter.period_end <= now)
            .values(
                tokens_used=0,
                period_start=now,
                period_end=now + timedelta(days=BILLING_PERIOD_DAYS),
            )
        )
