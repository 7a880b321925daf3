"""Unit tests for quota helpers and token reconciliation."""

from __future__ import annotations

import json
import math
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import asdict
from unittest.mock import AsyncMock

import pytest

from theme_scout.services.scout.quota import (
    PLAN_LIMITS,
    SqlQuotaService,
    crossed_warning_threshold,
    estimate_token_usage,
    reconcile_token_usage,
    resolve_plan_limits,
)
from theme_scout.services.scout.types import CandidateTheme, RankedTheme


def test_plan_hard_caps_include_grace() -> None:
    assert PLAN_LIMITS["free"].hard_cap == 200_000
    assert PLAN_LIMITS["pro"].hard_cap == 1_100_000
    assert PLAN_LIMITS["enterprise"].hard_cap is None


def test_resolve_plan_limits_defaults_unknown_plans_to_free() -> None:
    assert resolve_plan_limits("PRO") is PLAN_LIMITS["pro"]
    assert resolve_plan_limits(None) is PLAN_LIMITS["free"]
    assert resolve_plan_limits("legacy") is PLAN_LIMITS["free"]


@pytest.mark.parametrize(
    ("previous_tokens", "current_tokens", "expected"),
    [
        (0, 1_500, None),
        (74_000, 75_500, 50),
        (119_000, 121_000, 80),
        (149_000, 151_000, 100),
        (80_000, 140_000, 90),
        (151_000, 152_500, None),
    ],
)
def test_crossed_warning_threshold(
    previous_tokens: int,
    current_tokens: int,
    expected: int | None,
) -> None:
    assert (
        crossed_warning_threshold(
            previous_tokens=previous_tokens,
            current_tokens=current_tokens,
            base_limit=150_000,
        )
        == expected
    )


def test_crossed_warning_threshold_ignores_unlimited_plans() -> None:
    assert (
        crossed_warning_threshold(previous_tokens=0, current_tokens=10**9, base_limit=None)
        is None
    )


def test_estimate_token_usage_is_serialized_length_over_four() -> None:
    candidate = CandidateTheme(title="Robotics", evidence=("robot",), tfidf_score=3.4)
    ranked = RankedTheme.from_candidate(candidate, 0.8)

    serialized = json.dumps([asdict(candidate)]) + json.dumps([asdict(ranked)])

    assert estimate_token_usage([candidate], [ranked]) == math.ceil(len(serialized) / 4)
    assert estimate_token_usage([], []) == 1


@pytest.mark.asyncio
async def test_reconcile_charges_only_the_overrun() -> None:
    quota = AsyncMock()

    delta = await reconcile_token_usage(
        quota,
        user_id="user-1",
        estimated_tokens=1500,
        actual_tokens=1800,
    )

    assert delta == 300
    quota.charge_additional.assert_awaited_once_with("user-1", 300)


@pytest.mark.asyncio
@pytest.mark.parametrize("actual_tokens", [900, 1500])
async def test_reconcile_skips_charge_when_within_estimate(actual_tokens: int) -> None:
    quota = AsyncMock()

    delta = await reconcile_token_usage(
        quota,
        user_id="user-1",
        estimated_tokens=1500,
        actual_tokens=actual_tokens,
    )

    assert delta == 0
    quota.charge_additional.assert_not_awaited()


class _FakeResult:
    def __init__(self, row: tuple[int, str] | None) -> None:
        self._row = row

    def one_or_none(self) -> tuple[int, str] | None:
        return self._row


class _FakeSession:
    def __init__(self, debit_row: tuple[int, str] | None) -> None:
        self.debit_row = debit_row
        self.statements: list[object] = []

    async def execute(self, statement: object) -> _FakeResult:
        self.statements.append(statement)
        return _FakeResult(self.debit_row)


def _session_factory(session: _FakeSession):
    @asynccontextmanager
    async def _factory() -> AsyncIterator[_FakeSession]:
        yield session

    return _factory


@pytest.mark.asyncio
async def test_sql_quota_service_reports_exceeded_when_debit_matches_no_row() -> None:
    session = _FakeSession(debit_row=None)
    service = SqlQuotaService(session_factory=_session_factory(session))

    assert await service.check_and_reserve("user-1", 1500) is True
    # meter upsert, period roll, conditional debit
    assert len(session.statements) == 3


@pytest.mark.asyncio
async def test_sql_quota_service_reserves_when_debit_applies() -> None:
    session = _FakeSession(debit_row=(76_000, "free"))
    service = SqlQuotaService(session_factory=_session_factory(session))

    assert await service.check_and_reserve("user-1", 1500) is False


@pytest.mark.asyncio
async def test_sql_quota_service_ignores_non_positive_charges() -> None:
    session = _FakeSession(debit_row=None)
    service = SqlQuotaService(session_factory=_session_factory(session))

    await service.charge_additional("user-1", 0)
    await service.charge_additional("user-1", 250)

    assert len(session.statements) == 1
