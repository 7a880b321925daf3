"""Unit tests for read-transaction release helpers."""

from __future__ import annotations

from typing import Any
from unittest.mock import AsyncMock

import pytest
from sqlalchemy.exc import InterfaceError

from theme_scout.core.database import (
    is_transient_connection_error,
    rollback_read_only_transaction,
)


class _FakeSession:
    def __init__(self, *, in_transaction: bool = True, commit_error: Exception | None = None) -> None:
        self._in_transaction = in_transaction
        self.new: set[Any] = set()
        self.dirty: set[Any] = set()
        self.deleted: set[Any] = set()
        self.commit = AsyncMock(side_effect=commit_error)

    def in_transaction(self) -> bool:
        return self._in_transaction


@pytest.mark.asyncio
async def test_idle_read_transaction_is_committed() -> None:
    session = _FakeSession()

    await rollback_read_only_transaction(session, context="test")

    session.commit.assert_awaited_once()


@pytest.mark.asyncio
async def test_session_without_transaction_is_left_alone() -> None:
    session = _FakeSession(in_transaction=False)

    await rollback_read_only_transaction(session, context="test")

    session.commit.assert_not_awaited()


@pytest.mark.asyncio
async def test_pending_writes_are_not_committed_early() -> None:
    session = _FakeSession()
    session.new.add(object())

    await rollback_read_only_transaction(session, context="test")

    session.commit.assert_not_awaited()


@pytest.mark.asyncio
async def test_transient_connection_error_is_ignored() -> None:
    session = _FakeSession(commit_error=InterfaceError("COMMIT", {}, Exception("connection is closed")))

    await rollback_read_only_transaction(session, context="test")

    session.commit.assert_awaited_once()


@pytest.mark.asyncio
async def test_other_commit_errors_propagate() -> None:
    session = _FakeSession(commit_error=ValueError("bad state"))

    with pytest.raises(ValueError):
        await rollback_read_only_transaction(session, context="test")


def test_connection_markers_are_detected_in_plain_errors() -> None:
    assert is_transient_connection_error(RuntimeError("Underlying connection is closed"))
    assert not is_transient_connection_error(RuntimeError("duplicate key"))
