"""Repository for writing draft theme suggestions."""

from __future__ import annotations

import logging
from typing import Protocol

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from theme_scout.core.exceptions import SuggestionPersistenceError
from theme_scout.models.base import generate_uuid
from theme_scout.models.suggested_theme import SUGGESTION_STATUS_DRAFT, SuggestedTheme
from theme_scout.services.scout.types import NewSuggestion

logger = logging.getLogger(__name__)


class SuggestionRepository(Protocol):
    async def create(self, suggestion: NewSuggestion) -> str: ...


class SqlSuggestionRepository:
    """Inserts `suggested_themes` rows in DRAFT status."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def create(self, suggestion: NewSuggestion) -> str:
        """Insert one suggestion and return its generated id."""
        row = SuggestedTheme(
            id=generate_uuid(),
            asset_id=suggestion.asset_id,
            name=suggestion.name,
            evidence=list(suggestion.evidence),
            relevance_score=suggestion.relevance_score,
            status=SUGGESTION_STATUS_DRAFT,
        )
        self.session.add(row)
        try:
            await self.session.flush()
        except SQLAlchemyError as exc:
            raise SuggestionPersistenceError(suggestion.asset_id, str(exc)) from exc
        logger.debug(
            "Suggestion row added",
            extra={"asset_id": suggestion.asset_id, "suggestion_id": str(row.id)},
        )
        return str(row.id)

