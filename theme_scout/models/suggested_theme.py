"""Suggested theme model (theme scout output)."""

from __future__ import annotations

from typing import Literal

from sqlalchemy import Float, ForeignKey, String
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from theme_scout.models.base import Base, StringUUID, TimestampMixin, UUIDMixin

SuggestionStatus = Literal["DRAFT", "ACCEPTED", "REJECTED"]
SUGGESTION_STATUS_DRAFT: SuggestionStatus = "DRAFT"


class SuggestedTheme(Base, UUIDMixin, TimestampMixin):
    """Draft theme recommendation awaiting analyst review.

    The scout pipeline only inserts DRAFT rows; ACCEPTED/REJECTED are set by
    the review flow.
    """

    __tablename__ = "suggested_themes"

    asset_id: Mapped[str] = mapped_column(
        StringUUID(),
        ForeignKey("assets.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    evidence: Mapped[list[str]] = mapped_column(JSONB, default=list, nullable=False)
    relevance_score: Mapped[float] = mapped_column(Float, nullable=False)
    status: Mapped[str] = mapped_column(
        String(20),
        default=SUGGESTION_STATUS_DRAFT,
        nullable=False,
        index=True,
    )
