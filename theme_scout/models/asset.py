"""Asset research tree models: asset → themes → cards → chunks."""

from __future__ import annotations

from sqlalchemy import Boolean, Float, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from theme_scout.models.base import Base, StringUUID, TimestampMixin, UUIDMixin


class Asset(Base, UUIDMixin, TimestampMixin):
    """Analyst-curated company or investment profile."""

    __tablename__ = "assets"

    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    kind: Mapped[str] = mapped_column(String(20), default="REGULAR", nullable=False)
    category: Mapped[str | None] = mapped_column(String(50), nullable=True)
    growth_value: Mapped[float | None] = mapped_column(Float, nullable=True)
    is_public: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    themes: Mapped[list[Theme]] = relationship(
        back_populates="asset",
        cascade="all, delete-orphan",
        order_by=lambda: [Theme.created_at, Theme.id],
    )


class Theme(Base, UUIDMixin, TimestampMixin):
    """Research theme attached to an asset."""

    __tablename__ = "themes"

    asset_id: Mapped[str | None] = mapped_column(
        StringUUID(),
        ForeignKey("assets.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    category: Mapped[str] = mapped_column(String(100), default="Default", nullable=False)
    theme_type: Mapped[str] = mapped_column(String(20), default="STANDARD", nullable=False)

    asset: Mapped[Asset | None] = relationship(back_populates="themes")
    cards: Mapped[list[Card]] = relationship(
        back_populates="theme",
        cascade="all, delete-orphan",
        order_by=lambda: [Card.created_at, Card.id],
    )


class Card(Base, UUIDMixin, TimestampMixin):
    """Research card inside a theme."""

    __tablename__ = "cards"

    theme_id: Mapped[str] = mapped_column(
        StringUUID(),
        ForeignKey("themes.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    importance: Mapped[int | None] = mapped_column(Integer, default=1, nullable=True)
    source: Mapped[str | None] = mapped_column(Text, nullable=True)

    theme: Mapped[Theme] = relationship(back_populates="cards")
    chunks: Mapped[list[Chunk]] = relationship(
        back_populates="card",
        cascade="all, delete-orphan",
        order_by="Chunk.order",
    )


class Chunk(Base, UUIDMixin):
    """Ordered text fragment of a card."""

    __tablename__ = "chunks"

    card_id: Mapped[str] = mapped_column(
        StringUUID(),
        ForeignKey("cards.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    content: Mapped[str] = mapped_column(Text, nullable=False)
    order: Mapped[int] = mapped_column(Integer, nullable=False)

    card: Mapped[Card] = relationship(back_populates="chunks")
