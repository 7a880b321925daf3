"""Theme template catalog model."""

from sqlalchemy import Boolean, Integer, String, Text
from sqlalchemy.dialects.postgresql import ARRAY, JSONB
from sqlalchemy.orm import Mapped, mapped_column

from theme_scout.models.base import Base, TimestampMixin, UUIDMixin


class ThemeTemplate(Base, UUIDMixin, TimestampMixin):
    """Reusable theme definition; its names form the scouting corpus."""

    __tablename__ = "theme_templates"

    owner_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    payload: Mapped[dict] = mapped_column(JSONB, default=dict, nullable=False)
    is_public: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    tags: Mapped[list[str] | None] = mapped_column(ARRAY(String), nullable=True)
    usage_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
