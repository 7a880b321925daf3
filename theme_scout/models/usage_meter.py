"""Per-user token usage ledger."""

from datetime import datetime

from sqlalchemy import BigInteger, DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from theme_scout.models.base import Base, TimestampMixin, UUIDMixin


class UsageMeter(Base, UUIDMixin, TimestampMixin):
    """Token consumption for one user within the current billing period."""

    __tablename__ = "usage_meters"

    user_id: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    plan: Mapped[str] = mapped_column(String(20), default="free", nullable=False)
    tokens_used: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)
    # NULL means unlimited (enterprise plans).
    hard_cap: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    period_start: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    period_end: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
