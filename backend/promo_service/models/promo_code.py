from __future__ import annotations

from datetime import date, datetime

from sqlalchemy import Date, DateTime, Index, String, func
from sqlalchemy.orm import Mapped, mapped_column

from promo_service.models.base import Base


class ActivePromoCode(Base):
    __tablename__ = "active_promo_codes"

    code: Mapped[str] = mapped_column(String(64), primary_key=True)
    generated_at: Mapped[date] = mapped_column(Date, nullable=False)
    expires_at: Mapped[date] = mapped_column(Date, nullable=False)

    __table_args__ = (
        Index("ix_active_promo_codes_expires_at", "expires_at"),
    )


class RedeemedPromoCode(Base):
    __tablename__ = "redeemed_promo_codes"

    code: Mapped[str] = mapped_column(String(64), primary_key=True)
    generated_at: Mapped[date] = mapped_column(Date, nullable=False)
    expires_at: Mapped[date] = mapped_column(Date, nullable=False)
    redeemed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
