from __future__ import annotations

import uuid
import datetime as dt
from decimal import Decimal

from sqlalchemy import Date, DateTime, ForeignKey, Index, Integer, Numeric, Text, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from solarerp.database.base import Base


class CustomerUsageDaily(Base):
    """Per-tenant daily usage counters feeding shared-mode billing."""

    __tablename__ = "customer_usage_daily"

    tenant_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("tenants.id", ondelete="CASCADE"), primary_key=True
    )
    date: Mapped[dt.date] = mapped_column(Date, primary_key=True)
    api_requests: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0")
    pdf_generated: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0")
    active_users: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0")
    storage_gb: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, server_default="0")


class UserActivityDaily(Base):
    """Distinct users seen per tenant per day; rolled up into ``active_users``."""

    __tablename__ = "user_activity_daily"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    tenant_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False
    )
    date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    user_id: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    __table_args__ = (
        Index(
            "user_activity_daily_tenant_date_user_unique",
            "tenant_id",
            "date",
            "user_id",
            unique=True,
        ),
    )
