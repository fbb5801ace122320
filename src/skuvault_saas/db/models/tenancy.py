from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from skuvault_saas.db.base import Base, IntPkMixin, TimestampMixin


class Tenant(IntPkMixin, TimestampMixin, Base):
    """Credential-holding account for the SkuVault API; owns one or more customers."""
    __tablename__ = "tenants"

    name: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    skuvault_email: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    skuvault_account_id: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    skuvault_tenant_token: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    skuvault_user_token: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    customers: Mapped[List["Customer"]] = relationship(
        "Customer",
        back_populates="tenant",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class Customer(IntPkMixin, TimestampMixin, Base):
    """Data-isolation unit. Every synced row belongs to exactly one customer."""
    __tablename__ = "customers"

    external_id: Mapped[str] = mapped_column(Text, nullable=False)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    email: Mapped[str] = mapped_column(Text, nullable=False)
    tenant_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True
    )
    membership_level: Mapped[int] = mapped_column(Integer, nullable=False, default=1, server_default="1")
    last_synced_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    tenant: Mapped["Tenant"] = relationship("Tenant", back_populates="customers", lazy="selectin")


class User(IntPkMixin, TimestampMixin, Base):
    """Dashboard login. Non-admin users are bound to a single customer."""
    __tablename__ = "users"

    email: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    full_name: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    hashed_password: Mapped[str] = mapped_column(Text, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default="1")
    is_admin: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="0")
    customer_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("customers.id", ondelete="CASCADE"), nullable=True, index=True
    )
