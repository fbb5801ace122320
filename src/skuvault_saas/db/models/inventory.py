from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, Numeric, Text, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from skuvault_saas.db.base import Base, BigIntPk, CustomerMixin, IntPkMixin, TimestampMixin, utcnow


class Product(IntPkMixin, CustomerMixin, TimestampMixin, Base):
    """Product mirrored from SkuVault, identified by SKU within a customer."""
    __tablename__ = "products"
    __table_args__ = (
        UniqueConstraint("customer_id", "sku", name="uq_products_customer_sku"),
    )

    sku: Mapped[str] = mapped_column(Text, nullable=False)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    category: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    cost: Mapped[Optional[Decimal]] = mapped_column(Numeric(18, 4), nullable=True)
    price: Mapped[Optional[Decimal]] = mapped_column(Numeric(18, 4), nullable=True)


class Location(IntPkMixin, CustomerMixin, TimestampMixin, Base):
    """Warehouse bin/location, identified by code within a customer."""
    __tablename__ = "locations"
    __table_args__ = (
        UniqueConstraint("customer_id", "code", name="uq_locations_customer_code"),
    )

    code: Mapped[str] = mapped_column(Text, nullable=False)
    name: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    warehouse: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default="1")


class InventoryLevel(IntPkMixin, CustomerMixin, Base):
    """Current quantity of one product at one location. Updated in place, never historized."""
    __tablename__ = "inventory_levels"
    __table_args__ = (
        UniqueConstraint(
            "customer_id", "product_id", "location_id", name="uq_inventory_levels_customer_product_location"
        ),
    )

    product_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False
    )
    location_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("locations.id", ondelete="CASCADE"), nullable=False
    )
    quantity_on_hand: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    quantity_available: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    quantity_allocated: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )


class InventoryMovement(CustomerMixin, Base):
    """Append-only quantity change reported by SkuVault."""
    __tablename__ = "inventory_movements"
    __table_args__ = (
        UniqueConstraint("customer_id", "dedup_key", name="uq_inventory_movements_customer_dedup_key"),
        Index("ix_inventory_movements_customer_occurred_at", "customer_id", "occurred_at"),
    )

    id: Mapped[int] = mapped_column(BigIntPk, primary_key=True, autoincrement=True)
    product_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False
    )
    location_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("locations.id", ondelete="SET NULL"), nullable=True
    )
    quantity_change: Mapped[int] = mapped_column(Integer, nullable=False)  # negative for picks
    reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    reference: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    performed_by: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    transaction_type: Mapped[Optional[str]] = mapped_column(Text, nullable=True)  # Add/Remove/Pick/...
    context: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    occurred_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    # sha1 of (product_id, performed_by, occurred_at, quantity_change)
    dedup_key: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )


class Transaction(CustomerMixin, Base):
    """Append-only SkuVault transaction with before/after quantity snapshots."""
    __tablename__ = "transactions"
    __table_args__ = (
        UniqueConstraint("customer_id", "sku_vault_id", name="uq_transactions_customer_sku_vault_id"),
        Index("ix_transactions_customer_transaction_date", "customer_id", "transaction_date"),
    )

    id: Mapped[int] = mapped_column(BigIntPk, primary_key=True, autoincrement=True)
    sku_vault_id: Mapped[str] = mapped_column(Text, nullable=False)
    product_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False
    )
    location_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("locations.id", ondelete="SET NULL"), nullable=True
    )
    sku: Mapped[str] = mapped_column(Text, nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    quantity_before: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    quantity_after: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    transaction_type: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    transaction_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    transaction_note: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    context: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    user: Mapped[Optional[str]] = mapped_column(Text, nullable=True)  # raw SkuVault user (email)
    performed_by: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    transaction_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    synced_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )
