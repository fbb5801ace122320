"""
Typed records for the SkuVault API payloads.

SkuVault returns PascalCase JSON, sends numbers as strings on some accounts and
omits the timezone on timestamps. These models accept all of that and normalize
to snake_case Python values with timezone-aware UTC datetimes.
"""
from __future__ import annotations

import json
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str) and not value.strip():
        return None
    return value


def _as_text(value: Any) -> Optional[str]:
    value = _blank_to_none(value)
    if value is None:
        return None
    if isinstance(value, str):
        return value
    if isinstance(value, (dict, list)):
        return json.dumps(value, separators=(",", ":"))
    return str(value)


def _as_int(value: Any) -> Any:
    value = _blank_to_none(value)
    if value is None or isinstance(value, (int, bool)):
        return value
    try:
        return int(Decimal(str(value).strip()))
    except (InvalidOperation, ValueError):
        # let pydantic report the original value
        return value


# PUBLIC_INTERFACE
def ensure_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes and convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class _SkuVaultRecord(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class SkuVaultTokens(_SkuVaultRecord):
    """Token pair returned by the credential exchange."""
    tenant_token: str = Field(..., alias="TenantToken")
    user_token: str = Field(..., alias="UserToken")


class SkuVaultProduct(_SkuVaultRecord):
    """One entry of the products feed."""
    sku: Optional[str] = Field(None, alias="Sku")
    description: Optional[str] = Field(None, alias="Description")
    long_description: Optional[str] = Field(None, alias="LongDescription")
    classification: Optional[str] = Field(None, alias="Classification")
    cost: Optional[Decimal] = Field(None, alias="Cost")
    retail_price: Optional[Decimal] = Field(None, alias="RetailPrice")

    @field_validator("sku", "description", "long_description", "classification", mode="before")
    @classmethod
    def _text(cls, v):
        return _as_text(v)

    @field_validator("cost", "retail_price", mode="before")
    @classmethod
    def _decimal(cls, v):
        return _blank_to_none(v)


class SkuVaultLocation(_SkuVaultRecord):
    """One entry of the locations feed."""
    code: Optional[str] = Field(None, alias="LocationCode")
    name: Optional[str] = Field(None, alias="LocationName")
    warehouse: Optional[str] = Field(None, alias="WarehouseName")
    is_active: bool = Field(True, alias="IsActive")

    @field_validator("code", "name", "warehouse", mode="before")
    @classmethod
    def _text(cls, v):
        return _as_text(v)

    @field_validator("is_active", mode="before")
    @classmethod
    def _active(cls, v):
        return True if _blank_to_none(v) is None else v


class SkuVaultInventoryLevel(_SkuVaultRecord):
    """Quantity of one SKU at one location, flattened from the by-location feed."""
    sku: str
    warehouse_code: Optional[str] = Field(None, alias="WarehouseCode")
    location_code: Optional[str] = Field(None, alias="LocationCode")
    quantity_on_hand: int = 0
    quantity_available: int = 0
    quantity_allocated: int = 0

    @field_validator("warehouse_code", "location_code", mode="before")
    @classmethod
    def _text(cls, v):
        return _as_text(v)

    @field_validator("quantity_on_hand", "quantity_available", "quantity_allocated", mode="before")
    @classmethod
    def _quantity(cls, v):
        v = _as_int(v)
        return 0 if v is None else v


class SkuVaultMovement(_SkuVaultRecord):
    """
    One entry of the transactions feed.

    The same record backs both inventory movements and transaction history.
    `location` is the composite "WAREHOUSE--CODE" string.
    """
    sku: Optional[str] = Field(None, alias="Sku")
    location: Optional[str] = Field(None, alias="Location")
    quantity: int = Field(0, alias="Quantity")
    quantity_before: int = Field(0, alias="QuantityBefore")
    quantity_after: int = Field(0, alias="QuantityAfter")
    transaction_reason: Optional[str] = Field(None, alias="TransactionReason")
    transaction_note: Optional[str] = Field(None, alias="TransactionNote")
    user: Optional[str] = Field(None, alias="User")
    transaction_date: datetime = Field(default_factory=lambda: datetime.now(tz=timezone.utc), alias="TransactionDate")
    transaction_type: Optional[str] = Field(None, alias="TransactionType")
    context: Optional[str] = Field(None, alias="Context")

    @field_validator(
        "sku", "location", "transaction_reason", "transaction_note", "user", "transaction_type", "context",
        mode="before",
    )
    @classmethod
    def _text(cls, v):
        return _as_text(v)

    @field_validator("quantity", "quantity_before", "quantity_after", mode="before")
    @classmethod
    def _quantity(cls, v):
        v = _as_int(v)
        return 0 if v is None else v

    @field_validator("transaction_date", mode="before")
    @classmethod
    def _date_default(cls, v):
        if _blank_to_none(v) is None:
            return datetime.now(tz=timezone.utc)
        return v

    @field_validator("transaction_date", mode="after")
    @classmethod
    def _date_utc(cls, v: datetime) -> datetime:
        return ensure_utc(v)
