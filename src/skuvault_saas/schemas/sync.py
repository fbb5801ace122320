from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class SyncStage(str, Enum):
    """Reconciliation stages, in the order a full customer sync runs them."""
    PRODUCTS = "products"
    LOCATIONS = "locations"
    INVENTORY = "inventory"
    MOVEMENTS = "movements"
    TRANSACTIONS = "transactions"


class StageStatus(str, Enum):
    COMPLETED = "completed"
    SKIPPED = "skipped"


class FleetOutcome(str, Enum):
    """Per-customer result classification used by the fleet driver."""
    SYNCED = "synced"
    INCOMPLETE = "incomplete"
    UPSTREAM_ERROR = "upstream_error"
    TIMEOUT = "timeout"
    INTERNAL_ERROR = "internal_error"


class StageResult(BaseModel):
    """Counters for one reconciliation stage of one customer."""
    stage: SyncStage = Field(..., description="Stage name")
    status: StageStatus = Field(StageStatus.COMPLETED, description="completed, or skipped when credentials are missing")
    fetched: int = Field(0, description="Records returned by SkuVault")
    created: int = Field(0, description="Rows inserted")
    updated: int = Field(0, description="Rows updated in place")
    unresolved: int = Field(0, description="Records skipped because a SKU or location did not resolve")
    duplicates: int = Field(0, description="Records already stored (movements/transactions)")
    message: Optional[str] = Field(None, description="Reason for a skip")


class CustomerSyncResult(BaseModel):
    """Outcome of a full sync for one customer."""
    customer_id: int = Field(..., description="Customer ID")
    stages: List[StageResult] = Field(default_factory=list)
    last_synced_at: Optional[datetime] = Field(None, description="Set only when every stage completed")
    success: bool = Field(False, description="True when every stage completed")


class CustomerSyncOutcome(BaseModel):
    """Entry of a fleet run for one customer."""
    customer_id: int
    outcome: FleetOutcome
    error: Optional[str] = None
    result: Optional[CustomerSyncResult] = None


class FleetSyncResult(BaseModel):
    """Summary of one pass over every syncable customer."""
    started_at: datetime
    finished_at: datetime
    outcomes: List[CustomerSyncOutcome] = Field(default_factory=list)
    succeeded: int = 0
    incomplete: int = 0
    failed: int = 0


class SyncCounts(BaseModel):
    """Stored rows per mirrored table for one customer."""
    products: int = 0
    locations: int = 0
    inventory_levels: int = 0
    inventory_movements: int = 0
    transactions: int = 0


class SyncStatusRead(BaseModel):
    """Diagnostics for a customer's sync configuration and stored data."""
    customer_id: int
    customer_name: str
    tenant_id: int
    last_synced_at: Optional[datetime] = None
    has_tenant_token: bool = False
    has_user_token: bool = False
    tenant_token_length: int = 0
    user_token_length: int = 0
    counts: SyncCounts = Field(default_factory=SyncCounts)
