from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, EmailStr, Field


class TenantCreate(BaseModel):
    """New tenant. Tokens may be supplied now or later through the credentials routes."""
    name: str = Field(..., min_length=1, max_length=200)
    skuvault_email: Optional[EmailStr] = None
    skuvault_account_id: Optional[str] = None
    tenant_token: Optional[str] = Field(None, description="SkuVault TenantToken")
    user_token: Optional[str] = Field(None, description="SkuVault UserToken")


class TenantCredentialsUpdate(BaseModel):
    """Set SkuVault API tokens for a tenant directly."""
    tenant_token: str = Field(..., min_length=1, description="SkuVault TenantToken")
    user_token: str = Field(..., min_length=1, description="SkuVault UserToken")
    account_id: Optional[str] = Field(None, description="SkuVault account identifier")


class TokenRefreshRequest(BaseModel):
    """SkuVault login used once to obtain fresh tokens. The password is not stored."""
    email: EmailStr = Field(..., description="SkuVault login email")
    password: str = Field(..., min_length=1, description="SkuVault password")


class TenantRead(BaseModel):
    """Tenant view that never exposes token values."""
    id: int
    name: str
    skuvault_email: Optional[str] = None
    skuvault_account_id: Optional[str] = None
    has_tenant_token: bool = False
    has_user_token: bool = False
    updated_at: datetime


class CustomerCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    email: EmailStr
    tenant_id: int = Field(..., ge=1, description="Tenant whose SkuVault tokens the customer syncs with")
    external_id: Optional[str] = Field(None, description="Caller-side identifier; generated when omitted")
    membership_level: int = Field(1, ge=1, le=4)


class CustomerRead(BaseModel):
    id: int
    external_id: str
    name: str
    email: str
    tenant_id: int
    membership_level: int
    last_synced_at: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True


class MembershipRead(BaseModel):
    """Membership tier of a customer and the reports it unlocks."""
    customer_id: int
    level: int = Field(..., description="1=Basic, 2=Standard, 3=Premium, 4=Enterprise")
    level_name: str
    available_reports: List[str] = Field(default_factory=list)


class ReportAccessRead(BaseModel):
    report: str
    allowed: bool
    current_level: int
    required_level: int
    required_level_name: str


class MembershipUpdate(BaseModel):
    level: int = Field(..., ge=1, le=4, description="New membership tier")
