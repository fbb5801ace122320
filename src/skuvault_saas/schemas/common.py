from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, List, Optional

from pydantic import BaseModel, Field


class ErrorType(str, Enum):
    """Values of ``error.type`` in the error envelope."""

    HTTP = "http_error"
    VALIDATION = "validation_error"
    NOT_FOUND = "not_found"
    UPSTREAM = "upstream_error"
    INTERNAL = "internal_error"


class MessageResponse(BaseModel):
    message: str
    details: Optional[dict] = None


class UpstreamErrorDetails(BaseModel):
    """What SkuVault answered when it answered at all (502 responses)."""

    upstream_status: int = Field(..., description="HTTP status returned by SkuVault")
    errors: List[str] = Field(default_factory=list, description="Entries of the SkuVault Errors array")


class ErrorInfo(BaseModel):
    type: ErrorType
    message: str
    details: Optional[Any] = Field(default=None, description="Validation issues or upstream details")


# PUBLIC_INTERFACE
class ErrorResponse(BaseModel):
    """
    Error envelope produced by every exception handler.

    customer_id is filled when the failing request named a customer (sync,
    status and membership routes); correlation_id matches the X-Correlation-ID
    response header.
    """

    status: int
    error: ErrorInfo
    correlation_id: Optional[str] = None
    customer_id: Optional[str] = None
    path: Optional[str] = None
    method: Optional[str] = None
    timestamp: datetime
