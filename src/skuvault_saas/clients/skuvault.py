"""
Async client for the SkuVault REST API.

Every SkuVault call is a JSON POST carrying TenantToken and UserToken in the
body. Any failure to obtain a well-formed answer (transport error, non-2xx
status, invalid JSON, unexpected shape) is raised as SkuVaultApiError so the
API layer can answer 502 and the fleet driver can classify the customer as
"upstream_error".
"""
from __future__ import annotations

import json
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Sequence, Type, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from skuvault_saas.core.settings import AppSettings
from skuvault_saas.schemas.skuvault import (
    SkuVaultInventoryLevel,
    SkuVaultLocation,
    SkuVaultMovement,
    SkuVaultProduct,
    SkuVaultTokens,
    ensure_utc,
)

logger = logging.getLogger(__name__)

RecordT = TypeVar("RecordT", bound=BaseModel)

DATE_FORMAT = "%Y-%m-%dT%H:%M:%S"
DEFAULT_WINDOW = timedelta(days=7)
_PREVIEW_CHARS = 500


def _truncate(text: str, limit: int = _PREVIEW_CHARS) -> str:
    return text if len(text) <= limit else text[:limit] + "..."


class SkuVaultApiError(Exception):
    """SkuVault could not be reached or did not return a usable answer."""

    def __init__(self, message: str, *, status_code: Optional[int] = None, errors: Sequence[str] = ()) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.errors = list(errors)


def _require(value: Optional[str], name: str) -> str:
    if value is None or not value.strip():
        raise ValueError(f"SkuVault {name} is required")
    return value


class SkuVaultClient:
    """
    Thin async wrapper over httpx for the SkuVault endpoints the sync engine uses.

    Parameters:
        base_url: API root, e.g. "https://app.skuvault.com/api/".
        timeout: Per-request timeout in seconds.
        client: Optional preconfigured httpx.AsyncClient (tests pass one with a
            MockTransport). A client created here is closed by `aclose`.
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 60.0,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._base_url = base_url.rstrip("/") + "/"
        self._timeout = timeout
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=timeout, headers={"Accept": "application/json"}
        )

    # PUBLIC_INTERFACE
    @classmethod
    def from_settings(cls, settings: AppSettings) -> "SkuVaultClient":
        """Build a client from SKUVAULT_BASE_URL and SKUVAULT_TIMEOUT_SECONDS."""
        return cls(settings.SKUVAULT_BASE_URL, timeout=settings.SKUVAULT_TIMEOUT_SECONDS)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    # PUBLIC_INTERFACE
    async def get_tokens(self, email: str, password: str) -> SkuVaultTokens:
        """Exchange a SkuVault login for a TenantToken/UserToken pair."""
        _require(email, "email")
        _require(password, "password")
        payload = await self._post("getTokens", {"Email": email, "Password": password})
        if not isinstance(payload, dict):
            raise SkuVaultApiError("getTokens returned an unexpected response shape")
        try:
            tokens = SkuVaultTokens.model_validate(payload)
        except ValidationError as exc:
            raise SkuVaultApiError(f"getTokens returned an invalid token pair: {exc.error_count()} error(s)") from exc
        if not tokens.tenant_token.strip() or not tokens.user_token.strip():
            raise SkuVaultApiError("getTokens returned empty tokens")
        logger.info("SkuVault tokens acquired for %s", email)
        return tokens

    # PUBLIC_INTERFACE
    async def get_products(self, tenant_token: str, user_token: str) -> List[SkuVaultProduct]:
        """Fetch the full product catalog."""
        payload = await self._post("products/getProducts", self._auth(tenant_token, user_token))
        return self._parse_records(SkuVaultProduct, self._array(payload, "Products", "products/getProducts"), "product")

    # PUBLIC_INTERFACE
    async def get_locations(self, tenant_token: str, user_token: str) -> List[SkuVaultLocation]:
        """Fetch every warehouse location."""
        payload = await self._post("inventory/getLocations", self._auth(tenant_token, user_token))
        return self._parse_records(SkuVaultLocation, self._array(payload, "Items", "inventory/getLocations"), "location")

    # PUBLIC_INTERFACE
    async def get_inventory(self, tenant_token: str, user_token: str) -> List[SkuVaultInventoryLevel]:
        """
        Fetch quantities by location.

        SkuVault answers {"Items": {sku: [{WarehouseCode, LocationCode, Quantity}, ...]}};
        the result holds one record per (sku, location) with on-hand and
        available both set to Quantity and allocated set to 0.
        """
        path = "inventory/getInventoryByLocation"
        payload = await self._post(path, self._auth(tenant_token, user_token))
        if payload is None:
            return []
        items = payload.get("Items") if isinstance(payload, dict) else None
        if not isinstance(items, dict):
            raise SkuVaultApiError(f"{path}: unexpected response shape, 'Items' object missing")

        records: List[SkuVaultInventoryLevel] = []
        for sku, entries in items.items():
            if not isinstance(entries, list):
                logger.warning("Inventory entry for SKU %s is not a list; skipping", sku)
                continue
            for entry in entries:
                if not isinstance(entry, dict):
                    logger.warning("Inventory location entry for SKU %s is not an object; skipping", sku)
                    continue
                quantity = entry.get("Quantity", 0)
                try:
                    records.append(
                        SkuVaultInventoryLevel(
                            sku=sku,
                            warehouse_code=entry.get("WarehouseCode"),
                            location_code=entry.get("LocationCode"),
                            quantity_on_hand=quantity,
                            quantity_available=quantity,
                            quantity_allocated=0,
                        )
                    )
                except ValidationError as exc:
                    logger.warning("Dropping unparseable inventory entry for SKU %s: %s", sku, exc.errors()[0]["msg"])
        logger.info("Parsed %d inventory entries across %d SKUs", len(records), len(items))
        return records

    # PUBLIC_INTERFACE
    async def get_inventory_movements(
        self,
        tenant_token: str,
        user_token: str,
        from_date: Optional[datetime] = None,
        to_date: Optional[datetime] = None,
    ) -> List[SkuVaultMovement]:
        """
        Fetch quantity transactions between two instants (UTC).

        Missing bounds default to the last seven days ending now.
        """
        now = datetime.now(tz=timezone.utc)
        end = ensure_utc(to_date) if to_date else now
        start = ensure_utc(from_date) if from_date else now - DEFAULT_WINDOW
        body = self._auth(tenant_token, user_token)
        body["FromDate"] = start.strftime(DATE_FORMAT)
        body["ToDate"] = end.strftime(DATE_FORMAT)
        payload = await self._post("inventory/getTransactions", body)
        return self._parse_records(
            SkuVaultMovement, self._array(payload, "Transactions", "inventory/getTransactions"), "transaction"
        )

    @staticmethod
    def _auth(tenant_token: str, user_token: str) -> Dict[str, Any]:
        return {
            "TenantToken": _require(tenant_token, "tenant token"),
            "UserToken": _require(user_token, "user token"),
        }

    async def _post(self, path: str, body: Dict[str, Any]) -> Any:
        """POST JSON and return the decoded body (None for an empty body)."""
        url = self._base_url + path
        try:
            response = await self._client.post(url, json=body, timeout=self._timeout)
        except httpx.HTTPError as exc:
            logger.warning("SkuVault call %s failed: %s", path, exc)
            raise SkuVaultApiError(f"{path}: {exc.__class__.__name__}: {exc}") from exc

        raw = response.text
        logger.info("SkuVault call %s returned %s (%d bytes)", path, response.status_code, len(raw))
        if not response.is_success:
            raise self._error_from_response(path, response.status_code, raw)
        if not raw.strip():
            logger.warning("SkuVault call %s returned an empty body", path)
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise SkuVaultApiError(
                f"{path}: invalid JSON: {_truncate(raw)}", status_code=response.status_code
            ) from exc

    @staticmethod
    def _error_from_response(path: str, status_code: int, raw: str) -> SkuVaultApiError:
        errors: List[str] = []
        try:
            parsed = json.loads(raw) if raw else None
        except ValueError:
            parsed = None
        if isinstance(parsed, dict) and isinstance(parsed.get("Errors"), list):
            errors = [str(e) for e in parsed["Errors"] if e]
        detail = "; ".join(errors) if errors else _truncate(raw)
        logger.warning("SkuVault call %s failed with %s: %s", path, status_code, detail)
        return SkuVaultApiError(f"{status_code}: {detail}", status_code=status_code, errors=errors)

    @staticmethod
    def _array(payload: Any, key: str, path: str) -> List[Any]:
        if payload is None:
            return []
        if isinstance(payload, dict) and isinstance(payload.get(key), list):
            return payload[key]
        raise SkuVaultApiError(f"{path}: unexpected response shape, '{key}' array missing")

    @staticmethod
    def _parse_records(model: Type[RecordT], items: List[Any], label: str) -> List[RecordT]:
        records: List[RecordT] = []
        for item in items:
            try:
                records.append(model.model_validate(item))
            except ValidationError as exc:
                logger.warning("Dropping unparseable %s record: %s", label, _truncate(str(item), 200))
                logger.debug("Validation details: %s", exc.errors())
        return records
