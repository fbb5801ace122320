import json
from datetime import datetime, timezone

import httpx
import pytest

from skuvault_saas.clients.skuvault import SkuVaultApiError, SkuVaultClient

BASE_URL = "https://skuvault.test/api"


def _client(handler) -> SkuVaultClient:
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return SkuVaultClient(BASE_URL, client=http)


def _json_handler(payload, status_code: int = 200, seen=None):
    def handler(request: httpx.Request) -> httpx.Response:
        if seen is not None:
            seen.append(request)
        return httpx.Response(status_code, json=payload)

    return handler


async def test_get_products_posts_tokens_and_parses_records() -> None:
    seen = []
    client = _client(
        _json_handler({"Products": [{"Sku": "WIDGET-001", "Description": "Widget"}, "not-a-record"]}, seen=seen)
    )

    products = await client.get_products("tenant", "user")

    assert [p.sku for p in products] == ["WIDGET-001"]
    request = seen[0]
    assert request.method == "POST"
    assert str(request.url) == "https://skuvault.test/api/products/getProducts"
    assert json.loads(request.content) == {"TenantToken": "tenant", "UserToken": "user"}


async def test_get_locations_reads_items() -> None:
    client = _client(_json_handler({"Items": [{"LocationCode": "A1-01", "WarehouseName": "MAIN"}]}))
    locations = await client.get_locations("tenant", "user")
    assert locations[0].code == "A1-01"
    assert locations[0].warehouse == "MAIN"


async def test_get_inventory_flattens_items_by_sku() -> None:
    payload = {
        "Items": {
            "WIDGET-001": [
                {"WarehouseCode": "MAIN", "LocationCode": "A1-01", "Quantity": 42},
                {"WarehouseCode": "MAIN", "LocationCode": "B2-02", "Quantity": "3"},
            ],
            "GADGET-9": "broken",
        }
    }
    client = _client(_json_handler(payload))

    levels = await client.get_inventory("tenant", "user")

    assert [(lvl.sku, lvl.location_code, lvl.quantity_on_hand) for lvl in levels] == [
        ("WIDGET-001", "A1-01", 42),
        ("WIDGET-001", "B2-02", 3),
    ]
    assert all(lvl.quantity_available == lvl.quantity_on_hand for lvl in levels)
    assert all(lvl.quantity_allocated == 0 for lvl in levels)


async def test_get_inventory_movements_formats_window() -> None:
    seen = []
    client = _client(_json_handler({"Transactions": [{"Sku": "WIDGET-001", "Quantity": -3}]}, seen=seen))

    movements = await client.get_inventory_movements(
        "tenant",
        "user",
        datetime(2025, 1, 8, 12, 0, tzinfo=timezone.utc),
        datetime(2025, 1, 15, 12, 0, 5, 123456, tzinfo=timezone.utc),
    )

    assert movements[0].quantity == -3
    body = json.loads(seen[0].content)
    assert body["FromDate"] == "2025-01-08T12:00:00"
    assert body["ToDate"] == "2025-01-15T12:00:05"
    assert seen[0].url.path == "/api/inventory/getTransactions"


async def test_empty_body_is_an_empty_feed() -> None:
    client = _client(lambda request: httpx.Response(200, content=b""))
    assert await client.get_products("tenant", "user") == []


async def test_error_status_joins_upstream_errors() -> None:
    client = _client(_json_handler({"Errors": ["Invalid token", "Throttled"]}, status_code=429))

    with pytest.raises(SkuVaultApiError) as exc_info:
        await client.get_products("tenant", "user")

    assert str(exc_info.value) == "429: Invalid token; Throttled"
    assert exc_info.value.status_code == 429
    assert exc_info.value.errors == ["Invalid token", "Throttled"]


async def test_error_status_without_json_uses_raw_body() -> None:
    client = _client(lambda request: httpx.Response(502, text="Bad Gateway"))

    with pytest.raises(SkuVaultApiError, match="502: Bad Gateway"):
        await client.get_locations("tenant", "user")


async def test_transport_failure_becomes_api_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    client = _client(handler)
    with pytest.raises(SkuVaultApiError, match="ConnectError"):
        await client.get_products("tenant", "user")


async def test_invalid_json_and_wrong_shape_raise() -> None:
    bad_json = _client(lambda request: httpx.Response(200, text="<html>maintenance</html>"))
    with pytest.raises(SkuVaultApiError, match="invalid JSON"):
        await bad_json.get_products("tenant", "user")

    wrong_shape = _client(_json_handler({"Products": {"Sku": "A"}}))
    with pytest.raises(SkuVaultApiError, match="'Products' array missing"):
        await wrong_shape.get_products("tenant", "user")


async def test_blank_tokens_are_rejected_before_any_request() -> None:
    seen = []
    client = _client(_json_handler({"Products": []}, seen=seen))

    with pytest.raises(ValueError):
        await client.get_products(" ", "user")
    with pytest.raises(ValueError):
        await client.get_inventory("tenant", "")
    assert seen == []


async def test_get_tokens_returns_pair() -> None:
    seen = []
    client = _client(_json_handler({"TenantToken": "t-1", "UserToken": "u-1"}, seen=seen))

    tokens = await client.get_tokens("ops@acme.com", "secret")

    assert (tokens.tenant_token, tokens.user_token) == ("t-1", "u-1")
    assert json.loads(seen[0].content) == {"Email": "ops@acme.com", "Password": "secret"}


async def test_get_tokens_rejects_empty_pair() -> None:
    client = _client(_json_handler({"TenantToken": "", "UserToken": ""}))
    with pytest.raises(SkuVaultApiError, match="empty tokens"):
        await client.get_tokens("ops@acme.com", "secret")


async def test_aclose_leaves_injected_client_open() -> None:
    http = httpx.AsyncClient(transport=httpx.MockTransport(_json_handler({"Products": []})))
    client = SkuVaultClient(BASE_URL, client=http)
    await client.aclose()
    assert not http.is_closed
    await http.aclose()
