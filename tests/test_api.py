import itertools
from typing import Dict, Optional, Tuple

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import select

from skuvault_saas.api.main import app
from skuvault_saas.clients.skuvault import SkuVaultApiError
from skuvault_saas.core.deps import get_skuvault_client, get_sync_session_factory
from skuvault_saas.core.security import create_session_token, get_password_hash
from skuvault_saas.core.settings import get_app_settings
from skuvault_saas.db.models import Customer, Product, User
from skuvault_saas.db.session import get_async_session

_emails = itertools.count(1)


@pytest_asyncio.fixture
async def api(session_factory, fake_client):
    async def _session_override():
        async with session_factory() as s:
            yield s

    app.dependency_overrides[get_async_session] = _session_override
    app.dependency_overrides[get_sync_session_factory] = lambda: session_factory
    app.dependency_overrides[get_skuvault_client] = lambda: fake_client
    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(session_factory):
    """Create a user and return it with bearer headers for its session token."""

    async def _make(
        *,
        customer_id: Optional[int] = None,
        is_admin: bool = False,
        is_active: bool = True,
        password: Optional[str] = None,
    ) -> Tuple[User, Dict[str, str]]:
        async with session_factory() as s:
            user = User(
                email=f"user{next(_emails)}@acme.com",
                hashed_password=get_password_hash(password) if password else "unused",
                is_admin=is_admin,
                is_active=is_active,
                customer_id=customer_id,
            )
            s.add(user)
            await s.commit()
        token = create_session_token(str(user.id), customer_id=customer_id, is_admin=is_admin)
        return user, {"Authorization": f"Bearer {token}"}

    return _make


async def test_health(api) -> None:
    resp = await api.get("/api/v1/health")
    assert resp.status_code == 200
    assert resp.json()["message"] == "Healthy"
    assert resp.headers["X-Correlation-ID"]


async def test_correlation_id_is_echoed(api) -> None:
    resp = await api.get("/api/v1/health", headers={"X-Correlation-ID": "abc-123"})
    assert resp.headers["X-Correlation-ID"] == "abc-123"


async def test_login_sets_session_cookie(api, make_customer, make_user) -> None:
    customer = await make_customer()
    user, _ = await make_user(customer_id=customer.id, password="s3cret")

    resp = await api.post("/api/v1/auth/login", data={"username": user.email, "password": "s3cret"})

    assert resp.status_code == 200
    token = resp.json()["access_token"]
    cookie_name = get_app_settings().SESSION_COOKIE_NAME
    set_cookie = resp.headers["set-cookie"]
    assert set_cookie.startswith(f"{cookie_name}=")
    assert "HttpOnly" in set_cookie

    me = await api.get("/api/v1/auth/me", headers={"Cookie": f"{cookie_name}={token}"})
    assert me.status_code == 200
    assert me.json()["email"] == user.email
    assert me.json()["customer_id"] == customer.id


async def test_login_with_wrong_password(api, make_user) -> None:
    user, _ = await make_user(password="s3cret")

    resp = await api.post("/api/v1/auth/login", data={"username": user.email, "password": "nope"})

    assert resp.status_code == 401
    assert resp.json()["error"]["type"] == "http_error"


async def test_logout_clears_cookie(api) -> None:
    resp = await api.post("/api/v1/auth/logout")
    assert resp.status_code == 200
    assert get_app_settings().SESSION_COOKIE_NAME in resp.headers["set-cookie"]


async def test_requests_without_session_are_rejected(api) -> None:
    resp = await api.post("/api/v1/sync/customer/1")
    assert resp.status_code == 401
    assert resp.headers["WWW-Authenticate"] == "Bearer"

    bad = await api.get("/api/v1/auth/me", headers={"Authorization": "Bearer not-a-token"})
    assert bad.status_code == 401


async def test_inactive_user_is_forbidden(api, make_user) -> None:
    _, headers = await make_user(is_active=False)
    resp = await api.get("/api/v1/auth/me", headers=headers)
    assert resp.status_code == 403


async def test_user_cannot_sync_another_customer(api, make_customer, make_user) -> None:
    own = await make_customer()
    other = await make_customer()
    _, headers = await make_user(customer_id=own.id)

    resp = await api.post(f"/api/v1/sync/customer/{other.id}", headers=headers)

    assert resp.status_code == 403
    assert resp.json()["customer_id"] == str(own.id)


async def test_sync_customer(api, fake_client, make_customer, make_user) -> None:
    customer = await make_customer()
    _, headers = await make_user(customer_id=customer.id)
    fake_client.products = [{"Sku": "WIDGET-001", "Description": "Widget"}]

    resp = await api.post(f"/api/v1/sync/customer/{customer.id}", headers=headers)

    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    assert [s["stage"] for s in body["stages"]] == ["products", "locations", "inventory", "movements", "transactions"]
    assert body["stages"][0]["created"] == 1


async def test_upstream_failure_maps_to_502(api, fake_client, make_customer, make_user) -> None:
    customer = await make_customer(tenant_token="down")
    _, headers = await make_user(customer_id=customer.id)
    fake_client.failures["down"] = SkuVaultApiError("503: maintenance", status_code=503, errors=["maintenance"])

    resp = await api.post(f"/api/v1/sync/customer/{customer.id}/products", headers=headers)

    assert resp.status_code == 502
    error = resp.json()["error"]
    assert error["type"] == "upstream_error"
    assert "503: maintenance" in error["message"]
    assert error["details"] == {"upstream_status": 503, "errors": ["maintenance"]}


async def test_internal_failure_maps_to_500(api, fake_client, make_customer, make_user) -> None:
    customer = await make_customer(tenant_token="bug")
    _, headers = await make_user(customer_id=customer.id)
    fake_client.failures["bug"] = RuntimeError("boom")

    resp = await api.post(f"/api/v1/sync/customer/{customer.id}/locations", headers=headers)

    assert resp.status_code == 500
    body = resp.json()
    assert body["error"]["type"] == "internal_error"
    assert "boom" not in body["error"]["message"]


async def test_unknown_customer_is_404(api, make_user) -> None:
    _, headers = await make_user(is_admin=True)

    resp = await api.post("/api/v1/sync/customer/999/inventory", headers=headers)

    assert resp.status_code == 404
    assert resp.json()["error"]["type"] == "not_found"
    assert resp.json()["customer_id"] == "999"


async def test_missing_credentials_report_skipped_stages(api, fake_client, make_customer, make_user) -> None:
    customer = await make_customer(tenant_token=None, user_token=None)
    _, headers = await make_user(customer_id=customer.id)

    resp = await api.post(f"/api/v1/sync/customer/{customer.id}", headers=headers)

    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is False
    assert body["last_synced_at"] is None
    assert {s["status"] for s in body["stages"]} == {"skipped"}
    assert fake_client.calls == []


async def test_movements_accepts_since(api, fake_client, make_customer, make_user) -> None:
    customer = await make_customer()
    _, headers = await make_user(customer_id=customer.id)

    resp = await api.post(
        f"/api/v1/sync/customer/{customer.id}/movements",
        params={"since": "2025-01-01T00:00:00Z"},
        headers=headers,
    )

    assert resp.status_code == 200
    _, _, window = fake_client.calls_for("movements")[0]
    assert window["from_date"].isoformat() == "2025-01-01T00:00:00+00:00"


async def test_transactions_endpoint(api, fake_client, make_customer, make_user) -> None:
    customer = await make_customer()
    _, headers = await make_user(customer_id=customer.id)

    resp = await api.post(f"/api/v1/sync/customer/{customer.id}/transactions", headers=headers)

    assert resp.status_code == 200
    assert resp.json()["stage"] == "transactions"


async def test_sync_all_requires_admin(api, fake_client, make_customer, make_user) -> None:
    first = await make_customer(tenant_token="t1")
    second = await make_customer(tenant_token="t2")
    fake_client.failures["t2"] = SkuVaultApiError("503: unavailable", status_code=503)
    _, user_headers = await make_user(customer_id=first.id)
    _, admin_headers = await make_user(is_admin=True)

    forbidden = await api.post("/api/v1/sync/all", headers=user_headers)
    assert forbidden.status_code == 403

    resp = await api.post("/api/v1/sync/all", headers=admin_headers)
    assert resp.status_code == 200
    body = resp.json()
    assert [(o["customer_id"], o["outcome"]) for o in body["outcomes"]] == [
        (first.id, "synced"),
        (second.id, "upstream_error"),
    ]
    assert (body["succeeded"], body["failed"]) == (1, 1)


async def test_sync_status(api, fake_client, make_customer, make_user) -> None:
    customer = await make_customer(tenant_token="tenant-abc", user_token="user-xyz")
    _, headers = await make_user(customer_id=customer.id)
    fake_client.products = [{"Sku": "WIDGET-001"}, {"Sku": "GADGET-9"}]
    await api.post(f"/api/v1/sync/customer/{customer.id}", headers=headers)

    resp = await api.get(f"/api/v1/sync/customer/{customer.id}/status", headers=headers)

    assert resp.status_code == 200
    body = resp.json()
    assert body["has_tenant_token"] is True
    assert body["tenant_token_length"] == len("tenant-abc")
    assert body["user_token_length"] == len("user-xyz")
    assert body["counts"]["products"] == 2
    assert body["last_synced_at"] is not None
    assert "tenant-abc" not in resp.text


async def test_tenant_credentials_and_refresh(api, fake_client, make_customer, make_user) -> None:
    customer = await make_customer(tenant_token=None, user_token=None)
    _, headers = await make_user(is_admin=True)
    tenant_url = f"/api/v1/tenants/{customer.tenant_id}"

    resp = await api.put(
        f"{tenant_url}/credentials",
        json={"tenant_token": "t-new", "user_token": "u-new", "account_id": "acct-1"},
        headers=headers,
    )
    assert resp.status_code == 200
    assert resp.json()["has_tenant_token"] is True
    assert resp.json()["skuvault_account_id"] == "acct-1"
    assert "t-new" not in resp.text

    refreshed = await api.post(
        f"{tenant_url}/tokens/refresh",
        json={"email": "ops@acme.com", "password": "secret"},
        headers=headers,
    )
    assert refreshed.status_code == 200
    assert refreshed.json()["skuvault_email"] == "ops@acme.com"
    assert fake_client.calls_for("tokens") == [("tokens", "ops@acme.com", {})]
    assert "secret" not in refreshed.text

    missing = await api.get("/api/v1/tenants/999", headers=headers)
    assert missing.status_code == 404


async def test_tenant_routes_require_admin(api, make_customer, make_user) -> None:
    customer = await make_customer()
    _, headers = await make_user(customer_id=customer.id)

    resp = await api.get(f"/api/v1/tenants/{customer.tenant_id}", headers=headers)

    assert resp.status_code == 403


async def test_onboarded_customer_is_picked_up_by_fleet_sync(api, fake_client, make_user) -> None:
    _, headers = await make_user(is_admin=True)
    fake_client.products = [{"Sku": "WIDGET-001", "Description": "Widget"}]

    tenant = await api.post(
        "/api/v1/tenants",
        json={"name": "Acme Retail", "tenant_token": "acme-tenant", "user_token": "acme-user"},
        headers=headers,
    )
    assert tenant.status_code == 201
    assert tenant.json()["has_tenant_token"] is True
    assert "acme-tenant" not in tenant.text

    customer = await api.post(
        "/api/v1/customers",
        json={"name": "Acme East", "email": "east@acme.com", "tenant_id": tenant.json()["id"]},
        headers=headers,
    )
    assert customer.status_code == 201
    body = customer.json()
    assert body["membership_level"] == 1
    assert body["last_synced_at"] is None
    assert body["external_id"]

    resp = await api.post("/api/v1/sync/all", headers=headers)

    assert resp.status_code == 200
    assert [(o["customer_id"], o["outcome"]) for o in resp.json()["outcomes"]] == [(body["id"], "synced")]
    assert {token for _, token, _ in fake_client.calls_for("products")} == {"acme-tenant"}


async def test_onboarding_rejects_duplicates_and_unknown_tenants(api, make_user) -> None:
    _, headers = await make_user(is_admin=True)
    tenant = await api.post("/api/v1/tenants", json={"name": "Acme"}, headers=headers)
    assert tenant.json()["has_tenant_token"] is False

    again = await api.post("/api/v1/tenants", json={"name": "Acme"}, headers=headers)
    assert again.status_code == 409

    orphan = await api.post(
        "/api/v1/customers",
        json={"name": "Nobody", "email": "nobody@acme.com", "tenant_id": 999},
        headers=headers,
    )
    assert orphan.status_code == 404

    payload = {"name": "First", "email": "first@acme.com", "tenant_id": tenant.json()["id"]}
    assert (await api.post("/api/v1/customers", json=payload, headers=headers)).status_code == 201
    assert (await api.post("/api/v1/customers", json=payload, headers=headers)).status_code == 409


async def test_deleting_a_tenant_removes_its_customers_and_their_data(
    api, session_factory, fake_client, make_customer, make_user
) -> None:
    _, headers = await make_user(is_admin=True)
    kept = await make_customer(tenant_token="kept-token")
    fake_client.products = [{"Sku": "WIDGET-001"}, {"Sku": "GADGET-9"}]

    tenant = await api.post(
        "/api/v1/tenants",
        json={"name": "Doomed", "tenant_token": "doomed-token", "user_token": "doomed-user"},
        headers=headers,
    )
    tenant_id = tenant.json()["id"]
    customer = await api.post(
        "/api/v1/customers",
        json={"name": "Doomed Shop", "email": "shop@doomed.com", "tenant_id": tenant_id},
        headers=headers,
    )
    customer_id = customer.json()["id"]
    _, customer_headers = await make_user(customer_id=customer_id)
    assert (await api.post(f"/api/v1/sync/customer/{customer_id}/products", headers=headers)).status_code == 200
    assert (await api.post(f"/api/v1/sync/customer/{kept.id}/products", headers=headers)).status_code == 200

    resp = await api.delete(f"/api/v1/tenants/{tenant_id}", headers=headers)

    assert resp.status_code == 204
    assert (await api.get(f"/api/v1/tenants/{tenant_id}", headers=headers)).status_code == 404
    assert (await api.get(f"/api/v1/customers/{customer_id}", headers=headers)).status_code == 404
    async with session_factory() as s:
        assert await s.get(Customer, customer_id) is None
        products = (await s.execute(select(Product.customer_id))).scalars().all()
        users = (await s.execute(select(User.customer_id).where(User.customer_id == customer_id))).all()
    assert sorted(products) == [kept.id, kept.id]
    assert users == []
    # the customer's users went with it
    assert (await api.get("/api/v1/membership/me", headers=customer_headers)).status_code == 401


async def test_deleting_a_customer_keeps_its_tenant(api, make_customer, make_user) -> None:
    _, headers = await make_user(is_admin=True)
    customer = await make_customer()

    resp = await api.delete(f"/api/v1/customers/{customer.id}", headers=headers)

    assert resp.status_code == 204
    assert (await api.get(f"/api/v1/tenants/{customer.tenant_id}", headers=headers)).status_code == 200
    assert (await api.delete(f"/api/v1/customers/{customer.id}", headers=headers)).status_code == 404


async def test_membership_flow(api, make_customer, make_user) -> None:
    customer = await make_customer(membership_level=1)
    _, user_headers = await make_user(customer_id=customer.id)
    _, admin_headers = await make_user(is_admin=True)

    me = await api.get("/api/v1/membership/me", headers=user_headers)
    assert me.status_code == 200
    assert me.json()["level_name"] == "Basic"
    assert me.json()["available_reports"] == ["inventory"]

    report = await api.get("/api/v1/membership/reports/low-stock", headers=user_headers)
    assert report.json()["allowed"] is False
    assert report.json()["required_level"] == 2

    invalid = await api.put(
        f"/api/v1/membership/customers/{customer.id}", json={"level": 5}, headers=admin_headers
    )
    assert invalid.status_code == 422
    assert invalid.json()["error"]["type"] == "validation_error"

    denied = await api.put(
        f"/api/v1/membership/customers/{customer.id}", json={"level": 3}, headers=user_headers
    )
    assert denied.status_code == 403

    updated = await api.put(
        f"/api/v1/membership/customers/{customer.id}", json={"level": 3}, headers=admin_headers
    )
    assert updated.status_code == 200
    assert "aging-inventory" in updated.json()["available_reports"]

    report = await api.get("/api/v1/membership/reports/low-stock", headers=user_headers)
    assert report.json()["allowed"] is True


async def test_admin_without_customer_must_name_one(api, make_customer, make_user) -> None:
    customer = await make_customer()
    _, headers = await make_user(is_admin=True)

    missing = await api.get("/api/v1/membership/me", headers=headers)
    assert missing.status_code == 404

    resp = await api.get("/api/v1/membership/me", params={"customer_id": customer.id}, headers=headers)
    assert resp.status_code == 200
    assert resp.json()["customer_id"] == customer.id
