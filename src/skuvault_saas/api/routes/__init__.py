"""
API route modules.

This package contains subrouters for:
- Auth: login, logout and current user (session cookie or bearer token)
- Sync: on-demand SkuVault synchronization and per-customer sync status
- Tenants: SkuVault credential management
- Membership: tiers and report access

Routers are included from skuvault_saas.api.main (under the /api/v1 prefix).
"""
