"""
Repository layer for data access.

Repositories encapsulate SQLAlchemy queries for tenants, customers, users and
the mirrored SkuVault tables. Inventory repositories are bound to one customer
and scope every query by customer_id.
"""
