"""
ORM models for tenants, customers, users and the mirrored SkuVault inventory
entities.

Importing this package ensures model classes are registered with the Base
metadata for Alembic and runtime usage.
"""

from .tenancy import (  # noqa: F401
    Tenant,
    Customer,
    User,
)
from .inventory import (  # noqa: F401
    Product,
    Location,
    InventoryLevel,
    InventoryMovement,
    Transaction,
)
