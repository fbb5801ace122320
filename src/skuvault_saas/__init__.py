"""Multi-tenant service that mirrors SkuVault inventory data into a local database."""

__version__ = "0.1.0"
