"""
Public Pydantic schemas used by FastAPI routes, services, and tests.

Schemas are grouped by concern: SkuVault payload records, sync results, tenancy
and membership views, auth, and the shared message and error envelopes.
"""

from .common import MessageResponse  # noqa: F401
