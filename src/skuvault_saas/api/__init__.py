"""FastAPI application and HTTP routes (served under /api/v1)."""
