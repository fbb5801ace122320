"""
Core application utilities for settings, logging, security and FastAPI dependencies.

This package provides:
- Application-level settings (separate from DB settings)
- Logging configuration with correlation/customer context
- Session token helpers and dependency helpers (current user, customer access)
- The static membership-tier report table
"""
