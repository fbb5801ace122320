"""Outbound HTTP clients for third-party APIs."""

from .skuvault import SkuVaultApiError, SkuVaultClient

__all__ = ["SkuVaultApiError", "SkuVaultClient"]
