"""Exceptions raised by the discovery pipeline"""
from typing import Optional


class DiscoveryError(Exception):
    """Base exception for recommendation pipeline failures"""

    pass


class CatalogAuthError(DiscoveryError):
    """Raised when the catalog rejects the access credential (401/403)"""

    def __init__(self, status_code: int, message: Optional[str] = None):
        self.status_code = status_code
        super().__init__(message or f"Catalog rejected the access token (HTTP {status_code})")


class QuotaError(DiscoveryError, ValueError):
    """Raised when a request would violate a provider limit; checked before any network call"""

    pass
