"""
Error types for MemSync.

Coordinators raise ValidationError and AuthorizationError before touching any
store. Adapters translate library failures into DependencyError subclasses so
callers never need to know which backend is configured.
"""

from __future__ import annotations


# ============================================================================
# Base
# ============================================================================


class MemSyncError(Exception):
    """Base exception for all MemSync errors."""
    pass


class ConfigurationError(MemSyncError):
    """Invalid or unsupported configuration value."""
    pass


# ============================================================================
# Caller errors
# ============================================================================


class ValidationError(MemSyncError):
    """Malformed input (missing fields, end not after start, empty text)."""

    def __init__(self, message: str, field: str | None = None):
        super().__init__(message)
        self.field = field


class AuthorizationError(MemSyncError):
    """Caller does not own the targeted record."""

    def __init__(self, message: str, record_id: str | None = None, user_id: str | None = None):
        super().__init__(message)
        self.record_id = record_id
        self.user_id = user_id


# ============================================================================
# Dependency errors
# ============================================================================


class DependencyError(MemSyncError):
    """An external store or service was unreachable or failed."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        response: dict | None = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.response = response


class EmbeddingError(DependencyError):
    """Embedding service failure."""
    pass


class VectorIndexError(DependencyError):
    """Vector index failure."""
    pass


class RelationalStoreError(DependencyError):
    """Relational store failure."""
    pass


class CalendarProviderError(DependencyError):
    """External calendar provider failure."""
    pass


class ProviderAuthenticationError(CalendarProviderError):
    """The provider rejected the user's access token."""
    pass
