"""
Exception classes for secure object storage.

Every error is recoverable by the caller. None of them ever carries key material.
"""

from __future__ import annotations


class SecureStoreError(Exception):
    """Base exception for all secure store operations."""

    pass


class ConfigurationError(SecureStoreError):
    """Key ring or store configuration is invalid or inconsistent."""

    pass


class ValidationError(SecureStoreError):
    """Input has the wrong shape (empty/oversized data, truncated envelope, bad path)."""

    pass


class DecryptionError(SecureStoreError):
    """Envelope references an unknown key or failed authentication."""

    pass


class NotFoundError(SecureStoreError):
    """No object exists at the requested path."""

    pass


class StorageError(SecureStoreError):
    """Storage backend error (S3, PostgreSQL, in-memory)."""

    pass
