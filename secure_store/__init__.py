"""
Secure Store

Transparent authenticated encryption for blobs kept in an object store,
with key rotation that never makes existing objects unreadable.

Quick Start
-----------
```python
import asyncio
from secure_store import (
    EnvelopeCodec,
    InMemoryObjectStore,
    KeyRing,
    SecureStore,
    generate_key_hex,
)

async def main():
    ring = KeyRing.from_hex({"v1": generate_key_hex()}, "v1")
    store = SecureStore(EnvelopeCodec(ring), InMemoryObjectStore())

    await store.put("my-bucket/reports/q1.txt", b"Sensitive data")
    plaintext = await store.get("my-bucket/reports/q1.txt")

asyncio.run(main())
```

Key Features
------------
- **AES-256-GCM**: Authenticated encryption with a 16-byte nonce and 16-byte tag
- **Self-describing envelopes**: Every object names the key that encrypted it
- **Key rotation**: New primary key for writes, old keys kept for reads
- **Pluggable storage**: In-memory, PostgreSQL (asyncpg) and S3 (boto3) backends
- **Memory Security**: Best-effort key zeroization on deletion

Modules
-------
- `crypto`: AES-256-GCM encryption primitives
- `keyring`: Immutable set of named keys with a primary
- `envelope`: Envelope wire format and codec
- `storage`: Object store protocol and in-memory backend
- `postgres`: PostgreSQL object store
- `s3`: S3 object store
- `store`: Path-based encrypted store
- `config`: Environment configuration
- `errors`: Error types and exception classes
"""

__version__ = "0.1.0"

# ============================================================================
# Crypto Exports
# ============================================================================

from .crypto import (
    AES_256_KEY_SIZE,
    NONCE_SIZE,
    TAG_SIZE,
    AesGcmCipher,
    EncryptedData,
    SecureKey,
    generate_key_hex,
    generate_random_bytes,
)

# ============================================================================
# Error Exports
# ============================================================================

from .errors import (
    ConfigurationError,
    DecryptionError,
    NotFoundError,
    SecureStoreError,
    StorageError,
    ValidationError,
)

# ============================================================================
# Key Ring and Envelope Exports
# ============================================================================

from .keyring import KEY_ID_MAX_BYTES, KeyRing

from .envelope import (
    DEFAULT_MAX_PLAINTEXT_SIZE,
    MIN_ENVELOPE_SIZE,
    Envelope,
    EnvelopeCodec,
)

# ============================================================================
# Storage Exports
# ============================================================================

from .storage import InMemoryObjectStore, ObjectStore

from .postgres import PostgresObjectStore

from .s3 import S3ObjectStore

# ============================================================================
# Store and Configuration Exports (Primary API)
# ============================================================================

from .config import SecureStoreConfig

from .store import RotationResult, SecureStore, parse_path

# ============================================================================
# Public API
# ============================================================================

__all__ = [
    # Version
    "__version__",
    # Crypto
    "AES_256_KEY_SIZE",
    "NONCE_SIZE",
    "TAG_SIZE",
    "AesGcmCipher",
    "EncryptedData",
    "SecureKey",
    "generate_key_hex",
    "generate_random_bytes",
    # Errors
    "SecureStoreError",
    "ConfigurationError",
    "ValidationError",
    "DecryptionError",
    "NotFoundError",
    "StorageError",
    # Key ring and envelope
    "KEY_ID_MAX_BYTES",
    "KeyRing",
    "DEFAULT_MAX_PLAINTEXT_SIZE",
    "MIN_ENVELOPE_SIZE",
    "Envelope",
    "EnvelopeCodec",
    # Storage
    "ObjectStore",
    "InMemoryObjectStore",
    "PostgresObjectStore",
    "S3ObjectStore",
    # Store and configuration (Primary API)
    "SecureStoreConfig",
    "SecureStore",
    "RotationResult",
    "parse_path",
]
