"""
Cryptographic primitives for AES-256-GCM object encryption.

This module provides:
- SecureKey: Secure key wrapper with automatic zeroization
- EncryptedData: Nonce, authentication tag and ciphertext of one encryption
- AesGcmCipher: AES-256-GCM encryption/decryption operations
"""

from __future__ import annotations

import re
import secrets
from dataclasses import dataclass

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from .errors import ConfigurationError, DecryptionError

# Cryptographic constants
AES_256_KEY_SIZE: int = 32  # 256 bits
NONCE_SIZE: int = 16  # 128 bits (fixed by the envelope wire format)
TAG_SIZE: int = 16  # 128 bits (authentication tag)

_HEX_KEY_RE = re.compile(r"[0-9a-fA-F]{64}")


class SecureKey:
    """
    Secure key wrapper with automatic memory cleanup on deletion.

    Uses bytearray internally for mutable zeroing in __del__.
    Note: Python's garbage collector doesn't guarantee immediate cleanup,
    so this is best-effort zeroization.
    """

    __slots__ = ("_bytes",)

    def __init__(self, key_bytes: bytes | bytearray) -> None:
        """
        Create a SecureKey from raw bytes.

        Args:
            key_bytes: Raw key material (exactly 32 bytes for AES-256)

        Raises:
            ConfigurationError: If key_bytes is not bytes or not 32 bytes long
        """
        if not isinstance(key_bytes, (bytes, bytearray)):
            raise ConfigurationError("Key must be bytes or bytearray")
        if len(key_bytes) != AES_256_KEY_SIZE:
            raise ConfigurationError(
                f"Invalid key size: expected {AES_256_KEY_SIZE} bytes, got {len(key_bytes)}"
            )
        self._bytes = bytearray(key_bytes)

    @classmethod
    def generate(cls) -> SecureKey:
        """Generate a cryptographically secure random 32-byte key."""
        return cls(secrets.token_bytes(AES_256_KEY_SIZE))

    @classmethod
    def from_hex(cls, hex_key: str) -> SecureKey:
        """
        Decode a key from its 64-character hex representation.

        Raises:
            ConfigurationError: If hex_key is not exactly 64 hex characters
        """
        if not isinstance(hex_key, str) or not _HEX_KEY_RE.fullmatch(hex_key):
            raise ConfigurationError("Key must be a 64-character hex string")
        return cls(bytes.fromhex(hex_key))

    def as_bytes(self) -> bytes:
        """Return key as immutable bytes."""
        return bytes(self._bytes)

    def to_hex(self) -> str:
        """Return key as a lowercase hex string."""
        return self._bytes.hex()

    def __len__(self) -> int:
        """Return key length in bytes."""
        return len(self._bytes)

    def __repr__(self) -> str:
        """Redacted representation to prevent accidental key disclosure."""
        return "SecureKey([REDACTED])"

    def __del__(self) -> None:
        """Zero memory on deletion (best-effort)."""
        if hasattr(self, "_bytes"):
            for i in range(len(self._bytes)):
                self._bytes[i] = 0


@dataclass(frozen=True)
class EncryptedData:
    """
    Result of one AES-256-GCM encryption.

    AESGCM appends the tag to its output; it is split off here so callers
    can lay the fields out in whatever order their format requires.
    """

    nonce: bytes  # 16 bytes
    tag: bytes  # 16 bytes
    ciphertext: bytes  # same length as the plaintext


class AesGcmCipher:
    """
    AES-256-GCM authenticated encryption with a 16-byte nonce.

    AESGCM accepts nonces of 8 to 128 bytes; GHASH derives the counter
    block for non-96-bit nonces.
    """

    @staticmethod
    def encrypt(key: SecureKey, plaintext: bytes) -> EncryptedData:
        """
        Encrypt plaintext with AES-256-GCM under a fresh random nonce.

        Args:
            key: 32-byte encryption key
            plaintext: Data to encrypt

        Returns:
            EncryptedData with nonce, tag and ciphertext
        """
        nonce = secrets.token_bytes(NONCE_SIZE)
        sealed = AESGCM(key.as_bytes()).encrypt(nonce, plaintext, None)
        return EncryptedData(
            nonce=nonce,
            tag=sealed[-TAG_SIZE:],
            ciphertext=sealed[:-TAG_SIZE],
        )

    @staticmethod
    def decrypt(key: SecureKey, encrypted: EncryptedData) -> bytes:
        """
        Decrypt and verify ciphertext with AES-256-GCM.

        Args:
            key: 32-byte decryption key
            encrypted: EncryptedData with nonce, tag and ciphertext

        Returns:
            Verified plaintext bytes

        Raises:
            DecryptionError: If nonce/tag sizes are wrong or the tag does not verify
        """
        if len(encrypted.nonce) != NONCE_SIZE:
            raise DecryptionError(
                f"Invalid nonce size: expected {NONCE_SIZE}, got {len(encrypted.nonce)}"
            )
        if len(encrypted.tag) != TAG_SIZE:
            raise DecryptionError(
                f"Invalid tag size: expected {TAG_SIZE}, got {len(encrypted.tag)}"
            )

        aesgcm = AESGCM(key.as_bytes())

        try:
            return aesgcm.decrypt(
                encrypted.nonce, encrypted.ciphertext + encrypted.tag, None
            )
        except InvalidTag:
            # Generic error to prevent oracle attacks
            raise DecryptionError("Decryption failed") from None


def generate_random_bytes(length: int) -> bytes:
    """
    Generate cryptographically secure random bytes.

    Args:
        length: Number of bytes to generate

    Returns:
        Random bytes of specified length
    """
    return secrets.token_bytes(length)


def generate_key_hex() -> str:
    """Generate a new 256-bit key encoded as 64 hex characters."""
    return secrets.token_hex(AES_256_KEY_SIZE)
