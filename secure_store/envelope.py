"""
Self-describing encrypted object envelopes.

This module provides:
- Envelope: The parsed fields of one encrypted object
- EnvelopeCodec: Encrypts plaintext into envelope bytes and back, using a KeyRing

Wire format (all stored objects, byte order fixed):

    +-----------+-----------+-------------+------------+--------------+
    | kid_len   | kid       | nonce       | tag        | ciphertext   |
    | 1 byte    | kid_len B | 16 bytes    | 16 bytes   | remainder    |
    +-----------+-----------+-------------+------------+--------------+

The key identifier travels inside every object, so decryption never depends
on external metadata and objects written under old and new keys can coexist
indefinitely during rotation. Changing this layout makes every previously
stored object unreadable.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from .crypto import NONCE_SIZE, TAG_SIZE, AesGcmCipher, EncryptedData
from .errors import ConfigurationError, DecryptionError, ValidationError
from .keyring import KeyRing, validate_key_id

DEFAULT_MAX_PLAINTEXT_SIZE: int = 100 * 1024 * 1024  # 100 MiB

# Length byte plus nonce plus tag, with an empty key id
MIN_ENVELOPE_SIZE: int = 1 + NONCE_SIZE + TAG_SIZE


@dataclass(frozen=True)
class Envelope:
    """Parsed fields of one encrypted object."""

    key_id: str
    nonce: bytes
    tag: bytes
    ciphertext: bytes

    def to_bytes(self) -> bytes:
        """
        Serialize to the wire format.

        Raises:
            ValidationError: If the nonce or tag has the wrong size
        """
        if len(self.nonce) != NONCE_SIZE:
            raise ValidationError(
                f"Envelope nonce must be {NONCE_SIZE} bytes, got {len(self.nonce)}"
            )
        if len(self.tag) != TAG_SIZE:
            raise ValidationError(
                f"Envelope tag must be {TAG_SIZE} bytes, got {len(self.tag)}"
            )
        kid = validate_key_id(self.key_id)
        return b"".join(
            (bytes([len(kid)]), kid, self.nonce, self.tag, self.ciphertext)
        )

    @classmethod
    def from_bytes(cls, data: bytes) -> Envelope:
        """
        Parse envelope bytes without decrypting.

        Args:
            data: Raw envelope bytes

        Returns:
            Envelope instance

        Raises:
            ValidationError: If data is truncated or the key id is not UTF-8
        """
        if not isinstance(data, (bytes, bytearray, memoryview)):
            raise ValidationError("Envelope must be bytes")
        if len(data) < MIN_ENVELOPE_SIZE:
            raise ValidationError(
                f"Envelope too small: expected at least {MIN_ENVELOPE_SIZE} bytes, got {len(data)}"
            )

        kid_len = data[0]
        nonce_offset = 1 + kid_len
        tag_offset = nonce_offset + NONCE_SIZE
        ciphertext_offset = tag_offset + TAG_SIZE

        if len(data) < ciphertext_offset:
            raise ValidationError(
                f"Envelope too small for a {kid_len}-byte key id: "
                f"expected at least {ciphertext_offset} bytes, got {len(data)}"
            )

        try:
            key_id = bytes(data[1:nonce_offset]).decode("utf-8")
        except UnicodeDecodeError:
            raise ValidationError("Envelope key id is not valid UTF-8") from None

        return cls(
            key_id=key_id,
            nonce=bytes(data[nonce_offset:tag_offset]),
            tag=bytes(data[tag_offset:ciphertext_offset]),
            ciphertext=bytes(data[ciphertext_offset:]),
        )

    def encrypted_data(self) -> EncryptedData:
        return EncryptedData(nonce=self.nonce, tag=self.tag, ciphertext=self.ciphertext)


class EnvelopeCodec:
    """
    Encode/decode objects with the keys of a KeyRing.

    Stateless between calls: the ring is immutable and nothing else is kept,
    so one codec can be shared across threads and tasks.
    """

    def __init__(
        self,
        key_ring: KeyRing,
        max_plaintext_size: int = DEFAULT_MAX_PLAINTEXT_SIZE,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        """
        Initialize the codec.

        Args:
            key_ring: Keys for encryption (primary) and decryption (by id)
            max_plaintext_size: Largest plaintext accepted by encode()
            logger: Logger for failure diagnostics (defaults to this module's logger)

        Raises:
            ConfigurationError: If max_plaintext_size is not a positive integer
        """
        if (
            isinstance(max_plaintext_size, bool)
            or not isinstance(max_plaintext_size, int)
            or max_plaintext_size <= 0
        ):
            raise ConfigurationError(
                f"Maximum plaintext size must be a positive integer, got {max_plaintext_size!r}"
            )
        self._key_ring = key_ring
        self._max_plaintext_size = max_plaintext_size
        self._logger = logger or logging.getLogger(__name__)

    @property
    def key_ring(self) -> KeyRing:
        return self._key_ring

    @property
    def max_plaintext_size(self) -> int:
        return self._max_plaintext_size

    def encode(self, plaintext: bytes) -> bytes:
        """
        Encrypt plaintext under the primary key and frame it.

        Args:
            plaintext: Non-empty data, at most max_plaintext_size bytes

        Returns:
            Envelope bytes

        Raises:
            ValidationError: If plaintext is empty or too large
        """
        if not isinstance(plaintext, (bytes, bytearray, memoryview)):
            raise ValidationError("Plaintext must be bytes")
        size = len(plaintext)
        if size == 0:
            raise ValidationError("Input data cannot be empty")
        if size > self._max_plaintext_size:
            raise ValidationError(
                f"Data size of {size} bytes exceeds maximum limit of "
                f"{self._max_plaintext_size} bytes"
            )

        key_id, key = self._key_ring.primary_key()
        encrypted = AesGcmCipher.encrypt(key, bytes(plaintext))

        return Envelope(
            key_id=key_id,
            nonce=encrypted.nonce,
            tag=encrypted.tag,
            ciphertext=encrypted.ciphertext,
        ).to_bytes()

    def decode(self, envelope: bytes) -> bytes:
        """
        Parse an envelope, look up its key and decrypt it.

        Args:
            envelope: Bytes produced by encode()

        Returns:
            Verified plaintext

        Raises:
            ValidationError: If the envelope is truncated or malformed
            DecryptionError: If the key id is unknown or authentication fails
        """
        parsed = Envelope.from_bytes(envelope)

        key = self._key_ring.lookup(parsed.key_id)
        if key is None:
            self._logger.warning(
                "Envelope decryption failed: unknown key id %r (known: %s)",
                parsed.key_id,
                ", ".join(self._key_ring.key_ids),
            )
            raise DecryptionError(f"No secret key found for key id: {parsed.key_id}")

        try:
            return AesGcmCipher.decrypt(key, parsed.encrypted_data())
        except DecryptionError:
            self._logger.warning(
                "Envelope decryption failed: authentication tag mismatch under key id %r",
                parsed.key_id,
            )
            raise

    def key_id_of(self, envelope: bytes) -> str:
        """
        Return the key id an envelope was encrypted under, without decrypting.

        Raises:
            ValidationError: If the envelope is truncated or malformed
        """
        return Envelope.from_bytes(envelope).key_id

    def needs_rotation(self, envelope: bytes) -> bool:
        """True if the envelope was not encrypted under the current primary key."""
        return self.key_id_of(envelope) != self._key_ring.primary_id
