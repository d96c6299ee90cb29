"""
Immutable key ring for multi-key encryption and rotation.

A KeyRing holds every key that may still be needed to read stored objects,
plus the identifier of the primary key used for all new encryptions.

Rotation never mutates a ring: build a new one with `rotated()` and swap it in.
Old identifiers stay in the ring for as long as objects encrypted under them
must remain readable, then `without()` drops them.
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Dict, Iterator, Mapping, Optional, Tuple, Union

from .crypto import AES_256_KEY_SIZE, SecureKey
from .errors import ConfigurationError

# A key id is framed with a 1-byte length prefix
KEY_ID_MAX_BYTES: int = 255

KeyMaterial = Union[bytes, bytearray, SecureKey]


def validate_key_id(key_id: str) -> bytes:
    """
    Check that a key identifier can be framed and return its UTF-8 bytes.

    Raises:
        ConfigurationError: If key_id is empty, not a string, or longer than 255 UTF-8 bytes
    """
    if not isinstance(key_id, str) or not key_id:
        raise ConfigurationError("Key identifier must be a non-empty string")
    encoded = key_id.encode("utf-8")
    if len(encoded) > KEY_ID_MAX_BYTES:
        raise ConfigurationError(
            f"Key identifier is {len(encoded)} bytes in UTF-8, maximum is {KEY_ID_MAX_BYTES}"
        )
    return encoded


def _to_secure_key(key_id: str, material: KeyMaterial) -> SecureKey:
    if isinstance(material, SecureKey):
        return material
    if not isinstance(material, (bytes, bytearray)):
        raise ConfigurationError(f'Key "{key_id}" must be bytes or SecureKey')
    if len(material) != AES_256_KEY_SIZE:
        raise ConfigurationError(
            f'Key "{key_id}" must be {AES_256_KEY_SIZE} bytes, got {len(material)}'
        )
    return SecureKey(material)


class KeyRing:
    """
    Named symmetric keys plus the designation of the primary one.

    Invariants (checked at construction):
    - at least one key
    - the primary identifier is present
    - every key is exactly 32 bytes
    - every identifier is non-empty and at most 255 bytes of UTF-8
    """

    __slots__ = ("_keys", "_primary_id")

    def __init__(self, keys: Mapping[str, KeyMaterial], primary_id: str) -> None:
        """
        Build a key ring from raw key material.

        Args:
            keys: Mapping of key identifier to 32 bytes of key material
            primary_id: Identifier of the key used for new encryptions

        Raises:
            ConfigurationError: If any invariant above is violated
        """
        if not keys:
            raise ConfigurationError("At least one key must be provided")

        validated: Dict[str, SecureKey] = {}
        for key_id, material in keys.items():
            validate_key_id(key_id)
            validated[key_id] = _to_secure_key(key_id, material)

        if primary_id not in validated:
            raise ConfigurationError(
                f'Primary key "{primary_id}" is not present in the key ring'
            )

        self._keys: Mapping[str, SecureKey] = MappingProxyType(validated)
        self._primary_id = primary_id

    @classmethod
    def from_hex(cls, keys: Mapping[str, str], primary_id: str) -> KeyRing:
        """
        Build a key ring from 64-character hex strings.

        Raises:
            ConfigurationError: If any value is not 64 hex characters
        """
        if not keys:
            raise ConfigurationError("At least one key must be provided")

        decoded: Dict[str, SecureKey] = {}
        for key_id, hex_key in keys.items():
            try:
                decoded[key_id] = SecureKey.from_hex(hex_key)
            except ConfigurationError:
                raise ConfigurationError(
                    f'Invalid secret key for "{key_id}": must be a 64-character hex string'
                ) from None
        return cls(decoded, primary_id)

    @property
    def primary_id(self) -> str:
        """Identifier of the key used for new encryptions."""
        return self._primary_id

    @property
    def key_ids(self) -> Tuple[str, ...]:
        """All identifiers, sorted."""
        return tuple(sorted(self._keys))

    def primary_key(self) -> Tuple[str, SecureKey]:
        """Return (identifier, key) of the primary key."""
        return self._primary_id, self._keys[self._primary_id]

    def lookup(self, key_id: str) -> Optional[SecureKey]:
        """
        Find the key for an identifier.

        An unknown identifier is an expected condition (retired key, corrupted
        data), so this returns None rather than raising.
        """
        return self._keys.get(key_id)

    def rotated(self, new_id: str, new_key: KeyMaterial) -> KeyRing:
        """
        Return a new ring with `new_id` added and made primary.

        Existing keys are kept so older objects stay readable.

        Raises:
            ConfigurationError: If new_id is already in the ring
        """
        if new_id in self._keys:
            raise ConfigurationError(f'Key "{new_id}" is already in the key ring')
        keys: Dict[str, KeyMaterial] = dict(self._keys)
        keys[new_id] = new_key
        return KeyRing(keys, new_id)

    def without(self, key_id: str) -> KeyRing:
        """
        Return a new ring with a retired key removed.

        Raises:
            ConfigurationError: If key_id is the primary key or is not in the ring
        """
        if key_id == self._primary_id:
            raise ConfigurationError(f'Cannot remove primary key "{key_id}"')
        if key_id not in self._keys:
            raise ConfigurationError(f'Key "{key_id}" is not in the key ring')
        keys = {k: v for k, v in self._keys.items() if k != key_id}
        return KeyRing(keys, self._primary_id)

    def __contains__(self, key_id: object) -> bool:
        return key_id in self._keys

    def __len__(self) -> int:
        return len(self._keys)

    def __iter__(self) -> Iterator[str]:
        return iter(self.key_ids)

    def __repr__(self) -> str:
        return f"KeyRing(key_ids={list(self.key_ids)!r}, primary_id={self._primary_id!r})"
