"""
Validated configuration for the secure store.

Environment variables (a .env file is loaded first if present):

    SECURE_STORE_KEYS           kid:hex pairs, comma separated ("v1:ab12...,v2:cd34...")
    SECURE_STORE_PRIMARY_KEY    key id used for new encryptions
    SECURE_STORE_MAX_FILE_SIZE  largest plaintext in bytes (default 100 MiB)
    DATABASE_URL                PostgreSQL DSN; selects the PostgreSQL backend
    SECURE_STORE_S3_ENDPOINT    S3-compatible endpoint URL (optional)
    AWS_REGION                  S3 region (optional)
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Dict, Mapping, Optional, Union

from dotenv import load_dotenv

from .envelope import DEFAULT_MAX_PLAINTEXT_SIZE
from .errors import ConfigurationError
from .keyring import KeyRing


def parse_keys(value: str) -> Dict[str, str]:
    """
    Parse "kid:hex,kid:hex" into a mapping.

    Raises:
        ConfigurationError: If an entry has no ":" or an id repeats
    """
    keys: Dict[str, str] = {}
    for position, entry in enumerate(value.split(","), start=1):
        entry = entry.strip()
        if not entry:
            continue
        key_id, sep, hex_key = entry.rpartition(":")
        if not sep or not key_id.strip():
            raise ConfigurationError(
                f"Invalid key entry #{position}: expected kid:hex"
            )
        key_id = key_id.strip()
        if key_id in keys:
            raise ConfigurationError(f'Duplicate key id "{key_id}"')
        keys[key_id] = hex_key.strip()
    return keys


@dataclass(frozen=True, eq=False)
class SecureStoreConfig:
    """
    Secure store settings, validated at construction.

    The key ring is built eagerly so bad key material fails at startup,
    not on the first encode/decode.
    """

    keys: Mapping[str, str]
    primary_key: str
    max_file_size: int = DEFAULT_MAX_PLAINTEXT_SIZE
    database_url: Optional[str] = None
    s3_endpoint_url: Optional[str] = None
    s3_region: Optional[str] = None
    _key_ring: KeyRing = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        if (
            isinstance(self.max_file_size, bool)
            or not isinstance(self.max_file_size, int)
            or self.max_file_size <= 0
        ):
            raise ConfigurationError(
                f"max_file_size must be a positive integer, got {self.max_file_size!r}"
            )
        if not isinstance(self.keys, Mapping):
            raise ConfigurationError(
                f"keys must be a mapping of key id to hex key, got {type(self.keys).__name__}"
            )
        object.__setattr__(self, "keys", MappingProxyType(dict(self.keys)))
        object.__setattr__(self, "_key_ring", KeyRing.from_hex(self.keys, self.primary_key))

    def key_ring(self) -> KeyRing:
        return self._key_ring

    def __repr__(self) -> str:
        return (
            f"SecureStoreConfig(key_ids={sorted(self.keys)!r}, "
            f"primary_key={self.primary_key!r}, max_file_size={self.max_file_size})"
        )

    @classmethod
    def from_env(
        cls,
        env_file: Optional[Union[str, Path]] = None,
        environ: Optional[Mapping[str, str]] = None,
    ) -> SecureStoreConfig:
        """
        Build configuration from environment variables.

        Args:
            env_file: .env file to load (defaults to searching from the cwd)
            environ: Mapping to read instead of os.environ (no .env loading)

        Raises:
            ConfigurationError: If required variables are missing or invalid
        """
        if environ is None:
            load_dotenv(env_file)
            environ = os.environ

        raw_keys = environ.get("SECURE_STORE_KEYS", "")
        if not raw_keys.strip():
            raise ConfigurationError("SECURE_STORE_KEYS must be set")

        primary = environ.get("SECURE_STORE_PRIMARY_KEY", "").strip()
        if not primary:
            raise ConfigurationError("SECURE_STORE_PRIMARY_KEY must be set")

        raw_size = environ.get("SECURE_STORE_MAX_FILE_SIZE", "").strip()
        try:
            max_file_size = int(raw_size) if raw_size else DEFAULT_MAX_PLAINTEXT_SIZE
        except ValueError:
            raise ConfigurationError(
                f"SECURE_STORE_MAX_FILE_SIZE must be an integer, got {raw_size!r}"
            ) from None

        return cls(
            keys=parse_keys(raw_keys),
            primary_key=primary,
            max_file_size=max_file_size,
            database_url=environ.get("DATABASE_URL") or None,
            s3_endpoint_url=environ.get("SECURE_STORE_S3_ENDPOINT") or None,
            s3_region=environ.get("AWS_REGION") or None,
        )
