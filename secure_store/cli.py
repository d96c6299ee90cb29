"""
Secure store command line.

Usage:
    secure-store genkey
    secure-store put bucket/path/file.txt --file ./file.txt
    secure-store get bucket/path/file.txt --out ./file.txt
    secure-store delete bucket/path/file.txt
    secure-store list bucket/path/ --recursive
    secure-store rotate bucket/path/

Keys and backend come from the environment (or a .env file); see
secure_store.config. DATABASE_URL selects PostgreSQL, otherwise S3.
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from typing import List, Optional

from .config import SecureStoreConfig
from .crypto import generate_key_hex
from .errors import SecureStoreError
from .logger import configure_logger
from .postgres import PostgresObjectStore
from .s3 import S3ObjectStore
from .storage import ObjectStore
from .store import SecureStore


async def open_object_store(config: SecureStoreConfig) -> ObjectStore:
    """Pick the backend named by the configuration."""
    if config.database_url:
        return await PostgresObjectStore.connect(config.database_url)
    return S3ObjectStore.from_settings(
        endpoint_url=config.s3_endpoint_url, region_name=config.s3_region
    )


async def run(args: argparse.Namespace) -> int:
    config = SecureStoreConfig.from_env(args.env_file)
    logger = configure_logger(log_dir=args.log_dir)
    store = SecureStore.from_config(config, await open_object_store(config), logger)

    try:
        if args.command == "put":
            if args.file:
                with open(args.file, "rb") as fh:
                    data: bytes = fh.read()
            else:
                data = args.data.encode("utf-8")
            await store.put(args.path, data)
            print(f"stored {args.path}")
        elif args.command == "get":
            data = await store.get(args.path)
            if args.out:
                with open(args.out, "wb") as fh:
                    fh.write(data)
            else:
                sys.stdout.buffer.write(data)
                sys.stdout.buffer.flush()
        elif args.command == "delete":
            await store.delete(args.path)
            print(f"deleted {args.path}")
        elif args.command == "list":
            for key in await store.list(
                args.path, args.offset, args.limit, args.recursive
            ):
                print(key)
        elif args.command == "rotate":
            result = await store.rotate_prefix(args.path)
            print(result)
    finally:
        await store.close()
    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="secure-store", description="Encrypted object storage")
    p.add_argument("--env-file", default=None, help="Path to a .env file")
    p.add_argument("--log-dir", default="logs")
    sub = p.add_subparsers(dest="command", required=True)

    sub.add_parser("genkey", help="Print a new 256-bit key as hex")

    put = sub.add_parser("put", help="Encrypt and upload data")
    put.add_argument("path")
    src = put.add_mutually_exclusive_group(required=True)
    src.add_argument("--file", help="Read data from this file")
    src.add_argument("--data", help="Store this UTF-8 string")

    get = sub.add_parser("get", help="Download and decrypt data")
    get.add_argument("path")
    get.add_argument("--out", help="Write to this file instead of stdout")

    delete = sub.add_parser("delete", help="Delete an object")
    delete.add_argument("path")

    ls = sub.add_parser("list", help="List objects under a prefix")
    ls.add_argument("path")
    ls.add_argument("--offset", type=int, default=0)
    ls.add_argument("--limit", type=int, default=1000)
    ls.add_argument("--recursive", action="store_true")

    rotate = sub.add_parser("rotate", help="Re-encrypt objects under the primary key")
    rotate.add_argument("path")

    return p


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point for the secure-store command."""
    args = build_parser().parse_args(argv)

    if args.command == "genkey":
        print(generate_key_hex())
        return 0

    try:
        return asyncio.run(run(args))
    except (SecureStoreError, OSError) as e:
        print(f"ERROR: {type(e).__name__}: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
