"""
Secure Store Benchmark CLI.

Usage:
    secure-store-benchmark

Or run directly:
    python -m secure_store.benchmark

Runs entirely in memory; no S3 or PostgreSQL needed.
"""

from __future__ import annotations

import asyncio
import time

from secure_store.crypto import generate_random_bytes
from secure_store.envelope import Envelope, EnvelopeCodec
from secure_store.keyring import KeyRing
from secure_store.storage import InMemoryObjectStore
from secure_store.store import SecureStore


async def run_benchmark() -> None:
    """Run the secure store benchmark."""
    print("=== Secure Store Benchmark ===\n")

    # Get test quantity from user
    try:
        user_input = input("Enter number of objects to test (default: 1000): ").strip()
        test_quantity = int(user_input) if user_input else 1000
    except ValueError:
        test_quantity = 1000
    if test_quantity < 1:
        test_quantity = 1000
    print(f"Testing with {test_quantity} objects\n")

    ring_v1 = KeyRing({"v1": generate_random_bytes(32)}, "v1")
    codec = EnvelopeCodec(ring_v1)

    print("=" * 70)
    print("                    BENCHMARK START")
    print("=" * 70 + "\n")

    # ========================================================================
    # Demo 1: Encode/decode throughput
    # ========================================================================
    print("+" + "-" * 68 + "+")
    print("|  Demo 1: Envelope Encode/Decode Benchmark                         |")
    print("+" + "-" * 68 + "+")

    plaintext = b"Sensitive data protected by the secure store" * 16

    encode_start = time.perf_counter()
    envelopes = [codec.encode(plaintext) for _ in range(test_quantity)]
    encode_time = time.perf_counter() - encode_start

    decode_start = time.perf_counter()
    for envelope in envelopes:
        codec.decode(envelope)
    decode_time = time.perf_counter() - decode_start

    print(f"[OK] {test_quantity} envelopes encoded/decoded")
    print(f"[PERF] Encode: {encode_time * 1000:.3f}ms ({test_quantity / encode_time:.2f} ops/sec)")
    print(f"[PERF] Decode: {decode_time * 1000:.3f}ms ({test_quantity / decode_time:.2f} ops/sec)\n")

    # ========================================================================
    # Demo 2: Nonce uniqueness
    # ========================================================================
    print("+" + "-" * 68 + "+")
    print("|  Demo 2: Nonce Uniqueness                                         |")
    print("+" + "-" * 68 + "+")

    nonces = {Envelope.from_bytes(e).nonce for e in envelopes}
    print(f"[OK] {len(nonces)}/{test_quantity} distinct nonces\n")

    # ========================================================================
    # Demo 3: Key rotation through the store
    # ========================================================================
    print("+" + "-" * 68 + "+")
    print(f"|  Demo 3: Key Rotation ({test_quantity} objects)" + " " * (38 - len(str(test_quantity))) + "|")
    print("+" + "-" * 68 + "+")

    objects = InMemoryObjectStore()
    store_v1 = SecureStore(codec, objects)
    for i in range(test_quantity):
        await store_v1.put(f"bench/objects/{i}", plaintext)

    ring_v2 = ring_v1.rotated("v2", generate_random_bytes(32))
    store_v2 = SecureStore(EnvelopeCodec(ring_v2), objects)

    rotate_start = time.perf_counter()
    result = await store_v2.rotate_prefix("bench/objects/")
    rotate_time = time.perf_counter() - rotate_start

    print(f"[OK] {result}")
    print(f"[PERF] Time: {rotate_time * 1000:.3f}ms | Rate: {result.objects_rewritten / rotate_time:.2f} ops/sec\n")

    # ========================================================================
    # Demo 4: Retired key can be dropped
    # ========================================================================
    print("+" + "-" * 68 + "+")
    print("|  Demo 4: Retire Old Key                                           |")
    print("+" + "-" * 68 + "+")

    store_v2_only = SecureStore(EnvelopeCodec(ring_v2.without("v1")), objects)
    recovered = await store_v2_only.get("bench/objects/0")
    print(f"[OK] Read after dropping v1: {recovered == plaintext}\n")

    # ========================================================================
    # Summary
    # ========================================================================
    print("=" * 70)
    print("                    BENCHMARK SUMMARY")
    print("=" * 70 + "\n")

    print(f"  - Total objects tested: {test_quantity}")
    print(f"  - Plaintext size: {len(plaintext)} bytes")
    print("  - Crypto: AES-256-GCM, 16-byte nonce, 16-byte tag")
    print("  - Rotation: new primary key + in-place re-encryption")

    print("\n" + "=" * 70)
    print("                    BENCHMARK COMPLETE")
    print("=" * 70 + "\n")


def main() -> None:
    """CLI entry point for secure-store-benchmark command."""
    asyncio.run(run_benchmark())


if __name__ == "__main__":
    main()
