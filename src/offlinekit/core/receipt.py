"""Receipt primitives shared by every offlinekit module.

Functions:
    dual_hash: SHA256:BLAKE3 dual-hash format
    emit_receipt: Emit receipt with required fields to stdout
    merkle: Compute Merkle root from item list
    StopRule: Exception for programming errors that must surface
"""
import hashlib
import json
from datetime import datetime, timezone

import blake3


class StopRule(Exception):
    """Raised on a programming error that must surface. Never catch silently."""
    pass


def utc_now() -> str:
    """Current UTC time as ISO-8601 with a trailing Z."""
    return datetime.now(timezone.utc).isoformat(timespec="microseconds").replace("+00:00", "Z")


def dual_hash(data: bytes | str | dict) -> str:
    """Compute dual hash in format 'sha256hex:blake3hex'.

    Pure function with no side effects.

    Args:
        data: Bytes, string, or dict to hash

    Returns:
        String in format 'sha256hex:blake3hex' (both 64 hex chars)
    """
    if isinstance(data, dict):
        data = json.dumps(data, sort_keys=True, separators=(",", ":"))
    if isinstance(data, str):
        data = data.encode("utf-8")

    sha256_hex = hashlib.sha256(data).hexdigest()
    blake3_hex = blake3.blake3(data).hexdigest()

    return f"{sha256_hex}:{blake3_hex}"


def emit_receipt(receipt_type: str, data: dict, tenant_id: str = "default") -> dict:
    """Emit a receipt with standard required fields.

    Prints JSON to stdout with flush=True. Callers pass ids, counts and
    hashes only; record payloads stay out of receipts.

    Args:
        receipt_type: Type of receipt (offline_enqueue, offline_sync, ...)
        data: Receipt data
        tenant_id: Identity the receipt belongs to (default: "default")

    Returns:
        Complete receipt dict with receipt_type, ts, tenant_id, payload_hash
    """
    tenant_id = data.get("tenant_id", tenant_id)

    payload_bytes = json.dumps(data, sort_keys=True, default=str).encode("utf-8")
    payload_hash = dual_hash(payload_bytes)

    receipt = {
        "receipt_type": receipt_type,
        "ts": utc_now(),
        "tenant_id": tenant_id,
        "payload_hash": payload_hash,
        **data
    }

    print(json.dumps(receipt, sort_keys=True, default=str), flush=True)

    return receipt


def merkle(items: list) -> str:
    """Compute Merkle root from list of items.

    - Empty list: return dual_hash(b"empty")
    - Hash each item: dual_hash(json.dumps(item, sort_keys=True))
    - Odd count: duplicate last hash
    - Pairwise combine until single root

    Args:
        items: List of items (dicts) to compute root for

    Returns:
        Merkle root as dual-hash string
    """
    if not items:
        return dual_hash(b"empty")

    hashes = [dual_hash(json.dumps(item, sort_keys=True).encode("utf-8"))
              for item in items]

    while len(hashes) > 1:
        if len(hashes) % 2 == 1:
            hashes.append(hashes[-1])

        new_hashes = []
        for i in range(0, len(hashes), 2):
            combined = (hashes[i] + hashes[i + 1]).encode("utf-8")
            new_hashes.append(dual_hash(combined))
        hashes = new_hashes

    return hashes[0]
