"""Content hashing and fingerprint helpers.

Document hashes, claim group keys and the deep-equality check of the claims
ledger all go through the same canonical JSON encoding, so two payloads that
differ only in key order hash and compare identically.
"""

import hashlib
import json
from datetime import date, datetime
from typing import Any, Iterable, Optional


def _json_default(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if hasattr(value, "model_dump"):
        return value.model_dump(mode="json", by_alias=True, exclude_none=True)
    return str(value)


def canonical_json(value: Any) -> str:
    """Serialize a value to a stable JSON string (sorted keys, compact)."""
    return json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False, default=_json_default)


def sha256_hex(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def hash_payload(payload: Any) -> str:
    """Deterministic sha256 over the canonical JSON of a payload."""
    return sha256_hex(canonical_json(payload))


def json_equal(left: Any, right: Any) -> bool:
    """Deep equality of two JSON-like values, insensitive to key order."""
    return canonical_json(left) == canonical_json(right)


def normalize_fingerprint_part(value: Optional[Any]) -> str:
    if value is None:
        return ""
    return " ".join(str(value).split()).lower()


def build_fingerprint(parts: Iterable[Optional[Any]]) -> str:
    """Join normalized identifying fields into a pipe-separated group key.

    Example:
        build_fingerprint(["Acme ", "CTO", "2020-01-01", None])
        -> "acme|cto|2020-01-01|"
    """
    return "|".join(normalize_fingerprint_part(part) for part in parts)
