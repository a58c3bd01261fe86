"""JSON encoding for store values, proof payloads and report files.

step1 writes snapshot records that a later step2 process reads back, and the
binding tag of a proof is a hash over an encoded transcript, so one encoding is
shared by every writer: keys sorted, no insignificant whitespace, non-ASCII
kept as-is.
"""

import json
from typing import Any


def canonical_dumps(obj: Any) -> str:
    """
    Encode obj with sorted keys and compact separators.

    Lists are written in the order given, so two encodings of the same record
    match only when the caller builds its lists in a fixed order.
    """
    return json.dumps(
        obj,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False
    )


def canonical_bytes(obj: Any) -> bytes:
    """UTF-8 bytes of canonical_dumps(obj), the form stored under a key."""
    return canonical_dumps(obj).encode("utf-8")
