"""OpenCode-compatible record identifiers.

Ids look like ``msg_<12 hex><14 base62>``: the hex head encodes the creation
time in milliseconds (times 0x1000, plus a per-millisecond counter) so ids
sort in creation order; the tail is random.
"""

import secrets
import string
import time

PREFIXES = ("ses", "msg", "prt")

_BASE62 = string.digits + string.ascii_uppercase + string.ascii_lowercase
_RANDOM_LENGTH = 14

_last_timestamp = 0
_counter = 0


def ascending(prefix: str, timestamp_ms: int | None = None) -> str:
    """Return a new id with the given prefix that sorts after earlier ones."""
    global _last_timestamp, _counter

    if prefix not in PREFIXES:
        raise ValueError(f"Unknown id prefix: {prefix}")

    now = timestamp_ms if timestamp_ms is not None else int(time.time() * 1000)
    if now != _last_timestamp:
        _last_timestamp = now
        _counter = 0
    _counter += 1

    value = (now * 0x1000 + _counter) & 0xFFFFFFFFFFFF  # 6 bytes
    head = f"{value:012x}"
    tail = "".join(secrets.choice(_BASE62) for _ in range(_RANDOM_LENGTH))
    return f"{prefix}_{head}{tail}"
