"""Common utility helpers: timestamps and integer encoding."""

import time


def now_ms() -> int:
    """Return current time in Unix milliseconds."""
    return int(time.time() * 1000)


def int_to_bytes(value: int) -> bytes:
    """
    Big-endian encoding of a non-negative integer, at least one byte.
    """
    if value < 0:
        raise ValueError("Only non-negative integers can be encoded")
    length = max(1, (value.bit_length() + 7) // 8)
    return value.to_bytes(length, "big")
