"""
Time-ordered identifiers for events and operations

Event ids sort by creation time, so the audit history can be listed in
order even when read back from an index rather than from the stream.
"""

import secrets
import time


def generate_id() -> str:
    """
    Generate a UUIDv7-style identifier

    48 bits of Unix milliseconds, version nibble 7, variant bits 10,
    the rest random.

    Returns:
        36-character hyphenated hex string
    """
    timestamp_ms = int(time.time() * 1000) & 0xFFFFFFFFFFFF
    rand_a = secrets.randbits(12)
    rand_b = secrets.randbits(62)

    value = (timestamp_ms << 80) | (0x7 << 76) | (rand_a << 64) | (0b10 << 62) | rand_b
    hex_value = f"{value:032x}"

    return (
        f"{hex_value[0:8]}-{hex_value[8:12]}-{hex_value[12:16]}-"
        f"{hex_value[16:20]}-{hex_value[20:32]}"
    )
