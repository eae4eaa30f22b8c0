"""Byte-level audio track merging.

MP3 is a frame-based stream, so players tolerate back-to-back encoded
buffers. Merging is plain concatenation: no container parsing, no header
stripping, no re-framing. Output must stay byte-for-byte ``a + b``.
"""
from functools import reduce
from typing import Iterable


def merge(a: bytes, b: bytes) -> bytes:
    """Return ``a`` followed by ``b``."""
    return bytes(a) + bytes(b)


def merge_all(buffers: Iterable[bytes]) -> bytes:
    """Fold ``merge`` over buffers in the order given."""
    return reduce(merge, buffers, b"")
