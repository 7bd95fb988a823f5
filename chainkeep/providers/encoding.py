"""Hashing shared by the non-EVM address encoders."""

import hashlib

from Crypto.Hash import RIPEMD160


def hash160(data: bytes) -> bytes:
    """RIPEMD160(SHA256(data))."""
    return RIPEMD160.new(hashlib.sha256(data).digest()).digest()
