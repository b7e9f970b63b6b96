"""Account address derivation from an Ed25519 public key."""

from __future__ import annotations

import hashlib

# Single-signer Ed25519 authentication scheme
ED25519_SCHEME = b"\x00"


def derive_address(public_key: bytes) -> bytes:
    """Return SHA3-256(public_key || 0x00), the 32-byte account address."""
    digest = hashlib.sha3_256()
    digest.update(public_key)
    digest.update(ED25519_SCHEME)
    return digest.digest()


def format_address(address: bytes) -> str:
    return "0x" + address.hex()
