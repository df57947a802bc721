"""
Address helpers.

Contract and account identities are 20-byte addresses rendered as
lowercase ``0x``-prefixed hex strings. Paymaster data in a user operation
carries them in raw 20-byte form.
"""

from __future__ import annotations

import hashlib
import secrets

ADDRESS_LENGTH = 20
ZERO_ADDRESS = "0x" + "0" * 40


def normalize_address(address: str) -> str:
    """Lowercase an address and check its shape."""
    if not isinstance(address, str):
        raise ValueError(f"Address must be a string, got {type(address).__name__}")
    normalized = address.strip().lower()
    if not normalized.startswith("0x") or len(normalized) != 2 + ADDRESS_LENGTH * 2:
        raise ValueError(f"Invalid address: {address!r}")
    int(normalized[2:], 16)
    return normalized


def address_to_bytes(address: str) -> bytes:
    """Encode an address as its raw 20 bytes."""
    return bytes.fromhex(normalize_address(address)[2:])


def address_from_bytes(data: bytes) -> str:
    """Decode exactly 20 raw bytes into an address string."""
    if len(data) != ADDRESS_LENGTH:
        raise ValueError(f"Address must be {ADDRESS_LENGTH} bytes, got {len(data)}")
    return "0x" + data.hex()


def derive_address(kind: str, seed: str = "") -> str:
    """
    Derive a fresh contract address.

    Uses the last 20 bytes of a SHA3 digest over the contract kind, an
    optional seed and random salt.
    """
    salt = secrets.token_hex(16)
    addr_hash = hashlib.sha3_256(f"{kind}:{seed}:{salt}".encode()).digest()
    return f"0x{addr_hash[-ADDRESS_LENGTH:].hex()}"


def encode_paymaster_and_data(paymaster: str, *extra_addresses: str) -> bytes:
    """Concatenate the paymaster address with any trailing address arguments."""
    return b"".join(address_to_bytes(a) for a in (paymaster, *extra_addresses))
