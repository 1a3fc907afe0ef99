"""
Key handling for the secp256k1-blake160 lock.
"""

from __future__ import annotations

from coincurve import PrivateKey

from ckbcore.constants import BLAKE160_SIZE, SIGHASH_TYPE_HASH
from ckbcore.errors import FunderError
from ckbcore.models import HashType, Script
from ckbcore.serialization import ckb_hash


class CryptoError(FunderError):
    pass


def load_private_key(private_key: str | bytes | PrivateKey) -> PrivateKey:
    """Accept a coincurve key, 32 raw bytes, or a hex string (with or without 0x)."""
    if isinstance(private_key, PrivateKey):
        return private_key

    try:
        if isinstance(private_key, str):
            key_hex = private_key.strip()
            if key_hex.startswith("0x"):
                key_hex = key_hex[2:]
            private_key = bytes.fromhex(key_hex)
        if len(private_key) != 32:
            raise ValueError(f"expected 32 bytes, got {len(private_key)}")
        return PrivateKey(private_key)
    except ValueError as e:
        raise CryptoError(f"Invalid private key: {e}") from e


def blake160(data: bytes) -> bytes:
    return ckb_hash(data)[:BLAKE160_SIZE]


def pubkey_hash(private_key: str | bytes | PrivateKey) -> bytes:
    key = load_private_key(private_key)
    return blake160(key.public_key.format(compressed=True))


def lock_script_from_args(args: bytes) -> Script:
    """Default secp256k1-blake160 lock for a 20-byte public key hash."""
    if len(args) != BLAKE160_SIZE:
        raise CryptoError(f"Invalid blake160 args length: {len(args)}")
    return Script(code_hash=SIGHASH_TYPE_HASH, hash_type=HashType.TYPE, args=args)


def lock_script_from_private_key(private_key: str | bytes | PrivateKey) -> Script:
    return lock_script_from_args(pubkey_hash(private_key))
