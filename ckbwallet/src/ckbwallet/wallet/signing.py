"""
Transaction signing for secp256k1-blake160 sighash-all inputs.
"""

from __future__ import annotations

from ckbcore.constants import SIGNATURE_SIZE
from ckbcore.crypto import CryptoError, load_private_key, lock_script_from_private_key
from ckbcore.errors import TransactionSigningError
from ckbcore.models import SignedTransaction, TransactionTemplate
from ckbcore.serialization import new_ckb_hasher, pack_u64, serialize_witness_args
from coincurve import PrivateKey
from loguru import logger


def empty_witness() -> bytes:
    """Placeholder witness: WitnessArgs with every field absent."""
    return serialize_witness_args()


def compute_sighash_all(
    tx_hash: bytes,
    witnesses: list[bytes],
    group: list[int],
    input_count: int,
) -> bytes:
    """
    Message signed for a lock group.

    Hashes the transaction hash, then each witness of the group (the first one
    with its lock zeroed) and every witness past the inputs, each prefixed by
    its length as u64 little-endian.
    """
    if not group:
        raise TransactionSigningError("Empty lock group")

    hasher = new_ckb_hasher()
    hasher.update(tx_hash)

    first = serialize_witness_args(lock=bytes(SIGNATURE_SIZE))
    hasher.update(pack_u64(len(first)))
    hasher.update(first)

    for index in group[1:]:
        hasher.update(pack_u64(len(witnesses[index])))
        hasher.update(witnesses[index])

    for witness in witnesses[input_count:]:
        hasher.update(pack_u64(len(witness)))
        hasher.update(witness)

    return hasher.digest()


def sign_transaction(
    template: TransactionTemplate, private_key: str | bytes | PrivateKey
) -> SignedTransaction:
    """
    Sign every input of ``template`` with ``private_key``.

    All inputs must be locked by the key's default lock; they form a single
    lock group whose signature goes into the first input's witness.

    Raises:
        TransactionSigningError: If the template cannot be signed by this key
    """
    try:
        key = load_private_key(private_key)
    except CryptoError as e:
        raise TransactionSigningError(str(e)) from e

    input_count = len(template.inputs)
    if input_count == 0:
        raise TransactionSigningError("Transaction has no inputs")
    if len(template.input_cells) != input_count:
        raise TransactionSigningError(
            f"Missing input cells: {len(template.input_cells)} for {input_count} inputs"
        )
    if len(template.witnesses) < input_count:
        raise TransactionSigningError(
            f"Missing witness placeholders: {len(template.witnesses)} for {input_count} inputs"
        )

    lock = lock_script_from_private_key(key)
    group: list[int] = []
    for index, cell in enumerate(template.input_cells):
        if cell.lock != lock:
            raise TransactionSigningError(f"Input {index} ({cell.out_point}) not locked by key")
        group.append(index)

    witnesses = list(template.witnesses)
    tx_hash = template.tx_hash()
    message = compute_sighash_all(tx_hash, witnesses, group, input_count)

    try:
        signature = key.sign_recoverable(message, hasher=None)
    except Exception as e:
        raise TransactionSigningError(f"Failed to sign: {e}") from e

    witnesses[group[0]] = serialize_witness_args(lock=signature)
    logger.debug(f"Signed {len(group)} inputs of 0x{tx_hash.hex()}")

    return SignedTransaction(template=template, witnesses=witnesses, tx_hash=tx_hash)
