"""
Molecule serialization for CKB transactions.

Layouts used here:
- struct: fields concatenated, fixed size
- fixvec: u32 item count + items
- dynvec/table: u32 total size + u32 offset per item/field + items/fields
- option: empty when absent, the inner value otherwise
"""

from __future__ import annotations

import hashlib
import struct

from ckbcore.constants import SHANNONS_PER_CKB
from ckbcore.models import (
    CellDep,
    CellInput,
    CellOutput,
    OutPoint,
    Script,
    TransactionTemplate,
)

CKB_HASH_PERSONALIZATION = b"ckb-default-hash"


def new_ckb_hasher() -> hashlib.blake2b:
    return hashlib.blake2b(digest_size=32, person=CKB_HASH_PERSONALIZATION)


def ckb_hash(data: bytes) -> bytes:
    """blake2b-256 with the CKB personalization."""
    hasher = new_ckb_hasher()
    hasher.update(data)
    return hasher.digest()


def pack_u32(n: int) -> bytes:
    return struct.pack("<I", n)


def pack_u64(n: int) -> bytes:
    return struct.pack("<Q", n)


def pack_bytes(data: bytes) -> bytes:
    """fixvec<byte>"""
    return pack_u32(len(data)) + data


def pack_fixvec(items: list[bytes]) -> bytes:
    return pack_u32(len(items)) + b"".join(items)


def pack_dynvec(items: list[bytes]) -> bytes:
    header_size = 4 + 4 * len(items)
    total = header_size + sum(len(item) for item in items)

    offsets = []
    offset = header_size
    for item in items:
        offsets.append(pack_u32(offset))
        offset += len(item)

    return pack_u32(total) + b"".join(offsets) + b"".join(items)


# A table has the same layout as a dynvec over its fields
pack_table = pack_dynvec


def serialize_script(script: Script) -> bytes:
    return pack_table(
        [script.code_hash, bytes([script.hash_type.code]), pack_bytes(script.args)]
    )


def serialize_out_point(out_point: OutPoint) -> bytes:
    return out_point.tx_hash + pack_u32(out_point.index)


def serialize_cell_input(cell_input: CellInput) -> bytes:
    return pack_u64(cell_input.since) + serialize_out_point(cell_input.previous_output)


def serialize_cell_dep(cell_dep: CellDep) -> bytes:
    return serialize_out_point(cell_dep.out_point) + bytes([cell_dep.dep_type.code])


def serialize_cell_output(output: CellOutput) -> bytes:
    type_bytes = serialize_script(output.type_) if output.type_ else b""
    return pack_table([pack_u64(output.capacity), serialize_script(output.lock), type_bytes])


def serialize_witness_args(
    lock: bytes | None = None,
    input_type: bytes | None = None,
    output_type: bytes | None = None,
) -> bytes:
    fields = [pack_bytes(f) if f is not None else b"" for f in (lock, input_type, output_type)]
    return pack_table(fields)


def serialize_raw_transaction(template: TransactionTemplate) -> bytes:
    return pack_table(
        [
            pack_u32(template.version),
            pack_fixvec([serialize_cell_dep(dep) for dep in template.cell_deps]),
            pack_fixvec(list(template.header_deps)),
            pack_fixvec([serialize_cell_input(inp) for inp in template.inputs]),
            pack_dynvec([serialize_cell_output(out) for out in template.outputs]),
            pack_dynvec([pack_bytes(data) for data in template.outputs_data]),
        ]
    )


def serialize_transaction(template: TransactionTemplate, witnesses: list[bytes]) -> bytes:
    return pack_table(
        [
            serialize_raw_transaction(template),
            pack_dynvec([pack_bytes(w) for w in witnesses]),
        ]
    )


def script_hash(script: Script) -> bytes:
    return ckb_hash(serialize_script(script))


def tx_hash(template: TransactionTemplate) -> bytes:
    """Transaction hash: ckb_hash of the raw transaction (witnesses excluded)."""
    return ckb_hash(serialize_raw_transaction(template))


def script_occupied_bytes(script: Script) -> int:
    return 32 + 1 + len(script.args)


def occupied_capacity(output: CellOutput, data: bytes) -> int:
    """Minimum capacity (shannons) the output must hold to exist on chain."""
    size = 8 + script_occupied_bytes(output.lock) + len(data)
    if output.type_ is not None:
        size += script_occupied_bytes(output.type_)
    return size * SHANNONS_PER_CKB
