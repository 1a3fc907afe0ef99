"""
Chain data models: scripts, out points, cells and transaction templates.

JSON forms follow the CKB JSON-RPC: integers and byte strings are 0x-prefixed
hex, enums are lowercase names.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class HashType(str, Enum):
    DATA = "data"
    TYPE = "type"
    DATA1 = "data1"
    DATA2 = "data2"

    @property
    def code(self) -> int:
        return {"data": 0, "type": 1, "data1": 2, "data2": 4}[self.value]


class DepType(str, Enum):
    CODE = "code"
    DEP_GROUP = "dep_group"

    @property
    def code(self) -> int:
        return 0 if self is DepType.CODE else 1


def to_hex(value: bytes | int) -> str:
    if isinstance(value, int):
        return hex(value)
    return "0x" + value.hex()


def hex_to_bytes(value: str) -> bytes:
    if not value.startswith("0x"):
        raise ValueError(f"Expected 0x-prefixed hex, got {value!r}")
    return bytes.fromhex(value[2:])


def hex_to_int(value: str) -> int:
    if not value.startswith("0x"):
        raise ValueError(f"Expected 0x-prefixed hex, got {value!r}")
    return int(value, 16)


@dataclass(frozen=True)
class Script:
    """Lock or type script. ``key`` identifies the program it runs."""

    code_hash: bytes
    hash_type: HashType
    args: bytes = b""

    @property
    def key(self) -> tuple[bytes, HashType]:
        return (self.code_hash, self.hash_type)

    def to_json(self) -> dict[str, str]:
        return {
            "code_hash": to_hex(self.code_hash),
            "hash_type": self.hash_type.value,
            "args": to_hex(self.args),
        }

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> Script:
        code_hash = hex_to_bytes(data["code_hash"])
        if len(code_hash) != 32:
            raise ValueError(f"Invalid code_hash length: {len(code_hash)}")
        return cls(
            code_hash=code_hash,
            hash_type=HashType(data["hash_type"]),
            args=hex_to_bytes(data["args"]),
        )


@dataclass(frozen=True)
class OutPoint:
    tx_hash: bytes
    index: int

    def to_json(self) -> dict[str, str]:
        return {"tx_hash": to_hex(self.tx_hash), "index": to_hex(self.index)}

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> OutPoint:
        return cls(tx_hash=hex_to_bytes(data["tx_hash"]), index=hex_to_int(data["index"]))

    def __str__(self) -> str:
        return f"{to_hex(self.tx_hash)}:{self.index}"


@dataclass(frozen=True)
class CellDep:
    out_point: OutPoint
    dep_type: DepType

    def to_json(self) -> dict[str, Any]:
        return {"out_point": self.out_point.to_json(), "dep_type": self.dep_type.value}


@dataclass(frozen=True)
class CellInput:
    previous_output: OutPoint
    since: int = 0

    def to_json(self) -> dict[str, Any]:
        return {"since": to_hex(self.since), "previous_output": self.previous_output.to_json()}


@dataclass(frozen=True)
class CellOutput:
    capacity: int
    lock: Script
    type_: Script | None = None

    def to_json(self) -> dict[str, Any]:
        return {
            "capacity": to_hex(self.capacity),
            "lock": self.lock.to_json(),
            "type": self.type_.to_json() if self.type_ else None,
        }

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> CellOutput:
        type_json = data.get("type")
        return cls(
            capacity=hex_to_int(data["capacity"]),
            lock=Script.from_json(data["lock"]),
            type_=Script.from_json(type_json) if type_json else None,
        )


@dataclass(frozen=True)
class LiveCell:
    """A spendable cell as enumerated from the indexer."""

    out_point: OutPoint
    output: CellOutput
    data: bytes = b""
    block_number: int | None = None

    @property
    def capacity(self) -> int:
        return self.output.capacity

    @property
    def lock(self) -> Script:
        return self.output.lock

    @property
    def type_(self) -> Script | None:
        return self.output.type_

    def to_input(self) -> CellInput:
        return CellInput(previous_output=self.out_point)

    @classmethod
    def from_rpc(cls, obj: dict[str, Any]) -> LiveCell:
        """Parse an indexer ``get_cells`` object."""
        block_number = obj.get("block_number")
        return cls(
            out_point=OutPoint.from_json(obj["out_point"]),
            output=CellOutput.from_json(obj["output"]),
            data=hex_to_bytes(obj.get("output_data") or "0x"),
            block_number=hex_to_int(block_number) if block_number else None,
        )


@dataclass
class TransactionTemplate:
    """
    Unsigned transaction produced by the assembler.

    ``input_cells`` and ``fee`` are not part of the wire form; the signer needs
    the input locks and the verifier needs the capacity left out of outputs.
    """

    inputs: list[CellInput] = field(default_factory=list)
    outputs: list[CellOutput] = field(default_factory=list)
    outputs_data: list[bytes] = field(default_factory=list)
    witnesses: list[bytes] = field(default_factory=list)
    cell_deps: list[CellDep] = field(default_factory=list)
    header_deps: list[bytes] = field(default_factory=list)
    input_cells: list[LiveCell] = field(default_factory=list)
    fee: int = 0
    version: int = 0

    @property
    def input_capacity(self) -> int:
        return sum(cell.capacity for cell in self.input_cells)

    @property
    def output_capacity(self) -> int:
        return sum(out.capacity for out in self.outputs)

    def tx_hash(self) -> bytes:
        from ckbcore.serialization import tx_hash

        return tx_hash(self)

    def to_json(self, witnesses: list[bytes] | None = None) -> dict[str, Any]:
        return {
            "version": to_hex(self.version),
            "cell_deps": [dep.to_json() for dep in self.cell_deps],
            "header_deps": [to_hex(h) for h in self.header_deps],
            "inputs": [inp.to_json() for inp in self.inputs],
            "outputs": [out.to_json() for out in self.outputs],
            "outputs_data": [to_hex(d) for d in self.outputs_data],
            "witnesses": [to_hex(w) for w in (self.witnesses if witnesses is None else witnesses)],
        }


@dataclass
class SignedTransaction:
    template: TransactionTemplate
    witnesses: list[bytes]
    tx_hash: bytes

    def to_json(self) -> dict[str, Any]:
        return self.template.to_json(witnesses=self.witnesses)
