"""
Shared fixtures: an in-memory CKB node and cell factories.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import pytest
from ckbcore.constants import SHANNONS_PER_CKB, SIGHASH_TYPE_HASH, SUDT_DEVNET_CODE_HASH
from ckbcore.crypto import lock_script_from_private_key
from ckbcore.errors import BroadcastRejectedError, CellLookupError
from ckbcore.models import (
    CellOutput,
    HashType,
    LiveCell,
    OutPoint,
    Script,
    SignedTransaction,
    hex_to_int,
    to_hex,
)
from ckbcore.sudt import encode_amount
from ckbwallet.backends.base import CkbBackend

CKB = SHANNONS_PER_CKB

# Dev chain key (not for production use!)
SENDER_KEY = "63d86723e08f0f813a36ce6aa123bb2289d90680ae1e99d4de8cdb334553f24d"

SUDT_ARGS = bytes.fromhex("c219351b150b900e50a7039f1e448b844110927e5fd9bd30425806cb8ddff1fd")


def rpc_cell(cell: LiveCell) -> dict[str, Any]:
    obj: dict[str, Any] = {
        "out_point": cell.out_point.to_json(),
        "output": cell.output.to_json(),
        "output_data": to_hex(cell.data),
    }
    if cell.block_number is not None:
        obj["block_number"] = to_hex(cell.block_number)
    return obj


def _script_matches(script_json: dict[str, str] | None, prefix: dict[str, str]) -> bool:
    """Indexer semantics: code hash and hash type equal, args prefix match."""
    if script_json is None:
        return False
    return (
        script_json["code_hash"] == prefix["code_hash"]
        and script_json["hash_type"] == prefix["hash_type"]
        and script_json["args"].startswith(prefix["args"])
    )


class FakeBackend(CkbBackend):
    """In-memory node: paginated get_cells, a two-transaction genesis, recorded broadcasts."""

    def __init__(self, cells: list[LiveCell] | None = None):
        self.cells = list(cells or [])
        self.get_cells_calls: list[dict[str, Any]] = []
        self.genesis_calls = 0
        self.broadcasts: list[SignedTransaction] = []
        self.broadcast_error: str | None = None
        self.lookup_error: str | None = None
        self.genesis_tx_hashes = [bytes([0xA0]) * 32, bytes([0xB1]) * 32]

    async def get_cells(
        self,
        search_key: dict[str, Any],
        order: str,
        limit: int,
        after: str | None = None,
    ) -> dict[str, Any]:
        self.get_cells_calls.append({"search_key": search_key, "limit": limit, "after": after})
        if self.lookup_error:
            raise CellLookupError(self.lookup_error)

        matching = []
        for cell in self.cells:
            obj = rpc_cell(cell)
            if obj["output"]["lock"] != search_key["script"]:
                continue
            search_filter = search_key.get("filter") or {}
            if "script_len_range" in search_filter and obj["output"]["type"] is not None:
                continue
            if "script" in search_filter and not _script_matches(
                obj["output"]["type"], search_filter["script"]
            ):
                continue
            matching.append(obj)

        start = hex_to_int(after) if after else 0
        page = matching[start : start + limit]
        return {"objects": page, "last_cursor": to_hex(start + len(page))}

    async def get_block_by_number(self, block_number: int) -> dict[str, Any] | None:
        self.genesis_calls += 1
        if block_number != 0:
            return None
        return {"transactions": [{"hash": to_hex(h)} for h in self.genesis_tx_hashes]}

    async def get_tip_block_number(self) -> int:
        return 100

    async def broadcast_transaction(self, tx: SignedTransaction) -> str:
        if self.broadcast_error:
            raise BroadcastRejectedError(self.broadcast_error)
        self.broadcasts.append(tx)
        return to_hex(tx.tx_hash)

    def filters_requested(self) -> list[dict[str, Any] | None]:
        return [call["search_key"]["filter"] for call in self.get_cells_calls]


@pytest.fixture
def sender_key() -> str:
    return SENDER_KEY


@pytest.fixture
def sender_lock() -> Script:
    return lock_script_from_private_key(SENDER_KEY)


@pytest.fixture
def recipient_locks() -> list[Script]:
    return [
        Script(code_hash=SIGHASH_TYPE_HASH, hash_type=HashType.TYPE, args=bytes([i + 1]) * 20)
        for i in range(4)
    ]


@pytest.fixture
def udt_type_script() -> Script:
    return Script(code_hash=SUDT_DEVNET_CODE_HASH, hash_type=HashType.DATA, args=SUDT_ARGS)


@pytest.fixture
def make_cell(sender_lock: Script) -> Callable[..., LiveCell]:
    """
    Factory: make_cell(capacity_ckb, tokens=None, type_=None, lock=None).

    ``shannons`` overrides the capacity with a raw value. Cell n is committed
    in block n.
    """
    counter = iter(range(1, 10_000))

    def _make(
        capacity_ckb: int,
        tokens: int | None = None,
        type_: Script | None = None,
        lock: Script | None = None,
        data: bytes | None = None,
        shannons: int | None = None,
    ) -> LiveCell:
        n = next(counter)
        capacity = shannons if shannons is not None else capacity_ckb * CKB
        if data is None:
            data = encode_amount(tokens) if tokens is not None else b""
        return LiveCell(
            out_point=OutPoint(tx_hash=n.to_bytes(32, "big"), index=n % 3),
            output=CellOutput(capacity=capacity, lock=lock or sender_lock, type_=type_),
            data=data,
            block_number=n,
        )

    return _make


@pytest.fixture
def make_udt_cell(
    make_cell: Callable[..., LiveCell], udt_type_script: Script
) -> Callable[..., LiveCell]:
    def _make(capacity_ckb: int, tokens: int) -> LiveCell:
        return make_cell(capacity_ckb, tokens=tokens, type_=udt_type_script)

    return _make


@pytest.fixture
def fake_backend_factory() -> Callable[[list[LiveCell]], FakeBackend]:
    return FakeBackend


@pytest.fixture(name="rpc_cell")
def rpc_cell_fixture() -> Callable[[LiveCell], dict[str, Any]]:
    """Indexer JSON form of a cell."""
    return rpc_cell
