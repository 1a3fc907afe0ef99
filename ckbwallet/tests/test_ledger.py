"""
Tests for live cell enumeration.
"""

import pytest

from ckbcore.errors import CellLookupError
from ckbcore.models import HashType, Script
from ckbwallet.backends.base import CkbBackend
from ckbwallet.wallet.ledger import AssetFilter, CellLedger


class ScriptedBackend(CkbBackend):
    """Returns canned pages in order."""

    def __init__(self, pages):
        self.pages = list(pages)
        self.cursors = []

    async def get_cells(self, search_key, order, limit, after=None):
        self.cursors.append(after)
        return self.pages.pop(0)

    async def get_block_by_number(self, block_number):
        return None

    async def get_tip_block_number(self):
        return 0

    async def broadcast_transaction(self, tx):
        raise NotImplementedError


class TestAssetFilter:
    def test_pure_capacity_filter(self):
        assert AssetFilter.pure_capacity().search_filter() == {
            "script_len_range": ["0x0", "0x1"]
        }

    def test_asset_filter(self, udt_type_script):
        search_filter = AssetFilter.asset(udt_type_script).search_filter()
        assert search_filter == {"script": udt_type_script.to_json()}

    def test_matches_exact(self, make_cell, make_udt_cell, udt_type_script):
        udt_filter = AssetFilter.asset(udt_type_script)
        assert udt_filter.matches(make_udt_cell(142, 10))
        assert not udt_filter.matches(make_cell(100))
        assert AssetFilter.pure_capacity().matches(make_cell(100))
        assert not AssetFilter.pure_capacity().matches(make_udt_cell(142, 10))


class TestListCells:
    @pytest.mark.asyncio
    async def test_follows_cursor_across_pages(self, make_cell, sender_lock, fake_backend_factory):
        cells = [make_cell(100 + i) for i in range(5)]
        backend = fake_backend_factory(cells)
        ledger = CellLedger(backend, page_size=2)

        listed = await ledger.list_cells(sender_lock)

        assert listed == cells
        # three full or partial pages, then the empty terminator
        assert [c["after"] for c in backend.get_cells_calls] == [None, "0x2", "0x4", "0x5"]
        assert all(c["limit"] == 2 for c in backend.get_cells_calls)

    @pytest.mark.asyncio
    async def test_keeps_block_number(self, make_cell, sender_lock, fake_backend_factory):
        cells = [make_cell(100), make_cell(200)]
        listed = await CellLedger(fake_backend_factory(cells)).list_cells(sender_lock)

        assert [c.block_number for c in listed] == [c.block_number for c in cells]
        assert all(c.block_number is not None for c in listed)

    @pytest.mark.asyncio
    async def test_search_key(self, sender_lock, fake_backend_factory):
        backend = fake_backend_factory([])
        await CellLedger(backend).capacity_cells(sender_lock)

        search_key = backend.get_cells_calls[0]["search_key"]
        assert search_key["script"] == sender_lock.to_json()
        assert search_key["script_type"] == "lock"
        assert search_key["with_data"] is True
        assert search_key["filter"] == {"script_len_range": ["0x0", "0x1"]}

    @pytest.mark.asyncio
    async def test_only_owner_cells(
        self, make_cell, sender_lock, recipient_locks, fake_backend_factory
    ):
        mine = make_cell(100)
        other = make_cell(100, lock=recipient_locks[0])
        backend = fake_backend_factory([other, mine])
        assert await CellLedger(backend).list_cells(sender_lock) == [mine]

    @pytest.mark.asyncio
    async def test_capacity_cells_skip_typed(
        self, make_cell, make_udt_cell, sender_lock, fake_backend_factory
    ):
        pure = make_cell(100)
        backend = fake_backend_factory([make_udt_cell(142, 5), pure])
        assert await CellLedger(backend).capacity_cells(sender_lock) == [pure]

    @pytest.mark.asyncio
    async def test_udt_cells_exact_type_match(
        self, make_cell, make_udt_cell, sender_lock, udt_type_script, fake_backend_factory
    ):
        # Same program, args extended: the indexer prefix match returns it
        longer = Script(
            code_hash=udt_type_script.code_hash,
            hash_type=HashType.DATA,
            args=udt_type_script.args + b"\x00",
        )
        token = make_udt_cell(142, 5)
        backend = fake_backend_factory([make_cell(142, tokens=9, type_=longer), token])

        assert await CellLedger(backend).udt_cells(sender_lock, udt_type_script) == [token]

    @pytest.mark.asyncio
    async def test_empty(self, sender_lock, fake_backend_factory):
        backend = fake_backend_factory([])
        assert await CellLedger(backend).list_cells(sender_lock) == []
        assert len(backend.get_cells_calls) == 1

    @pytest.mark.asyncio
    async def test_lookup_failure_propagates(self, sender_lock, fake_backend_factory):
        backend = fake_backend_factory([])
        backend.lookup_error = "connection refused"
        with pytest.raises(CellLookupError):
            await CellLedger(backend).list_cells(sender_lock)

    def test_page_size_must_be_positive(self, fake_backend_factory):
        with pytest.raises(ValueError):
            CellLedger(fake_backend_factory([]), page_size=0)


class TestMalformedPages:
    @pytest.mark.asyncio
    async def test_missing_objects(self, sender_lock):
        ledger = CellLedger(ScriptedBackend([{"last_cursor": "0x1"}]))
        with pytest.raises(CellLookupError):
            await ledger.list_cells(sender_lock)

    @pytest.mark.asyncio
    async def test_bad_cell(self, sender_lock):
        page = {"objects": [{"out_point": {"tx_hash": "zz", "index": "0x0"}}], "last_cursor": "0x1"}
        with pytest.raises(CellLookupError):
            await CellLedger(ScriptedBackend([page])).list_cells(sender_lock)

    @pytest.mark.asyncio
    async def test_missing_cursor(self, make_cell, sender_lock, rpc_cell):
        page = {"objects": [rpc_cell(make_cell(100))]}
        with pytest.raises(CellLookupError):
            await CellLedger(ScriptedBackend([page])).list_cells(sender_lock)

    @pytest.mark.asyncio
    async def test_repeated_cursor(self, make_cell, sender_lock, rpc_cell):
        page = {"objects": [rpc_cell(make_cell(100))], "last_cursor": "0xa"}
        backend = ScriptedBackend([page, dict(page), {"objects": [], "last_cursor": "0xa"}])
        with pytest.raises(CellLookupError):
            await CellLedger(backend).list_cells(sender_lock)
        assert backend.cursors == [None, "0xa"]


class TestBalance:
    @pytest.mark.asyncio
    async def test_balance(
        self, make_cell, make_udt_cell, sender_lock, udt_type_script, fake_backend_factory
    ):
        backend = fake_backend_factory(
            [make_cell(100), make_udt_cell(142, 40), make_cell(250), make_udt_cell(200, 2)]
        )
        capacity, tokens = await CellLedger(backend).balance(sender_lock, udt_type_script)
        assert capacity == 350 * 10**8
        assert tokens == 42

    @pytest.mark.asyncio
    async def test_balance_without_asset(self, make_cell, sender_lock, fake_backend_factory):
        backend = fake_backend_factory([make_cell(100)])
        assert await CellLedger(backend).balance(sender_lock) == (100 * 10**8, 0)
