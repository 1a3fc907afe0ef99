"""
Read-only view over the live cells owned by a lock script.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from ckbcore.constants import DEFAULT_PAGE_SIZE
from ckbcore.errors import CellLookupError
from ckbcore.models import LiveCell, Script
from ckbcore.sudt import decode_amount
from loguru import logger

from ckbwallet.backends.base import CkbBackend


@dataclass(frozen=True)
class AssetFilter:
    """
    Restricts enumeration to one asset kind.

    ``type_script=None`` selects pure-capacity cells (no type script); otherwise
    only cells whose type script equals ``type_script`` exactly.
    """

    type_script: Script | None = None

    @classmethod
    def pure_capacity(cls) -> AssetFilter:
        return cls()

    @classmethod
    def asset(cls, type_script: Script) -> AssetFilter:
        return cls(type_script=type_script)

    def search_filter(self) -> dict[str, Any]:
        if self.type_script is None:
            # Type script length in [0, 1): no type script at all
            return {"script_len_range": ["0x0", "0x1"]}
        return {"script": self.type_script.to_json()}

    def matches(self, cell: LiveCell) -> bool:
        # The indexer filter is a prefix match, so exact equality is rechecked here
        return cell.type_ == self.type_script


class CellLedger:
    """
    Enumerates live cells through a backend, following cursors until the
    source returns an empty page. Results keep the indexer's ascending order.
    """

    def __init__(self, backend: CkbBackend, page_size: int = DEFAULT_PAGE_SIZE):
        if page_size < 1:
            raise ValueError(f"page_size must be positive, got {page_size}")
        self.backend = backend
        self.page_size = page_size

    async def list_cells(
        self, owner: Script, asset_filter: AssetFilter | None = None
    ) -> list[LiveCell]:
        search_key: dict[str, Any] = {
            "script": owner.to_json(),
            "script_type": "lock",
            "script_search_mode": "exact",
            "filter": asset_filter.search_filter() if asset_filter else None,
            "with_data": True,
            "group_by_transaction": False,
        }

        cells: list[LiveCell] = []
        cursor: str | None = None
        pages = 0

        while True:
            page = await self.backend.get_cells(search_key, "asc", self.page_size, cursor)
            pages += 1

            objects = page.get("objects")
            if not isinstance(objects, list):
                raise CellLookupError(f"Malformed cell page: missing objects (page {pages})")
            if not objects:
                break

            for obj in objects:
                try:
                    cell = LiveCell.from_rpc(obj)
                except (KeyError, TypeError, ValueError) as e:
                    raise CellLookupError(f"Malformed cell in page {pages}: {e}") from e
                if asset_filter is None or asset_filter.matches(cell):
                    cells.append(cell)

            last_cursor = page.get("last_cursor")
            if not isinstance(last_cursor, str) or last_cursor == cursor:
                raise CellLookupError(f"Malformed pagination cursor: {last_cursor!r}")
            cursor = last_cursor

        logger.debug(f"Listed {len(cells)} cells in {pages} pages")
        return cells

    async def capacity_cells(self, owner: Script) -> list[LiveCell]:
        return await self.list_cells(owner, AssetFilter.pure_capacity())

    async def udt_cells(self, owner: Script, type_script: Script) -> list[LiveCell]:
        return await self.list_cells(owner, AssetFilter.asset(type_script))

    async def balance(self, owner: Script, type_script: Script | None = None) -> tuple[int, int]:
        """(capacity in pure cells, token amount in ``type_script`` cells)"""
        capacity = sum(cell.capacity for cell in await self.capacity_cells(owner))
        tokens = 0
        if type_script is not None:
            tokens = sum(
                decode_amount(cell.data) for cell in await self.udt_cells(owner, type_script)
            )
        return capacity, tokens
