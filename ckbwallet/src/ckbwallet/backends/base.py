"""
Base CKB node backend interface.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from ckbcore.models import SignedTransaction


class CkbBackend(ABC):
    """
    Abstract CKB node interface.
    Implementations expose the indexer cell search, genesis lookup and
    transaction submission; nothing else is needed to fund a transfer.
    """

    @abstractmethod
    async def get_cells(
        self,
        search_key: dict[str, Any],
        order: str,
        limit: int,
        after: str | None = None,
    ) -> dict[str, Any]:
        """
        Fetch one page of live cells.

        Returns the raw page: ``{"objects": [...], "last_cursor": "0x..."}``.
        Raises CellLookupError if the source cannot be reached.
        """

    @abstractmethod
    async def get_block_by_number(self, block_number: int) -> dict[str, Any] | None:
        """Get a block (JSON form) by number, None if unknown"""

    @abstractmethod
    async def get_tip_block_number(self) -> int:
        """Get current chain height"""

    @abstractmethod
    async def broadcast_transaction(self, tx: SignedTransaction) -> str:
        """
        Submit a signed transaction, returns its hash (0x-hex).
        Raises BroadcastRejectedError if the node refuses it.
        """

    async def close(self) -> None:
        """Close backend connection"""
        pass
