"""
Coin selection over live cells.

A selector walks a cell sequence and returns the cells whose accumulated
value reaches a target. Selectors are interchangeable: anything matching
``CellSelector`` can be handed to the transfer engine.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from typing import Protocol

from ckbcore.errors import InsufficientFundsError
from ckbcore.models import LiveCell
from ckbcore.sudt import decode_amount
from loguru import logger

from ckbwallet.wallet.models import SelectionResult

ValueOf = Callable[[LiveCell], int]


class CellSelector(Protocol):
    def __call__(
        self,
        cells: Sequence[LiveCell],
        target: int,
        value_of: ValueOf,
        *,
        asset: str = "CKB",
    ) -> SelectionResult: ...


def capacity_of(cell: LiveCell) -> int:
    return cell.capacity


def token_amount_of(cell: LiveCell) -> int:
    return decode_amount(cell.data)


def select_cells(
    cells: Sequence[LiveCell],
    target: int,
    value_of: ValueOf,
    *,
    asset: str = "CKB",
) -> SelectionResult:
    """
    Greedy first-fit selection.

    Takes cells in the given order until the running total reaches ``target``.
    Deterministic for a given ledger snapshot; makes no attempt to minimize
    the number of inputs.

    Raises:
        InsufficientFundsError: If all cells together fall short of ``target``
    """
    selected: list[LiveCell] = []
    total = 0

    if target <= 0:
        return SelectionResult(cells=selected, target=target, value=0, asset=asset)

    for cell in cells:
        selected.append(cell)
        total += value_of(cell)
        if total >= target:
            result = SelectionResult(cells=selected, target=target, value=total, asset=asset)
            logger.debug(
                f"Selected {len(selected)}/{len(cells)} cells: {total} {asset} for target {target} "
                f"(excess {result.excess})"
            )
            return result

    raise InsufficientFundsError(asset, target, total, len(cells))


def select_largest_first(
    cells: Sequence[LiveCell],
    target: int,
    value_of: ValueOf,
    *,
    asset: str = "CKB",
) -> SelectionResult:
    """Like select_cells, but spends the most valuable cells first."""
    ordered = sorted(cells, key=value_of, reverse=True)
    return select_cells(ordered, target, value_of, asset=asset)
