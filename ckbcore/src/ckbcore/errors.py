"""
Error taxonomy for cell lookup, selection, assembly, signing and broadcast.

Every failure aborts the enclosing transfer: nothing is persisted before the
broadcast, so there is nothing to roll back.
"""

from __future__ import annotations


class FunderError(Exception):
    """Base class for all funding errors."""


class CellLookupError(FunderError):
    """The cell source is unreachable or returned a malformed page."""


class InsufficientFundsError(FunderError, ValueError):
    """The selection target cannot be reached from the available cells."""

    def __init__(self, asset: str, target: int, available: int, examined: int):
        self.asset = asset
        self.target = target
        self.available = available
        self.examined = examined
        super().__init__(
            f"Insufficient {asset}: need {target}, have {available} "
            f"across {examined} cells (short {self.shortfall})"
        )

    @property
    def shortfall(self) -> int:
        return self.target - self.available


class AssemblyInvariantError(FunderError):
    """An assembled transaction does not balance or breaks an output rule."""


class TransactionSigningError(FunderError):
    pass


class BroadcastRejectedError(FunderError):
    """The node refused the signed transaction."""
