"""
Wallet data models.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from ckbcore.models import LiveCell
from ckbcore.sudt import decode_amount


@dataclass
class SelectionResult:
    """Result of coin selection"""

    cells: list[LiveCell] = field(default_factory=list)
    target: int = 0
    value: int = 0  # accumulated in the selected dimension
    asset: str = "CKB"

    @property
    def capacity(self) -> int:
        return sum(cell.capacity for cell in self.cells)

    @property
    def token_amount(self) -> int:
        return sum(decode_amount(cell.data) for cell in self.cells if cell.type_ is not None)

    @property
    def excess(self) -> int:
        return self.value - self.target

    def __len__(self) -> int:
        return len(self.cells)
