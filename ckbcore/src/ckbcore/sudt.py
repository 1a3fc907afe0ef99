"""
Simple UDT amount codec and cell classification.

The token amount is the first 16 bytes of the cell data, little-endian.
"""

from __future__ import annotations

from loguru import logger

from ckbcore.constants import MAX_UDT_AMOUNT, UDT_AMOUNT_SIZE
from ckbcore.models import LiveCell, Script


def decode_amount(payload: bytes) -> int:
    """Token amount carried by ``payload``; shorter payloads carry nothing."""
    if len(payload) < UDT_AMOUNT_SIZE:
        if payload:
            logger.debug(f"Ignoring {len(payload)}-byte sUDT payload (need {UDT_AMOUNT_SIZE})")
        return 0
    return int.from_bytes(payload[:UDT_AMOUNT_SIZE], "little")


def encode_amount(amount: int) -> bytes:
    if amount < 0 or amount > MAX_UDT_AMOUNT:
        raise ValueError(f"sUDT amount out of range: {amount}")
    return amount.to_bytes(UDT_AMOUNT_SIZE, "little")


def is_pure_capacity(cell: LiveCell) -> bool:
    return cell.type_ is None


def is_token_cell(cell: LiveCell, type_script: Script | None = None) -> bool:
    """True if the cell carries a type script (``type_script`` exactly, when given)."""
    if cell.type_ is None:
        return False
    return type_script is None or cell.type_ == type_script
