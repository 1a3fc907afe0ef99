"""
Tests for the sUDT amount codec and cell classification.
"""

import pytest

from ckbcore.constants import MAX_UDT_AMOUNT, SIGHASH_TYPE_HASH, SUDT_DEVNET_CODE_HASH
from ckbcore.models import CellOutput, HashType, LiveCell, OutPoint, Script
from ckbcore.sudt import decode_amount, encode_amount, is_pure_capacity, is_token_cell

LOCK = Script(code_hash=SIGHASH_TYPE_HASH, hash_type=HashType.TYPE, args=b"\x11" * 20)
SUDT = Script(code_hash=SUDT_DEVNET_CODE_HASH, hash_type=HashType.DATA, args=b"\x22" * 32)


def _cell(type_=None, data=b""):
    return LiveCell(
        out_point=OutPoint(tx_hash=b"\x01" * 32, index=0),
        output=CellOutput(capacity=142 * 10**8, lock=LOCK, type_=type_),
        data=data,
    )


class TestEncodeAmount:
    def test_little_endian_16_bytes(self):
        assert encode_amount(1) == b"\x01" + bytes(15)
        assert encode_amount(0x0102) == b"\x02\x01" + bytes(14)

    def test_zero(self):
        assert encode_amount(0) == bytes(16)

    def test_max(self):
        assert encode_amount(MAX_UDT_AMOUNT) == b"\xff" * 16

    def test_negative_rejected(self):
        with pytest.raises(ValueError):
            encode_amount(-1)

    def test_overflow_rejected(self):
        with pytest.raises(ValueError):
            encode_amount(MAX_UDT_AMOUNT + 1)


class TestDecodeAmount:
    @pytest.mark.parametrize("amount", [0, 1, 150, 10**18, MAX_UDT_AMOUNT])
    def test_round_trip(self, amount):
        assert decode_amount(encode_amount(amount)) == amount

    def test_empty_payload(self):
        assert decode_amount(b"") == 0

    @pytest.mark.parametrize("size", [1, 8, 15])
    def test_short_payload_carries_nothing(self, size):
        assert decode_amount(b"\xff" * size) == 0

    def test_trailing_bytes_ignored(self):
        assert decode_amount(encode_amount(500) + b"extension data") == 500


class TestClassification:
    def test_pure_capacity(self):
        cell = _cell()
        assert is_pure_capacity(cell)
        assert not is_token_cell(cell)

    def test_token_cell(self):
        cell = _cell(type_=SUDT, data=encode_amount(10))
        assert not is_pure_capacity(cell)
        assert is_token_cell(cell)
        assert is_token_cell(cell, SUDT)

    def test_token_cell_of_other_asset(self):
        other = Script(code_hash=SUDT_DEVNET_CODE_HASH, hash_type=HashType.DATA, args=b"\x33" * 32)
        cell = _cell(type_=other, data=encode_amount(10))
        assert not is_token_cell(cell, SUDT)
