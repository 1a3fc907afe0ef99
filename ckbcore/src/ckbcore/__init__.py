"""
ckbcore - Core library for CKB funding components

Provides chain models, molecule serialization, key handling and the sUDT codec.
"""

__version__ = "0.1.0"

from ckbcore.constants import (
    DEFAULT_DUST_THRESHOLD,
    DEFAULT_TX_FEE,
    DEFAULT_UDT_CELL_CAPACITY,
    SHANNONS_PER_CKB,
    SIGHASH_TYPE_HASH,
)
from ckbcore.errors import (
    AssemblyInvariantError,
    BroadcastRejectedError,
    CellLookupError,
    FunderError,
    InsufficientFundsError,
    TransactionSigningError,
)
from ckbcore.models import (
    CellDep,
    CellInput,
    CellOutput,
    DepType,
    HashType,
    LiveCell,
    OutPoint,
    Script,
    SignedTransaction,
    TransactionTemplate,
)
from ckbcore.sudt import decode_amount, encode_amount

__all__ = [
    "AssemblyInvariantError",
    "BroadcastRejectedError",
    "CellDep",
    "CellInput",
    "CellLookupError",
    "CellOutput",
    "DEFAULT_DUST_THRESHOLD",
    "DEFAULT_TX_FEE",
    "DEFAULT_UDT_CELL_CAPACITY",
    "DepType",
    "FunderError",
    "HashType",
    "InsufficientFundsError",
    "LiveCell",
    "OutPoint",
    "SHANNONS_PER_CKB",
    "SIGHASH_TYPE_HASH",
    "Script",
    "SignedTransaction",
    "TransactionSigningError",
    "TransactionTemplate",
    "decode_amount",
    "encode_amount",
]
