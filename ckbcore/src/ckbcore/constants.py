"""
CKB chain and funding policy constants.

Capacity is measured in shannons (1 CKB = 10^8 shannons). An output must hold
at least as much capacity as the bytes it occupies on chain:
- a pure secp256k1 cell (8 capacity + 53 lock) occupies 61 CKB
- an sUDT cell adds a 65-byte type script and 16 bytes of data: 142 CKB
"""

from __future__ import annotations

SHANNONS_PER_CKB = 100_000_000

# Widths of the two asset dimensions
MAX_CAPACITY = 2**64 - 1
MAX_UDT_AMOUNT = 2**128 - 1
UDT_AMOUNT_SIZE = 16  # bytes, little-endian u128

# secp256k1-blake160 sighash-all lock (type hash, hash_type "type")
SIGHASH_TYPE_HASH = bytes.fromhex(
    "9bd7e06f3ecf4be0f2fcd2188b23f1b9fcc88e5d4b65a8637b17723bbda3cce8"
)
BLAKE160_SIZE = 20
SIGNATURE_SIZE = 65  # compact signature + recovery id

# sUDT as deployed in the dev chain genesis (hash_type "data")
SUDT_DEVNET_CODE_HASH = bytes.fromhex(
    "e1e354d6d643ad42724d40967e334984534e0367405c5ae42a9d7d63d77df419"
)

# Fixed transaction fee; fee-rate estimation is not performed
DEFAULT_TX_FEE = 100_000  # shannons

# Change below or at this value is not worth a new output. Equal to the
# occupied capacity of a pure secp256k1 cell.
DEFAULT_DUST_THRESHOLD = 61 * SHANNONS_PER_CKB

# Capacity carried by every sUDT output (recipient or token change)
DEFAULT_UDT_CELL_CAPACITY = 142 * SHANNONS_PER_CKB

# Indexer page size for get_cells
DEFAULT_PAGE_SIZE = 100
