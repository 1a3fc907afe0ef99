"""
CKB node backend implementations.

Available backends:
- CkbRpcBackend: CKB node JSON-RPC with the built-in indexer
"""

from ckbwallet.backends.base import CkbBackend
from ckbwallet.backends.ckb_rpc import CkbRpcBackend, CkbRpcError

__all__ = [
    "CkbBackend",
    "CkbRpcBackend",
    "CkbRpcError",
]
