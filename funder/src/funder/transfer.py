"""
Transfer engine: drives one CKB or sUDT transfer end to end.

1. Enumerate the sender's cells (per asset kind)
2. Select inputs (sUDT: token cells, then a capacity top-up if needed)
3. Assemble, attach cell deps and verify the unsigned transaction
4. Sign and broadcast

Every external call is awaited in sequence. Any failure aborts the whole
transfer before anything is broadcast.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any

from ckbcore.crypto import lock_script_from_private_key
from ckbcore.errors import CellLookupError, FunderError
from ckbcore.models import (
    CellDep,
    HashType,
    OutPoint,
    Script,
    SignedTransaction,
    TransactionTemplate,
    hex_to_bytes,
)
from ckbwallet.backends.base import CkbBackend
from ckbwallet.wallet.ledger import CellLedger
from ckbwallet.wallet.models import SelectionResult
from ckbwallet.wallet.selection import CellSelector, capacity_of, select_cells, token_amount_of
from ckbwallet.wallet.signing import sign_transaction
from loguru import logger

from funder.config import AssetKind, Recipient, TransferConfig, TransferRequest
from funder.tx_builder import (
    assemble_native_transfer,
    assemble_udt_transfer,
    attach_cell_deps,
    capacity_topup_target,
    native_target,
    verify_template,
)

Signer = Callable[[TransactionTemplate, Any], SignedTransaction]


@dataclass
class TransferResult:
    tx_hash: str
    template: TransactionTemplate


class TransferEngine:
    """
    Builds, signs and broadcasts transfers from one sender at a time.

    The engine does not reserve cells: two transfers from the same sender must
    be run one after the other, with the first confirmed before the second
    enumerates cells.
    """

    def __init__(
        self,
        backend: CkbBackend,
        config: TransferConfig | None = None,
        selector: CellSelector = select_cells,
        signer: Signer = sign_transaction,
    ):
        self.backend = backend
        self.config = config or TransferConfig()
        self.ledger = CellLedger(backend, page_size=self.config.page_size)
        self.selector = selector
        self.signer = signer
        self._cell_deps: dict[tuple[bytes, HashType], CellDep] | None = None

    async def resolve_cell_deps(self) -> dict[tuple[bytes, HashType], CellDep]:
        """Resolve program locations once; later calls reuse the registry."""
        if self._cell_deps is not None:
            return self._cell_deps

        registry: dict[tuple[bytes, HashType], CellDep] = {}
        genesis: dict[str, Any] | None = None

        for source in self.config.cell_deps:
            if source.tx_hash is not None:
                tx_hash = hex_to_bytes(source.tx_hash)
            else:
                if genesis is None:
                    genesis = await self.backend.get_block_by_number(0)
                    if not genesis:
                        raise CellLookupError("Genesis block not available")
                try:
                    tx = genesis["transactions"][source.genesis_tx_index]
                    tx_hash = hex_to_bytes(tx["hash"])
                except (KeyError, IndexError, TypeError, ValueError) as e:
                    raise CellLookupError(
                        f"Genesis transaction {source.genesis_tx_index} not usable: {e}"
                    ) from e

            registry[source.program_key] = CellDep(
                out_point=OutPoint(tx_hash=tx_hash, index=source.output_index),
                dep_type=source.dep_type,
            )
            logger.debug(
                f"Cell dep for {source.code_hash[:10]}...: 0x{tx_hash.hex()}:{source.output_index}"
            )

        self._cell_deps = registry
        return registry

    def _check_request(self, request: TransferRequest) -> None:
        if request.asset != AssetKind.CKB:
            return
        for index, recipient in enumerate(request.recipients):
            if recipient.amount < self.config.dust_threshold:
                raise ValueError(
                    f"Recipient {index} amount {recipient.amount} is below the dust threshold "
                    f"{self.config.dust_threshold}"
                )

    async def build_native_transfer(
        self, recipients: Sequence[Recipient], sender_lock: Script
    ) -> TransactionTemplate:
        target = native_target(recipients, self.config)
        cells = await self.ledger.capacity_cells(sender_lock)
        logger.info(f"Selecting {target:,} shannons from {len(cells)} capacity cells...")
        selection = self.selector(cells, target, capacity_of, asset="CKB")

        template = assemble_native_transfer(selection, recipients, sender_lock, self.config)
        attach_cell_deps(template, await self.resolve_cell_deps())
        verify_template(template, self.config)
        return template

    async def build_udt_transfer(
        self, recipients: Sequence[Recipient], sender_lock: Script
    ) -> TransactionTemplate:
        type_script = self.config.udt_type_script()
        token_target = sum(r.amount for r in recipients)

        token_cells = await self.ledger.udt_cells(sender_lock, type_script)
        logger.info(f"Selecting {token_target:,} sUDT from {len(token_cells)} token cells...")
        token_selection = self.selector(token_cells, token_target, token_amount_of, asset="sUDT")

        capacity_selection: SelectionResult | None = None
        topup = capacity_topup_target(token_selection, len(recipients), self.config)
        if topup > 0:
            capacity_cells = await self.ledger.capacity_cells(sender_lock)
            logger.info(
                f"Token cells carry {token_selection.capacity:,} shannons, "
                f"topping up {topup:,} from {len(capacity_cells)} capacity cells..."
            )
            capacity_selection = self.selector(capacity_cells, topup, capacity_of, asset="CKB")

        template = assemble_udt_transfer(
            token_selection,
            capacity_selection,
            recipients,
            sender_lock,
            type_script,
            self.config,
        )
        attach_cell_deps(template, await self.resolve_cell_deps())
        verify_template(template, self.config)
        return template

    async def build_transfer(
        self, request: TransferRequest, sender_lock: Script
    ) -> TransactionTemplate:
        """Build and verify the unsigned transaction for ``request``."""
        self._check_request(request)
        if request.asset == AssetKind.CKB:
            return await self.build_native_transfer(request.recipients, sender_lock)
        return await self.build_udt_transfer(request.recipients, sender_lock)

    async def transfer(self, request: TransferRequest, private_key: Any) -> TransferResult:
        """
        Build, sign and broadcast ``request`` from the owner of ``private_key``.

        Raises:
            InsufficientFundsError: If the sender cannot fund the transfer
            CellLookupError: If cells or genesis data cannot be read
            TransactionSigningError: If signing fails
            BroadcastRejectedError: If the node rejects the transaction
        """
        try:
            sender_lock = lock_script_from_private_key(private_key)
            template = await self.build_transfer(request, sender_lock)
            logger.info(
                f"Built {request.asset.value} transfer of {request.total:,} to "
                f"{len(request.recipients)} recipients: "
                f"{len(template.inputs)} inputs, {len(template.outputs)} outputs"
            )

            signed = self.signer(template, private_key)
            tx_hash = await self.backend.broadcast_transaction(signed)
        except FunderError as e:
            logger.error(f"{request.asset.value} transfer failed: {e}")
            raise

        logger.info(f"{request.asset.value} transfer sent: {tx_hash}")
        return TransferResult(tx_hash=tx_hash, template=template)

    async def balance(self, owner: Script) -> tuple[int, int]:
        """(capacity in pure cells, configured sUDT amount) owned by ``owner``."""
        return await self.ledger.balance(owner, self.config.udt_type_script())
