"""
Transaction assembler for CKB and sUDT transfers.

Builds the unsigned transaction from:
- the cells chosen by coin selection (token cells before capacity top-up cells)
- one output per recipient, in request order
- change outputs back to the sender, subject to the dust policy

Assembly is pure: no I/O, no selection. ``verify_template`` re-checks every
balance and output rule; a failure there is a defect, never a user error.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence

from ckbcore.errors import AssemblyInvariantError
from ckbcore.models import CellDep, CellOutput, HashType, LiveCell, Script, TransactionTemplate
from ckbcore.serialization import occupied_capacity
from ckbcore.sudt import decode_amount, encode_amount, is_pure_capacity, is_token_cell
from ckbwallet.wallet.models import SelectionResult
from ckbwallet.wallet.signing import empty_witness
from loguru import logger

from funder.config import Recipient, TransferConfig

CellDepRegistry = Mapping[tuple[bytes, HashType], CellDep]


def native_target(recipients: Sequence[Recipient], config: TransferConfig) -> int:
    """Capacity to select for a CKB transfer: amounts plus the fixed fee."""
    return sum(r.amount for r in recipients) + config.tx_fee


def udt_capacity_requirement(recipient_count: int, config: TransferConfig) -> int:
    """
    Capacity an sUDT transfer must bring in: one cell floor per recipient,
    the fee, and one more floor reserved for token change.
    """
    return recipient_count * config.udt_cell_capacity + config.tx_fee + config.udt_cell_capacity


def capacity_topup_target(
    token_selection: SelectionResult, recipient_count: int, config: TransferConfig
) -> int:
    """Extra capacity a second, pure-capacity selection must provide (0 if none)."""
    required = udt_capacity_requirement(recipient_count, config)
    return max(0, required - token_selection.capacity)


def _new_template(cells: Sequence[LiveCell]) -> TransactionTemplate:
    return TransactionTemplate(
        inputs=[cell.to_input() for cell in cells],
        witnesses=[empty_witness() for _ in cells],
        input_cells=list(cells),
    )


def _add_output(
    template: TransactionTemplate,
    capacity: int,
    lock: Script,
    type_: Script | None = None,
    data: bytes = b"",
) -> None:
    template.outputs.append(CellOutput(capacity=capacity, lock=lock, type_=type_))
    template.outputs_data.append(data)


def assemble_native_transfer(
    selection: SelectionResult,
    recipients: Sequence[Recipient],
    change_lock: Script,
    config: TransferConfig,
) -> TransactionTemplate:
    """
    CKB transfer: one output per recipient plus at most one change output.

    A zero remainder produces no change. With ``native_change_dust_floor`` set,
    a remainder at or below the dust threshold is forfeited to the fee.
    """
    target = native_target(recipients, config)
    capacity = selection.capacity
    if capacity < target:
        raise AssemblyInvariantError(f"Selected capacity {capacity} below target {target}")

    for cell in selection.cells:
        if not is_pure_capacity(cell):
            raise AssemblyInvariantError(f"Token cell {cell.out_point} in a CKB transfer")

    template = _new_template(selection.cells)
    for recipient in recipients:
        _add_output(template, recipient.amount, recipient.lock)

    remainder = capacity - target
    forfeited = 0
    if remainder > 0:
        if config.native_change_dust_floor and remainder <= config.dust_threshold:
            logger.warning(f"Forfeiting {remainder} shannons of change to the fee (dust)")
            forfeited = remainder
        else:
            _add_output(template, remainder, change_lock)

    template.fee = config.tx_fee + forfeited
    logger.debug(
        f"Assembled CKB transfer: {len(template.inputs)} inputs, "
        f"{len(template.outputs)} outputs, fee {template.fee}"
    )
    return template


def assemble_udt_transfer(
    token_selection: SelectionResult,
    capacity_selection: SelectionResult | None,
    recipients: Sequence[Recipient],
    change_lock: Script,
    type_script: Script,
    config: TransferConfig,
) -> TransactionTemplate:
    """
    sUDT transfer: token inputs first, then capacity top-up inputs.

    Change policy:
    1. token leftover: token change at the cell floor, then pure capacity change
       for what is left after the floor and fee, if above the dust threshold
    2. no token leftover: pure capacity change if above the dust threshold
    3. otherwise the remainder is forfeited to the fee
    """
    for cell in token_selection.cells:
        if not is_token_cell(cell, type_script):
            raise AssemblyInvariantError(f"Cell {cell.out_point} does not carry the sUDT type")
    topup_cells = capacity_selection.cells if capacity_selection else []
    for cell in topup_cells:
        if not is_pure_capacity(cell):
            raise AssemblyInvariantError(f"Top-up cell {cell.out_point} carries a type script")

    cells = list(token_selection.cells) + list(topup_cells)
    floor = config.udt_cell_capacity

    token_in = sum(decode_amount(cell.data) for cell in token_selection.cells)
    token_out = sum(r.amount for r in recipients)
    if token_in < token_out:
        raise AssemblyInvariantError(f"Selected {token_in} sUDT below target {token_out}")

    capacity_in = sum(cell.capacity for cell in cells)
    capacity_left = capacity_in - floor * len(recipients) - config.tx_fee
    if capacity_left < 0:
        raise AssemblyInvariantError(
            f"Input capacity {capacity_in} cannot fund {len(recipients)} sUDT outputs"
        )

    template = _new_template(cells)
    for recipient in recipients:
        _add_output(template, floor, recipient.lock, type_script, encode_amount(recipient.amount))

    token_left = token_in - token_out
    forfeited = 0
    if token_left > 0:
        remaining = capacity_left - floor
        if remaining < 0:
            raise AssemblyInvariantError(
                f"No capacity for token change: {capacity_left} left, {floor} needed"
            )
        _add_output(template, floor, change_lock, type_script, encode_amount(token_left))
        if remaining > config.dust_threshold:
            _add_output(template, remaining, change_lock)
        else:
            forfeited = remaining
    elif capacity_left > config.dust_threshold:
        _add_output(template, capacity_left, change_lock)
    else:
        forfeited = capacity_left

    if forfeited:
        logger.warning(f"Forfeiting {forfeited} shannons of change to the fee (dust)")

    template.fee = config.tx_fee + forfeited
    logger.debug(
        f"Assembled sUDT transfer: {len(token_selection)} token + {len(topup_cells)} capacity "
        f"inputs, {len(template.outputs)} outputs, fee {template.fee}"
    )
    return template


def attach_cell_deps(template: TransactionTemplate, registry: CellDepRegistry) -> None:
    """
    Add the cell dep of every lock and type program used by inputs and outputs.
    Each dep is added once, in first-use order.
    """
    scripts: list[Script] = []
    for cell in template.input_cells:
        scripts.append(cell.lock)
        if cell.type_ is not None:
            scripts.append(cell.type_)
    for output in template.outputs:
        scripts.append(output.lock)
        if output.type_ is not None:
            scripts.append(output.type_)

    for script in scripts:
        dep = registry.get(script.key)
        if dep is None:
            raise AssemblyInvariantError(
                f"No cell dep for program 0x{script.code_hash.hex()} ({script.hash_type.value})"
            )
        if dep not in template.cell_deps:
            template.cell_deps.append(dep)


def _token_totals(
    scripts_and_data: Sequence[tuple[Script | None, bytes]],
) -> dict[Script, int]:
    totals: dict[Script, int] = {}
    for type_, data in scripts_and_data:
        if type_ is not None:
            totals[type_] = totals.get(type_, 0) + decode_amount(data)
    return totals


def verify_template(template: TransactionTemplate, config: TransferConfig) -> None:
    """
    Check balance and output rules of an assembled template.

    Raises:
        AssemblyInvariantError: On the first violated rule
    """
    if len(template.outputs) != len(template.outputs_data):
        raise AssemblyInvariantError(
            f"{len(template.outputs)} outputs but {len(template.outputs_data)} outputs_data"
        )
    if len(template.witnesses) != len(template.inputs):
        raise AssemblyInvariantError(
            f"{len(template.witnesses)} witnesses for {len(template.inputs)} inputs"
        )
    if [c.to_input() for c in template.input_cells] != template.inputs:
        raise AssemblyInvariantError("Inputs do not match the spent cells")
    if len({c.out_point for c in template.input_cells}) != len(template.input_cells):
        raise AssemblyInvariantError("Cell spent twice")

    forfeited = template.fee - config.tx_fee
    if forfeited < 0 or forfeited > config.dust_threshold:
        raise AssemblyInvariantError(f"Fee {template.fee} outside the allowed range")

    capacity_in = template.input_capacity
    capacity_out = template.output_capacity
    if capacity_in != capacity_out + template.fee:
        raise AssemblyInvariantError(
            f"Capacity does not balance: in {capacity_in}, out {capacity_out}, fee {template.fee}"
        )

    tokens_in = _token_totals([(c.type_, c.data) for c in template.input_cells])
    tokens_out = _token_totals(
        [(o.type_, d) for o, d in zip(template.outputs, template.outputs_data, strict=True)]
    )
    if tokens_in != tokens_out:
        raise AssemblyInvariantError(f"Token amounts do not balance: in {tokens_in}, out {tokens_out}")

    for index, (output, data) in enumerate(
        zip(template.outputs, template.outputs_data, strict=True)
    ):
        if output.capacity <= 0:
            raise AssemblyInvariantError(f"Output {index} has no capacity")
        # Without the native dust floor, small change is allowed as long as it is occupiable
        if (
            config.native_change_dust_floor
            and output.type_ is None
            and output.capacity < config.dust_threshold
        ):
            raise AssemblyInvariantError(
                f"Output {index} capacity {output.capacity} below dust threshold"
            )
        if not config.check_occupied_capacity:
            continue
        required = occupied_capacity(output, data)
        if output.capacity < required:
            raise AssemblyInvariantError(
                f"Output {index} capacity {output.capacity} below occupied {required}"
            )
