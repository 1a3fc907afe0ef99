"""
Command-line interface for CKB Funder.
"""

from __future__ import annotations

import asyncio
import sys
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Annotated

import typer
from ckbcore.constants import SHANNONS_PER_CKB
from ckbcore.crypto import lock_script_from_private_key, pubkey_hash
from ckbcore.errors import FunderError
from ckbwallet.backends.ckb_rpc import CkbRpcBackend
from loguru import logger

from funder.config import AssetKind, Recipient, Settings, TransferRequest, get_settings
from funder.transfer import TransferEngine

app = typer.Typer(
    name="ckb-funder",
    help="CKB Funder - Send CKB and sUDT from a single key",
    add_completion=False,
)


def setup_logging(level: str) -> None:
    """Configure loguru logging."""
    logger.remove()
    logger.add(
        sys.stderr,
        level=level.upper(),
        format="<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | {message}",
    )


def read_private_key(path: Path) -> str:
    """Read a hex private key file (surrounding whitespace ignored)."""
    if not path.exists():
        raise ValueError(f"Key file not found: {path}")
    key = path.read_text().strip()
    if not key:
        raise ValueError(f"Key file is empty: {path}")
    return key


def parse_ckb(value: str) -> int:
    """Parse a CKB amount (decimals allowed) into shannons."""
    try:
        shannons = Decimal(value) * SHANNONS_PER_CKB
    except InvalidOperation as e:
        raise ValueError(f"Invalid CKB amount: {value}") from e
    if shannons != shannons.to_integral_value():
        raise ValueError(f"CKB amount has more than 8 decimals: {value}")
    return int(shannons)


def parse_recipient(value: str, asset: AssetKind) -> Recipient:
    """Parse ``ARGS:AMOUNT``; AMOUNT is in CKB for CKB transfers, raw units for sUDT."""
    args, sep, amount = value.rpartition(":")
    if not sep or not args:
        raise ValueError(f"Recipient must be ARGS:AMOUNT, got {value!r}")
    units = parse_ckb(amount) if asset == AssetKind.CKB else int(amount)
    return Recipient.from_args(args, units)


def load_settings(rpc_url: str | None) -> Settings:
    settings = get_settings()
    if rpc_url:
        settings.ckb_rpc_url = rpc_url
    return settings


def build_engine(settings: Settings) -> TransferEngine:
    backend = CkbRpcBackend(rpc_url=settings.ckb_rpc_url, timeout=settings.rpc_timeout)
    return TransferEngine(backend, settings.transfer_config())


RpcUrlOption = Annotated[
    str | None, typer.Option("--rpc-url", envvar="CKB_RPC_URL", help="CKB node RPC URL")
]
KeyFileOption = Annotated[
    Path, typer.Option("--key-file", "-k", help="Sender private key file (hex)")
]
LogLevelOption = Annotated[str, typer.Option("--log-level", "-l", help="Log level")]


@app.command()
def balance(
    key_file: KeyFileOption,
    rpc_url: RpcUrlOption = None,
    log_level: LogLevelOption = "INFO",
) -> None:
    """Show the CKB and sUDT balance of a key."""
    setup_logging(log_level)
    try:
        key = read_private_key(key_file)
        settings = load_settings(rpc_url)
    except ValueError as e:
        logger.error(str(e))
        raise typer.Exit(1)

    try:
        asyncio.run(_show_balance(settings, key))
    except FunderError as e:
        logger.error(f"Balance lookup failed: {e}")
        raise typer.Exit(1)


async def _show_balance(settings: Settings, key: str) -> None:
    engine = build_engine(settings)
    try:
        capacity, tokens = await engine.balance(lock_script_from_private_key(key))
        tip = await engine.backend.get_tip_block_number()
    finally:
        await engine.backend.close()

    typer.echo(f"Lock args: 0x{pubkey_hash(key).hex()}")
    typer.echo(f"CKB balance: {capacity / SHANNONS_PER_CKB:,.8f} CKB ({capacity:,} shannons)")
    typer.echo(f"sUDT balance: {tokens:,}")
    typer.echo(f"Tip block: {tip:,}")


def _send(
    asset: AssetKind,
    key_file: Path,
    recipients: list[str],
    rpc_url: str | None,
    dry_run: bool,
) -> None:
    try:
        key = read_private_key(key_file)
        settings = load_settings(rpc_url)
        request = TransferRequest(
            asset=asset, recipients=[parse_recipient(r, asset) for r in recipients]
        )
    except (ValueError, FunderError) as e:
        logger.error(str(e))
        raise typer.Exit(1)

    try:
        tx_hash = asyncio.run(_run_transfer(settings, request, key, dry_run))
    except (FunderError, ValueError) as e:
        logger.error(f"Transfer failed: {e}")
        raise typer.Exit(1)

    if tx_hash:
        typer.echo(tx_hash)


async def _run_transfer(
    settings: Settings, request: TransferRequest, key: str, dry_run: bool
) -> str | None:
    engine = build_engine(settings)
    try:
        if dry_run:
            template = await engine.build_transfer(request, lock_script_from_private_key(key))
            typer.echo(f"tx hash: 0x{template.tx_hash().hex()}")
            typer.echo(
                f"inputs: {len(template.inputs)}  outputs: {len(template.outputs)}  "
                f"fee: {template.fee:,} shannons"
            )
            return None
        result = await engine.transfer(request, key)
        return result.tx_hash
    finally:
        await engine.backend.close()


@app.command("send-ckb")
def send_ckb(
    key_file: KeyFileOption,
    to: Annotated[
        list[str], typer.Option("--to", "-t", help="Recipient as LOCK_ARGS:CKB (repeatable)")
    ],
    rpc_url: RpcUrlOption = None,
    dry_run: Annotated[
        bool, typer.Option("--dry-run", help="Build and verify without broadcasting")
    ] = False,
    log_level: LogLevelOption = "INFO",
) -> None:
    """Send CKB to one or more recipients."""
    setup_logging(log_level)
    _send(AssetKind.CKB, key_file, to, rpc_url, dry_run)


@app.command("send-udt")
def send_udt(
    key_file: KeyFileOption,
    to: Annotated[
        list[str], typer.Option("--to", "-t", help="Recipient as LOCK_ARGS:AMOUNT (repeatable)")
    ],
    rpc_url: RpcUrlOption = None,
    dry_run: Annotated[
        bool, typer.Option("--dry-run", help="Build and verify without broadcasting")
    ] = False,
    log_level: LogLevelOption = "INFO",
) -> None:
    """Send the configured sUDT to one or more recipients."""
    setup_logging(log_level)
    _send(AssetKind.UDT, key_file, to, rpc_url, dry_run)


@app.command()
def fund(
    key_file: KeyFileOption,
    recipient_key_files: Annotated[
        list[Path],
        typer.Option("--recipient-key-file", "-r", help="Key file of a node to fund with CKB"),
    ],
    udt_recipient_key_files: Annotated[
        list[Path] | None,
        typer.Option(
            "--udt-recipient-key-file",
            "-u",
            help="Key file of a node to fund with sUDT (defaults to the CKB recipients)",
        ),
    ] = None,
    ckb: Annotated[str, typer.Option("--ckb", help="CKB per recipient")] = "1000000000",
    udt: Annotated[
        int, typer.Option("--udt", help="sUDT per recipient (0 to skip)")
    ] = 1_000_000_000,
    wait: Annotated[
        float, typer.Option("--wait", help="Seconds to wait between CKB and sUDT transfers")
    ] = 10.0,
    rpc_url: RpcUrlOption = None,
    log_level: LogLevelOption = "INFO",
) -> None:
    """Fund a set of nodes: one CKB transfer, then one sUDT transfer."""
    setup_logging(log_level)
    try:
        key = read_private_key(key_file)
        settings = load_settings(rpc_url)
        ckb_amount = parse_ckb(ckb)
        ckb_args = [pubkey_hash(read_private_key(p)).hex() for p in recipient_key_files]
        udt_args = [
            pubkey_hash(read_private_key(p)).hex()
            for p in (udt_recipient_key_files or recipient_key_files)
        ]
        requests = [
            TransferRequest(
                asset=AssetKind.CKB,
                recipients=[Recipient.from_args(a, ckb_amount) for a in ckb_args],
            )
        ]
        if udt > 0:
            requests.append(
                TransferRequest(
                    asset=AssetKind.UDT,
                    recipients=[Recipient.from_args(a, udt) for a in udt_args],
                )
            )
    except (ValueError, FunderError) as e:
        logger.error(str(e))
        raise typer.Exit(1)

    for i, args in enumerate(ckb_args):
        logger.info(f"  Node{i + 1}: args = 0x{args}")

    try:
        asyncio.run(_run_fund(settings, requests, key, wait))
    except (FunderError, ValueError) as e:
        logger.error(f"Funding failed: {e}")
        raise typer.Exit(1)


async def _run_fund(
    settings: Settings, requests: list[TransferRequest], key: str, wait: float
) -> None:
    engine = build_engine(settings)
    try:
        for i, request in enumerate(requests):
            if i > 0:
                # The next transfer must not see cells the previous one spent
                logger.info(f"Waiting {wait:.0f}s for the previous transaction to commit...")
                await asyncio.sleep(wait)
            result = await engine.transfer(request, key)
            typer.echo(f"{request.asset.value} transfer: {result.tx_hash}")
    finally:
        await engine.backend.close()


def main() -> None:
    app()


if __name__ == "__main__":
    main()
