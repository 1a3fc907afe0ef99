"""
Configuration for CKB transfers.
"""

from __future__ import annotations

from enum import Enum

from ckbcore.constants import (
    DEFAULT_DUST_THRESHOLD,
    DEFAULT_PAGE_SIZE,
    DEFAULT_TX_FEE,
    DEFAULT_UDT_CELL_CAPACITY,
    MAX_CAPACITY,
    MAX_UDT_AMOUNT,
    SIGHASH_TYPE_HASH,
    SUDT_DEVNET_CODE_HASH,
)
from ckbcore.crypto import lock_script_from_args
from ckbcore.models import DepType, HashType, Script, hex_to_bytes
from ckbwallet.backends.ckb_rpc import DEFAULT_RPC_TIMEOUT, DEFAULT_RPC_URL
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Owner lock hash of the dev chain sUDT issuer
SUDT_DEVNET_ARGS = "0xc219351b150b900e50a7039f1e448b844110927e5fd9bd30425806cb8ddff1fd"


class AssetKind(str, Enum):
    CKB = "ckb"
    UDT = "udt"


class ScriptConfig(BaseModel):
    """Script in its JSON form."""

    code_hash: str = Field(..., pattern=r"^0x[0-9a-fA-F]{64}$")
    hash_type: HashType
    args: str = Field(default="0x", pattern=r"^0x([0-9a-fA-F]{2})*$")

    def to_script(self) -> Script:
        return Script(
            code_hash=hex_to_bytes(self.code_hash),
            hash_type=self.hash_type,
            args=hex_to_bytes(self.args),
        )


class CellDepSource(BaseModel):
    """
    Where the code of one program lives.

    Either an explicit ``tx_hash`` or the index of a genesis block transaction;
    ``output_index`` points at the cell (or dep group) within it.
    """

    code_hash: str = Field(..., pattern=r"^0x[0-9a-fA-F]{64}$")
    hash_type: HashType
    dep_type: DepType
    output_index: int = Field(..., ge=0)
    genesis_tx_index: int | None = Field(default=None, ge=0)
    tx_hash: str | None = Field(default=None, pattern=r"^0x[0-9a-fA-F]{64}$")

    @model_validator(mode="after")
    def check_location(self) -> CellDepSource:
        if (self.genesis_tx_index is None) == (self.tx_hash is None):
            raise ValueError("Exactly one of genesis_tx_index or tx_hash must be set")
        return self

    @property
    def program_key(self) -> tuple[bytes, HashType]:
        return (hex_to_bytes(self.code_hash), self.hash_type)


def default_cell_deps() -> list[CellDepSource]:
    """Dev chain layout: secp256k1 dep group in genesis tx 1, sUDT code in genesis tx 0."""
    return [
        CellDepSource(
            code_hash="0x" + SIGHASH_TYPE_HASH.hex(),
            hash_type=HashType.TYPE,
            dep_type=DepType.DEP_GROUP,
            genesis_tx_index=1,
            output_index=0,
        ),
        CellDepSource(
            code_hash="0x" + SUDT_DEVNET_CODE_HASH.hex(),
            hash_type=HashType.DATA,
            dep_type=DepType.CODE,
            genesis_tx_index=0,
            output_index=8,
        ),
    ]


def default_udt_script() -> ScriptConfig:
    return ScriptConfig(
        code_hash="0x" + SUDT_DEVNET_CODE_HASH.hex(),
        hash_type=HashType.DATA,
        args=SUDT_DEVNET_ARGS,
    )


class TransferConfig(BaseModel):
    """Fee, dust and asset parameters passed to the transfer engine."""

    tx_fee: int = Field(default=DEFAULT_TX_FEE, ge=0, description="Fixed fee in shannons")
    dust_threshold: int = Field(
        default=DEFAULT_DUST_THRESHOLD,
        ge=0,
        description="Change at or below this capacity is not given its own output",
    )
    udt_cell_capacity: int = Field(
        default=DEFAULT_UDT_CELL_CAPACITY, gt=0, description="Capacity of every sUDT output"
    )
    page_size: int = Field(default=DEFAULT_PAGE_SIZE, ge=1, le=1000)
    native_change_dust_floor: bool = Field(
        default=True,
        description="Forfeit native change at or below dust_threshold instead of emitting it",
    )
    check_occupied_capacity: bool = Field(
        default=True,
        description="Reject outputs below their occupied capacity (shannon-denominated chains)",
    )
    udt: ScriptConfig = Field(default_factory=default_udt_script)
    cell_deps: list[CellDepSource] = Field(default_factory=default_cell_deps)

    @model_validator(mode="after")
    def check_udt_capacity(self) -> TransferConfig:
        if self.udt_cell_capacity <= self.dust_threshold:
            raise ValueError("udt_cell_capacity must exceed dust_threshold")
        return self

    def udt_type_script(self) -> Script:
        return self.udt.to_script()


class Recipient(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    lock: Script
    amount: int = Field(..., gt=0)

    @classmethod
    def from_args(cls, args_hex: str, amount: int) -> Recipient:
        """Recipient with the default secp256k1 lock for 20-byte blake160 ``args_hex``."""
        args = args_hex[2:] if args_hex.startswith("0x") else args_hex
        return cls(lock=lock_script_from_args(bytes.fromhex(args)), amount=amount)


class TransferRequest(BaseModel):
    """Ordered recipients of one asset kind. Recipients are never merged or reordered."""

    asset: AssetKind
    recipients: list[Recipient] = Field(..., min_length=1)

    @property
    def total(self) -> int:
        return sum(r.amount for r in self.recipients)

    @field_validator("recipients")
    @classmethod
    def check_amount_width(cls, v: list[Recipient], info) -> list[Recipient]:
        limit = MAX_UDT_AMOUNT if info.data.get("asset") == AssetKind.UDT else MAX_CAPACITY
        if sum(r.amount for r in v) > limit:
            raise ValueError(f"Total amount exceeds {limit}")
        return v


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=False
    )

    ckb_rpc_url: str = DEFAULT_RPC_URL
    rpc_timeout: float = DEFAULT_RPC_TIMEOUT

    log_level: str = "INFO"

    tx_fee: int = DEFAULT_TX_FEE
    dust_threshold: int = DEFAULT_DUST_THRESHOLD
    udt_cell_capacity: int = DEFAULT_UDT_CELL_CAPACITY
    native_change_dust_floor: bool = True
    check_occupied_capacity: bool = True

    udt_code_hash: str = "0x" + SUDT_DEVNET_CODE_HASH.hex()
    udt_hash_type: HashType = HashType.DATA
    udt_args: str = SUDT_DEVNET_ARGS

    def transfer_config(self) -> TransferConfig:
        return TransferConfig(
            tx_fee=self.tx_fee,
            dust_threshold=self.dust_threshold,
            udt_cell_capacity=self.udt_cell_capacity,
            native_change_dust_floor=self.native_change_dust_floor,
            check_occupied_capacity=self.check_occupied_capacity,
            udt=ScriptConfig(
                code_hash=self.udt_code_hash, hash_type=self.udt_hash_type, args=self.udt_args
            ),
        )


def get_settings() -> Settings:
    return Settings()
