"""
crosslock/core/models.py

Settlement data model.

═══════════════════════════════════════════════════════════════════
WIRE CONTRACTS: locked. Changing field order changes every hash.
═══════════════════════════════════════════════════════════════════

CONTRACT 1: order_hash
    H( hashlock || maker || token || be64 amount || be64 safety_deposit
       || timelocks(32) || be32 expiration_time || u8 asset_is_native
       || be256 dst_amount || dutch_auction_data_hash
       || be64 max_cancellation_premium || be32 cancellation_auction_duration
       || u8 allow_multiple_fills || be64 salt )
    maker and token enter as key_bytes(name).
    timelocks enter as the template (deployed_at as supplied by the maker).

CONTRACT 2: Addresses
    order   = derive_address("order", order_hash)
    escrow  = derive_address("escrow", order_hash, hashlock, creator,
                             recipient, token, be64 amount,
                             be64 safety_deposit, be32 rescue_start)

CONTRACT 3: Escrow union
    Side.SRC: creator = maker,    recipient = taker, resolver = taker
    Side.DST: creator = resolver, recipient = maker, resolver = creator
    Every withdraw/cancel path reads only the shared accessors.
═══════════════════════════════════════════════════════════════════
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, ClassVar, Dict, Optional, Union

from crosslock.core.arith import U32_MAX, U64_MAX, U256_MAX
from crosslock.core.hashing import (
    HASH_BYTES,
    be32,
    be64,
    be256,
    flag,
    hashv,
    key_bytes,
)
from crosslock.core.merkle import parts_amount
from crosslock.core.timelocks import Stage, Timelocks

ADDRESS_NAMESPACE = b"crosslock-derived-address"

# ─────────────────────────────────────────────────────────────
# Record sizes (bytes), used for storage-deposit sizing
# ─────────────────────────────────────────────────────────────

DISCRIMINATOR_BYTES = 8
KEY_BYTES           = 32
HOLDING_RECORD_SIZE = 165

ORDER_RECORD_SIZE = DISCRIMINATOR_BYTES + sum([
    HASH_BYTES,     # order_hash
    HASH_BYTES,     # hashlock
    KEY_BYTES,      # maker
    KEY_BYTES,      # token
    8,              # amount
    8,              # remaining_amount
    8,              # safety_deposit
    32,             # timelocks
    4,              # expiration_time
    1,              # asset_is_native
    32,             # dst_amount
    HASH_BYTES,     # dutch_auction_data_hash
    8,              # max_cancellation_premium
    4,              # cancellation_auction_duration
    1,              # allow_multiple_fills
    8,              # salt
])

ESCROW_SRC_RECORD_SIZE = DISCRIMINATOR_BYTES + sum([
    HASH_BYTES, HASH_BYTES,         # order_hash, hashlock
    KEY_BYTES, KEY_BYTES, KEY_BYTES,  # maker, taker, token
    8, 8,                           # amount, safety_deposit
    32,                             # timelocks
    1,                              # asset_is_native
    32,                             # dst_amount
    4,                              # rescue_start
])

ESCROW_DST_RECORD_SIZE = DISCRIMINATOR_BYTES + sum([
    HASH_BYTES, HASH_BYTES,
    KEY_BYTES, KEY_BYTES, KEY_BYTES,  # creator, recipient, token
    8, 8,
    32,
    1,
    4,
])


# ─────────────────────────────────────────────────────────────
# Address derivation
# ─────────────────────────────────────────────────────────────

def derive_address(*seeds: bytes) -> str:
    """Lowercase hex SHA-256 over the seeds and the address namespace."""
    return hashv(*seeds, ADDRESS_NAMESPACE).hex()


def order_address(order_hash: bytes) -> str:
    return derive_address(b"order", order_hash)


def escrow_address(
    order_hash:     bytes,
    hashlock:       bytes,
    creator:        str,
    recipient:      str,
    token:          str,
    amount:         int,
    safety_deposit: int,
    rescue_start:   int,
) -> str:
    return derive_address(
        b"escrow",
        order_hash,
        hashlock,
        key_bytes(creator),
        key_bytes(recipient),
        key_bytes(token),
        be64(amount),
        be64(safety_deposit),
        be32(rescue_start),
    )


# ─────────────────────────────────────────────────────────────
# Holding record references
# ─────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class HoldingRef:
    """Identity of an asset-holding record supplied by the caller."""
    owner: str
    token: str


# ─────────────────────────────────────────────────────────────
# Orders
# ─────────────────────────────────────────────────────────────

def _require_hash(name: str, value: bytes) -> None:
    if not isinstance(value, (bytes, bytearray)) or len(value) != HASH_BYTES:
        raise ValueError(f"{name} must be {HASH_BYTES} bytes")


def _require_uint(name: str, value: int, maximum: int) -> None:
    if isinstance(value, bool) or not isinstance(value, int) or not 0 <= value <= maximum:
        raise ValueError(f"{name} out of range: {value!r}")


@dataclass(frozen=True)
class OrderParams:
    """
    Maker intent: every economic term the order_hash commits to.

    Range checks here are structural (field widths). Economic checks
    (zero amounts, deposit bounds, expiry) belong to the order manager and
    raise EscrowError subclasses.
    """

    hashlock:                      bytes
    token:                         str
    amount:                        int
    safety_deposit:                int
    timelocks:                     Timelocks
    expiration_time:               int
    asset_is_native:               bool
    dst_amount:                    int
    dutch_auction_data_hash:       bytes
    max_cancellation_premium:      int = 0
    cancellation_auction_duration: int = 0
    allow_multiple_fills:          bool = False
    salt:                          int = 0

    def __post_init__(self):
        _require_hash("hashlock", self.hashlock)
        _require_hash("dutch_auction_data_hash", self.dutch_auction_data_hash)
        _require_uint("amount", self.amount, U64_MAX)
        _require_uint("safety_deposit", self.safety_deposit, U64_MAX)
        _require_uint("expiration_time", self.expiration_time, U32_MAX)
        _require_uint("dst_amount", self.dst_amount, U256_MAX)
        _require_uint("max_cancellation_premium", self.max_cancellation_premium, U64_MAX)
        _require_uint(
            "cancellation_auction_duration", self.cancellation_auction_duration, U32_MAX
        )
        _require_uint("salt", self.salt, U64_MAX)
        if not isinstance(self.timelocks, Timelocks):
            raise TypeError(
                f"timelocks must be Timelocks, got {type(self.timelocks).__name__}"
            )

    @property
    def parts_amount(self) -> int:
        return parts_amount(self.hashlock)

    def order_hash(self, maker: str) -> bytes:
        """CONTRACT 1."""
        return hashv(
            self.hashlock,
            key_bytes(maker),
            key_bytes(self.token),
            be64(self.amount),
            be64(self.safety_deposit),
            self.timelocks.to_bytes(),
            be32(self.expiration_time),
            flag(self.asset_is_native),
            be256(self.dst_amount),
            self.dutch_auction_data_hash,
            be64(self.max_cancellation_premium),
            be32(self.cancellation_auction_duration),
            flag(self.allow_multiple_fills),
            be64(self.salt),
        )


@dataclass
class Order:
    """
    A live order. remaining_amount is the only field mutated after creation.
    """

    order_hash:                    bytes
    hashlock:                      bytes
    maker:                         str
    token:                         str
    amount:                        int
    remaining_amount:              int
    safety_deposit:                int
    timelocks:                     Timelocks
    expiration_time:               int
    asset_is_native:               bool
    dst_amount:                    int
    dutch_auction_data_hash:       bytes
    max_cancellation_premium:      int
    cancellation_auction_duration: int
    allow_multiple_fills:          bool
    salt:                          int

    @classmethod
    def from_params(
        cls,
        maker:     str,
        params:    OrderParams,
        timelocks: Timelocks,
    ) -> "Order":
        return cls(
            order_hash=                    params.order_hash(maker),
            hashlock=                      bytes(params.hashlock),
            maker=                         maker,
            token=                         params.token,
            amount=                        params.amount,
            remaining_amount=              params.amount,
            safety_deposit=                params.safety_deposit,
            timelocks=                     timelocks,
            expiration_time=               params.expiration_time,
            asset_is_native=               params.asset_is_native,
            dst_amount=                    params.dst_amount,
            dutch_auction_data_hash=       bytes(params.dutch_auction_data_hash),
            max_cancellation_premium=      params.max_cancellation_premium,
            cancellation_auction_duration= params.cancellation_auction_duration,
            allow_multiple_fills=          params.allow_multiple_fills,
            salt=                          params.salt,
        )

    @property
    def address(self) -> str:
        return order_address(self.order_hash)

    @property
    def parts_amount(self) -> int:
        return parts_amount(self.hashlock)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "order_hash":                    self.order_hash,
            "hashlock":                      self.hashlock,
            "maker":                         self.maker,
            "token":                         self.token,
            "amount":                        self.amount,
            "remaining_amount":              self.remaining_amount,
            "safety_deposit":                self.safety_deposit,
            "timelocks":                     self.timelocks.to_dict(),
            "expiration_time":               self.expiration_time,
            "asset_is_native":               self.asset_is_native,
            "dst_amount":                    self.dst_amount,
            "dutch_auction_data_hash":       self.dutch_auction_data_hash,
            "max_cancellation_premium":      self.max_cancellation_premium,
            "cancellation_auction_duration": self.cancellation_auction_duration,
            "allow_multiple_fills":          self.allow_multiple_fills,
            "salt":                          self.salt,
        }


# ─────────────────────────────────────────────────────────────
# Escrows: closed union over Side
# ─────────────────────────────────────────────────────────────

class Side(Enum):
    SRC = "src"
    DST = "dst"


class _EscrowAccessors:
    """Shared accessor interface. Concrete classes supply creator/recipient/resolver."""

    side:                  ClassVar[Side]
    record_size:           ClassVar[int]
    _withdrawal:           ClassVar[Stage]
    _public_withdrawal:    ClassVar[Stage]
    _cancellation:         ClassVar[Stage]
    _public_cancellation:  ClassVar[Optional[Stage]]

    @property
    def withdrawal_start(self) -> int:
        return self.timelocks.get(self._withdrawal)

    @property
    def public_withdrawal_start(self) -> int:
        return self.timelocks.get(self._public_withdrawal)

    @property
    def cancellation_start(self) -> int:
        return self.timelocks.get(self._cancellation)

    @property
    def public_cancellation_start(self) -> Optional[int]:
        if self._public_cancellation is None:
            return None
        return self.timelocks.get(self._public_cancellation)

    @property
    def address(self) -> str:
        return escrow_address(
            self.order_hash,
            self.hashlock,
            self.creator,
            self.recipient,
            self.token,
            self.amount,
            self.safety_deposit,
            self.rescue_start,
        )


@dataclass(frozen=True)
class EscrowSrc(_EscrowAccessors):
    side:                 ClassVar[Side] = Side.SRC
    record_size:          ClassVar[int] = ESCROW_SRC_RECORD_SIZE
    _withdrawal:          ClassVar[Stage] = Stage.SRC_WITHDRAWAL
    _public_withdrawal:   ClassVar[Stage] = Stage.SRC_PUBLIC_WITHDRAWAL
    _cancellation:        ClassVar[Stage] = Stage.SRC_CANCELLATION
    _public_cancellation: ClassVar[Optional[Stage]] = Stage.SRC_PUBLIC_CANCELLATION

    order_hash:      bytes
    hashlock:        bytes
    maker:           str
    taker:           str
    token:           str
    amount:          int
    safety_deposit:  int
    timelocks:       Timelocks
    asset_is_native: bool
    dst_amount:      int
    rescue_start:    int

    @property
    def creator(self) -> str:
        return self.maker

    @property
    def recipient(self) -> str:
        return self.taker

    @property
    def resolver(self) -> str:
        return self.taker

    def to_dict(self) -> Dict[str, Any]:
        return {
            "side":            self.side,
            "order_hash":      self.order_hash,
            "hashlock":        self.hashlock,
            "maker":           self.maker,
            "taker":           self.taker,
            "token":           self.token,
            "amount":          self.amount,
            "safety_deposit":  self.safety_deposit,
            "timelocks":       self.timelocks.to_dict(),
            "asset_is_native": self.asset_is_native,
            "dst_amount":      self.dst_amount,
            "rescue_start":    self.rescue_start,
        }


@dataclass(frozen=True)
class EscrowDst(_EscrowAccessors):
    side:                 ClassVar[Side] = Side.DST
    record_size:          ClassVar[int] = ESCROW_DST_RECORD_SIZE
    _withdrawal:          ClassVar[Stage] = Stage.DST_WITHDRAWAL
    _public_withdrawal:   ClassVar[Stage] = Stage.DST_PUBLIC_WITHDRAWAL
    _cancellation:        ClassVar[Stage] = Stage.DST_CANCELLATION
    _public_cancellation: ClassVar[Optional[Stage]] = None

    order_hash:      bytes
    hashlock:        bytes
    creator:         str
    recipient:       str
    token:           str
    amount:          int
    safety_deposit:  int
    timelocks:       Timelocks
    asset_is_native: bool
    rescue_start:    int

    @property
    def resolver(self) -> str:
        return self.creator

    def to_dict(self) -> Dict[str, Any]:
        return {
            "side":            self.side,
            "order_hash":      self.order_hash,
            "hashlock":        self.hashlock,
            "creator":         self.creator,
            "recipient":       self.recipient,
            "token":           self.token,
            "amount":          self.amount,
            "safety_deposit":  self.safety_deposit,
            "timelocks":       self.timelocks.to_dict(),
            "asset_is_native": self.asset_is_native,
            "rescue_start":    self.rescue_start,
        }


Escrow = Union[EscrowSrc, EscrowDst]
