"""
crosslock/__init__.py

CrossLock: settlement core for cross-chain atomic swaps.

A maker posts an order; resolvers fill it, whole or in Merkle-authenticated
slices priced by a Dutch auction, into hash- and time-locked escrows that
settle by secret reveal or cancel after their timelocks expire.
"""

__version__ = "0.1.0"

from crosslock.config import ProtocolConfig, RESCUE_DELAY
from crosslock.core.auction import AuctionData, PointAndTimeDelta
from crosslock.core.crypto import Ed25519Signer
from crosslock.core.exceptions import CrossLockError, EscrowError
from crosslock.core.hashing import generate_secret, hash_secret
from crosslock.core.merkle import MerkleProof
from crosslock.core.models import (
    EscrowDst,
    EscrowSrc,
    HoldingRef,
    Order,
    OrderParams,
    Side,
)
from crosslock.core.time import FixedClock, SystemClock
from crosslock.core.timelocks import Stage, Timelocks
from crosslock.custody import AllowList, AssetCustody, StorageRent
from crosslock.ledger import Ledger
from crosslock.settlement import SettlementEngine

__all__ = [
    # Engine
    "SettlementEngine",
    "ProtocolConfig",
    # Model
    "OrderParams",
    "Order",
    "EscrowSrc",
    "EscrowDst",
    "HoldingRef",
    "Side",
    "Timelocks",
    "Stage",
    "AuctionData",
    "PointAndTimeDelta",
    "MerkleProof",
    # Collaborators
    "AssetCustody",
    "StorageRent",
    "AllowList",
    "FixedClock",
    "SystemClock",
    "Ledger",
    "Ed25519Signer",
    # Errors
    "CrossLockError",
    "EscrowError",
    # Helpers
    "generate_secret",
    "hash_secret",
    # Constants
    "RESCUE_DELAY",
]
