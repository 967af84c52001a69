"""
CrossLock Exception Hierarchy

All exceptions inherit from CrossLockError for easy catching.

EscrowError subclasses are the canonical transition errors. Any of them
aborts the whole transition; the engine restores its snapshot and re-raises
the same exception object to the caller.
"""


class CrossLockError(Exception):
    """Base exception for all CrossLock errors"""

    default_message = "CrossLock error"

    def __init__(self, message: str = None, details: dict = None):
        message = message or self.default_message
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self):
        if self.details:
            details_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.message} ({details_str})"
        return self.message


# ─────────────────────────────────────────────────────────────
# Transition errors
# ─────────────────────────────────────────────────────────────

class EscrowError(CrossLockError):
    """Raised when an order or escrow transition is rejected"""
    default_message = "Escrow transition rejected"


class ZeroAmountOrDeposit(EscrowError):
    default_message = "Zero amount or deposit"


class SafetyDepositTooLarge(EscrowError):
    default_message = "Safety deposit too large"


class InvalidSecret(EscrowError):
    default_message = "Invalid secret"


class InvalidAccount(EscrowError):
    """Wrong caller, wrong counterparty, or an address that does not resolve"""
    default_message = "Invalid account"


class InvalidAmount(EscrowError):
    default_message = "Invalid amount"


class InvalidPartsAmount(EscrowError):
    default_message = "Invalid parts amount"


class InvalidCreationTime(EscrowError):
    default_message = "Invalid creation time"


class InvalidTime(EscrowError):
    """Operation attempted outside its timelock window"""
    default_message = "Invalid time"


class InvalidRescueStart(EscrowError):
    default_message = "Invalid rescue start"


class InvalidMint(EscrowError):
    default_message = "Invalid mint"


class MissingCreatorAta(EscrowError):
    default_message = "Missing creator ata"


class MissingRecipientAta(EscrowError):
    default_message = "Missing recipient ata"


class InconsistentNativeTrait(EscrowError):
    default_message = "Inconsistent native trait"


class CancelOrderByResolverIsForbidden(EscrowError):
    default_message = "Cancel by resolver is forbidden"


class OrderNotExpired(EscrowError):
    default_message = "Order not expired"


class OrderHasExpired(EscrowError):
    default_message = "Order has expired"


class DutchAuctionDataHashMismatch(EscrowError):
    default_message = "Dutch auction data hash mismatch"


class InvalidCancellationFee(EscrowError):
    default_message = "Invalid cancellation fee"


class InvalidMerkleProof(EscrowError):
    default_message = "Invalid merkle proof"


class InvalidPartialFill(EscrowError):
    default_message = "Invalid partial fill"


class InconsistentMerkleProofTrait(EscrowError):
    default_message = "Inconsistent merkle proof trait"


class ArithmeticOverflow(EscrowError):
    """Checked time or amount arithmetic left its fixed width"""
    default_message = "Arithmetic overflow"


# ─────────────────────────────────────────────────────────────
# Collaborator errors
# ─────────────────────────────────────────────────────────────

class CustodyError(CrossLockError):
    """Raised when the asset-custody service cannot move or close funds"""
    default_message = "Custody operation failed"


class InsufficientFunds(CustodyError):
    default_message = "Insufficient funds"


class RecordNotEmpty(CustodyError):
    default_message = "Holding record is not empty"


class RecordExists(CustodyError):
    default_message = "Holding record already exists"


class LedgerError(CrossLockError):
    """Raised when journal operations fail"""
    default_message = "Ledger operation failed"


class ConfigError(CrossLockError):
    """Raised when protocol configuration is invalid"""
    default_message = "Invalid configuration"
