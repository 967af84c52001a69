"""
crosslock/custody/custody.py

In-process asset custody.

Two kinds of balance exist:

    native balances   account → lamports. Principals hold spendable lamports;
                      entity addresses (orders, escrows) hold their storage
                      deposit plus, for escrows, the safety deposit.

    holding records   (owner, token) → HoldingRecord(amount, deposit).
                      amount is the token balance; deposit is the lamports the
                      record itself holds (its rent reserve plus anything paid
                      into it). A native-mint record holds wrapped lamports in
                      amount.

Every mutating call either completes or raises before touching state.
snapshot()/restore() give the settlement engine all-or-nothing transitions.
"""

import copy
import logging
from dataclasses import dataclass
from typing import Dict, Optional, Tuple, Type

from crosslock.core.exceptions import (
    EscrowError,
    InconsistentNativeTrait,
    InsufficientFunds,
    InvalidAccount,
    InvalidMint,
    RecordExists,
    RecordNotEmpty,
)
from crosslock.core.models import HOLDING_RECORD_SIZE, HoldingRef
from crosslock.custody.rent import StorageRent

logger = logging.getLogger(__name__)

RecordKey = Tuple[str, str]


@dataclass
class HoldingRecord:
    owner:   str
    token:   str
    amount:  int = 0
    deposit: int = 0

    @property
    def key(self) -> RecordKey:
        return (self.owner, self.token)


class AssetCustody:
    """
    Token movement, native wrapping and record lifecycle.

        fund_native / transfer_native / native_balance
        open_record / ensure_record / get_record / balance
        mint / transfer / wrap / unwrap
        pay_from_deposit / close_record / close_native
        snapshot / restore
    """

    def __init__(self, rent: StorageRent, native_mint: str) -> None:
        self.rent        = rent
        self.native_mint = native_mint

        self._native:  Dict[str, int]                 = {}
        self._records: Dict[RecordKey, HoldingRecord] = {}

    # ── Native balances ───────────────────────────────────────

    def native_balance(self, account: str) -> int:
        return self._native.get(account, 0)

    def fund_native(self, account: str, lamports: int) -> None:
        if lamports < 0:
            raise ValueError(f"cannot fund a negative amount: {lamports}")
        self._native[account] = self.native_balance(account) + lamports

    def transfer_native(self, source: str, destination: str, lamports: int) -> None:
        self._debit_native(source, lamports)
        self._native[destination] = self.native_balance(destination) + lamports

    def close_native(self, account: str, destination: str) -> int:
        """Move every lamport held by `account` to `destination`."""
        lamports = self._native.pop(account, 0)
        if lamports:
            self._native[destination] = self.native_balance(destination) + lamports
        return lamports

    # ── Holding records ───────────────────────────────────────

    @property
    def record_deposit(self) -> int:
        return self.rent.minimum_balance(HOLDING_RECORD_SIZE)

    def has_record(self, owner: str, token: str) -> bool:
        return (owner, token) in self._records

    def get_record(self, owner: str, token: str) -> Optional[HoldingRecord]:
        return self._records.get((owner, token))

    def balance(self, owner: str, token: str) -> int:
        record = self._records.get((owner, token))
        return record.amount if record else 0

    def open_record(self, owner: str, token: str, payer: str) -> HoldingRecord:
        """Open a record; `payer` funds its storage deposit."""
        if (owner, token) in self._records:
            raise RecordExists(details={"owner": owner, "token": token})
        deposit = self.record_deposit
        self._debit_native(payer, deposit)
        record = HoldingRecord(owner=owner, token=token, deposit=deposit)
        self._records[record.key] = record
        logger.debug("holding record opened owner=%s token=%s", owner, token)
        return record

    def ensure_record(self, owner: str, token: str, payer: str) -> HoldingRecord:
        """Return the existing record, or open one at `payer`'s expense."""
        record = self._records.get((owner, token))
        if record is not None:
            return record
        return self.open_record(owner, token, payer)

    def close_record(self, owner: str, token: str, destination: str) -> int:
        """Close an empty record; its deposit goes to `destination`."""
        record = self._require_record(owner, token)
        if record.amount:
            raise RecordNotEmpty(
                details={"owner": owner, "token": token, "amount": record.amount}
            )
        del self._records[record.key]
        self._native[destination] = self.native_balance(destination) + record.deposit
        logger.debug("holding record closed owner=%s token=%s", owner, token)
        return record.deposit

    def pay_from_deposit(self, owner: str, token: str, destination: str, lamports: int) -> None:
        _require_non_negative(lamports)
        record = self._require_record(owner, token)
        if lamports > record.deposit:
            raise InsufficientFunds(
                "Record deposit cannot cover payment",
                {"owner": owner, "deposit": record.deposit, "requested": lamports},
            )
        record.deposit -= lamports
        self._native[destination] = self.native_balance(destination) + lamports

    # ── Token movement ────────────────────────────────────────

    def mint(self, owner: str, token: str, amount: int) -> None:
        if amount < 0:
            raise ValueError(f"cannot mint a negative amount: {amount}")
        self._require_record(owner, token).amount += amount

    def transfer(self, source: str, destination: str, token: str, amount: int) -> None:
        _require_non_negative(amount)
        src = self._require_record(source, token)
        dst = self._require_record(destination, token)
        if amount > src.amount:
            raise InsufficientFunds(
                details={"owner": source, "token": token,
                         "balance": src.amount, "requested": amount}
            )
        src.amount -= amount
        dst.amount += amount

    def wrap(self, source: str, owner: str, amount: int) -> None:
        """Move native lamports from `source` into `owner`'s native-mint record."""
        record = self._require_record(owner, self.native_mint)
        self._debit_native(source, amount)
        record.amount += amount

    def unwrap(self, owner: str, destination: str, amount: int) -> None:
        """Release wrapped lamports from `owner`'s native-mint record."""
        _require_non_negative(amount)
        record = self._require_record(owner, self.native_mint)
        if amount > record.amount:
            raise InsufficientFunds(
                details={"owner": owner, "balance": record.amount, "requested": amount}
            )
        record.amount -= amount
        self._native[destination] = self.native_balance(destination) + amount

    # ── Snapshots ─────────────────────────────────────────────

    def snapshot(self) -> tuple:
        return (dict(self._native), copy.deepcopy(self._records))

    def restore(self, state: tuple) -> None:
        native, records = state
        self._native  = dict(native)
        self._records = copy.deepcopy(records)

    # ── Internal ──────────────────────────────────────────────

    def _require_record(self, owner: str, token: str) -> HoldingRecord:
        record = self._records.get((owner, token))
        if record is None:
            raise InsufficientFunds(
                "No holding record", {"owner": owner, "token": token}
            )
        return record

    def _debit_native(self, account: str, lamports: int) -> None:
        _require_non_negative(lamports)
        balance = self.native_balance(account)
        if lamports > balance:
            raise InsufficientFunds(
                details={"account": account, "balance": balance, "requested": lamports}
            )
        self._native[account] = balance - lamports


def _require_non_negative(amount: int) -> None:
    if amount < 0:
        raise ValueError(f"cannot move a negative amount: {amount}")


def check_holding(
    custody:         AssetCustody,
    holding:         Optional[HoldingRef],
    owner:           str,
    token:           str,
    asset_is_native: bool,
    missing:         Type[EscrowError],
) -> None:
    """
    Validate a caller-supplied holding record against the asset's native trait.

        native      → no record may be supplied (InconsistentNativeTrait)
        non-native  → record required (`missing`), owned by `owner`
                      (InvalidAccount), for `token` (InvalidMint), and open
    """
    if asset_is_native:
        if holding is not None:
            raise InconsistentNativeTrait(
                "Native asset takes no holding record", {"owner": owner}
            )
        return

    if holding is None:
        raise missing(details={"owner": owner, "token": token})
    if holding.owner != owner:
        raise InvalidAccount(
            "Holding record belongs to another owner",
            {"expected": owner, "got": holding.owner},
        )
    if holding.token != token:
        raise InvalidMint(details={"expected": token, "got": holding.token})
    if not custody.has_record(owner, token):
        raise missing(details={"owner": owner, "token": token})
