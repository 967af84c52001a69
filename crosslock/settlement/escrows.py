"""
crosslock/settlement/escrows.py

Escrow lifecycle.

    create_escrow       fill (part of) an order into a source-side escrow
    create_dst_escrow   resolver locks destination-side funds for the maker
    withdraw            resolver reveals the secret     [Withdrawal, Cancellation)
    public_withdraw     any allow-listed resolver       [PublicWithdrawal, Cancellation)
    cancel              resolver, asset back to creator [Cancellation, ∞)
    public_cancel       allow-listed, source side only  [SrcPublicCancellation, ∞)

Withdraw and cancel run one code path over the EscrowSrc / EscrowDst union.
Closing an escrow always moves the record's entire balance, pays the safety
deposit to the caller and returns the remaining lamports to the resolver
who funded the records.

Custody layout of an escrow at `address`:
    native balance of `address`       escrow record storage deposit + safety deposit
    holding record (address, token)   locked amount
"""

import logging
from typing import Optional

from crosslock.config import ProtocolConfig
from crosslock.core import merkle
from crosslock.core.arith import check_width, checked_add, mul_div_ceil
from crosslock.core.auction import AuctionData, get_dst_amount
from crosslock.core.exceptions import (
    DutchAuctionDataHashMismatch,
    InconsistentMerkleProofTrait,
    InconsistentNativeTrait,
    InvalidAccount,
    InvalidAmount,
    InvalidCreationTime,
    InvalidMerkleProof,
    InvalidPartialFill,
    InvalidRescueStart,
    InvalidSecret,
    InvalidTime,
    MissingCreatorAta,
    MissingRecipientAta,
    OrderHasExpired,
    SafetyDepositTooLarge,
    ZeroAmountOrDeposit,
)
from crosslock.core.hashing import verify_secret
from crosslock.core.merkle import MerkleProof
from crosslock.core.models import (
    Escrow,
    EscrowDst,
    EscrowSrc,
    HoldingRef,
    Order,
    Side,
)
from crosslock.core.timelocks import Stage, Timelocks
from crosslock.custody.allowlist import AllowList
from crosslock.custody.custody import AssetCustody, check_holding
from crosslock.settlement.store import EntityStore

logger = logging.getLogger(__name__)


class EscrowManager:

    def __init__(
        self,
        store:      EntityStore,
        custody:    AssetCustody,
        allow_list: AllowList,
        config:     ProtocolConfig,
    ) -> None:
        self.store      = store
        self.custody    = custody
        self.allow_list = allow_list
        self.config     = config

    # ─────────────────────────────────────────────────────────
    # Creation
    # ─────────────────────────────────────────────────────────

    def create_escrow(
        self,
        taker:         str,
        order_address: str,
        amount:        int,
        auction_data:  AuctionData,
        merkle_proof:  Optional[MerkleProof],
        now:           int,
    ) -> EscrowSrc:
        self.allow_list.require(taker)
        order = self.store.get_order(order_address)

        if now >= order.expiration_time:
            raise OrderHasExpired(
                details={"now": now, "expiration_time": order.expiration_time}
            )
        self._check_fill_amount(order, amount)

        if auction_data.hash() != order.dutch_auction_data_hash:
            raise DutchAuctionDataHashMismatch()

        hashlock = self._admit_fill(order, amount, merkle_proof)

        dst_amount = get_dst_amount(
            mul_div_ceil(order.dst_amount, amount, order.amount, bits=256),
            auction_data,
            now,
        )
        timelocks    = order.timelocks.set_deployed_at(now)
        rescue_start = timelocks.rescue_start(self.config.rescue_delay)

        escrow = EscrowSrc(
            order_hash=      order.order_hash,
            hashlock=        hashlock,
            maker=           order.maker,
            taker=           taker,
            token=           order.token,
            amount=          amount,
            safety_deposit=  order.safety_deposit,
            timelocks=       timelocks,
            asset_is_native= order.asset_is_native,
            dst_amount=      dst_amount,
            rescue_start=    rescue_start,
        )
        self._open_escrow(escrow, payer=taker)

        exhausting = amount == order.remaining_amount
        moved = self.custody.balance(order_address, order.token) if exhausting else amount
        self.custody.transfer(order_address, escrow.address, order.token, moved)

        if exhausting:
            self.custody.close_record(order_address, order.token, order.maker)
            self.custody.close_native(order_address, order.maker)
            self.store.remove_order(order_address)
            logger.info("order %s fully filled and closed", order_address)
        else:
            order.remaining_amount -= amount

        logger.info(
            "src escrow created address=%s taker=%s amount=%d moved=%d dst_amount=%d",
            escrow.address, taker, amount, moved, dst_amount,
        )
        return escrow

    def create_dst_escrow(
        self,
        creator:                    str,
        order_hash:                 bytes,
        hashlock:                   bytes,
        recipient:                  str,
        token:                      str,
        amount:                     int,
        safety_deposit:             int,
        timelocks:                  Timelocks,
        src_cancellation_timestamp: int,
        rescue_start:               int,
        asset_is_native:            bool,
        creator_holding:            Optional[HoldingRef],
        now:                        int,
    ) -> EscrowDst:
        timelocks = timelocks.set_deployed_at(now)

        cancellation_start = timelocks.get(Stage.DST_CANCELLATION)
        if cancellation_start > src_cancellation_timestamp:
            raise InvalidCreationTime(
                details={
                    "cancellation_start":         cancellation_start,
                    "src_cancellation_timestamp": src_cancellation_timestamp,
                }
            )
        earliest_rescue = checked_add(now, self.config.rescue_delay, bits=32)
        if rescue_start < earliest_rescue:
            raise InvalidRescueStart(
                details={"rescue_start": rescue_start, "earliest": earliest_rescue}
            )
        check_width(amount, 64)
        check_width(safety_deposit, 64)
        if amount == 0 or safety_deposit == 0:
            raise ZeroAmountOrDeposit()

        max_safety_deposit = self.custody.rent.minimum_balance(EscrowDst.record_size)
        if safety_deposit > max_safety_deposit:
            raise SafetyDepositTooLarge(
                details={"safety_deposit": safety_deposit, "max": max_safety_deposit}
            )
        if asset_is_native and token != self.config.native_mint:
            raise InconsistentNativeTrait(
                "Native asset must use the native mint", {"token": token}
            )
        check_holding(
            self.custody, creator_holding, creator, token,
            asset_is_native, MissingCreatorAta,
        )

        escrow = EscrowDst(
            order_hash=      bytes(order_hash),
            hashlock=        bytes(hashlock),
            creator=         creator,
            recipient=       recipient,
            token=           token,
            amount=          amount,
            safety_deposit=  safety_deposit,
            timelocks=       timelocks,
            asset_is_native= asset_is_native,
            rescue_start=    rescue_start,
        )
        self._open_escrow(escrow, payer=creator)

        if asset_is_native:
            self.custody.wrap(creator, escrow.address, amount)
        else:
            self.custody.transfer(creator, escrow.address, token, amount)

        logger.info(
            "dst escrow created address=%s creator=%s recipient=%s amount=%d",
            escrow.address, creator, recipient, amount,
        )
        return escrow

    # ─────────────────────────────────────────────────────────
    # Settlement
    # ─────────────────────────────────────────────────────────

    def withdraw(
        self,
        caller:            str,
        escrow_address:    str,
        secret:            bytes,
        recipient_holding: Optional[HoldingRef],
        now:               int,
    ) -> dict:
        escrow = self.store.get_escrow(escrow_address)
        if caller != escrow.resolver:
            raise InvalidAccount(
                "Only the resolver may withdraw", {"caller": caller}
            )
        self._require_window(now, escrow.withdrawal_start, escrow.cancellation_start)
        return self._withdraw(escrow, caller, secret, recipient_holding)

    def public_withdraw(
        self,
        caller:            str,
        escrow_address:    str,
        secret:            bytes,
        recipient_holding: Optional[HoldingRef],
        now:               int,
    ) -> dict:
        self.allow_list.require(caller)
        escrow = self.store.get_escrow(escrow_address)
        self._require_window(now, escrow.public_withdrawal_start, escrow.cancellation_start)
        return self._withdraw(escrow, caller, secret, recipient_holding)

    def cancel(
        self,
        caller:          str,
        escrow_address:  str,
        creator_holding: Optional[HoldingRef],
        now:             int,
    ) -> dict:
        escrow = self.store.get_escrow(escrow_address)
        if caller != escrow.resolver:
            raise InvalidAccount("Only the resolver may cancel", {"caller": caller})
        self._require_window(now, escrow.cancellation_start)
        return self._cancel(escrow, caller, creator_holding)

    def public_cancel(
        self,
        caller:          str,
        escrow_address:  str,
        creator_holding: Optional[HoldingRef],
        now:             int,
    ) -> dict:
        self.allow_list.require(caller)
        escrow = self.store.get_escrow(escrow_address)
        if escrow.side is not Side.SRC:
            raise InvalidAccount(
                "Destination escrows have no public cancellation",
                {"address": escrow_address},
            )
        self._require_window(now, escrow.public_cancellation_start)
        return self._cancel(escrow, caller, creator_holding)

    # ─────────────────────────────────────────────────────────
    # Internal
    # ─────────────────────────────────────────────────────────

    def _check_fill_amount(self, order: Order, amount: int) -> None:
        if order.allow_multiple_fills:
            valid = 0 < amount <= order.remaining_amount
        else:
            valid = amount == order.amount
        if not valid:
            raise InvalidAmount(
                details={"amount": amount, "remaining_amount": order.remaining_amount}
            )

    def _admit_fill(
        self,
        order:        Order,
        amount:       int,
        merkle_proof: Optional[MerkleProof],
    ) -> bytes:
        """Validate the Merkle proof of a multi-fill slice; return the escrow hashlock."""
        if order.allow_multiple_fills != (merkle_proof is not None):
            raise InconsistentMerkleProofTrait()
        if merkle_proof is None:
            return order.hashlock

        if not merkle.verify_hashlock(merkle_proof, order.hashlock):
            raise InvalidMerkleProof(details={"index": merkle_proof.index})
        if not merkle.is_valid_partial_fill(
            amount,
            order.remaining_amount,
            order.amount,
            order.parts_amount,
            merkle_proof.index,
        ):
            raise InvalidPartialFill(
                details={
                    "index":            merkle_proof.index,
                    "amount":           amount,
                    "remaining_amount": order.remaining_amount,
                }
            )
        return merkle_proof.hashed_secret

    def _open_escrow(self, escrow: Escrow, payer: str) -> None:
        address = escrow.address
        if self.store.is_used(address):
            raise InvalidAccount("Escrow address already in use", {"address": address})

        record_deposit = self.custody.rent.minimum_balance(escrow.record_size)
        self.custody.transfer_native(payer, address, record_deposit + escrow.safety_deposit)
        self.custody.open_record(address, escrow.token, payer=payer)
        self.store.put_escrow(escrow)

    @staticmethod
    def _require_window(now: int, start: int, end: Optional[int] = None) -> None:
        logger.debug("window check now=%d start=%d end=%s", now, start, end)
        if now < start or (end is not None and now >= end):
            raise InvalidTime(details={"now": now, "start": start, "end": end})

    def _withdraw(
        self,
        escrow:            Escrow,
        caller:            str,
        secret:            bytes,
        recipient_holding: Optional[HoldingRef],
    ) -> dict:
        if not verify_secret(secret, escrow.hashlock):
            raise InvalidSecret()
        check_holding(
            self.custody, recipient_holding, escrow.recipient, escrow.token,
            escrow.asset_is_native, MissingRecipientAta,
        )
        payout = self._close(escrow, escrow.recipient, caller)
        logger.info(
            "escrow withdrawn address=%s recipient=%s amount=%d",
            payout["address"], escrow.recipient, payout["released"],
        )
        return payout

    def _cancel(
        self,
        escrow:          Escrow,
        caller:          str,
        creator_holding: Optional[HoldingRef],
    ) -> dict:
        check_holding(
            self.custody, creator_holding, escrow.creator, escrow.token,
            escrow.asset_is_native, MissingCreatorAta,
        )
        payout = self._close(escrow, escrow.creator, caller)
        logger.info(
            "escrow cancelled address=%s creator=%s amount=%d",
            payout["address"], escrow.creator, payout["released"],
        )
        return payout

    def _close(self, escrow: Escrow, destination: str, caller: str) -> dict:
        """
        Release the whole record to `destination`, pay the safety deposit to
        `caller`, return every remaining lamport to the resolver.
        """
        address = escrow.address
        balance = self.custody.balance(address, escrow.token)
        if escrow.asset_is_native:
            self.custody.unwrap(address, destination, balance)
        else:
            self.custody.transfer(address, destination, escrow.token, balance)

        self.custody.transfer_native(address, caller, escrow.safety_deposit)
        reclaimed  = self.custody.close_record(address, escrow.token, escrow.resolver)
        reclaimed += self.custody.close_native(address, escrow.resolver)
        self.store.remove_escrow(address)

        return {
            "address":            address,
            "side":               escrow.side,
            "released":           balance,
            "released_to":        destination,
            "safety_deposit":     escrow.safety_deposit,
            "safety_deposit_to":  caller,
            "deposits_to":        escrow.resolver,
            "deposits_reclaimed": reclaimed,
        }
