"""
Settlement engine: the operation surface of CrossLock.

Transition contract, every operation, in this exact order:
  1. Acquire lock
  2. Read the clock once
  3. Snapshot entity store and custody
  4. Run the manager transition with that `now`
  5. Append the journal entry (must succeed before the result is returned)
  6. Return the result

Any exception in 4 or 5 restores the snapshot and propagates unchanged.
"""

import logging
import threading
from typing import Any, Callable, Dict, Optional

from crosslock.config import ProtocolConfig
from crosslock.core.auction import AuctionData
from crosslock.core.crypto import Ed25519Signer
from crosslock.core.merkle import MerkleProof
from crosslock.core.models import (
    EscrowDst,
    EscrowSrc,
    HoldingRef,
    Order,
    OrderParams,
    Side,
)
from crosslock.core.time import Clock, SystemClock
from crosslock.core.timelocks import Timelocks
from crosslock.custody.allowlist import AllowList
from crosslock.custody.custody import AssetCustody
from crosslock.ledger.ledger import Ledger
from crosslock.settlement.escrows import EscrowManager
from crosslock.settlement.orders import OrderManager
from crosslock.settlement.rescue import RescueManager
from crosslock.settlement.store import EntityStore

logger = logging.getLogger(__name__)


def _payload(value: Any) -> Any:
    return value.to_dict() if hasattr(value, "to_dict") else value


class SettlementEngine:
    """
    Serialised, all-or-nothing settlement transitions.

        create_order / cancel_order / cancel_order_by_resolver
        create_escrow / create_dst_escrow
        withdraw / public_withdraw / cancel / public_cancel
        rescue_funds_for_order / rescue_funds_for_escrow
    """

    def __init__(
        self,
        config:     Optional[ProtocolConfig] = None,
        clock:      Optional[Clock] = None,
        signer:     Optional[Ed25519Signer] = None,
        custody:    Optional[AssetCustody] = None,
        allow_list: Optional[AllowList] = None,
        journal:    Optional[Ledger] = None,
    ) -> None:
        self.config     = config or ProtocolConfig()
        self.clock      = clock or SystemClock()
        self.custody    = custody or AssetCustody(self.config.rent, self.config.native_mint)
        self.allow_list = allow_list or AllowList(self.config.allow_list_authority)
        self.store      = EntityStore()

        if journal is None:
            journal = Ledger(signer or Ed25519Signer.generate(), self.config.journal_path)
        self.journal = journal

        self.orders  = OrderManager(self.store, self.custody, self.allow_list, self.config)
        self.escrows = EscrowManager(self.store, self.custody, self.allow_list, self.config)
        self.rescue  = RescueManager(self.store, self.custody, self.allow_list)

        self._lock: threading.Lock = threading.Lock()

    # ── Orders ────────────────────────────────────────────────

    def create_order(
        self,
        maker:         str,
        params:        OrderParams,
        maker_holding: Optional[HoldingRef] = None,
    ) -> Order:
        return self._transition(
            "create_order",
            lambda now: self.orders.create_order(maker, params, maker_holding, now),
            {"maker": maker},
        )

    def cancel_order(
        self,
        maker:         str,
        order_address: str,
        maker_holding: Optional[HoldingRef] = None,
    ) -> dict:
        return self._transition(
            "cancel_order",
            lambda now: self.orders.cancel_order(maker, order_address, maker_holding, now),
            {"maker": maker},
        )

    def cancel_order_by_resolver(
        self,
        resolver:      str,
        order_address: str,
        reward_limit:  int,
        maker_holding: Optional[HoldingRef] = None,
    ) -> dict:
        return self._transition(
            "cancel_order_by_resolver",
            lambda now: self.orders.cancel_order_by_resolver(
                resolver, order_address, reward_limit, maker_holding, now
            ),
            {"resolver": resolver, "reward_limit": reward_limit},
        )

    # ── Escrow creation ───────────────────────────────────────

    def create_escrow(
        self,
        taker:         str,
        order_address: str,
        amount:        int,
        auction_data:  AuctionData,
        merkle_proof:  Optional[MerkleProof] = None,
    ) -> EscrowSrc:
        return self._transition(
            "create_escrow",
            lambda now: self.escrows.create_escrow(
                taker, order_address, amount, auction_data, merkle_proof, now
            ),
            {
                "order_address": order_address,
                "auction_data":  auction_data.to_dict(),
                "merkle_index":  merkle_proof.index if merkle_proof else None,
            },
        )

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
        asset_is_native:            bool = False,
        creator_holding:            Optional[HoldingRef] = None,
    ) -> EscrowDst:
        return self._transition(
            "create_dst_escrow",
            lambda now: self.escrows.create_dst_escrow(
                creator, order_hash, hashlock, recipient, token, amount,
                safety_deposit, timelocks, src_cancellation_timestamp,
                rescue_start, asset_is_native, creator_holding, now,
            ),
            {"src_cancellation_timestamp": src_cancellation_timestamp},
        )

    # ── Escrow settlement ─────────────────────────────────────

    def withdraw(
        self,
        caller:            str,
        escrow_address:    str,
        secret:            bytes,
        recipient_holding: Optional[HoldingRef] = None,
    ) -> dict:
        return self._transition(
            "withdraw",
            lambda now: self.escrows.withdraw(
                caller, escrow_address, secret, recipient_holding, now
            ),
            {"caller": caller, "secret": secret},
        )

    def public_withdraw(
        self,
        caller:            str,
        escrow_address:    str,
        secret:            bytes,
        recipient_holding: Optional[HoldingRef] = None,
    ) -> dict:
        return self._transition(
            "public_withdraw",
            lambda now: self.escrows.public_withdraw(
                caller, escrow_address, secret, recipient_holding, now
            ),
            {"caller": caller, "secret": secret},
        )

    def cancel(
        self,
        caller:          str,
        escrow_address:  str,
        creator_holding: Optional[HoldingRef] = None,
    ) -> dict:
        return self._transition(
            "cancel",
            lambda now: self.escrows.cancel(caller, escrow_address, creator_holding, now),
            {"caller": caller},
        )

    def public_cancel(
        self,
        caller:          str,
        escrow_address:  str,
        creator_holding: Optional[HoldingRef] = None,
    ) -> dict:
        return self._transition(
            "public_cancel",
            lambda now: self.escrows.public_cancel(caller, escrow_address, creator_holding, now),
            {"caller": caller},
        )

    # ── Rescue ────────────────────────────────────────────────

    def rescue_funds_for_order(
        self,
        resolver:         str,
        order_hash:       bytes,
        token:            str,
        rescue_amount:    int,
        resolver_holding: Optional[HoldingRef] = None,
    ) -> dict:
        return self._transition(
            "rescue_funds_for_order",
            lambda now: self.rescue.rescue_funds_for_order(
                resolver, order_hash, token, rescue_amount, resolver_holding, now
            ),
            {"order_hash": order_hash},
        )

    def rescue_funds_for_escrow(
        self,
        caller:         str,
        order_hash:     bytes,
        hashlock:       bytes,
        counterparty:   str,
        token:          str,
        amount:         int,
        safety_deposit: int,
        rescue_start:   int,
        side:           Side,
        rescue_token:   str,
        rescue_amount:  int,
        caller_holding: Optional[HoldingRef] = None,
    ) -> dict:
        return self._transition(
            "rescue_funds_for_escrow",
            lambda now: self.rescue.rescue_funds_for_escrow(
                caller, order_hash, hashlock, counterparty, token, amount,
                safety_deposit, rescue_start, side, rescue_token, rescue_amount,
                caller_holding, now,
            ),
            {"order_hash": order_hash, "side": Side(side)},
        )

    # ── Stats ─────────────────────────────────────────────────

    def get_settlement_stats(self) -> Dict[str, Any]:
        return {
            "live_orders":  len(self.store.orders),
            "live_escrows": len(self.store.escrows),
            "journal":      self.journal.get_stats(),
        }

    # ── Internal ──────────────────────────────────────────────

    def _transition(
        self,
        operation: str,
        run:       Callable[[int], Any],
        context:   Dict[str, Any],
    ) -> Any:
        with self._lock:
            now = self.clock.now()
            store_state   = self.store.snapshot()
            custody_state = self.custody.snapshot()
            try:
                result = run(now)
                self.journal.append(
                    operation,
                    {"now": now, "context": context, "result": _payload(result)},
                )
            except Exception as exc:
                self.store.restore(store_state)
                self.custody.restore(custody_state)
                logger.warning("%s rolled back at %d: %s", operation, now, exc)
                raise
            logger.info("%s committed at %d", operation, now)
            return result
