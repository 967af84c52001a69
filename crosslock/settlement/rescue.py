"""
crosslock/settlement/rescue.py

Escape hatch for tokens stranded at an order or escrow address.

After rescue_start a resolver may pull any token balance held at the
entity's address, whether or not the entity is still live. The rescued token
is never compared with the entity's locked token. Emptying a record closes
it; its deposit goes to the rescuer.
"""

import logging
from typing import Optional

from crosslock.core.arith import check_width
from crosslock.core.exceptions import (
    InvalidAccount,
    InvalidAmount,
    InvalidTime,
    MissingRecipientAta,
)
from crosslock.core.models import HoldingRef, Side, escrow_address, order_address
from crosslock.custody.allowlist import AllowList
from crosslock.custody.custody import AssetCustody, check_holding
from crosslock.settlement.store import EntityStore

logger = logging.getLogger(__name__)


class RescueManager:

    def __init__(
        self,
        store:      EntityStore,
        custody:    AssetCustody,
        allow_list: AllowList,
    ) -> None:
        self.store      = store
        self.custody    = custody
        self.allow_list = allow_list

    def rescue_funds_for_order(
        self,
        resolver:         str,
        order_hash:       bytes,
        token:            str,
        rescue_amount:    int,
        resolver_holding: Optional[HoldingRef],
        now:              int,
    ) -> dict:
        self.allow_list.require(resolver)
        address = order_address(order_hash)
        rescue_start = self.store.rescue_anchors.get(address)
        if rescue_start is None:
            raise InvalidAccount("No order was ever created at this address", {"address": address})
        return self._rescue(address, rescue_start, resolver, token, rescue_amount,
                            resolver_holding, now)

    def rescue_funds_for_escrow(
        self,
        caller:          str,
        order_hash:      bytes,
        hashlock:        bytes,
        counterparty:    str,
        token:           str,
        amount:          int,
        safety_deposit:  int,
        rescue_start:    int,
        side:            Side,
        rescue_token:    str,
        rescue_amount:   int,
        caller_holding:  Optional[HoldingRef],
        now:             int,
    ) -> dict:
        # The caller is the escrow's resolver: the taker on the source side,
        # the creator on the destination side.
        if Side(side) is Side.SRC:
            creator, recipient = counterparty, caller
        else:
            creator, recipient = caller, counterparty

        address = escrow_address(
            order_hash, hashlock, creator, recipient, token,
            amount, safety_deposit, rescue_start,
        )
        return self._rescue(address, rescue_start, caller, rescue_token, rescue_amount,
                            caller_holding, now)

    def _rescue(
        self,
        address:       str,
        rescue_start:  int,
        rescuer:       str,
        token:         str,
        rescue_amount: int,
        holding:       Optional[HoldingRef],
        now:           int,
    ) -> dict:
        check_width(rescue_amount, 64)
        if now < rescue_start:
            raise InvalidTime(details={"now": now, "rescue_start": rescue_start})

        if not self.custody.has_record(address, token):
            raise InvalidAccount(
                "No holding record at address", {"address": address, "token": token}
            )
        balance = self.custody.balance(address, token)
        if rescue_amount > balance:
            raise InvalidAmount(
                "Rescue amount exceeds balance",
                {"rescue_amount": rescue_amount, "balance": balance},
            )
        check_holding(self.custody, holding, rescuer, token, False, MissingRecipientAta)

        self.custody.transfer(address, rescuer, token, rescue_amount)
        closed = rescue_amount == balance
        if closed:
            self.custody.close_record(address, token, rescuer)

        logger.info(
            "rescued %d of %s from %s to %s (record closed=%s)",
            rescue_amount, token, address, rescuer, closed,
        )
        return {
            "address":       address,
            "token":         token,
            "rescue_amount": rescue_amount,
            "rescuer":       rescuer,
            "record_closed": closed,
        }
