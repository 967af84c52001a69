"""
crosslock/settlement/orders.py

Order lifecycle: create, cancel by maker, cancel by resolver after expiry.

Every method receives `now`, read once by the engine for the whole
transition. Methods validate first and then mutate; any error aborts the
transition and the engine restores its snapshot.

Custody layout of an order at `address`:
    native balance of `address`       order record storage deposit
    holding record (address, token)   locked amount; deposit funds the
                                      resolver-cancellation premium
"""

import logging
from typing import Optional

from crosslock.config import ProtocolConfig
from crosslock.core.arith import check_width
from crosslock.core.auction import calculate_premium
from crosslock.core.exceptions import (
    CancelOrderByResolverIsForbidden,
    InconsistentNativeTrait,
    InvalidAccount,
    InvalidCancellationFee,
    InvalidPartsAmount,
    MissingCreatorAta,
    OrderHasExpired,
    OrderNotExpired,
    SafetyDepositTooLarge,
    ZeroAmountOrDeposit,
)
from crosslock.core.models import (
    ESCROW_SRC_RECORD_SIZE,
    ORDER_RECORD_SIZE,
    HoldingRef,
    Order,
    OrderParams,
)
from crosslock.custody.allowlist import AllowList
from crosslock.custody.custody import AssetCustody, check_holding
from crosslock.settlement.store import EntityStore

logger = logging.getLogger(__name__)


class OrderManager:

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

    # ── create ────────────────────────────────────────────────

    def create_order(
        self,
        maker:         str,
        params:        OrderParams,
        maker_holding: Optional[HoldingRef],
        now:           int,
    ) -> Order:
        rent = self.custody.rent

        if now >= params.expiration_time:
            raise OrderHasExpired(
                details={"now": now, "expiration_time": params.expiration_time}
            )
        if params.amount == 0 or params.safety_deposit == 0:
            raise ZeroAmountOrDeposit()

        max_safety_deposit = rent.minimum_balance(ESCROW_SRC_RECORD_SIZE)
        if params.safety_deposit > max_safety_deposit:
            raise SafetyDepositTooLarge(
                details={"safety_deposit": params.safety_deposit, "max": max_safety_deposit}
            )
        if params.allow_multiple_fills and params.parts_amount <= 1:
            raise InvalidPartsAmount(details={"parts_amount": params.parts_amount})

        if params.asset_is_native and params.token != self.config.native_mint:
            raise InconsistentNativeTrait(
                "Native asset must use the native mint", {"token": params.token}
            )
        check_holding(
            self.custody, maker_holding, maker, params.token,
            params.asset_is_native, MissingCreatorAta,
        )

        order = Order.from_params(maker, params, params.timelocks.set_deployed_at(now))
        address = order.address
        if self.store.is_used(address):
            raise InvalidAccount("Order address already in use", {"address": address})

        record = self.custody.ensure_record(address, params.token, payer=maker)
        if record.deposit < params.max_cancellation_premium:
            raise InvalidCancellationFee(
                details={
                    "max_cancellation_premium": params.max_cancellation_premium,
                    "available": record.deposit,
                }
            )

        self.custody.transfer_native(maker, address, rent.minimum_balance(ORDER_RECORD_SIZE))
        if params.asset_is_native:
            self.custody.wrap(maker, address, params.amount)
        else:
            self.custody.transfer(maker, address, params.token, params.amount)

        rescue_start = order.timelocks.rescue_start(self.config.rescue_delay)
        self.store.put_order(order, rescue_start)

        logger.info(
            "order created address=%s maker=%s amount=%d multi=%s",
            address, maker, order.amount, order.allow_multiple_fills,
        )
        return order

    # ── cancel ────────────────────────────────────────────────

    def cancel_order(
        self,
        maker:         str,
        address:       str,
        maker_holding: Optional[HoldingRef],
        now:           int,
    ) -> dict:
        order = self.store.get_order(address)
        if maker != order.maker:
            raise InvalidAccount("Only the maker may cancel the order", {"caller": maker})
        check_holding(
            self.custody, maker_holding, order.maker, order.token,
            order.asset_is_native, MissingCreatorAta,
        )

        refunded = self._refund(order)
        reclaimed = self._close(order)

        logger.info("order cancelled address=%s refunded=%d", address, refunded)
        return {"address": address, "refunded": refunded, "deposits_to_maker": reclaimed}

    def cancel_order_by_resolver(
        self,
        resolver:      str,
        address:       str,
        reward_limit:  int,
        maker_holding: Optional[HoldingRef],
        now:           int,
    ) -> dict:
        self.allow_list.require(resolver)
        check_width(reward_limit, 64)
        order = self.store.get_order(address)

        if now < order.expiration_time:
            raise OrderNotExpired(
                details={"now": now, "expiration_time": order.expiration_time}
            )
        if order.max_cancellation_premium == 0:
            raise CancelOrderByResolverIsForbidden()
        check_holding(
            self.custody, maker_holding, order.maker, order.token,
            order.asset_is_native, MissingCreatorAta,
        )

        premium = calculate_premium(
            now,
            order.expiration_time,
            order.cancellation_auction_duration,
            order.max_cancellation_premium,
        )
        reward = min(premium, reward_limit)
        logger.debug("cancellation premium=%d reward_limit=%d", premium, reward_limit)

        refunded = self._refund(order)
        self.custody.pay_from_deposit(address, order.token, resolver, reward)
        reclaimed = self._close(order)

        logger.info(
            "order cancelled by resolver address=%s resolver=%s reward=%d",
            address, resolver, reward,
        )
        return {
            "address":           address,
            "refunded":          refunded,
            "reward":            reward,
            "deposits_to_maker": reclaimed,
        }

    # ── Internal ──────────────────────────────────────────────

    def _refund(self, order: Order) -> int:
        """Return the order's whole custodied balance to the maker."""
        balance = self.custody.balance(order.address, order.token)
        if order.asset_is_native:
            self.custody.unwrap(order.address, order.maker, balance)
        else:
            self.custody.transfer(order.address, order.maker, order.token, balance)
        return balance

    def _close(self, order: Order) -> int:
        """Close the holding record and the order; deposits go to the maker."""
        reclaimed  = self.custody.close_record(order.address, order.token, order.maker)
        reclaimed += self.custody.close_native(order.address, order.maker)
        self.store.remove_order(order.address)
        return reclaimed
