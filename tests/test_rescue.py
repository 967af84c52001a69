"""
tests/test_rescue.py

Rescue of tokens stranded at order and escrow addresses.

  allowed from rescue_start onward, never before
  order rescue requires an allow-listed resolver; escrow rescue requires the
  caller to be the escrow's resolver, which the derived address enforces
  any token may be rescued, not only the locked one
  emptying a record closes it and pays its deposit to the rescuer
"""

import pytest

from crosslock import HoldingRef, Side
from crosslock.core.exceptions import (
    ArithmeticOverflow,
    InvalidAccount,
    InvalidAmount,
    InvalidTime,
    MissingRecipientAta,
)

from helpers.scenario import (
    FUNDING,
    MAKER,
    NOW,
    ORDER_AMOUNT,
    OUTSIDER,
    RESOLVER,
    SAFETY_DEPOSIT,
    TAKER,
    TOKEN,
    TOKEN_SUPPLY,
    default_timelocks,
    make_params,
)

STRAY = "dai"
STRAY_AMOUNT = 500


@pytest.fixture
def order(engine, secret_pair, maker_holding):
    _, hashlock = secret_pair
    return engine.create_order(MAKER, make_params(hashlock), maker_holding)


@pytest.fixture
def stray_at_order(custody, order):
    custody.open_record(order.address, STRAY, payer=OUTSIDER)
    custody.mint(order.address, STRAY, STRAY_AMOUNT)
    custody.open_record(RESOLVER, STRAY, payer=RESOLVER)
    return order


@pytest.fixture
def rescue_start(engine):
    return NOW + engine.config.rescue_delay


class TestRescueFromOrder:

    def test_before_rescue_start(self, engine, clock, stray_at_order, rescue_start):
        clock.set(rescue_start - 1)
        with pytest.raises(InvalidTime):
            engine.rescue_funds_for_order(
                RESOLVER, stray_at_order.order_hash, STRAY, STRAY_AMOUNT,
                HoldingRef(RESOLVER, STRAY),
            )

    def test_partial_rescue_keeps_record(self, engine, clock, custody, stray_at_order, rescue_start):
        clock.set(rescue_start)
        result = engine.rescue_funds_for_order(
            RESOLVER, stray_at_order.order_hash, STRAY, 200, HoldingRef(RESOLVER, STRAY),
        )
        assert result["record_closed"] is False
        assert custody.balance(RESOLVER, STRAY) == 200
        assert custody.balance(stray_at_order.address, STRAY) == STRAY_AMOUNT - 200

    def test_full_rescue_closes_record(self, engine, clock, custody, stray_at_order, rescue_start):
        clock.set(rescue_start)
        clock.advance(100)
        engine.rescue_funds_for_order(
            RESOLVER, stray_at_order.order_hash, STRAY, STRAY_AMOUNT,
            HoldingRef(RESOLVER, STRAY),
        )
        assert not custody.has_record(stray_at_order.address, STRAY)
        # the closed record refunds what the rescuer paid for its own STRAY record
        assert custody.native_balance(RESOLVER) == FUNDING
        # the order itself is untouched
        assert custody.balance(stray_at_order.address, TOKEN) == ORDER_AMOUNT
        assert engine.store.get_order(stray_at_order.address) is not None

    def test_locked_token_may_be_rescued(self, engine, clock, custody, order, rescue_start, resolver_holding):
        clock.set(rescue_start)
        engine.rescue_funds_for_order(
            RESOLVER, order.order_hash, TOKEN, ORDER_AMOUNT, resolver_holding,
        )
        assert custody.balance(RESOLVER, TOKEN) == TOKEN_SUPPLY + ORDER_AMOUNT

    def test_amount_bounded_by_balance(self, engine, clock, stray_at_order, rescue_start):
        clock.set(rescue_start)
        with pytest.raises(InvalidAmount):
            engine.rescue_funds_for_order(
                RESOLVER, stray_at_order.order_hash, STRAY, STRAY_AMOUNT + 1,
                HoldingRef(RESOLVER, STRAY),
            )

    def test_negative_amount_rejected(self, engine, clock, custody, stray_at_order, rescue_start):
        clock.set(rescue_start)
        with pytest.raises(ArithmeticOverflow):
            engine.rescue_funds_for_order(
                RESOLVER, stray_at_order.order_hash, STRAY, -1_000,
                HoldingRef(RESOLVER, STRAY),
            )
        assert custody.balance(RESOLVER, STRAY) == 0
        assert custody.balance(stray_at_order.address, STRAY) == STRAY_AMOUNT

    def test_requires_allow_list(self, engine, clock, stray_at_order, rescue_start):
        clock.set(rescue_start)
        with pytest.raises(InvalidAccount):
            engine.rescue_funds_for_order(
                OUTSIDER, stray_at_order.order_hash, STRAY, STRAY_AMOUNT, None,
            )

    def test_requires_rescuer_record(self, engine, clock, stray_at_order, rescue_start):
        clock.set(rescue_start)
        with pytest.raises(MissingRecipientAta):
            engine.rescue_funds_for_order(
                TAKER, stray_at_order.order_hash, STRAY, STRAY_AMOUNT, None,
            )

    def test_unknown_order(self, engine, clock, rescue_start):
        clock.set(rescue_start)
        with pytest.raises(InvalidAccount):
            engine.rescue_funds_for_order(RESOLVER, b"\x42" * 32, TOKEN, 1, None)

    def test_no_record_for_token(self, engine, clock, order, rescue_start):
        clock.set(rescue_start)
        with pytest.raises(InvalidAccount):
            engine.rescue_funds_for_order(
                RESOLVER, order.order_hash, STRAY, 1, HoldingRef(RESOLVER, STRAY),
            )

    def test_rescue_after_order_closed(self, engine, clock, custody, order, rescue_start, maker_holding):
        engine.cancel_order(MAKER, order.address, maker_holding)
        custody.open_record(order.address, STRAY, payer=OUTSIDER)
        custody.mint(order.address, STRAY, STRAY_AMOUNT)
        custody.open_record(RESOLVER, STRAY, payer=RESOLVER)

        clock.set(rescue_start)
        engine.rescue_funds_for_order(
            RESOLVER, order.order_hash, STRAY, STRAY_AMOUNT, HoldingRef(RESOLVER, STRAY),
        )
        assert custody.balance(RESOLVER, STRAY) == STRAY_AMOUNT


class TestRescueFromEscrow:

    @pytest.fixture
    def escrow(self, engine, order, auction):
        return engine.create_escrow(TAKER, order.address, ORDER_AMOUNT, auction)

    def _rescue(self, engine, escrow, caller, counterparty, holding, amount=ORDER_AMOUNT):
        return engine.rescue_funds_for_escrow(
            caller,
            escrow.order_hash,
            escrow.hashlock,
            counterparty,
            escrow.token,
            escrow.amount,
            escrow.safety_deposit,
            escrow.rescue_start,
            escrow.side,
            escrow.token,
            amount,
            holding,
        )

    def test_src_rescue_by_taker(self, engine, clock, custody, escrow, taker_holding):
        clock.set(escrow.rescue_start)
        result = self._rescue(engine, escrow, TAKER, MAKER, taker_holding)

        assert result["address"] == escrow.address
        assert result["record_closed"] is True
        assert custody.balance(TAKER, TOKEN) == TOKEN_SUPPLY + ORDER_AMOUNT
        assert not custody.has_record(escrow.address, TOKEN)

    def test_before_rescue_start(self, engine, clock, escrow, taker_holding):
        clock.set(escrow.rescue_start - 100)
        with pytest.raises(InvalidTime):
            self._rescue(engine, escrow, TAKER, MAKER, taker_holding)

    def test_wrong_caller_derives_unused_address(self, engine, clock, escrow, resolver_holding):
        clock.set(escrow.rescue_start)
        with pytest.raises(InvalidAccount):
            self._rescue(engine, escrow, RESOLVER, MAKER, resolver_holding)

    def test_amount_bounded_by_balance(self, engine, clock, escrow, taker_holding):
        clock.set(escrow.rescue_start)
        with pytest.raises(InvalidAmount):
            self._rescue(engine, escrow, TAKER, MAKER, taker_holding, ORDER_AMOUNT + 1)

    def test_negative_amount_rejected(self, engine, clock, custody, escrow, taker_holding):
        clock.set(escrow.rescue_start)
        with pytest.raises(ArithmeticOverflow):
            self._rescue(engine, escrow, TAKER, MAKER, taker_holding, -1)
        assert custody.balance(escrow.address, TOKEN) == ORDER_AMOUNT

    def test_dst_rescue_needs_no_allow_list(self, engine, clock, custody, secret_pair):
        _, hashlock = secret_pair
        custody.open_record(OUTSIDER, TOKEN, payer=OUTSIDER)
        custody.mint(OUTSIDER, TOKEN, 1_000)
        holding = HoldingRef(OUTSIDER, TOKEN)

        escrow = engine.create_dst_escrow(
            creator=                    OUTSIDER,
            order_hash=                 b"\x22" * 32,
            hashlock=                   hashlock,
            recipient=                  MAKER,
            token=                      TOKEN,
            amount=                     1_000,
            safety_deposit=             SAFETY_DEPOSIT,
            timelocks=                  default_timelocks(),
            src_cancellation_timestamp= NOW + 300,
            rescue_start=               NOW + engine.config.rescue_delay,
            creator_holding=            holding,
        )
        assert escrow.side is Side.DST

        clock.set(escrow.rescue_start)
        self._rescue(engine, escrow, OUTSIDER, MAKER, holding, amount=1_000)
        assert custody.balance(OUTSIDER, TOKEN) == 1_000
