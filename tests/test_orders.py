"""
tests/test_orders.py

Order lifecycle.

  CREATE
    rejects expired, zero, oversized-deposit and single-part multi-fill orders
    enforces the native trait and the maker's holding record
    locks amount in custody, stamps timelocks with now, records a rescue anchor

  CANCEL
    maker-only; refunds the full balance and every deposit
    resolver cancellation needs expiry, a premium and the allow-list;
    reward = min(premium, reward_limit), paid out of the holding deposit
"""

import pytest

from crosslock import HoldingRef
from crosslock.core import merkle
from crosslock.core.exceptions import (
    ArithmeticOverflow,
    CancelOrderByResolverIsForbidden,
    InconsistentNativeTrait,
    InvalidAccount,
    InvalidCancellationFee,
    InvalidMint,
    InvalidPartsAmount,
    MissingCreatorAta,
    OrderHasExpired,
    OrderNotExpired,
    SafetyDepositTooLarge,
    ZeroAmountOrDeposit,
)
from crosslock.core.models import ESCROW_SRC_RECORD_SIZE, ORDER_RECORD_SIZE, order_address

from helpers.scenario import (
    FUNDING,
    MAKER,
    NOW,
    ORDER_AMOUNT,
    OUTSIDER,
    RESOLVER,
    TAKER,
    TOKEN,
    TOKEN_SUPPLY,
    make_params,
    multi_fill_secrets,
)


# ─────────────────────────────────────────────────────────────
# CREATE
# ─────────────────────────────────────────────────────────────

class TestCreateOrder:

    def test_locks_amount_and_stamps_timelocks(self, engine, custody, secret_pair, maker_holding):
        _, hashlock = secret_pair
        params = make_params(hashlock)

        order = engine.create_order(MAKER, params, maker_holding)

        assert order.order_hash == params.order_hash(MAKER)
        assert order.address == order_address(order.order_hash)
        assert engine.store.get_order(order.address) is order
        assert order.remaining_amount == ORDER_AMOUNT
        assert order.timelocks.deployed_at == NOW
        assert custody.balance(order.address, TOKEN) == ORDER_AMOUNT
        assert custody.balance(MAKER, TOKEN) == TOKEN_SUPPLY - ORDER_AMOUNT

    def test_maker_pays_record_deposits(self, engine, custody, secret_pair, maker_holding):
        _, hashlock = secret_pair
        order = engine.create_order(MAKER, make_params(hashlock), maker_holding)

        order_deposit = custody.rent.minimum_balance(ORDER_RECORD_SIZE)
        assert custody.native_balance(order.address) == order_deposit
        assert custody.native_balance(MAKER) == FUNDING - order_deposit - custody.record_deposit

    def test_rescue_anchor_recorded(self, engine, secret_pair, maker_holding):
        _, hashlock = secret_pair
        order = engine.create_order(MAKER, make_params(hashlock), maker_holding)
        assert engine.store.rescue_anchors[order.address] == NOW + engine.config.rescue_delay

    def test_journal_records_creation(self, engine, secret_pair, maker_holding):
        _, hashlock = secret_pair
        order = engine.create_order(MAKER, make_params(hashlock), maker_holding)
        entry = engine.journal.get_entries_by_type("create_order")[0]
        assert entry.data["result"]["order_hash"] == order.order_hash.hex()
        assert entry.data["now"] == NOW

    @pytest.mark.parametrize("expiration", [NOW, NOW - 1])
    def test_expired_order_rejected(self, engine, secret_pair, maker_holding, expiration):
        _, hashlock = secret_pair
        with pytest.raises(OrderHasExpired):
            engine.create_order(MAKER, make_params(hashlock, expiration_time=expiration), maker_holding)

    @pytest.mark.parametrize("overrides", [{"amount": 0}, {"safety_deposit": 0}])
    def test_zero_amount_or_deposit(self, engine, secret_pair, maker_holding, overrides):
        _, hashlock = secret_pair
        with pytest.raises(ZeroAmountOrDeposit):
            engine.create_order(MAKER, make_params(hashlock, **overrides), maker_holding)

    def test_safety_deposit_bounded_by_escrow_reserve(self, engine, custody, secret_pair, maker_holding):
        _, hashlock = secret_pair
        reserve = custody.rent.minimum_balance(ESCROW_SRC_RECORD_SIZE)

        engine.create_order(MAKER, make_params(hashlock, safety_deposit=reserve), maker_holding)
        with pytest.raises(SafetyDepositTooLarge):
            engine.create_order(
                MAKER, make_params(hashlock, safety_deposit=reserve + 1, salt=1), maker_holding
            )

    def test_multi_fill_needs_more_than_one_part(self, engine, maker_holding):
        _, _, leaves, _ = multi_fill_secrets(4)
        hashlock = merkle.encode_root(merkle.get_root(leaves), 1)
        with pytest.raises(InvalidPartsAmount):
            engine.create_order(
                MAKER, make_params(hashlock, allow_multiple_fills=True), maker_holding
            )

    def test_native_asset_requires_native_mint(self, engine, secret_pair):
        _, hashlock = secret_pair
        with pytest.raises(InconsistentNativeTrait):
            engine.create_order(MAKER, make_params(hashlock, asset_is_native=True), None)

    def test_native_asset_takes_no_holding_record(self, engine, secret_pair):
        _, hashlock = secret_pair
        native = engine.config.native_mint
        with pytest.raises(InconsistentNativeTrait):
            engine.create_order(
                MAKER,
                make_params(hashlock, token=native, asset_is_native=True),
                HoldingRef(MAKER, native),
            )

    def test_missing_holding_record(self, engine, secret_pair):
        _, hashlock = secret_pair
        with pytest.raises(MissingCreatorAta):
            engine.create_order(MAKER, make_params(hashlock), None)

    def test_holding_record_must_be_open(self, engine, secret_pair):
        _, hashlock = secret_pair
        with pytest.raises(MissingCreatorAta):
            engine.create_order(MAKER, make_params(hashlock, token="dai"), HoldingRef(MAKER, "dai"))

    def test_holding_record_owner_must_match(self, engine, secret_pair):
        _, hashlock = secret_pair
        with pytest.raises(InvalidAccount):
            engine.create_order(MAKER, make_params(hashlock), HoldingRef(TAKER, TOKEN))

    def test_holding_record_token_must_match(self, engine, secret_pair):
        _, hashlock = secret_pair
        with pytest.raises(InvalidMint):
            engine.create_order(MAKER, make_params(hashlock), HoldingRef(MAKER, "dai"))

    def test_same_order_cannot_be_created_twice(self, engine, secret_pair, maker_holding):
        _, hashlock = secret_pair
        engine.create_order(MAKER, make_params(hashlock), maker_holding)
        with pytest.raises(InvalidAccount):
            engine.create_order(MAKER, make_params(hashlock), maker_holding)

    def test_premium_must_fit_in_holding_deposit(self, engine, custody, secret_pair, maker_holding):
        _, hashlock = secret_pair
        too_much = custody.record_deposit + 1
        with pytest.raises(InvalidCancellationFee):
            engine.create_order(
                MAKER, make_params(hashlock, max_cancellation_premium=too_much), maker_holding
            )

    def test_native_order_wraps_lamports(self, engine, custody, secret_pair):
        _, hashlock = secret_pair
        native = engine.config.native_mint
        order = engine.create_order(
            MAKER, make_params(hashlock, token=native, asset_is_native=True), None
        )
        deposits = custody.rent.minimum_balance(ORDER_RECORD_SIZE) + custody.record_deposit
        assert custody.balance(order.address, native) == ORDER_AMOUNT
        assert custody.native_balance(MAKER) == FUNDING - ORDER_AMOUNT - deposits

    def test_rejected_creation_leaves_no_trace(self, engine, custody, secret_pair):
        _, hashlock = secret_pair
        params = make_params(hashlock, max_cancellation_premium=custody.record_deposit + 1)
        with pytest.raises(InvalidCancellationFee):
            engine.create_order(MAKER, params, HoldingRef(MAKER, TOKEN))

        address = order_address(params.order_hash(MAKER))
        assert not custody.has_record(address, TOKEN)
        assert custody.native_balance(MAKER) == FUNDING
        assert address not in engine.store.rescue_anchors
        assert engine.journal.get_all_entries() == []


# ─────────────────────────────────────────────────────────────
# CANCEL
# ─────────────────────────────────────────────────────────────

@pytest.fixture
def premium_order(engine, secret_pair, maker_holding):
    _, hashlock = secret_pair
    return engine.create_order(
        MAKER,
        make_params(
            hashlock,
            max_cancellation_premium=      1000,
            cancellation_auction_duration= 100,
        ),
        maker_holding,
    )


class TestCancelOrder:

    def test_maker_gets_everything_back(self, engine, custody, premium_order, maker_holding):
        payout = engine.cancel_order(MAKER, premium_order.address, maker_holding)

        assert payout["refunded"] == ORDER_AMOUNT
        assert custody.balance(MAKER, TOKEN) == TOKEN_SUPPLY
        assert custody.native_balance(MAKER) == FUNDING
        assert not custody.has_record(premium_order.address, TOKEN)
        assert custody.native_balance(premium_order.address) == 0
        with pytest.raises(InvalidAccount):
            engine.store.get_order(premium_order.address)

    def test_only_maker_may_cancel(self, engine, premium_order, maker_holding):
        with pytest.raises(InvalidAccount):
            engine.cancel_order(TAKER, premium_order.address, maker_holding)

    def test_requires_holding_record(self, engine, premium_order):
        with pytest.raises(MissingCreatorAta):
            engine.cancel_order(MAKER, premium_order.address, None)

    def test_unknown_order(self, engine, maker_holding):
        with pytest.raises(InvalidAccount):
            engine.cancel_order(MAKER, "00" * 32, maker_holding)

    def test_native_order_refunds_lamports(self, engine, custody, secret_pair):
        _, hashlock = secret_pair
        native = engine.config.native_mint
        order = engine.create_order(
            MAKER, make_params(hashlock, token=native, asset_is_native=True), None
        )
        with pytest.raises(InconsistentNativeTrait):
            engine.cancel_order(MAKER, order.address, HoldingRef(MAKER, native))

        engine.cancel_order(MAKER, order.address, None)
        assert custody.native_balance(MAKER) == FUNDING


class TestCancelOrderByResolver:

    def test_not_before_expiry(self, engine, premium_order, maker_holding):
        with pytest.raises(OrderNotExpired):
            engine.cancel_order_by_resolver(RESOLVER, premium_order.address, 10_000, maker_holding)

    def test_reward_follows_premium_curve(self, engine, clock, custody, premium_order, maker_holding):
        clock.set(premium_order.expiration_time + 50)

        payout = engine.cancel_order_by_resolver(
            RESOLVER, premium_order.address, 10_000, maker_holding
        )

        assert payout["reward"] == 500
        assert custody.native_balance(RESOLVER) == FUNDING + 500
        assert custody.native_balance(MAKER) == FUNDING - 500
        assert custody.balance(MAKER, TOKEN) == TOKEN_SUPPLY

    def test_reward_capped_by_limit(self, engine, clock, custody, premium_order, maker_holding):
        clock.set(premium_order.expiration_time + 100)
        payout = engine.cancel_order_by_resolver(RESOLVER, premium_order.address, 200, maker_holding)
        assert payout["reward"] == 200
        assert custody.native_balance(MAKER) == FUNDING - 200

    def test_zero_premium_at_expiry(self, engine, clock, custody, premium_order, maker_holding):
        clock.set(premium_order.expiration_time)
        payout = engine.cancel_order_by_resolver(RESOLVER, premium_order.address, 10_000, maker_holding)
        assert payout["reward"] == 0
        assert custody.native_balance(MAKER) == FUNDING

    def test_negative_reward_limit_rejected(self, engine, clock, custody, premium_order, maker_holding):
        clock.set(premium_order.expiration_time + 50)
        with pytest.raises(ArithmeticOverflow):
            engine.cancel_order_by_resolver(
                RESOLVER, premium_order.address, -10 ** 6, maker_holding
            )
        assert custody.native_balance(RESOLVER) == FUNDING
        assert engine.store.get_order(premium_order.address) is not None

    def test_requires_allow_list(self, engine, clock, premium_order, maker_holding):
        clock.set(premium_order.expiration_time + 50)
        with pytest.raises(InvalidAccount):
            engine.cancel_order_by_resolver(OUTSIDER, premium_order.address, 10_000, maker_holding)

    def test_forbidden_without_premium(self, engine, clock, secret_pair, maker_holding):
        _, hashlock = secret_pair
        order = engine.create_order(MAKER, make_params(hashlock), maker_holding)
        clock.set(order.expiration_time + 50)
        with pytest.raises(CancelOrderByResolverIsForbidden):
            engine.cancel_order_by_resolver(RESOLVER, order.address, 10_000, maker_holding)
