"""
Tests for the trading session: order submission, matching and feed handling.

Includes the reference scenarios for the order-book panel and the order form.
"""

import threading
import pytest
from decimal import Decimal

from tradedesk.config import Settings
from tradedesk.core.order import OrderSide, OrderStatus
from tradedesk.core.order_entry import Balance, OrderRequest
from tradedesk.core.order_registry import OpenOrderRegistry
from tradedesk.core.price_level import PriceLevel
from tradedesk.core.trading_session import TradingSession
from tradedesk.utils.exceptions import (
    EmptyBookException,
    InsufficientBalanceException,
    InvalidLevelException,
    OrderNotCancellableException,
)

RICH = Balance(base=Decimal("100"), quote=Decimal("1000000"))


def market(side, quantity):
    return OrderRequest(side=side, order_type="market", requested_quantity=quantity)


def limit(side, quantity, price):
    return OrderRequest(side=side, order_type="limit", requested_quantity=quantity, limit_price=price)


@pytest.fixture
def session():
    """Empty book, then ask 100/1 and bid 99/2."""
    session = TradingSession(OpenOrderRegistry(), settings=Settings(trade_tape_capacity=50))
    session.apply_level_update(OrderSide.SELL, Decimal("100"), Decimal("1"))
    session.apply_level_update(OrderSide.BUY, Decimal("99"), Decimal("2"))
    return session


class TestReferenceScenarios:
    """The documented order-book and order-entry scenarios."""

    def test_top_of_book(self, session):
        assert session.best_bid() == PriceLevel(Decimal("99"), Decimal("2"))
        assert session.best_ask() == PriceLevel(Decimal("100"), Decimal("1"))
        assert session.spread() == Decimal("1")

    def test_market_buy_fills_and_removes_level(self, session):
        result = session.submit_order(market("buy", "1"), RICH)

        assert [(t.price, t.quantity) for t in result.trades] == [(Decimal("100"), Decimal("1"))]
        assert result.status == OrderStatus.FILLED
        assert result.order.filled_quantity == Decimal("1")
        assert session.best_ask() is None
        assert session.order_book.level_at(OrderSide.SELL, "100") is None

    def test_market_buy_larger_than_book_is_finalized(self, session):
        result = session.submit_order(market("buy", "5"), RICH)
        order = result.order

        assert [(t.price, t.quantity) for t in result.trades] == [(Decimal("100"), Decimal("1"))]
        assert order.status == OrderStatus.PARTIALLY_FILLED
        assert order.remaining_quantity == Decimal("4")
        assert not session.registry.is_open(order.order_id)
        assert order not in session.registry.open_orders()

        # New liquidity does not reach a finalized market order
        session.apply_level_update(OrderSide.SELL, "101", "10")
        assert order.filled_quantity == Decimal("1")

    def test_limit_sell_partially_fills_and_rests(self, session):
        result = session.submit_order(limit("sell", "3", "99"), RICH)
        order = result.order

        assert [(t.price, t.quantity) for t in result.trades] == [(Decimal("99"), Decimal("2"))]
        assert order.status == OrderStatus.PARTIALLY_FILLED
        assert order.filled_quantity == Decimal("2")
        assert session.registry.is_open(order.order_id)
        assert session.best_bid() is None

    def test_cancel_filled_order_fails(self, session):
        result = session.submit_order(market("buy", "1"), RICH)

        with pytest.raises(OrderNotCancellableException):
            session.cancel_order(result.order.order_id)


class TestMarketOrders:
    """Market order execution."""

    def test_walks_levels_best_first(self, session):
        session.apply_level_update(OrderSide.SELL, "101", "2")
        session.apply_level_update(OrderSide.SELL, "102", "5")

        result = session.submit_order(market("buy", "4"), RICH)

        assert [(t.price, t.quantity) for t in result.trades] == [
            (Decimal("100"), Decimal("1")),
            (Decimal("101"), Decimal("2")),
            (Decimal("102"), Decimal("1")),
        ]
        assert result.status == OrderStatus.FILLED
        assert session.best_ask() == PriceLevel(Decimal("102"), Decimal("4"))
        assert result.order.average_fill_price == Decimal("101")

    def test_market_sell(self, session):
        result = session.submit_order(market("sell", "1"), RICH)
        assert result.trades[0].price == Decimal("99")
        assert session.best_bid() == PriceLevel(Decimal("99"), Decimal("1"))

    def test_market_against_empty_side(self):
        session = TradingSession(OpenOrderRegistry())
        session.apply_level_update(OrderSide.BUY, "99", "2")

        with pytest.raises(EmptyBookException):
            session.submit_order(market("buy", "1"), RICH)

        assert session.registry.open_orders() == []
        assert session.get_statistics()["orders_rejected"] == 1

    def test_insufficient_balance_leaves_book(self, session):
        with pytest.raises(InsufficientBalanceException):
            session.submit_order(market("buy", "1"), Balance(base=Decimal("0"), quote=Decimal("50")))
        assert session.best_ask() == PriceLevel(Decimal("100"), Decimal("1"))


class TestLimitOrders:
    """Limit order execution and resting."""

    def test_non_crossing_limit_rests(self, session):
        result = session.submit_order(limit("buy", "1", "98"), RICH)

        assert result.trades == []
        assert result.status == OrderStatus.OPEN
        assert session.registry.is_open(result.order.order_id)
        assert session.best_ask().price == Decimal("100")

    def test_limit_only_takes_levels_within_price(self, session):
        session.apply_level_update(OrderSide.SELL, "101", "5")

        result = session.submit_order(limit("buy", "3", "100"), RICH)

        assert [(t.price, t.quantity) for t in result.trades] == [(Decimal("100"), Decimal("1"))]
        assert result.order.remaining_quantity == Decimal("2")
        assert session.best_ask().price == Decimal("101")

    def test_resting_order_fills_when_book_moves(self, session):
        resting = session.submit_order(limit("buy", "2", "99.5"), RICH).order

        trades = session.apply_level_update(OrderSide.SELL, "99.5", "3")

        fills = [t for t in trades if t.order_id == resting.order_id]
        assert [(t.price, t.quantity) for t in fills] == [(Decimal("99.5"), Decimal("2"))]
        assert resting.status == OrderStatus.FILLED
        assert session.best_ask() == PriceLevel(Decimal("99.5"), Decimal("1"))

    def test_resting_orders_matched_best_price_first(self, session):
        low = session.submit_order(limit("buy", "1", "99.6"), RICH).order
        high = session.submit_order(limit("buy", "1", "99.8"), RICH).order

        session.apply_level_update(OrderSide.SELL, "99.5", "1")

        assert high.status == OrderStatus.FILLED
        assert high.average_fill_price == Decimal("99.5")
        assert low.status == OrderStatus.OPEN
        assert low.filled_quantity == Decimal("0")

    def test_resting_orders_same_price_time_priority(self, session):
        first = session.submit_order(limit("sell", "1", "100.5"), RICH).order
        second = session.submit_order(limit("sell", "1", "100.5"), RICH).order

        # Clears the 100 ask as an implied print and quotes 100.6/1
        session.apply_level_update(OrderSide.BUY, "100.6", "1")

        assert first.status == OrderStatus.FILLED
        assert second.status == OrderStatus.OPEN
        assert session.best_bid() == PriceLevel(Decimal("99"), Decimal("2"))

    def test_cancel_resting(self, session):
        order = session.submit_order(limit("buy", "1", "98"), RICH).order

        session.cancel_order(order.order_id)

        assert order.status == OrderStatus.CANCELLED
        session.apply_level_update(OrderSide.SELL, "97", "5")
        assert order.filled_quantity == Decimal("0")


class TestFeedAndTape:
    """Level updates, prints and the recent-trades panel."""

    def test_crossing_update_prints_then_quotes_full_quantity(self, session):
        trades = session.apply_level_update(OrderSide.BUY, "100", "3")

        assert [(t.price, t.quantity) for t in trades] == [(Decimal("100"), Decimal("1"))]
        assert session.recent_trades(1)[0] is trades[0]
        assert session.best_bid() == PriceLevel(Decimal("100"), Decimal("3"))
        assert session.best_ask() is None

    def test_trade_print_on_tape(self, session):
        trade = session.record_trade_print("65,432.10", "0.1234", OrderSide.BUY)
        assert session.recent_trades(5) == (trade,)
        assert trade.symbol == "BTC-USDT"

    def test_fills_go_on_tape_newest_first(self, session):
        session.apply_level_update(OrderSide.SELL, "101", "1")
        session.submit_order(market("buy", "2"), RICH)

        prices = [t.price for t in session.recent_trades(10)]
        assert prices == [Decimal("101"), Decimal("100")]

    def test_tape_capacity_from_settings(self):
        session = TradingSession(OpenOrderRegistry(), settings=Settings(trade_tape_capacity=3))
        for i in range(5):
            session.record_trade_print(100 + i, 1, OrderSide.SELL)
        assert [t.price for t in session.recent_trades(10)] == [Decimal("104"), Decimal("103"), Decimal("102")]

    def test_invalid_level_propagates(self, session):
        with pytest.raises(InvalidLevelException):
            session.apply_level_update(OrderSide.BUY, "-1", "1")

    def test_last_price_and_change(self, session):
        assert session.last_price() == Decimal("99.5")
        assert session.price_change_percent() is None

        session.record_trade_print("100", "1", OrderSide.BUY)
        session.record_trade_print("102", "1", OrderSide.BUY)

        assert session.last_price() == Decimal("102")
        assert session.price_change_percent() == Decimal("2")

    def test_trade_callbacks(self, session):
        seen = []
        session.register_trade_callback(seen.append)

        session.submit_order(market("buy", "1"), RICH)

        assert len(seen) == 1
        assert seen[0].order_id is not None

    def test_snapshot_default_depth(self, session):
        for i in range(10):
            session.apply_level_update(OrderSide.BUY, Decimal("90") - i, "1")
        snapshot = session.snapshot()
        assert len(snapshot.bids) == Settings().default_depth

    def test_depth_payload(self, session):
        depth = session.get_depth(2)
        assert depth["best_bid"] == "99"
        assert depth["asks"][0]["price"] == "100"

    def test_statistics(self, session):
        session.submit_order(market("buy", "1"), RICH)
        session.submit_order(limit("buy", "1", "98"), RICH)

        stats = session.get_statistics()
        assert stats["orders_processed"] == 2
        assert stats["orders_filled"] == 1
        assert stats["trades_executed"] == 1
        assert stats["total_volume"] == Decimal("1")
        assert stats["open_orders"] == 1


class TestConcurrency:
    """Serialized writers keep the book consistent."""

    def test_concurrent_updates_never_cross(self):
        session = TradingSession(OpenOrderRegistry())
        errors = []

        def feed(side, base, step):
            try:
                for i in range(200):
                    session.apply_level_update(side, Decimal(base + step * (i % 20)), Decimal(i % 4))
                    snapshot = session.snapshot(5)
                    if snapshot.best_bid and snapshot.best_ask:
                        assert snapshot.best_bid.price < snapshot.best_ask.price
            except Exception as e:  # pragma: no cover
                errors.append(e)

        threads = [
            threading.Thread(target=feed, args=(OrderSide.BUY, 90, 1)),
            threading.Thread(target=feed, args=(OrderSide.SELL, 110, -1)),
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert errors == []
