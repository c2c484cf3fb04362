"""
Unit tests for the trade tape and the Trade model
"""

import pytest
from decimal import Decimal
from datetime import datetime, timezone

from tradedesk.core.order import OrderSide
from tradedesk.core.trade import Trade
from tradedesk.core.trade_tape import TradeTape


def make_trade(price="65432.10", quantity="0.1234", side=OrderSide.BUY):
    return Trade(price=Decimal(price), quantity=Decimal(quantity), side=side)


class TestTrade:
    """Test cases for Trade."""

    def test_trade_creation(self):
        trade = make_trade()
        assert trade.price == Decimal("65432.10")
        assert trade.quantity == Decimal("0.1234")
        assert trade.side == OrderSide.BUY
        assert trade.timestamp.tzinfo is not None
        assert not trade.is_fill

    def test_trade_is_immutable(self):
        trade = make_trade()
        with pytest.raises(Exception):
            trade.price = Decimal("1")

    @pytest.mark.parametrize("price,quantity", [("0", "1"), ("1", "0"), ("-1", "1")])
    def test_invalid_trade_rejected(self, price, quantity):
        with pytest.raises(ValueError):
            make_trade(price, quantity)

    def test_total_value(self):
        trade = make_trade("100", "2.5")
        assert trade.total_value == Decimal("250.0")

    def test_to_dict(self):
        ts = datetime(2026, 1, 5, 14, 23, 45, tzinfo=timezone.utc)
        trade = Trade(Decimal("100"), Decimal("1"), OrderSide.SELL, timestamp=ts, symbol="BTC-USDT")
        data = trade.to_dict()
        assert data["price"] == "100"
        assert data["side"] == "SELL"
        assert data["symbol"] == "BTC-USDT"
        assert data["order_id"] is None
        assert data["timestamp"] == ts.isoformat()


class TestTradeTape:
    """Test cases for TradeTape."""

    def test_empty_tape(self):
        tape = TradeTape(capacity=5)
        assert len(tape) == 0
        assert tape.recent(5) == ()
        assert tape.last_trade() is None
        assert tape.first_trade() is None

    def test_newest_first(self):
        tape = TradeTape(capacity=5)
        first = make_trade("100")
        second = make_trade("101")
        third = make_trade("102")

        for trade in (first, second, third):
            tape.record(trade)

        assert tape.recent(3) == (third, second, first)
        assert tape.last_trade() is third
        assert tape.first_trade() is first

    def test_oldest_evicted_on_overflow(self):
        tape = TradeTape(capacity=3)
        trades = [make_trade(str(100 + i)) for i in range(5)]
        for trade in trades:
            tape.record(trade)

        assert len(tape) == 3
        assert tape.recent(10) == (trades[4], trades[3], trades[2])

    def test_recent_limits_count(self):
        tape = TradeTape(capacity=10)
        for i in range(6):
            tape.record(make_trade(str(100 + i)))

        recent = tape.recent(2)
        assert [t.price for t in recent] == [Decimal("105"), Decimal("104")]

    def test_recent_is_a_copy(self):
        """A view taken earlier is not affected by later records."""
        tape = TradeTape(capacity=10)
        tape.record(make_trade("100"))
        view = tape.recent(5)

        tape.record(make_trade("101"))

        assert len(view) == 1
        assert list(view) == list(view)

    def test_recent_negative(self):
        with pytest.raises(ValueError):
            TradeTape().recent(-1)

    def test_invalid_capacity(self):
        with pytest.raises(ValueError):
            TradeTape(capacity=0)

    def test_clear(self):
        tape = TradeTape(capacity=3)
        tape.record(make_trade())
        tape.clear()
        assert len(tape) == 0
