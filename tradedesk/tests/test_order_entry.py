"""
Tests for order-entry validation

Each rejection reason, the order in which checks apply, and the shape of
the normalized order returned on success.
"""

import pytest
from decimal import Decimal

from pydantic import ValidationError

from tradedesk.config import Settings
from tradedesk.core.order import OrderSide, OrderStatus, OrderType
from tradedesk.core.order_book import OrderBook
from tradedesk.core.order_entry import Balance, OrderEntryValidator, OrderRequest
from tradedesk.utils.exceptions import (
    EmptyBookException,
    InsufficientBalanceException,
    InvalidPriceException,
    InvalidQuantityException,
    OrderValidationException,
)


@pytest.fixture
def book():
    book = OrderBook("BTC-USDT")
    book.apply_level_update(OrderSide.SELL, "100", "1")
    book.apply_level_update(OrderSide.SELL, "105", "10")
    book.apply_level_update(OrderSide.BUY, "99", "2")
    return book


@pytest.fixture
def validator():
    return OrderEntryValidator(Settings())


@pytest.fixture
def balance():
    return Balance(base=Decimal("2.3456"), quote=Decimal("5250.00"))


class TestOrderRequest:
    """Parsing of form input."""

    def test_lower_case_values(self):
        request = OrderRequest(side="buy", order_type="limit", requested_quantity="0.5", limit_price="65000")
        assert request.side == OrderSide.BUY
        assert request.order_type == OrderType.LIMIT
        assert request.requested_quantity == Decimal("0.5")
        assert request.limit_price == Decimal("65000")

    def test_thousands_separators(self):
        request = OrderRequest(side="sell", order_type="limit", requested_quantity="1,000", limit_price="65,500.00")
        assert request.requested_quantity == Decimal("1000")
        assert request.limit_price == Decimal("65500.00")

    def test_blank_limit_price_is_absent(self):
        request = OrderRequest(side="buy", order_type="market", requested_quantity="1", limit_price="")
        assert request.limit_price is None

    def test_unknown_side(self):
        with pytest.raises(ValidationError):
            OrderRequest(side="hold", order_type="market", requested_quantity="1")

    def test_unparsable_quantity(self):
        with pytest.raises(ValidationError):
            OrderRequest(side="buy", order_type="market", requested_quantity="lots")


class TestValidationFailures:
    """Each rejection reason."""

    @pytest.mark.parametrize("quantity", ["0", "-1"])
    def test_invalid_quantity(self, validator, book, balance, quantity):
        request = OrderRequest(side="buy", order_type="limit", requested_quantity=quantity, limit_price="99")
        with pytest.raises(InvalidQuantityException):
            validator.validate(request, book, balance)

    def test_quantity_above_maximum(self, book, balance):
        validator = OrderEntryValidator(Settings(max_order_quantity=Decimal("10")))
        request = OrderRequest(side="sell", order_type="limit", requested_quantity="11", limit_price="120")
        with pytest.raises(InvalidQuantityException):
            validator.validate(request, book, balance)

    def test_price_above_configured_maximum(self, book, balance):
        validator = OrderEntryValidator(Settings(max_price=Decimal("1000")))
        request = OrderRequest(side="sell", order_type="limit", requested_quantity="1", limit_price="1000.01")
        with pytest.raises(InvalidPriceException, match="exceeds maximum"):
            validator.validate(request, book, balance)

    @pytest.mark.parametrize("price", ["0", "-10"])
    def test_invalid_limit_price(self, validator, book, balance, price):
        request = OrderRequest(side="buy", order_type="limit", requested_quantity="1", limit_price=price)
        with pytest.raises(InvalidPriceException):
            validator.validate(request, book, balance)

    def test_missing_limit_price(self, validator, book, balance):
        request = OrderRequest(side="buy", order_type="limit", requested_quantity="1")
        with pytest.raises(InvalidPriceException):
            validator.validate(request, book, balance)

    def test_market_buy_empty_book(self, validator, balance):
        book = OrderBook("BTC-USDT")
        book.apply_level_update(OrderSide.BUY, "99", "2")
        request = OrderRequest(side="buy", order_type="market", requested_quantity="1")
        with pytest.raises(EmptyBookException):
            validator.validate(request, book, balance)

    def test_market_sell_empty_book(self, validator, balance):
        book = OrderBook("BTC-USDT")
        book.apply_level_update(OrderSide.SELL, "100", "2")
        request = OrderRequest(side="sell", order_type="market", requested_quantity="1")
        with pytest.raises(EmptyBookException):
            validator.validate(request, book, balance)

    def test_limit_order_against_empty_book_is_fine(self, validator, balance):
        request = OrderRequest(side="buy", order_type="limit", requested_quantity="1", limit_price="99")
        order = validator.validate(request, OrderBook("BTC-USDT"), balance)
        assert order.status == OrderStatus.OPEN

    def test_market_buy_insufficient_quote(self, validator, book):
        # 60 * best ask 100 = 6000 > 5250
        request = OrderRequest(side="buy", order_type="market", requested_quantity="60")
        with pytest.raises(InsufficientBalanceException) as exc_info:
            validator.validate(request, book, Balance(base=Decimal("0"), quote=Decimal("5250")))
        assert exc_info.value.details["required"] == "6000"

    def test_limit_buy_uses_limit_price(self, validator, book):
        balance = Balance(base=Decimal("0"), quote=Decimal("100"))
        ok = OrderRequest(side="buy", order_type="limit", requested_quantity="1", limit_price="100")
        too_much = OrderRequest(side="buy", order_type="limit", requested_quantity="1", limit_price="100.01")

        assert validator.validate(ok, book, balance).limit_price == Decimal("100")
        with pytest.raises(InsufficientBalanceException):
            validator.validate(too_much, book, balance)

    def test_sell_insufficient_base(self, validator, book, balance):
        request = OrderRequest(side="sell", order_type="market", requested_quantity="2.3457")
        with pytest.raises(InsufficientBalanceException):
            validator.validate(request, book, balance)

    def test_quantity_checked_before_balance(self, validator, book):
        request = OrderRequest(side="buy", order_type="market", requested_quantity="0")
        with pytest.raises(InvalidQuantityException):
            validator.validate(request, book, Balance(base=Decimal("0"), quote=Decimal("0")))

    def test_all_failures_share_base_class(self, validator, book, balance):
        request = OrderRequest(side="buy", order_type="limit", requested_quantity="-1", limit_price="1")
        with pytest.raises(OrderValidationException):
            validator.validate(request, book, balance)


class TestValidationSuccess:
    """Normalized orders."""

    def test_market_order_normalized(self, validator, book, balance):
        request = OrderRequest(side="buy", order_type="market", requested_quantity="1", limit_price="12345")

        order = validator.validate(request, book, balance)

        assert order.order_type == OrderType.MARKET
        assert order.limit_price is None
        assert order.status == OrderStatus.OPEN
        assert order.filled_quantity == Decimal("0")
        assert order.symbol == "BTC-USDT"

    def test_limit_order_normalized(self, validator, book, balance):
        request = OrderRequest(side="sell", order_type="limit", requested_quantity="2", limit_price="99")

        order = validator.validate(request, book, balance)

        assert order.side == OrderSide.SELL
        assert order.limit_price == Decimal("99")
        assert order.requested_quantity == Decimal("2")
        assert order.remaining_quantity == Decimal("2")

    def test_no_bounds_by_default(self, validator, book):
        """Only non-positive prices and quantities are rejected unless bounds are configured."""
        balance = Balance(base=Decimal("5000000"), quote=Decimal("1000000000"))
        expensive = OrderRequest(side="buy", order_type="limit", requested_quantity="1", limit_price="20000000")
        large = OrderRequest(side="sell", order_type="limit", requested_quantity="2000000", limit_price="120")
        tiny = OrderRequest(side="buy", order_type="limit", requested_quantity="0.000000001", limit_price="0.000000001")

        assert validator.validate(expensive, book, balance).limit_price == Decimal("20000000")
        assert validator.validate(large, book, balance).requested_quantity == Decimal("2000000")
        assert validator.validate(tiny, book, balance).requested_quantity == Decimal("0.000000001")

    def test_fresh_ids(self, validator, book, balance):
        request = OrderRequest(side="sell", order_type="limit", requested_quantity="1", limit_price="99")
        first = validator.validate(request, book, balance)
        second = validator.validate(request, book, balance)
        assert first.order_id != second.order_id

    def test_validation_does_not_touch_book(self, validator, book, balance):
        before = book.snapshot(10)
        request = OrderRequest(side="buy", order_type="market", requested_quantity="1")

        validator.validate(request, book, balance)

        after = book.snapshot(10)
        assert before.bids == after.bids
        assert before.asks == after.asks
