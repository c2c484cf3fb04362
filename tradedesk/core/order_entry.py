"""
Order entry: request model, balances and pre-trade validation

The order form submits an OrderRequest; the OrderEntryValidator checks it
against the current book and the user's available balance and, if it passes,
returns a normalized Order ready to be registered.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .order import Order, OrderSide, OrderStatus, OrderType
from .order_book import OrderBook
from ..config import Settings, get_settings
from ..utils.exceptions import (
    EmptyBookException,
    InsufficientBalanceException,
    InvalidPriceException,
    InvalidQuantityException,
)
from ..utils.validators import sanitize_decimal, validate_price, validate_quantity


class OrderRequest(BaseModel):
    """Order request as submitted by the order-entry form."""

    model_config = ConfigDict(frozen=True, json_schema_extra={
        "example": {
            "side": "buy",
            "order_type": "limit",
            "limit_price": "65,000.00",
            "requested_quantity": "0.5"
        }
    })

    side: OrderSide = Field(..., description="Order side: buy or sell")
    order_type: OrderType = Field(..., description="Order type: market or limit")
    requested_quantity: Decimal = Field(..., description="Quantity in base currency")
    limit_price: Optional[Decimal] = Field(
        None,
        description="Limit price in quote currency (limit orders only)"
    )

    @field_validator("side", "order_type", mode="before")
    @classmethod
    def normalize_enum(cls, v: Any) -> Any:
        """Accept the form's lower-case values ("buy", "limit")."""
        if isinstance(v, str):
            return v.strip().upper()
        return v

    @field_validator("requested_quantity", "limit_price", mode="before")
    @classmethod
    def strip_thousands_separators(cls, v: Any) -> Any:
        """Accept display-formatted numbers such as "65,000.00"."""
        if isinstance(v, str):
            v = v.replace(",", "").strip()
            return v or None
        return v


@dataclass(frozen=True)
class Balance:
    """
    Funds available to the user for one trading pair.

    Attributes:
        base: Available base currency (e.g., BTC), spent by sells
        quote: Available quote currency (e.g., USDT), spent by buys
    """

    base: Decimal
    quote: Decimal

    def available_for(self, side: OrderSide) -> Decimal:
        return self.quote if side == OrderSide.BUY else self.base


class OrderEntryValidator:
    """
    Validates order requests against book state and available balance.

    Validation never mutates the book, the tape or any registry; it either
    raises an OrderValidationException subclass or returns a new Order.
    """

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()

    def validate(
        self,
        request: OrderRequest,
        book: OrderBook,
        balance: Balance,
    ) -> Order:
        """
        Validate an order request.

        Checks run in this order: quantity, limit price, opposing liquidity
        for market orders, then balance.

        Args:
            request: Order request from the form layer
            book: Order book the order would trade against
            balance: Funds available to the user

        Returns:
            Normalized Order in status OPEN with nothing filled

        Raises:
            InvalidQuantityException: If requested quantity <= 0 or outside configured bounds
            InvalidPriceException: If a limit price is missing, <= 0 or outside configured bounds
            EmptyBookException: If a market order has no opposing levels
            InsufficientBalanceException: If the balance does not cover the order
        """
        symbol = book.symbol
        quantity = sanitize_decimal(request.requested_quantity, InvalidQuantityException)
        validate_quantity(
            quantity,
            symbol,
            min_quantity=self.settings.min_order_quantity,
            max_quantity=self.settings.max_order_quantity,
        )

        limit_price: Optional[Decimal] = None
        if request.order_type == OrderType.LIMIT:
            if request.limit_price is not None:
                limit_price = sanitize_decimal(request.limit_price, InvalidPriceException)
            validate_price(
                limit_price,
                symbol,
                min_price=self.settings.min_price,
                max_price=self.settings.max_price,
            )
            reference_price = limit_price
        else:
            reference_price = book.best_price(request.side.opposite)
            if reference_price is None:
                raise EmptyBookException(
                    f"No {request.side.opposite.value} liquidity for market "
                    f"{request.side.value} on {symbol}",
                    details={"symbol": symbol, "side": request.side.value}
                )

        self._check_balance(request.side, quantity, reference_price, balance, symbol)

        return Order(
            side=request.side,
            order_type=request.order_type,
            requested_quantity=quantity,
            limit_price=limit_price,
            symbol=symbol,
            status=OrderStatus.OPEN,
        )

    @staticmethod
    def _check_balance(
        side: OrderSide,
        quantity: Decimal,
        reference_price: Decimal,
        balance: Balance,
        symbol: str,
    ) -> None:
        if side == OrderSide.BUY:
            required = quantity * reference_price
            available = balance.quote
        else:
            required = quantity
            available = balance.base

        if required > available:
            raise InsufficientBalanceException(
                f"{side.value} {quantity} {symbol} requires {required}, "
                f"only {available} available",
                details={
                    "symbol": symbol,
                    "side": side.value,
                    "required": str(required),
                    "available": str(available),
                    "reference_price": str(reference_price),
                }
            )
