"""
Order domain model with enums and validation

This module defines the Order class and related enums representing
user orders tracked by the open-order registry.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional, Dict, Any, List, TYPE_CHECKING
from uuid import UUID, uuid4

if TYPE_CHECKING:
    from .trade import Trade


class OrderType(Enum):
    """Order type enumeration."""
    MARKET = "MARKET"
    LIMIT = "LIMIT"

    def __str__(self) -> str:
        return self.value


class OrderSide(Enum):
    """Order side enumeration."""
    BUY = "BUY"
    SELL = "SELL"

    @property
    def opposite(self) -> "OrderSide":
        return OrderSide.SELL if self is OrderSide.BUY else OrderSide.BUY

    def __str__(self) -> str:
        return self.value


class OrderStatus(Enum):
    """Order status enumeration."""
    OPEN = "OPEN"                          # Accepted, nothing filled yet
    PARTIALLY_FILLED = "PARTIALLY_FILLED"  # Some quantity filled
    FILLED = "FILLED"                      # Completely filled
    CANCELLED = "CANCELLED"                # Cancelled by the user
    REJECTED = "REJECTED"                  # Rejected before any fill

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES

    def __str__(self) -> str:
        return self.value


TERMINAL_STATUSES = frozenset(
    {OrderStatus.FILLED, OrderStatus.CANCELLED, OrderStatus.REJECTED}
)


@dataclass(slots=True)
class Order:
    """
    Represents a user order accepted by the order-entry validator.

    Attributes:
        side: Buy or sell
        order_type: MARKET or LIMIT
        requested_quantity: Total quantity of the order
        limit_price: Price per unit (None for market orders)
        symbol: Trading pair symbol (e.g., "BTC-USDT")
        order_id: Unique identifier for the order
        timestamp: Order creation time
        status: Current status of the order
        filled_quantity: Amount already filled
        filled_notional: Sum of price * quantity over all fills
    """

    side: OrderSide
    order_type: OrderType
    requested_quantity: Decimal
    limit_price: Optional[Decimal] = None
    symbol: str = "BTC-USDT"
    order_id: UUID = field(default_factory=uuid4)
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    status: OrderStatus = OrderStatus.OPEN
    filled_quantity: Decimal = field(default=Decimal("0"))
    filled_notional: Decimal = field(default=Decimal("0"))

    def __post_init__(self):
        self.validate()

    def validate(self) -> None:
        """
        Check the structural invariants of the order.

        Raises:
            ValueError: If validation fails
        """
        if self.requested_quantity <= 0:
            raise ValueError(
                f"Quantity must be positive, got {self.requested_quantity}"
            )

        if self.filled_quantity < 0:
            raise ValueError(
                f"Filled quantity cannot be negative, got {self.filled_quantity}"
            )

        if self.filled_quantity > self.requested_quantity:
            raise ValueError(
                f"Filled quantity {self.filled_quantity} exceeds "
                f"requested quantity {self.requested_quantity}"
            )

        if self.order_type == OrderType.LIMIT:
            if self.limit_price is None:
                raise ValueError("LIMIT orders require a price")
            if self.limit_price <= 0:
                raise ValueError(f"Price must be positive, got {self.limit_price}")
        elif self.limit_price is not None:
            raise ValueError("MARKET orders cannot carry a limit price")

    def apply_fill(self, quantity: Decimal, price: Decimal) -> None:
        """
        Add a fill and move the status to PARTIALLY_FILLED or FILLED.

        Callers are responsible for checking the order still accepts fills.

        Raises:
            ValueError: If the fill quantity is not positive or exceeds remaining
        """
        if quantity <= 0:
            raise ValueError(f"Fill quantity must be positive, got {quantity}")

        if quantity > self.remaining_quantity:
            raise ValueError(
                f"Fill quantity {quantity} exceeds remaining {self.remaining_quantity}"
            )

        self.filled_quantity += quantity
        self.filled_notional += quantity * price

        if self.filled_quantity == self.requested_quantity:
            self.status = OrderStatus.FILLED
        else:
            self.status = OrderStatus.PARTIALLY_FILLED

    def crosses(self, best_bid: Optional[Decimal], best_ask: Optional[Decimal]) -> bool:
        """
        Check if the order is immediately marketable against the BBO.

        Args:
            best_bid: Current best bid price
            best_ask: Current best ask price

        Returns:
            True if the order can be matched right now
        """
        if self.order_type == OrderType.MARKET:
            opposing = best_ask if self.is_buy else best_bid
            return opposing is not None

        if self.is_buy:
            return best_ask is not None and self.limit_price >= best_ask

        return best_bid is not None and self.limit_price <= best_bid

    @property
    def remaining_quantity(self) -> Decimal:
        return self.requested_quantity - self.filled_quantity

    @property
    def fill_percent(self) -> Decimal:
        """Filled share of the order in percent, as shown in the open-orders panel."""
        return self.filled_quantity / self.requested_quantity * Decimal("100")

    @property
    def average_fill_price(self) -> Optional[Decimal]:
        if self.filled_quantity == 0:
            return None
        return self.filled_notional / self.filled_quantity

    @property
    def is_fully_filled(self) -> bool:
        return self.filled_quantity == self.requested_quantity

    @property
    def is_buy(self) -> bool:
        return self.side == OrderSide.BUY

    @property
    def is_sell(self) -> bool:
        return self.side == OrderSide.SELL

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    def __repr__(self) -> str:
        """String representation of the order."""
        price_str = f"{self.limit_price}" if self.limit_price is not None else "MARKET"
        return (
            f"Order(id={str(self.order_id)[:8]}..., "
            f"{self.side.value} {self.requested_quantity} {self.symbol} @ {price_str}, "
            f"status={self.status.value}, "
            f"filled={self.filled_quantity}/{self.requested_quantity})"
        )

    def __eq__(self, other) -> bool:
        """Equality based on order ID."""
        if not isinstance(other, Order):
            return False
        return self.order_id == other.order_id

    def __hash__(self) -> int:
        return hash(self.order_id)

    def to_dict(self) -> Dict[str, Any]:
        """Convert order to a dictionary for the open-orders panel."""
        average = self.average_fill_price
        return {
            "order_id": str(self.order_id),
            "symbol": self.symbol,
            "order_type": self.order_type.value,
            "side": self.side.value,
            "requested_quantity": str(self.requested_quantity),
            "limit_price": str(self.limit_price) if self.limit_price is not None else None,
            "timestamp": self.timestamp.isoformat(),
            "status": self.status.value,
            "filled_quantity": str(self.filled_quantity),
            "remaining_quantity": str(self.remaining_quantity),
            "fill_percent": str(self.fill_percent),
            "average_fill_price": str(average) if average is not None else None,
        }


@dataclass(frozen=True, slots=True)
class OrderStatusUpdate:
    """Outbound notification of an order status change."""

    order_id: UUID
    status: OrderStatus
    filled_quantity: Decimal

    @classmethod
    def from_order(cls, order: Order) -> "OrderStatusUpdate":
        return cls(
            order_id=order.order_id,
            status=order.status,
            filled_quantity=order.filled_quantity,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "order_id": str(self.order_id),
            "status": self.status.value,
            "filled_quantity": str(self.filled_quantity),
        }


@dataclass
class OrderResult:
    """
    Result of an order submission to a trading session.

    Attributes:
        order: The order that was submitted
        trades: Fills generated while the order was being matched
        status: Status of the order when matching finished
        message: Human-readable message about the order result
        timestamp: Time when the result was generated
    """
    order: Order
    trades: List['Trade']
    status: OrderStatus
    message: str
    timestamp: datetime

    def to_dict(self) -> Dict[str, Any]:
        """Convert order result to dictionary for display."""
        return {
            "order_id": str(self.order.order_id),
            "status": self.status.value,
            "filled_quantity": str(self.order.filled_quantity),
            "remaining_quantity": str(self.order.remaining_quantity),
            "trades": [trade.to_dict() for trade in self.trades],
            "message": self.message,
            "timestamp": self.timestamp.isoformat(),
        }
