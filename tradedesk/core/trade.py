"""
Trade print domain model

This module defines the Trade class representing an executed trade, either
printed by the market feed, implied by a crossing level update, or a fill of
a user order.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional
from uuid import UUID, uuid4

from .order import OrderSide


@dataclass(frozen=True, slots=True)
class Trade:
    """
    Represents an executed trade.

    This class is immutable (frozen=True): a trade is final once recorded.

    Attributes:
        price: Execution price
        quantity: Executed quantity
        side: Side of the aggressor
        timestamp: Execution time
        trade_id: Unique identifier for the trade
        symbol: Trading pair symbol, if known
        order_id: User order this trade filled, if any
    """

    price: Decimal
    quantity: Decimal
    side: OrderSide
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    trade_id: UUID = field(default_factory=uuid4)
    symbol: Optional[str] = None
    order_id: Optional[UUID] = None

    def __post_init__(self):
        """
        Post-initialization validation.

        Raises:
            ValueError: If trade parameters are invalid
        """
        if self.price <= 0:
            raise ValueError(f"Price must be positive, got {self.price}")

        if self.quantity <= 0:
            raise ValueError(f"Quantity must be positive, got {self.quantity}")

    @property
    def total_value(self) -> Decimal:
        """Calculate total trade value (price * quantity)."""
        return self.price * self.quantity

    @property
    def is_fill(self) -> bool:
        """Check if this trade filled a user order."""
        return self.order_id is not None

    def to_dict(self) -> dict:
        """
        Convert trade to dictionary for the recent-trades panel.

        Returns:
            Dictionary representation of the trade
        """
        return {
            "trade_id": str(self.trade_id),
            "symbol": self.symbol,
            "price": str(self.price),
            "quantity": str(self.quantity),
            "timestamp": self.timestamp.isoformat(),
            "side": self.side.value,
            "order_id": str(self.order_id) if self.order_id is not None else None,
            "total_value": str(self.total_value),
        }

    def __repr__(self) -> str:
        """String representation of the trade."""
        return (
            f"Trade(id={str(self.trade_id)[:8]}..., "
            f"{self.quantity} @ {self.price}, side={self.side.value})"
        )
