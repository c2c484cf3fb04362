"""
Aggregated price level

This module defines the PriceLevel value stored on each side of the order
book: the total quantity available at one price.
"""

from dataclasses import dataclass
from decimal import Decimal

from ..utils.exceptions import InvalidLevelException


@dataclass(frozen=True, slots=True)
class PriceLevel:
    """
    Quantity available at a single price.

    Levels are immutable; the book replaces a level rather than mutating it,
    so a level handed out by a snapshot never changes afterwards.

    Attributes:
        price: The price of this level
        quantity: Aggregated quantity at the price, always positive
    """

    price: Decimal
    quantity: Decimal

    def __post_init__(self):
        if self.price <= 0:
            raise InvalidLevelException(
                f"Level price must be positive, got {self.price}",
                details={"price": str(self.price)}
            )
        if self.quantity <= 0:
            raise InvalidLevelException(
                f"Stored level quantity must be positive, got {self.quantity}",
                details={"price": str(self.price), "quantity": str(self.quantity)}
            )

    @property
    def total(self) -> Decimal:
        """Notional value of the level (price * quantity)."""
        return self.price * self.quantity

    def with_quantity(self, quantity: Decimal) -> "PriceLevel":
        return PriceLevel(self.price, quantity)

    def to_list(self) -> list:
        return [str(self.price), str(self.quantity)]

    def __repr__(self) -> str:
        return f"PriceLevel(price={self.price}, quantity={self.quantity})"
