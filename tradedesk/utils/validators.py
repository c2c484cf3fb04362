"""
Input validation utilities

This module provides the shared checks for prices, quantities and level
updates so the order book and the order-entry validator agree on what a
well-formed number is.
"""

from decimal import Decimal, InvalidOperation
from typing import Optional, Type, Union

from .exceptions import (
    BaseTradeDeskException,
    InvalidLevelException,
    InvalidPriceException,
    InvalidQuantityException,
    OrderValidationException,
)


def sanitize_decimal(
    value: Union[str, int, float, Decimal],
    exc_class: Type[BaseTradeDeskException] = OrderValidationException,
) -> Decimal:
    """
    Convert a value to Decimal with proper error handling.

    Strings coming from the order form may carry thousands separators
    ("65,432.10"); those are stripped before parsing.

    Args:
        value: Value to convert to Decimal
        exc_class: Exception raised when the value is not a finite number

    Returns:
        Decimal representation of the value

    Raises:
        exc_class: If value cannot be converted to a finite Decimal
    """
    try:
        if isinstance(value, Decimal):
            result = value
        elif isinstance(value, str):
            result = Decimal(value.replace(",", "").strip())
        else:
            result = Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError) as e:
        raise exc_class(
            f"Invalid decimal value: {value}",
            details={"value": value, "error": str(e)}
        )

    if not result.is_finite():
        raise exc_class(
            f"Decimal value must be finite, got {value}",
            details={"value": str(value)}
        )

    return result


def validate_level(price: Decimal, quantity: Decimal) -> bool:
    """
    Validate a price level update.

    A zero quantity is valid and means "remove the level".

    Raises:
        InvalidLevelException: If price <= 0 or quantity < 0
    """
    if price <= 0:
        raise InvalidLevelException(
            f"Level price must be positive, got {price}",
            details={"price": str(price), "quantity": str(quantity)}
        )

    if quantity < 0:
        raise InvalidLevelException(
            f"Level quantity cannot be negative, got {quantity}",
            details={"price": str(price), "quantity": str(quantity)}
        )

    return True


def validate_price(
    price: Optional[Decimal],
    symbol: str,
    min_price: Optional[Decimal] = None,
    max_price: Optional[Decimal] = None,
) -> bool:
    """
    Validate a limit price.

    Args:
        price: Price to validate
        symbol: Trading symbol for context
        min_price: Minimum acceptable price (None for no bound)
        max_price: Maximum acceptable price (None for no bound)

    Returns:
        True if price is valid

    Raises:
        InvalidPriceException: If price is missing, not positive or out of bounds
    """
    if price is None:
        raise InvalidPriceException(
            "Limit orders require a price",
            details={"symbol": symbol}
        )

    if price <= 0:
        raise InvalidPriceException(
            f"Price must be positive, got {price}",
            details={"symbol": symbol, "price": str(price)}
        )

    if min_price is not None and price < min_price:
        raise InvalidPriceException(
            f"Price {price} is below minimum {min_price}",
            details={"symbol": symbol, "price": str(price), "min": str(min_price)}
        )

    if max_price is not None and price > max_price:
        raise InvalidPriceException(
            f"Price {price} exceeds maximum {max_price}",
            details={"symbol": symbol, "price": str(price), "max": str(max_price)}
        )

    return True


def validate_quantity(
    quantity: Decimal,
    symbol: str,
    min_quantity: Optional[Decimal] = None,
    max_quantity: Optional[Decimal] = None,
) -> bool:
    """
    Validate an order quantity.

    Args:
        quantity: Quantity to validate
        symbol: Trading symbol for context
        min_quantity: Minimum acceptable quantity (None for no bound)
        max_quantity: Maximum acceptable quantity (None for no bound)

    Returns:
        True if quantity is valid

    Raises:
        InvalidQuantityException: If quantity is invalid
    """
    if quantity <= 0:
        raise InvalidQuantityException(
            f"Quantity must be positive, got {quantity}",
            details={"symbol": symbol, "quantity": str(quantity)}
        )

    if min_quantity is not None and quantity < min_quantity:
        raise InvalidQuantityException(
            f"Quantity {quantity} is below minimum {min_quantity}",
            details={"symbol": symbol, "quantity": str(quantity), "min": str(min_quantity)}
        )

    if max_quantity is not None and quantity > max_quantity:
        raise InvalidQuantityException(
            f"Quantity {quantity} exceeds maximum {max_quantity}",
            details={"symbol": symbol, "quantity": str(quantity), "max": str(max_quantity)}
        )

    return True
