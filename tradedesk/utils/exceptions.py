"""
Custom exceptions for the trading core

This module defines the exception hierarchy raised by the order book,
the order-entry validator and the open-order registry. Validation errors
are meant to be shown to the user for correction; invariant violations
signal corrupted registry state.
"""


class BaseTradeDeskException(Exception):
    """Base exception class for all trading core exceptions."""

    def __init__(self, message: str, details: dict = None):
        """
        Initialize the exception.

        Args:
            message: Human-readable error message
            details: Optional dictionary with additional error context
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}


class InvalidLevelException(BaseTradeDeskException):
    """Raised when a level update carries a non-positive price or negative quantity."""
    pass


class OrderValidationException(BaseTradeDeskException):
    """Base class for order requests rejected by the order-entry validator."""
    pass


class InvalidQuantityException(OrderValidationException):
    """Raised when the requested quantity is zero, negative or out of bounds."""
    pass


class InvalidPriceException(OrderValidationException):
    """Raised when a limit order has a missing, non-positive or out-of-bounds price."""
    pass


class InsufficientBalanceException(OrderValidationException):
    """Raised when the available balance does not cover the order."""
    pass


class EmptyBookException(OrderValidationException):
    """Raised when a market order has no opposing liquidity to execute against."""
    pass


class UnknownOrderException(BaseTradeDeskException):
    """Raised when an order id is absent or the order no longer accepts fills."""
    pass


class InvalidTransitionException(BaseTradeDeskException):
    """Raised when an order status change is not allowed from its current status."""
    pass


class OrderNotCancellableException(InvalidTransitionException):
    """Raised when cancelling an order that is not open or partially filled."""
    pass


class InvariantViolationException(BaseTradeDeskException):
    """Raised when registry state is inconsistent. Fatal to the registry instance."""
    pass


class DuplicateOrderException(InvariantViolationException):
    """Raised when registering an order id that already exists."""
    pass


class OverfillAttemptException(InvariantViolationException):
    """Raised when a fill would push filled quantity past requested quantity."""
    pass


class RegistryCorruptedException(BaseTradeDeskException):
    """Raised on any mutation of a registry that hit an invariant violation."""
    pass
