"""
Registry of the user's open orders

The registry owns the order state machine:

    OPEN -> PARTIALLY_FILLED -> FILLED
    OPEN | PARTIALLY_FILLED -> CANCELLED
    OPEN -> REJECTED

FILLED, CANCELLED and REJECTED are terminal. Orders leave the open set when
they reach a terminal status or are finalized (a market order that ran out
of liquidity keeps its fill level but never rests) and are kept in an
archive so they can still be looked up.

A duplicate registration or an overfill means the registry state can no
longer be trusted; after either, every mutating call raises
RegistryCorruptedException until reset() is called.
"""

import threading
from decimal import Decimal
from typing import Callable, Dict, List, Optional, Union
from uuid import UUID

from .order import Order, OrderStatus, OrderStatusUpdate
from .trade import Trade
from .trade_tape import TradeTape
from ..utils.exceptions import (
    DuplicateOrderException,
    InvalidPriceException,
    InvalidQuantityException,
    InvalidTransitionException,
    InvariantViolationException,
    OrderNotCancellableException,
    OverfillAttemptException,
    RegistryCorruptedException,
    UnknownOrderException,
)
from ..utils.logger import get_logger
from ..utils.validators import sanitize_decimal

StatusCallback = Callable[[OrderStatusUpdate], None]


class OpenOrderRegistry:
    """
    Tracks a user's orders and applies fills, cancels and rejects to them.

    Thread-safe: every public method holds the registry lock.

    Attributes:
        tape: Default tape that receives a Trade for every applied fill
    """

    def __init__(self, tape: Optional[TradeTape] = None):
        self.tape: Optional[TradeTape] = tape
        self._orders: Dict[UUID, Order] = {}
        self._archive: Dict[UUID, Order] = {}
        self._callbacks: List[StatusCallback] = []
        self._lock = threading.RLock()
        self._corruption: Optional[InvariantViolationException] = None
        self.logger = get_logger()

    # State machine

    def register(self, order: Order) -> Order:
        """
        Add a freshly validated order to the open set.

        Raises:
            DuplicateOrderException: If the order id was already registered
            InvalidTransitionException: If the order is not a new OPEN order
        """
        with self._lock:
            self._ensure_healthy()

            if order.order_id in self._orders or order.order_id in self._archive:
                self._poison(DuplicateOrderException(
                    f"Order {order.order_id} is already registered",
                    details={"order_id": str(order.order_id)}
                ))

            if order.status != OrderStatus.OPEN or order.filled_quantity != 0:
                raise InvalidTransitionException(
                    f"Only new OPEN orders can be registered, got {order.status.value}",
                    details={"order_id": str(order.order_id)}
                )

            self._orders[order.order_id] = order
            self._publish(order)
            return order

    def apply_fill(
        self,
        order_id: UUID,
        fill_quantity: Union[str, Decimal],
        fill_price: Union[str, Decimal],
        tape: Optional[TradeTape] = None,
    ) -> Trade:
        """
        Apply an execution to an open order.

        Args:
            order_id: Order receiving the fill
            fill_quantity: Executed quantity, at most the remaining quantity
            fill_price: Execution price
            tape: Tape to record the fill on (defaults to the registry tape)

        Returns:
            The Trade recorded for the fill

        Raises:
            UnknownOrderException: If the order is absent, terminal or finalized
            OverfillAttemptException: If the fill exceeds the remaining quantity
        """
        fill_quantity = sanitize_decimal(fill_quantity, InvalidQuantityException)
        fill_price = sanitize_decimal(fill_price, InvalidPriceException)

        if fill_quantity <= 0:
            raise InvalidQuantityException(
                f"Fill quantity must be positive, got {fill_quantity}",
                details={"order_id": str(order_id)}
            )
        if fill_price <= 0:
            raise InvalidPriceException(
                f"Fill price must be positive, got {fill_price}",
                details={"order_id": str(order_id)}
            )

        with self._lock:
            self._ensure_healthy()
            order = self._require_open(order_id)

            if fill_quantity > order.remaining_quantity:
                self._poison(OverfillAttemptException(
                    f"Fill of {fill_quantity} exceeds remaining "
                    f"{order.remaining_quantity} on order {order_id}",
                    details={
                        "order_id": str(order_id),
                        "fill_quantity": str(fill_quantity),
                        "remaining_quantity": str(order.remaining_quantity),
                    }
                ))

            order.apply_fill(fill_quantity, fill_price)

            trade = Trade(
                price=fill_price,
                quantity=fill_quantity,
                side=order.side,
                symbol=order.symbol,
                order_id=order.order_id,
            )
            target = tape if tape is not None else self.tape
            if target is not None:
                target.record(trade)

            self.logger.log_trade_execution(
                trade.trade_id,
                trade.symbol,
                trade.price,
                trade.quantity,
                trade.side.value,
                order_id=order.order_id,
            )

            if order.is_terminal:
                self._archive_order(order)
            self._publish(order)
            return trade

    def cancel(self, order_id: UUID) -> Order:
        """
        Cancel an open or partially filled order.

        Raises:
            OrderNotCancellableException: If the order is terminal or finalized
            UnknownOrderException: If the order was never registered
        """
        with self._lock:
            self._ensure_healthy()
            order = self._orders.get(order_id)

            if order is None:
                if order_id in self._archive:
                    archived = self._archive[order_id]
                    raise OrderNotCancellableException(
                        f"Order {order_id} is {archived.status.value} and no longer open",
                        details={"order_id": str(order_id), "status": archived.status.value}
                    )
                raise UnknownOrderException(
                    f"Order {order_id} not found",
                    details={"order_id": str(order_id)}
                )

            order.status = OrderStatus.CANCELLED
            self._archive_order(order)
            self.logger.log_order_cancellation(order_id, order.symbol)
            self._publish(order)
            return order

    def reject(self, order_id: UUID, reason: str = "Rejected") -> Order:
        """
        Reject an order that has not been filled at all.

        Raises:
            InvalidTransitionException: If the order already has fills or is closed
            UnknownOrderException: If the order was never registered
        """
        with self._lock:
            self._ensure_healthy()
            order = self._orders.get(order_id)

            if order is None:
                if order_id in self._archive:
                    raise InvalidTransitionException(
                        f"Order {order_id} is closed and cannot be rejected",
                        details={"order_id": str(order_id)}
                    )
                raise UnknownOrderException(
                    f"Order {order_id} not found",
                    details={"order_id": str(order_id)}
                )

            if order.filled_quantity > 0:
                raise InvalidTransitionException(
                    f"Order {order_id} has fills and cannot be rejected",
                    details={
                        "order_id": str(order_id),
                        "filled_quantity": str(order.filled_quantity),
                    }
                )

            order.status = OrderStatus.REJECTED
            self._archive_order(order)
            self.logger.info(f"Order rejected: {order_id} ({reason})", order_id=order_id)
            self._publish(order)
            return order

    def finalize(self, order_id: UUID) -> Order:
        """
        Close an order that must not rest, keeping its current fill level.

        An order with partial fills stays PARTIALLY_FILLED; one with no fills
        is cancelled. Either way it leaves the open set.

        Raises:
            UnknownOrderException: If the order is not open
        """
        with self._lock:
            self._ensure_healthy()
            order = self._require_open(order_id)

            if order.filled_quantity == 0:
                order.status = OrderStatus.CANCELLED
                self.logger.log_order_cancellation(order_id, order.symbol, reason="No liquidity")

            self._archive_order(order)
            self._publish(order)
            return order

    # Queries

    def get(self, order_id: UUID) -> Optional[Order]:
        with self._lock:
            return self._orders.get(order_id) or self._archive.get(order_id)

    def is_open(self, order_id: UUID) -> bool:
        with self._lock:
            return order_id in self._orders

    def open_orders(self, symbol: Optional[str] = None) -> List[Order]:
        """Open orders in registration order, optionally for one symbol."""
        with self._lock:
            return [
                order for order in self._orders.values()
                if symbol is None or order.symbol == symbol
            ]

    def archived_orders(self) -> List[Order]:
        with self._lock:
            return list(self._archive.values())

    def __len__(self) -> int:
        with self._lock:
            return len(self._orders)

    def locked(self) -> threading.RLock:
        """
        The registry lock, for callers that need several calls to be atomic.

        Used as ``with registry.locked(): ...``. Re-entrant, so registry
        methods can be called while it is held.
        """
        return self._lock

    # Health

    @property
    def is_healthy(self) -> bool:
        return self._corruption is None

    def reset(self) -> None:
        """Drop all state and clear a previous invariant violation."""
        with self._lock:
            self._orders.clear()
            self._archive.clear()
            self._corruption = None
            self.logger.warning("Order registry reset")

    # Callbacks

    def register_status_callback(self, callback: StatusCallback) -> None:
        """
        Register a callback invoked with an OrderStatusUpdate on every change.

        Args:
            callback: Function to call with the update
        """
        if callback not in self._callbacks:
            self._callbacks.append(callback)

    def unregister_status_callback(self, callback: StatusCallback) -> None:
        if callback in self._callbacks:
            self._callbacks.remove(callback)

    # Internals

    def _require_open(self, order_id: UUID) -> Order:
        order = self._orders.get(order_id)
        if order is None:
            raise UnknownOrderException(
                f"Order {order_id} is not open",
                details={
                    "order_id": str(order_id),
                    "archived": order_id in self._archive,
                }
            )
        return order

    def _archive_order(self, order: Order) -> None:
        del self._orders[order.order_id]
        self._archive[order.order_id] = order

    def _ensure_healthy(self) -> None:
        if self._corruption is not None:
            raise RegistryCorruptedException(
                f"Registry unusable after invariant violation: {self._corruption.message}",
                details=self._corruption.details
            )

    def _poison(self, error: InvariantViolationException) -> None:
        self._corruption = error
        self.logger.log_error(f"Registry invariant violated: {error.message}", error)
        raise error

    def _publish(self, order: Order) -> None:
        self.logger.log_order_status(
            order.order_id,
            order.status.value,
            order.filled_quantity,
            order.requested_quantity,
        )
        update = OrderStatusUpdate.from_order(order)
        for callback in self._callbacks:
            try:
                callback(update)
            except Exception as e:
                self.logger.log_error("Error in order status callback", e)
