"""
Trading session: one market's order book, trade tape and order matching.

The session is the single writer of its book and tape. Feed updates, trade
prints and order submissions are serialized by the session lock; reads
return copies taken under the same lock.

Matching follows price-time priority: an order takes the best opposing
level first and consumes each level fully before the next. Limit order
remainders rest in the registry and are matched again whenever the book
moves through them; market order remainders are finalized, never rested.
"""

import threading
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional, Union
from uuid import UUID

from .order import Order, OrderResult, OrderSide, OrderStatus, OrderType
from .order_book import BookSnapshot, OrderBook
from .order_entry import Balance, OrderEntryValidator, OrderRequest
from .order_registry import OpenOrderRegistry
from .price_level import PriceLevel
from .trade import Trade
from .trade_tape import TradeTape
from ..config import Settings, get_settings
from ..utils.exceptions import InvalidLevelException, OrderValidationException
from ..utils.logger import get_logger
from ..utils.validators import sanitize_decimal

Number = Union[str, int, Decimal]


class TradingSession:
    """
    Owns the order book and trade tape of one market subscription.

    The open-order registry belongs to the user session and is only
    referenced here; its lock is taken (after the session lock) whenever
    orders are matched.

    Attributes:
        symbol: Trading pair symbol
        order_book: Aggregated book fed by the quote feed
        trade_tape: Recent trades, newest first
        registry: The user's open orders
        statistics: Counters for the session
    """

    def __init__(
        self,
        registry: Optional[OpenOrderRegistry] = None,
        symbol: Optional[str] = None,
        settings: Optional[Settings] = None,
    ):
        """
        Initialize a trading session.

        Args:
            registry: User's order registry (a private one is created if None)
            symbol: Trading pair (defaults to settings.symbol)
            settings: Configuration (defaults to the global settings)
        """
        self.settings = settings or get_settings()
        self.symbol: str = symbol or self.settings.symbol
        self.order_book = OrderBook(self.symbol)
        self.trade_tape = TradeTape(self.settings.trade_tape_capacity)
        self.registry = registry if registry is not None else OpenOrderRegistry(self.trade_tape)
        self.validator = OrderEntryValidator(self.settings)
        self.trade_callbacks: List[Callable[[Trade], None]] = []
        self.statistics: Dict[str, Any] = {
            "level_updates": 0,
            "orders_processed": 0,
            "orders_rejected": 0,
            "orders_filled": 0,
            "orders_partial": 0,
            "orders_cancelled": 0,
            "trades_executed": 0,
            "total_volume": Decimal("0"),
        }
        self.lock = threading.Lock()
        self.logger = get_logger()
        self._open_price: Optional[Decimal] = None

    # Feed input

    def apply_level_update(
        self,
        side: OrderSide,
        price: Number,
        quantity: Number,
    ) -> List[Trade]:
        """
        Apply a level update from the quote feed.

        Opposing levels cleared by a crossing update go on the tape as
        implied prints; resting limit orders are then matched against the
        new book.

        Returns:
            Implied prints followed by any fills of resting orders

        Raises:
            InvalidLevelException: If price <= 0 or quantity < 0
        """
        with self.lock:
            implied = self.order_book.apply_level_update(side, price, quantity)
            self.statistics["level_updates"] += 1
            self.logger.log_level_update(self.symbol, side.value, price, quantity)

            for trade in implied:
                self._record_print(trade)

            return implied + self._match_resting_orders()

    def record_trade_print(
        self,
        price: Number,
        quantity: Number,
        side: OrderSide,
        timestamp: Optional[datetime] = None,
    ) -> Trade:
        """Record a trade print from the market feed on the tape."""
        trade = Trade(
            price=sanitize_decimal(price, InvalidLevelException),
            quantity=sanitize_decimal(quantity, InvalidLevelException),
            side=side,
            timestamp=timestamp or datetime.now(timezone.utc),
            symbol=self.symbol,
        )
        with self.lock:
            self._record_print(trade)
        return trade

    # Order entry

    def submit_order(self, request: OrderRequest, balance: Balance) -> OrderResult:
        """
        Validate, register and match an order request.

        Validation and registration happen under the session lock, so the
        order is matched against exactly the book it was validated on.

        Args:
            request: Order request from the order form
            balance: Funds available to the user

        Returns:
            OrderResult with the order and the fills it generated

        Raises:
            OrderValidationException: If the request fails validation
        """
        with self.lock:
            try:
                order = self.validator.validate(request, self.order_book, balance)
            except OrderValidationException as e:
                self.statistics["orders_rejected"] += 1
                self.logger.warning(f"Order request rejected: {e.message}", symbol=self.symbol)
                raise

            try:
                with self.registry.locked():
                    self.registry.register(order)
                    self.logger.log_order_submission(
                        order.order_id,
                        order.symbol,
                        order.order_type.value,
                        order.side.value,
                        order.requested_quantity,
                        order.limit_price,
                    )

                    if order.order_type == OrderType.MARKET:
                        trades = self._process_market_order(order)
                    else:
                        trades = self._process_limit_order(order)
            except Exception as e:
                self.logger.log_error(f"Error processing order {order.order_id}", e)
                raise

            self.statistics["orders_processed"] += 1
            if order.is_fully_filled:
                self.statistics["orders_filled"] += 1
            elif order.filled_quantity > 0:
                self.statistics["orders_partial"] += 1

            return OrderResult(
                order=order,
                trades=trades,
                status=order.status,
                message=self._generate_result_message(order),
                timestamp=datetime.now(timezone.utc),
            )

    def cancel_order(self, order_id: UUID) -> Order:
        """
        Cancel a resting order.

        Raises:
            OrderNotCancellableException: If the order is no longer open
            UnknownOrderException: If the order does not exist
        """
        with self.lock:
            order = self.registry.cancel(order_id)
            self.statistics["orders_cancelled"] += 1
            return order

    def register_trade_callback(self, callback: Callable[[Trade], None]) -> None:
        """
        Register a callback invoked for every trade put on the tape.

        Args:
            callback: Function to call with the Trade
        """
        self.trade_callbacks.append(callback)

    def unregister_trade_callback(self, callback: Callable[[Trade], None]) -> None:
        if callback in self.trade_callbacks:
            self.trade_callbacks.remove(callback)

    # Reads

    def best_bid(self) -> Optional[PriceLevel]:
        with self.lock:
            return self.order_book.best_bid()

    def best_ask(self) -> Optional[PriceLevel]:
        with self.lock:
            return self.order_book.best_ask()

    def spread(self) -> Optional[Decimal]:
        with self.lock:
            return self.order_book.spread()

    def snapshot(self, depth: Optional[int] = None) -> BookSnapshot:
        with self.lock:
            return self.order_book.snapshot(depth if depth is not None else self.settings.default_depth)

    def get_depth(self, levels: Optional[int] = None) -> Dict:
        with self.lock:
            return self.order_book.get_depth(levels if levels is not None else self.settings.default_depth)

    def recent_trades(self, n: int = 20) -> tuple:
        with self.lock:
            return self.trade_tape.recent(n)

    def last_price(self) -> Optional[Decimal]:
        """Price of the latest trade, or the mid price before any trade."""
        with self.lock:
            last = self.trade_tape.last_trade()
            if last is not None:
                return last.price
            return self.order_book.mid_price()

    def price_change_percent(self) -> Optional[Decimal]:
        """Change of the last trade price against the session's first trade, in percent."""
        with self.lock:
            last = self.trade_tape.last_trade()
            if last is None or self._open_price is None:
                return None
            return (last.price - self._open_price) / self._open_price * Decimal("100")

    def get_statistics(self) -> Dict[str, Any]:
        with self.lock:
            stats = self.statistics.copy()
            stats["open_orders"] = len(self.registry.open_orders(self.symbol))
            stats["tape_size"] = len(self.trade_tape)
            return stats

    # Matching

    def _process_market_order(self, order: Order) -> List[Trade]:
        """
        Fill a market order against the book.

        Market orders never rest: whatever the book cannot fill is
        finalized at the current fill level.
        """
        trades = self._fill_against_book(order)

        if not order.is_fully_filled:
            self.registry.finalize(order.order_id)
            self.logger.info(
                f"Market order {order.order_id} finalized: "
                f"{order.filled_quantity}/{order.requested_quantity}",
                order_id=order.order_id,
            )

        return trades

    def _process_limit_order(self, order: Order) -> List[Trade]:
        """
        Fill the marketable part of a limit order; the rest stays open.
        """
        best_bid = self.order_book.best_price(OrderSide.BUY)
        best_ask = self.order_book.best_price(OrderSide.SELL)

        if not order.crosses(best_bid, best_ask):
            return []

        return self._fill_against_book(order, limit_price=order.limit_price)

    def _match_resting_orders(self) -> List[Trade]:
        """
        Match resting limit orders the book has moved through.

        Buys are visited highest price first and sells lowest price first;
        orders at the same price keep registration order.
        """
        trades: List[Trade] = []

        with self.registry.locked():
            resting = [
                order for order in self.registry.open_orders(self.symbol)
                if order.order_type == OrderType.LIMIT
            ]
            if not resting:
                return trades

            buys = sorted((o for o in resting if o.is_buy), key=lambda o: -o.limit_price)
            sells = sorted((o for o in resting if o.is_sell), key=lambda o: o.limit_price)

            for order in buys + sells:
                if self.registry.is_open(order.order_id):
                    trades.extend(self._process_limit_order(order))

        return trades

    def _fill_against_book(
        self,
        order: Order,
        limit_price: Optional[Decimal] = None,
    ) -> List[Trade]:
        """
        Take opposing liquidity for an order and apply the fills.

        Args:
            order: Open order to fill
            limit_price: Worst acceptable price (None for market orders)

        Returns:
            Fill trades in execution order
        """
        fills = self.order_book.consume(order.side, order.remaining_quantity, limit_price)

        trades = []
        for price, quantity in fills:
            trade = self.registry.apply_fill(
                order.order_id, quantity, price, tape=self.trade_tape
            )
            self._after_trade(trade)
            trades.append(trade)

        return trades

    def _record_print(self, trade: Trade) -> None:
        self.trade_tape.record(trade)
        self.logger.log_trade_execution(
            trade.trade_id,
            trade.symbol,
            trade.price,
            trade.quantity,
            trade.side.value,
        )
        self._after_trade(trade)

    def _after_trade(self, trade: Trade) -> None:
        if self._open_price is None:
            self._open_price = trade.price

        self.statistics["trades_executed"] += 1
        self.statistics["total_volume"] += trade.quantity

        for callback in self.trade_callbacks:
            try:
                callback(trade)
            except Exception as e:
                self.logger.log_error("Error in trade callback", e)

    def _generate_result_message(self, order: Order) -> str:
        """Generate human-readable result message."""
        if order.is_fully_filled:
            return f"Order fully filled: {order.filled_quantity} @ {order.average_fill_price}"
        if order.status == OrderStatus.CANCELLED:
            return "Order cancelled - no fill"
        if order.filled_quantity > 0 and order.order_type == OrderType.MARKET:
            return (
                f"Market order partially filled: {order.filled_quantity}/"
                f"{order.requested_quantity}, remainder not executed"
            )
        if order.filled_quantity > 0:
            return (
                f"Order partially filled: {order.filled_quantity}/"
                f"{order.requested_quantity}, remainder resting"
            )
        return "Order resting"

    def __repr__(self) -> str:
        return f"TradingSession({self.symbol}, {self.order_book!r}, {self.trade_tape!r})"
