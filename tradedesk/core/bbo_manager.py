"""
Top-of-book (best bid / best offer) tracking

Keeps the last published top of book for one order book and notifies
observers, such as the order-book panel header, when it changes.
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional, Callable, Dict, List

from .price_level import PriceLevel
from ..utils.logger import get_logger


class BBOManager:
    """
    Tracks the best bid and offer of an order book with change notifications.

    Attributes:
        symbol: Trading pair symbol
        best_bid: Current best bid level, or None
        best_ask: Current best ask level, or None
        update_count: Number of published changes
        last_update_time: Time of the last published change
    """

    def __init__(self, symbol: str):
        self.symbol: str = symbol
        self.best_bid: Optional[PriceLevel] = None
        self.best_ask: Optional[PriceLevel] = None
        self.update_count: int = 0
        self.last_update_time: Optional[datetime] = None
        self._observers: List[Callable[[Dict], None]] = []
        self.logger = get_logger()

    def update_bbo(
        self,
        best_bid: Optional[PriceLevel],
        best_ask: Optional[PriceLevel]
    ) -> bool:
        """
        Record the current top of book.

        Args:
            best_bid: Best bid level after the last book mutation
            best_ask: Best ask level after the last book mutation

        Returns:
            True if either side changed price or quantity
        """
        if best_bid == self.best_bid and best_ask == self.best_ask:
            return False

        self.best_bid = best_bid
        self.best_ask = best_ask
        self.update_count += 1
        self.last_update_time = datetime.now(timezone.utc)
        self._notify_observers()
        return True

    @property
    def spread(self) -> Optional[Decimal]:
        if self.best_bid is None or self.best_ask is None:
            return None
        return self.best_ask.price - self.best_bid.price

    @property
    def mid_price(self) -> Optional[Decimal]:
        if self.best_bid is None or self.best_ask is None:
            return None
        return (self.best_bid.price + self.best_ask.price) / Decimal("2")

    def register_observer(self, callback: Callable[[Dict], None]) -> None:
        """
        Register an observer to be notified of top-of-book changes.

        Args:
            callback: Function called with the to_dict() payload
        """
        if callback not in self._observers:
            self._observers.append(callback)

    def unregister_observer(self, callback: Callable[[Dict], None]) -> None:
        if callback in self._observers:
            self._observers.remove(callback)

    def _notify_observers(self) -> None:
        bbo_data = self.to_dict()
        for observer in self._observers:
            try:
                observer(bbo_data)
            except Exception as e:
                # Observer failures must not break book updates
                self.logger.log_error("Error notifying BBO observer", e, symbol=self.symbol)

    def to_dict(self) -> dict:
        """
        Convert the top of book to a dictionary for display.

        Returns:
            Dictionary representation of the BBO
        """
        spread = self.spread
        mid = self.mid_price
        return {
            "symbol": self.symbol,
            "best_bid": self.best_bid.to_list() if self.best_bid else None,
            "best_ask": self.best_ask.to_list() if self.best_ask else None,
            "spread": str(spread) if spread is not None else None,
            "mid_price": str(mid) if mid is not None else None,
            "timestamp": self.last_update_time.isoformat() if self.last_update_time else None,
            "update_count": self.update_count,
        }

    def __repr__(self) -> str:
        bid = self.best_bid.price if self.best_bid else None
        ask = self.best_ask.price if self.best_ask else None
        return f"BBO({self.symbol}: bid={bid}, ask={ask}, updates={self.update_count})"
