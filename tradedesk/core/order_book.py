"""
Aggregated order book with sorted price levels

This module implements the level-2 order book fed by the market data feed.
Each side is a sorted dictionary keyed by price, with bids sorted in
descending order and asks in ascending order, so the best price of either
side is always the first key.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from itertools import islice
from typing import Dict, Iterator, List, Optional, Tuple, Union

from sortedcontainers import SortedDict

from .bbo_manager import BBOManager
from .order import OrderSide
from .price_level import PriceLevel
from .trade import Trade
from ..utils.exceptions import InvalidLevelException
from ..utils.logger import get_logger
from ..utils.validators import sanitize_decimal, validate_level

Number = Union[str, int, Decimal]


@dataclass(frozen=True)
class BookSnapshot:
    """
    Point-in-time copy of the top levels of an order book.

    Levels are ordered best to worst on each side. The snapshot holds its own
    tuples, so it can be iterated any number of times and is unaffected by
    later book updates.
    """

    symbol: str
    depth: int
    bids: Tuple[PriceLevel, ...]
    asks: Tuple[PriceLevel, ...]
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def levels(self, side: OrderSide) -> Tuple[PriceLevel, ...]:
        return self.bids if side == OrderSide.BUY else self.asks

    def iter_levels(self) -> Iterator[Tuple[OrderSide, PriceLevel]]:
        """Yield (side, level) pairs, all bids first then all asks."""
        for level in self.bids:
            yield OrderSide.BUY, level
        for level in self.asks:
            yield OrderSide.SELL, level

    @property
    def best_bid(self) -> Optional[PriceLevel]:
        return self.bids[0] if self.bids else None

    @property
    def best_ask(self) -> Optional[PriceLevel]:
        return self.asks[0] if self.asks else None

    @property
    def spread(self) -> Optional[Decimal]:
        if not self.bids or not self.asks:
            return None
        return self.asks[0].price - self.bids[0].price

    def to_dict(self) -> dict:
        return {
            "symbol": self.symbol,
            "bids": [level.to_list() for level in self.bids],
            "asks": [level.to_list() for level in self.asks],
            "timestamp": self.timestamp.isoformat(),
        }


class OrderBook:
    """
    Maintains the aggregated bid and ask levels for one trading pair.

    The book never stores a zero-quantity level and is never left crossed:
    the opposing levels a level update crosses are removed as implied trade
    prints before the update is quoted.

    Attributes:
        symbol: Trading pair symbol
        bids: Sorted dictionary of bid levels (descending)
        asks: Sorted dictionary of ask levels (ascending)
        bbo_manager: Publishes top-of-book changes
    """

    def __init__(self, symbol: str = "BTC-USDT"):
        """
        Initialize an empty order book.

        Args:
            symbol: Trading pair symbol (e.g., "BTC-USDT")
        """
        self.symbol: str = symbol

        # Bids sorted in descending order (highest price first)
        self.bids: SortedDict = SortedDict(lambda price: -price)

        # Asks sorted in ascending order (lowest price first)
        self.asks: SortedDict = SortedDict()

        self.bbo_manager: BBOManager = BBOManager(symbol)
        self.logger = get_logger()

    @classmethod
    def from_snapshot(cls, snapshot: BookSnapshot) -> "OrderBook":
        """Build a fresh book by replaying every level of a snapshot."""
        book = cls(snapshot.symbol)
        for side, level in snapshot.iter_levels():
            book.apply_level_update(side, level.price, level.quantity)
        return book

    def apply_level_update(
        self,
        side: OrderSide,
        price: Number,
        quantity: Number,
    ) -> List[Trade]:
        """
        Set the quantity available at a price on one side of the book.

        A quantity of zero removes the level. The quantity is always the new
        total at the price: an update that reaches the opposite side takes
        every opposing level it crosses off the book, best price first, and
        returns them as implied trades before quoting the full quantity.
        Applying the same update again is therefore a no-op.

        Args:
            side: BUY for a bid level, SELL for an ask level
            price: Level price
            quantity: New total quantity at that price

        Returns:
            Implied trade prints, empty when the update did not cross

        Raises:
            InvalidLevelException: If price <= 0 or quantity < 0
        """
        price = sanitize_decimal(price, InvalidLevelException)
        quantity = sanitize_decimal(quantity, InvalidLevelException)
        validate_level(price, quantity)

        levels = self._levels(side)
        trades: List[Trade] = []

        if quantity == 0:
            levels.pop(price, None)
        else:
            if self._would_cross(side, price):
                trades = [
                    Trade(price=level.price, quantity=level.quantity, side=side, symbol=self.symbol)
                    for level in self._take_crossed_levels(side, price)
                ]
                self.logger.debug(
                    f"Crossing {side.value} update @ {price} cleared "
                    f"{len(trades)} opposing level(s) as implied trades"
                )

            levels[price] = PriceLevel(price, quantity)

        self._update_bbo()
        return trades

    def consume(
        self,
        aggressor_side: OrderSide,
        quantity: Decimal,
        limit_price: Optional[Decimal] = None,
    ) -> List[Tuple[Decimal, Decimal]]:
        """
        Take liquidity from the side opposite to the aggressor.

        Levels are consumed best price first, each fully before the next,
        until the quantity is exhausted, the side is empty, or the next level
        is worse than limit_price.

        Args:
            aggressor_side: BUY consumes asks, SELL consumes bids
            quantity: Maximum quantity to take
            limit_price: Worst acceptable price (None for no limit)

        Returns:
            List of (price, quantity) fills in execution order
        """
        fills = self._consume(aggressor_side, quantity, limit_price)
        if fills:
            self._update_bbo()
        return fills

    def best_bid(self) -> Optional[PriceLevel]:
        """Highest bid level, or None when there are no bids."""
        if not self.bids:
            return None
        return self.bids.peekitem(0)[1]

    def best_ask(self) -> Optional[PriceLevel]:
        """Lowest ask level, or None when there are no asks."""
        if not self.asks:
            return None
        return self.asks.peekitem(0)[1]

    def best_price(self, side: OrderSide) -> Optional[Decimal]:
        level = self.best_bid() if side == OrderSide.BUY else self.best_ask()
        return level.price if level is not None else None

    def spread(self) -> Optional[Decimal]:
        """Best ask minus best bid, or None if either side is empty."""
        bid = self.best_bid()
        ask = self.best_ask()
        if bid is None or ask is None:
            return None
        return ask.price - bid.price

    def mid_price(self) -> Optional[Decimal]:
        bid = self.best_bid()
        ask = self.best_ask()
        if bid is None or ask is None:
            return None
        return (bid.price + ask.price) / Decimal("2")

    def level_at(self, side: OrderSide, price: Number) -> Optional[PriceLevel]:
        return self._levels(side).get(sanitize_decimal(price, InvalidLevelException))

    def level_count(self, side: OrderSide) -> int:
        return len(self._levels(side))

    def is_empty(self, side: Optional[OrderSide] = None) -> bool:
        if side is None:
            return not self.bids and not self.asks
        return not self._levels(side)

    def snapshot(self, depth: int) -> BookSnapshot:
        """
        Copy the top levels of each side.

        The levels are copied into tuples at call time rather than produced
        lazily, so the snapshot is finite, can be iterated any number of
        times, and does not see later updates.

        Args:
            depth: Number of levels per side to include

        Returns:
            BookSnapshot ordered best to worst (bids descending, asks ascending)
        """
        if depth < 0:
            raise ValueError(f"Depth cannot be negative, got {depth}")

        return BookSnapshot(
            symbol=self.symbol,
            depth=depth,
            bids=tuple(islice(self.bids.values(), depth)),
            asks=tuple(islice(self.asks.values(), depth)),
        )

    def get_depth(self, levels: int = 10) -> Dict:
        """
        Get order book depth for the order-book panel.

        Args:
            levels: Number of price levels per side

        Returns:
            Dictionary with bids and asks as rows of price, quantity,
            total and running cumulative quantity
        """
        snapshot = self.snapshot(levels)
        spread = snapshot.spread

        return {
            "symbol": self.symbol,
            "bids": self._depth_rows(snapshot.bids),
            "asks": self._depth_rows(snapshot.asks),
            "best_bid": str(snapshot.best_bid.price) if snapshot.best_bid else None,
            "best_ask": str(snapshot.best_ask.price) if snapshot.best_ask else None,
            "spread": str(spread) if spread is not None else None,
        }

    @staticmethod
    def _depth_rows(levels: Tuple[PriceLevel, ...]) -> List[Dict[str, str]]:
        rows = []
        cumulative = Decimal("0")
        for level in levels:
            cumulative += level.quantity
            rows.append({
                "price": str(level.price),
                "quantity": str(level.quantity),
                "total": str(level.total),
                "cumulative": str(cumulative),
            })
        return rows

    def _levels(self, side: OrderSide) -> SortedDict:
        return self.bids if side == OrderSide.BUY else self.asks

    def _would_cross(self, side: OrderSide, price: Decimal) -> bool:
        if side == OrderSide.BUY:
            ask = self.best_ask()
            return ask is not None and price >= ask.price

        bid = self.best_bid()
        return bid is not None and price <= bid.price

    def _consume(
        self,
        aggressor_side: OrderSide,
        quantity: Decimal,
        limit_price: Optional[Decimal] = None,
    ) -> List[Tuple[Decimal, Decimal]]:
        levels = self._levels(aggressor_side.opposite)
        fills: List[Tuple[Decimal, Decimal]] = []
        remaining = quantity

        while remaining > 0 and levels:
            price, level = levels.peekitem(0)

            if limit_price is not None:
                if aggressor_side == OrderSide.BUY and price > limit_price:
                    break
                if aggressor_side == OrderSide.SELL and price < limit_price:
                    break

            take = min(remaining, level.quantity)
            if take == level.quantity:
                del levels[price]
            else:
                levels[price] = level.with_quantity(level.quantity - take)

            fills.append((price, take))
            remaining -= take

        return fills

    def _take_crossed_levels(self, side: OrderSide, price: Decimal) -> List[PriceLevel]:
        """Remove and return the opposing levels at or through price, best first."""
        opposing = self._levels(side.opposite)
        taken: List[PriceLevel] = []

        while opposing:
            level_price, level = opposing.peekitem(0)
            if side == OrderSide.BUY and level_price > price:
                break
            if side == OrderSide.SELL and level_price < price:
                break
            del opposing[level_price]
            taken.append(level)

        return taken

    def _update_bbo(self) -> None:
        self.bbo_manager.update_bbo(self.best_bid(), self.best_ask())

    def __repr__(self) -> str:
        bid = self.best_bid()
        ask = self.best_ask()
        return (
            f"OrderBook({self.symbol}: "
            f"{len(self.bids)} bid levels, {len(self.asks)} ask levels, "
            f"BBO={bid.price if bid else None}/{ask.price if ask else None})"
        )
