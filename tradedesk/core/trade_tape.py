"""
Bounded tape of recent trades

Feeds the recent-trades panel: newest trade first, oldest evicted once the
tape is full.
"""

from collections import deque
from itertools import islice
from typing import Deque, Optional, Tuple

from .trade import Trade


class TradeTape:
    """
    Append-only, newest-first log of executed trades with FIFO eviction.

    Attributes:
        capacity: Maximum number of trades retained
    """

    DEFAULT_CAPACITY = 1000

    def __init__(self, capacity: int = DEFAULT_CAPACITY):
        if capacity <= 0:
            raise ValueError(f"Tape capacity must be positive, got {capacity}")
        self.capacity: int = capacity
        # Newest trade at index 0; maxlen drops from the right (oldest) end
        self._trades: Deque[Trade] = deque(maxlen=capacity)

    def record(self, trade: Trade) -> None:
        """Prepend a trade, evicting the oldest one if the tape is full."""
        self._trades.appendleft(trade)

    def recent(self, n: int) -> Tuple[Trade, ...]:
        """
        Get the n most recent trades, newest first.

        The result is a copy, so later records do not change it.
        """
        if n < 0:
            raise ValueError(f"Trade count cannot be negative, got {n}")
        return tuple(islice(self._trades, n))

    def last_trade(self) -> Optional[Trade]:
        return self._trades[0] if self._trades else None

    def first_trade(self) -> Optional[Trade]:
        """Oldest trade still on the tape."""
        return self._trades[-1] if self._trades else None

    def clear(self) -> None:
        self._trades.clear()

    def __len__(self) -> int:
        return len(self._trades)

    def __repr__(self) -> str:
        return f"TradeTape({len(self._trades)}/{self.capacity} trades)"
