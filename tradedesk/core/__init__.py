"""
Core domain models: order book, trade tape, order entry and order registry
"""

from .order import Order, OrderType, OrderSide, OrderStatus, OrderStatusUpdate, OrderResult
from .trade import Trade
from .price_level import PriceLevel
from .order_book import OrderBook, BookSnapshot
from .bbo_manager import BBOManager
from .trade_tape import TradeTape
from .order_entry import OrderRequest, Balance, OrderEntryValidator
from .order_registry import OpenOrderRegistry
from .trading_session import TradingSession

__all__ = [
    "Order",
    "OrderType",
    "OrderSide",
    "OrderStatus",
    "OrderStatusUpdate",
    "OrderResult",
    "Trade",
    "PriceLevel",
    "OrderBook",
    "BookSnapshot",
    "BBOManager",
    "TradeTape",
    "OrderRequest",
    "Balance",
    "OrderEntryValidator",
    "OpenOrderRegistry",
    "TradingSession",
]
