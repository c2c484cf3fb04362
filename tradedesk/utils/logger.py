"""
Logging for the trading core

One console stream for everything, plus optional per-concern log files
(orders, trades, errors) when a log directory is configured. Records can be
rendered as JSON lines for log shippers or as plain text for a terminal.
"""

import logging
import json
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Union
from decimal import Decimal
from uuid import UUID

from ..config import get_settings

TEXT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
TEXT_DATEFMT = "%Y-%m-%d %H:%M:%S"


class JSONFormatter(logging.Formatter):
    """Render a record as one JSON object, including order/trade context."""

    CONTEXT_FIELDS = ("order_id", "trade_id", "symbol", "status", "correlation_id")

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        payload.update(
            (name, str(getattr(record, name)))
            for name in self.CONTEXT_FIELDS
            if getattr(record, name, None) is not None
        )

        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        return json.dumps(payload)


def _formatter(use_json: bool) -> logging.Formatter:
    if use_json:
        return JSONFormatter()
    return logging.Formatter(TEXT_FORMAT, datefmt=TEXT_DATEFMT)


def _file_handler(path: Path, use_json: bool, level: int = logging.NOTSET) -> logging.FileHandler:
    handler = logging.FileHandler(path)
    handler.setLevel(level)
    handler.setFormatter(_formatter(use_json))
    return handler


class TradeDeskLogger:
    """
    Logger facade used by the book, the registry and the trading session.

    Without a log directory, order and trade records share the main console
    logger. With one, ``application.log`` gets everything from the main
    logger, ``errors.log`` gets ERROR and above, and order and trade records
    go to ``orders.log`` and ``trades.log`` through child loggers (which also
    propagate to the main logger).

    Attributes:
        logger: Main logger
        order_logger: Logger for order lifecycle records
        trade_logger: Logger for trade prints and fills
    """

    def __init__(
        self,
        name: str = "TradeDesk",
        log_level: str = "INFO",
        log_dir: Optional[Union[str, Path]] = None,
        use_json: bool = False,
    ):
        """
        Args:
            name: Name of the main logger; child loggers are derived from it
            log_level: Level name for the main logger
            log_dir: Directory for log files, or None to log to the console only
            use_json: Emit JSON records instead of plain text
        """
        self.logger = self._fresh_logger(name, getattr(logging, log_level.upper()))

        console = logging.StreamHandler(sys.stdout)
        console.setFormatter(_formatter(use_json))
        self.logger.addHandler(console)

        if not log_dir:
            self.order_logger = self.logger
            self.trade_logger = self.logger
            return

        log_dir = Path(log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)

        self.logger.addHandler(_file_handler(log_dir / "application.log", use_json))
        self.logger.addHandler(_file_handler(log_dir / "errors.log", use_json, logging.ERROR))

        self.order_logger = self._fresh_logger(f"{name}.orders", logging.INFO)
        self.order_logger.addHandler(_file_handler(log_dir / "orders.log", use_json))

        self.trade_logger = self._fresh_logger(f"{name}.trades", logging.INFO)
        self.trade_logger.addHandler(_file_handler(log_dir / "trades.log", use_json))

    @staticmethod
    def _fresh_logger(name: str, level: int) -> logging.Logger:
        logger = logging.getLogger(name)
        logger.setLevel(level)
        logger.handlers.clear()
        return logger

    # Domain records

    def log_order_submission(
        self,
        order_id: UUID,
        symbol: str,
        order_type: str,
        side: str,
        quantity: Decimal,
        price: Optional[Decimal] = None,
    ):
        """Log an order accepted by order entry."""
        at = f"@ {price}" if price is not None else "MARKET"
        self.order_logger.info(
            f"Order submitted: {side} {quantity} {symbol} {at} ({order_type})",
            extra={"order_id": order_id, "symbol": symbol, "correlation_id": str(order_id)},
        )

    def log_trade_execution(
        self,
        trade_id: UUID,
        symbol: Optional[str],
        price: Decimal,
        quantity: Decimal,
        side: str,
        order_id: Optional[UUID] = None,
    ):
        """Log a trade print; prints carrying an order id are user fills."""
        if order_id is None:
            msg = f"Trade print: {side} {quantity} {symbol} @ {price}"
        else:
            msg = f"Fill: {side} {quantity} {symbol} @ {price} (order: {order_id})"

        self.trade_logger.info(
            msg, extra={"trade_id": trade_id, "symbol": symbol, "order_id": order_id}
        )

    def log_order_status(
        self,
        order_id: UUID,
        status: str,
        filled_quantity: Decimal,
        requested_quantity: Decimal,
    ):
        self.order_logger.info(
            f"Order {order_id} -> {status} ({filled_quantity}/{requested_quantity})",
            extra={"order_id": order_id, "status": status},
        )

    def log_order_cancellation(self, order_id: UUID, symbol: str, reason: str = "User requested"):
        self.order_logger.info(
            f"Order cancelled: {order_id} ({reason})",
            extra={"order_id": order_id, "symbol": symbol},
        )

    def log_level_update(self, symbol: str, side: str, price: Decimal, quantity: Decimal):
        # Feed updates are frequent; keep them at DEBUG
        self.logger.debug(
            f"Level update: {symbol} {side} {price} -> {quantity}",
            extra={"symbol": symbol},
        )

    def log_error(self, message: str, exception: Optional[Exception] = None, **context):
        """Log at ERROR, attaching the traceback of ``exception`` if given."""
        self.logger.error(message, exc_info=exception, extra=context)

    # Plain records; keyword arguments become record context

    def debug(self, message: str, **context):
        self.logger.debug(message, extra=context)

    def info(self, message: str, **context):
        self.logger.info(message, extra=context)

    def warning(self, message: str, **context):
        self.logger.warning(message, extra=context)

    def error(self, message: str, **context):
        self.logger.error(message, extra=context)


_logger: Optional[TradeDeskLogger] = None


def get_logger(
    name: str = "TradeDesk",
    log_level: Optional[str] = None,
    log_dir: Optional[Union[str, Path]] = None,
    use_json: Optional[bool] = None,
) -> TradeDeskLogger:
    """
    Return the process-wide logger, creating it on first use.

    Arguments left as None fall back to the application settings. They only
    matter on the first call; later calls return the existing instance.
    """
    global _logger

    if _logger is None:
        settings = get_settings()
        _logger = TradeDeskLogger(
            name,
            log_level or settings.log_level,
            log_dir if log_dir is not None else settings.log_dir,
            settings.use_json_logs if use_json is None else use_json,
        )

    return _logger
