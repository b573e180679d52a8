"""Core constants for pricetrigger."""

from decimal import Decimal
from enum import Enum


class ExchangeMode(str, Enum):
    """Exchange client selection."""

    KUCOIN = "kucoin"
    SIM = "sim"


class OrderType(str, Enum):
    """Order type."""

    MARKET = "market"
    LIMIT = "limit"


class OrderSide(str, Enum):
    """Order side (buy/sell)."""

    BUY = "BUY"
    SELL = "SELL"


class OrderStatus(str, Enum):
    """Status reported for a submitted order."""

    SUBMITTED = "submitted"


class TickOutcome(str, Enum):
    """What happened during one check-and-dispatch tick."""

    BELOW_THRESHOLD = "below_threshold"
    ORDER_PLACED = "order_placed"
    DRY_RUN = "dry_run"
    FETCH_FAILED = "fetch_failed"
    SUBMIT_FAILED = "submit_failed"
    TIMED_OUT = "timed_out"
    SKIPPED = "skipped"
    ERROR = "error"


class LogLevel(str, Enum):
    """Logging levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"


class LogFormat(str, Enum):
    """Log line format."""

    TEXT = "text"
    JSON = "json"


# ============================================
# Exchange Endpoints
# ============================================

KUCOIN_API_URL = "https://api.kucoin.com"
KUCOIN_SANDBOX_URL = "https://openapi-sandbox.kucoin.com"

# ============================================
# Default Values
# ============================================

DEFAULT_SYMBOL = "BTC-USDT"
DEFAULT_BASE_PRICE = Decimal("30000")
DEFAULT_PRICE_INCREMENT = Decimal("100")
DEFAULT_ORDER_QUANTITY = Decimal("0.01")
DEFAULT_POLL_INTERVAL_MS = 5000

DEFAULT_SIM_START_PRICE = Decimal("30000")
DEFAULT_SIM_STEP = Decimal("25")

# ============================================
# Application Constants
# ============================================

APP_NAME = "pricetrigger"
DEFAULT_CONFIG_PATH = "config/config.yaml"
LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
LOG_FORMAT_JSON = '{"timestamp": "%(asctime)s", "level": "%(levelname)s", "logger": "%(name)s", "message": "%(message)s"}'
