"""
Backtest Data Models

Trades, equity-curve snapshots and the performance metrics computed
from them.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from ..core.dates import parse_datetime

logger = logging.getLogger(__name__)


class TradeSide(Enum):
    """Order side of an executed trade."""

    BUY = "BUY"
    SELL = "SELL"

    @classmethod
    def from_value(cls, value: Any) -> "TradeSide":
        if isinstance(value, cls):
            return value
        return cls(str(value).strip().upper())


class ExitReason(Enum):
    """Why a position was closed."""

    TAKE_PROFIT = "TAKE_PROFIT"
    STOP_LOSS = "STOP_LOSS"
    SIGNAL_EXIT = "SIGNAL_EXIT"
    TIME_EXIT = "TIME_EXIT"
    OTHER = "OTHER"

    @classmethod
    def from_value(cls, value: Any) -> Optional["ExitReason"]:
        """Parse tags such as ``take-profit``, ``TAKE_PROFIT`` or ``stop loss``."""
        if value is None or isinstance(value, cls):
            return value
        normalized = str(value).strip().upper().replace("-", "_").replace(" ", "_")
        if not normalized:
            return None
        try:
            return cls(normalized)
        except ValueError:
            return cls.OTHER


def _optional_float(value: Any) -> Optional[float]:
    if value is None:
        return None
    return float(value)


@dataclass(frozen=True)
class Trade:
    """One executed trade produced by the backtest simulator."""

    side: TradeSide
    quantity: float
    executed_price: float
    entry_price: Optional[float] = None
    realized_pl: Optional[float] = None
    realized_pl_pct: Optional[float] = None  # whole-number percent
    holding_period: Optional[float] = None
    exit_reason: Optional[ExitReason] = None
    symbol: str = ""
    executed_at: Optional[datetime] = None

    @property
    def is_closing(self) -> bool:
        """SELL legs and anything carrying a realized P&L close a position."""
        return self.side == TradeSide.SELL or self.realized_pl is not None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Trade":
        """
        Build a Trade from a camelCase record as stored by the simulator.

        Raises:
            ValueError: When a required field is missing or not numeric
        """
        try:
            side = TradeSide.from_value(data["side"])
            quantity = float(data.get("quantity", 0))
            executed_price = float(data.get("executedPrice", 0))
        except KeyError as e:
            raise ValueError(f"Trade is missing field {e}") from e

        return cls(
            side=side,
            quantity=quantity,
            executed_price=executed_price,
            entry_price=_optional_float(data.get("entryPrice")),
            realized_pl=_optional_float(data.get("realizedPL")),
            realized_pl_pct=_optional_float(data.get("realizedPLPct")),
            holding_period=_optional_float(data.get("holdingPeriod")),
            exit_reason=ExitReason.from_value(data.get("exitReason")),
            symbol=str(data.get("symbol") or ""),
            executed_at=parse_datetime(data.get("executionBar")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "symbol": self.symbol,
            "side": self.side.value,
            "quantity": self.quantity,
            "entryPrice": self.entry_price,
            "executedPrice": self.executed_price,
            "realizedPL": self.realized_pl,
            "realizedPLPct": self.realized_pl_pct,
            "holdingPeriod": self.holding_period,
            "exitReason": self.exit_reason.value if self.exit_reason else None,
            "executionBar": self.executed_at.isoformat() if self.executed_at else None,
        }


@dataclass(frozen=True)
class EquityCurvePoint:
    """Portfolio snapshot at one bar of a backtest."""

    timestamp: datetime
    cash: float
    stock_value: float
    total_equity: float
    high_water_mark: float
    drawdown: float
    drawdown_pct: float  # whole-number percent, <= 0

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "EquityCurvePoint":
        """
        Build a point from a camelCase record.

        Missing drawdown fields are derived from totalEquity and
        highWaterMark.

        Raises:
            ValueError: When the timestamp or equity values are unusable
        """
        timestamp = parse_datetime(data.get("timestamp"))
        if timestamp is None:
            raise ValueError(f"Unparsable equity-curve timestamp: {data.get('timestamp')!r}")

        cash = float(data.get("cash", 0.0))
        stock_value = float(data.get("stockValue", 0.0))
        total_equity = float(data.get("totalEquity", cash + stock_value))
        high_water_mark = float(data.get("highWaterMark", total_equity))
        drawdown = data.get("drawdown")
        drawdown_pct = data.get("drawdownPct")

        if drawdown is None:
            drawdown = total_equity - high_water_mark
        if drawdown_pct is None:
            drawdown_pct = _drawdown_pct(float(drawdown), high_water_mark)

        return cls(
            timestamp=timestamp,
            cash=cash,
            stock_value=stock_value,
            total_equity=total_equity,
            high_water_mark=high_water_mark,
            drawdown=float(drawdown),
            drawdown_pct=float(drawdown_pct),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp.isoformat(),
            "cash": round(self.cash, 2),
            "stockValue": round(self.stock_value, 2),
            "totalEquity": round(self.total_equity, 2),
            "highWaterMark": round(self.high_water_mark, 2),
            "drawdown": round(self.drawdown, 2),
            "drawdownPct": round(self.drawdown_pct, 4),
        }


def _drawdown_pct(drawdown: float, high_water_mark: float) -> float:
    if high_water_mark <= 0:
        return 0.0
    return drawdown / high_water_mark * 100


def build_equity_curve(
    snapshots: Iterable[Tuple[Any, float, float]],
    initial_cash: Optional[float] = None,
) -> List[EquityCurvePoint]:
    """
    Derive a consistent equity curve from raw portfolio snapshots.

    Args:
        snapshots: ``(timestamp, cash, stock_value)`` tuples in time order
        initial_cash: Starting capital; seeds the high-water mark when given

    Returns:
        Points with running high-water mark, drawdown and drawdown percent
    """
    curve: List[EquityCurvePoint] = []
    high_water_mark = initial_cash if initial_cash is not None else float("-inf")

    for raw_timestamp, cash, stock_value in snapshots:
        timestamp = parse_datetime(raw_timestamp)
        if timestamp is None:
            logger.warning(f"Skipping snapshot with unparsable timestamp {raw_timestamp!r}")
            continue

        total_equity = float(cash) + float(stock_value)
        high_water_mark = max(high_water_mark, total_equity)
        drawdown = total_equity - high_water_mark

        curve.append(
            EquityCurvePoint(
                timestamp=timestamp,
                cash=float(cash),
                stock_value=float(stock_value),
                total_equity=total_equity,
                high_water_mark=high_water_mark,
                drawdown=drawdown,
                drawdown_pct=_drawdown_pct(drawdown, high_water_mark),
            )
        )

    return curve


def _round(value: Optional[float], digits: int) -> Optional[float]:
    return None if value is None else round(value, digits)


@dataclass
class PerformanceMetrics:
    """
    Performance and risk statistics of one backtest run.

    Percent fields are whole-number percent. Ratios that are undefined are
    None; "infinite" ratios are capped at RATIO_CAP.
    """

    # Trade statistics
    total_trades: int
    winning_trades: int
    losing_trades: int
    win_rate: float
    avg_win_pct: float
    avg_loss_pct: float
    profit_factor: Optional[float]
    expectancy: float
    avg_holding_period: float

    # Capital
    initial_cash: float
    final_cash: float
    final_equity: float
    total_return: float
    total_return_pct: float

    # Risk-adjusted returns
    sharpe_ratio: Optional[float]
    sortino_ratio: Optional[float]

    # Drawdown
    max_drawdown: float
    max_drawdown_date: Optional[datetime]
    avg_drawdown: float

    # Return distribution (per-bar fractions)
    return_count: int = 0
    volatility: Optional[float] = None
    annualized_volatility: Optional[float] = None
    downside_deviation: Optional[float] = None
    var_confidence: Optional[float] = None
    var: Optional[float] = None  # historical, at var_confidence
    cvar: Optional[float] = None
    var_parametric: Optional[float] = None
    skewness: Optional[float] = None
    kurtosis: Optional[float] = None

    # Benchmark-relative (only when benchmark returns are supplied)
    beta: Optional[float] = None
    correlation: Optional[float] = None
    tracking_error: Optional[float] = None
    information_ratio: Optional[float] = None

    exit_reason_counts: Dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-ready dictionary."""
        return {
            "totalTrades": self.total_trades,
            "winningTrades": self.winning_trades,
            "losingTrades": self.losing_trades,
            "winRate": round(self.win_rate, 4),
            "avgWinPct": round(self.avg_win_pct, 4),
            "avgLossPct": round(self.avg_loss_pct, 4),
            "profitFactor": _round(self.profit_factor, 4),
            "expectancy": round(self.expectancy, 4),
            "avgHoldingPeriod": round(self.avg_holding_period, 2),
            "initialCash": round(self.initial_cash, 2),
            "finalCash": round(self.final_cash, 2),
            "finalEquity": round(self.final_equity, 2),
            "totalReturn": round(self.total_return, 2),
            "totalReturnPct": round(self.total_return_pct, 4),
            "sharpeRatio": _round(self.sharpe_ratio, 4),
            "sortinoRatio": _round(self.sortino_ratio, 4),
            "maxDrawdown": round(self.max_drawdown, 4),
            "maxDrawdownDate": (
                self.max_drawdown_date.isoformat() if self.max_drawdown_date else None
            ),
            "avgDrawdown": round(self.avg_drawdown, 4),
            "returnCount": self.return_count,
            "volatility": _round(self.volatility, 6),
            "annualizedVolatility": _round(self.annualized_volatility, 6),
            "downsideDeviation": _round(self.downside_deviation, 6),
            "varConfidence": self.var_confidence,
            "var": _round(self.var, 6),
            "cvar": _round(self.cvar, 6),
            "varParametric": _round(self.var_parametric, 6),
            "skewness": _round(self.skewness, 4),
            "kurtosis": _round(self.kurtosis, 4),
            "beta": _round(self.beta, 4),
            "correlation": _round(self.correlation, 4),
            "trackingError": _round(self.tracking_error, 6),
            "informationRatio": _round(self.information_ratio, 4),
            "exitReasonCounts": dict(self.exit_reason_counts),
        }
