"""
Backtesting Module

Performance analytics for completed backtest runs.
"""

from .models import (
    EquityCurvePoint,
    ExitReason,
    PerformanceMetrics,
    Trade,
    TradeSide,
    build_equity_curve,
)
from .performance_analytics import PerformanceAnalytics
from .risk_metrics import (
    RATIO_CAP,
    BenchmarkMetrics,
    DrawdownStats,
    ReturnMoments,
    calculate_beta,
    calculate_cvar,
    calculate_downside_deviation,
    calculate_drawdown_stats,
    calculate_period_returns,
    calculate_return_moments,
    calculate_sharpe_ratio,
    calculate_sortino_ratio,
    calculate_var_historical,
    calculate_var_parametric,
)

__all__ = [
    # Models
    "TradeSide",
    "ExitReason",
    "Trade",
    "EquityCurvePoint",
    "PerformanceMetrics",
    "build_equity_curve",
    # Analytics
    "PerformanceAnalytics",
    # Risk metrics
    "RATIO_CAP",
    "ReturnMoments",
    "BenchmarkMetrics",
    "DrawdownStats",
    "calculate_period_returns",
    "calculate_sharpe_ratio",
    "calculate_sortino_ratio",
    "calculate_downside_deviation",
    "calculate_var_historical",
    "calculate_var_parametric",
    "calculate_cvar",
    "calculate_return_moments",
    "calculate_beta",
    "calculate_drawdown_stats",
]
