"""
Tradewise - trading-bot computation core.

Backtest performance analytics and market-event signal aggregation.
"""

__version__ = "0.1.0"

from .backtesting import PerformanceAnalytics, PerformanceMetrics
from .signals import InvestmentOpportunity, SignalAggregationEngine

__all__ = [
    "__version__",
    "PerformanceAnalytics",
    "PerformanceMetrics",
    "SignalAggregationEngine",
    "InvestmentOpportunity",
]
