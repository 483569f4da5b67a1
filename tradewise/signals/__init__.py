"""
Signals Module

Aggregates market-event signals into ranked investment opportunities.
"""

from .aggregation import OpportunityAnalysis, SignalAggregationEngine
from .cache import OpportunityCache
from .collectors import (
    AnalystRating,
    InsiderTrade,
    MarketEvents,
    MarketMover,
    MarketMovers,
    MergerAcquisition,
    StockSplit,
    UpcomingEarnings,
    collect_signals,
    collect_stock_info,
    format_volume,
)
from .insider_scoring import calculate_insider_buying_score, explain_insider_score
from .models import (
    SIGNAL_DESCRIPTIONS,
    SIGNAL_HALF_LIFE_DAYS,
    SIGNAL_SCORES,
    InvestmentOpportunity,
    Signal,
    SignalType,
    StockInfo,
)
from .narrative import fallback_summary
from .ratings import is_buy_signal

__all__ = [
    # Models
    "SignalType",
    "Signal",
    "StockInfo",
    "InvestmentOpportunity",
    "SIGNAL_SCORES",
    "SIGNAL_DESCRIPTIONS",
    "SIGNAL_HALF_LIFE_DAYS",
    # Engine
    "SignalAggregationEngine",
    "OpportunityAnalysis",
    "OpportunityCache",
    # Collectors
    "AnalystRating",
    "MergerAcquisition",
    "MarketMover",
    "MarketMovers",
    "StockSplit",
    "UpcomingEarnings",
    "InsiderTrade",
    "MarketEvents",
    "collect_signals",
    "collect_stock_info",
    "format_volume",
    # Scoring helpers
    "is_buy_signal",
    "calculate_insider_buying_score",
    "explain_insider_score",
    "fallback_summary",
]
