"""
Signal Data Models

Market-event signals, per-symbol stock information and the ranked
investment opportunities built from them.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Union


class SignalType(str, Enum):
    """Kinds of market-event signal."""

    MOMENTUM = "momentum"
    INSIDER_BUYING = "insider_buying"
    INSIDER_SELLING = "insider_selling"
    ANALYST_UPGRADE = "analyst_upgrade"
    MERGER_ACQUISITION = "merger_acquisition"
    TOP_GAINER = "top_gainer"
    STOCK_SPLIT = "stock_split"
    EARNINGS_UPCOMING = "earnings_upcoming"
    HIGH_VOLUME = "high_volume"

    @classmethod
    def parse(cls, value: Any) -> Union["SignalType", str]:
        """Return the matching SignalType, or the raw tag for unknown types."""
        if isinstance(value, cls):
            return value
        tag = str(value).strip().lower()
        try:
            return cls(tag)
        except ValueError:
            return tag


# Reference base score per type. insider_buying/insider_selling are replaced
# by the dynamic insider score when collected from insider trades.
SIGNAL_SCORES: Dict[SignalType, float] = {
    SignalType.MOMENTUM: 11,
    SignalType.INSIDER_BUYING: 5,
    SignalType.INSIDER_SELLING: -5,
    SignalType.ANALYST_UPGRADE: 9,
    SignalType.MERGER_ACQUISITION: 2,
    SignalType.TOP_GAINER: 2,
    SignalType.STOCK_SPLIT: 0,
    SignalType.EARNINGS_UPCOMING: 1,
    SignalType.HIGH_VOLUME: 0.5,
}

SIGNAL_DESCRIPTIONS: Dict[SignalType, str] = {
    SignalType.MOMENTUM: "High Momentum Stock",
    SignalType.INSIDER_BUYING: "Insider Buying Activity",
    SignalType.INSIDER_SELLING: "Insider Selling Activity",
    SignalType.ANALYST_UPGRADE: "Analyst Buy/Upgrade Recommendation",
    SignalType.MERGER_ACQUISITION: "Merger & Acquisition Activity",
    SignalType.TOP_GAINER: "Top Market Gainer",
    SignalType.STOCK_SPLIT: "Upcoming Stock Split",
    SignalType.EARNINGS_UPCOMING: "Upcoming Earnings with Positive Outlook",
    SignalType.HIGH_VOLUME: "Most Active Trading Volume",
}

# Days until a signal is worth half its base score
SIGNAL_HALF_LIFE_DAYS: Dict[SignalType, float] = {
    SignalType.INSIDER_BUYING: 60,
    SignalType.ANALYST_UPGRADE: 30,
    SignalType.MERGER_ACQUISITION: 14,
    SignalType.TOP_GAINER: 3,
    SignalType.STOCK_SPLIT: 21,
    SignalType.EARNINGS_UPCOMING: 7,
    SignalType.HIGH_VOLUME: 1,
    SignalType.INSIDER_SELLING: 60,
    SignalType.MOMENTUM: 3,
}

DEFAULT_HALF_LIFE_DAYS = 14.0


def signal_type_key(signal_type: Union[SignalType, str]) -> str:
    return signal_type.value if isinstance(signal_type, SignalType) else str(signal_type)


def describe_signal_type(signal_type: Union[SignalType, str]) -> str:
    """Human-readable label, falling back to the raw tag."""
    if isinstance(signal_type, SignalType):
        return SIGNAL_DESCRIPTIONS[signal_type]
    return str(signal_type).replace("_", " ").title()


@dataclass(frozen=True)
class Signal:
    """
    One market-event signal for a symbol.

    ``date`` is kept as supplied (ISO-8601 string or datetime) and parsed
    only when the signal is scored. ``metadata`` carries per-type extras
    (newsURL, dealType, reportingName, ...) that are read by the steps that
    need them.
    """

    signal_type: Union[SignalType, str]
    score: float
    source: str = ""
    description: str = ""
    date: Union[str, datetime, None] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def type_key(self) -> str:
        return signal_type_key(self.signal_type)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Signal":
        """
        Build a Signal from a camelCase record.

        Raises:
            ValueError: When the type is missing
        """
        raw_type = data.get("type", data.get("signalType"))
        if raw_type is None or not str(raw_type).strip():
            raise ValueError("Signal is missing its type")
        return cls(
            signal_type=SignalType.parse(raw_type),
            score=data.get("score", 0),
            source=str(data.get("source") or ""),
            description=str(data.get("description") or ""),
            date=data.get("date"),
            metadata=dict(data.get("metadata") or {}),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type_key,
            "score": self.score,
            "source": self.source,
            "description": self.description,
            "date": self.date.isoformat() if isinstance(self.date, datetime) else self.date,
            "metadata": dict(self.metadata),
        }


@dataclass
class StockInfo:
    """Quote and name details attached to an opportunity."""

    company_name: Optional[str] = None
    price: Optional[float] = None
    change_percent: Optional[float] = None
    volume: Optional[float] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "StockInfo":
        return cls(
            company_name=data.get("companyName"),
            price=data.get("price"),
            change_percent=data.get("changePercent"),
            volume=data.get("volume"),
        )


@dataclass
class InvestmentOpportunity:
    """A symbol with its aggregated signal score and rank."""

    symbol: str
    total_score: float
    signals: List[Signal]
    company_name: Optional[str] = None
    price: Optional[float] = None
    change_percent: Optional[float] = None
    volume: Optional[float] = None
    rank: int = 0
    ai_summary: Optional[str] = None

    @property
    def signal_types(self) -> List[str]:
        """Distinct signal types in first-seen order."""
        return list(dict.fromkeys(s.type_key for s in self.signals))

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "symbol": self.symbol,
            "companyName": self.company_name,
            "totalScore": round(self.total_score, 4),
            "signals": [s.to_dict() for s in self.signals],
            "aiSummary": self.ai_summary,
            "price": self.price,
            "changePercent": self.change_percent,
            "volume": self.volume,
            "rank": self.rank,
        }
