"""
Insider Trade Scoring

Score an insider purchase by transaction size, the insider's role and the
conviction implied by how much the position grew. Time decay is applied
later by the aggregation engine.
"""

import math
from dataclasses import dataclass
from typing import Any, Dict, Optional

BASE_SCORE = 3.0
SIZE_THRESHOLD = 50_000.0
MAX_SIZE_MULTIPLIER = 3.0
BELOW_THRESHOLD_MULTIPLIER = 0.3
MAX_SCORE = 12.0

OWNER_MULTIPLIERS: Dict[str, float] = {
    "ceo": 1.5,
    "cfo": 1.4,
    "president": 1.3,
    "large_shareholder": 1.2,  # director holding 10%+
    "director": 1.1,
    "officer": 1.0,
}

# (minimum transacted / previously-owned ratio, multiplier), highest first
CONVICTION_TIERS = (
    (1.0, 1.3),
    (0.5, 1.2),
    (0.25, 1.1),
)


@dataclass
class InsiderScoreBreakdown:
    """Components of an insider score."""

    final_score: float
    dollar_value: float
    size_multiplier: float
    owner_multiplier: float
    conviction_multiplier: float
    explanation: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "finalScore": self.final_score,
            "breakdown": {
                "dollarValue": round(self.dollar_value, 2),
                "sizeMultiplier": round(self.size_multiplier, 4),
                "ownerMultiplier": self.owner_multiplier,
                "convictionMultiplier": self.conviction_multiplier,
                "explanation": self.explanation,
            },
        }


def size_multiplier(dollar_value: float) -> float:
    """1.0 at $50k, +1 per decade above it, capped at 3.0; 0.3 below $50k."""
    if dollar_value < SIZE_THRESHOLD:
        return BELOW_THRESHOLD_MULTIPLIER
    return min(1 + math.log10(dollar_value / SIZE_THRESHOLD), MAX_SIZE_MULTIPLIER)


def _owner_category(type_of_owner: Optional[str]) -> str:
    owner = (type_of_owner or "").lower()
    if "ceo" in owner or "chief executive" in owner:
        return "ceo"
    if "cfo" in owner or "chief financial" in owner:
        return "cfo"
    if "president" in owner or "coo" in owner or "chief operating" in owner:
        return "president"
    if "director" in owner and "10%" in owner:
        return "large_shareholder"
    if "director" in owner:
        return "director"
    return "officer"


def owner_multiplier(type_of_owner: Optional[str]) -> float:
    return OWNER_MULTIPLIERS[_owner_category(type_of_owner)]


def _position_increase(securities_transacted: float, securities_owned: float) -> float:
    previously_owned = max(securities_owned - securities_transacted, 1)
    return securities_transacted / previously_owned


def conviction_multiplier(securities_transacted: float, securities_owned: float) -> float:
    """Multiplier by position growth relative to the holding before the trade."""
    increase = _position_increase(securities_transacted, securities_owned)
    for threshold, multiplier in CONVICTION_TIERS:
        if increase >= threshold:
            return multiplier
    return 1.0


def calculate_insider_buying_score(
    securities_transacted: float,
    price_per_share: float,
    type_of_owner: Optional[str],
    securities_owned: float,
) -> float:
    """
    Score an insider purchase.

    Args:
        securities_transacted: Shares bought
        price_per_share: Transaction price
        type_of_owner: Filing role text, e.g. "officer: CEO" or "director, 10% owner"
        securities_owned: Shares held after the transaction

    Returns:
        3 x size x owner x conviction, capped at 12 and rounded to 2 decimals
    """
    raw_score = (
        BASE_SCORE
        * size_multiplier(securities_transacted * price_per_share)
        * owner_multiplier(type_of_owner)
        * conviction_multiplier(securities_transacted, securities_owned)
    )
    return round(min(raw_score, MAX_SCORE), 2)


def _size_category(dollar_value: float) -> str:
    if dollar_value < SIZE_THRESHOLD:
        return "Below threshold"
    if dollar_value < 250_000:
        return "Small"
    if dollar_value < 1_000_000:
        return "Medium"
    if dollar_value < 10_000_000:
        return "Large"
    return "Very Large"


_OWNER_LABELS = {
    "ceo": "CEO",
    "cfo": "CFO",
    "president": "President/COO",
    "large_shareholder": "Large Shareholder",
    "director": "Director",
    "officer": "Officer",
}


def _conviction_category(securities_transacted: float, securities_owned: float) -> str:
    increase = _position_increase(securities_transacted, securities_owned)
    if increase >= 1.0:
        return "Very High (100%+ increase)"
    if increase >= 0.5:
        return "High (50%+ increase)"
    if increase >= 0.25:
        return "Moderate (25%+ increase)"
    return "Low (<25% increase)"


def explain_insider_score(
    securities_transacted: float,
    price_per_share: float,
    type_of_owner: Optional[str],
    securities_owned: float,
) -> InsiderScoreBreakdown:
    """Score an insider purchase and describe each multiplier."""
    dollar_value = securities_transacted * price_per_share
    size = size_multiplier(dollar_value)
    owner = owner_multiplier(type_of_owner)
    conviction = conviction_multiplier(securities_transacted, securities_owned)
    final_score = calculate_insider_buying_score(
        securities_transacted, price_per_share, type_of_owner, securities_owned
    )

    explanation = "\n".join(
        [
            f"Transaction Value: ${dollar_value:,.0f}",
            f"Size Multiplier: {size:.2f}x ({_size_category(dollar_value)})",
            f"Owner Multiplier: {owner:.2f}x ({_OWNER_LABELS[_owner_category(type_of_owner)]})",
            f"Conviction Multiplier: {conviction:.2f}x "
            f"({_conviction_category(securities_transacted, securities_owned)})",
            f"Final Score: {final_score:.2f} points",
        ]
    )

    return InsiderScoreBreakdown(
        final_score=final_score,
        dollar_value=dollar_value,
        size_multiplier=size,
        owner_multiplier=owner,
        conviction_multiplier=conviction,
        explanation=explanation,
    )
