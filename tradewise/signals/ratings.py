"""
Analyst rating classification.
"""

from typing import Optional, Tuple

BUY_KEYWORDS: Tuple[str, ...] = ("buy", "outperform", "overweight", "strong buy")

# Ordinal rating scale; hold and neutral share a rank.
RATING_ORDER: Tuple[Tuple[str, int], ...] = (
    ("sell", 0),
    ("underperform", 1),
    ("hold", 2),
    ("neutral", 2),
    ("buy", 3),
    ("outperform", 4),
)


def grade_rank(grade: Optional[str]) -> Optional[int]:
    """
    Position of a grade on the ordinal scale.

    The first scale entry contained in the lower-cased grade wins, so
    "Strong Buy" ranks as buy and "Market Outperform" as outperform.
    Returns None for empty or unrecognised grades.
    """
    text = (grade or "").strip().lower()
    if not text:
        return None
    for keyword, rank in RATING_ORDER:
        if keyword in text:
            return rank
    return None


def is_buy_signal(previous_grade: Optional[str], new_grade: Optional[str]) -> bool:
    """
    Whether a rating change is a buy signal.

    True when the new grade names a buy-family rating, or when the change
    moves up the rating scale from a recognised previous grade.
    """
    new_text = (new_grade or "").lower()
    if any(keyword in new_text for keyword in BUY_KEYWORDS):
        return True

    previous_rank = grade_rank(previous_grade)
    if previous_rank is None:
        return False

    new_rank = grade_rank(new_grade)
    return new_rank is not None and new_rank > previous_rank
