"""
Opportunity Narratives

Optional text summaries for ranked opportunities. Text generation is
delegated to an injected async ``narrator``; when it is missing, fails or
times out a deterministic summary is used instead.
"""

import asyncio
import logging
from typing import Awaitable, Callable, List, Optional, Sequence

from ..core.errors import run_isolated_async
from .models import InvestmentOpportunity, describe_signal_type

logger = logging.getLogger(__name__)

Narrator = Callable[[InvestmentOpportunity], Awaitable[str]]

MAX_TYPES_IN_SUMMARY = 3


def fallback_summary(opportunity: InvestmentOpportunity) -> str:
    """Summarise an opportunity from its own fields."""
    labels = [describe_signal_type(t) for t in _signal_types(opportunity)]
    summary = (
        f"{opportunity.symbol} scored {opportunity.total_score:.2f} points from "
        f"{len(opportunity.signals)} signal{'s' if len(opportunity.signals) != 1 else ''}"
    )
    if labels:
        summary += f" including {', '.join(labels[:MAX_TYPES_IN_SUMMARY])}"
    summary += "."

    if opportunity.price is not None:
        summary += f" It is trading at ${opportunity.price:.2f}"
        if opportunity.change_percent is not None:
            summary += f", {opportunity.change_percent:+.2f}% on the day"
        summary += "."
    return summary


def _signal_types(opportunity: InvestmentOpportunity) -> List:
    return list(dict.fromkeys(s.signal_type for s in opportunity.signals))


async def generate_summary(
    opportunity: InvestmentOpportunity,
    narrator: Optional[Narrator] = None,
    timeout: Optional[float] = None,
) -> str:
    """
    Produce a summary for one opportunity.

    Never raises for narrator problems: errors, timeouts and empty replies
    all yield :func:`fallback_summary`.
    """
    if narrator is None:
        return fallback_summary(opportunity)

    text = await run_isolated_async(
        f"AI summary for {opportunity.symbol}",
        narrator,
        opportunity,
        fallback=None,
        timeout=timeout,
    )
    if not text or not str(text).strip():
        return fallback_summary(opportunity)
    return str(text).strip()


async def generate_summaries(
    opportunities: Sequence[InvestmentOpportunity],
    narrator: Optional[Narrator] = None,
    concurrency: int = 3,
    timeout: Optional[float] = None,
) -> List[InvestmentOpportunity]:
    """
    Attach summaries to several opportunities.

    At most ``concurrency`` narrator calls run at once; each is bounded by
    ``timeout`` on its own and falls back independently.

    Returns:
        The same opportunities with ``ai_summary`` set
    """
    if concurrency < 1:
        raise ValueError(f"concurrency must be at least 1, got {concurrency}")

    semaphore = asyncio.Semaphore(concurrency)

    async def summarise(opportunity: InvestmentOpportunity) -> None:
        async with semaphore:
            opportunity.ai_summary = await generate_summary(opportunity, narrator, timeout)

    await asyncio.gather(*(summarise(o) for o in opportunities))
    logger.info(f"Generated summaries for {len(opportunities)} opportunities")
    return list(opportunities)
