"""
Signal Aggregation Engine

Combine heterogeneous market-event signals into a ranked list of
investment opportunities. Each signal's base score decays exponentially
with its age, repeated signals of one type are discounted, and symbols
backed by several kinds of evidence earn a diversity bonus.
"""

import copy
import logging
import math
from dataclasses import dataclass, replace
from datetime import datetime
from typing import (
    Any,
    Awaitable,
    Callable,
    Dict,
    Iterable,
    List,
    Mapping,
    Optional,
    Sequence,
    Tuple,
    Union,
)

from ..config.logging import LogContext, log_performance, log_with_context
from ..config.settings import get_settings
from ..core.dates import ensure_utc, parse_datetime, utc_now
from ..core.errors import (
    ErrorCodes,
    ValidationError,
    run_isolated,
    run_isolated_async,
    wrap_exception,
)
from .cache import OpportunityCache
from .collectors import MarketEvents, collect_signals, collect_stock_info
from .models import (
    SIGNAL_HALF_LIFE_DAYS,
    InvestmentOpportunity,
    Signal,
    SignalType,
    StockInfo,
    signal_type_key,
)
from .narrative import Narrator, generate_summaries, generate_summary

logger = logging.getLogger(__name__)

LN2 = math.log(2)

# Decay factor used when a signal's date cannot be read
UNDATED_DECAY_FACTOR = 0.5

# Multipliers for the 1st, 2nd and 3rd signal of one type; later ones get the last
DUPLICATE_MULTIPLIERS = (1.0, 0.5, 0.25)
DUPLICATE_TAIL_MULTIPLIER = 0.1

# Dates further ahead than this are treated as data errors
MAX_FUTURE_DAYS = 365

SignalInput = Union[Signal, Mapping[str, Any]]
SignalsBySymbol = Union[
    Mapping[str, Iterable[SignalInput]],
    Iterable[Tuple[str, SignalInput]],
]
MomentumProvider = Callable[[], Iterable[str]]
AsyncMomentumProvider = Callable[[], Awaitable[Iterable[str]]]


def diversity_bonus(type_count: int) -> float:
    """Bonus for evidence from several signal types: +3 for two, +5 for three or more."""
    if type_count >= 3:
        return 5.0
    if type_count == 2:
        return 3.0
    return 0.0


def duplicate_multiplier(position: int) -> float:
    if position < len(DUPLICATE_MULTIPLIERS):
        return DUPLICATE_MULTIPLIERS[position]
    return DUPLICATE_TAIL_MULTIPLIER


@dataclass
class OpportunityAnalysis:
    """Ranked opportunities from one market-events analysis."""

    opportunities: List[InvestmentOpportunity]
    generated_at: datetime
    cached: bool = False
    # Opportunities that passed the score filter, before any limit
    total_opportunities: Optional[int] = None

    def snapshot(self, cached: bool = False) -> "OpportunityAnalysis":
        """Independent copy, so callers cannot change a cached analysis."""
        return replace(copy.deepcopy(self), cached=cached)

    def select(
        self,
        min_score: Optional[float] = None,
        limit: Optional[int] = None,
    ) -> "OpportunityAnalysis":
        """
        Keep opportunities scoring at least ``min_score``, then the top ``limit``.

        Ranks are left as computed; since the list is sorted by score the
        kept ranks are still 1..N. ``total_opportunities`` counts the
        filtered list before the limit.
        """
        kept = [
            o for o in self.opportunities if min_score is None or o.total_score >= min_score
        ]
        total = len(kept)
        if limit is not None:
            kept = kept[: max(limit, 0)]
        return replace(self, opportunities=kept, total_opportunities=total)

    def to_dict(self) -> Dict[str, Any]:
        total = (
            self.total_opportunities
            if self.total_opportunities is not None
            else len(self.opportunities)
        )
        return {
            "opportunities": [o.to_dict() for o in self.opportunities],
            "metadata": {
                "totalOpportunities": total,
                "timestamp": self.generated_at.isoformat(),
                "cached": self.cached,
            },
        }


class SignalAggregationEngine:
    """
    Score and rank symbols from their market-event signals.

    Example:
        engine = SignalAggregationEngine()
        ranked = engine.aggregate({"NRC": [Signal(SignalType.INSIDER_BUYING, 7.38, date=now)]})
    """

    def __init__(
        self,
        half_lives: Optional[Mapping[str, float]] = None,
        default_half_life: Optional[float] = None,
        cache: Optional[OpportunityCache] = None,
        narrator: Optional[Narrator] = None,
        enrichment_timeout: Optional[float] = None,
        summary_concurrency: Optional[int] = None,
    ):
        """
        Initialize the engine.

        Args:
            half_lives: Per signal type half-life overrides in days
            default_half_life: Half-life for types without one
            cache: Cache for market-events analyses (a private one by default)
            narrator: Async text generator for opportunity summaries
            enrichment_timeout: Seconds allowed per momentum or summary call
            summary_concurrency: Maximum summaries generated at once
        """
        settings = get_settings()

        self.default_half_life = (
            default_half_life
            if default_half_life is not None
            else settings.default_half_life_days
        )
        self.half_lives: Dict[str, float] = {
            signal_type.value: days for signal_type, days in SIGNAL_HALF_LIFE_DAYS.items()
        }
        overrides = {**settings.half_life_overrides, **(half_lives or {})}
        for signal_type, days in overrides.items():
            self.half_lives[signal_type_key(SignalType.parse(signal_type))] = days

        invalid = {k: v for k, v in self.half_lives.items() if not v or v <= 0}
        if self.default_half_life <= 0 or invalid:
            raise ValidationError(
                detail=f"Half-lives must be positive (default={self.default_half_life}, invalid={invalid})"
            )

        self.cache = cache if cache is not None else OpportunityCache(settings.cache_ttl_seconds)
        self.narrator = narrator
        self.enrichment_timeout = (
            enrichment_timeout
            if enrichment_timeout is not None
            else settings.enrichment_timeout_seconds
        )
        self.summary_concurrency = summary_concurrency or settings.summary_concurrency

        logger.info(
            f"SignalAggregationEngine initialized ({len(self.half_lives)} half-lives, "
            f"default {self.default_half_life}d)"
        )

    # =========================================================================
    # Scoring
    # =========================================================================

    def half_life_for(self, signal_type: Union[SignalType, str]) -> float:
        """Half-life in days for a signal type."""
        return self.half_lives.get(
            signal_type_key(SignalType.parse(signal_type)), self.default_half_life
        )

    def decay_factor(self, signal: Signal, now: Optional[datetime] = None) -> float:
        """
        Exponential decay factor ``exp(-ln2 * days / half_life)``.

        Signals dated in the future count as fresh. A missing or unparsable
        date gives a fixed factor of 0.5.
        """
        now = ensure_utc(now) if now is not None else utc_now()
        signal_date = parse_datetime(signal.date)
        if signal_date is None:
            logger.warning(
                f"Unparsable date {signal.date!r} on {signal.type_key} signal; "
                f"using decay factor {UNDATED_DECAY_FACTOR}",
                extra={"ctx_error_code": str(ErrorCodes.DATA_UNPARSABLE_DATE)},
            )
            return UNDATED_DECAY_FACTOR

        days = (now - signal_date).total_seconds() / 86400
        if days < -MAX_FUTURE_DAYS:
            logger.warning(
                f"{signal.type_key} signal dated {signal_date.date()} is more than "
                f"{MAX_FUTURE_DAYS} days ahead; treating it as current",
                extra={"ctx_error_code": str(ErrorCodes.VALIDATION_CLAMPED_VALUE)},
            )
        days = max(0.0, days)
        return math.exp(-LN2 * days / self.half_life_for(signal.signal_type))

    def _base_score(self, signal: Signal) -> float:
        score = signal.score
        if isinstance(score, bool) or not isinstance(score, (int, float)) or not math.isfinite(score):
            logger.warning(
                f"Non-numeric score {score!r} on {signal.type_key} signal; it contributes 0",
                extra={"ctx_error_code": str(ErrorCodes.DATA_MALFORMED_RECORD)},
            )
            return 0.0
        return float(score)

    def score_symbol(self, signals: Sequence[Signal], now: Optional[datetime] = None) -> float:
        """
        Total score for one symbol's signals.

        Within each type, decayed scores are sorted descending and weighted
        1.0, 0.5, 0.25 then 0.1; the weighted sum gets the diversity bonus.
        """
        now = ensure_utc(now) if now is not None else utc_now()

        by_type: Dict[str, List[float]] = {}
        for signal in signals:
            decayed = self._base_score(signal) * self.decay_factor(signal, now)
            by_type.setdefault(signal.type_key, []).append(decayed)

        total = 0.0
        for decayed_scores in by_type.values():
            for position, score in enumerate(sorted(decayed_scores, reverse=True)):
                total += score * duplicate_multiplier(position)

        return total + diversity_bonus(len(by_type))

    @staticmethod
    def rank_opportunities(
        opportunities: Iterable[InvestmentOpportunity],
    ) -> List[InvestmentOpportunity]:
        """Sort by total score descending, keeping input order on ties, and number 1..N."""
        ranked = sorted(opportunities, key=lambda o: o.total_score, reverse=True)
        for index, opportunity in enumerate(ranked):
            opportunity.rank = index + 1
        return ranked

    # =========================================================================
    # Aggregation
    # =========================================================================

    def _group(self, signals: SignalsBySymbol) -> Dict[str, List[Signal]]:
        if isinstance(signals, Mapping):
            pairs = []
            for symbol, symbol_signals in signals.items():
                try:
                    if isinstance(symbol_signals, (Signal, Mapping, str)):
                        raise TypeError(
                            f"expected a list of signals, got {type(symbol_signals).__name__}"
                        )
                    pairs.extend((symbol, signal) for signal in (symbol_signals or []))
                except TypeError as e:
                    error = wrap_exception(e, ErrorCodes.DATA_MALFORMED_RECORD)
                    error.context.update({"symbol": str(symbol), "record": "signals"})
                    error.log()
        else:
            pairs = signals or []

        grouped: Dict[str, List[Signal]] = {}
        for index, pair in enumerate(pairs):
            try:
                symbol, raw = pair
                signal = raw if isinstance(raw, Signal) else Signal.from_dict(raw)
            except (ValueError, TypeError, AttributeError) as e:
                error = wrap_exception(e, ErrorCodes.DATA_MALFORMED_RECORD)
                error.context.update({"index": index, "record": "signal"})
                error.log()
                continue
            grouped.setdefault(str(symbol), []).append(signal)
        return grouped

    @log_performance(threshold_ms=250)
    def aggregate(
        self,
        signals: SignalsBySymbol,
        stock_info: Optional[Mapping[str, Union[StockInfo, Mapping[str, Any]]]] = None,
        now: Optional[datetime] = None,
    ) -> List[InvestmentOpportunity]:
        """
        Score and rank every symbol.

        Args:
            signals: Mapping of symbol to signals, or ``(symbol, signal)`` pairs.
                Signals may be Signal objects or camelCase dicts.
            stock_info: Optional quote and name details per symbol
            now: Reference time for decay (defaults to the current UTC time)

        Returns:
            Opportunities ranked 1..N by descending score
        """
        now = ensure_utc(now) if now is not None else utc_now()
        stock_info = stock_info or {}

        opportunities = []
        for symbol, symbol_signals in self._group(signals).items():
            info = stock_info.get(symbol)
            if isinstance(info, Mapping):
                info = StockInfo.from_dict(info)
            info = info or StockInfo()

            opportunities.append(
                InvestmentOpportunity(
                    symbol=symbol,
                    total_score=self.score_symbol(symbol_signals, now),
                    signals=symbol_signals,
                    company_name=info.company_name,
                    price=info.price,
                    change_percent=info.change_percent,
                    volume=info.volume,
                )
            )

        ranked = self.rank_opportunities(opportunities)
        log_with_context(
            logger,
            logging.INFO,
            f"Ranked {len(ranked)} opportunities",
            symbols=len(ranked),
            top_symbol=ranked[0].symbol if ranked else None,
        )
        return ranked

    # =========================================================================
    # Market Events Pipeline
    # =========================================================================

    def _analyze(
        self,
        events: MarketEvents,
        now: Optional[datetime],
        momentum_symbols: Iterable[str],
    ) -> OpportunityAnalysis:
        now = ensure_utc(now) if now is not None else utc_now()
        with LogContext(pipeline="market_events"):
            signals = collect_signals(events, now=now, momentum_symbols=momentum_symbols)
            opportunities = self.aggregate(signals, collect_stock_info(events), now=now)
        return OpportunityAnalysis(opportunities=opportunities, generated_at=now)

    @staticmethod
    def _as_events(events: Union[MarketEvents, Mapping[str, Any]]) -> MarketEvents:
        if isinstance(events, MarketEvents):
            return events
        return MarketEvents.from_dict(events)

    def analyze_market_events(
        self,
        events: Union[MarketEvents, Mapping[str, Any]],
        use_cache: bool = True,
        now: Optional[datetime] = None,
        momentum_provider: Optional[MomentumProvider] = None,
    ) -> OpportunityAnalysis:
        """
        Run the full pipeline on a market-events bundle.

        A fresh cached analysis is reused when ``use_cache`` is set;
        otherwise the result is recomputed and stored. Callers always get
        their own copy. A failing momentum provider only drops the momentum
        signals.
        """
        events = self._as_events(events)

        def compute() -> OpportunityAnalysis:
            momentum = []
            if momentum_provider is not None:
                momentum = list(
                    run_isolated("Momentum discovery", momentum_provider, fallback=[]) or []
                )
            return self._analyze(events, now, momentum)

        if not use_cache:
            analysis = compute()
            self.cache.set(analysis)
            return analysis.snapshot()

        analysis, cached = self.cache.get_or_compute(compute)
        if cached:
            logger.info("Using cached opportunity analysis")
        return analysis.snapshot(cached=cached)

    async def analyze_market_events_async(
        self,
        events: Union[MarketEvents, Mapping[str, Any]],
        use_cache: bool = True,
        now: Optional[datetime] = None,
        momentum_provider: Optional[AsyncMomentumProvider] = None,
    ) -> OpportunityAnalysis:
        """
        Event-loop variant of :meth:`analyze_market_events`.

        Concurrent callers share one in-flight computation. The momentum
        provider is awaited with the enrichment timeout.
        """
        events = self._as_events(events)

        async def compute() -> OpportunityAnalysis:
            momentum = []
            if momentum_provider is not None:
                momentum = await run_isolated_async(
                    "Momentum discovery",
                    momentum_provider,
                    fallback=[],
                    timeout=self.enrichment_timeout,
                )
            return self._analyze(events, now, list(momentum or []))

        if not use_cache:
            analysis = await compute()
            self.cache.set(analysis)
            return analysis.snapshot()

        analysis, cached = await self.cache.get_or_compute_async(compute)
        return analysis.snapshot(cached=cached)

    def clear_cache(self) -> None:
        self.cache.invalidate()

    def cache_status(self) -> Dict[str, Any]:
        return self.cache.status()

    # =========================================================================
    # Narratives
    # =========================================================================

    async def generate_summary(self, opportunity: InvestmentOpportunity) -> str:
        """Narrative for one opportunity, falling back to a fixed template."""
        return await generate_summary(opportunity, self.narrator, self.enrichment_timeout)

    async def generate_summaries(
        self,
        opportunities: Sequence[InvestmentOpportunity],
        concurrency: Optional[int] = None,
        timeout: Optional[float] = None,
    ) -> List[InvestmentOpportunity]:
        """Attach narratives to several opportunities with bounded concurrency."""
        return await generate_summaries(
            opportunities,
            self.narrator,
            concurrency=concurrency or self.summary_concurrency,
            timeout=timeout if timeout is not None else self.enrichment_timeout,
        )

    def health_check(self) -> bool:
        """Check the engine is usable."""
        return self.default_half_life > 0 and all(v > 0 for v in self.half_lives.values())
