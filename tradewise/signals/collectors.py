"""
Market Event Collectors

Map market-event feed payloads (analyst ratings, M&A news, market movers,
split and earnings calendars, insider filings) into per-symbol Signals and
StockInfo for the aggregation engine.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, TypeVar

from ..core.dates import ensure_utc, parse_datetime, utc_now
from ..core.errors import ErrorCodes, wrap_exception
from .insider_scoring import calculate_insider_buying_score
from .models import SIGNAL_SCORES, Signal, SignalType, StockInfo
from .ratings import is_buy_signal

logger = logging.getLogger(__name__)

E = TypeVar("E")

TOP_MOVERS_LIMIT = 30
SPLIT_WINDOW_DAYS = 30
EARNINGS_WINDOW_DAYS = 7

MOMENTUM_SOURCE = "Hybrid (AV + FMP)"
MOMENTUM_DESCRIPTION = "High momentum: Volume spike + Price surge + Strong fundamentals"
MOMENTUM_CRITERIA = "Volume > 200% avg, Price change > 3%, MarketCap > $1B, RSI < 80"


def _to_float(value: Any) -> Optional[float]:
    """Parse numbers that feeds sometimes send as "12.5%" or "1,234"."""
    if value is None or value == "":
        return None
    if isinstance(value, str):
        value = value.strip().rstrip("%").replace(",", "")
    return float(value)


def _symbol(data: Mapping[str, Any]) -> str:
    symbol = str(data.get("symbol") or "").strip().upper()
    if not symbol:
        raise ValueError("event has no symbol")
    return symbol


# =============================================================================
# Event Payloads
# =============================================================================


@dataclass
class AnalystRating:
    symbol: str
    grading_company: str = ""
    previous_grade: str = ""
    new_grade: str = ""
    published_date: Optional[str] = None
    news_url: Optional[str] = None
    news_title: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "AnalystRating":
        return cls(
            symbol=_symbol(data),
            grading_company=str(data.get("gradingCompany") or ""),
            previous_grade=str(data.get("previousGrade") or ""),
            new_grade=str(data.get("newGrade") or ""),
            published_date=data.get("publishedDate"),
            news_url=data.get("newsURL"),
            news_title=data.get("newsTitle"),
        )


@dataclass
class MergerAcquisition:
    symbol: str
    title: str = ""
    published_date: Optional[str] = None
    url: Optional[str] = None
    deal_value: Optional[str] = None
    deal_type: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "MergerAcquisition":
        return cls(
            symbol=_symbol(data),
            title=str(data.get("title") or ""),
            published_date=data.get("publishedDate"),
            url=data.get("url"),
            deal_value=data.get("dealValue"),
            deal_type=data.get("dealType"),
        )


@dataclass
class MarketMover:
    symbol: str
    price: Optional[float] = None
    change_amount: Optional[float] = None
    change_percent: Optional[float] = None
    volume: Optional[float] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "MarketMover":
        return cls(
            symbol=_symbol(data),
            price=_to_float(data.get("price")),
            change_amount=_to_float(data.get("changeAmount")),
            change_percent=_to_float(data.get("changePercent")),
            volume=_to_float(data.get("volume")),
        )


@dataclass
class MarketMovers:
    top_gainers: List[MarketMover] = field(default_factory=list)
    top_losers: List[MarketMover] = field(default_factory=list)
    most_active: List[MarketMover] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "MarketMovers":
        data = data or {}
        return cls(
            top_gainers=_parse_items(data.get("topGainers"), MarketMover.from_dict, "topGainers"),
            top_losers=_parse_items(data.get("topLosers"), MarketMover.from_dict, "topLosers"),
            most_active=_parse_items(data.get("mostActive"), MarketMover.from_dict, "mostActive"),
        )


@dataclass
class StockSplit:
    symbol: str
    date: Optional[str] = None
    numerator: Optional[float] = None
    denominator: Optional[float] = None
    label: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "StockSplit":
        return cls(
            symbol=_symbol(data),
            date=data.get("date"),
            numerator=_to_float(data.get("numerator")),
            denominator=_to_float(data.get("denominator")),
            label=data.get("label"),
        )


@dataclass
class UpcomingEarnings:
    symbol: str
    date: Optional[str] = None
    name: Optional[str] = None
    eps_estimated: Optional[float] = None
    revenue_estimated: Optional[float] = None
    time: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "UpcomingEarnings":
        return cls(
            symbol=_symbol(data),
            date=data.get("date"),
            name=data.get("name"),
            eps_estimated=_to_float(data.get("epsEstimated")),
            revenue_estimated=_to_float(data.get("revenueEstimated")),
            time=data.get("time"),
        )


@dataclass
class InsiderTrade:
    symbol: str
    reporting_name: str
    acquisition_or_disposition: str  # "A" or "D"
    securities_transacted: float
    price: float
    type_of_owner: str = ""
    securities_owned: float = 0.0
    transaction_date: Optional[str] = None
    link: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "InsiderTrade":
        # The filing feed spells the key "acquistionOrDisposition"
        direction = data.get("acquistionOrDisposition", data.get("acquisitionOrDisposition"))
        return cls(
            symbol=_symbol(data),
            reporting_name=str(data.get("reportingName") or ""),
            acquisition_or_disposition=str(direction or "").strip().upper(),
            securities_transacted=_to_float(data.get("securitiesTransacted")) or 0.0,
            price=_to_float(data.get("price")) or 0.0,
            type_of_owner=str(data.get("typeOfOwner") or ""),
            securities_owned=_to_float(data.get("securitiesOwned")) or 0.0,
            transaction_date=data.get("transactionDate"),
            link=data.get("link"),
        )


@dataclass
class MarketEvents:
    """Bundle of market-event feeds for one analysis run."""

    analyst_ratings: List[AnalystRating] = field(default_factory=list)
    mergers_acquisitions: List[MergerAcquisition] = field(default_factory=list)
    market_movers: MarketMovers = field(default_factory=MarketMovers)
    stock_splits: List[StockSplit] = field(default_factory=list)
    upcoming_earnings: List[UpcomingEarnings] = field(default_factory=list)
    insider_trading: List[InsiderTrade] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "MarketEvents":
        """Parse a camelCase feed payload, skipping malformed items."""
        return cls(
            analyst_ratings=_parse_items(
                data.get("analystRatings"), AnalystRating.from_dict, "analystRatings"
            ),
            mergers_acquisitions=_parse_items(
                data.get("mergersAcquisitions"), MergerAcquisition.from_dict, "mergersAcquisitions"
            ),
            market_movers=MarketMovers.from_dict(data.get("marketMovers")),
            stock_splits=_parse_items(data.get("stockSplits"), StockSplit.from_dict, "stockSplits"),
            upcoming_earnings=_parse_items(
                data.get("upcomingEarnings"), UpcomingEarnings.from_dict, "upcomingEarnings"
            ),
            insider_trading=_parse_items(
                data.get("insiderTrading"), InsiderTrade.from_dict, "insiderTrading"
            ),
        )


def _parse_items(
    items: Optional[Iterable[Mapping[str, Any]]],
    parse: Callable[[Mapping[str, Any]], E],
    feed: str,
) -> List[E]:
    parsed: List[E] = []
    for index, item in enumerate(items or []):
        try:
            parsed.append(parse(item))
        except (ValueError, TypeError, AttributeError) as e:
            _log_skipped(feed, index, e)
    return parsed


def _log_skipped(feed: str, index: int, error: Exception) -> None:
    wrapped = wrap_exception(error, ErrorCodes.DATA_MALFORMED_RECORD)
    logger.warning(
        f"Skipping malformed {feed} item {index}: {error}",
        extra={"ctx_error_code": wrapped.code, "ctx_feed": feed},
    )


# =============================================================================
# Signal Collection
# =============================================================================


def format_volume(volume: float) -> str:
    """Compact volume label: 1.23B, 4.56M, 7.89K or the raw number."""
    if volume >= 1_000_000_000:
        return f"{volume / 1_000_000_000:.2f}B"
    if volume >= 1_000_000:
        return f"{volume / 1_000_000:.2f}M"
    if volume >= 1_000:
        return f"{volume / 1_000:.2f}K"
    if float(volume).is_integer():
        return str(int(volume))
    return str(volume)


def _within(value: Optional[str], start: datetime, end: datetime) -> bool:
    parsed = parse_datetime(value)
    return parsed is not None and start <= parsed <= end


def _insider_signal(trade: InsiderTrade, signal_type: SignalType) -> Signal:
    buying_score = calculate_insider_buying_score(
        trade.securities_transacted,
        trade.price,
        trade.type_of_owner,
        trade.securities_owned,
    )
    verb = "bought" if signal_type == SignalType.INSIDER_BUYING else "sold"
    total_value = trade.securities_transacted * trade.price
    return Signal(
        signal_type=signal_type,
        score=buying_score if signal_type == SignalType.INSIDER_BUYING else -buying_score,
        source="FMP",
        description=(
            f"{trade.reporting_name} {verb} {trade.securities_transacted:,.0f} shares "
            f"(${total_value:,.0f})"
        ),
        date=trade.transaction_date,
        metadata={
            "reportingName": trade.reporting_name,
            "typeOfOwner": trade.type_of_owner,
            "securitiesTransacted": trade.securities_transacted,
            "price": trade.price,
            "securitiesOwned": trade.securities_owned,
            "link": trade.link,
        },
    )


def _largest_insider_trades(trades: Sequence[InsiderTrade]) -> Tuple[List[InsiderTrade], List[InsiderTrade]]:
    """Keep the largest trade per (insider, symbol), separately for buys and sells."""
    buys: Dict[Tuple[str, str], InsiderTrade] = {}
    sells: Dict[Tuple[str, str], InsiderTrade] = {}
    for trade in trades:
        if trade.acquisition_or_disposition == "A":
            bucket = buys
        elif trade.acquisition_or_disposition == "D":
            bucket = sells
        else:
            continue
        key = (trade.reporting_name, trade.symbol)
        existing = bucket.get(key)
        if existing is None or trade.securities_transacted > existing.securities_transacted:
            bucket[key] = trade
    return list(buys.values()), list(sells.values())


def collect_signals(
    events: MarketEvents,
    now: Optional[datetime] = None,
    momentum_symbols: Iterable[str] = (),
) -> Dict[str, List[Signal]]:
    """
    Turn market events into signals grouped by symbol.

    Args:
        events: Parsed market-event feeds
        now: Reference time for calendar windows and undated signals
        momentum_symbols: Symbols flagged by a momentum screen

    Returns:
        Mapping of symbol to its signals, in first-seen symbol order
    """
    now = ensure_utc(now) if now is not None else utc_now()
    now_iso = now.isoformat()
    signals: Dict[str, List[Signal]] = {}

    def add(symbol: str, signal: Signal) -> None:
        signals.setdefault(symbol, []).append(signal)

    def each(feed: str, items: Sequence[E], build: Callable[[E], Optional[Signal]]) -> None:
        for index, item in enumerate(items):
            try:
                signal = build(item)
            except (ValueError, TypeError) as e:
                _log_skipped(feed, index, e)
                continue
            if signal is not None:
                add(item.symbol, signal)

    def analyst(rating: AnalystRating) -> Optional[Signal]:
        if not is_buy_signal(rating.previous_grade, rating.new_grade):
            return None
        return Signal(
            signal_type=SignalType.ANALYST_UPGRADE,
            score=SIGNAL_SCORES[SignalType.ANALYST_UPGRADE],
            source=rating.grading_company,
            description=f"{rating.previous_grade} → {rating.new_grade}",
            date=rating.published_date,
            metadata={"newsURL": rating.news_url, "newsTitle": rating.news_title},
        )

    def merger(ma: MergerAcquisition) -> Signal:
        return Signal(
            signal_type=SignalType.MERGER_ACQUISITION,
            score=SIGNAL_SCORES[SignalType.MERGER_ACQUISITION],
            source="FMP",
            description=ma.title,
            date=ma.published_date,
            metadata={"url": ma.url, "dealType": ma.deal_type, "dealValue": ma.deal_value},
        )

    def gainer(mover: MarketMover) -> Signal:
        return Signal(
            signal_type=SignalType.TOP_GAINER,
            score=SIGNAL_SCORES[SignalType.TOP_GAINER],
            source="Alpha Vantage",
            description=f"+{mover.change_percent:.2f}% today",
            date=now_iso,
            metadata={"price": mover.price, "changeAmount": mover.change_amount},
        )

    split_end = now + timedelta(days=SPLIT_WINDOW_DAYS)

    def split(event: StockSplit) -> Optional[Signal]:
        if not _within(event.date, now, split_end):
            return None
        numerator = f"{event.numerator:g}" if event.numerator is not None else "?"
        denominator = f"{event.denominator:g}" if event.denominator is not None else "?"
        return Signal(
            signal_type=SignalType.STOCK_SPLIT,
            score=SIGNAL_SCORES[SignalType.STOCK_SPLIT],
            source="FMP",
            description=f"{numerator}-for-{denominator} split on {event.date}",
            date=event.date,
            metadata={
                "numerator": event.numerator,
                "denominator": event.denominator,
                "label": event.label,
            },
        )

    earnings_end = now + timedelta(days=EARNINGS_WINDOW_DAYS)

    def earnings(event: UpcomingEarnings) -> Optional[Signal]:
        if not event.eps_estimated or event.eps_estimated <= 0:
            return None
        if not _within(event.date, now, earnings_end):
            return None
        return Signal(
            signal_type=SignalType.EARNINGS_UPCOMING,
            score=SIGNAL_SCORES[SignalType.EARNINGS_UPCOMING],
            source="FMP",
            description=f"Earnings on {event.date} (EPS est: ${event.eps_estimated:.2f})",
            date=event.date,
            metadata={
                "epsEstimated": event.eps_estimated,
                "revenueEstimated": event.revenue_estimated,
                "time": event.time,
            },
        )

    def active(mover: MarketMover) -> Signal:
        return Signal(
            signal_type=SignalType.HIGH_VOLUME,
            score=SIGNAL_SCORES[SignalType.HIGH_VOLUME],
            source="Alpha Vantage",
            description=f"Volume: {format_volume(mover.volume)}",
            date=now_iso,
            metadata={"volume": mover.volume, "price": mover.price},
        )

    each("analystRatings", events.analyst_ratings, analyst)
    each("mergersAcquisitions", events.mergers_acquisitions, merger)
    each("topGainers", events.market_movers.top_gainers[:TOP_MOVERS_LIMIT], gainer)
    each("stockSplits", events.stock_splits, split)
    each("upcomingEarnings", events.upcoming_earnings, earnings)
    each("mostActive", events.market_movers.most_active[:TOP_MOVERS_LIMIT], active)

    buys, sells = _largest_insider_trades(events.insider_trading)
    each("insiderTrading", buys, lambda t: _insider_signal(t, SignalType.INSIDER_BUYING))
    each("insiderTrading", sells, lambda t: _insider_signal(t, SignalType.INSIDER_SELLING))

    momentum_count = 0
    for symbol in momentum_symbols:
        symbol = str(symbol).strip().upper()
        if not symbol:
            continue
        add(
            symbol,
            Signal(
                signal_type=SignalType.MOMENTUM,
                score=SIGNAL_SCORES[SignalType.MOMENTUM],
                source=MOMENTUM_SOURCE,
                description=MOMENTUM_DESCRIPTION,
                date=now_iso,
                metadata={"criteria": MOMENTUM_CRITERIA},
            ),
        )
        momentum_count += 1
    if momentum_count:
        logger.info(f"Added {momentum_count} momentum signals")

    logger.info(
        f"Collected {sum(len(v) for v in signals.values())} signals for {len(signals)} symbols"
    )
    return signals


def collect_stock_info(events: MarketEvents) -> Dict[str, StockInfo]:
    """
    Gather quote data and company names per symbol.

    Quotes come from the first mover listing a symbol (gainers, then
    losers, then most active). Names come from earnings entries, then
    split labels, the later source overriding the earlier.
    """
    info: Dict[str, StockInfo] = {}

    movers = events.market_movers
    for mover in movers.top_gainers + movers.top_losers + movers.most_active:
        if mover.symbol not in info:
            info[mover.symbol] = StockInfo(
                price=mover.price,
                change_percent=mover.change_percent,
                volume=mover.volume,
            )

    named: List[Tuple[str, Optional[str]]] = [
        (e.symbol, e.name) for e in events.upcoming_earnings
    ] + [(s.symbol, s.label) for s in events.stock_splits]

    for symbol, name in named:
        if not name:
            continue
        info.setdefault(symbol, StockInfo()).company_name = name

    return info
