"""
Tradewise Opportunities Router

Investment opportunities ranked from market-event signals.

Endpoints:
    POST   /api/opportunities               - Rank caller-supplied signals
    POST   /api/opportunities/market-events - Analyze a market-events bundle
    GET    /api/opportunities/cache-status  - Cached analysis status
    DELETE /api/opportunities/cache         - Drop the cached analysis
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict, Field

from ...core.dates import ensure_utc, utc_now
from ...signals import MarketEvents, Signal, SignalType, StockInfo
from ..dependencies import Container, get_container
from .base import ApiResponse, create_response

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/opportunities", tags=["Opportunities"])

DEFAULT_LIMIT = 10
MAX_LIMIT = 50
DEFAULT_MIN_SCORE = 2.0


# =============================================================================
# Request Models
# =============================================================================


class SignalModel(BaseModel):
    """Signal attached to a symbol."""

    symbol: str = Field(..., min_length=1, max_length=16, description="Stock ticker symbol")
    type: str = Field(..., min_length=1, description="Signal type, e.g. insider_buying")
    score: float = Field(..., description="Base score before decay")
    source: str = ""
    description: str = ""
    date: Optional[str] = Field(default=None, description="Event date (ISO 8601)")
    metadata: Dict[str, Any] = Field(default_factory=dict)


class StockInfoModel(BaseModel):
    """Quote and name details for a symbol."""

    companyName: Optional[str] = None
    price: Optional[float] = None
    changePercent: Optional[float] = None
    volume: Optional[float] = None


class OpportunitiesRequest(BaseModel):
    """Request to rank signals into opportunities."""

    signals: List[SignalModel] = Field(default_factory=list)
    stockInfo: Dict[str, StockInfoModel] = Field(default_factory=dict)
    now: Optional[datetime] = Field(default=None, description="Reference time for decay")


class MarketMoversModel(BaseModel):
    model_config = ConfigDict(extra="ignore")

    topGainers: List[Dict[str, Any]] = Field(default_factory=list)
    topLosers: List[Dict[str, Any]] = Field(default_factory=list)
    mostActive: List[Dict[str, Any]] = Field(default_factory=list)


class MarketEventsRequest(BaseModel):
    """
    Market-event feeds to analyze.

    Feed items are passed through as-is; malformed items are skipped
    during analysis.
    """

    model_config = ConfigDict(extra="ignore")

    analystRatings: List[Dict[str, Any]] = Field(default_factory=list)
    mergersAcquisitions: List[Dict[str, Any]] = Field(default_factory=list)
    marketMovers: MarketMoversModel = Field(default_factory=MarketMoversModel)
    stockSplits: List[Dict[str, Any]] = Field(default_factory=list)
    upcomingEarnings: List[Dict[str, Any]] = Field(default_factory=list)
    insiderTrading: List[Dict[str, Any]] = Field(default_factory=list)
    now: Optional[datetime] = Field(default=None, description="Reference time for decay")


# =============================================================================
# Endpoints
# =============================================================================


@router.post(
    "",
    response_model=ApiResponse,
    summary="Rank signals into opportunities",
    description="""
    Score each symbol from its signals (time decay, duplicate discount,
    diversity bonus) and return them ranked by total score.
    """,
)
async def rank_signals(
    request: OpportunitiesRequest,
    container: Container = Depends(get_container),
):
    """Rank caller-supplied signals."""
    now = ensure_utc(request.now) if request.now else utc_now()
    pairs = [
        (
            s.symbol.upper(),
            Signal(
                signal_type=SignalType.parse(s.type),
                score=s.score,
                source=s.source,
                description=s.description,
                date=s.date,
                metadata=s.metadata,
            ),
        )
        for s in request.signals
    ]
    stock_info = {
        symbol.upper(): StockInfo.from_dict(info.model_dump())
        for symbol, info in request.stockInfo.items()
    }

    opportunities = container.engine.aggregate(pairs, stock_info, now=now)
    return create_response(
        data={
            "opportunities": [o.to_dict() for o in opportunities],
            "metadata": {
                "totalOpportunities": len(opportunities),
                "timestamp": now.isoformat(),
                "cached": False,
            },
        }
    )


@router.post(
    "/market-events",
    response_model=ApiResponse,
    summary="Analyze market events",
    description="""
    Collect signals from market-event feeds and rank the resulting
    opportunities. A fresh cached analysis is returned unless
    useCache=false. Opportunities below minScore are dropped, the top
    `limit` are returned, and includeAI attaches a summary to each.
    """,
)
async def analyze_market_events(
    request: MarketEventsRequest,
    use_cache: bool = Query(default=True, alias="useCache"),
    limit: int = Query(default=DEFAULT_LIMIT, ge=1, le=MAX_LIMIT, description="Opportunities to return"),
    min_score: float = Query(default=DEFAULT_MIN_SCORE, alias="minScore", description="Minimum total score"),
    include_ai: bool = Query(default=True, alias="includeAI", description="Attach summaries"),
    container: Container = Depends(get_container),
):
    """Analyze a market-events bundle."""
    events = MarketEvents.from_dict(request.model_dump(exclude={"now"}))
    analysis = await container.engine.analyze_market_events_async(
        events,
        use_cache=use_cache,
        now=request.now,
        momentum_provider=container.momentum_provider,
    )
    selected = analysis.select(min_score=min_score, limit=limit)

    if include_ai and selected.opportunities:
        logger.info(f"Generating summaries for {len(selected.opportunities)} opportunities")
        await container.engine.generate_summaries(selected.opportunities)

    return create_response(data=selected.to_dict())


@router.get(
    "/cache-status",
    response_model=ApiResponse,
    summary="Opportunity cache status",
)
async def cache_status(container: Container = Depends(get_container)):
    """Report whether a fresh analysis is cached."""
    return create_response(data=container.engine.cache_status())


@router.delete(
    "/cache",
    response_model=ApiResponse,
    summary="Clear the opportunity cache",
)
async def clear_cache(container: Container = Depends(get_container)):
    """Drop the cached analysis."""
    container.engine.clear_cache()
    return create_response(data={"cleared": True})
