"""
Tradewise Analytics Router

Backtest performance metrics.

Endpoints:
    POST /api/analytics/metrics - Performance metrics for one backtest run
"""

import logging
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field, field_validator

from ...backtesting import EquityCurvePoint, Trade
from ..dependencies import Container, get_container
from .base import ApiResponse, create_response

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/analytics", tags=["Analytics"])


# =============================================================================
# Request Models
# =============================================================================


class TradeModel(BaseModel):
    """Executed backtest trade."""

    model_config = ConfigDict(extra="ignore")

    side: str = Field(..., description="BUY or SELL")
    quantity: float = Field(default=0, description="Shares traded")
    executedPrice: float = Field(default=0, description="Fill price")
    entryPrice: Optional[float] = None
    realizedPL: Optional[float] = Field(default=None, description="Realized profit/loss")
    realizedPLPct: Optional[float] = Field(
        default=None, description="Realized profit/loss in percent"
    )
    holdingPeriod: Optional[float] = Field(default=None, description="Bars held")
    exitReason: Optional[str] = None
    symbol: Optional[str] = None
    executionBar: Optional[datetime] = None

    @field_validator("side")
    @classmethod
    def validate_side(cls, v: str) -> str:
        side = v.strip().upper()
        if side not in ("BUY", "SELL"):
            raise ValueError(f"side must be BUY or SELL, got {v}")
        return side


class EquityPointModel(BaseModel):
    """Equity curve snapshot."""

    model_config = ConfigDict(extra="ignore")

    timestamp: datetime
    cash: float = 0.0
    stockValue: float = 0.0
    totalEquity: Optional[float] = None
    highWaterMark: Optional[float] = None
    drawdown: Optional[float] = None
    drawdownPct: Optional[float] = None


class MetricsRequest(BaseModel):
    """Request for backtest performance metrics."""

    trades: List[TradeModel] = Field(default_factory=list)
    equityCurve: List[EquityPointModel] = Field(default_factory=list)
    initialCash: Optional[float] = Field(default=None, ge=0, description="Starting capital")
    benchmarkReturns: Optional[List[float]] = Field(
        default=None, description="Per-bar benchmark returns for beta and correlation"
    )


# =============================================================================
# Endpoints
# =============================================================================


@router.post(
    "/metrics",
    response_model=ApiResponse,
    summary="Calculate backtest performance metrics",
    description="""
    Calculate trade statistics, Sharpe/Sortino ratios, drawdowns and
    VaR/CVaR for one completed backtest run, plus beta and correlation
    when benchmark returns are supplied.
    """,
)
async def calculate_metrics(
    request: MetricsRequest,
    container: Container = Depends(get_container),
):
    """Calculate performance metrics from trades and an equity curve."""
    trades = [Trade.from_dict(t.model_dump(exclude_none=True)) for t in request.trades]
    curve = [
        EquityCurvePoint.from_dict(p.model_dump(exclude_none=True))
        for p in request.equityCurve
    ]

    metrics = container.analytics.calculate_metrics(
        trades,
        curve,
        initial_cash=request.initialCash,
        benchmark_returns=request.benchmarkReturns,
    )
    return create_response(data=metrics.to_dict())
