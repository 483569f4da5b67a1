"""
Performance Analytics Module

Turn the trades and equity curve of one completed backtest run into
trade statistics, risk-adjusted returns, drawdown figures and a
return-distribution risk battery.
"""

import logging
import math
from collections import Counter
from dataclasses import replace
from typing import Any, Iterable, List, Mapping, Optional, Sequence, Union

import numpy as np

from ..config.logging import log_performance
from ..config.settings import get_settings
from ..core.errors import DataError, ErrorCodes, ValidationError, run_isolated, wrap_exception
from .models import EquityCurvePoint, PerformanceMetrics, Trade
from .risk_metrics import (
    RATIO_CAP,
    calculate_beta,
    calculate_cvar,
    calculate_downside_deviation,
    calculate_drawdown_stats,
    calculate_period_returns,
    calculate_return_moments,
    calculate_sharpe_ratio,
    calculate_sortino_ratio,
    calculate_var_historical,
    calculate_var_parametric,
)

logger = logging.getLogger(__name__)

TradeInput = Union[Trade, Mapping[str, Any]]
EquityPointInput = Union[EquityCurvePoint, Mapping[str, Any]]


def _is_number(value: Any) -> bool:
    return (
        isinstance(value, (int, float))
        and not isinstance(value, bool)
        and math.isfinite(value)
    )


class PerformanceAnalytics:
    """
    Backtest performance calculator.

    Stateless apart from its configuration: every call recomputes all
    statistics from the inputs it is given.
    """

    def __init__(
        self,
        annualization_factor: Optional[int] = None,
        risk_free_rate: Optional[float] = None,
        var_confidence: Optional[float] = None,
    ):
        """
        Initialize the calculator.

        Args:
            annualization_factor: Bars per year (defaults to settings)
            risk_free_rate: Annual risk-free rate (defaults to settings)
            var_confidence: Confidence level for VaR/CVaR (defaults to settings)
        """
        settings = get_settings()
        self.annualization_factor = (
            annualization_factor
            if annualization_factor is not None
            else settings.annualization_factor
        )
        self.risk_free_rate = (
            risk_free_rate if risk_free_rate is not None else settings.risk_free_rate
        )
        self.var_confidence = (
            var_confidence if var_confidence is not None else settings.var_confidence
        )

        if self.annualization_factor <= 0:
            raise ValidationError(
                detail=f"annualization_factor must be positive, got {self.annualization_factor}"
            )
        if not 0 < self.var_confidence < 1:
            raise ValidationError(
                detail=f"var_confidence must be in (0, 1), got {self.var_confidence}"
            )

        logger.info(
            f"PerformanceAnalytics initialized (annualization={self.annualization_factor}, "
            f"risk_free_rate={self.risk_free_rate})"
        )

    @log_performance(threshold_ms=250)
    def calculate_metrics(
        self,
        trades: Iterable[TradeInput],
        equity_curve: Iterable[EquityPointInput],
        initial_cash: Optional[float] = None,
        benchmark_returns: Optional[Sequence[float]] = None,
    ) -> PerformanceMetrics:
        """
        Calculate all performance metrics for a completed backtest.

        Args:
            trades: Executed trades, as Trade objects or camelCase dicts
            equity_curve: Equity snapshots in time order, as
                EquityCurvePoint objects or camelCase dicts
            initial_cash: Starting capital. Defaults to the first point's
                total equity, or 0 for an empty curve.
            benchmark_returns: Optional per-bar benchmark returns, aligned
                by position with the curve's period returns. Adds beta,
                correlation, tracking error and information ratio.

        Returns:
            PerformanceMetrics. Degenerate inputs yield zeros and None
            sentinels instead of errors.
        """
        closing = [t for t in self._normalize_trades(trades) if t.is_closing]
        curve = self._normalize_curve(equity_curve)

        if initial_cash is None:
            initial_cash = curve[0].total_equity if curve else 0.0

        # Trade statistics
        total_trades = len(closing)
        pnls = [t.realized_pl or 0.0 for t in closing]
        winners = [t for t in closing if (t.realized_pl or 0.0) > 0]
        losers = [t for t in closing if (t.realized_pl or 0.0) < 0]

        win_rate = len(winners) / total_trades * 100 if total_trades else 0.0
        expectancy = sum(pnls) / total_trades if total_trades else 0.0

        gross_profit = sum(t.realized_pl for t in winners)
        gross_loss = abs(sum(t.realized_pl for t in losers))
        profit_factor = self._profit_factor(gross_profit, gross_loss)

        holding_periods = [t.holding_period for t in closing if t.holding_period is not None]
        exit_reason_counts = Counter(
            t.exit_reason.value for t in closing if t.exit_reason is not None
        )

        # Capital
        final_equity = curve[-1].total_equity if curve else initial_cash
        final_cash = curve[-1].cash if curve else initial_cash
        total_return = final_equity - initial_cash
        total_return_pct = total_return / initial_cash * 100 if initial_cash else 0.0

        # Return series
        returns = calculate_period_returns([p.total_equity for p in curve])
        if len(returns) < 2:
            logger.debug(
                f"Only {len(returns)} period returns; return-based ratios are undefined"
            )

        moments = calculate_return_moments(returns)
        has_series = moments is not None
        var = calculate_var_historical(returns, [self.var_confidence])[self.var_confidence]
        cvar = calculate_cvar(returns, [self.var_confidence])[self.var_confidence]
        var_parametric = calculate_var_parametric(returns, [self.var_confidence])[
            self.var_confidence
        ]

        benchmark = None
        if benchmark_returns is not None:
            benchmark = run_isolated(
                "Benchmark comparison", calculate_beta, returns, benchmark_returns, fallback=None
            )

        drawdowns = calculate_drawdown_stats(
            [p.drawdown_pct for p in curve],
            [p.timestamp for p in curve],
        )

        metrics = PerformanceMetrics(
            total_trades=total_trades,
            winning_trades=len(winners),
            losing_trades=len(losers),
            win_rate=win_rate,
            avg_win_pct=self._mean_pct(winners),
            avg_loss_pct=self._mean_pct(losers),
            profit_factor=profit_factor,
            expectancy=expectancy,
            avg_holding_period=float(np.mean(holding_periods)) if holding_periods else 0.0,
            initial_cash=initial_cash,
            final_cash=final_cash,
            final_equity=final_equity,
            total_return=total_return,
            total_return_pct=total_return_pct,
            sharpe_ratio=calculate_sharpe_ratio(
                returns, self.risk_free_rate, self.annualization_factor
            ),
            sortino_ratio=calculate_sortino_ratio(
                returns, self.risk_free_rate, self.annualization_factor
            ),
            max_drawdown=drawdowns.max_drawdown,
            max_drawdown_date=drawdowns.max_drawdown_date,
            avg_drawdown=drawdowns.avg_drawdown,
            return_count=len(returns),
            volatility=moments.volatility if has_series else None,
            annualized_volatility=(
                moments.volatility * math.sqrt(self.annualization_factor)
                if has_series
                else None
            ),
            downside_deviation=calculate_downside_deviation(returns) if has_series else None,
            var_confidence=self.var_confidence,
            var=var if has_series else None,
            cvar=cvar if has_series else None,
            var_parametric=var_parametric,
            skewness=moments.skewness if has_series else None,
            kurtosis=moments.kurtosis if has_series else None,
            beta=benchmark.beta if benchmark else None,
            correlation=benchmark.correlation if benchmark else None,
            tracking_error=benchmark.tracking_error if benchmark else None,
            information_ratio=benchmark.information_ratio if benchmark else None,
            exit_reason_counts=dict(exit_reason_counts),
        )

        logger.info(
            f"Calculated metrics: {total_trades} trades, win rate {win_rate:.1f}%, "
            f"return {total_return_pct:.2f}%"
        )
        return metrics

    @staticmethod
    def _profit_factor(gross_profit: float, gross_loss: float) -> Optional[float]:
        if gross_loss == 0:
            return RATIO_CAP if gross_profit > 0 else None
        return min(gross_profit / gross_loss, RATIO_CAP)

    @staticmethod
    def _mean_pct(trades: List[Trade]) -> float:
        pcts = [t.realized_pl_pct for t in trades if t.realized_pl_pct is not None]
        return float(np.mean(pcts)) if pcts else 0.0

    def _normalize_trades(self, trades: Iterable[TradeInput]) -> List[Trade]:
        normalized: List[Trade] = []
        for index, raw in enumerate(trades):
            try:
                trade = raw if isinstance(raw, Trade) else Trade.from_dict(raw)
                for name in ("quantity", "realized_pl", "realized_pl_pct", "holding_period"):
                    value = getattr(trade, name)
                    if value is not None and not _is_number(value):
                        raise ValueError(f"{name} is not a finite number: {value!r}")
            except (ValueError, TypeError, AttributeError) as e:
                error = wrap_exception(e, ErrorCodes.DATA_MALFORMED_RECORD)
                error.context.update({"index": index, "record": "trade"})
                error.log()
                continue

            if trade.quantity < 0:
                logger.warning(
                    f"Trade {index} has negative quantity {trade.quantity}; using its absolute value",
                    extra={"ctx_error_code": str(ErrorCodes.VALIDATION_CLAMPED_VALUE)},
                )
                trade = replace(trade, quantity=abs(trade.quantity))

            normalized.append(trade)
        return normalized

    def _normalize_curve(self, equity_curve: Iterable[EquityPointInput]) -> List[EquityCurvePoint]:
        normalized: List[EquityCurvePoint] = []
        for index, raw in enumerate(equity_curve):
            try:
                point = raw if isinstance(raw, EquityCurvePoint) else EquityCurvePoint.from_dict(raw)
                if not (_is_number(point.total_equity) and _is_number(point.drawdown_pct)):
                    raise DataError(detail=f"non-numeric equity values at point {index}")
            except DataError as e:
                e.log()
                continue
            except (ValueError, TypeError, AttributeError) as e:
                error = wrap_exception(e, ErrorCodes.DATA_MALFORMED_RECORD)
                error.context.update({"index": index, "record": "equity_curve"})
                error.log()
                continue
            normalized.append(point)
        return normalized

    def health_check(self) -> bool:
        """Check the calculator is usable."""
        return self.annualization_factor > 0 and 0 < self.var_confidence < 1
