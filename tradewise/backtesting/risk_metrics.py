"""
Risk Metrics Module

Return-series statistics for backtest equity curves: Sharpe and Sortino
ratios, Value at Risk (VaR), Conditional VaR (CVaR), return moments,
benchmark-relative metrics and drawdown statistics.

Returns are per-bar simple returns expressed as fractions. Undefined
results are None; "infinite" ratios are capped at RATIO_CAP so that every
result stays JSON-serialisable.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Optional, Sequence

import numpy as np
import pandas as pd
from scipy import stats

logger = logging.getLogger(__name__)

RATIO_CAP = 999.99

DEFAULT_ANNUALIZATION_FACTOR = 252


@dataclass
class ReturnMoments:
    """Higher moments of a return distribution."""

    mean: float
    volatility: float  # sample standard deviation
    skewness: float
    kurtosis: float  # excess kurtosis
    min_return: float
    max_return: float


@dataclass
class BenchmarkMetrics:
    """Benchmark-relative statistics."""

    beta: float
    correlation: float
    tracking_error: float
    information_ratio: float
    observations: int


@dataclass
class DrawdownStats:
    """Drawdown summary over an equity curve (whole-number percent)."""

    max_drawdown: float
    max_drawdown_date: Optional[datetime]
    avg_drawdown: float
    max_drawdown_duration: int  # bars spent below the high-water mark


def _as_series(returns: Sequence[float]) -> pd.Series:
    if isinstance(returns, pd.Series):
        return returns.astype(float)
    return pd.Series(list(returns), dtype=float)


def calculate_period_returns(equity: Sequence[float]) -> pd.Series:
    """
    Calculate simple per-bar returns from a sequence of equity values.

    A bar whose previous equity is not positive has no defined return and
    is dropped.
    """
    values = _as_series(equity)
    previous = values.shift(1)
    returns = (values - previous) / previous
    return returns[previous > 0].reset_index(drop=True)


def calculate_sharpe_ratio(
    returns: Sequence[float],
    risk_free_rate: float = 0.0,
    annualization_factor: int = DEFAULT_ANNUALIZATION_FACTOR,
) -> Optional[float]:
    """
    Calculate the annualized Sharpe ratio.

    Args:
        returns: Per-bar returns
        risk_free_rate: Annual risk-free rate
        annualization_factor: Bars per year

    Returns:
        Sharpe ratio, or None with fewer than 2 returns or zero volatility
    """
    series = _as_series(returns)
    if len(series) < 2:
        return None

    excess_returns = series - risk_free_rate / annualization_factor
    std = excess_returns.std(ddof=1)
    if not np.isfinite(std) or np.isclose(std, 0.0):
        return None

    return float(excess_returns.mean() / std * np.sqrt(annualization_factor))


def calculate_downside_deviation(
    returns: Sequence[float],
    target: float = 0.0,
) -> Optional[float]:
    """
    Root-mean-square shortfall below ``target`` over all returns.

    Returns above the target contribute zero; None for an empty series.
    """
    series = _as_series(returns)
    if series.empty:
        return None
    shortfall = np.minimum(series - target, 0.0)
    return float(np.sqrt(np.mean(shortfall**2)))


def calculate_sortino_ratio(
    returns: Sequence[float],
    risk_free_rate: float = 0.0,
    annualization_factor: int = DEFAULT_ANNUALIZATION_FACTOR,
    target: float = 0.0,
) -> Optional[float]:
    """
    Calculate the annualized Sortino ratio.

    Args:
        returns: Per-bar returns
        risk_free_rate: Annual risk-free rate
        annualization_factor: Bars per year
        target: Minimum acceptable per-bar return

    Returns:
        Sortino ratio. None with fewer than 2 returns. When no return falls
        below the target, RATIO_CAP for a positive mean excess return and
        None otherwise.
    """
    series = _as_series(returns)
    if len(series) < 2:
        return None

    mean_excess = (series - risk_free_rate / annualization_factor).mean()
    downside = calculate_downside_deviation(series, target)

    if not downside:
        return RATIO_CAP if mean_excess > 0 else None

    ratio = float(mean_excess / downside * np.sqrt(annualization_factor))
    return float(np.clip(ratio, -RATIO_CAP, RATIO_CAP))


def calculate_var_historical(
    returns: Sequence[float],
    confidence_levels: List[float] = [0.95, 0.99],
) -> Dict[float, Optional[float]]:
    """
    Calculate VaR by historical simulation.

    The VaR is the return at the (1 - confidence) percentile, linearly
    interpolated between order statistics. It is reported as a signed
    return, so a loss is negative.

    Returns:
        Dictionary mapping confidence level to VaR (None for no returns)
    """
    series = _as_series(returns)
    results: Dict[float, Optional[float]] = {}
    for confidence in confidence_levels:
        if series.empty:
            results[confidence] = None
            continue
        percentile = (1 - confidence) * 100
        results[confidence] = float(np.percentile(series, percentile))
    return results


def calculate_var_parametric(
    returns: Sequence[float],
    confidence_levels: List[float] = [0.95, 0.99],
) -> Dict[float, Optional[float]]:
    """
    Calculate VaR assuming normally distributed returns.

    Returns:
        Dictionary mapping confidence level to VaR (None with fewer than
        2 returns)
    """
    series = _as_series(returns)
    results: Dict[float, Optional[float]] = {}
    if len(series) < 2:
        return {confidence: None for confidence in confidence_levels}

    mu = series.mean()
    sigma = series.std(ddof=1)
    for confidence in confidence_levels:
        z_score = stats.norm.ppf(1 - confidence)
        results[confidence] = float(mu + z_score * sigma)
    return results


def calculate_cvar(
    returns: Sequence[float],
    confidence_levels: List[float] = [0.95, 0.99],
) -> Dict[float, Optional[float]]:
    """
    Calculate Conditional VaR (expected shortfall).

    CVaR is the mean of the returns at or below the historical VaR.
    """
    series = _as_series(returns)
    var_dict = calculate_var_historical(series, confidence_levels)

    results: Dict[float, Optional[float]] = {}
    for confidence, var_return in var_dict.items():
        if var_return is None:
            results[confidence] = None
            continue
        tail_returns = series[series <= var_return]
        if len(tail_returns) > 0:
            results[confidence] = float(tail_returns.mean())
        else:
            results[confidence] = var_return
    return results


def calculate_return_moments(returns: Sequence[float]) -> Optional[ReturnMoments]:
    """
    Calculate mean, volatility, skewness and excess kurtosis.

    Skewness and kurtosis are population moments and are 0.0 for a series
    with no dispersion.

    Returns:
        ReturnMoments, or None with fewer than 2 returns
    """
    series = _as_series(returns)
    if len(series) < 2:
        return None

    volatility = float(series.std(ddof=1))
    if np.isclose(series.std(ddof=0), 0.0):
        skewness = 0.0
        kurtosis = 0.0
    else:
        skewness = float(stats.skew(series, bias=True))
        kurtosis = float(stats.kurtosis(series, fisher=True, bias=True))

    return ReturnMoments(
        mean=float(series.mean()),
        volatility=volatility,
        skewness=skewness,
        kurtosis=kurtosis,
        min_return=float(series.min()),
        max_return=float(series.max()),
    )


def calculate_beta(
    returns: Sequence[float],
    benchmark_returns: Sequence[float],
) -> Optional[BenchmarkMetrics]:
    """
    Calculate beta, correlation and information ratio against a benchmark.

    The two series are aligned by position; bars missing from either side
    are dropped.

    Returns:
        BenchmarkMetrics, or None with fewer than 2 aligned observations
    """
    aligned = pd.concat(
        [
            _as_series(returns).reset_index(drop=True),
            _as_series(benchmark_returns).reset_index(drop=True),
        ],
        axis=1,
    ).dropna()
    if len(aligned) < 2:
        logger.warning("Insufficient data for beta calculation")
        return None

    asset_ret = aligned.iloc[:, 0]
    bench_ret = aligned.iloc[:, 1]

    benchmark_variance = np.var(bench_ret)
    if benchmark_variance == 0:
        beta = 0.0
    else:
        beta = float(np.cov(asset_ret, bench_ret, ddof=0)[0, 1] / benchmark_variance)

    if np.isclose(np.std(asset_ret), 0.0) or np.isclose(np.std(bench_ret), 0.0):
        correlation = 0.0
    else:
        correlation = float(np.corrcoef(asset_ret, bench_ret)[0, 1])

    active = asset_ret - bench_ret
    tracking_error = float(np.std(active))
    information_ratio = float(active.mean() / tracking_error) if tracking_error > 0 else 0.0

    return BenchmarkMetrics(
        beta=beta,
        correlation=correlation,
        tracking_error=tracking_error,
        information_ratio=information_ratio,
        observations=len(aligned),
    )


def calculate_drawdown_stats(
    drawdown_pcts: Sequence[float],
    timestamps: Optional[Sequence[datetime]] = None,
) -> DrawdownStats:
    """
    Summarise a drawdown-percent series.

    Args:
        drawdown_pcts: Drawdown percent per bar (<= 0)
        timestamps: Optional timestamps aligned with ``drawdown_pcts``

    Returns:
        DrawdownStats. The max drawdown date is the first bar reaching the
        minimum.
    """
    series = _as_series(drawdown_pcts)
    if series.empty:
        return DrawdownStats(
            max_drawdown=0.0,
            max_drawdown_date=None,
            avg_drawdown=0.0,
            max_drawdown_duration=0,
        )

    # idxmin returns the first occurrence of the minimum
    worst = int(series.idxmin())
    max_drawdown = float(series.iloc[worst])
    max_drawdown_date = None
    if timestamps is not None and worst < len(timestamps):
        max_drawdown_date = timestamps[worst]

    negative = series[series < 0]
    avg_drawdown = float(negative.mean()) if len(negative) > 0 else 0.0

    in_drawdown = series < 0
    if in_drawdown.any():
        max_duration = int(in_drawdown.groupby((~in_drawdown).cumsum()).sum().max())
    else:
        max_duration = 0

    return DrawdownStats(
        max_drawdown=max_drawdown,
        max_drawdown_date=max_drawdown_date,
        avg_drawdown=avg_drawdown,
        max_drawdown_duration=max_duration,
    )
