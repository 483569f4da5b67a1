"""
Shared test fixtures for signals module tests.
"""

from datetime import timedelta

import pytest

from tradewise.signals import (
    InvestmentOpportunity,
    OpportunityCache,
    Signal,
    SignalAggregationEngine,
    SignalType,
)


class FakeClock:
    """Controllable epoch-seconds clock for cache tests."""

    def __init__(self, start: float = 1_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(clock):
    return OpportunityCache(ttl_seconds=300, clock=clock)


@pytest.fixture
def engine():
    """Engine with default half-lives and a private cache."""
    return SignalAggregationEngine()


@pytest.fixture
def days_ago(now):
    """ISO date string ``n`` days before the reference time."""

    def _days_ago(n: float) -> str:
        return (now - timedelta(days=n)).isoformat()

    return _days_ago


@pytest.fixture
def sample_opportunity(now):
    return InvestmentOpportunity(
        symbol="NRC",
        total_score=12.5,
        signals=[
            Signal(SignalType.INSIDER_BUYING, 7.38, source="FMP", date=now),
            Signal(SignalType.INSIDER_BUYING, 5.0, source="FMP", date=now),
            Signal(SignalType.TOP_GAINER, 2, source="Alpha Vantage", date=now),
        ],
        company_name="National Research Corp",
        price=25.5,
        change_percent=1.234,
    )


@pytest.fixture
def market_events_payload(now):
    """Raw camelCase market-event feeds as served by the data vendors."""
    return {
        "analystRatings": [
            {
                "symbol": "AAPL",
                "gradingCompany": "Morgan Stanley",
                "previousGrade": "Hold",
                "newGrade": "Buy",
                "publishedDate": (now - timedelta(days=1)).isoformat(),
                "newsURL": "https://example.com/aapl",
                "newsTitle": "AAPL upgraded",
            },
            {
                "symbol": "MSFT",
                "gradingCompany": "Citi",
                "previousGrade": "Buy",
                "newGrade": "Hold",
                "publishedDate": now.isoformat(),
            },
        ],
        "mergersAcquisitions": [
            {
                "symbol": "XYZ",
                "title": "XYZ to acquire ABC",
                "publishedDate": now.isoformat(),
                "url": "https://example.com/xyz",
            }
        ],
        "marketMovers": {
            "topGainers": [
                {"symbol": "AAPL", "price": "190.5", "changeAmount": "9.5", "changePercent": "5.25%", "volume": "1000"},
            ],
            "topLosers": [
                {"symbol": "TSLA", "price": "200", "changeAmount": "-10", "changePercent": "-4.76%", "volume": "5000"},
            ],
            "mostActive": [
                {"symbol": "NVDA", "price": "120", "changeAmount": "1", "changePercent": "0.84%", "volume": "12345678"},
            ],
        },
        "stockSplits": [
            {"symbol": "NVDA", "date": "2025-01-20", "numerator": 10, "denominator": 1, "label": "NVIDIA Corp"},
            {"symbol": "GOOG", "date": "2025-03-01", "numerator": 20, "denominator": 1},
        ],
        "upcomingEarnings": [
            {"symbol": "AAPL", "date": "2025-01-18", "name": "Apple Inc", "epsEstimated": 2.1},
            {"symbol": "TSLA", "date": "2025-01-17", "name": "Tesla Inc", "epsEstimated": -0.5},
        ],
        "insiderTrading": [
            {
                "symbol": "NRC",
                "reportingName": "Jane Doe",
                "acquistionOrDisposition": "A",
                "securitiesTransacted": 50000,
                "price": 10,
                "typeOfOwner": "officer: CFO",
                "securitiesOwned": 150000,
                "transactionDate": now.isoformat(),
            },
            {
                "symbol": "NRC",
                "reportingName": "Jane Doe",
                "acquistionOrDisposition": "A",
                "securitiesTransacted": 1000,
                "price": 10,
                "typeOfOwner": "officer: CFO",
                "securitiesOwned": 151000,
                "transactionDate": now.isoformat(),
            },
            {
                "symbol": "TSLA",
                "reportingName": "John Roe",
                "acquistionOrDisposition": "D",
                "securitiesTransacted": 1712,
                "price": 20,
                "typeOfOwner": "officer: VP",
                "securitiesOwned": 10000,
                "transactionDate": now.isoformat(),
            },
        ],
    }
