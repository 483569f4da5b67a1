"""
Integration tests for Tradewise API routers.

Tests cover:
- System health endpoint
- Analytics metrics endpoint
- Opportunities ranking, market-events analysis and cache endpoints
- Request ID propagation
- Input validation and error responses
"""

from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from tradewise import __version__
from tradewise.api import Container, create_app
from tradewise.backtesting import PerformanceAnalytics
from tradewise.core.errors import ValidationError
from tradewise.signals import SignalAggregationEngine

NOW = datetime(2025, 1, 15, 12, 0, tzinfo=timezone.utc)


# =============================================================================
# Test Fixtures
# =============================================================================


@pytest.fixture
def container():
    """Container with real engines."""
    return Container(
        analytics=PerformanceAnalytics(),
        engine=SignalAggregationEngine(),
    )


@pytest.fixture
def client(container):
    """Test client; the lifespan is not entered so logging stays untouched."""
    return TestClient(create_app(container))


@pytest.fixture
def metrics_payload():
    start = datetime(2024, 1, 1, tzinfo=timezone.utc)
    equity = [10_000, 10_200, 10_100, 10_400]
    return {
        "trades": [
            {"side": "BUY", "quantity": 10, "executedPrice": 100},
            {"side": "sell", "quantity": 10, "executedPrice": 110, "realizedPL": 100, "realizedPLPct": 10},
            {"side": "SELL", "quantity": 10, "executedPrice": 95, "realizedPL": -50, "realizedPLPct": -5},
        ],
        "equityCurve": [
            {"timestamp": (start + timedelta(days=i)).isoformat(), "cash": value, "stockValue": 0}
            for i, value in enumerate(equity)
        ],
        "initialCash": 10_000,
    }


@pytest.fixture
def events_payload():
    return {
        "analystRatings": [
            {
                "symbol": "AAPL",
                "gradingCompany": "Citi",
                "previousGrade": "Hold",
                "newGrade": "Buy",
                "publishedDate": NOW.isoformat(),
            }
        ],
        "marketMovers": {
            "topGainers": [{"symbol": "AAPL", "price": "190.5", "changePercent": "5.25%"}],
        },
        "insiderTrading": [
            {
                "symbol": "NRC",
                "reportingName": "Jane Doe",
                "acquistionOrDisposition": "A",
                "securitiesTransacted": 50000,
                "price": 10,
                "typeOfOwner": "officer: CFO",
                "securitiesOwned": 150000,
                "transactionDate": NOW.isoformat(),
            }
        ],
        "now": NOW.isoformat(),
    }


# =============================================================================
# System Router Tests
# =============================================================================


class TestSystemRouter:
    """Tests for the health endpoint."""

    def test_health_check_returns_healthy(self, client):
        response = client.get("/api/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["version"] == __version__
        assert data["components"] == {
            "api": True,
            "performance_analytics": True,
            "signal_aggregation": True,
        }

    def test_health_check_degraded(self):
        analytics = MagicMock()
        analytics.health_check = MagicMock(return_value=False)
        client = TestClient(create_app(Container(analytics=analytics)))

        data = client.get("/api/health").json()

        assert data["status"] == "degraded"
        assert data["components"]["performance_analytics"] is False

    def test_request_id_is_echoed(self, client):
        response = client.get("/api/health", headers={"X-Request-ID": "req-123"})
        assert response.headers["X-Request-ID"] == "req-123"

    def test_request_id_is_generated(self, client):
        response = client.get("/api/health")
        assert response.headers["X-Request-ID"]


# =============================================================================
# Analytics Router Tests
# =============================================================================


class TestAnalyticsRouter:
    """Tests for the metrics endpoint."""

    def test_calculate_metrics(self, client, metrics_payload):
        response = client.post("/api/analytics/metrics", json=metrics_payload)

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["error"] is None
        data = body["data"]
        assert data["totalTrades"] == 2
        assert data["winRate"] == 50.0
        assert data["profitFactor"] == 2.0
        assert data["totalReturnPct"] == 4.0
        assert data["returnCount"] == 3
        assert data["maxDrawdown"] == pytest.approx(-0.9804, abs=1e-4)

    def test_benchmark_returns(self, client, metrics_payload):
        response = client.post(
            "/api/analytics/metrics",
            json={**metrics_payload, "benchmarkReturns": [0.01, -0.005, 0.015]},
        )

        data = response.json()["data"]
        assert data["beta"] is not None
        assert data["correlation"] == pytest.approx(1.0, abs=1e-3)
        assert data["varConfidence"] == 0.95

    def test_empty_backtest(self, client):
        response = client.post("/api/analytics/metrics", json={})

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["totalTrades"] == 0
        assert data["profitFactor"] is None
        assert data["sharpeRatio"] is None

    def test_invalid_side_rejected(self, client, metrics_payload):
        metrics_payload["trades"][0]["side"] = "HOLD"

        response = client.post("/api/analytics/metrics", json=metrics_payload)

        assert response.status_code == 422

    def test_negative_initial_cash_rejected(self, client, metrics_payload):
        metrics_payload["initialCash"] = -1

        response = client.post("/api/analytics/metrics", json=metrics_payload)

        assert response.status_code == 422


# =============================================================================
# Opportunities Router Tests
# =============================================================================


class TestOpportunitiesRouter:
    """Tests for the opportunities endpoints."""

    def test_rank_signals(self, client):
        response = client.post(
            "/api/opportunities",
            json={
                "signals": [
                    {"symbol": "nrc", "type": "insider_buying", "score": 7.38, "date": NOW.isoformat()},
                    {"symbol": "NRC", "type": "insider_buying", "score": 7.38, "date": NOW.isoformat()},
                    {"symbol": "XYZ", "type": "merger_acquisition", "score": 2, "date": NOW.isoformat()},
                ],
                "stockInfo": {"nrc": {"companyName": "National Research Corp", "price": 25.5}},
                "now": NOW.isoformat(),
            },
        )

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["metadata"]["totalOpportunities"] == 2
        assert data["metadata"]["cached"] is False
        top = data["opportunities"][0]
        assert top["symbol"] == "NRC"
        assert top["rank"] == 1
        assert top["totalScore"] == pytest.approx(11.07)
        assert top["companyName"] == "National Research Corp"

    def test_rank_requires_signal_fields(self, client):
        response = client.post("/api/opportunities", json={"signals": [{"symbol": "NRC"}]})
        assert response.status_code == 422

    def test_market_events_cached_on_second_call(self, client, events_payload):
        first = client.post("/api/opportunities/market-events", json=events_payload)
        second = client.post("/api/opportunities/market-events", json=events_payload)

        assert first.status_code == 200
        assert first.json()["data"]["metadata"]["cached"] is False
        assert second.json()["data"]["metadata"]["cached"] is True
        symbols = [o["symbol"] for o in first.json()["data"]["opportunities"]]
        assert symbols == ["AAPL", "NRC"]

    def test_market_events_bypass_cache(self, client, events_payload):
        client.post("/api/opportunities/market-events", json=events_payload)
        response = client.post(
            "/api/opportunities/market-events", params={"useCache": "false"}, json=events_payload
        )

        assert response.json()["data"]["metadata"]["cached"] is False

    def test_market_events_uses_momentum_provider(self, events_payload):
        async def momentum():
            return ["MOMO"]

        container = Container(momentum_provider=momentum)
        client = TestClient(create_app(container))

        data = client.post("/api/opportunities/market-events", json=events_payload).json()["data"]

        assert "MOMO" in [o["symbol"] for o in data["opportunities"]]

    def test_market_events_min_score_and_limit(self, client, events_payload):
        events_payload["mergersAcquisitions"] = [
            {"symbol": "MNA", "title": "Acquirer buys Target Co", "publishedDate": NOW.isoformat()}
        ]

        default = client.post("/api/opportunities/market-events", json=events_payload).json()["data"]
        assert [o["symbol"] for o in default["opportunities"]] == ["AAPL", "NRC", "MNA"]

        data = client.post(
            "/api/opportunities/market-events",
            params={"minScore": 5, "limit": 1},
            json=events_payload,
        ).json()["data"]

        assert [o["symbol"] for o in data["opportunities"]] == ["AAPL"]
        assert data["opportunities"][0]["rank"] == 1
        assert data["metadata"]["totalOpportunities"] == 2
        assert data["metadata"]["cached"] is True

    def test_market_events_limit_is_bounded(self, client, events_payload):
        response = client.post(
            "/api/opportunities/market-events", params={"limit": 51}, json=events_payload
        )
        assert response.status_code == 422

    def test_market_events_summaries(self, events_payload):
        async def narrator(opportunity):
            return f"{opportunity.symbol} has {len(opportunity.signals)} signals"

        client = TestClient(create_app(Container(narrator=narrator)))

        data = client.post("/api/opportunities/market-events", json=events_payload).json()["data"]
        assert [o["aiSummary"] for o in data["opportunities"]] == [
            "AAPL has 2 signals",
            "NRC has 1 signals",
        ]

        plain = client.post(
            "/api/opportunities/market-events", params={"includeAI": "false"}, json=events_payload
        ).json()["data"]
        assert plain["metadata"]["cached"] is True
        assert [o["aiSummary"] for o in plain["opportunities"]] == [None, None]

    def test_cache_status_and_clear(self, client, events_payload):
        assert client.get("/api/opportunities/cache-status").json()["data"]["isCached"] is False

        client.post("/api/opportunities/market-events", json=events_payload)
        status = client.get("/api/opportunities/cache-status").json()["data"]
        assert status["isCached"] is True
        assert status["remainingMs"] > 0

        response = client.delete("/api/opportunities/cache")
        assert response.json()["data"] == {"cleared": True}
        assert client.get("/api/opportunities/cache-status").json()["data"]["isCached"] is False


# =============================================================================
# Error Handling Tests
# =============================================================================


class TestErrorHandling:
    """Tests for structured error responses."""

    def test_tradewise_error_response(self, container):
        container.engine.aggregate = MagicMock(
            side_effect=ValidationError(detail="bad half-life")
        )
        client = TestClient(create_app(container))

        response = client.post("/api/opportunities", json={"signals": []})

        assert response.status_code == 400
        body = response.json()
        assert body["success"] is False
        assert body["code"] == "VALIDATION_4001"
        assert "bad half-life" in body["error"]

    def test_unhandled_error_response(self, container):
        container.analytics.calculate_metrics = MagicMock(side_effect=RuntimeError("boom"))
        client = TestClient(create_app(container), raise_server_exceptions=False)

        response = client.post("/api/analytics/metrics", json={})

        assert response.status_code == 500
        assert response.json()["error"] == "Internal server error"

    def test_unknown_route(self, client):
        response = client.get("/api/does-not-exist")

        assert response.status_code == 404
        assert response.json()["success"] is False
