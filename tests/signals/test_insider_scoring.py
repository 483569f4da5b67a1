"""Tests for insider trade scoring."""

import pytest

from tradewise.signals import calculate_insider_buying_score, explain_insider_score
from tradewise.signals.insider_scoring import (
    conviction_multiplier,
    owner_multiplier,
    size_multiplier,
)


class TestMultipliers:
    """Tests for the individual score components."""

    @pytest.mark.parametrize(
        "dollar_value,expected",
        [
            (10_000, 0.3),
            (50_000, 1.0),
            (500_000, 2.0),
            (5_000_000, 3.0),
            (500_000_000, 3.0),
        ],
    )
    def test_size_multiplier(self, dollar_value, expected):
        assert size_multiplier(dollar_value) == pytest.approx(expected)

    @pytest.mark.parametrize(
        "owner,expected",
        [
            ("officer: CEO", 1.5),
            ("Chief Executive Officer", 1.5),
            ("officer: CFO", 1.4),
            ("President", 1.3),
            ("officer: COO", 1.3),
            ("director, 10% owner", 1.2),
            ("director", 1.1),
            ("officer: VP Sales", 1.0),
            (None, 1.0),
        ],
    )
    def test_owner_multiplier(self, owner, expected):
        assert owner_multiplier(owner) == expected

    @pytest.mark.parametrize(
        "transacted,owned,expected",
        [
            (10_000, 10_000, 1.3),  # new position
            (50_000, 100_000, 1.3),  # doubled
            (50_000, 150_000, 1.2),
            (100_000, 500_000, 1.1),
            (1_000, 100_000, 1.0),
        ],
    )
    def test_conviction_multiplier(self, transacted, owned, expected):
        assert conviction_multiplier(transacted, owned) == expected


class TestInsiderBuyingScore:
    """Tests for calculate_insider_buying_score."""

    def test_ceo_large_purchase_is_capped(self):
        assert calculate_insider_buying_score(100_000, 50, "officer: CEO", 500_000) == 12.0

    def test_small_officer_purchase(self):
        assert calculate_insider_buying_score(1_712, 20, "officer: VP", 10_000) == 0.9

    def test_cfo_purchase(self):
        assert calculate_insider_buying_score(50_000, 10, "officer: CFO", 150_000) == 10.08

    def test_penny_stock_volume_is_capped(self):
        assert calculate_insider_buying_score(190_000_000, 0.1, "director", 200_000_000) == 12.0

    def test_zero_value(self):
        assert calculate_insider_buying_score(0, 10, "director", 1000) == pytest.approx(0.99)


class TestExplainInsiderScore:
    """Tests for explain_insider_score."""

    def test_breakdown(self):
        breakdown = explain_insider_score(50_000, 10, "officer: CFO", 150_000)

        assert breakdown.final_score == 10.08
        assert breakdown.dollar_value == 500_000
        assert breakdown.size_multiplier == pytest.approx(2.0)
        assert breakdown.owner_multiplier == 1.4
        assert breakdown.conviction_multiplier == 1.2

    def test_explanation_lines(self):
        lines = explain_insider_score(50_000, 10, "officer: CFO", 150_000).explanation.split("\n")

        assert lines[0] == "Transaction Value: $500,000"
        assert lines[1] == "Size Multiplier: 2.00x (Medium)"
        assert lines[2] == "Owner Multiplier: 1.40x (CFO)"
        assert lines[3] == "Conviction Multiplier: 1.20x (High (50%+ increase))"
        assert lines[4] == "Final Score: 10.08 points"

    def test_to_dict(self):
        data = explain_insider_score(1_712, 20, "officer: VP", 10_000).to_dict()

        assert data["finalScore"] == 0.9
        assert data["breakdown"]["dollarValue"] == 34_240
