"""
Unit Tests - RFM Scoring
"""
from datetime import timedelta
from decimal import Decimal

import polars as pl

from erp_insights.config.settings import DEFAULT_RFM_SEGMENT_BANDS
from erp_insights.insights.rfm import score_customers, score_frame


def _graded_orders(make_order, now):
    """Customer k places k orders of 100 * k, the latest (6 - k) * 10 days ago"""
    orders = []
    for k in range(1, 6):
        for n in range(k):
            orders.append(make_order(
                customer_id=k,
                subtotal=100 * k,
                order_date=now - timedelta(days=(6 - k) * 10 + n * 30),
            ))
    return orders


class TestRfmScoring:
    """Tests for score_customers"""

    def test_empty(self, now):
        analysis = score_customers([], now, DEFAULT_RFM_SEGMENT_BANDS)

        assert analysis.total_customers == 0
        assert analysis.customers == []
        assert analysis.segments == []

    def test_scores_within_range(self, make_order, now):
        analysis = score_customers(_graded_orders(make_order, now), now, DEFAULT_RFM_SEGMENT_BANDS)

        assert analysis.total_customers == 5
        for customer in analysis.customers:
            assert 1 <= customer.recency_score <= 5
            assert 1 <= customer.frequency_score <= 5
            assert 1 <= customer.monetary_score <= 5
            assert 3 <= customer.rfm_score <= 15
            assert customer.rfm_score == (
                customer.recency_score + customer.frequency_score + customer.monetary_score
            )

    def test_best_customer_is_champion(self, make_order, now):
        analysis = score_customers(_graded_orders(make_order, now), now, DEFAULT_RFM_SEGMENT_BANDS)

        best = analysis.customers[0]
        assert best.customer_id == 5
        assert best.rfm_score == 15
        assert best.rfm_code == "555"
        assert best.rfm_segment == "Champions"
        assert best.recency_days == 10
        assert best.frequency == 5
        assert best.monetary == Decimal("2500.00")

    def test_worst_customer_scores_lowest(self, make_order, now):
        analysis = score_customers(_graded_orders(make_order, now), now, DEFAULT_RFM_SEGMENT_BANDS)

        scores = {c.customer_id: c.rfm_score for c in analysis.customers}
        assert scores[1] == min(scores.values())
        assert scores[1] < scores[5]

    def test_custom_bands(self, make_order, now):
        bands = [(15, "Top"), (3, "Rest")]

        analysis = score_customers(_graded_orders(make_order, now), now, bands)

        labels = {c.customer_id: c.rfm_segment for c in analysis.customers}
        assert labels[5] == "Top"
        assert labels[1] == "Rest"

    def test_segment_summary(self, make_order, now):
        analysis = score_customers(
            _graded_orders(make_order, now), now, DEFAULT_RFM_SEGMENT_BANDS,
            names={5: "Best Buyer"},
        )

        assert sum(s.count for s in analysis.segments) == 5
        counts = [s.count for s in analysis.segments]
        assert counts == sorted(counts, reverse=True)
        assert analysis.customers[0].name == "Best Buyer"

    def test_single_customer(self, make_order, now):
        orders = [make_order(customer_id=9, subtotal=50, order_date=now - timedelta(days=3))]

        analysis = score_customers(orders, now, DEFAULT_RFM_SEGMENT_BANDS)

        only = analysis.customers[0]
        assert only.rfm_score == 15
        assert analysis.segments[0].percentage == "100.00"


class TestScoreFrame:
    """Tests for score_frame"""

    def test_adds_score_columns(self):
        frame = pl.DataFrame({
            "customer_id": [1, 2],
            "recency_days": [5, 100],
            "frequency": [10, 1],
            "monetary": [5000.0, 20.0],
        })

        result = score_frame(frame, DEFAULT_RFM_SEGMENT_BANDS)

        assert "rfm_score" in result.columns
        assert "rfm_segment" in result.columns
        assert result.filter(pl.col("customer_id") == 1)["rfm_score"][0] > \
            result.filter(pl.col("customer_id") == 2)["rfm_score"][0]

    def test_distinct_values_fill_every_bucket(self):
        frame = pl.DataFrame({
            "customer_id": [1, 2, 3, 4, 5],
            "recency_days": [50, 40, 30, 20, 10],
            "frequency": [1, 2, 3, 4, 5],
            "monetary": [100.0, 400.0, 900.0, 1600.0, 2500.0],
        })

        result = score_frame(frame, DEFAULT_RFM_SEGMENT_BANDS).sort("customer_id")

        assert result["rfm_recency_score"].to_list() == [1, 2, 3, 4, 5]
        assert result["rfm_frequency_score"].to_list() == [1, 2, 3, 4, 5]
        assert result["rfm_monetary_score"].to_list() == [1, 2, 3, 4, 5]
        assert result["rfm_score"].to_list() == [3, 6, 9, 12, 15]

    def test_ties_share_a_score(self):
        frame = pl.DataFrame({
            "customer_id": [1, 2, 3, 4],
            "recency_days": [7, 7, 30, 60],
            "frequency": [3, 3, 1, 1],
            "monetary": [300.0, 300.0, 50.0, 50.0],
        })

        result = score_frame(frame, DEFAULT_RFM_SEGMENT_BANDS).sort("customer_id")

        assert result["rfm_recency_score"].to_list() == [5, 5, 3, 2]
        assert result["rfm_frequency_score"].to_list() == [5, 5, 3, 3]
