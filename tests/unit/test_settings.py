"""
Unit Tests - Insights Settings
"""
import pytest
from pydantic import ValidationError

from erp_insights.config import InsightsSettings


class TestInsightsSettings:
    """Tests for InsightsSettings"""

    def test_defaults(self):
        settings = InsightsSettings()

        assert settings.default_limit == 10
        assert settings.overdue_grace_days == 30
        assert settings.discount_rate_base == "subtotal"
        assert settings.growth_anchor == "now"
        assert settings.rfm_segment_bands[0] == (13, "Champions")

    def test_environment_prefix(self, monkeypatch):
        monkeypatch.setenv("INSIGHTS_DEFAULT_LIMIT", "25")
        monkeypatch.setenv("INSIGHTS_GROWTH_ANCHOR", "latest_data")

        settings = InsightsSettings()

        assert settings.default_limit == 25
        assert settings.growth_anchor == "latest_data"

    def test_bands_sorted_highest_first(self, monkeypatch):
        monkeypatch.setenv("INSIGHTS_RFM_SEGMENT_BANDS", '[[5, "Low"], [12, "High"]]')

        settings = InsightsSettings()

        assert settings.rfm_segment_bands == [(12, "High"), (5, "Low")]

    def test_empty_bands_rejected(self):
        with pytest.raises(ValidationError):
            InsightsSettings(rfm_segment_bands=[])

    def test_unknown_discount_base_rejected(self):
        with pytest.raises(ValidationError):
            InsightsSettings(discount_rate_base="gross")
