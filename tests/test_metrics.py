"""Tests for time-saved and ROI calculations"""

import pytest

from workpulse.metrics import (
    NOT_APPLICABLE,
    breakeven_weeks,
    cumulative_metrics,
    format_breakeven,
    hours_saved_per_month,
    hours_saved_per_week,
    hours_saved_per_year,
    metric_summaries,
    roi,
)
from workpulse.models import Metric, Project, RecordStore


@pytest.fixture
def sample_metric():
    """Metric from the billing automation example"""
    return Metric(
        project_id="p1",
        hours_to_run=2,
        runs_per_week=3,
        run_duration_minutes=30,
        hours_to_build=10,
        people_impacted=4,
    )


def test_hours_saved_per_week(sample_metric):
    """Test weekly savings: manual minus automated time"""
    assert hours_saved_per_week(sample_metric) == pytest.approx(4.5)


def test_hours_saved_month_and_year(sample_metric):
    """Test monthly and yearly projections"""
    assert hours_saved_per_month(sample_metric) == pytest.approx(4.5 * 4.33)
    assert hours_saved_per_year(sample_metric) == pytest.approx(234)


def test_roi(sample_metric):
    """Test ROI is yearly savings over build hours"""
    assert roi(sample_metric) == pytest.approx(23.4)


def test_breakeven(sample_metric):
    """Test breakeven weeks"""
    assert breakeven_weeks(sample_metric) == pytest.approx(10 / 4.5)
    assert format_breakeven(breakeven_weeks(sample_metric)) == "2.2 weeks"


def test_savings_never_negative():
    """Test automation slower than manual work reports zero savings"""
    metric = Metric(hours_to_run=0.5, runs_per_week=4, run_duration_minutes=90, hours_to_build=5)

    assert hours_saved_per_week(metric) == 0
    assert hours_saved_per_year(metric) == 0
    assert roi(metric) == 0


def test_breakeven_not_applicable_without_savings():
    """Test breakeven is not applicable when nothing is saved"""
    metric = Metric(hours_to_run=1, runs_per_week=0, hours_to_build=8)

    assert breakeven_weeks(metric) is NOT_APPLICABLE
    assert format_breakeven(breakeven_weeks(metric)) == "N/A"


def test_roi_zero_without_build_hours():
    """Test ROI is zero, not infinite, when build cost is zero"""
    metric = Metric(hours_to_run=3, runs_per_week=5, hours_to_build=0)

    assert hours_saved_per_week(metric) == pytest.approx(15)
    assert roi(metric) == 0
    assert breakeven_weeks(metric) == 0


def test_cumulative_metrics_weights_roi_by_investment():
    """Test average ROI is total savings over total build hours"""
    small = Metric(hours_to_run=1, runs_per_week=1, hours_to_build=1, people_impacted=2)
    large = Metric(hours_to_run=1, runs_per_week=1, hours_to_build=99, people_impacted=3)

    totals = cumulative_metrics([small, large])

    assert totals["hours_saved_per_week"] == pytest.approx(2)
    assert totals["hours_saved_per_year"] == pytest.approx(104)
    assert totals["total_build_hours"] == pytest.approx(100)
    assert totals["people_impacted"] == 5
    assert totals["average_roi"] == pytest.approx(1.04)
    # Mean of the individual ratios would be (52 + 0.525) / 2
    assert totals["average_roi"] != pytest.approx((roi(small) + roi(large)) / 2)


def test_cumulative_metrics_empty():
    """Test rollup with no metrics"""
    totals = cumulative_metrics([])
    assert totals["hours_saved_per_week"] == 0
    assert totals["average_roi"] == 0
    assert totals["metric_count"] == 0


def test_metric_summaries_only_saving(sample_metric):
    """Test zero-saving metrics can be filtered out"""
    store = RecordStore(
        projects=[Project(id="p1", name="Billing"), Project(id="p2", name="Idle")],
        metrics=[sample_metric, Metric(project_id="p2", hours_to_build=3)],
    )

    rows = metric_summaries(store, only_saving=True)

    assert [r["project_name"] for r in rows] == ["Billing"]
    assert len(metric_summaries(store)) == 2
