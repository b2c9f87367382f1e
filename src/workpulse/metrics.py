"""Time-saved and ROI calculations for project metrics"""

from typing import Dict, Iterable, List, Optional

from .models import Metric, RecordStore


WEEKS_PER_MONTH = 4.33
WEEKS_PER_YEAR = 52

# Breakeven value when savings never pay back the build investment
NOT_APPLICABLE = None


def hours_saved_per_week(metric: Metric) -> float:
    """Manual hours minus automated hours per week, never negative"""
    runs = metric.runs_per_week or 0
    manual = (metric.hours_to_run or 0) * runs
    automated = ((metric.run_duration_minutes or 0) / 60) * runs
    return max(0.0, manual - automated)


def hours_saved_per_month(metric: Metric) -> float:
    return hours_saved_per_week(metric) * WEEKS_PER_MONTH


def hours_saved_per_year(metric: Metric) -> float:
    return hours_saved_per_week(metric) * WEEKS_PER_YEAR


def roi(metric: Metric) -> float:
    """Yearly hours saved per hour invested; 0 when build cost is unknown or zero"""
    if not metric.hours_to_build:
        return 0.0
    return hours_saved_per_year(metric) / metric.hours_to_build


def breakeven_weeks(metric: Metric) -> Optional[float]:
    """Weeks until the build investment is paid back

    Returns:
        Number of weeks, or NOT_APPLICABLE when nothing is saved per week
    """
    weekly = hours_saved_per_week(metric)
    if weekly <= 0:
        return NOT_APPLICABLE
    return (metric.hours_to_build or 0) / weekly


def cumulative_metrics(metrics: Iterable[Metric]) -> Dict[str, float]:
    """Roll up savings and investment across every metric

    Average ROI is weighted by investment: total yearly hours saved over
    total build hours, not the mean of the individual ratios.
    """
    totals = {
        "hours_saved_per_week": 0.0,
        "hours_saved_per_year": 0.0,
        "total_build_hours": 0.0,
        "people_impacted": 0,
        "metric_count": 0,
    }

    for metric in metrics:
        totals["hours_saved_per_week"] += hours_saved_per_week(metric)
        totals["hours_saved_per_year"] += hours_saved_per_year(metric)
        totals["total_build_hours"] += metric.hours_to_build or 0
        totals["people_impacted"] += metric.people_impacted or 0
        totals["metric_count"] += 1

    build = totals["total_build_hours"]
    totals["average_roi"] = totals["hours_saved_per_year"] / build if build else 0.0
    return totals


def metric_summary(metric: Metric, store: RecordStore) -> Dict:
    """Derived values for one metric, labelled with its project name"""
    return {
        "metric_id": metric.id,
        "project_id": metric.project_id,
        "project_name": store.project_name(metric.project_id) or "No Project",
        "hours_saved_per_week": hours_saved_per_week(metric),
        "hours_saved_per_month": hours_saved_per_month(metric),
        "hours_saved_per_year": hours_saved_per_year(metric),
        "roi": roi(metric),
        "breakeven_weeks": breakeven_weeks(metric),
        "hours_to_build": metric.hours_to_build or 0,
        "people_impacted": metric.people_impacted or 0,
    }


def metric_summaries(store: RecordStore, only_saving: bool = False) -> List[Dict]:
    """Summaries for every metric in store order

    Args:
        store: Record store to read
        only_saving: Drop metrics that save no time at all
    """
    rows = [metric_summary(m, store) for m in store.metrics]
    if only_saving:
        rows = [r for r in rows if r["hours_saved_per_week"] > 0]
    return rows


def format_breakeven(weeks: Optional[float]) -> str:
    """Format a breakeven value for display"""
    if weeks is NOT_APPLICABLE:
        return "N/A"
    return f"{weeks:.1f} weeks"
