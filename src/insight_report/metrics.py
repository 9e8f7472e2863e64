# src/insight_report/metrics.py
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

import pandas as pd

from insight_report.records import PeriodRecord, records_to_frame

STABLE_BAND = 0.5


class Trend(str, Enum):
    UP = "up"
    DOWN = "down"
    STABLE = "stable"


@dataclass(frozen=True)
class ChangeMetric:
    delta: float
    percentage: float
    trend: Trend


@dataclass(frozen=True)
class ComparisonResult:
    current: PeriodRecord
    baseline: PeriodRecord | None
    changes: dict[str, ChangeMetric] = field(default_factory=dict)


# metric key -> (group, field, display label), in report order
METRIC_FIELDS = {
    "reachedAccounts": ("views", "reached_accounts", "Accounts Reached"),
    "totalViews": ("views", "total_views", "Total Views"),
    "posts": ("content_types", "posts", "Posts"),
    "stories": ("content_types", "stories", "Stories"),
    "reels": ("content_types", "reels", "Reels"),
    "metricsViews": ("metrics", "total_views", "Views (engagement)"),
    "reactions": ("metrics", "reactions", "Reactions"),
    "newFollowers": ("metrics", "new_followers", "New Followers"),
    "profileTotal": ("profile_activity", "total", "Profile Activity"),
    "profileVisits": ("profile_activity", "profile_visits", "Profile Visits"),
    "externalLinkTaps": ("profile_activity", "external_link_taps", "External Link Taps"),
    "businessAddressTaps": ("profile_activity", "business_address_taps", "Business Address Taps"),
}


def calculate_change(current: float, previous: float) -> ChangeMetric:
    delta = current - previous
    percentage = 0.0 if previous == 0 else (delta / previous) * 100

    if percentage > STABLE_BAND:
        trend = Trend.UP
    elif percentage < -STABLE_BAND:
        trend = Trend.DOWN
    else:
        trend = Trend.STABLE

    return ChangeMetric(delta=delta, percentage=percentage, trend=trend)


def metric_value(record: PeriodRecord, key: str) -> float:
    """Value of one tracked metric; a missing group or field reads as 0."""
    group, name, _ = METRIC_FIELDS[key]
    value = getattr(getattr(record, group, None), name, 0)
    return value if value is not None else 0


def build_comparison(current: PeriodRecord, baseline: PeriodRecord | None) -> ComparisonResult:
    if baseline is None:
        return ComparisonResult(current=current, baseline=None, changes={})

    changes = {
        key: calculate_change(metric_value(current, key), metric_value(baseline, key))
        for key in METRIC_FIELDS
    }
    return ComparisonResult(current=current, baseline=baseline, changes=changes)


def build_data_lineage() -> list[dict]:
    """
    Static metric lineage map: which record field feeds which comparison key.
    """
    return [
        {
            "metric": label,
            "key": key,
            "source_field": f"{group}.{name}",
        }
        for key, (group, name, label) in METRIC_FIELDS.items()
    ]


def comparison_table(comparison: ComparisonResult) -> pd.DataFrame:
    """
    One row per tracked metric:
      key, Metric, Current, Baseline, Delta, Change_Pct, Trend
    Baseline/Delta/Change_Pct/Trend are empty when there is no baseline.
    """
    rows = []
    for key, (_, _, label) in METRIC_FIELDS.items():
        change = comparison.changes.get(key)
        rows.append(
            {
                "key": key,
                "Metric": label,
                "Current": metric_value(comparison.current, key),
                "Baseline": metric_value(comparison.baseline, key) if comparison.baseline else None,
                "Delta": change.delta if change else None,
                "Change_Pct": change.percentage if change else None,
                "Trend": change.trend.value if change else None,
            }
        )
    return pd.DataFrame(rows)


def monthly_series(records: list[PeriodRecord], columns: list[str]) -> pd.DataFrame:
    """
    Month-indexed frame of the given flat columns, used by the trend charts.
    When a month has both 14- and 30-day records the 30-day one wins.
    """
    df = records_to_frame(records)
    if df.empty:
        return pd.DataFrame(columns=["month_key", *columns])

    df = df.sort_values(["year", "month", "period"])
    df = df.drop_duplicates(subset=["year", "month"], keep="last")
    return df[["month_key", *columns]].reset_index(drop=True)
