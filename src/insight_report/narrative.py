# src/insight_report/narrative.py
from __future__ import annotations

import calendar
from dataclasses import dataclass

from insight_report.baseline import BaselineSelection, is_consecutive_months, select_baseline, sort_records
from insight_report.metrics import ComparisonResult, Trend, build_comparison, calculate_change
from insight_report.records import PeriodRecord

REELS_HIGHLIGHT_PCT = 10.0

_CHANGE_VERB = {
    Trend.UP: "increased",
    Trend.DOWN: "decreased",
    Trend.STABLE: "held steady",
}

_TREND_WORD = {
    Trend.UP: "an upward",
    Trend.DOWN: "a downward",
    Trend.STABLE: "a stable",
}


def format_percent(x: float, decimals: int = 1) -> str:
    return f"{'+' if x >= 0 else ''}{x:.{decimals}f}%"


def format_number(x: float) -> str:
    return f"{int(round(float(x))):,}"


def format_delta(x: float) -> str:
    return f"{'+' if x >= 0 else ''}{format_number(x)}"


def _month(record: PeriodRecord) -> str:
    return calendar.month_name[record.month]


def _multi_month_sentences(records: list[PeriodRecord]) -> list[str]:
    ordered = sort_records(records)
    sentences = []

    for prev, curr in zip(ordered, ordered[1:]):
        change = calculate_change(curr.profile_activity.total, prev.profile_activity.total)
        sentences.append(
            f"From {_month(prev)} to {_month(curr)}, profile activity "
            f"{_CHANGE_VERB[change.trend]} ({format_percent(change.percentage)})."
        )

    first, last = ordered[0], ordered[-1]
    overall = calculate_change(last.profile_activity.total, first.profile_activity.total)
    sentences.append(
        f"Overall, profile activity {_CHANGE_VERB[overall.trend]} "
        f"{format_percent(overall.percentage)} from {_month(first)} to {_month(last)}."
    )
    return sentences


def generate_narrative(
    comparison: ComparisonResult,
    all_records: list[PeriodRecord] | None = None,
    range_label: str | None = None,
) -> str:
    """
    Plain-language summary of a comparison.

    Three or more fully consecutive months (with a range label) get a
    month-by-month walk of profile activity. Everything else gets the
    two-point summary against the baseline.
    """
    current, baseline, changes = comparison.current, comparison.baseline, comparison.changes

    if baseline is None:
        return (
            f"{_month(current)} {current.year} data was recorded. "
            f"No earlier data is available, so no comparison could be made."
        )

    if (
        all_records
        and len(all_records) >= 3
        and range_label
        and is_consecutive_months(all_records)
    ):
        return " ".join(_multi_month_sentences(all_records))

    sentences: list[str] = []
    relative_to = range_label or "the previous period"

    profile = changes.get("profileTotal")
    if profile:
        sentences.append(
            f"Profile activity {_CHANGE_VERB[profile.trend]} {format_percent(profile.percentage)} "
            f"compared with {relative_to} ({format_delta(profile.delta)})."
        )

    followers = changes.get("newFollowers")
    if followers:
        level = format_number(current.metrics.new_followers)
        if followers.trend is Trend.STABLE:
            head = f"New followers held steady at {level}"
        else:
            head = f"New followers {_CHANGE_VERB[followers.trend]} to {level}"
        sentences.append(f"{head} ({format_percent(followers.percentage)}).")

    # reach level, trend of total views
    views = changes.get("totalViews")
    if views:
        sentences.append(
            f"Accounts reached came to {format_number(current.views.reached_accounts)}, "
            f"showing {_TREND_WORD[views.trend]} trend."
        )

    reels = changes.get("reels")
    if reels and reels.percentage > REELS_HIGHLIGHT_PCT:
        sentences.append(
            f"Reels grew {format_percent(reels.percentage)}, the strongest result across content types."
        )

    return " ".join(sentences)


@dataclass(frozen=True)
class ReportContext:
    records: list[PeriodRecord]
    selection: BaselineSelection
    comparison: ComparisonResult
    narrative: str

    @property
    def current(self) -> PeriodRecord:
        return self.comparison.current


def build_report_context(records: list[PeriodRecord]) -> ReportContext:
    """
    Baseline selection -> comparison -> narrative for one business's records.
    Only records with the same period length as the latest one are compared;
    when a month has both, the 30-day record is the latest.
    """
    if not records:
        raise ValueError("At least one period record is required")

    ordered = sorted(records, key=lambda r: (r.year, r.month, r.period.value))
    current = ordered[-1]
    comparable = [r for r in ordered if r.period == current.period]

    selection = select_baseline(comparable)
    comparison = build_comparison(current, selection.baseline)
    text = generate_narrative(comparison, comparable, selection.range_label)
    return ReportContext(records=ordered, selection=selection, comparison=comparison, narrative=text)
