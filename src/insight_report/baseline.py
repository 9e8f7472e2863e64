# src/insight_report/baseline.py
from __future__ import annotations

import calendar
import logging
from dataclasses import dataclass, fields, replace

from insight_report.records import DECIMAL_FIELDS, PeriodRecord, round1

logger = logging.getLogger(__name__)

RANGE_SEP = "–"  # en dash

_GROUPS = ("views", "content_types", "metrics", "profile_activity")


@dataclass(frozen=True)
class BaselineSelection:
    baseline: PeriodRecord | None
    range_label: str | None
    merged: bool = False


def sort_records(records: list[PeriodRecord]) -> list[PeriodRecord]:
    """Ascending by (year, month). Stable, so ties keep input order."""
    return sorted(records, key=lambda r: (r.year, r.month))


def previous_month(year: int, month: int) -> tuple[int, int]:
    if month == 1:
        return year - 1, 12
    return year, month - 1


def is_consecutive_pair(later: PeriodRecord, earlier: PeriodRecord) -> bool:
    """True iff `earlier` is exactly one calendar month before `later`."""
    return previous_month(later.year, later.month) == (earlier.year, earlier.month)


def is_consecutive_months(records: list[PeriodRecord]) -> bool:
    ordered = sort_records(records)
    return all(is_consecutive_pair(b, a) for a, b in zip(ordered, ordered[1:]))


def month_string(year: int, month: int) -> str:
    return f"{year}-{month:02d}"


def parse_month_string(value: str) -> tuple[int, int]:
    """Parse a YYYY-MM string into (year, month). Raises ValueError otherwise."""
    parts = value.strip().split("-")
    if len(parts) != 2:
        raise ValueError(f"Expected YYYY-MM, got {value!r}")
    year, month = int(parts[0]), int(parts[1])
    if not 1 <= month <= 12:
        raise ValueError(f"Month out of range in {value!r}")
    return year, month


def month_range_string(records: list[PeriodRecord]) -> str:
    """'March–May' for a span, 'March' for a single month, '' for nothing."""
    if not records:
        return ""
    ordered = sort_records(records)
    first = calendar.month_name[ordered[0].month]
    last = calendar.month_name[ordered[-1].month]
    if ordered[0].month_key == ordered[-1].month_key:
        return first
    return f"{first}{RANGE_SEP}{last}"


def merge_records(records: list[PeriodRecord]) -> PeriodRecord:
    """
    Field-wise sum of several records into one synthetic baseline.
    Takes identity and month from the newest record; content-type sums are
    rounded to one decimal.
    """
    ordered = sort_records(records)
    newest = ordered[-1]

    merged_groups = {}
    for group in _GROUPS:
        group_type = type(getattr(newest, group))
        totals = {}
        for f in fields(group_type):
            total = sum(getattr(getattr(r, group), f.name) for r in ordered)
            totals[f.name] = round1(total) if f.name in DECIMAL_FIELDS else total
        merged_groups[group] = group_type(**totals)

    return replace(
        newest,
        id="+".join(r.id for r in ordered),
        notes=None,
        original_images=(),
        **merged_groups,
    )


def select_baseline(records: list[PeriodRecord]) -> BaselineSelection:
    if len(records) <= 1:
        return BaselineSelection(baseline=None, range_label=None)

    ordered = sort_records(records)
    r0, r1 = ordered[-1], ordered[-2]

    baseline: PeriodRecord
    range_label: str | None = None
    merged = False
    whole_chain = is_consecutive_months(ordered)

    if is_consecutive_pair(r0, r1):
        baseline = r1
        if len(ordered) >= 3 and whole_chain:
            range_label = month_range_string(ordered)
    elif len(ordered) >= 3:
        pair = ordered[-3:-1]
        baseline = merge_records(pair)
        range_label = month_range_string(pair)
        merged = True
    else:
        # exactly two, non-consecutive
        return BaselineSelection(baseline=r1, range_label=None)

    if range_label is None and not whole_chain:
        range_label = month_range_string(ordered)

    logger.debug(
        "Baseline for %s: %s (merged=%s, range=%s)",
        month_string(r0.year, r0.month),
        baseline.id,
        merged,
        range_label,
    )
    return BaselineSelection(baseline=baseline, range_label=range_label, merged=merged)
