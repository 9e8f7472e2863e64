# src/insight_report/records.py
from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from pathlib import Path

import pandas as pd

logger = logging.getLogger(__name__)


class Period(str, Enum):
    SHORT = "14days"
    LONG = "30days"

    @property
    def label(self) -> str:
        return "14-day" if self is Period.SHORT else "30-day"


class RecordValidationError(ValueError):
    def __init__(self, errors: list[str]):
        super().__init__("; ".join(errors))
        self.errors = errors


# (group, field) -> flat column name used in CSV files and DataFrames
FLAT_COLUMNS = {
    ("views", "reached_accounts"): "reached_accounts",
    ("views", "total_views"): "total_views",
    ("content_types", "posts"): "posts",
    ("content_types", "stories"): "stories",
    ("content_types", "reels"): "reels",
    ("metrics", "total_views"): "metrics_views",
    ("metrics", "reactions"): "reactions",
    ("metrics", "new_followers"): "new_followers",
    ("profile_activity", "total"): "profile_total",
    ("profile_activity", "profile_visits"): "profile_visits",
    ("profile_activity", "external_link_taps"): "external_link_taps",
    ("profile_activity", "business_address_taps"): "business_address_taps",
}

# stored JSON uses camelCase keys
_CAMEL = {
    "views": "views",
    "content_types": "contentTypes",
    "metrics": "metrics",
    "profile_activity": "profileActivity",
    "reached_accounts": "reachedAccounts",
    "total_views": "totalViews",
    "posts": "posts",
    "stories": "stories",
    "reels": "reels",
    "reactions": "reactions",
    "new_followers": "newFollowers",
    "total": "total",
    "profile_visits": "profileVisits",
    "external_link_taps": "externalLinkTaps",
    "business_address_taps": "businessAddressTaps",
}

DECIMAL_FIELDS = {"posts", "stories", "reels"}


def round1(x: float) -> float:
    """Half-up rounding to one decimal place."""
    return float(Decimal(str(x)).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _num(value, decimal: bool = False) -> float:
    if value is None:
        return 0.0 if decimal else 0
    try:
        if pd.isna(value):
            return 0.0 if decimal else 0
    except (TypeError, ValueError):
        pass
    return round1(float(value)) if decimal else int(round(float(value)))


@dataclass(frozen=True)
class Views:
    reached_accounts: int = 0
    total_views: int = 0


@dataclass(frozen=True)
class ContentTypes:
    posts: float = 0.0
    stories: float = 0.0
    reels: float = 0.0


@dataclass(frozen=True)
class EngagementMetrics:
    total_views: int = 0
    reactions: int = 0
    new_followers: int = 0


@dataclass(frozen=True)
class ProfileActivity:
    total: int = 0
    profile_visits: int = 0
    external_link_taps: int = 0
    business_address_taps: int = 0


_GROUP_TYPES = {
    "views": Views,
    "content_types": ContentTypes,
    "metrics": EngagementMetrics,
    "profile_activity": ProfileActivity,
}


@dataclass(frozen=True)
class PeriodRecord:
    id: str
    business_id: str
    year: int
    month: int
    period: Period = Period.LONG
    views: Views = field(default_factory=Views)
    content_types: ContentTypes = field(default_factory=ContentTypes)
    metrics: EngagementMetrics = field(default_factory=EngagementMetrics)
    profile_activity: ProfileActivity = field(default_factory=ProfileActivity)
    notes: str | None = None
    original_images: tuple[str, ...] = ()
    created_at: str = field(default_factory=_now)
    updated_at: str = field(default_factory=_now)

    @property
    def month_key(self) -> tuple[int, int]:
        return (self.year, self.month)

    def value(self, group: str, name: str) -> float:
        return getattr(getattr(self, group), name)

    @classmethod
    def from_dict(cls, data: dict) -> "PeriodRecord":
        """
        Build a record from a stored document.
        Accepts camelCase (as written by the JSON store) or snake_case keys.
        Missing groups or fields come back as zeros.
        """
        errors = validate_record(data)
        if errors:
            raise RecordValidationError(errors)

        def pick(src: dict, key: str):
            if key in src:
                return src[key]
            return src.get(_CAMEL.get(key, key))

        groups = {}
        for group, group_type in _GROUP_TYPES.items():
            raw = pick(data, group) or {}
            groups[group] = group_type(
                **{
                    name: _num(pick(raw, name), decimal=name in DECIMAL_FIELDS)
                    for name in group_type.__dataclass_fields__
                }
            )

        now = _now()
        return cls(
            id=str(data.get("id", "")),
            business_id=str(data.get("business_id") or data.get("businessId")),
            year=int(data["year"]),
            month=int(data["month"]),
            period=Period(data.get("period") or Period.LONG.value),
            notes=data.get("notes"),
            original_images=tuple(pick(data, "original_images") or data.get("originalImages") or ()),
            created_at=pick(data, "created_at") or data.get("createdAt") or now,
            updated_at=pick(data, "updated_at") or data.get("updatedAt") or now,
            **groups,
        )

    @classmethod
    def from_flat(cls, row: dict) -> "PeriodRecord":
        """Build a record from one flat CSV/DataFrame row (see FLAT_COLUMNS)."""
        nested: dict = {k: row.get(k) for k in ("id", "business_id", "year", "month", "period", "notes")}
        if nested.get("notes") is not None and pd.isna(nested["notes"]):
            nested["notes"] = None
        for (group, name), col in FLAT_COLUMNS.items():
            nested.setdefault(group, {})[name] = row.get(col)
        return cls.from_dict(nested)

    def to_flat(self) -> dict:
        row = {
            "id": self.id,
            "business_id": self.business_id,
            "year": self.year,
            "month": self.month,
            "period": self.period.value,
        }
        for (group, name), col in FLAT_COLUMNS.items():
            row[col] = self.value(group, name)
        row["notes"] = self.notes or ""
        return row


def validate_record(data: dict) -> list[str]:
    errors: list[str] = []

    business_id = data.get("business_id") or data.get("businessId")
    if not business_id:
        errors.append("A business id is required.")

    try:
        year = int(data.get("year") or 0)
    except (TypeError, ValueError):
        year = 0
    if year < 2000:
        errors.append("A valid year is required.")

    try:
        month = int(data.get("month") or 0)
    except (TypeError, ValueError):
        month = 0
    if not 1 <= month <= 12:
        errors.append("A valid month (1-12) is required.")

    if (data.get("period") or Period.LONG.value) not in {p.value for p in Period}:
        errors.append("Period must be 14days or 30days.")

    return errors


def apply_edit(record: PeriodRecord, changes: dict) -> PeriodRecord:
    """
    Overwrite fields of an existing record.
    Group values may be partial dicts: {"profile_activity": {"total": 120}}.
    id and created_at are never changed.
    """
    updates: dict = {}
    for key, value in changes.items():
        if key in ("id", "created_at"):
            continue
        if key in _GROUP_TYPES:
            current = getattr(record, key)
            cleaned = {
                name: _num(v, decimal=name in DECIMAL_FIELDS)
                for name, v in value.items()
                if name in current.__dataclass_fields__
            }
            updates[key] = replace(current, **cleaned)
        elif key == "period":
            updates[key] = Period(value)
        elif key == "original_images":
            updates[key] = tuple(value)
        elif key in PeriodRecord.__dataclass_fields__:
            updates[key] = value
        else:
            logger.debug("Ignoring unknown field in edit: %s", key)

    edited = replace(record, **updates, updated_at=_now())
    errors = validate_record({
        "business_id": edited.business_id,
        "year": edited.year,
        "month": edited.month,
        "period": edited.period.value,
    })
    if errors:
        raise RecordValidationError(errors)
    return edited


def records_to_frame(records: list[PeriodRecord]) -> pd.DataFrame:
    """One row per record, flat metric columns, sorted by (year, month)."""
    cols = ["id", "business_id", "year", "month", "period", *FLAT_COLUMNS.values(), "notes"]
    if not records:
        return pd.DataFrame(columns=cols)
    df = pd.DataFrame([r.to_flat() for r in records], columns=cols)
    df["month_key"] = df["year"].astype(str) + "-" + df["month"].astype(int).map("{:02d}".format)
    return df.sort_values(["year", "month"]).reset_index(drop=True)


def load_records_csv(path: Path) -> list[PeriodRecord]:
    if not Path(path).exists():
        raise FileNotFoundError(
            f"Missing records file: {path}\n"
            f"Generate a synthetic one with: insight-report-generate --out {path}"
        )
    df = pd.read_csv(path)
    records = [PeriodRecord.from_flat(row) for row in df.to_dict(orient="records")]
    logger.info("Loaded %d period records from %s", len(records), path)
    return records


def save_records_csv(records: list[PeriodRecord], path: Path) -> None:
    Path(path).parent.mkdir(exist_ok=True, parents=True)
    records_to_frame(records).drop(columns=["month_key"], errors="ignore").to_csv(path, index=False)


def filter_records(
    records: list[PeriodRecord],
    business_id: str | None = None,
    months: list[str] | None = None,
    periods: list[str] | None = None,
) -> list[PeriodRecord]:
    """
    Report settings filter.
    months are "YYYY-MM" strings; an empty/None list keeps every month.
    """
    out = []
    for r in records:
        if business_id is not None and r.business_id != business_id:
            continue
        if months and f"{r.year}-{r.month:02d}" not in months:
            continue
        if periods is not None and r.period.value not in periods:
            continue
        out.append(r)
    return out
