from __future__ import annotations

from insight_report.baseline import is_consecutive_months, select_baseline
from insight_report.generate_data import _apply_scenario, generate_records, generate_synthetic_insights
from insight_report.records import FLAT_COLUMNS


def test_monthly_plan_is_consecutive() -> None:
    records = generate_records(months=6, seed=1)
    assert len(records) == 6
    assert is_consecutive_months(records)
    assert all(r.profile_activity.total == r.profile_activity.profile_visits
               + r.profile_activity.external_link_taps + r.profile_activity.business_address_taps
               for r in records)


def test_gapped_plan_triggers_merged_baseline() -> None:
    records = generate_records(months=5, seed=3, month_plan="GAPPED")
    assert not is_consecutive_months(records)
    assert select_baseline(records).merged


def test_frame_columns_and_determinism() -> None:
    a = generate_synthetic_insights(seed=9)
    b = generate_synthetic_insights(seed=9)
    assert set(FLAT_COLUMNS.values()) <= set(a.columns)
    assert a.equals(b)
    assert ((a["posts"] + a["stories"] + a["reels"]) - 100).abs().max() < 0.2


def test_campaign_boosts_profile_activity_parts() -> None:
    base = {
        "reached_accounts": 100.0,
        "total_views": 100.0,
        "reels": 10.0,
        "new_followers": 10.0,
        "profile_visits": 100.0,
        "external_link_taps": 10.0,
        "business_address_taps": 10.0,
    }
    d = _apply_scenario(base, "CAMPAIGN")
    assert set(d) == set(base)
    assert d["profile_visits"] > 100.0
    assert d["external_link_taps"] > 10.0
    assert d["business_address_taps"] > 10.0


def test_every_scenario_generates_across_seeds() -> None:
    for seed in range(20):
        records = generate_records(months=4, seed=seed)
        assert len(records) == 4
