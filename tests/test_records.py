from __future__ import annotations

import pytest

from insight_report.records import (
    Period,
    PeriodRecord,
    RecordValidationError,
    apply_edit,
    filter_records,
    load_records_csv,
    records_to_frame,
    round1,
    save_records_csv,
    validate_record,
)


def _doc(**overrides) -> dict:
    doc = {
        "id": "rec-1",
        "businessId": "biz-1",
        "year": 2024,
        "month": 5,
        "period": "30days",
        "createdAt": "2024-06-01T00:00:00+00:00",
        "updatedAt": "2024-06-01T00:00:00+00:00",
        "views": {"reachedAccounts": 1200, "totalViews": 5400},
        "contentTypes": {"posts": 41.26, "stories": 20.0, "reels": 38.7},
        "metrics": {"totalViews": 5400, "reactions": 310, "newFollowers": 44},
        "profileActivity": {"total": 180, "profileVisits": 150, "externalLinkTaps": 20, "businessAddressTaps": 10},
        "notes": "spring promo",
        "originalImages": ["shot-1.png"],
    }
    doc.update(overrides)
    return doc


def test_from_dict_reads_stored_camel_case_document() -> None:
    record = PeriodRecord.from_dict(_doc())

    assert record.business_id == "biz-1"
    assert record.period is Period.LONG
    assert record.views.reached_accounts == 1200
    assert record.metrics.new_followers == 44
    assert record.profile_activity.business_address_taps == 10
    assert record.content_types.posts == 41.3
    assert record.original_images == ("shot-1.png",)
    assert record.created_at == "2024-06-01T00:00:00+00:00"


def test_from_dict_tolerates_missing_groups() -> None:
    doc = _doc()
    del doc["contentTypes"]
    doc["profileActivity"] = {"total": 7}

    record = PeriodRecord.from_dict(doc)

    assert record.content_types.reels == 0.0
    assert record.profile_activity.total == 7
    assert record.profile_activity.profile_visits == 0


def test_validation_messages() -> None:
    errors = validate_record({"year": 1999, "month": 13, "period": "7days"})
    assert len(errors) == 4

    assert validate_record(_doc()) == []

    with pytest.raises(RecordValidationError) as err:
        PeriodRecord.from_dict(_doc(month=0))
    assert err.value.errors == ["A valid month (1-12) is required."]


def test_round1_rounds_half_up() -> None:
    assert round1(0.25) == 0.3
    assert round1(20.55) == 20.6
    assert round1(-0.04) == -0.0
    assert round1(3.0) == 3.0


def test_apply_edit_preserves_identity() -> None:
    record = PeriodRecord.from_dict(_doc())

    edited = apply_edit(record, {
        "id": "other",
        "created_at": "1999-01-01",
        "profile_activity": {"total": 250},
        "notes": "corrected",
    })

    assert edited.id == "rec-1"
    assert edited.created_at == record.created_at
    assert edited.updated_at != record.updated_at
    assert edited.profile_activity.total == 250
    assert edited.profile_activity.profile_visits == 150
    assert edited.notes == "corrected"


def test_apply_edit_validates_result() -> None:
    record = PeriodRecord.from_dict(_doc())
    with pytest.raises(RecordValidationError):
        apply_edit(record, {"month": 14})


def test_csv_round_trip_keeps_values(tmp_path, record_factory) -> None:
    records = [record_factory(2024, 2, 120, notes="n"), record_factory(2024, 1, 80)]
    path = tmp_path / "records.csv"

    save_records_csv(records, path)
    loaded = load_records_csv(path)

    assert [(r.year, r.month) for r in loaded] == [(2024, 1), (2024, 2)]
    assert loaded[1].profile_activity.total == 120
    assert loaded[1].notes == "n"
    assert loaded[0].notes is None


def test_load_missing_file_has_hint(tmp_path) -> None:
    with pytest.raises(FileNotFoundError, match="insight-report-generate"):
        load_records_csv(tmp_path / "nope.csv")


def test_frame_is_sorted_with_month_key(record_factory) -> None:
    df = records_to_frame([record_factory(2024, 3), record_factory(2023, 12)])
    assert list(df["month_key"]) == ["2023-12", "2024-03"]
    assert records_to_frame([]).empty


def test_filter_records(record_factory) -> None:
    records = [
        record_factory(2024, 1),
        record_factory(2024, 2, period=Period.SHORT),
        record_factory(2024, 3, business_id="biz-2"),
    ]

    assert len(filter_records(records)) == 3
    assert len(filter_records(records, business_id="biz-1")) == 2
    assert len(filter_records(records, months=["2024-01", "2024-03"])) == 2
    assert filter_records(records, periods=["14days"])[0].month == 2
    assert filter_records(records, months=[]) == records
