from __future__ import annotations

import pytest
from PIL import Image

from insight_report import export_pdf
from insight_report.config import ReportConfig
from insight_report.export_pdf import (
    MM_PER_INCH,
    ReportSettings,
    build_blocks,
    build_sections,
    export,
    image_block,
    render_section,
    write_pdf,
)
from insight_report.layout import ContentBlock, PageGeometry, layout
from insight_report.narrative import build_report_context


@pytest.fixture
def config(tmp_path) -> ReportConfig:
    return ReportConfig(data_path=tmp_path / "records.csv", output_dir=tmp_path / "out", dpi=40)


@pytest.fixture
def records(record_factory):
    return [record_factory(2024, m, 100 + 10 * m, notes="campaign month" if m == 5 else None) for m in (3, 4, 5)]


def test_sections_follow_settings(records) -> None:
    ctx = build_report_context(records)

    full = build_sections(ctx, records, ReportSettings(business_id="biz-1"), "Cafe Luna")
    assert [s.name for s in full] == [
        "header", "summary", "profile_activity", "views", "content_types", "metrics",
        "line_chart", "bar_chart", "monthly_table", "notes",
    ]

    trimmed = build_sections(
        ctx,
        records,
        ReportSettings(business_id="biz-1", include_views=False, include_bar_chart=False, include_metrics=False),
        "Cafe Luna",
    )
    assert [s.name for s in trimmed] == [
        "header", "summary", "profile_activity", "content_types", "line_chart", "monthly_table", "notes",
    ]


def test_single_record_report_has_no_charts(record_factory) -> None:
    only = [record_factory(2024, 5)]
    ctx = build_report_context(only)
    names = [s.name for s in build_sections(ctx, only, ReportSettings(business_id="biz-1"), "x")]
    assert "line_chart" not in names
    assert "bar_chart" not in names


def test_monthly_table_grows_with_history(record_factory) -> None:
    short = [record_factory(2024, m) for m in (1, 2)]
    long = [record_factory(y, m) for y in (2022, 2023, 2024) for m in range(1, 13)]

    def table_height(recs):
        ctx = build_report_context(recs)
        sections = build_sections(ctx, recs, ReportSettings(business_id="biz-1"), "x")
        return next(s for s in sections if s.name == "monthly_table").height_in

    assert table_height(long) > table_height(short)


def test_rendered_section_matches_measured_aspect(records, config) -> None:
    ctx = build_report_context(records)
    section = build_sections(ctx, records, ReportSettings(business_id="biz-1"), "Cafe Luna")[0]
    width_in = config.geometry.usable_width / MM_PER_INCH

    bitmap = render_section(section, width_in, dpi=40)

    assert bitmap.mode == "RGB"
    assert bitmap.height == pytest.approx(section.height_in * 40, abs=1)
    assert bitmap.width == pytest.approx(width_in * 40, abs=1)


def test_blocks_use_geometry_units(records, config) -> None:
    ctx = build_report_context(records)
    blocks = build_blocks(ctx, records, ReportSettings(business_id="biz-1"), "Cafe Luna", config)

    assert blocks[0].name == "header"
    assert blocks[0].break_avoid
    assert blocks[0].measured_height == pytest.approx(1.3 * MM_PER_INCH)


def test_screenshots_become_break_avoid_blocks(tmp_path, record_factory, config) -> None:
    Image.new("RGB", (90, 180), "blue").save(tmp_path / "shot.png")
    rec = record_factory(2024, 5)
    rec = rec.__class__(**{**rec.__dict__, "original_images": ("shot.png", "missing.png")})
    ctx = build_report_context([rec])

    blocks = build_blocks(ctx, [rec], ReportSettings(business_id="biz-1"), "x", config, images_dir=tmp_path)

    shots = [b for b in blocks if b.name.startswith("image:")]
    assert len(shots) == 1
    assert shots[0].break_avoid
    assert shots[0].measured_height == pytest.approx(config.geometry.usable_width * 0.45 * 2)


def test_image_block_centres_screenshot(tmp_path) -> None:
    Image.new("RGB", (90, 180), "blue").save(tmp_path / "shot.png")
    geometry = PageGeometry()

    bitmap = image_block(tmp_path / "shot.png", geometry).capture()

    assert bitmap.size == (200, 180)
    assert bitmap.getpixel((0, 0)) == (255, 255, 255)
    assert bitmap.getpixel((100, 90)) == (0, 0, 255)


def test_write_pdf(tmp_path, bitmap_factory) -> None:
    geometry = PageGeometry(page_height=300, page_width=100, margin=10, inter_block_gap=5)
    placements = layout([ContentBlock(measured_height=900, capture=lambda: bitmap_factory(900))], geometry)
    out = tmp_path / "nested" / "report.pdf"

    write_pdf(placements, geometry, out, title="test")

    assert out.read_bytes().startswith(b"%PDF")
    assert not out.with_suffix(".pdf.part").exists()


def test_write_pdf_removes_partial_file_on_failure(tmp_path, bitmap_factory, monkeypatch) -> None:
    geometry = PageGeometry(page_height=300, page_width=100, margin=10, inter_block_gap=5)
    placements = layout([ContentBlock(measured_height=50, capture=lambda: bitmap_factory(50))], geometry)
    out = tmp_path / "report.pdf"

    def broken(_):
        raise OSError("disk full")

    monkeypatch.setattr(export_pdf, "ImageReader", broken)
    with pytest.raises(OSError, match="disk full"):
        write_pdf(placements, geometry, out)

    assert not out.exists()
    assert not out.with_suffix(".pdf.part").exists()


def test_export_writes_pdf(records, config) -> None:
    settings = ReportSettings(business_id="biz-1", custom_notes="Prepared for the monthly review.")
    path = export(records, settings, config, business_name="Cafe Luna")

    assert path.parent == config.output_dir
    assert path.name.startswith("Cafe_Luna_insight_report_")
    assert path.read_bytes().startswith(b"%PDF")


def test_export_requires_matching_records(records, config) -> None:
    with pytest.raises(ValueError, match="No period records"):
        export(records, ReportSettings(business_id="someone-else"), config)
