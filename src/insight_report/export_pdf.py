# src/insight_report/export_pdf.py
from __future__ import annotations

import asyncio
import io
import logging
import textwrap
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import Callable

import numpy as np
from matplotlib.backends.backend_agg import FigureCanvasAgg
from matplotlib.figure import Figure
from matplotlib.patches import FancyBboxPatch, Rectangle
from PIL import Image as PILImage
from reportlab.lib.units import mm
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas as pdf_canvas

from insight_report.config import ReportConfig
from insight_report.layout import (
    ContentBlock,
    PageGeometry,
    PagePlacement,
    layout_async,
    page_count,
)
from insight_report.metrics import METRIC_FIELDS, ChangeMetric, Trend, metric_value, monthly_series
from insight_report.narrative import ReportContext, build_report_context, format_number, format_percent
from insight_report.records import PeriodRecord, filter_records

logger = logging.getLogger(__name__)

MM_PER_INCH = 25.4

PRIMARY = "#2563eb"
UP_COLOR = "#16a34a"
DOWN_COLOR = "#dc2626"
STABLE_COLOR = "#4b5563"
CARD_BG = "#f9fafb"
TEXT = "#111827"
MUTED = "#6b7280"

TREND_COLOR = {Trend.UP: UP_COLOR, Trend.DOWN: DOWN_COLOR, Trend.STABLE: STABLE_COLOR}

TABLE_ROW_IN = 0.28
TITLE_IN = 0.45


@dataclass
class ReportSettings:
    business_id: str
    selected_months: list[str] = field(default_factory=list)  # "YYYY-MM"; empty = all
    selected_periods: list[str] = field(default_factory=lambda: ["14days", "30days"])
    include_line_chart: bool = True
    include_bar_chart: bool = True
    include_views: bool = True
    include_content_types: bool = True
    include_metrics: bool = True
    include_profile_activity: bool = True
    custom_title: str | None = None
    custom_notes: str | None = None


@dataclass(frozen=True)
class Section:
    name: str
    height_in: float
    draw: Callable[[Figure], None]
    break_avoid: bool = False
    min_slice_in: float = 0.0


# ----------------------------
# Rendering
# ----------------------------

def render_section(section: Section, width_in: float, dpi: int) -> PILImage.Image:
    fig = Figure(figsize=(width_in, section.height_in), dpi=dpi, facecolor="white")
    FigureCanvasAgg(fig)
    section.draw(fig)

    buf = io.BytesIO()
    fig.savefig(buf, format="png", dpi=dpi, facecolor="white")
    buf.seek(0)
    im = PILImage.open(buf)
    im.load()
    return im.convert("RGB")


def section_block(section: Section, geometry: PageGeometry, dpi: int) -> ContentBlock:
    width_in = geometry.usable_width / MM_PER_INCH
    return ContentBlock(
        measured_height=section.height_in * MM_PER_INCH,
        capture=lambda: render_section(section, width_in, dpi),
        break_avoid=section.break_avoid,
        name=section.name,
        min_slice_height=section.min_slice_in * MM_PER_INCH,
    )


def image_block(path: Path, geometry: PageGeometry, width_frac: float = 0.45) -> ContentBlock:
    """Stored screenshot, centred at a fraction of the usable width."""
    with PILImage.open(path) as head:
        w, h = head.size
    aspect = h / float(w)
    target_w = geometry.usable_width * width_frac

    def capture() -> PILImage.Image:
        with PILImage.open(path) as src:
            shot = src.convert("RGB")
        page_px = int(round(shot.width / width_frac))
        out = PILImage.new("RGB", (page_px, shot.height), "white")
        out.paste(shot, ((page_px - shot.width) // 2, 0))
        return out

    return ContentBlock(
        measured_height=target_w * aspect,
        capture=capture,
        break_avoid=True,
        name=f"image:{Path(path).name}",
    )


def _title(fig: Figure, height_in: float, text: str) -> None:
    fig.text(0.02, 1 - 0.28 / height_in, text, fontsize=13, weight="bold", color=TEXT, va="center")


def _content_axes(fig: Figure, height_in: float, pad_in: float = 0.1):
    top = 1 - TITLE_IN / height_in
    bottom = pad_in / height_in
    return fig.add_axes([0.02, bottom, 0.96, top - bottom])


def _change_text(change: ChangeMetric | None) -> tuple[str, str]:
    if change is None:
        return "", MUTED
    sign = "+" if change.delta >= 0 else ""
    return (
        f"{format_percent(change.percentage)} ({sign}{format_number(change.delta)})",
        TREND_COLOR[change.trend],
    )


def _draw_cards(fig: Figure, height_in: float, title: str, cards: list[tuple[str, str, ChangeMetric | None]]) -> None:
    _title(fig, height_in, title)
    ax = _content_axes(fig, height_in)
    ax.set_axis_off()
    ax.set_xlim(0, 1)
    ax.set_ylim(0, 1)

    n = len(cards)
    gap = 0.02
    card_w = (1 - gap * (n - 1)) / n
    for i, (label, value, change) in enumerate(cards):
        x0 = i * (card_w + gap)
        ax.add_patch(
            FancyBboxPatch(
                (x0, 0.02), card_w, 0.96,
                boxstyle="round,pad=0,rounding_size=0.04",
                facecolor=CARD_BG, edgecolor="#e5e7eb",
            )
        )
        ax.text(x0 + 0.05 * card_w, 0.80, label, fontsize=8.5, color=MUTED, va="center")
        ax.text(x0 + 0.05 * card_w, 0.50, value, fontsize=15, weight="bold", color=TEXT, va="center")
        change_txt, color = _change_text(change)
        if change_txt:
            ax.text(x0 + 0.05 * card_w, 0.20, change_txt, fontsize=8.5, color=color, va="center")


def header_section(ctx: ReportContext, business_name: str, settings: ReportSettings) -> Section:
    current = ctx.current
    title = settings.custom_title or "Instagram Insights Monthly Comparison Report"
    period_line = f"{current.year}-{current.month:02d} ({current.period.label} window)"
    generated = f"Generated {date.today().isoformat()}"

    def draw(fig: Figure) -> None:
        ax = fig.add_axes([0, 0, 1, 1])
        ax.set_axis_off()
        ax.add_patch(Rectangle((0, 0), 1, 1, transform=ax.transAxes, color=PRIMARY))
        ax.text(0.03, 0.70, business_name, fontsize=20, weight="bold", color="white", transform=ax.transAxes, va="center")
        ax.text(0.03, 0.38, title, fontsize=12, color="white", transform=ax.transAxes, va="center")
        ax.text(0.97, 0.38, period_line, fontsize=10, color="white", transform=ax.transAxes, ha="right", va="center")
        ax.text(0.97, 0.16, generated, fontsize=8, color="#dbeafe", transform=ax.transAxes, ha="right", va="center")

    return Section("header", 1.3, draw, break_avoid=True)


def _text_section(name: str, title: str, paragraphs: list[str]) -> Section:
    lines = []
    for paragraph in paragraphs:
        lines.extend(textwrap.wrap(paragraph, width=105) or [""])
    line_in = 0.2
    height_in = TITLE_IN + line_in * len(lines) + 0.2

    def draw(fig: Figure) -> None:
        _title(fig, height_in, title)
        for i, line in enumerate(lines):
            y = 1 - (TITLE_IN + line_in * (i + 0.5)) / height_in
            fig.text(0.02, y, line, fontsize=9.5, color="#374151", va="center")

    return Section(name, height_in, draw, min_slice_in=line_in)


def summary_section(ctx: ReportContext) -> Section:
    return _text_section("summary", "Insight Summary", [ctx.narrative])


def _metric_cards(ctx: ReportContext, keys: list[str], as_share: bool = False) -> list[tuple[str, str, ChangeMetric | None]]:
    cards = []
    total = sum(metric_value(ctx.current, k) for k in keys) if as_share else 0
    for key in keys:
        label = METRIC_FIELDS[key][2]
        value = metric_value(ctx.current, key)
        if as_share:
            share = (value / total * 100) if total > 0 else 0.0
            text = f"{share:.1f}% ({format_number(value)})"
        else:
            text = format_number(value)
        cards.append((label, text, ctx.comparison.changes.get(key)))
    return cards


def cards_section(name: str, title: str, cards: list[tuple[str, str, ChangeMetric | None]]) -> Section:
    height_in = 1.6
    return Section(name, height_in, lambda fig: _draw_cards(fig, height_in, title, cards), break_avoid=True)


def line_chart_section(records: list[PeriodRecord]) -> Section:
    cols = ["profile_total", "profile_visits", "external_link_taps", "business_address_taps"]
    labels = ["Profile Activity", "Profile Visits", "External Link Taps", "Business Address Taps"]
    series = monthly_series(records, cols)
    height_in = 3.2

    def draw(fig: Figure) -> None:
        _title(fig, height_in, "Profile Activity by Month")
        ax = fig.add_axes([0.08, 0.14, 0.88, 0.72])
        for col, label in zip(cols, labels):
            ax.plot(series["month_key"], series[col], marker="o", linewidth=1.6, label=label)
        ax.grid(axis="y", alpha=0.3)
        ax.legend(fontsize=7.5, loc="upper left", frameon=False)
        ax.tick_params(labelsize=8)

    return Section("line_chart", height_in, draw, break_avoid=True)


def bar_chart_section(records: list[PeriodRecord]) -> Section:
    cols = ["posts", "stories", "reels"]
    series = monthly_series(records, cols)
    height_in = 3.2

    def draw(fig: Figure) -> None:
        _title(fig, height_in, "Content Types by Month")
        ax = fig.add_axes([0.08, 0.14, 0.88, 0.72])
        x = np.arange(len(series))
        width = 0.8 / len(cols)
        for i, col in enumerate(cols):
            ax.bar(x + (i - 1) * width, series[col], width=width, label=col.title())
        ax.set_xticks(x)
        ax.set_xticklabels(series["month_key"])
        ax.grid(axis="y", alpha=0.3)
        ax.legend(fontsize=7.5, frameon=False)
        ax.tick_params(labelsize=8)

    return Section("bar_chart", height_in, draw, break_avoid=True)


def monthly_table_section(records: list[PeriodRecord]) -> Section:
    """All records, one row each; grows with history and may span pages."""
    header = ["Month", "Period", "Reached", "Views", "Posts", "Stories", "Reels", "Followers", "Profile"]
    rows = [
        [
            f"{r.year}-{r.month:02d}",
            r.period.value,
            format_number(r.views.reached_accounts),
            format_number(r.views.total_views),
            f"{r.content_types.posts:.1f}",
            f"{r.content_types.stories:.1f}",
            f"{r.content_types.reels:.1f}",
            format_number(r.metrics.new_followers),
            format_number(r.profile_activity.total),
        ]
        for r in sorted(records, key=lambda r: (r.year, r.month, r.period.value))
    ]
    height_in = TITLE_IN + TABLE_ROW_IN * (len(rows) + 1) + 0.1

    def draw(fig: Figure) -> None:
        _title(fig, height_in, "Monthly Data")
        ax = _content_axes(fig, height_in)
        ax.set_axis_off()
        table = ax.table(cellText=rows, colLabels=header, loc="upper center", cellLoc="right", bbox=[0, 0, 1, 1])
        table.auto_set_font_size(False)
        table.set_fontsize(8)
        for (r_i, _), cell in table.get_celld().items():
            cell.set_edgecolor("#d1d5db")
            if r_i == 0:
                cell.set_facecolor("#f3f4f6")
                cell.set_text_props(weight="bold")

    return Section("monthly_table", height_in, draw, min_slice_in=TABLE_ROW_IN)


def notes_section(notes: list[str]) -> Section:
    return _text_section("notes", "Notes", notes)


# ----------------------------
# Assembly
# ----------------------------

def build_sections(
    ctx: ReportContext,
    records: list[PeriodRecord],
    settings: ReportSettings,
    business_name: str,
) -> list[Section]:
    sections = [header_section(ctx, business_name, settings), summary_section(ctx)]

    if settings.include_profile_activity:
        sections.append(cards_section(
            "profile_activity", "Profile Activity",
            _metric_cards(ctx, ["profileTotal", "profileVisits", "externalLinkTaps", "businessAddressTaps"]),
        ))
    if settings.include_views:
        sections.append(cards_section("views", "Views", _metric_cards(ctx, ["reachedAccounts", "totalViews"])))
    if settings.include_content_types:
        sections.append(cards_section(
            "content_types", "Content Types",
            _metric_cards(ctx, ["posts", "stories", "reels"], as_share=True),
        ))
    if settings.include_metrics:
        sections.append(cards_section(
            "metrics", "Engagement", _metric_cards(ctx, ["metricsViews", "reactions", "newFollowers"]),
        ))

    if len(records) > 1:
        if settings.include_line_chart:
            sections.append(line_chart_section(records))
        if settings.include_bar_chart:
            sections.append(bar_chart_section(records))

    sections.append(monthly_table_section(records))

    notes = [n for n in (settings.custom_notes, ctx.current.notes) if n]
    if notes:
        sections.append(notes_section(notes))

    return sections


def build_blocks(
    ctx: ReportContext,
    records: list[PeriodRecord],
    settings: ReportSettings,
    business_name: str,
    config: ReportConfig,
    images_dir: Path | None = None,
) -> list[ContentBlock]:
    geometry = config.geometry
    blocks = [
        section_block(s, geometry, config.dpi)
        for s in build_sections(ctx, records, settings, business_name)
    ]

    if images_dir is not None:
        for ref in ctx.current.original_images:
            path = Path(images_dir) / ref
            if not path.exists():
                logger.warning("Screenshot %s not found, skipping", path)
                continue
            blocks.append(image_block(path, geometry))

    return blocks


def write_pdf(placements: list[PagePlacement], geometry: PageGeometry, path: Path, title: str = "") -> None:
    path.parent.mkdir(exist_ok=True, parents=True)
    tmp = path.with_suffix(path.suffix + ".part")

    by_page: dict[int, list[PagePlacement]] = {}
    for p in placements:
        by_page.setdefault(p.page_index, []).append(p)

    try:
        c = pdf_canvas.Canvas(str(tmp), pagesize=(geometry.page_width * mm, geometry.page_height * mm))
        if title:
            c.setTitle(title)

        for page in range(max(page_count(placements), 1)):
            for p in by_page.get(page, []):
                # reportlab's origin is bottom-left
                c.drawImage(
                    ImageReader(p.bitmap),
                    p.x * mm,
                    (geometry.page_height - p.y - p.height) * mm,
                    width=p.width * mm,
                    height=p.height * mm,
                )
            c.showPage()

        c.save()
    except Exception:
        tmp.unlink(missing_ok=True)
        raise
    tmp.replace(path)


def export(
    records: list[PeriodRecord],
    settings: ReportSettings,
    config: ReportConfig,
    business_name: str | None = None,
    output_path: Path | None = None,
    images_dir: Path | None = None,
) -> Path:
    selected = filter_records(
        records,
        business_id=settings.business_id,
        months=settings.selected_months,
        periods=settings.selected_periods,
    )
    if not selected:
        raise ValueError(f"No period records selected for business {settings.business_id}")

    business_name = business_name or settings.business_id
    logger.info("Exporting report for %s (%d records)", business_name, len(selected))

    ctx = build_report_context(selected)
    blocks = build_blocks(ctx, selected, settings, business_name, config, images_dir)
    geometry = config.geometry

    placements = asyncio.run(layout_async(blocks, geometry, capture_timeout=config.capture_timeout))

    if output_path is None:
        safe = "".join(ch if ch.isalnum() else "_" for ch in business_name)
        output_path = config.output_dir / f"{safe}_insight_report_{date.today().isoformat()}.pdf"

    write_pdf(placements, geometry, Path(output_path), title=settings.custom_title or f"{business_name} insight report")
    logger.info("PDF generated: %s (%d pages)", output_path, page_count(placements))
    return Path(output_path)
