# src/insight_report/main.py
from __future__ import annotations

import argparse
import logging
from dataclasses import replace
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from insight_report.baseline import month_string, parse_month_string
from insight_report.config import ReportConfig
from insight_report.export_pdf import ReportSettings, export
from insight_report.layout import ExportError
from insight_report.metrics import build_data_lineage, comparison_table
from insight_report.narrative import ReportContext, build_report_context, format_number, format_percent
from insight_report.records import filter_records, load_records_csv

logger = logging.getLogger("insight_report")

TREND_STYLE = {"up": "green", "down": "red", "stable": "white"}


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
    )


def _make_kv_table(title: str, rows: list[tuple[str, str]]) -> Table:
    t = Table(title=title, show_lines=True)
    t.add_column("Field")
    t.add_column("Value", overflow="fold")
    for k, v in rows:
        t.add_row(k, v)
    return t


def _comparison_rich_table(ctx: ReportContext) -> Table:
    df = comparison_table(ctx.comparison)
    has_baseline = ctx.comparison.baseline is not None

    t = Table(title="Insight Comparison – Current vs Baseline", show_lines=True)
    t.add_column("Metric")
    t.add_column("Current", justify="right", no_wrap=True)
    if has_baseline:
        t.add_column("Baseline", justify="right", no_wrap=True)
        t.add_column("Change", justify="right", no_wrap=True)
        t.add_column("Delta", justify="right", no_wrap=True)

    for _, r in df.iterrows():
        row = [r["Metric"], format_number(r["Current"])]
        if has_baseline:
            style = TREND_STYLE[r["Trend"]]
            row += [
                format_number(r["Baseline"]),
                f"[{style}]{format_percent(r['Change_Pct'])}[/{style}]",
                f"{'+' if r['Delta'] >= 0 else ''}{format_number(r['Delta'])}",
            ]
        t.add_row(*row)
    return t


def print_report(console: Console, ctx: ReportContext, data_path: Path) -> None:
    current = ctx.current
    selection = ctx.selection
    months = ", ".join(f"{r.year}-{r.month:02d} ({r.period.value})" for r in ctx.records)

    if selection.baseline is None:
        baseline_desc = "none"
    elif selection.merged:
        baseline_desc = f"merged {selection.range_label}"
    else:
        b = selection.baseline
        baseline_desc = f"{b.year}-{b.month:02d}"

    header = _make_kv_table(
        "Instagram Insights – Report Header",
        [
            ("Data file", str(data_path)),
            ("Business", current.business_id),
            ("Records", str(len(ctx.records))),
            ("Months", months),
            ("Current", f"{current.year}-{current.month:02d} ({current.period.label})"),
            ("Baseline", baseline_desc),
            ("Range label", selection.range_label or "none"),
        ],
    )
    console.print(header)
    console.print()

    console.print(_comparison_rich_table(ctx))
    console.print()

    lineage = Table(title="Data Lineage – Where Each Metric Comes From", show_lines=True, expand=True)
    lineage.add_column("Metric", no_wrap=True)
    lineage.add_column("Key", no_wrap=True)
    lineage.add_column("Source Field", overflow="fold")
    for item in build_data_lineage():
        lineage.add_row(item["metric"], item["key"], item["source_field"])
    console.print(lineage)
    console.print()

    summary = Table(title="Insight Summary", show_lines=True, expand=True)
    summary.add_column("Narrative", overflow="fold")
    summary.add_row(ctx.narrative)
    console.print(summary)


def _month_arg(value: str) -> str:
    try:
        year, month = parse_month_string(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(str(exc)) from exc
    return month_string(year, month)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Compare Instagram insight snapshots and export a PDF report.")
    parser.add_argument("--data", type=Path, help="Period records CSV (default: $INSIGHT_REPORT_DATA)")
    parser.add_argument("--business", help="Business id (default: the first one in the file)")
    parser.add_argument("--name", help="Business display name for the report header")
    parser.add_argument("--months", nargs="*", type=_month_arg, default=[], help="YYYY-MM months to include (default: all)")
    parser.add_argument("--periods", nargs="*", default=["14days", "30days"], choices=["14days", "30days"])
    parser.add_argument("--pdf", action="store_true", help="Also export the PDF report")
    parser.add_argument("--output", type=Path, help="PDF path (default: <output dir>/<business>_insight_report_<date>.pdf)")
    parser.add_argument("--images-dir", type=Path, help="Directory holding the records' screenshot files")
    parser.add_argument("--title", help="Custom report title")
    parser.add_argument("--notes", help="Custom notes appended to the report")
    parser.add_argument("--log-level", help="Logging level (default: $INSIGHT_REPORT_LOG_LEVEL or INFO)")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    config = ReportConfig.from_env()
    if args.data:
        config = replace(config, data_path=args.data)
    configure_logging((args.log_level or config.log_level).upper())

    console = Console()

    records = load_records_csv(config.data_path)
    if not records:
        console.print(f"[red]No records in {config.data_path}[/red]")
        return 1

    business_id = args.business or records[0].business_id
    selected = filter_records(records, business_id=business_id, months=args.months, periods=args.periods)
    if not selected:
        console.print(f"[red]No records match business {business_id} and the selected months/periods.[/red]")
        return 1

    ctx = build_report_context(selected)
    print_report(console, ctx, config.data_path)

    if args.pdf:
        settings = ReportSettings(
            business_id=business_id,
            selected_months=args.months,
            selected_periods=args.periods,
            custom_title=args.title,
            custom_notes=args.notes,
        )
        try:
            path = export(
                records,
                settings,
                config,
                business_name=args.name,
                output_path=args.output,
                images_dir=args.images_dir,
            )
        except ExportError as exc:
            logger.error("PDF export failed: %s", exc)
            return 2
        console.print(f"PDF generated: {path}")

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
