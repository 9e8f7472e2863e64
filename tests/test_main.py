from __future__ import annotations

import pytest

from insight_report.main import main
from insight_report.records import save_records_csv


def test_cli_prints_summary(tmp_path, record_factory, capsys) -> None:
    path = tmp_path / "records.csv"
    save_records_csv([record_factory(2024, 4, 100), record_factory(2024, 5, 150)], path)

    assert main(["--data", str(path)]) == 0

    out = capsys.readouterr().out
    assert "+50.0%" in out
    assert "Insight Summary" in out


def test_cli_unknown_business(tmp_path, record_factory) -> None:
    path = tmp_path / "records.csv"
    save_records_csv([record_factory(2024, 4)], path)
    assert main(["--data", str(path), "--business", "nobody"]) == 1


def test_cli_exports_pdf(tmp_path, record_factory, monkeypatch) -> None:
    monkeypatch.setenv("INSIGHT_REPORT_DPI", "40")
    path = tmp_path / "records.csv"
    save_records_csv([record_factory(2024, m, 100 + m) for m in (1, 2, 3)], path)
    out = tmp_path / "report.pdf"

    assert main(["--data", str(path), "--pdf", "--output", str(out), "--name", "Cafe Luna"]) == 0
    assert out.read_bytes().startswith(b"%PDF")


def test_cli_normalises_month_filter(tmp_path, record_factory, capsys) -> None:
    path = tmp_path / "records.csv"
    save_records_csv([record_factory(2024, 3, 100), record_factory(2024, 4, 120)], path)

    assert main(["--data", str(path), "--months", "2024-3"]) == 0
    out = capsys.readouterr().out
    assert "2024-03" in out
    assert "2024-04" not in out


def test_cli_rejects_malformed_month(tmp_path, record_factory) -> None:
    path = tmp_path / "records.csv"
    save_records_csv([record_factory(2024, 3)], path)

    with pytest.raises(SystemExit) as exc:
        main(["--data", str(path), "--months", "2024-13"])
    assert exc.value.code == 2
