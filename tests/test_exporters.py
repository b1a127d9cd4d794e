"""Tests for JSON/CSV export."""
import csv
import json
from datetime import datetime

import pytest

from maps_business_finder.models import BusinessRecord, Tier
from maps_business_finder.output.exporters import CSV_COLUMNS, Exporter, sanitize_filename_part


@pytest.fixture
def exporter(tmp_path, logger):
    return Exporter(output_dir=str(tmp_path / "out"), logger=logger)


@pytest.fixture
def results():
    return [
        BusinessRecord(name="Bar do João", rating=4.6, review_count=320, reviews_text="(320)",
                       address="Rua Augusta, 1500", composite_score=150.12, tier=Tier.EXCELLENT,
                       quality_indicators=["high rating", "many reviews"], rank=1),
        BusinessRecord(name="Café Central", rating=4.0, tier=Tier.UNRATED,
                       quality_indicators=["no reviews"], rank=2),
    ]


def test_sanitize_filename_part():
    assert sanitize_filename_part("Pizzaria em São Paulo!") == "pizzaria_em_so_paulo"
    assert sanitize_filename_part("???") == "search"
    assert len(sanitize_filename_part("a" * 80)) == 50


def test_generate_filename(exporter):
    name = exporter.generate_filename("bar & grill", "json", datetime(2024, 5, 1, 13, 45, 9))
    assert name == "bar_grill_2024-05-01T13-45-09.json"


def test_export_json_keeps_scores_and_accents(exporter, results):
    info = exporter.export_json(results, "bar", metadata={"scoring_strategy": "log_tenth"})
    assert info["success"]
    assert info["count"] == 2
    with open(info["filepath"], encoding="utf-8") as f:
        text = f.read()
    assert "Bar do João" in text
    payload = json.loads(text)
    assert payload["metadata"]["total_results"] == 2
    assert payload["metadata"]["scoring_strategy"] == "log_tenth"
    assert [b["id"] for b in payload["businesses"]] == [1, 2]
    assert payload["businesses"][0]["composite_score"] == 150.12
    assert payload["businesses"][0]["tier"] == "Excellent"


def test_export_csv(exporter, results):
    info = exporter.export_csv(results, "bar")
    assert info["success"]
    with open(info["filepath"], encoding="utf-8", newline="") as f:
        rows = list(csv.DictReader(f))
    assert list(rows[0]) == CSV_COLUMNS
    assert rows[0]["name"] == "Bar do João"
    assert rows[0]["quality_indicators"] == "high rating; many reviews"
    assert rows[1]["tier"] == "Unrated"


def test_export_results_reports_unsupported_formats(exporter, results):
    outcome = exporter.export_results(results, "bar", ["json", "xlsx"])
    assert not outcome["success"]
    assert outcome["files"]["json"]["success"]
    assert outcome["errors"] == ["Unsupported export format: xlsx"]


def test_export_session_summary_and_listing(exporter, results):
    exporter.export_results(results, "bar", ["json", "csv"])
    info = exporter.export_session_summary({"session_id": "s1", "total_results": 2}, "bar")
    assert info["success"]
    assert info["filename"].startswith("bar_session_")

    files = exporter.list_exports()
    assert len(files) == 3
    assert {f["filename"].rsplit(".", 1)[1] for f in files} == {"json", "csv"}


def test_list_exports_without_directory(tmp_path):
    assert Exporter(output_dir=str(tmp_path / "missing")).list_exports() == []
