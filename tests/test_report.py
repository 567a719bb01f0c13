"""Tests for import report generation."""

import json

import pytest

from db_importer.client.base import SourceLocation
from db_importer.client.exceptions import MappingNotFoundError
from db_importer.migration.importer import ImportEngine
from db_importer.migration.table_spec import TableSpec
from db_importer.reporting.report import ImportReport, summary_rows


@pytest.fixture()
def completed_summary(source, store, companies_spec, users_spec):
    reference = TableSpec(SourceLocation("legacy", "lookup"))
    return ImportEngine(source, store).run([reference, companies_spec, users_spec])


@pytest.fixture()
def failed_summary(source, store, companies_spec, users_spec):
    engine = ImportEngine(source, store)
    with pytest.raises(MappingNotFoundError):
        engine.run([users_spec, companies_spec])
    return engine.summary


def test_json_report(completed_summary, tmp_path):
    output = tmp_path / "report.json"

    ImportReport(completed_summary).generate_json(output)

    data = json.loads(output.read_text())
    assert data["status"] == "completed"
    assert data["totals"]["created"] == 4
    assert data["totals"]["tables_skipped"] == 1
    assert [t["table"] for t in data["tables"]] == ["legacy.lookup", "legacy.company", "legacy.user"]
    assert data["recommendations"] == []


def test_markdown_report(completed_summary):
    markdown = ImportReport(completed_summary).generate_markdown()

    assert "# Import Report" in markdown
    assert "| legacy.company | companies | 2 | 2 | 0 | 0 |" in markdown
    assert "| legacy.lookup | _skipped_ |" in markdown
    assert "## Failure" not in markdown


def test_failed_run_report_explains_ordering(failed_summary):
    markdown = ImportReport(failed_summary).generate_markdown()

    assert "## Failure" in markdown
    assert "MappingNotFoundError" in markdown
    assert "Move the referenced table earlier" in markdown


def test_save_picks_format_by_extension(completed_summary, tmp_path):
    report = ImportReport(completed_summary)

    report.save(tmp_path / "run.md")
    report.save(tmp_path / "run.json")

    assert (tmp_path / "run.md").read_text().startswith("# Import Report")
    assert json.loads((tmp_path / "run.json").read_text())["run_id"] == completed_summary.run_id


def test_summary_rows(completed_summary):
    rows = summary_rows(completed_summary)

    assert rows[0] == ["legacy.lookup", "-", "skipped", "", "", ""]
    assert rows[2] == ["legacy.user", "users", "2", "2", "0", "0"]
