"""Reporting for DB Importer runs."""

from db_importer.reporting.report import ImportReport, summary_rows

__all__ = [
    "ImportReport",
    "summary_rows",
]
