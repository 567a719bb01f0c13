"""Import report generation.

This module renders the summary of an import run as JSON or Markdown.
"""

import json
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from db_importer.migration.importer import ImportSummary
from db_importer.utils.logging import get_logger

logger = get_logger(__name__)


class ImportReport:
    """Renders the outcome of an import run."""

    def __init__(self, summary: ImportSummary):
        """Initialize import report.

        Args:
            summary: Summary returned by (or left on) the import engine
        """
        self.summary = summary
        self.generated_at = datetime.now(UTC)

    def generate_json(self, output_path: str | Path | None = None) -> str:
        """Generate JSON report.

        Args:
            output_path: Optional path to save report

        Returns:
            JSON report as string
        """
        report = {
            "report_version": "1.0",
            "generated_at": self.generated_at.isoformat(),
            **self.summary.as_dict(),
            "recommendations": self._generate_recommendations(),
        }

        json_str = json.dumps(report, indent=2, default=str)

        if output_path:
            Path(output_path).write_text(json_str)
            logger.info("json_report_saved", path=str(output_path))

        return json_str

    def generate_markdown(self, output_path: str | Path | None = None) -> str:
        """Generate Markdown report.

        Args:
            output_path: Optional path to save report

        Returns:
            Markdown report as string
        """
        summary = self.summary
        totals = summary.totals()

        lines = [
            "# Import Report",
            "",
            f"**Run ID:** `{summary.run_id}`  ",
            f"**Generated:** {self.generated_at.strftime('%Y-%m-%d %H:%M:%S UTC')}  ",
            f"**Status:** {summary.status}  ",
            f"**Duration:** {summary.duration_seconds:.1f}s  ",
            "",
            "## Summary",
            "",
            f"- Rows read: {totals['rows_read']:,}",
            f"- Records created: {totals['created']:,}",
            f"- Records updated: {totals['updated']:,}",
            f"- Records unchanged: {totals['unchanged']:,}",
            f"- ID mappings recorded: {summary.mapping_count:,}",
            "",
            "## Tables",
            "",
            "| Table | Entity | Read | Created | Updated | Unchanged |",
            "|-------|--------|-----:|--------:|--------:|----------:|",
        ]

        for table in summary.tables:
            if table.skipped:
                lines.append(f"| {table.table} | _skipped_ | - | - | - | - |")
            else:
                lines.append(
                    f"| {table.table} | {table.entity_type} | {table.rows_read:,} | "
                    f"{table.created:,} | {table.updated:,} | {table.unchanged:,} |"
                )

        if summary.error:
            lines.extend(
                [
                    "",
                    "## Failure",
                    "",
                    f"**{summary.error_type}**: {summary.error}",
                ]
            )

        recommendations = self._generate_recommendations()
        if recommendations:
            lines.extend(["", "## Recommendations", ""])
            lines.extend(f"- {item}" for item in recommendations)

        markdown = "\n".join(lines) + "\n"

        if output_path:
            Path(output_path).write_text(markdown)
            logger.info("markdown_report_saved", path=str(output_path))

        return markdown

    def save(self, output_path: str | Path) -> str:
        """Write the report in the format matching the file extension (.md or .json)."""
        if Path(output_path).suffix.lower() in (".md", ".markdown"):
            return self.generate_markdown(output_path)
        return self.generate_json(output_path)

    def _generate_recommendations(self) -> list[str]:
        recommendations: list[str] = []
        error_type = self.summary.error_type

        if error_type == "MappingNotFoundError":
            recommendations.append(
                "A table references an entity type that had not been imported yet. "
                "Move the referenced table earlier in the configured table list."
            )
        elif error_type == "IdentifierNotFoundError":
            recommendations.append(
                "A referenced source row was not imported. Check that the referenced "
                "table contains the row and that the foreign key strategy is right "
                "for this table."
            )
        elif error_type == "DanglingForeignKeyError":
            recommendations.append(
                "A mapped target record no longer exists. Check for deletions in the "
                "target database and re-run the import."
            )
        elif error_type == "AttributeMappingCollisionError":
            recommendations.append(
                "Two source fields map to the same target field. Fix the table's "
                "field mapping."
            )

        if self.summary.error and any(t.created or t.updated for t in self.summary.tables):
            recommendations.append(
                "Rows imported before the failure were committed. Re-running after the "
                "fix updates them by natural key instead of duplicating them."
            )

        return recommendations


def summary_rows(summary: ImportSummary) -> list[list[Any]]:
    """Rows for a per-table summary table."""
    rows = []
    for table in summary.tables:
        if table.skipped:
            rows.append([table.table, "-", "skipped", "", "", ""])
        else:
            rows.append(
                [
                    table.table,
                    table.entity_type,
                    f"{table.rows_read:,}",
                    f"{table.created:,}",
                    f"{table.updated:,}",
                    f"{table.unchanged:,}",
                ]
            )
    return rows
