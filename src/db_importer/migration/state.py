"""
Import state persistence.

This module provides the ImportState class, which stores finished import
runs and the ID mappings they recorded in a state database. Stored
mappings are for auditing and troubleshooting; a new run always starts
with an empty ``IdentityMapper``.
"""

import json
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from sqlalchemy import func, select

from db_importer.client.exceptions import StateError
from db_importer.config import StateConfig
from db_importer.migration.database import (
    dispose_database,
    get_session,
    init_database,
    normalize_database_url,
)
from db_importer.migration.identity import IdentityMapper
from db_importer.migration.importer import ImportSummary
from db_importer.migration.models import IDMapping, ImportRun
from db_importer.utils.logging import get_logger

logger = get_logger(__name__)


def _naive_utc(value: datetime | None) -> datetime | None:
    # DateTime columns are timezone-naive
    if value is None:
        return None
    return value.astimezone(UTC).replace(tzinfo=None)


class ImportState:
    """
    Stores import runs and their ID mappings.

    Usage:
        state = ImportState(config.state)
        try:
            summary = engine.run(specs)
        finally:
            state.save_run(engine.summary, engine.identity)
    """

    def __init__(self, config: StateConfig):
        """
        Initialize import state store.

        Args:
            config: State configuration

        Raises:
            StateError: If the state database cannot be initialized
        """
        self.config = config
        self.database_url = normalize_database_url(config.db_path)

        try:
            init_database(self.database_url)
        except Exception as e:
            logger.error("Failed to initialize import state", error=str(e))
            raise StateError(f"Failed to initialize import state: {e}") from e

    def save_run(self, summary: ImportSummary, identity: IdentityMapper) -> int:
        """
        Persist a finished run and every mapping it recorded.

        Args:
            summary: Summary of the run (completed or failed)
            identity: The run's identity mapper

        Returns:
            Number of mappings stored

        Raises:
            StateError: If the run cannot be stored
        """
        status = "completed" if summary.succeeded else "failed"

        with get_session(self.database_url) as session:
            run = ImportRun(
                run_id=summary.run_id,
                status=status,
                started_at=_naive_utc(summary.started_at),
                finished_at=_naive_utc(summary.finished_at),
                error_message=summary.error,
                summary=summary.as_dict(),
            )
            session.add(run)
            session.flush()

            count = 0
            for position, (entity_type, source_id, target_id) in enumerate(identity.entries()):
                session.add(
                    IDMapping(
                        run_pk=run.id,
                        entity_type=entity_type.name,
                        source_id=str(source_id),
                        target_id=str(target_id),
                        position=position,
                    )
                )
                count += 1

        logger.info("Saved import run", run_id=summary.run_id, status=status, mappings=count)
        return count

    def list_runs(self, limit: int = 20) -> list[dict[str, Any]]:
        """
        List stored runs, newest first.

        Args:
            limit: Maximum number of runs to return

        Returns:
            List of run dictionaries with mapping counts
        """
        with get_session(self.database_url) as session:
            mapping_counts = (
                select(IDMapping.run_pk, func.count(IDMapping.id).label("mappings"))
                .group_by(IDMapping.run_pk)
                .subquery()
            )
            stmt = (
                select(ImportRun, func.coalesce(mapping_counts.c.mappings, 0))
                .outerjoin(mapping_counts, mapping_counts.c.run_pk == ImportRun.id)
                .order_by(ImportRun.id.desc())
                .limit(limit)
            )

            return [
                {
                    "run_id": run.run_id,
                    "status": run.status,
                    "started_at": run.started_at,
                    "finished_at": run.finished_at,
                    "error_message": run.error_message,
                    "mappings": mappings,
                }
                for run, mappings in session.execute(stmt).all()
            ]

    def _get_run(self, session, run_id: str) -> ImportRun:
        run = session.execute(select(ImportRun).where(ImportRun.run_id == run_id)).scalar_one_or_none()
        if run is None:
            raise StateError(f"Import run not found: {run_id}")
        return run

    def get_mappings(self, run_id: str, entity_type: str | None = None) -> list[dict[str, str]]:
        """
        Get the mappings recorded by a run, in recording order.

        Args:
            run_id: Run identifier
            entity_type: Only return mappings of this entity type

        Returns:
            List of mapping dictionaries

        Raises:
            StateError: If the run does not exist
        """
        with get_session(self.database_url) as session:
            run = self._get_run(session, run_id)

            stmt = select(IDMapping).where(IDMapping.run_pk == run.id)
            if entity_type:
                stmt = stmt.where(IDMapping.entity_type == entity_type)
            stmt = stmt.order_by(IDMapping.position)

            return [
                {
                    "entity_type": m.entity_type,
                    "source_id": m.source_id,
                    "target_id": m.target_id,
                }
                for m in session.execute(stmt).scalars()
            ]

    def export_run(self, run_id: str, output_path: str | Path) -> None:
        """
        Export a run and its mappings to a JSON file.

        Args:
            run_id: Run identifier
            output_path: Path to output JSON file

        Raises:
            StateError: If the run does not exist or the file cannot be written
        """
        with get_session(self.database_url) as session:
            run = self._get_run(session, run_id)
            run_data = {
                "run_id": run.run_id,
                "status": run.status,
                "started_at": run.started_at.isoformat() if run.started_at else None,
                "finished_at": run.finished_at.isoformat() if run.finished_at else None,
                "error_message": run.error_message,
                "summary": run.summary,
            }

        run_data["exported_at"] = datetime.now(UTC).isoformat()
        run_data["id_mappings"] = self.get_mappings(run_id)

        try:
            output_path = Path(output_path)
            output_path.parent.mkdir(parents=True, exist_ok=True)
            output_path.write_text(json.dumps(run_data, indent=2, default=str))
        except OSError as e:
            raise StateError(f"Failed to export run {run_id}: {e}") from e

        logger.info(
            "Exported import run",
            run_id=run_id,
            output_path=str(output_path),
            mappings=len(run_data["id_mappings"]),
        )

    def close(self) -> None:
        """Dispose the state database engine."""
        dispose_database(self.database_url)
