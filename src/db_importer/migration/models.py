"""
SQLAlchemy models for import state tracking.

This module defines the schema of the optional state database, which keeps
a record of each import run and the source-to-target ID mappings it made.
"""

from datetime import datetime
from typing import Any

from sqlalchemy import (
    JSON,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


class ImportRun(Base):
    """
    One execution of the import engine.

    Runs are written once the engine finishes, whether it succeeded or
    stopped on a failure.
    """

    __tablename__ = "import_runs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    run_id: Mapped[str] = mapped_column(
        String(64), nullable=False, unique=True, index=True, comment="Run identifier (UUID)"
    )
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, comment="Run status: completed or failed"
    )
    started_at: Mapped[datetime | None] = mapped_column(
        DateTime, nullable=True, comment="When the run started"
    )
    finished_at: Mapped[datetime | None] = mapped_column(
        DateTime, nullable=True, comment="When the run finished"
    )
    error_message: Mapped[str | None] = mapped_column(
        Text, nullable=True, comment="Failure description if the run failed"
    )
    summary: Mapped[dict[str, Any] | None] = mapped_column(
        JSON, nullable=True, comment="Per-table statistics"
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, server_default=func.now(), comment="When record was created"
    )

    id_mappings: Mapped[list["IDMapping"]] = relationship(
        "IDMapping", back_populates="run", cascade="all, delete-orphan"
    )

    __table_args__ = (
        CheckConstraint("status IN ('completed', 'failed')", name="ck_import_runs_status"),
    )

    def __repr__(self) -> str:
        return f"<ImportRun(id={self.id}, run_id='{self.run_id}', status='{self.status}')>"


class IDMapping(Base):
    """
    Maps a source row ID to the target record ID it was imported as.

    Source and target identifiers are stored as strings so that integer,
    UUID and natural-string keys all fit the same column.
    """

    __tablename__ = "id_mappings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    run_pk: Mapped[int] = mapped_column(
        Integer, ForeignKey("import_runs.id", ondelete="CASCADE"), nullable=False, index=True
    )
    entity_type: Mapped[str] = mapped_column(
        String(100), nullable=False, index=True, comment="Target entity type"
    )
    source_id: Mapped[str] = mapped_column(
        String(255), nullable=False, comment="ID of the row in the source table"
    )
    target_id: Mapped[str] = mapped_column(
        String(255), nullable=False, comment="ID of the record in the target store"
    )
    position: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, comment="Order in which the mapping was recorded"
    )

    run: Mapped["ImportRun"] = relationship("ImportRun", back_populates="id_mappings")

    __table_args__ = (
        UniqueConstraint("run_pk", "entity_type", "source_id", name="uq_run_entity_source"),
        Index("idx_entity_type_target_id", "entity_type", "target_id"),
    )

    def __repr__(self) -> str:
        return (
            f"<IDMapping(entity_type='{self.entity_type}', "
            f"source_id='{self.source_id}', target_id='{self.target_id}')>"
        )
