from __future__ import annotations
import uuid
from datetime import datetime
from sqlalchemy import Boolean, String, DateTime, Enum, ForeignKey, Integer, JSON, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship
from deploy_pipeline.db.session import Base
from deploy_pipeline.core.workflow import RunStatus, StageStatus


def _values(enum_cls):
    return [member.value for member in enum_cls]


class PipelineRun(Base):
    __tablename__ = "pipeline_runs"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    started_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    finished_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    branch: Mapped[str] = mapped_column(String(255), nullable=False)
    commit: Mapped[str] = mapped_column(String(64), nullable=False)

    status: Mapped[RunStatus] = mapped_column(
        Enum(RunStatus, native_enum=False, length=20, values_callable=_values),
        default=RunStatus.PENDING, nullable=False,
    )
    cancel_requested: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    artifact: Mapped[str | None] = mapped_column(String(512), nullable=True)

    stage_results: Mapped[list["StageResult"]] = relationship(
        back_populates="run",
        cascade="all, delete-orphan",
        order_by="StageResult.position",
    )


class StageResult(Base):
    __tablename__ = "stage_results"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    run_id: Mapped[str] = mapped_column(ForeignKey("pipeline_runs.id", ondelete="CASCADE"), nullable=False, index=True)
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    stage: Mapped[str] = mapped_column(String(100), nullable=False)

    status: Mapped[StageStatus] = mapped_column(
        Enum(StageStatus, native_enum=False, length=20, values_callable=_values),
        default=StageStatus.RUNNING, nullable=False,
    )
    log: Mapped[list] = mapped_column(JSON, default=list, nullable=False)
    exit_code: Mapped[int | None] = mapped_column(Integer, nullable=True)
    error_kind: Mapped[str | None] = mapped_column(String(50), nullable=True)
    message: Mapped[str | None] = mapped_column(Text, nullable=True)
    artifact: Mapped[str | None] = mapped_column(String(512), nullable=True)

    started_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    finished_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    run: Mapped[PipelineRun] = relationship(back_populates="stage_results")
