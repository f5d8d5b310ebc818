# app/models/pipeline.py
from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from sqlalchemy import JSON, DateTime, Index, Integer, String, UniqueConstraint, func, text
from sqlalchemy.orm import Mapped, mapped_column

from app.db import Base

STATUS_ACTIVE = "active"
STATUS_INACTIVE = "inactive"


class PipelineRecord(Base):
    """One immutable version of a pipeline definition. Only `status` ever changes."""

    __tablename__ = "pipelines"
    __table_args__ = (
        UniqueConstraint("wrapper_id", "version", "account_id", name="uq_pipeline_version"),
        Index("ix_pipeline_wrapper_name_status", "wrapper_id", "wrapper_name", "status"),
        # hooguit één actieve versie per (account, naam)
        Index(
            "uq_pipeline_active_name",
            "account_id",
            "wrapper_name",
            unique=True,
            sqlite_where=text("status = 'active'"),
            postgresql_where=text("status = 'active'"),
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    wrapper_id: Mapped[str] = mapped_column(String(64), index=True, nullable=False)
    wrapper_name: Mapped[str] = mapped_column(String(255), nullable=False)
    account_id: Mapped[str] = mapped_column(String(255), index=True, nullable=False)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=STATUS_ACTIVE)
    stages: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False)
    created_by: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    def to_dict(self) -> dict[str, Any]:
        return {
            "wrapperId": self.wrapper_id,
            "wrapperName": self.wrapper_name,
            "accountId": self.account_id,
            "version": self.version,
            "status": self.status,
            "stages": self.stages,
            "createdBy": self.created_by,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
            "updatedAt": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self) -> str:
        return (
            f"<PipelineRecord wrapper_id={self.wrapper_id} account={self.account_id} "
            f"name={self.wrapper_name} version={self.version} status={self.status}>"
        )
