# app/repositories/wrappers.py
"""Definition store: versioned pipeline records."""
from typing import Any, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.models.pipeline import STATUS_ACTIVE, STATUS_INACTIVE, PipelineRecord
from wrapflow.engine.errors import ConflictError


def get_active_by_name(db: Session, wrapper_id: str, wrapper_name: str) -> PipelineRecord | None:
    return (
        db.query(PipelineRecord)
        .filter(
            PipelineRecord.wrapper_id == wrapper_id,
            PipelineRecord.wrapper_name == wrapper_name,
            PipelineRecord.status == STATUS_ACTIVE,
        )
        .order_by(PipelineRecord.version.desc())
        .first()
    )


def get_by_id_version(db: Session, wrapper_id: str, version: int, account_id: str) -> PipelineRecord | None:
    return (
        db.query(PipelineRecord)
        .filter(
            PipelineRecord.wrapper_id == wrapper_id,
            PipelineRecord.version == version,
            PipelineRecord.account_id == account_id,
        )
        .first()
    )


def get_latest_active_by_id(db: Session, wrapper_id: str, account_id: str) -> PipelineRecord | None:
    return (
        db.query(PipelineRecord)
        .filter(
            PipelineRecord.wrapper_id == wrapper_id,
            PipelineRecord.account_id == account_id,
            PipelineRecord.status == STATUS_ACTIVE,
        )
        .order_by(PipelineRecord.version.desc())
        .first()
    )


def find_active_for_account(db: Session, account_id: str, wrapper_name: str) -> PipelineRecord | None:
    return (
        db.query(PipelineRecord)
        .filter(
            PipelineRecord.account_id == account_id,
            PipelineRecord.wrapper_name == wrapper_name,
            PipelineRecord.status == STATUS_ACTIVE,
        )
        .order_by(PipelineRecord.version.desc())
        .first()
    )


def insert_version(
    db: Session,
    *,
    wrapper_id: str,
    wrapper_name: str,
    account_id: str,
    version: int,
    stages: list[dict[str, Any]],
    created_by: Optional[str] = None,
    previous: Optional[PipelineRecord] = None,
) -> PipelineRecord:
    """
    Flip `previous` to inactive and insert the new active version in one transaction.
    Either both writes are committed or neither is.
    """
    record = PipelineRecord(
        wrapper_id=wrapper_id,
        wrapper_name=wrapper_name,
        account_id=account_id,
        version=version,
        status=STATUS_ACTIVE,
        stages=stages,
        created_by=created_by,
    )
    try:
        if previous is not None:
            previous.status = STATUS_INACTIVE
            # eerst flushen: de partiële unique index staat maar één actieve rij toe
            db.flush()
        db.add(record)
        db.commit()
    except IntegrityError as e:
        db.rollback()
        raise ConflictError(
            f"Wrapper version already exists (wrapperId={wrapper_id}, version={version}, "
            f"accountId={account_id}, wrapperName={wrapper_name})"
        ) from e

    db.refresh(record)
    return record
