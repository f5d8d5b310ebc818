# app/services/wrapper_service.py
import uuid
from typing import Any, Optional

from sqlalchemy.orm import Session

from app.config import settings
from app.core.logging_config import logger
from app.models.pipeline import PipelineRecord
from app.repositories import wrappers as wrapper_repo
from wrapflow.engine import PipelineDefinition, PipelineNotFound, load_pipeline_definition
from wrapflow.engine.validation import validate_pipeline_payload


def generate_wrapper_id() -> str:
    return uuid.uuid4().hex


def create_wrapper(db: Session, payload_raw: Any, created_by: Optional[str] = None) -> PipelineRecord:
    """
    Register a pipeline definition.

    The first registration of (accountId, wrapperName) gets a fresh wrapperId at
    version 1. Registering again reuses the wrapperId, bumps the version by one
    and flips the previous active version to inactive.
    """
    # 1) valideren; faalt als geheel, nooit half geregistreerd
    payload = validate_pipeline_payload(payload_raw, max_stages=settings.max_stages_per_pipeline)

    # 2) bestaande actieve versie voor dit account + naam
    existing = wrapper_repo.find_active_for_account(db, payload["accountId"], payload["wrapperName"])

    if existing is not None:
        wrapper_id = existing.wrapper_id
        version = existing.version + 1
    else:
        wrapper_id = generate_wrapper_id()
        version = 1

    # 3) nieuwe versie + oude inactief, in één transactie
    record = wrapper_repo.insert_version(
        db,
        wrapper_id=wrapper_id,
        wrapper_name=payload["wrapperName"],
        account_id=payload["accountId"],
        version=version,
        stages=payload["stages"],
        created_by=created_by,
        previous=existing,
    )
    logger.info(
        "wrapper_registered",
        wrapper_id=record.wrapper_id,
        account_id=record.account_id,
        wrapper_name=record.wrapper_name,
        version=record.version,
    )
    return record


def get_wrapper(db: Session, wrapper_id: str, version: Optional[int], account_id: str) -> PipelineRecord | None:
    if version is not None:
        return wrapper_repo.get_by_id_version(db, wrapper_id, version, account_id)
    return wrapper_repo.get_latest_active_by_id(db, wrapper_id, account_id)


def load_active_definition(db: Session, wrapper_id: str, wrapper_name: str) -> PipelineDefinition:
    """Active definition for an invocation; ``PipelineNotFound`` when there is none."""
    record = wrapper_repo.get_active_by_name(db, wrapper_id, wrapper_name)
    if record is None:
        raise PipelineNotFound(f"Wrapper not found: {wrapper_id}/{wrapper_name}")
    return load_pipeline_definition(record.to_dict())
