from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from resolve.core.logger import logger
from resolve.db.database import transaction
from resolve.db.models import (
    Contract,
    ContractStatus,
    TimelineEntry,
    TimelineEventType,
    TimelineStatus,
    User,
)
from resolve.services import entitlement_service
from resolve.services.case_service import generate_number
from resolve.services.storage_service import storage_service
from resolve.utils.exceptions import InvalidTransitionError, NotFoundError, ValidationFailedError

EDITABLE_FIELDS = (
    "title",
    "client_name",
    "project_description",
    "value",
    "start_date",
    "end_date",
    "terms",
    "status",
)


def _check_status(status: Optional[str]) -> None:
    if status is not None and status not in {s.value for s in ContractStatus}:
        raise ValidationFailedError(f"Invalid contract status: {status}")


def create_contract(db: Session, user: User, data: Dict[str, Any]) -> Contract:
    _check_status(data.get("status"))
    entitlement_service.enforce_can_create(db, user.id, "contract")

    with transaction(db):
        contract = Contract(
            user_id=user.id,
            contract_number=generate_number("CONTRACT"),
            title=data["title"],
            client_name=data.get("client_name"),
            project_description=data.get("project_description"),
            value=data.get("value"),
            start_date=data.get("start_date"),
            end_date=data.get("end_date"),
            terms=data.get("terms"),
            status=data.get("status") or ContractStatus.draft.value,
            version_number=1,
        )
        db.add(contract)
        db.add(
            TimelineEntry(
                user_id=user.id,
                contract=contract,
                title="Contract created",
                description=f"Contract {contract.contract_number} created",
                event_type=TimelineEventType.milestone.value,
                event_date=datetime.utcnow(),
                status=TimelineStatus.completed.value,
                is_completed=True,
                completed_at=datetime.utcnow(),
            )
        )
        db.flush()
        entitlement_service.recheck_after_insert(db, user.id, "contract")

    db.refresh(contract)
    logger.info("Created contract %s for user %s", contract.contract_number, user.id)
    return contract


def get_contract(db: Session, contract_id: UUID, user_id: UUID) -> Contract:
    contract = (
        db.query(Contract)
        .filter(Contract.id == contract_id, Contract.user_id == user_id)
        .first()
    )
    if contract is None:
        raise NotFoundError("Contract", contract_id)
    return contract


def list_contracts(db: Session, user_id: UUID) -> List[Contract]:
    return (
        db.query(Contract)
        .filter(Contract.user_id == user_id)
        .order_by(Contract.created_at.desc())
        .all()
    )


def update_contract(db: Session, contract_id: UUID, user_id: UUID, changes: Dict[str, Any]) -> Contract:
    _check_status(changes.get("status"))
    contract = get_contract(db, contract_id, user_id)
    if contract.status == ContractStatus.signed.value and changes.get("status") not in (None, ContractStatus.signed.value):
        raise InvalidTransitionError("contract", contract.status, changes["status"])
    for field in EDITABLE_FIELDS:
        if field in changes:
            setattr(contract, field, changes[field])
    db.commit()
    db.refresh(contract)
    return contract


def create_version(db: Session, contract_id: UUID, user_id: UUID, changes: Dict[str, Any]) -> Contract:
    """Apply edits as a new revision: bumps version_number and resets status to draft."""
    contract = get_contract(db, contract_id, user_id)
    for field in EDITABLE_FIELDS:
        if field in changes and field != "status":
            setattr(contract, field, changes[field])
    contract.version_number = (contract.version_number or 1) + 1
    contract.status = ContractStatus.draft.value
    db.add(
        TimelineEntry(
            user_id=user_id,
            contract_id=contract.id,
            title=f"Version {contract.version_number} created",
            event_type=TimelineEventType.document.value,
            event_date=datetime.utcnow(),
            status=TimelineStatus.completed.value,
            is_completed=True,
            completed_at=datetime.utcnow(),
        )
    )
    db.commit()
    db.refresh(contract)
    logger.info("Contract %s now at version %s", contract.contract_number, contract.version_number)
    return contract


def delete_contract(db: Session, contract_id: UUID, user_id: UUID) -> None:
    contract = get_contract(db, contract_id, user_id)
    keys = [doc.storage_key for doc in contract.documents]
    db.delete(contract)
    db.commit()
    for key in keys:
        storage_service.delete(key)
