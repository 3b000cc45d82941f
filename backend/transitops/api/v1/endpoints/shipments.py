"""
API endpoints for shipment status transitions and history.
"""
from typing import List
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from transitops.api.v1.deps import get_db, get_shipment_or_404
from transitops.core.status_config import get_next_sub_status, get_sub_status_flow
from transitops.exceptions import ConcurrencyError, InvalidTransitionError, StorageError
from transitops.models.shipment import Shipment
from transitops.schemas.shipment import (
    AllowedTransitionsResponse,
    ShipmentStatusResponse,
    StatusChangeRequest,
    StatusHistoryEntry,
    SubStatusChangeRequest,
)
from transitops.services.shipment_status import (
    TransitionOutcome,
    advance_sub_status,
    transition_shipment,
)
from transitops.services.shipment_validation import get_allowed_transitions
from transitops.services.status_history import get_shipment_status_history


router = APIRouter(prefix="/shipments", tags=["Shipment Status"])


def _raise_for_outcome(outcome: TransitionOutcome, shipment_status: str, allowed: List[str]) -> None:
    """Turn a failed transition into the matching API error."""
    if not outcome.check.valid:
        raise InvalidTransitionError(
            outcome.check.message,
            current_state=shipment_status,
            allowed_states=allowed,
            missing_fields=outcome.check.missing_fields,
        )
    if outcome.update is not None and outcome.update.conflict:
        raise ConcurrencyError(outcome.error, details={"current_state": shipment_status})
    if not outcome.success:
        raise StorageError(outcome.error)


@router.post(
    "/{shipment_id}/status",
    response_model=ShipmentStatusResponse,
    summary="Change shipment status",
)
def change_status(
    request: StatusChangeRequest,
    shipment: Shipment = Depends(get_shipment_or_404),
    db: Session = Depends(get_db),
):
    """
    Move a shipment to a new main status.

    The transition table and cross-field checks (mandatory fields, trip and
    vehicle linkage, POD completion) must all pass; otherwise nothing changes
    and a 400 INVALID_TRANSITION is returned with the reason.
    """
    current_status = shipment.status
    allowed = get_allowed_transitions(shipment)
    outcome = transition_shipment(
        db,
        shipment,
        request.new_status,
        request.new_sub_status,
        change_source=request.change_source.value,
        changed_by=request.changed_by,
        notes=request.notes,
        metadata=request.metadata,
    )
    _raise_for_outcome(outcome, current_status, allowed)
    db.refresh(shipment)
    return shipment


@router.post(
    "/{shipment_id}/sub-status",
    response_model=ShipmentStatusResponse,
    summary="Advance shipment sub-status",
)
def change_sub_status(
    request: SubStatusChangeRequest,
    shipment: Shipment = Depends(get_shipment_or_404),
    db: Session = Depends(get_db),
):
    """Advance to the next sub-status of the current status (no skipping, no going back)."""
    current_status = shipment.status
    next_step = get_next_sub_status(shipment.status, shipment.sub_status)
    outcome = advance_sub_status(
        db,
        shipment,
        request.new_sub_status,
        change_source=request.change_source.value,
        changed_by=request.changed_by,
        notes=request.notes,
    )
    _raise_for_outcome(outcome, current_status, [next_step] if next_step else [])
    db.refresh(shipment)
    return shipment


@router.get(
    "/{shipment_id}/status-history",
    response_model=List[StatusHistoryEntry],
    summary="Shipment status timeline",
)
def status_history(
    shipment: Shipment = Depends(get_shipment_or_404),
    db: Session = Depends(get_db),
):
    """Every recorded status change for the shipment, oldest first."""
    return [
        StatusHistoryEntry(
            id=entry.id,
            previous_status=entry.previous_status,
            new_status=entry.new_status,
            previous_sub_status=entry.previous_sub_status,
            new_sub_status=entry.new_sub_status,
            changed_by=entry.changed_by,
            change_source=entry.change_source,
            notes=entry.notes,
            metadata=entry.change_metadata,
            changed_at=entry.changed_at,
        )
        for entry in get_shipment_status_history(db, shipment.id)
    ]


@router.get(
    "/{shipment_id}/allowed-transitions",
    response_model=AllowedTransitionsResponse,
    summary="Statuses a shipment may move to next",
)
def allowed_transitions(shipment: Shipment = Depends(get_shipment_or_404)):
    return AllowedTransitionsResponse(
        shipment_id=shipment.id,
        current_status=shipment.status,
        current_sub_status=shipment.sub_status,
        allowed_statuses=get_allowed_transitions(shipment),
        sub_status_flow=get_sub_status_flow(shipment.status),
        next_sub_status=get_next_sub_status(shipment.status, shipment.sub_status),
    )
