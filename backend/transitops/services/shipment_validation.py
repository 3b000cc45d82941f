"""
Shipment Status Validation

Rule checks for shipment status and sub-status changes. Nothing here mutates
state or raises on a rule failure; every check returns a TransitionCheck
that callers surface to the user.

Checks layered on top of the transition table:
- created -> confirmed: all mandatory fields populated
- any -> mapped: shipment linked to a trip
- mapped -> in_pickup: linked trip has a vehicle
- delivered -> success: delivered sub-status has reached "paid"
"""
from dataclasses import dataclass, field
from typing import Any, List, Optional

from sqlalchemy.orm import Session

from transitops.core.status_config import (
    MANDATORY_SHIPMENT_FIELDS,
    SUB_STATUS_LABELS,
    ShipmentStatus,
    SubStatus,
    get_allowed_shipment_transitions,
    get_next_sub_status,
    get_status_label,
    get_sub_status_flow,
    is_valid_shipment_transition,
)
from transitops.models.shipment import Shipment
from transitops.models.trip import Trip


@dataclass
class TransitionCheck:
    """Outcome of a validation: valid, or a human-readable reason"""
    valid: bool
    message: Optional[str] = None
    missing_fields: List[str] = field(default_factory=list)

    @classmethod
    def ok(cls) -> "TransitionCheck":
        return cls(valid=True)

    @classmethod
    def fail(cls, message: str, missing_fields: Optional[List[str]] = None) -> "TransitionCheck":
        return cls(valid=False, message=message, missing_fields=missing_fields or [])

    def __bool__(self) -> bool:
        return self.valid


def _sub_label(sub_status: Optional[str]) -> str:
    if sub_status is None:
        return "None"
    return SUB_STATUS_LABELS.get(sub_status, sub_status)


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str) and not value.strip():
        return True
    return False


def validate_status_transition(current_status: str, new_status: str) -> TransitionCheck:
    """Check a main status change against the transition table only"""
    if not is_valid_shipment_transition(current_status, new_status):
        return TransitionCheck.fail(
            f"Cannot transition from {get_status_label(current_status)} "
            f"to {get_status_label(new_status)}"
        )
    return TransitionCheck.ok()


def validate_mandatory_fields(shipment: Any) -> TransitionCheck:
    """
    Check that every mandatory shipment field is populated.

    Accepts a Shipment or any object/dict with the same attribute names.
    The failure message lists exactly the missing fields, in declaration order.
    """
    missing = []
    for name in MANDATORY_SHIPMENT_FIELDS:
        if isinstance(shipment, dict):
            value = shipment.get(name)
        else:
            value = getattr(shipment, name, None)
        if _is_blank(value):
            missing.append(name)

    if missing:
        return TransitionCheck.fail(
            f"Missing required fields: {', '.join(missing)}",
            missing_fields=missing,
        )
    return TransitionCheck.ok()


def validate_trip_linkage(trip_id: Optional[int]) -> TransitionCheck:
    """A shipment can only be mapped once it is linked to a trip"""
    if trip_id is None:
        return TransitionCheck.fail("Shipment must be linked to a trip before mapping")
    return TransitionCheck.ok()


def validate_vehicle_linkage(trip: Optional[Trip]) -> TransitionCheck:
    """Pickup needs a vehicle on the linked trip"""
    if trip is None:
        return TransitionCheck.fail("Trip not found")
    if trip.vehicle_id is None:
        return TransitionCheck.fail("Trip must have a vehicle assigned before pickup")
    return TransitionCheck.ok()


def validate_delivery_completion(sub_status: Optional[str]) -> TransitionCheck:
    """A delivered shipment can only close once its POD flow reached Paid"""
    if sub_status != SubStatus.PAID.value:
        return TransitionCheck.fail(
            "Shipment can only be marked Success after POD Cleaned → Billed → Paid "
            f"(current sub-status: {_sub_label(sub_status)})"
        )
    return TransitionCheck.ok()


def validate_sub_status_progression(
    status: str,
    current_sub_status: Optional[str],
    new_sub_status: str,
) -> TransitionCheck:
    """
    Check a sub-status advance within a main status.

    Only the immediate next step in the status's flow is accepted. A current
    value that is absent (or not part of the flow) counts as "before the first
    step", so the first step is the only valid entry point.
    """
    flow = get_sub_status_flow(status)
    if not flow:
        return TransitionCheck.fail(
            f"No sub-statuses defined for {get_status_label(status)}"
        )

    if new_sub_status not in flow:
        return TransitionCheck.fail(f"Invalid sub-status: {new_sub_status}")

    current_index = flow.index(current_sub_status) if current_sub_status in flow else -1
    new_index = flow.index(new_sub_status)

    if new_index == current_index:
        return TransitionCheck.fail(f"Sub-status is already {_sub_label(new_sub_status)}")

    if new_index < current_index:
        return TransitionCheck.fail(
            f"Cannot go back from {_sub_label(current_sub_status)} to {_sub_label(new_sub_status)}"
        )

    if new_index > current_index + 1:
        expected = get_next_sub_status(status, current_sub_status)
        return TransitionCheck.fail(
            f"Cannot skip to {_sub_label(new_sub_status)}; "
            f"next step is {_sub_label(expected)}"
        )

    return TransitionCheck.ok()


def validate_shipment_transition(
    db: Session,
    shipment: Shipment,
    new_status: str,
    new_sub_status: Optional[str] = None,
) -> TransitionCheck:
    """
    Run every check for a main status change, stopping at the first failure.

    ``new_sub_status`` is the optional sub-status to enter together with the
    new status; it must be the first step of the new status's flow.
    """
    current_status = shipment.status

    # Mapping without a trip is rejected before the table is consulted
    if new_status == ShipmentStatus.MAPPED:
        check = validate_trip_linkage(shipment.trip_id)
        if not check:
            return check

    check = validate_status_transition(current_status, new_status)
    if not check:
        return check

    if current_status == ShipmentStatus.CREATED and new_status == ShipmentStatus.CONFIRMED:
        check = validate_mandatory_fields(shipment)
        if not check:
            return check

    if current_status == ShipmentStatus.MAPPED and new_status == ShipmentStatus.IN_PICKUP:
        trip = db.get(Trip, shipment.trip_id) if shipment.trip_id is not None else None
        check = validate_vehicle_linkage(trip)
        if not check:
            return check

    if current_status == ShipmentStatus.DELIVERED and new_status == ShipmentStatus.SUCCESS:
        check = validate_delivery_completion(shipment.sub_status)
        if not check:
            return check

    if new_sub_status is not None:
        # Sub-status resets on a main status change, so the new flow starts fresh
        check = validate_sub_status_progression(new_status, None, new_sub_status)
        if not check:
            return check

    return TransitionCheck.ok()


def get_allowed_transitions(shipment: Shipment) -> List[str]:
    """Next statuses permitted by the table (cross-field checks not applied)"""
    return get_allowed_shipment_transitions(shipment.status)
