"""
Shipment Status Workflow

Validated entry points for moving a shipment: a main status transition or a
sub-status advance. Both run the rule checks first and only write (through
the status history service) when every check passes.

Also holds the shipment delay helpers.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from transitops.core.status_config import ChangeSource, ShipmentStatus
from transitops.logging_config import get_logger
from transitops.models.shipment import Shipment
from transitops.models.trip import Trip
from transitops.services.shipment_validation import (
    TransitionCheck,
    validate_shipment_transition,
    validate_sub_status_progression,
)
from transitops.services.status_history import (
    StatusUpdateResult,
    update_shipment_status,
    update_shipment_sub_status,
)

logger = get_logger(__name__)

DEFAULT_DELAY_FLAG_THRESHOLD = 15.0  # percent of TAT

CLOSED_SHIPMENT_STATUSES = {ShipmentStatus.SUCCESS.value, ShipmentStatus.RETURNED.value}


@dataclass
class TransitionOutcome:
    """Result of a validated status change"""
    check: TransitionCheck
    update: Optional[StatusUpdateResult] = None

    @property
    def success(self) -> bool:
        return self.check.valid and self.update is not None and self.update.success

    @property
    def error(self) -> Optional[str]:
        if not self.check.valid:
            return self.check.message
        if self.update is not None and not self.update.success:
            return self.update.error
        return None


def transition_shipment(
    db: Session,
    shipment: Shipment,
    new_status: str,
    new_sub_status: Optional[str] = None,
    *,
    change_source: str = ChangeSource.MANUAL.value,
    changed_by: Optional[str] = None,
    notes: Optional[str] = None,
    metadata: Optional[Dict[str, Any]] = None,
    now: Optional[datetime] = None,
) -> TransitionOutcome:
    """
    Validate and apply a main status change.

    Sub-status resets to ``new_sub_status`` (None unless the caller enters the
    first step of the new status's flow at the same time).
    """
    check = validate_shipment_transition(db, shipment, new_status, new_sub_status)
    if not check:
        logger.info(
            f"Rejected shipment transition: {check.message}",
            extra={
                "shipment_id": shipment.id,
                "current_status": shipment.status,
                "requested_status": new_status,
                "change_source": change_source,
            },
        )
        return TransitionOutcome(check=check)

    update = update_shipment_status(
        db,
        shipment.id,
        previous_status=shipment.status,
        new_status=new_status,
        previous_sub_status=shipment.sub_status,
        new_sub_status=new_sub_status,
        change_source=change_source,
        changed_by=changed_by,
        notes=notes,
        metadata=metadata,
        now=now,
    )
    return TransitionOutcome(check=check, update=update)


def advance_sub_status(
    db: Session,
    shipment: Shipment,
    new_sub_status: str,
    *,
    change_source: str = ChangeSource.MANUAL.value,
    changed_by: Optional[str] = None,
    notes: Optional[str] = None,
    metadata: Optional[Dict[str, Any]] = None,
    now: Optional[datetime] = None,
) -> TransitionOutcome:
    """Validate and apply a sub-status step within the current main status"""
    check = validate_sub_status_progression(shipment.status, shipment.sub_status, new_sub_status)
    if not check:
        logger.info(
            f"Rejected sub-status change: {check.message}",
            extra={
                "shipment_id": shipment.id,
                "status": shipment.status,
                "current_sub_status": shipment.sub_status,
                "requested_sub_status": new_sub_status,
            },
        )
        return TransitionOutcome(check=check)

    update = update_shipment_sub_status(
        db,
        shipment.id,
        status=shipment.status,
        previous_sub_status=shipment.sub_status,
        new_sub_status=new_sub_status,
        change_source=change_source,
        changed_by=changed_by,
        notes=notes,
        metadata=metadata,
        now=now,
    )
    return TransitionOutcome(check=check, update=update)


# =============================================================================
# Delay tracking
# =============================================================================

def calculate_delay_percentage(
    planned: datetime,
    actual: datetime,
    standard_tat_hours: Optional[float] = None,
    now: Optional[datetime] = None,
) -> float:
    """
    Delay as a percentage of turn-around time.

    TAT is the lane's standard TAT when known, otherwise the time remaining
    from ``now`` until the planned time. A non-positive TAT yields 0.
    Rounded to two decimals; negative when early.
    """
    if standard_tat_hours:
        tat_seconds = standard_tat_hours * 3600
    else:
        tat_seconds = (planned - (now or datetime.utcnow())).total_seconds()

    if tat_seconds <= 0:
        return 0.0

    delay_seconds = (actual - planned).total_seconds()
    return round(delay_seconds / tat_seconds * 100, 2)


def should_auto_flag_delay(delay_percentage: float, threshold: float = DEFAULT_DELAY_FLAG_THRESHOLD) -> bool:
    return delay_percentage > threshold


def update_delay_tracking(
    db: Session,
    shipment: Shipment,
    delay_percentage: float,
    is_delayed: bool,
) -> None:
    """Set delay fields for a shipment. Flushes but does not commit."""
    shipment.delay_percentage = delay_percentage
    shipment.is_delayed = is_delayed
    db.flush()


def refresh_shipment_delay(
    db: Session,
    shipment: Shipment,
    now: Optional[datetime] = None,
    threshold: float = DEFAULT_DELAY_FLAG_THRESHOLD,
) -> Optional[float]:
    """
    Recompute and store a shipment's delay against its planned delivery time.

    Uses the delivery timestamp when delivered, otherwise ``now``. Returns the
    percentage, or None when the shipment has no planned delivery time.
    Does not commit.
    """
    if shipment.planned_delivery_time is None:
        return None

    now = now or datetime.utcnow()
    actual = shipment.delivered_at or now
    tat_hours = None
    if shipment.trip is not None and shipment.trip.lane is not None:
        tat_hours = shipment.trip.lane.standard_tat_hours

    pct = calculate_delay_percentage(shipment.planned_delivery_time, actual, tat_hours, now=now)
    update_delay_tracking(db, shipment, pct, should_auto_flag_delay(pct, threshold))
    return pct


def refresh_trip_shipment_delays(
    db: Session,
    trip: Trip,
    now: Optional[datetime] = None,
) -> int:
    """Refresh delay figures for the trip's open shipments; returns how many are delayed"""
    delayed = 0
    for shipment in trip.shipments:
        if shipment.status in CLOSED_SHIPMENT_STATUSES:
            continue
        pct = refresh_shipment_delay(db, shipment, now)
        if pct is not None and shipment.is_delayed:
            delayed += 1
    return delayed
