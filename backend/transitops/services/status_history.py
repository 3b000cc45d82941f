"""
Shipment Status History Service

Writes shipment status/sub-status changes together with their audit row.
The shipment update and the history insert are committed in one
transaction; a storage failure rolls both back and is reported as a
generic error (the driver detail goes to the log only).

History rows are append-only: nothing in this module edits or deletes them.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from transitops.core.status_config import (
    STATUS_TIMESTAMP_FIELDS,
    SUB_STATUS_TIMESTAMP_FIELDS,
    ChangeSource,
)
from transitops.logging_config import get_logger
from transitops.models.shipment import Shipment, ShipmentStatusHistory

logger = get_logger(__name__)

STORAGE_ERROR_MESSAGE = "Failed to update shipment status. Please try again."


@dataclass
class StatusUpdateResult:
    success: bool
    error: Optional[str] = None
    conflict: bool = False
    history: Optional[ShipmentStatusHistory] = None


def log_status_change(
    db: Session,
    shipment_id: int,
    previous_status: Optional[str],
    new_status: str,
    previous_sub_status: Optional[str] = None,
    new_sub_status: Optional[str] = None,
    change_source: str = ChangeSource.MANUAL.value,
    changed_by: Optional[str] = None,
    notes: Optional[str] = None,
    metadata: Optional[Dict[str, Any]] = None,
    changed_at: Optional[datetime] = None,
) -> ShipmentStatusHistory:
    """
    Record a status history row for a shipment.

    Args:
        db: Database session
        shipment_id: ID of the shipment
        previous_status / new_status: Main status before and after
        previous_sub_status / new_sub_status: Sub-status before and after
        change_source: manual, geofence, api or system
        changed_by: User identifier, None for automation
        notes: Free text shown on the timeline
        metadata: Extra context (e.g. geofence distance)
        changed_at: When the change happened (defaults to now)

    Returns:
        The created ShipmentStatusHistory instance
    """
    entry = ShipmentStatusHistory(
        shipment_id=shipment_id,
        previous_status=previous_status,
        new_status=new_status,
        previous_sub_status=previous_sub_status,
        new_sub_status=new_sub_status,
        change_source=ChangeSource(change_source).value,
        changed_by=changed_by,
        notes=notes,
        change_metadata=metadata,
        changed_at=changed_at or datetime.utcnow(),
    )
    db.add(entry)
    # Don't commit - let the calling function handle the transaction
    return entry


def _stamp_timestamps(
    shipment: Shipment,
    status_changed: bool,
    new_status: str,
    new_sub_status: Optional[str],
    now: datetime,
) -> None:
    if status_changed and new_status in STATUS_TIMESTAMP_FIELDS:
        setattr(shipment, STATUS_TIMESTAMP_FIELDS[new_status], now)
    if new_sub_status in SUB_STATUS_TIMESTAMP_FIELDS:
        setattr(shipment, SUB_STATUS_TIMESTAMP_FIELDS[new_sub_status], now)


def update_shipment_status(
    db: Session,
    shipment_id: int,
    previous_status: str,
    new_status: str,
    previous_sub_status: Optional[str] = None,
    new_sub_status: Optional[str] = None,
    *,
    change_source: str = ChangeSource.MANUAL.value,
    changed_by: Optional[str] = None,
    notes: Optional[str] = None,
    metadata: Optional[Dict[str, Any]] = None,
    now: Optional[datetime] = None,
) -> StatusUpdateResult:
    """
    Apply a status change and append its history row in one transaction.

    The caller is expected to have validated the change already.
    ``previous_status`` must match the stored status; if another writer moved
    the shipment in the meantime nothing is written.
    """
    now = now or datetime.utcnow()

    shipment = db.get(Shipment, shipment_id)
    if shipment is None:
        return StatusUpdateResult(success=False, error="Shipment not found")

    if shipment.status != previous_status:
        logger.warning(
            "Shipment status changed concurrently",
            extra={
                "shipment_id": shipment_id,
                "expected_status": previous_status,
                "stored_status": shipment.status,
            },
        )
        return StatusUpdateResult(
            success=False,
            error="Shipment status has changed since it was loaded. Refresh and try again.",
            conflict=True,
        )

    status_changed = previous_status != new_status

    try:
        shipment.status = new_status
        shipment.sub_status = new_sub_status
        shipment.updated_at = now
        _stamp_timestamps(shipment, status_changed, new_status, new_sub_status, now)

        entry = log_status_change(
            db,
            shipment_id=shipment.id,
            previous_status=previous_status,
            new_status=new_status,
            previous_sub_status=previous_sub_status,
            new_sub_status=new_sub_status,
            change_source=change_source,
            changed_by=changed_by,
            notes=notes,
            metadata=metadata,
            changed_at=now,
        )
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(
            f"Failed to update shipment status: {e}",
            extra={"shipment_id": shipment_id, "new_status": new_status},
            exc_info=True,
        )
        return StatusUpdateResult(success=False, error=STORAGE_ERROR_MESSAGE)

    db.refresh(entry)
    logger.info(
        f"Shipment {shipment.shipment_code} status {previous_status}/{previous_sub_status} "
        f"-> {new_status}/{new_sub_status}",
        extra={
            "shipment_id": shipment_id,
            "previous_status": previous_status,
            "new_status": new_status,
            "new_sub_status": new_sub_status,
            "change_source": change_source,
        },
    )
    return StatusUpdateResult(success=True, history=entry)


def update_shipment_sub_status(
    db: Session,
    shipment_id: int,
    status: str,
    previous_sub_status: Optional[str],
    new_sub_status: str,
    *,
    change_source: str = ChangeSource.MANUAL.value,
    changed_by: Optional[str] = None,
    notes: Optional[str] = None,
    metadata: Optional[Dict[str, Any]] = None,
    now: Optional[datetime] = None,
) -> StatusUpdateResult:
    """Sub-status-only change: the history row carries the same main status twice"""
    return update_shipment_status(
        db,
        shipment_id,
        previous_status=status,
        new_status=status,
        previous_sub_status=previous_sub_status,
        new_sub_status=new_sub_status,
        change_source=change_source,
        changed_by=changed_by,
        notes=notes,
        metadata=metadata,
        now=now,
    )


def get_shipment_status_history(db: Session, shipment_id: int) -> List[ShipmentStatusHistory]:
    """Timeline for a shipment, oldest first"""
    return (
        db.query(ShipmentStatusHistory)
        .filter(ShipmentStatusHistory.shipment_id == shipment_id)
        .order_by(ShipmentStatusHistory.changed_at.asc(), ShipmentStatusHistory.id.asc())
        .all()
    )
