"""
API Dependencies

Database session, entity lookups and the shared-secret check for
scheduler-triggered endpoints.
"""
import secrets
from typing import Optional

from fastapi import Depends, Header
from sqlalchemy.orm import Session

from transitops.core.config import settings
from transitops.db.session import get_db
from transitops.exceptions import AuthenticationError, NotFoundError
from transitops.models.alert import TripAlert
from transitops.models.shipment import Shipment
from transitops.models.trip import Trip

__all__ = [
    "get_db",
    "get_shipment_or_404",
    "get_trip_or_404",
    "get_trip_alert_or_404",
    "require_monitor_key",
]


def get_shipment_or_404(shipment_id: int, db: Session = Depends(get_db)) -> Shipment:
    shipment = db.get(Shipment, shipment_id)
    if shipment is None:
        raise NotFoundError("Shipment", shipment_id)
    return shipment


def get_trip_or_404(trip_id: int, db: Session = Depends(get_db)) -> Trip:
    trip = db.get(Trip, trip_id)
    if trip is None:
        raise NotFoundError("Trip", trip_id)
    return trip


def get_trip_alert_or_404(alert_id: int, db: Session = Depends(get_db)) -> TripAlert:
    alert = db.get(TripAlert, alert_id)
    if alert is None:
        raise NotFoundError("Trip alert", alert_id)
    return alert


async def require_monitor_key(
    x_monitor_key: Optional[str] = Header(None, alias="X-Monitor-Key"),
) -> None:
    """
    Guard for sweep endpoints.

    When MONITOR_API_KEY is unset the endpoints are open (local development).
    """
    expected = settings.MONITOR_API_KEY
    if not expected:
        return
    if not x_monitor_key or not secrets.compare_digest(x_monitor_key, expected):
        raise AuthenticationError("Invalid or missing monitor key")
