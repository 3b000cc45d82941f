"""
API endpoints for trip telemetry and trip alerts.
"""
from typing import List, Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from transitops.api.v1.deps import get_db, get_trip_or_404
from transitops.api.v1.endpoints.alerts import build_alert_response
from transitops.core.thresholds import load_alert_thresholds
from transitops.models.alert import TripAlert
from transitops.models.trip import Trip
from transitops.schemas.tracking import (
    AlertResultItem,
    LocationIngestRequest,
    LocationIngestResponse,
    TripAlertResponse,
)
from transitops.services.trip_alerts import ingest_location


router = APIRouter(prefix="/trips", tags=["Trip Tracking"])


@router.post(
    "/{trip_id}/locations",
    response_model=LocationIngestResponse,
    summary="Ingest a location point",
)
def post_location(
    request: LocationIngestRequest,
    trip: Trip = Depends(get_trip_or_404),
    db: Session = Depends(get_db),
):
    """
    Record one telemetry sample and run the location-triggered alert checks
    (route deviation, stoppage) before returning. A fresh point resolves any
    tracking-lost or idle alert on the trip.
    """
    thresholds = load_alert_thresholds(db)
    point, results = ingest_location(
        db,
        trip,
        request.latitude,
        request.longitude,
        thresholds,
        speed=request.speed,
        heading=request.heading,
        accuracy_meters=request.accuracy_meters,
        source=request.source,
        event_time=request.timestamp,
        vehicle_id=request.vehicle_id,
    )
    db.refresh(trip)
    return LocationIngestResponse(
        location_id=point.id,
        trip_id=trip.id,
        event_time=point.event_time,
        active_alert_count=trip.active_alert_count,
        results=[
            AlertResultItem(
                trip_id=r.trip_id,
                alert_type=r.alert_type,
                created=r.created,
                resolved=r.resolved,
                message=r.message,
            )
            for r in results
        ],
    )


@router.get(
    "/{trip_id}/alerts",
    response_model=List[TripAlertResponse],
    summary="List alerts for a trip",
)
def list_trip_alerts(
    trip: Trip = Depends(get_trip_or_404),
    status: Optional[str] = Query(None, description="Filter by alert status"),
    db: Session = Depends(get_db),
):
    query = db.query(TripAlert).filter(TripAlert.trip_id == trip.id)
    if status:
        query = query.filter(TripAlert.status == status)
    alerts = query.order_by(TripAlert.triggered_at.desc(), TripAlert.id.desc()).all()
    return [build_alert_response(a) for a in alerts]
