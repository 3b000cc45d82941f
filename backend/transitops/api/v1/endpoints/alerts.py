"""
API endpoints for manual trip alert actions.
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from transitops.api.v1.deps import get_db, get_trip_alert_or_404
from transitops.core.status_config import AlertStatus
from transitops.models.alert import TripAlert
from transitops.schemas.tracking import AlertActionRequest, TripAlertResponse
from transitops.services.trip_alerts import update_alert_status


router = APIRouter(prefix="/alerts", tags=["Trip Alerts"])


def build_alert_response(alert: TripAlert) -> TripAlertResponse:
    """Build response from alert model."""
    return TripAlertResponse(
        id=alert.id,
        trip_id=alert.trip_id,
        alert_type=alert.alert_type,
        title=alert.title,
        description=alert.description,
        severity=alert.severity,
        status=alert.status,
        threshold_value=alert.threshold_value,
        actual_value=alert.actual_value,
        location_latitude=alert.location_latitude,
        location_longitude=alert.location_longitude,
        metadata=alert.alert_metadata,
        triggered_at=alert.triggered_at,
        acknowledged_at=alert.acknowledged_at,
        acknowledged_by=alert.acknowledged_by,
        resolved_at=alert.resolved_at,
        resolved_by=alert.resolved_by,
    )


def _apply(db: Session, alert: TripAlert, new_status: AlertStatus, request: AlertActionRequest):
    alert = update_alert_status(
        db, alert, new_status.value, user=request.user, notes=request.notes
    )
    return build_alert_response(alert)


@router.post("/{alert_id}/acknowledge", response_model=TripAlertResponse)
def acknowledge_alert(
    request: AlertActionRequest = AlertActionRequest(),
    alert: TripAlert = Depends(get_trip_alert_or_404),
    db: Session = Depends(get_db),
):
    """Mark an active alert as seen. It still blocks duplicates and counts as open."""
    return _apply(db, alert, AlertStatus.ACKNOWLEDGED, request)


@router.post("/{alert_id}/resolve", response_model=TripAlertResponse)
def resolve_alert(
    request: AlertActionRequest = AlertActionRequest(),
    alert: TripAlert = Depends(get_trip_alert_or_404),
    db: Session = Depends(get_db),
):
    return _apply(db, alert, AlertStatus.RESOLVED, request)


@router.post("/{alert_id}/dismiss", response_model=TripAlertResponse)
def dismiss_alert(
    request: AlertActionRequest = AlertActionRequest(),
    alert: TripAlert = Depends(get_trip_alert_or_404),
    db: Session = Depends(get_db),
):
    """Close an alert as a false positive."""
    return _apply(db, alert, AlertStatus.DISMISSED, request)
