"""
Scheduler-triggered monitoring sweeps.

Each endpoint loads its thresholds once, runs the sweep and returns a
summary. Protected by the X-Monitor-Key header when MONITOR_API_KEY is set.
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from transitops.api.v1.deps import get_db, require_monitor_key
from transitops.core.thresholds import (
    load_alert_thresholds,
    load_compliance_thresholds,
    load_geofence_settings,
)
from transitops.schemas.monitoring import (
    ComplianceAlertListResponse,
    ComplianceAlertResponse,
    ComplianceScanResponse,
    GeofenceEventItem,
    GeofenceSweepResponse,
    TripAlertSweepResponse,
)
from transitops.schemas.tracking import AlertResultItem
from transitops.services.compliance import (
    list_open_compliance_alerts,
    run_compliance_scan,
    summarize_by_level,
)
from transitops.services.geofence import run_geofence_sweep
from transitops.services.trip_alerts import run_trip_alert_sweep


router = APIRouter(prefix="/monitoring", tags=["Monitoring"])


@router.post(
    "/trip-alerts",
    response_model=TripAlertSweepResponse,
    dependencies=[Depends(require_monitor_key)],
)
def trip_alerts_sweep(db: Session = Depends(get_db)):
    """Evaluate every ongoing trip (tracking lost, delay, idle, deviation, stoppage)."""
    summary = run_trip_alert_sweep(db, load_alert_thresholds(db))
    return TripAlertSweepResponse(
        trips_monitored=summary.trips_monitored,
        alerts_created=summary.alerts_created,
        alerts_resolved=summary.alerts_resolved,
        shipments_delayed=summary.shipments_delayed,
        failed_trips=summary.failed_trips,
        results=[
            AlertResultItem(
                trip_id=r.trip_id,
                alert_type=r.alert_type,
                created=r.created,
                resolved=r.resolved,
                message=r.message,
            )
            for r in summary.results
        ],
    )


@router.post(
    "/compliance",
    response_model=ComplianceScanResponse,
    dependencies=[Depends(require_monitor_key)],
)
def compliance_scan(db: Session = Depends(get_db)):
    """Scan vehicle and driver documents for upcoming or past expiry."""
    summary = run_compliance_scan(db, load_compliance_thresholds(db))
    return ComplianceScanResponse(
        vehicle_alerts=summary.vehicle_alerts,
        driver_alerts=summary.driver_alerts,
        alerts_created=summary.alerts_created,
        alerts_updated=summary.alerts_updated,
        alerts_resolved=summary.alerts_resolved,
        failed_entities=[f"{entity_type}:{entity_id}" for entity_type, entity_id in summary.failed_entities],
    )


@router.get("/compliance-alerts", response_model=ComplianceAlertListResponse)
def compliance_alerts(db: Session = Depends(get_db)):
    """Open compliance alerts with per-level counts."""
    alerts = list_open_compliance_alerts(db)
    return ComplianceAlertListResponse(
        counts=summarize_by_level(alerts),
        alerts=[ComplianceAlertResponse.model_validate(a) for a in alerts],
    )


@router.post(
    "/geofence",
    response_model=GeofenceSweepResponse,
    dependencies=[Depends(require_monitor_key)],
)
def geofence_sweep(db: Session = Depends(get_db)):
    """Auto-advance shipments whose vehicle entered or left a pickup/drop zone."""
    summary = run_geofence_sweep(db, load_geofence_settings(db))
    return GeofenceSweepResponse(
        trips_checked=summary.trips_checked,
        trips_skipped=summary.trips_skipped,
        shipments_updated=summary.shipments_updated,
        failed_trips=summary.failed_trips,
        events=[
            GeofenceEventItem(
                trip_id=e.trip_id,
                shipment_id=e.shipment_id,
                event=e.event,
                previous_status=e.previous_status,
                new_status=e.new_status,
                distance_meters=e.distance_meters,
                applied=e.applied,
                error=e.error,
            )
            for e in summary.events
        ],
    )
