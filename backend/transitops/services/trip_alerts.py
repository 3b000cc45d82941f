"""
Trip Alert Evaluation Service

Evaluates ongoing trips against telemetry and schedule thresholds and keeps
trip_alerts in sync:

- route_deviation: distance from the lane's cached route polyline
- stoppage: vehicle stationary near the same spot for too long
- tracking_lost: no location received for too long
- delay_warning: running past planned ETA / planned end time
- idle_detected: trip started but no location ever received

Alert policy:
- An alert is only inserted when no active/acknowledged alert of the same
  type exists for the trip (lookup-before-insert, no unique key). Two
  evaluations of the same trip racing each other can both pass the lookup;
  that window is accepted.
- A cleared condition resolves every *active* alert of that type.
- trips.active_alert_count is recomputed from the table after each batch,
  never incremented.

Two entry points: ``ingest_location`` (one new point, evaluated in the same
transaction) and ``run_trip_alert_sweep`` (scheduled pass over all monitored
trips, one transaction per trip).
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from transitops.core.status_config import (
    ALERT_STATUS_TRANSITIONS,
    MONITORED_TRIP_STATUSES,
    OPEN_ALERT_STATUSES,
    AlertSeverity,
    AlertStatus,
    AlertType,
    is_valid_alert_transition,
)
from transitops.core.thresholds import AlertThresholds
from transitops.exceptions import InvalidStateError, StorageError
from transitops.logging_config import get_logger
from transitops.models.alert import TripAlert
from transitops.models.trip import LocationPoint, Trip
from transitops.services.geo import (
    GeoPoint,
    decode_polyline,
    distance_to_polyline,
    haversine_distance,
    is_valid_coordinate,
)
from transitops.services.shipment_status import refresh_trip_shipment_delays

logger = get_logger(__name__)

# Stoppage heuristic: a point counts as "still stopped" when its speed is at
# most STOPPED_SPEED_KMH and it lies within STOPPED_RADIUS_METERS of the
# current position. Only the newest STOPPAGE_WINDOW_POINTS are scanned.
STOPPED_SPEED_KMH = 5
STOPPED_RADIUS_METERS = 100
STOPPAGE_WINDOW_POINTS = 50

ROUTE_DEVIATION_HIGH_METERS = 1000


@dataclass
class AlertResult:
    """What one check did for one trip"""
    trip_id: int
    alert_type: str
    created: bool = False
    resolved: bool = False
    message: str = ""
    details: Dict[str, Any] = field(default_factory=dict)


@dataclass
class TripAlertSweepSummary:
    trips_monitored: int = 0
    alerts_created: int = 0
    alerts_resolved: int = 0
    shipments_delayed: int = 0
    failed_trips: List[int] = field(default_factory=list)
    results: List[AlertResult] = field(default_factory=list)


def _minutes_between(later: datetime, earlier: datetime) -> float:
    return (later - earlier).total_seconds() / 60


# =============================================================================
# Alert persistence
# =============================================================================

def get_open_alert(db: Session, trip_id: int, alert_type: str) -> Optional[TripAlert]:
    """Active or acknowledged alert of this type for the trip, if any"""
    return (
        db.query(TripAlert)
        .filter(
            TripAlert.trip_id == trip_id,
            TripAlert.alert_type == alert_type,
            TripAlert.status.in_(OPEN_ALERT_STATUSES),
        )
        .first()
    )


def create_trip_alert(
    db: Session,
    trip_id: int,
    alert_type: str,
    title: str,
    description: str,
    severity: str,
    threshold_value: Optional[float] = None,
    actual_value: Optional[float] = None,
    latitude: Optional[float] = None,
    longitude: Optional[float] = None,
    metadata: Optional[Dict[str, Any]] = None,
    now: Optional[datetime] = None,
) -> Tuple[TripAlert, bool]:
    """
    Insert an alert unless an open one of the same type exists.

    Returns (alert, created). Flushes but does not commit.
    """
    existing = get_open_alert(db, trip_id, alert_type)
    if existing is not None:
        return existing, False

    alert = TripAlert(
        trip_id=trip_id,
        alert_type=alert_type,
        title=title,
        description=description,
        severity=severity,
        status=AlertStatus.ACTIVE.value,
        threshold_value=threshold_value,
        actual_value=actual_value,
        location_latitude=latitude,
        location_longitude=longitude,
        alert_metadata=metadata,
        triggered_at=now or datetime.utcnow(),
    )
    db.add(alert)
    db.flush()
    logger.info(
        f"Created {alert_type} alert for trip {trip_id}",
        extra={"trip_id": trip_id, "alert_type": alert_type, "severity": severity},
    )
    return alert, True


def resolve_trip_alerts(
    db: Session,
    trip_id: int,
    alert_type: str,
    now: Optional[datetime] = None,
) -> int:
    """Resolve all active alerts of a type for a trip; returns how many"""
    alerts = (
        db.query(TripAlert)
        .filter(
            TripAlert.trip_id == trip_id,
            TripAlert.alert_type == alert_type,
            TripAlert.status == AlertStatus.ACTIVE.value,
        )
        .all()
    )
    now = now or datetime.utcnow()
    for alert in alerts:
        alert.status = AlertStatus.RESOLVED.value
        alert.resolved_at = now
    if alerts:
        db.flush()
        logger.info(
            f"Auto-resolved {len(alerts)} {alert_type} alerts for trip {trip_id}",
            extra={"trip_id": trip_id, "alert_type": alert_type, "count": len(alerts)},
        )
    return len(alerts)


def recalculate_active_alert_count(db: Session, trip: Trip) -> int:
    """Set trip.active_alert_count to the number of open alerts"""
    count = (
        db.query(func.count(TripAlert.id))
        .filter(
            TripAlert.trip_id == trip.id,
            TripAlert.status.in_(OPEN_ALERT_STATUSES),
        )
        .scalar()
    )
    trip.active_alert_count = count or 0
    db.flush()
    return trip.active_alert_count


def _raise_alert(db: Session, trip: Trip, alert_type: AlertType, now: datetime, **kwargs) -> AlertResult:
    _, created = create_trip_alert(db, trip.id, alert_type.value, now=now, **kwargs)
    return AlertResult(
        trip_id=trip.id,
        alert_type=alert_type.value,
        created=created,
        message=kwargs["description"] if created else "Alert already exists",
        details={"actual_value": kwargs.get("actual_value")},
    )


def _clear_alert(db: Session, trip: Trip, alert_type: AlertType, now: datetime, reason: str) -> Optional[AlertResult]:
    if resolve_trip_alerts(db, trip.id, alert_type.value, now):
        return AlertResult(
            trip_id=trip.id,
            alert_type=alert_type.value,
            resolved=True,
            message=f"Alert auto-resolved: {reason}",
        )
    return None


# =============================================================================
# Checks
# =============================================================================

def _route_points(trip: Trip) -> List[GeoPoint]:
    lane = trip.lane
    if lane is None or lane.route_calculation is None:
        return []
    encoded = lane.route_calculation.encoded_polyline
    if not encoded:
        return []
    points = decode_polyline(encoded)
    if not all(is_valid_coordinate(p.lat, p.lng) for p in points):
        logger.warning(
            f"Ignoring malformed route polyline for lane {lane.id}",
            extra={"trip_id": trip.id, "lane_id": lane.id},
        )
        return []
    return points


def check_route_deviation(
    db: Session,
    trip: Trip,
    latitude: float,
    longitude: float,
    thresholds: AlertThresholds,
    now: datetime,
) -> Optional[AlertResult]:
    """Compare the position against the lane route; trips without a route are skipped"""
    route = _route_points(trip)
    if not route:
        return None

    distance = distance_to_polyline(GeoPoint(latitude, longitude), route)
    threshold = thresholds.route_deviation_threshold_meters

    if distance > threshold:
        rounded = round(distance)
        return _raise_alert(
            db, trip, AlertType.ROUTE_DEVIATION, now,
            title="Route Deviation Detected",
            description=f"Vehicle is {rounded}m away from the planned route.",
            severity=(
                AlertSeverity.HIGH.value
                if distance > ROUTE_DEVIATION_HIGH_METERS
                else AlertSeverity.MEDIUM.value
            ),
            threshold_value=threshold,
            actual_value=rounded,
            latitude=latitude,
            longitude=longitude,
            metadata={"distance_meters": rounded, "threshold_meters": threshold},
        )

    return _clear_alert(db, trip, AlertType.ROUTE_DEVIATION, now, "vehicle back on route")


def find_stopped_since(
    current: LocationPoint,
    recent_points: List[LocationPoint],
) -> Optional[datetime]:
    """
    Earliest time the vehicle has been stationary around ``current``.

    ``recent_points`` is newest first. The scan walks back until a point is
    moving or lies outside the stop radius. Needs at least two points.
    """
    if len(recent_points) < 2:
        return None

    stopped_since = current.event_time
    for point in recent_points:
        if (point.speed or 0) > STOPPED_SPEED_KMH:
            break
        distance = haversine_distance(
            current.latitude, current.longitude, point.latitude, point.longitude
        )
        if distance > STOPPED_RADIUS_METERS:
            break
        stopped_since = point.event_time
    return stopped_since


def check_stoppage(
    db: Session,
    trip: Trip,
    current: LocationPoint,
    thresholds: AlertThresholds,
    now: datetime,
) -> Optional[AlertResult]:
    """Raise stoppage when the vehicle has been stationary past the threshold"""
    if (current.speed or 0) > STOPPED_SPEED_KMH:
        return _clear_alert(db, trip, AlertType.STOPPAGE, now, "vehicle moving")

    recent = (
        db.query(LocationPoint)
        .filter(LocationPoint.trip_id == trip.id)
        .order_by(LocationPoint.event_time.desc(), LocationPoint.id.desc())
        .limit(STOPPAGE_WINDOW_POINTS)
        .all()
    )
    stopped_since = find_stopped_since(current, recent)
    if stopped_since is None:
        return None

    stopped_minutes = _minutes_between(now, stopped_since)
    threshold = thresholds.stoppage_threshold_minutes
    if stopped_minutes < threshold:
        return None

    rounded = round(stopped_minutes)
    return _raise_alert(
        db, trip, AlertType.STOPPAGE, now,
        title="Vehicle Stoppage Detected",
        description=f"Vehicle has been stationary for {rounded} minutes.",
        severity=AlertSeverity.HIGH.value if stopped_minutes > 60 else AlertSeverity.MEDIUM.value,
        threshold_value=threshold,
        actual_value=rounded,
        latitude=current.latitude,
        longitude=current.longitude,
        metadata={"stopped_since": stopped_since.isoformat(), "stopped_minutes": rounded},
    )


def _latest_location(db: Session, trip_id: int) -> Optional[LocationPoint]:
    return (
        db.query(LocationPoint)
        .filter(LocationPoint.trip_id == trip_id)
        .order_by(LocationPoint.event_time.desc(), LocationPoint.id.desc())
        .first()
    )


def check_tracking_lost(
    db: Session,
    trip: Trip,
    thresholds: AlertThresholds,
    now: datetime,
    latest: Optional[LocationPoint] = None,
) -> Optional[AlertResult]:
    """No signal for too long: latest location, else last ping, else trip start"""
    if not trip.is_trackable or trip.tracking_type == "none":
        return None

    latest = latest or _latest_location(db, trip.id)
    if latest is not None:
        last_seen = latest.event_time
    elif trip.last_ping_at is not None:
        last_seen = trip.last_ping_at
    else:
        last_seen = trip.actual_start_time
    if last_seen is None:
        return None

    minutes = _minutes_between(now, last_seen)
    threshold = thresholds.tracking_lost_threshold_minutes
    if minutes > threshold:
        hours = round(minutes / 60, 1)
        return _raise_alert(
            db, trip, AlertType.TRACKING_LOST, now,
            title="Tracking Signal Lost",
            description=(
                f"No location update received for {hours} hours. "
                f"Last known location was at {last_seen.isoformat()}."
            ),
            severity=AlertSeverity.CRITICAL.value if minutes > 120 else AlertSeverity.HIGH.value,
            threshold_value=threshold,
            actual_value=round(minutes),
            metadata={
                "last_location_time": last_seen.isoformat(),
                "minutes_since_last_location": round(minutes),
                "tracking_type": trip.tracking_type,
            },
        )

    return _clear_alert(db, trip, AlertType.TRACKING_LOST, now, "tracking resumed")


def compute_delay_minutes(trip: Trip, now: datetime) -> Optional[float]:
    """
    Largest overrun in minutes across planned ETA and, for started trips,
    planned end time. None when neither reference applies.
    """
    overruns = []
    if trip.planned_eta is not None:
        overruns.append(_minutes_between(now, trip.planned_eta))
    if trip.actual_start_time is not None and trip.planned_end_time is not None:
        overruns.append(_minutes_between(now, trip.planned_end_time))
    if not overruns:
        return None
    return max(overruns)


def check_delay(
    db: Session,
    trip: Trip,
    thresholds: AlertThresholds,
    now: datetime,
) -> Optional[AlertResult]:
    delay_minutes = compute_delay_minutes(trip, now)
    if delay_minutes is None:
        return None

    threshold = thresholds.delay_threshold_minutes
    if delay_minutes <= threshold:
        # ETA re-planned or trip caught up
        return _clear_alert(db, trip, AlertType.DELAY_WARNING, now, "trip back within schedule")

    if delay_minutes > 240:
        severity = AlertSeverity.CRITICAL.value
    elif delay_minutes > 120:
        severity = AlertSeverity.HIGH.value
    else:
        severity = AlertSeverity.MEDIUM.value

    hours = round(delay_minutes / 60, 1)
    return _raise_alert(
        db, trip, AlertType.DELAY_WARNING, now,
        title="Trip Delayed",
        description=f"Trip is {hours} hours behind schedule.",
        severity=severity,
        threshold_value=threshold,
        actual_value=round(delay_minutes),
        metadata={
            "delay_minutes": round(delay_minutes),
            "planned_eta": trip.planned_eta.isoformat() if trip.planned_eta else None,
            "planned_end_time": trip.planned_end_time.isoformat() if trip.planned_end_time else None,
        },
    )


def check_idle(
    db: Session,
    trip: Trip,
    thresholds: AlertThresholds,
    now: datetime,
    has_locations: Optional[bool] = None,
) -> Optional[AlertResult]:
    """Started long enough ago but not a single location point received"""
    if trip.actual_start_time is None:
        return None

    running_minutes = _minutes_between(now, trip.actual_start_time)
    threshold = thresholds.idle_threshold_minutes
    if running_minutes < threshold:
        return None

    if has_locations is None:
        has_locations = _latest_location(db, trip.id) is not None

    if has_locations:
        return _clear_alert(db, trip, AlertType.IDLE_DETECTED, now, "location data received")

    hours = round(running_minutes / 60, 1)
    return _raise_alert(
        db, trip, AlertType.IDLE_DETECTED, now,
        title="Trip Idle - No Activity",
        description=f"Trip started {hours} hours ago but no location data has been received.",
        severity=AlertSeverity.HIGH.value,
        threshold_value=threshold,
        actual_value=round(running_minutes),
        metadata={
            "start_time": trip.actual_start_time.isoformat(),
            "running_minutes": round(running_minutes),
            "tracking_type": trip.tracking_type,
        },
    )


# =============================================================================
# Evaluation entry points
# =============================================================================

def evaluate_location(
    db: Session,
    trip: Trip,
    point: LocationPoint,
    thresholds: AlertThresholds,
    now: Optional[datetime] = None,
) -> List[AlertResult]:
    """
    Checks triggered by a freshly written location point.

    A new point clears tracking_lost and idle_detected outright.
    Does not commit.
    """
    now = now or datetime.utcnow()
    results = [
        check_route_deviation(db, trip, point.latitude, point.longitude, thresholds, now),
        check_stoppage(db, trip, point, thresholds, now),
        _clear_alert(db, trip, AlertType.TRACKING_LOST, now, "location received"),
        _clear_alert(db, trip, AlertType.IDLE_DETECTED, now, "location data received"),
    ]
    recalculate_active_alert_count(db, trip)
    return [r for r in results if r is not None]


def evaluate_trip(
    db: Session,
    trip: Trip,
    thresholds: AlertThresholds,
    now: Optional[datetime] = None,
) -> List[AlertResult]:
    """Every check for one trip using its latest known position. Does not commit."""
    now = now or datetime.utcnow()
    latest = _latest_location(db, trip.id)

    results = []
    if latest is not None:
        results.append(
            check_route_deviation(db, trip, latest.latitude, latest.longitude, thresholds, now)
        )
        results.append(check_stoppage(db, trip, latest, thresholds, now))
    results.append(check_tracking_lost(db, trip, thresholds, now, latest=latest))
    results.append(check_delay(db, trip, thresholds, now))
    results.append(check_idle(db, trip, thresholds, now, has_locations=latest is not None))

    recalculate_active_alert_count(db, trip)
    return [r for r in results if r is not None]


def ingest_location(
    db: Session,
    trip: Trip,
    latitude: float,
    longitude: float,
    thresholds: AlertThresholds,
    *,
    speed: Optional[float] = None,
    heading: Optional[float] = None,
    accuracy_meters: Optional[float] = None,
    source: str = "gps",
    event_time: Optional[datetime] = None,
    vehicle_id: Optional[int] = None,
    now: Optional[datetime] = None,
) -> Tuple[LocationPoint, List[AlertResult]]:
    """
    Store a telemetry point, bump last_ping_at and evaluate the trip.

    The write and the evaluation share one transaction so the checks see the
    new point. Trips outside the monitored statuses are stored only.
    """
    now = now or datetime.utcnow()
    event_time = event_time or now
    if event_time.tzinfo is not None:
        event_time = event_time.astimezone(timezone.utc).replace(tzinfo=None)

    try:
        point = LocationPoint(
            trip_id=trip.id,
            vehicle_id=vehicle_id or trip.vehicle_id,
            latitude=latitude,
            longitude=longitude,
            speed=speed,
            heading=heading,
            accuracy_meters=accuracy_meters,
            source=source,
            event_time=event_time,
        )
        db.add(point)
        if trip.last_ping_at is None or event_time > trip.last_ping_at:
            trip.last_ping_at = event_time
        db.flush()

        results: List[AlertResult] = []
        if trip.status in MONITORED_TRIP_STATUSES:
            results = evaluate_location(db, trip, point, thresholds, now)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(
            f"Failed to ingest location for trip {trip.id}: {e}",
            extra={"trip_id": trip.id},
            exc_info=True,
        )
        raise StorageError("Failed to record location. Please try again.") from e

    db.refresh(point)
    return point, results


def run_trip_alert_sweep(
    db: Session,
    thresholds: AlertThresholds,
    now: Optional[datetime] = None,
) -> TripAlertSweepSummary:
    """
    Scheduled pass over every monitored trip.

    Each trip is evaluated, its open shipments' delay figures are refreshed,
    and the result is committed on its own. Any failure rolls back that trip,
    is recorded in ``failed_trips`` and the sweep continues.
    """
    now = now or datetime.utcnow()
    summary = TripAlertSweepSummary()

    trip_ids = [
        trip_id
        for (trip_id,) in db.query(Trip.id)
        .filter(Trip.status.in_(MONITORED_TRIP_STATUSES))
        .order_by(Trip.id)
        .all()
    ]
    summary.trips_monitored = len(trip_ids)

    for trip_id in trip_ids:
        try:
            trip = db.get(Trip, trip_id)
            results = evaluate_trip(db, trip, thresholds, now)
            delayed = refresh_trip_shipment_delays(db, trip, now)
            db.commit()
        except Exception as e:
            db.rollback()
            summary.failed_trips.append(trip_id)
            logger.error(
                f"Alert evaluation failed for trip {trip_id}: {e}",
                extra={"trip_id": trip_id},
                exc_info=True,
            )
            continue
        summary.results.extend(results)
        summary.shipments_delayed += delayed

    summary.alerts_created = sum(1 for r in summary.results if r.created)
    summary.alerts_resolved = sum(1 for r in summary.results if r.resolved)
    logger.info(
        f"Alert monitoring complete: {summary.alerts_created} new alerts created, "
        f"{summary.alerts_resolved} alerts resolved",
        extra={
            "trips_monitored": summary.trips_monitored,
            "shipments_delayed": summary.shipments_delayed,
            "failed_trips": summary.failed_trips,
        },
    )
    return summary


# =============================================================================
# Manual alert actions
# =============================================================================

def update_alert_status(
    db: Session,
    alert: TripAlert,
    new_status: str,
    *,
    user: Optional[str] = None,
    notes: Optional[str] = None,
    now: Optional[datetime] = None,
) -> TripAlert:
    """Acknowledge, resolve or dismiss an alert and recount the trip's open alerts"""
    if not is_valid_alert_transition(alert.status, new_status):
        raise InvalidStateError(
            f"Cannot change alert from '{alert.status}' to '{new_status}'",
            current_state=alert.status,
            allowed_states=sorted(s.value for s in ALERT_STATUS_TRANSITIONS.get(alert.status, set())),
        )

    now = now or datetime.utcnow()
    alert.status = new_status
    if new_status == AlertStatus.ACKNOWLEDGED:
        alert.acknowledged_at = now
        alert.acknowledged_by = user
    else:
        alert.resolved_at = now
        alert.resolved_by = user

    if notes:
        metadata = dict(alert.alert_metadata or {})
        metadata["resolution_notes"] = notes
        alert.alert_metadata = metadata

    db.flush()
    recalculate_active_alert_count(db, alert.trip)
    db.commit()
    db.refresh(alert)

    logger.info(
        f"Alert {alert.id} marked {new_status}",
        extra={"alert_id": alert.id, "trip_id": alert.trip_id, "user": user},
    )
    return alert
