"""
Geofence Monitor

Compares each monitored trip's latest vehicle position with the pickup and
drop zones of its shipments and advances shipment status automatically:

    pickup_entry    mapped, inside pickup zone        -> in_pickup (vehicle_placed)
    pickup_exit     in_pickup, loading done, outside  -> in_transit (on_time)
    delivery_entry  in_transit, inside drop zone      -> out_for_delivery
    delivery_exit   out_for_delivery after an entry,
                    outside drop zone                 -> delivered (pod_pending)

Every change goes through the normal transition validation with
change_source="geofence". The last event per (trip, shipment) is stored in
geofence_states with the status it produced. It only counts while the
shipment still has that status, so a manual rollback re-arms the event.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from sqlalchemy.orm import Session

from transitops.core.status_config import (
    GEOFENCE_ELIGIBLE_STATUSES,
    MONITORED_TRIP_STATUSES,
    ChangeSource,
    GeofenceEvent,
    ShipmentStatus,
    SubStatus,
)
from transitops.core.thresholds import GeofenceSettings
from transitops.logging_config import get_logger
from transitops.models.geofence import GeofenceState
from transitops.models.location import Location
from transitops.models.shipment import Shipment
from transitops.models.trip import LocationPoint, Trip
from transitops.services.geo import RadiusCheck, is_within_radius
from transitops.services.shipment_status import transition_shipment

logger = get_logger(__name__)

PICKUP_EXIT_SUB_STATUSES = {
    SubStatus.LOADING_COMPLETED.value,
    SubStatus.READY_FOR_DISPATCH.value,
}


@dataclass
class GeofenceEventResult:
    trip_id: int
    shipment_id: int
    event: str
    previous_status: str
    new_status: str
    distance_meters: int
    applied: bool
    error: Optional[str] = None


@dataclass
class GeofenceSweepSummary:
    trips_checked: int = 0
    trips_skipped: int = 0
    events: List[GeofenceEventResult] = field(default_factory=list)
    failed_trips: List[int] = field(default_factory=list)

    @property
    def shipments_updated(self) -> int:
        return sum(1 for e in self.events if e.applied)


def _zone_check(
    point: LocationPoint,
    location: Optional[Location],
    settings: GeofenceSettings,
) -> Optional[RadiusCheck]:
    if location is None or not location.has_coordinates:
        return None
    radius = location.geofence_radius_meters or settings.geofence_default_radius_meters
    return is_within_radius(
        point.latitude, point.longitude, location.latitude, location.longitude, radius
    )


def _get_state(db: Session, trip_id: int, shipment_id: int) -> Optional[GeofenceState]:
    return (
        db.query(GeofenceState)
        .filter(GeofenceState.trip_id == trip_id, GeofenceState.shipment_id == shipment_id)
        .first()
    )


def detect_geofence_event(
    shipment: Shipment,
    point: LocationPoint,
    settings: GeofenceSettings,
    last_event: Optional[str] = None,
):
    """
    Work out which event (if any) the position implies for a shipment.

    Returns (event, target_status, target_sub_status, zone, check) or None.
    """
    status = shipment.status

    if status == ShipmentStatus.MAPPED:
        check = _zone_check(point, shipment.pickup_location, settings)
        if check is not None and check.is_valid:
            return (GeofenceEvent.PICKUP_ENTRY, ShipmentStatus.IN_PICKUP,
                    SubStatus.VEHICLE_PLACED, shipment.pickup_location, check)

    elif status == ShipmentStatus.IN_PICKUP:
        if shipment.sub_status in PICKUP_EXIT_SUB_STATUSES:
            check = _zone_check(point, shipment.pickup_location, settings)
            if check is not None and not check.is_valid:
                return (GeofenceEvent.PICKUP_EXIT, ShipmentStatus.IN_TRANSIT,
                        SubStatus.ON_TIME, shipment.pickup_location, check)

    elif status == ShipmentStatus.IN_TRANSIT:
        check = _zone_check(point, shipment.drop_location, settings)
        if check is not None and check.is_valid:
            return (GeofenceEvent.DELIVERY_ENTRY, ShipmentStatus.OUT_FOR_DELIVERY,
                    None, shipment.drop_location, check)

    elif status == ShipmentStatus.OUT_FOR_DELIVERY:
        # Only an exit that follows a recorded entry counts as delivery
        if last_event == GeofenceEvent.DELIVERY_ENTRY:
            check = _zone_check(point, shipment.drop_location, settings)
            if check is not None and not check.is_valid:
                return (GeofenceEvent.DELIVERY_EXIT, ShipmentStatus.DELIVERED,
                        SubStatus.POD_PENDING, shipment.drop_location, check)

    return None


def _event_note(event: GeofenceEvent, zone: Location) -> str:
    verbs = {
        GeofenceEvent.PICKUP_ENTRY: "entered pickup zone",
        GeofenceEvent.PICKUP_EXIT: "left pickup zone",
        GeofenceEvent.DELIVERY_ENTRY: "entered delivery zone",
        GeofenceEvent.DELIVERY_EXIT: "left delivery zone",
    }
    return f"Vehicle {verbs[event]}: {zone.name}"


def apply_shipment_geofence(
    db: Session,
    trip: Trip,
    shipment: Shipment,
    point: LocationPoint,
    settings: GeofenceSettings,
    now: datetime,
) -> Optional[GeofenceEventResult]:
    """Detect and apply the geofence event for one shipment, if any"""
    state = _get_state(db, trip.id, shipment.id)
    last_event = None
    if state is not None and state.resulting_status == shipment.status:
        last_event = state.last_event

    detected = detect_geofence_event(shipment, point, settings, last_event)
    if detected is None:
        return None

    event, target_status, target_sub_status, zone, check = detected

    previous_status = shipment.status
    radius = zone.geofence_radius_meters or settings.geofence_default_radius_meters
    outcome = transition_shipment(
        db,
        shipment,
        target_status.value,
        target_sub_status.value if target_sub_status is not None else None,
        change_source=ChangeSource.GEOFENCE.value,
        notes=_event_note(event, zone),
        metadata={
            "event": event.value,
            "distance_meters": check.distance_meters,
            "radius_meters": radius,
            "location_id": zone.id,
        },
        now=now,
    )

    result = GeofenceEventResult(
        trip_id=trip.id,
        shipment_id=shipment.id,
        event=event.value,
        previous_status=previous_status,
        new_status=target_status.value,
        distance_meters=check.distance_meters,
        applied=outcome.success,
        error=outcome.error,
    )
    if not outcome.success:
        logger.info(
            f"Geofence {event.value} not applied to shipment {shipment.id}: {outcome.error}",
            extra={"trip_id": trip.id, "shipment_id": shipment.id, "event": event.value},
        )
        return result

    if state is None:
        state = GeofenceState(trip_id=trip.id, shipment_id=shipment.id)
        db.add(state)
    state.last_event = event.value
    state.resulting_status = target_status.value
    state.distance_meters = check.distance_meters
    state.event_at = now
    db.commit()

    logger.info(
        f"Geofence {event.value}: shipment {shipment.id} {previous_status} -> {target_status.value}",
        extra={
            "trip_id": trip.id,
            "shipment_id": shipment.id,
            "event": event.value,
            "distance_meters": check.distance_meters,
        },
    )
    return result


def check_trip_geofence(
    db: Session,
    trip: Trip,
    settings: GeofenceSettings,
    now: Optional[datetime] = None,
) -> Optional[List[GeofenceEventResult]]:
    """
    Geofence pass for one trip. Returns None when the trip was skipped
    (no position, or the latest position is stale).
    """
    now = now or datetime.utcnow()
    point = (
        db.query(LocationPoint)
        .filter(LocationPoint.trip_id == trip.id)
        .order_by(LocationPoint.event_time.desc(), LocationPoint.id.desc())
        .first()
    )
    if point is None:
        return None
    age_minutes = (now - point.event_time).total_seconds() / 60
    if age_minutes > settings.geofence_stale_location_minutes:
        logger.debug(
            f"Skipping geofence check for trip {trip.id}: location is {round(age_minutes)} minutes old",
            extra={"trip_id": trip.id},
        )
        return None

    shipments = (
        db.query(Shipment)
        .filter(
            Shipment.trip_id == trip.id,
            Shipment.status.in_(GEOFENCE_ELIGIBLE_STATUSES),
        )
        .order_by(Shipment.id)
        .all()
    )

    results = []
    for shipment in shipments:
        result = apply_shipment_geofence(db, trip, shipment, point, settings, now)
        if result is not None:
            results.append(result)
    return results


def run_geofence_sweep(
    db: Session,
    settings: GeofenceSettings,
    now: Optional[datetime] = None,
) -> GeofenceSweepSummary:
    """Geofence pass over all monitored trips; a failing trip does not stop the sweep"""
    now = now or datetime.utcnow()
    summary = GeofenceSweepSummary()

    trip_ids = [
        trip_id
        for (trip_id,) in db.query(Trip.id)
        .filter(Trip.status.in_(MONITORED_TRIP_STATUSES))
        .order_by(Trip.id)
        .all()
    ]

    for trip_id in trip_ids:
        try:
            trip = db.get(Trip, trip_id)
            results = check_trip_geofence(db, trip, settings, now)
        except Exception as e:
            db.rollback()
            summary.failed_trips.append(trip_id)
            logger.error(
                f"Geofence check failed for trip {trip_id}: {e}",
                extra={"trip_id": trip_id},
                exc_info=True,
            )
            continue

        if results is None:
            summary.trips_skipped += 1
            continue
        summary.trips_checked += 1
        summary.events.extend(results)

    logger.info(
        f"Geofence sweep complete: {summary.shipments_updated} shipment(s) updated",
        extra={
            "trips_checked": summary.trips_checked,
            "trips_skipped": summary.trips_skipped,
            "failed_trips": summary.failed_trips,
        },
    )
    return summary
