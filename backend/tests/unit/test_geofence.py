"""
Tests for the geofence monitor.

Pickup zone sits at (0, 0), drop zone at (1, 1); default radius is 500m.
"""
from datetime import datetime, timedelta
from unittest.mock import patch

import pytest

from transitops.core.thresholds import GeofenceSettings
from transitops.models.geofence import GeofenceState
from transitops.models.shipment import ShipmentStatusHistory
from transitops.services import geofence
from transitops.services.geofence import check_trip_geofence, run_geofence_sweep
from tests.factories import (
    create_test_location,
    create_test_location_point,
    create_test_shipment,
    create_test_trip,
)


NOW = datetime(2026, 3, 2, 10, 0, 0)
SETTINGS = GeofenceSettings()


@pytest.fixture
def pickup(db_session):
    return create_test_location(db_session, name="Chennai Plant", latitude=0.0, longitude=0.0)


@pytest.fixture
def drop(db_session):
    return create_test_location(db_session, name="Bengaluru DC", latitude=1.0, longitude=1.0)


def _ship(db, trip, pickup, drop, status, sub_status=None):
    shipment = create_test_shipment(
        db, status=status, sub_status=sub_status, trip=trip,
        pickup_location=pickup, drop_location=drop,
    )
    db.commit()
    return shipment


def _ping(db, trip, latitude, longitude, minutes_ago=1):
    create_test_location_point(
        db, trip, latitude, longitude, event_time=NOW - timedelta(minutes=minutes_ago),
    )
    db.commit()


class TestGeofenceEvents:

    def test_pickup_entry(self, db_session, pickup, drop):
        trip = create_test_trip(db_session, status="ongoing")
        shipment = _ship(db_session, trip, pickup, drop, "mapped")
        _ping(db_session, trip, 0.001, 0.0)

        events = check_trip_geofence(db_session, trip, SETTINGS, NOW)

        assert len(events) == 1
        assert events[0].event == "pickup_entry"
        assert events[0].applied
        assert events[0].distance_meters == 111
        db_session.refresh(shipment)
        assert shipment.status == "in_pickup"
        assert shipment.sub_status == "vehicle_placed"

        row = db_session.query(ShipmentStatusHistory).filter_by(shipment_id=shipment.id).one()
        assert row.change_source == "geofence"
        assert row.notes == "Vehicle entered pickup zone: Chennai Plant"
        assert row.change_metadata["event"] == "pickup_entry"
        assert row.change_metadata["radius_meters"] == 500

    def test_event_not_fired_twice(self, db_session, pickup, drop):
        trip = create_test_trip(db_session, status="ongoing")
        shipment = _ship(db_session, trip, pickup, drop, "mapped")
        _ping(db_session, trip, 0.001, 0.0)

        check_trip_geofence(db_session, trip, SETTINGS, NOW)

        assert check_trip_geofence(db_session, trip, SETTINGS, NOW) == []
        db_session.refresh(shipment)
        assert shipment.status == "in_pickup"
        assert db_session.query(ShipmentStatusHistory).filter_by(shipment_id=shipment.id).count() == 1

    def test_manual_rollback_rearms_event(self, db_session, pickup, drop):
        trip = create_test_trip(db_session, status="ongoing")
        shipment = _ship(db_session, trip, pickup, drop, "mapped")
        _ping(db_session, trip, 0.001, 0.0)

        check_trip_geofence(db_session, trip, SETTINGS, NOW)
        # Operator rolls the shipment back; the vehicle is still in the zone
        shipment.status = "mapped"
        shipment.sub_status = None
        db_session.commit()

        events = check_trip_geofence(db_session, trip, SETTINGS, NOW)

        assert [e.event for e in events] == ["pickup_entry"]
        assert events[0].applied
        db_session.refresh(shipment)
        assert shipment.status == "in_pickup"
        state = db_session.query(GeofenceState).filter_by(shipment_id=shipment.id).one()
        assert state.resulting_status == "in_pickup"

    def test_location_radius_overrides_default(self, db_session, drop):
        small = create_test_location(db_session, latitude=0.0, longitude=0.0, geofence_radius_meters=50)
        trip = create_test_trip(db_session, status="ongoing")
        _ship(db_session, trip, small, drop, "mapped")
        _ping(db_session, trip, 0.001, 0.0)

        assert check_trip_geofence(db_session, trip, SETTINGS, NOW) == []

    def test_pickup_exit_needs_loading_completed(self, db_session, pickup, drop):
        trip = create_test_trip(db_session, status="ongoing")
        shipment = _ship(db_session, trip, pickup, drop, "in_pickup", "loading_started")
        _ping(db_session, trip, 0.1, 0.0)

        assert check_trip_geofence(db_session, trip, SETTINGS, NOW) == []

        shipment.sub_status = "loading_completed"
        db_session.commit()
        events = check_trip_geofence(db_session, trip, SETTINGS, NOW)

        assert [e.event for e in events] == ["pickup_exit"]
        db_session.refresh(shipment)
        assert shipment.status == "in_transit"
        assert shipment.sub_status == "on_time"

    def test_delivery_entry_then_exit(self, db_session, pickup, drop):
        trip = create_test_trip(db_session, status="in_transit")
        shipment = _ship(db_session, trip, pickup, drop, "in_transit", "on_time")

        _ping(db_session, trip, 1.001, 1.0, minutes_ago=10)
        events = check_trip_geofence(db_session, trip, SETTINGS, NOW)
        assert [e.event for e in events] == ["delivery_entry"]
        db_session.refresh(shipment)
        assert shipment.status == "out_for_delivery"
        assert shipment.sub_status is None

        _ping(db_session, trip, 1.05, 1.0, minutes_ago=2)
        events = check_trip_geofence(db_session, trip, SETTINGS, NOW)
        assert [e.event for e in events] == ["delivery_exit"]
        db_session.refresh(shipment)
        assert shipment.status == "delivered"
        assert shipment.sub_status == "pod_pending"

        state = db_session.query(GeofenceState).filter_by(shipment_id=shipment.id).one()
        assert state.last_event == "delivery_exit"

    def test_exit_without_recorded_entry_ignored(self, db_session, pickup, drop):
        trip = create_test_trip(db_session, status="ongoing")
        shipment = _ship(db_session, trip, pickup, drop, "out_for_delivery")
        _ping(db_session, trip, 1.05, 1.0)

        assert check_trip_geofence(db_session, trip, SETTINGS, NOW) == []
        db_session.refresh(shipment)
        assert shipment.status == "out_for_delivery"

    def test_pickup_without_vehicle_not_applied(self, db_session, pickup, drop):
        trip = create_test_trip(db_session, status="ongoing", with_vehicle=False)
        shipment = _ship(db_session, trip, pickup, drop, "mapped")
        _ping(db_session, trip, 0.0, 0.0)

        events = check_trip_geofence(db_session, trip, SETTINGS, NOW)

        assert len(events) == 1
        assert not events[0].applied
        assert events[0].error == "Trip must have a vehicle assigned before pickup"
        db_session.refresh(shipment)
        assert shipment.status == "mapped"
        assert db_session.query(GeofenceState).count() == 0

    def test_stale_location_skips_trip(self, db_session, pickup, drop):
        trip = create_test_trip(db_session, status="ongoing")
        _ship(db_session, trip, pickup, drop, "mapped")
        _ping(db_session, trip, 0.0, 0.0, minutes_ago=45)

        assert check_trip_geofence(db_session, trip, SETTINGS, NOW) is None

    def test_no_location_skips_trip(self, db_session):
        trip = create_test_trip(db_session, status="ongoing")
        assert check_trip_geofence(db_session, trip, SETTINGS, NOW) is None


class TestGeofenceSweep:

    def test_sweep_counts(self, db_session, pickup, drop):
        active = create_test_trip(db_session, status="ongoing")
        stale = create_test_trip(db_session, status="started")
        finished = create_test_trip(db_session, status="completed")
        for trip in (active, stale, finished):
            _ship(db_session, trip, pickup, drop, "mapped")
        _ping(db_session, active, 0.0, 0.0)
        _ping(db_session, stale, 0.0, 0.0, minutes_ago=90)
        _ping(db_session, finished, 0.0, 0.0)

        summary = run_geofence_sweep(db_session, SETTINGS, NOW)

        assert summary.trips_checked == 1
        assert summary.trips_skipped == 1
        assert summary.shipments_updated == 1
        assert summary.failed_trips == []

    def test_unexpected_error_does_not_stop_sweep(self, db_session, pickup, drop):
        broken = create_test_trip(db_session, status="ongoing")
        healthy = create_test_trip(db_session, status="ongoing")
        for trip in (broken, healthy):
            _ship(db_session, trip, pickup, drop, "mapped")
            _ping(db_session, trip, 0.0, 0.0)

        real_check = geofence.check_trip_geofence

        def flaky_check(db, trip, settings, now=None):
            if trip.id == broken.id:
                raise AttributeError("'NoneType' object has no attribute 'latitude'")
            return real_check(db, trip, settings, now)

        with patch.object(geofence, "check_trip_geofence", side_effect=flaky_check):
            summary = run_geofence_sweep(db_session, SETTINGS, NOW)

        assert summary.failed_trips == [broken.id]
        assert summary.trips_checked == 1
        assert [e.trip_id for e in summary.events] == [healthy.id]
