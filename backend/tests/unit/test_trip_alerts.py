"""
Tests for trip alert evaluation.

Routes use the equator polyline from the factories: (0, -0.01) -> (0, 0.01).
One thousandth of a degree of latitude is ~111m.
"""
from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import pytest
from sqlalchemy.exc import OperationalError

from transitops.core.thresholds import AlertThresholds
from transitops.exceptions import InvalidStateError
from transitops.models.alert import TripAlert
from transitops.services import trip_alerts
from transitops.services.trip_alerts import (
    check_delay,
    check_idle,
    check_route_deviation,
    check_stoppage,
    check_tracking_lost,
    compute_delay_minutes,
    create_trip_alert,
    evaluate_trip,
    find_stopped_since,
    ingest_location,
    run_trip_alert_sweep,
    update_alert_status,
)
from tests.factories import (
    EQUATOR_ROUTE_POLYLINE,
    create_test_lane,
    create_test_location_point,
    create_test_shipment,
    create_test_trip,
    create_test_trip_alert,
)


NOW = datetime(2026, 3, 2, 10, 0, 0)
THRESHOLDS = AlertThresholds()


def _alerts(db, trip, alert_type=None):
    query = db.query(TripAlert).filter(TripAlert.trip_id == trip.id)
    if alert_type:
        query = query.filter(TripAlert.alert_type == alert_type)
    return query.order_by(TripAlert.id).all()


@pytest.fixture
def routed_trip(db_session):
    lane = create_test_lane(db_session, encoded_polyline=EQUATOR_ROUTE_POLYLINE)
    trip = create_test_trip(db_session, status="ongoing", lane=lane)
    db_session.commit()
    return trip


class TestRouteDeviation:

    def test_medium_alert_past_threshold(self, db_session, routed_trip):
        result = check_route_deviation(db_session, routed_trip, 0.0054, 0.0, THRESHOLDS, NOW)

        assert result.created
        alerts = _alerts(db_session, routed_trip, "route_deviation")
        assert len(alerts) == 1
        assert alerts[0].severity == "medium"
        assert alerts[0].actual_value == 600
        assert alerts[0].threshold_value == 500
        assert alerts[0].description == "Vehicle is 600m away from the planned route."

    def test_high_alert_past_one_km(self, db_session, routed_trip):
        check_route_deviation(db_session, routed_trip, 0.01, 0.0, THRESHOLDS, NOW)
        assert _alerts(db_session, routed_trip, "route_deviation")[0].severity == "high"

    def test_second_evaluation_does_not_duplicate(self, db_session, routed_trip):
        first = check_route_deviation(db_session, routed_trip, 0.0054, 0.0, THRESHOLDS, NOW)
        second = check_route_deviation(db_session, routed_trip, 0.0060, 0.0, THRESHOLDS, NOW)

        assert first.created
        assert not second.created
        assert len(_alerts(db_session, routed_trip, "route_deviation")) == 1

    def test_acknowledged_alert_blocks_duplicate(self, db_session, routed_trip):
        create_test_trip_alert(db_session, routed_trip, "route_deviation", status="acknowledged")
        result = check_route_deviation(db_session, routed_trip, 0.0054, 0.0, THRESHOLDS, NOW)
        assert not result.created

    def test_back_on_route_resolves(self, db_session, routed_trip):
        check_route_deviation(db_session, routed_trip, 0.0054, 0.0, THRESHOLDS, NOW)
        result = check_route_deviation(db_session, routed_trip, 0.001, 0.0, THRESHOLDS, NOW)

        assert result.resolved
        alert = _alerts(db_session, routed_trip, "route_deviation")[0]
        assert alert.status == "resolved"
        assert alert.resolved_at == NOW

    def test_trip_without_route_skipped(self, db_session):
        trip = create_test_trip(db_session, status="ongoing")
        assert check_route_deviation(db_session, trip, 5.0, 5.0, THRESHOLDS, NOW) is None
        assert _alerts(db_session, trip) == []

    def test_out_of_range_route_skipped(self, db_session, routed_trip):
        garbage = [trip_alerts.GeoPoint(95.2, 0.0), trip_alerts.GeoPoint(96.1, 0.3)]
        with patch.object(trip_alerts, "decode_polyline", return_value=garbage):
            assert check_route_deviation(db_session, routed_trip, 0.0054, 0.0, THRESHOLDS, NOW) is None
        assert _alerts(db_session, routed_trip) == []

    def test_custom_threshold(self, db_session, routed_trip):
        thresholds = AlertThresholds(route_deviation_threshold_meters=700)
        assert check_route_deviation(db_session, routed_trip, 0.0054, 0.0, thresholds, NOW) is None


class TestStoppage:

    def test_find_stopped_since_needs_two_points(self, db_session):
        trip = create_test_trip(db_session)
        point = create_test_location_point(db_session, trip, event_time=NOW)
        assert find_stopped_since(point, [point]) is None

    def test_stationary_past_threshold(self, db_session):
        trip = create_test_trip(db_session)
        for minutes in (45, 30, 15):
            create_test_location_point(db_session, trip, event_time=NOW - timedelta(minutes=minutes))
        current = create_test_location_point(db_session, trip, 0.0001, 0.0, event_time=NOW)

        result = check_stoppage(db_session, trip, current, THRESHOLDS, NOW)

        assert result.created
        alert = _alerts(db_session, trip, "stoppage")[0]
        assert alert.actual_value == 45
        assert alert.severity == "medium"

    def test_scan_stops_at_moving_point(self, db_session):
        trip = create_test_trip(db_session)
        create_test_location_point(db_session, trip, event_time=NOW - timedelta(minutes=90))
        create_test_location_point(db_session, trip, speed=40, event_time=NOW - timedelta(minutes=50))
        create_test_location_point(db_session, trip, event_time=NOW - timedelta(minutes=20))
        current = create_test_location_point(db_session, trip, event_time=NOW)

        assert check_stoppage(db_session, trip, current, THRESHOLDS, NOW) is None

    def test_long_stop_is_high(self, db_session):
        trip = create_test_trip(db_session)
        create_test_location_point(db_session, trip, event_time=NOW - timedelta(minutes=75))
        current = create_test_location_point(db_session, trip, event_time=NOW)

        check_stoppage(db_session, trip, current, THRESHOLDS, NOW)
        assert _alerts(db_session, trip, "stoppage")[0].severity == "high"

    def test_moving_resolves(self, db_session):
        trip = create_test_trip(db_session)
        create_test_trip_alert(db_session, trip, "stoppage")
        current = create_test_location_point(db_session, trip, speed=30, event_time=NOW)

        result = check_stoppage(db_session, trip, current, THRESHOLDS, NOW)

        assert result.resolved
        assert _alerts(db_session, trip, "stoppage")[0].status == "resolved"


class TestTrackingLost:

    def test_no_signal_past_threshold(self, db_session):
        trip = create_test_trip(db_session)
        create_test_location_point(db_session, trip, event_time=NOW - timedelta(minutes=45))

        result = check_tracking_lost(db_session, trip, THRESHOLDS, NOW)

        assert result.created
        alert = _alerts(db_session, trip, "tracking_lost")[0]
        assert alert.severity == "high"
        assert alert.actual_value == 45

    def test_long_silence_is_critical(self, db_session):
        trip = create_test_trip(db_session, last_ping_at=NOW - timedelta(hours=3))
        check_tracking_lost(db_session, trip, THRESHOLDS, NOW)
        assert _alerts(db_session, trip, "tracking_lost")[0].severity == "critical"

    def test_untrackable_trip_skipped(self, db_session):
        trip = create_test_trip(db_session, tracking_type="none", actual_start_time=NOW - timedelta(hours=5))
        assert check_tracking_lost(db_session, trip, THRESHOLDS, NOW) is None

    def test_nothing_to_measure_from(self, db_session):
        trip = create_test_trip(db_session)
        assert check_tracking_lost(db_session, trip, THRESHOLDS, NOW) is None

    def test_ingest_resolves_tracking_lost(self, db_session):
        trip = create_test_trip(db_session)
        create_test_location_point(db_session, trip, event_time=NOW - timedelta(minutes=45))
        check_tracking_lost(db_session, trip, THRESHOLDS, NOW)
        db_session.commit()

        _, results = ingest_location(db_session, trip, 0.0, 0.0, THRESHOLDS, speed=20, now=NOW)

        assert any(r.alert_type == "tracking_lost" and r.resolved for r in results)
        assert _alerts(db_session, trip, "tracking_lost")[0].status == "resolved"
        assert trip.active_alert_count == 0
        assert trip.last_ping_at == NOW


class TestDelay:

    def test_delay_minutes_uses_largest_overrun(self):
        trip = type("TripStub", (), {
            "planned_eta": NOW - timedelta(minutes=30),
            "planned_end_time": NOW - timedelta(minutes=90),
            "actual_start_time": NOW - timedelta(hours=6),
        })()
        assert compute_delay_minutes(trip, NOW) == 90

    def test_end_time_ignored_before_start(self):
        trip = type("TripStub", (), {
            "planned_eta": None,
            "planned_end_time": NOW - timedelta(minutes=90),
            "actual_start_time": None,
        })()
        assert compute_delay_minutes(trip, NOW) is None

    @pytest.mark.parametrize("minutes,severity", [
        (90, "medium"),
        (150, "high"),
        (300, "critical"),
    ])
    def test_severity_bands(self, db_session, minutes, severity):
        trip = create_test_trip(db_session, planned_eta=NOW - timedelta(minutes=minutes))
        check_delay(db_session, trip, THRESHOLDS, NOW)
        assert _alerts(db_session, trip, "delay_warning")[0].severity == severity

    def test_replanned_eta_resolves(self, db_session):
        trip = create_test_trip(db_session, planned_eta=NOW - timedelta(minutes=90))
        check_delay(db_session, trip, THRESHOLDS, NOW)

        trip.planned_eta = NOW + timedelta(hours=1)
        result = check_delay(db_session, trip, THRESHOLDS, NOW)

        assert result.resolved


class TestIdle:

    def test_started_without_locations(self, db_session):
        trip = create_test_trip(db_session, actual_start_time=NOW - timedelta(hours=3))
        result = check_idle(db_session, trip, THRESHOLDS, NOW)

        assert result.created
        assert _alerts(db_session, trip, "idle_detected")[0].severity == "high"

    def test_recently_started_is_fine(self, db_session):
        trip = create_test_trip(db_session, actual_start_time=NOW - timedelta(minutes=30))
        assert check_idle(db_session, trip, THRESHOLDS, NOW) is None

    def test_locations_resolve_idle(self, db_session):
        trip = create_test_trip(db_session, actual_start_time=NOW - timedelta(hours=3))
        check_idle(db_session, trip, THRESHOLDS, NOW)
        create_test_location_point(db_session, trip, event_time=NOW)

        result = check_idle(db_session, trip, THRESHOLDS, NOW)
        assert result.resolved


class TestEvaluateTrip:

    def test_all_checks_and_recount(self, db_session, routed_trip):
        routed_trip.planned_eta = NOW - timedelta(hours=2)
        create_test_location_point(
            db_session, routed_trip, 0.0054, 0.0, speed=50, event_time=NOW - timedelta(minutes=40),
        )

        results = evaluate_trip(db_session, routed_trip, THRESHOLDS, NOW)

        created = sorted(r.alert_type for r in results if r.created)
        assert created == ["delay_warning", "route_deviation", "tracking_lost"]
        assert routed_trip.active_alert_count == 3

    def test_no_duplicates_on_rerun(self, db_session, routed_trip):
        routed_trip.planned_eta = NOW - timedelta(hours=2)
        evaluate_trip(db_session, routed_trip, THRESHOLDS, NOW)
        evaluate_trip(db_session, routed_trip, THRESHOLDS, NOW + timedelta(minutes=5))

        assert len(_alerts(db_session, routed_trip, "delay_warning")) == 1
        assert routed_trip.active_alert_count == 1


class TestSweep:

    def test_only_monitored_trips(self, db_session):
        create_test_trip(db_session, status="ongoing", actual_start_time=NOW - timedelta(hours=3))
        create_test_trip(db_session, status="completed", actual_start_time=NOW - timedelta(hours=3))
        db_session.commit()

        summary = run_trip_alert_sweep(db_session, THRESHOLDS, NOW)

        assert summary.trips_monitored == 1
        # No location since start: tracking lost and idle
        assert sorted(r.alert_type for r in summary.results if r.created) == [
            "idle_detected", "tracking_lost",
        ]
        assert summary.failed_trips == []

    def test_failing_trip_does_not_stop_sweep(self, db_session):
        first = create_test_trip(db_session, status="ongoing", actual_start_time=NOW - timedelta(hours=3))
        second = create_test_trip(db_session, status="ongoing", actual_start_time=NOW - timedelta(hours=3))
        db_session.commit()

        real_evaluate = trip_alerts.evaluate_trip

        def flaky_evaluate(db, trip, thresholds, now=None):
            if trip.id == first.id:
                raise OperationalError("SELECT", {}, Exception("connection reset"))
            return real_evaluate(db, trip, thresholds, now)

        with patch.object(trip_alerts, "evaluate_trip", side_effect=flaky_evaluate):
            summary = run_trip_alert_sweep(db_session, THRESHOLDS, NOW)

        assert summary.failed_trips == [first.id]
        assert summary.alerts_created == 2
        assert _alerts(db_session, first) == []
        assert len(_alerts(db_session, second, "idle_detected")) == 1

    def test_refreshes_open_shipment_delays(self, db_session):
        lane = create_test_lane(db_session, standard_tat_hours=20)
        trip = create_test_trip(db_session, status="ongoing", lane=lane)
        late = create_test_shipment(
            db_session, status="in_transit", trip=trip,
            planned_delivery_time=NOW - timedelta(hours=4),
        )
        closed = create_test_shipment(
            db_session, status="success", trip=trip,
            planned_delivery_time=NOW - timedelta(hours=4),
        )
        db_session.commit()

        summary = run_trip_alert_sweep(db_session, THRESHOLDS, NOW)

        assert summary.shipments_delayed == 1
        db_session.refresh(late)
        db_session.refresh(closed)
        assert late.delay_percentage == 20.0
        assert late.is_delayed is True
        assert closed.delay_percentage is None

    def test_unexpected_error_rolls_back_trip_only(self, db_session):
        first = create_test_trip(db_session, status="ongoing", actual_start_time=NOW - timedelta(hours=3))
        second = create_test_trip(db_session, status="ongoing", actual_start_time=NOW - timedelta(hours=3))
        db_session.commit()

        real_check_delay = trip_alerts.check_delay

        def broken_check_delay(db, trip, thresholds, now):
            if trip.id == first.id:
                raise TypeError("can't subtract offset-naive and offset-aware datetimes")
            return real_check_delay(db, trip, thresholds, now)

        with patch.object(trip_alerts, "check_delay", side_effect=broken_check_delay):
            summary = run_trip_alert_sweep(db_session, THRESHOLDS, NOW)

        assert summary.failed_trips == [first.id]
        # tracking_lost was raised for the first trip before the failure; rolled back
        assert _alerts(db_session, first) == []
        assert sorted(a.alert_type for a in _alerts(db_session, second)) == [
            "idle_detected", "tracking_lost",
        ]


class TestIngestTimestamps:

    def test_offset_aware_time_stored_as_utc(self, db_session):
        trip = create_test_trip(db_session, status="ongoing", last_ping_at=NOW - timedelta(minutes=5))
        db_session.commit()
        ist = timezone(timedelta(hours=5, minutes=30))

        point, _ = ingest_location(
            db_session, trip, 12.9, 77.6, THRESHOLDS,
            speed=30, event_time=datetime(2026, 3, 2, 15, 30, 0, tzinfo=ist), now=NOW,
        )

        assert point.event_time == NOW
        db_session.refresh(trip)
        assert trip.last_ping_at == NOW


class TestManualActions:

    def test_acknowledge_keeps_alert_open(self, db_session):
        trip = create_test_trip(db_session)
        alert, _ = create_trip_alert(
            db_session, trip.id, "stoppage", "Stopped", "Stopped for a while", "medium", now=NOW,
        )
        db_session.commit()

        update_alert_status(db_session, alert, "acknowledged", user="ops", now=NOW)

        assert alert.acknowledged_by == "ops"
        assert trip.active_alert_count == 1

    def test_resolve_with_notes_recounts(self, db_session):
        trip = create_test_trip(db_session)
        alert = create_test_trip_alert(db_session, trip, "delay_warning", alert_metadata={"delay_minutes": 90})
        db_session.commit()

        update_alert_status(db_session, alert, "resolved", user="ops", notes="Driver called in", now=NOW)

        assert alert.resolved_at == NOW
        assert alert.alert_metadata == {"delay_minutes": 90, "resolution_notes": "Driver called in"}
        db_session.refresh(trip)
        assert trip.active_alert_count == 0

    def test_cannot_reopen_resolved(self, db_session):
        trip = create_test_trip(db_session)
        alert = create_test_trip_alert(db_session, trip, status="resolved")
        db_session.commit()

        with pytest.raises(InvalidStateError):
            update_alert_status(db_session, alert, "acknowledged")

    def test_auto_resolve_leaves_acknowledged(self, db_session, routed_trip):
        create_test_trip_alert(db_session, routed_trip, "route_deviation", status="acknowledged")
        check_route_deviation(db_session, routed_trip, 0.0, 0.0, THRESHOLDS, NOW)
        assert _alerts(db_session, routed_trip, "route_deviation")[0].status == "acknowledged"
