"""
Tests for telemetry ingestion, trip alert actions and monitoring sweeps.
"""
from datetime import date, datetime, timedelta

import pytest

from transitops.core.config import settings
from transitops.models.alert import TripAlert
from tests.factories import (
    EQUATOR_ROUTE_POLYLINE,
    create_test_lane,
    create_test_location,
    create_test_location_point,
    create_test_shipment,
    create_test_trip,
    create_test_trip_alert,
    create_test_vehicle,
)


class TestIngestLocation:
    """Tests for POST /api/v1/trips/{id}/locations"""

    @pytest.mark.api
    def test_off_route_point_raises_alert(self, client, db):
        lane = create_test_lane(db, encoded_polyline=EQUATOR_ROUTE_POLYLINE)
        trip = create_test_trip(db, status="ongoing", lane=lane)
        db.commit()

        response = client.post(
            f"/api/v1/trips/{trip.id}/locations",
            json={"latitude": 0.0054, "longitude": 0.0, "speed": 40},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["active_alert_count"] == 1
        assert [r["alert_type"] for r in data["results"] if r["created"]] == ["route_deviation"]

    @pytest.mark.api
    def test_point_clears_tracking_lost(self, client, db):
        trip = create_test_trip(db, status="ongoing")
        create_test_trip_alert(db, trip, "tracking_lost")
        db.commit()

        response = client.post(
            f"/api/v1/trips/{trip.id}/locations",
            json={"latitude": 12.9, "longitude": 77.6, "speed": 30, "source": "sim"},
        )

        assert response.status_code == 200
        assert response.json()["active_alert_count"] == 0
        assert db.query(TripAlert).one().status == "resolved"

    @pytest.mark.api
    def test_planned_trip_stored_without_evaluation(self, client, db):
        trip = create_test_trip(db, status="planned")
        db.commit()

        response = client.post(
            f"/api/v1/trips/{trip.id}/locations",
            json={"latitude": 12.9, "longitude": 77.6},
        )

        assert response.status_code == 200
        assert response.json()["results"] == []

    @pytest.mark.api
    def test_utc_offset_timestamp_accepted(self, client, db):
        sent_at = datetime.utcnow().replace(microsecond=0)
        trip = create_test_trip(db, status="ongoing", last_ping_at=sent_at - timedelta(minutes=5))
        db.commit()

        response = client.post(
            f"/api/v1/trips/{trip.id}/locations",
            json={"latitude": 12.9, "longitude": 77.6, "speed": 30, "timestamp": sent_at.isoformat() + "Z"},
        )

        assert response.status_code == 200
        assert response.json()["event_time"] == sent_at.isoformat()
        db.refresh(trip)
        assert trip.last_ping_at == sent_at

    @pytest.mark.api
    def test_out_of_range_latitude(self, client, db):
        trip = create_test_trip(db)
        db.commit()

        response = client.post(
            f"/api/v1/trips/{trip.id}/locations",
            json={"latitude": 91, "longitude": 0},
        )

        assert response.status_code == 422

    @pytest.mark.api
    def test_trip_not_found(self, client):
        response = client.post("/api/v1/trips/99999/locations", json={"latitude": 0, "longitude": 0})
        assert response.status_code == 404


class TestTripAlerts:

    @pytest.mark.api
    def test_list_with_status_filter(self, client, db):
        trip = create_test_trip(db)
        create_test_trip_alert(db, trip, "stoppage", status="active")
        create_test_trip_alert(db, trip, "delay_warning", status="resolved")
        db.commit()

        response = client.get(f"/api/v1/trips/{trip.id}/alerts", params={"status": "active"})

        assert response.status_code == 200
        data = response.json()
        assert len(data) == 1
        assert data[0]["alert_type"] == "stoppage"

    @pytest.mark.api
    def test_acknowledge_then_resolve(self, client, db):
        trip = create_test_trip(db)
        alert = create_test_trip_alert(db, trip, "stoppage")
        db.commit()

        response = client.post(f"/api/v1/alerts/{alert.id}/acknowledge", json={"user": "ops"})
        assert response.status_code == 200
        assert response.json()["status"] == "acknowledged"
        assert response.json()["acknowledged_by"] == "ops"

        response = client.post(
            f"/api/v1/alerts/{alert.id}/resolve",
            json={"user": "ops", "notes": "Driver on break"},
        )
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "resolved"
        assert data["metadata"]["resolution_notes"] == "Driver on break"

        db.refresh(trip)
        assert trip.active_alert_count == 0

    @pytest.mark.api
    def test_dismiss_without_body(self, client, db):
        trip = create_test_trip(db)
        alert = create_test_trip_alert(db, trip, "route_deviation")
        db.commit()

        response = client.post(f"/api/v1/alerts/{alert.id}/dismiss")

        assert response.status_code == 200
        assert response.json()["status"] == "dismissed"

    @pytest.mark.api
    def test_resolved_alert_cannot_be_acknowledged(self, client, db):
        trip = create_test_trip(db)
        alert = create_test_trip_alert(db, trip, "stoppage", status="resolved")
        db.commit()

        response = client.post(f"/api/v1/alerts/{alert.id}/acknowledge")

        assert response.status_code == 400
        assert response.json()["error"] == "INVALID_STATE"


class TestMonitoringSweeps:

    @pytest.mark.api
    def test_trip_alert_sweep(self, client, db):
        create_test_trip(
            db, status="ongoing",
            planned_eta=datetime.utcnow() - timedelta(hours=5),
            tracking_type="none",
        )
        db.commit()

        response = client.post("/api/v1/monitoring/trip-alerts")

        assert response.status_code == 200
        data = response.json()
        assert data["trips_monitored"] == 1
        assert data["alerts_created"] == 1
        assert data["results"][0]["alert_type"] == "delay_warning"

    @pytest.mark.api
    def test_compliance_scan_and_listing(self, client, db):
        create_test_vehicle(db, insurance_expiry_date=date.today() + timedelta(days=5))
        db.commit()

        response = client.post("/api/v1/monitoring/compliance")
        assert response.status_code == 200
        assert response.json()["alerts_created"] == 1

        response = client.get("/api/v1/monitoring/compliance-alerts")
        assert response.status_code == 200
        data = response.json()
        assert data["counts"]["critical"] == 1
        assert data["alerts"][0]["document_type"] == "Insurance"

    @pytest.mark.api
    def test_geofence_sweep(self, client, db):
        pickup = create_test_location(db, latitude=0.0, longitude=0.0)
        trip = create_test_trip(db, status="ongoing")
        shipment = create_test_shipment(db, status="mapped", trip=trip, pickup_location=pickup)
        create_test_location_point(db, trip, 0.0005, 0.0)
        db.commit()

        response = client.post("/api/v1/monitoring/geofence")

        assert response.status_code == 200
        data = response.json()
        assert data["shipments_updated"] == 1
        assert data["events"][0]["shipment_id"] == shipment.id
        assert data["events"][0]["event"] == "pickup_entry"

    @pytest.mark.api
    def test_monitor_key_required_when_configured(self, client, monkeypatch):
        monkeypatch.setattr(settings, "MONITOR_API_KEY", "s3cret")

        response = client.post("/api/v1/monitoring/trip-alerts")
        assert response.status_code == 401

        response = client.post(
            "/api/v1/monitoring/trip-alerts", headers={"X-Monitor-Key": "s3cret"}
        )
        assert response.status_code == 200
