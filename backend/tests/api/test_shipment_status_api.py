"""
Tests for shipment status endpoints.
"""
from unittest.mock import patch

import pytest

from transitops.models.shipment import Shipment
from transitops.services import shipment_status
from tests.factories import create_test_shipment, create_test_trip


class TestChangeStatus:
    """Tests for POST /api/v1/shipments/{id}/status"""

    @pytest.mark.api
    def test_confirm_success(self, client, db):
        shipment = create_test_shipment(db, status="created")
        db.commit()

        response = client.post(
            f"/api/v1/shipments/{shipment.id}/status",
            json={"new_status": "confirmed", "changed_by": "ops@example.com"},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "confirmed"
        assert data["sub_status"] is None

    @pytest.mark.api
    def test_missing_fields_reported(self, client, db):
        shipment = create_test_shipment(db, status="created", material_id=None, drop_location_id=None)
        db.commit()

        response = client.post(
            f"/api/v1/shipments/{shipment.id}/status",
            json={"new_status": "confirmed"},
        )

        assert response.status_code == 400
        data = response.json()
        assert data["error"] == "INVALID_TRANSITION"
        assert data["message"] == "Missing required fields: material_id, drop_location_id"
        assert data["details"]["missing_fields"] == ["material_id", "drop_location_id"]

    @pytest.mark.api
    def test_map_without_trip(self, client, db):
        shipment = create_test_shipment(db, status="created")
        db.commit()

        response = client.post(
            f"/api/v1/shipments/{shipment.id}/status",
            json={"new_status": "mapped"},
        )

        assert response.status_code == 400
        assert response.json()["message"] == "Shipment must be linked to a trip before mapping"

    @pytest.mark.api
    def test_invalid_transition_lists_allowed(self, client, db):
        shipment = create_test_shipment(db, status="confirmed")
        db.commit()

        response = client.post(
            f"/api/v1/shipments/{shipment.id}/status",
            json={"new_status": "delivered"},
        )

        assert response.status_code == 400
        data = response.json()
        assert data["message"] == "Cannot transition from Confirmed to Delivered"
        assert data["details"]["current_state"] == "confirmed"
        assert data["details"]["allowed_states"] == ["created", "mapped"]

    @pytest.mark.api
    def test_enter_pickup_with_sub_status(self, client, db):
        trip = create_test_trip(db, status="planned")
        shipment = create_test_shipment(db, status="mapped", trip=trip)
        db.commit()

        response = client.post(
            f"/api/v1/shipments/{shipment.id}/status",
            json={"new_status": "in_pickup", "new_sub_status": "vehicle_placed", "change_source": "api"},
        )

        assert response.status_code == 200
        assert response.json()["sub_status"] == "vehicle_placed"

    @pytest.mark.api
    def test_unknown_change_source_rejected(self, client, db):
        shipment = create_test_shipment(db, status="created")
        db.commit()

        response = client.post(
            f"/api/v1/shipments/{shipment.id}/status",
            json={"new_status": "confirmed", "change_source": "robot"},
        )

        assert response.status_code == 422
        assert response.json()["error"] == "VALIDATION_ERROR"

    @pytest.mark.api
    def test_concurrent_change_is_conflict(self, client, db):
        shipment = create_test_shipment(db, status="created")
        db.commit()

        real_update = shipment_status.update_shipment_status

        def update_after_other_writer(db_, shipment_id, previous_status, *args, **kwargs):
            # Another request confirms the shipment between validation and write
            other = db_.get(Shipment, shipment_id)
            other.status = "confirmed"
            db_.commit()
            return real_update(db_, shipment_id, previous_status, *args, **kwargs)

        with patch.object(shipment_status, "update_shipment_status", side_effect=update_after_other_writer):
            response = client.post(
                f"/api/v1/shipments/{shipment.id}/status",
                json={"new_status": "confirmed"},
            )

        assert response.status_code == 409
        data = response.json()
        assert data["error"] == "CONCURRENCY_ERROR"
        assert data["message"] == "Shipment status has changed since it was loaded. Refresh and try again."
        assert data["details"]["current_state"] == "created"

    @pytest.mark.api
    def test_shipment_not_found(self, client):
        response = client.post("/api/v1/shipments/99999/status", json={"new_status": "confirmed"})
        assert response.status_code == 404
        assert response.json()["message"] == "Shipment with ID 99999 not found"


class TestChangeSubStatus:
    """Tests for POST /api/v1/shipments/{id}/sub-status"""

    @pytest.mark.api
    def test_advance(self, client, db):
        shipment = create_test_shipment(db, status="in_pickup", sub_status="vehicle_placed")
        db.commit()

        response = client.post(
            f"/api/v1/shipments/{shipment.id}/sub-status",
            json={"new_sub_status": "loading_started"},
        )

        assert response.status_code == 200
        assert response.json()["sub_status"] == "loading_started"

    @pytest.mark.api
    def test_skip_rejected(self, client, db):
        shipment = create_test_shipment(db, status="in_pickup", sub_status="vehicle_placed")
        db.commit()

        response = client.post(
            f"/api/v1/shipments/{shipment.id}/sub-status",
            json={"new_sub_status": "ready_for_dispatch"},
        )

        assert response.status_code == 400
        data = response.json()
        assert data["message"] == "Cannot skip to Ready for Dispatch; next step is Loading Started"
        assert data["details"]["allowed_states"] == ["loading_started"]


class TestHistoryAndAllowed:

    @pytest.mark.api
    def test_history_timeline(self, client, db):
        trip = create_test_trip(db, status="planned")
        shipment = create_test_shipment(db, status="created", trip=trip)
        db.commit()

        client.post(f"/api/v1/shipments/{shipment.id}/status", json={"new_status": "confirmed"})
        client.post(
            f"/api/v1/shipments/{shipment.id}/status",
            json={"new_status": "mapped", "notes": "Assigned to trip", "metadata": {"ticket": "OPS-12"}},
        )

        response = client.get(f"/api/v1/shipments/{shipment.id}/status-history")

        assert response.status_code == 200
        data = response.json()
        assert [row["new_status"] for row in data] == ["confirmed", "mapped"]
        assert data[1]["previous_status"] == "confirmed"
        assert data[1]["notes"] == "Assigned to trip"
        assert data[1]["metadata"] == {"ticket": "OPS-12"}

    @pytest.mark.api
    def test_allowed_transitions(self, client, db):
        shipment = create_test_shipment(db, status="delivered", sub_status="billed")
        db.commit()

        response = client.get(f"/api/v1/shipments/{shipment.id}/allowed-transitions")

        assert response.status_code == 200
        data = response.json()
        assert data["allowed_statuses"] == ["ndr", "success"]
        assert data["sub_status_flow"] == ["pod_pending", "pod_cleaned", "billed", "paid"]
        assert data["next_sub_status"] == "paid"
