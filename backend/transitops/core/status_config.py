"""Status Configuration and Transition Rules

This module defines valid status values and allowed transitions for
Shipments, plus the per-status sub-status flows and the enums used by
the trip alerting and compliance monitors.
"""
from enum import Enum
from typing import Dict, List, Optional, Set


# =============================================================================
# Shipment Status
# =============================================================================

class ShipmentStatus(str, Enum):
    """Valid status values for Shipments"""
    CREATED = "created"
    CONFIRMED = "confirmed"
    MAPPED = "mapped"
    IN_PICKUP = "in_pickup"
    IN_TRANSIT = "in_transit"
    OUT_FOR_DELIVERY = "out_for_delivery"
    DELIVERED = "delivered"
    NDR = "ndr"  # Non-delivery report
    RETURNED = "returned"
    SUCCESS = "success"


# Allowed transitions: current_status -> set of allowed next statuses.
# Each forward step may also be rolled back one step by an operator.
SHIPMENT_TRANSITIONS: Dict[str, Set[str]] = {
    ShipmentStatus.CREATED: {
        ShipmentStatus.CONFIRMED,
    },
    ShipmentStatus.CONFIRMED: {
        ShipmentStatus.MAPPED,
        ShipmentStatus.CREATED,
    },
    ShipmentStatus.MAPPED: {
        ShipmentStatus.IN_PICKUP,
        ShipmentStatus.CONFIRMED,
    },
    ShipmentStatus.IN_PICKUP: {
        ShipmentStatus.IN_TRANSIT,
        ShipmentStatus.MAPPED,
    },
    ShipmentStatus.IN_TRANSIT: {
        ShipmentStatus.OUT_FOR_DELIVERY,
        ShipmentStatus.IN_PICKUP,
    },
    ShipmentStatus.OUT_FOR_DELIVERY: {
        ShipmentStatus.DELIVERED,
        ShipmentStatus.NDR,
        ShipmentStatus.IN_TRANSIT,
    },
    ShipmentStatus.DELIVERED: {
        ShipmentStatus.SUCCESS,
        ShipmentStatus.NDR,
    },
    ShipmentStatus.NDR: {
        ShipmentStatus.OUT_FOR_DELIVERY,  # Re-attempt
        ShipmentStatus.RETURNED,
    },
    ShipmentStatus.RETURNED: set(),  # Terminal
    ShipmentStatus.SUCCESS: set(),  # Terminal
}

SHIPMENT_STATUS_LABELS: Dict[str, str] = {
    ShipmentStatus.CREATED: "Created",
    ShipmentStatus.CONFIRMED: "Confirmed",
    ShipmentStatus.MAPPED: "Mapped",
    ShipmentStatus.IN_PICKUP: "In Pickup",
    ShipmentStatus.IN_TRANSIT: "In Transit",
    ShipmentStatus.OUT_FOR_DELIVERY: "Out for Delivery",
    ShipmentStatus.DELIVERED: "Delivered",
    ShipmentStatus.NDR: "NDR",
    ShipmentStatus.RETURNED: "Returned",
    ShipmentStatus.SUCCESS: "Success",
}

# Shipment column stamped when the shipment enters a main status
STATUS_TIMESTAMP_FIELDS: Dict[str, str] = {
    ShipmentStatus.CONFIRMED: "confirmed_at",
    ShipmentStatus.MAPPED: "mapped_at",
    ShipmentStatus.IN_PICKUP: "in_pickup_at",
    ShipmentStatus.IN_TRANSIT: "in_transit_at",
    ShipmentStatus.OUT_FOR_DELIVERY: "out_for_delivery_at",
    ShipmentStatus.DELIVERED: "delivered_at",
    ShipmentStatus.NDR: "ndr_at",
    ShipmentStatus.RETURNED: "returned_at",
    ShipmentStatus.SUCCESS: "success_at",
}

# Fields that must be populated before a shipment can be confirmed
MANDATORY_SHIPMENT_FIELDS: List[str] = [
    "shipment_code",
    "consignee_code",
    "material_id",
    "pickup_location_id",
    "drop_location_id",
]


def get_allowed_shipment_transitions(current_status: str) -> List[str]:
    """Get list of allowed next statuses for a shipment, in lifecycle order"""
    allowed = SHIPMENT_TRANSITIONS.get(current_status, set())
    return [s.value for s in ShipmentStatus if s in allowed]


def is_valid_shipment_transition(current_status: str, new_status: str) -> bool:
    """Check if a shipment status transition is listed in the transition table"""
    allowed = SHIPMENT_TRANSITIONS.get(current_status, set())
    return new_status in allowed


def get_status_label(status: Optional[str]) -> str:
    """Human readable label for a shipment status (falls back to the raw value)"""
    if status is None:
        return "None"
    return SHIPMENT_STATUS_LABELS.get(status, status)


# =============================================================================
# Shipment Sub-Status
# =============================================================================

class SubStatus(str, Enum):
    """Sub-status values, each scoped to one main shipment status"""
    # in_pickup
    VEHICLE_PLACED = "vehicle_placed"
    LOADING_STARTED = "loading_started"
    LOADING_COMPLETED = "loading_completed"
    READY_FOR_DISPATCH = "ready_for_dispatch"
    # in_transit
    ON_TIME = "on_time"
    DELAYED = "delayed"
    # delivered
    POD_PENDING = "pod_pending"
    POD_CLEANED = "pod_cleaned"
    BILLED = "billed"
    PAID = "paid"


# Ordered sub-status progression per main status. Only the immediate next
# step is a valid advance.
SUB_STATUS_FLOWS: Dict[str, List[str]] = {
    ShipmentStatus.IN_PICKUP: [
        SubStatus.VEHICLE_PLACED.value,
        SubStatus.LOADING_STARTED.value,
        SubStatus.LOADING_COMPLETED.value,
        SubStatus.READY_FOR_DISPATCH.value,
    ],
    ShipmentStatus.IN_TRANSIT: [
        SubStatus.ON_TIME.value,
        SubStatus.DELAYED.value,
    ],
    ShipmentStatus.DELIVERED: [
        SubStatus.POD_PENDING.value,
        SubStatus.POD_CLEANED.value,
        SubStatus.BILLED.value,
        SubStatus.PAID.value,
    ],
}

SUB_STATUS_LABELS: Dict[str, str] = {
    SubStatus.VEHICLE_PLACED: "Vehicle Placed",
    SubStatus.LOADING_STARTED: "Loading Started",
    SubStatus.LOADING_COMPLETED: "Loading Completed",
    SubStatus.READY_FOR_DISPATCH: "Ready for Dispatch",
    SubStatus.ON_TIME: "On Time",
    SubStatus.DELAYED: "Delayed",
    SubStatus.POD_PENDING: "POD Pending",
    SubStatus.POD_CLEANED: "POD Cleaned",
    SubStatus.BILLED: "Billed",
    SubStatus.PAID: "Paid",
}

SUB_STATUS_TIMESTAMP_FIELDS: Dict[str, str] = {
    SubStatus.LOADING_STARTED: "loading_started_at",
    SubStatus.LOADING_COMPLETED: "loading_completed_at",
    SubStatus.POD_CLEANED: "pod_cleaned_at",
    SubStatus.BILLED: "billed_at",
    SubStatus.PAID: "paid_at",
}


def get_sub_status_flow(status: Optional[str]) -> List[str]:
    """Ordered sub-statuses for a main status (empty if it has none)"""
    if status is None:
        return []
    return list(SUB_STATUS_FLOWS.get(status, []))


def get_next_sub_status(status: str, current_sub_status: Optional[str]) -> Optional[str]:
    """The only sub-status the shipment may advance to next, if any"""
    flow = get_sub_status_flow(status)
    index = flow.index(current_sub_status) if current_sub_status in flow else -1
    if index + 1 < len(flow):
        return flow[index + 1]
    return None


# =============================================================================
# Status History
# =============================================================================

class ChangeSource(str, Enum):
    """Who or what requested a status change"""
    MANUAL = "manual"
    GEOFENCE = "geofence"
    API = "api"
    SYSTEM = "system"


# =============================================================================
# Trip Status
# =============================================================================

class TripStatus(str, Enum):
    """Valid status values for Trips"""
    PLANNED = "planned"
    STARTED = "started"
    ONGOING = "ongoing"
    IN_TRANSIT = "in_transit"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


# Trips the alert evaluator sweeps over
MONITORED_TRIP_STATUSES: Set[str] = {
    TripStatus.ONGOING.value,
    TripStatus.IN_TRANSIT.value,
    TripStatus.STARTED.value,
}


# =============================================================================
# Trip Alerts
# =============================================================================

class AlertType(str, Enum):
    """Trip alert categories raised by the alert evaluator"""
    ROUTE_DEVIATION = "route_deviation"
    STOPPAGE = "stoppage"
    TRACKING_LOST = "tracking_lost"
    IDLE_DETECTED = "idle_detected"
    DELAY_WARNING = "delay_warning"


class AlertSeverity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class AlertStatus(str, Enum):
    """Lifecycle of trip and compliance alerts"""
    ACTIVE = "active"
    ACKNOWLEDGED = "acknowledged"
    RESOLVED = "resolved"
    DISMISSED = "dismissed"


# Alerts that still count against a trip (and block duplicates)
OPEN_ALERT_STATUSES: Set[str] = {
    AlertStatus.ACTIVE.value,
    AlertStatus.ACKNOWLEDGED.value,
}

ALERT_STATUS_TRANSITIONS: Dict[str, Set[str]] = {
    AlertStatus.ACTIVE: {
        AlertStatus.ACKNOWLEDGED,
        AlertStatus.RESOLVED,
        AlertStatus.DISMISSED,
    },
    AlertStatus.ACKNOWLEDGED: {
        AlertStatus.RESOLVED,
        AlertStatus.DISMISSED,
    },
    AlertStatus.RESOLVED: set(),  # Terminal
    AlertStatus.DISMISSED: set(),  # Terminal
}


def is_valid_alert_transition(current_status: str, new_status: str) -> bool:
    """Check if a manual alert status change is allowed"""
    return new_status in ALERT_STATUS_TRANSITIONS.get(current_status, set())


# =============================================================================
# Compliance
# =============================================================================

class ComplianceLevel(str, Enum):
    WARNING = "warning"
    CRITICAL = "critical"
    EXPIRED = "expired"


class ComplianceEntityType(str, Enum):
    VEHICLE = "vehicle"
    DRIVER = "driver"


# Document type -> expiry column on the owning entity
VEHICLE_DOCUMENT_FIELDS: Dict[str, str] = {
    "RC": "rc_expiry_date",
    "Insurance": "insurance_expiry_date",
    "Permit": "permit_expiry_date",
    "Fitness": "fitness_expiry_date",
    "PUC": "puc_expiry_date",
}

DRIVER_DOCUMENT_FIELDS: Dict[str, str] = {
    "License": "license_expiry_date",
    "Police Verification": "police_verification_expiry",
}


# =============================================================================
# Geofence
# =============================================================================

class GeofenceEvent(str, Enum):
    PICKUP_ENTRY = "pickup_entry"
    PICKUP_EXIT = "pickup_exit"
    DELIVERY_ENTRY = "delivery_entry"
    DELIVERY_EXIT = "delivery_exit"


# Shipment statuses the geofence monitor may auto-advance
GEOFENCE_ELIGIBLE_STATUSES: Set[str] = {
    ShipmentStatus.MAPPED.value,
    ShipmentStatus.IN_PICKUP.value,
    ShipmentStatus.IN_TRANSIT.value,
    ShipmentStatus.OUT_FOR_DELIVERY.value,
}
