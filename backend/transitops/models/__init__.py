"""Database models"""
from transitops.models.location import Location
from transitops.models.fleet import Vehicle, Driver
from transitops.models.lane import Lane, LaneRouteCalculation
from transitops.models.trip import Trip, LocationPoint
from transitops.models.shipment import Shipment, ShipmentStatusHistory
from transitops.models.alert import TripAlert, ComplianceAlert
from transitops.models.tracking_setting import TrackingSetting
from transitops.models.geofence import GeofenceState

__all__ = [
    # Master data
    "Location",
    "Vehicle",
    "Driver",
    "Lane",
    "LaneRouteCalculation",
    # Trips and telemetry
    "Trip",
    "LocationPoint",
    # Shipments
    "Shipment",
    "ShipmentStatusHistory",
    # Alerts
    "TripAlert",
    "ComplianceAlert",
    # Settings
    "TrackingSetting",
    "GeofenceState",
]
