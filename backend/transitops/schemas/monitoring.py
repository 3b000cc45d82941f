"""
Schemas for scheduler-triggered monitoring sweeps.
"""
from datetime import date
from typing import Dict, List, Optional
from pydantic import BaseModel

from transitops.schemas.tracking import AlertResultItem


class TripAlertSweepResponse(BaseModel):
    message: str = "Alert monitoring complete"
    trips_monitored: int
    alerts_created: int
    alerts_resolved: int
    shipments_delayed: int = 0
    failed_trips: List[int]
    results: List[AlertResultItem]


class ComplianceScanResponse(BaseModel):
    message: str = "Compliance scan complete"
    vehicle_alerts: int
    driver_alerts: int
    alerts_created: int
    alerts_updated: int
    alerts_resolved: int
    failed_entities: List[str]


class GeofenceEventItem(BaseModel):
    trip_id: int
    shipment_id: int
    event: str
    previous_status: str
    new_status: str
    distance_meters: int
    applied: bool
    error: Optional[str] = None


class GeofenceSweepResponse(BaseModel):
    message: str = "Geofence check complete"
    trips_checked: int
    trips_skipped: int
    shipments_updated: int
    failed_trips: List[int]
    events: List[GeofenceEventItem]


class ComplianceAlertResponse(BaseModel):
    id: int
    entity_type: str
    entity_id: int
    document_type: str
    expiry_date: date
    alert_level: str
    status: str

    class Config:
        from_attributes = True


class ComplianceAlertListResponse(BaseModel):
    counts: Dict[str, int]
    alerts: List[ComplianceAlertResponse]
