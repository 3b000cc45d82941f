"""
Schemas for telemetry ingestion and trip alerts.
"""
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field, field_validator


class LocationIngestRequest(BaseModel):
    """One telemetry sample from a GPS/SIM integration."""
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    speed: Optional[float] = Field(None, ge=0, description="km/h")
    heading: Optional[float] = Field(None, ge=0, lt=360)
    accuracy_meters: Optional[float] = Field(None, ge=0)
    source: str = Field(default="gps", pattern="^(gps|sim)$")
    timestamp: Optional[datetime] = Field(None, description="Event time (defaults to now)")
    vehicle_id: Optional[int] = None

    @field_validator("timestamp")
    @classmethod
    def normalize_timestamp(cls, v: Optional[datetime]) -> Optional[datetime]:
        """Store offset-aware times as naive UTC, like every other column."""
        if v is not None and v.tzinfo is not None:
            return v.astimezone(timezone.utc).replace(tzinfo=None)
        return v


class AlertResultItem(BaseModel):
    """What one alert check did."""
    trip_id: int
    alert_type: str
    created: bool = False
    resolved: bool = False
    message: str = ""


class LocationIngestResponse(BaseModel):
    location_id: int
    trip_id: int
    event_time: datetime
    active_alert_count: int
    results: List[AlertResultItem]


class TripAlertResponse(BaseModel):
    """Trip alert as shown on dashboards."""
    id: int
    trip_id: int
    alert_type: str
    title: str
    description: Optional[str] = None
    severity: str
    status: str
    threshold_value: Optional[float] = None
    actual_value: Optional[float] = None
    location_latitude: Optional[float] = None
    location_longitude: Optional[float] = None
    metadata: Optional[Dict[str, Any]] = None
    triggered_at: datetime
    acknowledged_at: Optional[datetime] = None
    acknowledged_by: Optional[str] = None
    resolved_at: Optional[datetime] = None
    resolved_by: Optional[str] = None


class AlertActionRequest(BaseModel):
    """Manual acknowledge/resolve/dismiss."""
    user: Optional[str] = Field(None, max_length=100)
    notes: Optional[str] = Field(None, max_length=2000)
