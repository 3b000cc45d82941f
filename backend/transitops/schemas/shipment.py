"""
Schemas for shipment status transitions and history.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field

from transitops.core.status_config import ChangeSource


class StatusChangeRequest(BaseModel):
    """Request to move a shipment to a new main status."""
    new_status: str = Field(..., description="Target status")
    new_sub_status: Optional[str] = Field(
        None, description="Optional first sub-status of the target status"
    )
    notes: Optional[str] = Field(None, max_length=2000)
    changed_by: Optional[str] = Field(None, max_length=100, description="User making the change")
    change_source: ChangeSource = Field(default=ChangeSource.MANUAL)
    metadata: Optional[Dict[str, Any]] = None


class SubStatusChangeRequest(BaseModel):
    """Request to advance a shipment's sub-status."""
    new_sub_status: str = Field(..., description="Next sub-status in the current flow")
    notes: Optional[str] = Field(None, max_length=2000)
    changed_by: Optional[str] = Field(None, max_length=100)
    change_source: ChangeSource = Field(default=ChangeSource.MANUAL)


class ShipmentStatusResponse(BaseModel):
    """Shipment status after a change."""
    id: int
    shipment_code: Optional[str] = None
    status: str
    sub_status: Optional[str] = None
    trip_id: Optional[int] = None
    is_delayed: bool = False
    delay_percentage: Optional[float] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class StatusHistoryEntry(BaseModel):
    """One row of the shipment timeline."""
    id: int
    previous_status: Optional[str] = None
    new_status: str
    previous_sub_status: Optional[str] = None
    new_sub_status: Optional[str] = None
    changed_by: Optional[str] = None
    change_source: str
    notes: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None
    changed_at: datetime


class AllowedTransitionsResponse(BaseModel):
    """Next statuses and sub-status options for a shipment."""
    shipment_id: int
    current_status: str
    current_sub_status: Optional[str] = None
    allowed_statuses: List[str]
    sub_status_flow: List[str]
    next_sub_status: Optional[str] = None
