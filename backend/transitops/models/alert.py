"""
Alert Models

TripAlert rows are raised and auto-resolved by the trip alert evaluator;
ComplianceAlert rows by the document expiry scanner. Neither table has a
uniqueness constraint: at most one open alert per key is kept by
lookup-before-insert in the services.
"""
from sqlalchemy import Column, Integer, String, DateTime, Date, Float, ForeignKey, Text, JSON
from sqlalchemy.orm import relationship
from datetime import datetime

from transitops.db.base import Base


class TripAlert(Base):
    """Operational alert for a trip (route deviation, stoppage, ...)"""
    __tablename__ = "trip_alerts"

    id = Column(Integer, primary_key=True, index=True)
    trip_id = Column(
        Integer,
        ForeignKey("trips.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    alert_type = Column(String(50), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    severity = Column(String(20), nullable=False, default="medium")  # low, medium, high, critical
    status = Column(String(20), nullable=False, default="active", index=True)

    threshold_value = Column(Float, nullable=True)
    actual_value = Column(Float, nullable=True)
    location_latitude = Column(Float, nullable=True)
    location_longitude = Column(Float, nullable=True)
    alert_metadata = Column("metadata", JSON, nullable=True)

    triggered_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    acknowledged_at = Column(DateTime, nullable=True)
    acknowledged_by = Column(String(100), nullable=True)
    resolved_at = Column(DateTime, nullable=True)
    resolved_by = Column(String(100), nullable=True)

    trip = relationship("Trip")

    def __repr__(self):
        return f"<TripAlert {self.alert_type} ({self.status}) trip={self.trip_id}>"


class ComplianceAlert(Base):
    """Document expiry alert for a vehicle or driver"""
    __tablename__ = "compliance_alerts"

    id = Column(Integer, primary_key=True, index=True)
    entity_type = Column(String(20), nullable=False, index=True)  # vehicle, driver
    entity_id = Column(Integer, nullable=False, index=True)
    document_type = Column(String(50), nullable=False)

    expiry_date = Column(Date, nullable=False)
    alert_level = Column(String(20), nullable=False)  # warning, critical, expired
    status = Column(String(20), nullable=False, default="active", index=True)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)
    resolved_at = Column(DateTime, nullable=True)

    def __repr__(self):
        return f"<ComplianceAlert {self.entity_type}:{self.entity_id} {self.document_type} ({self.alert_level})>"
