"""
Trip and telemetry models

A trip moves a vehicle (and its shipments) along a lane. Location points are
an append-only time series written by GPS/SIM integrations.
"""
from sqlalchemy import Column, Integer, String, DateTime, Float, Boolean, ForeignKey
from sqlalchemy.orm import relationship
from datetime import datetime

from transitops.db.base import Base


class Trip(Base):
    """Trip - one vehicle run with tracking and alert state"""
    __tablename__ = "trips"

    id = Column(Integer, primary_key=True, index=True)
    trip_code = Column(String(50), unique=True, nullable=False, index=True)

    # planned, started, ongoing, in_transit, completed, cancelled
    status = Column(String(50), nullable=False, default="planned", index=True)

    vehicle_id = Column(Integer, ForeignKey("vehicles.id"), nullable=True, index=True)
    driver_id = Column(Integer, ForeignKey("drivers.id"), nullable=True, index=True)
    lane_id = Column(Integer, ForeignKey("lanes.id"), nullable=True, index=True)
    origin_location_id = Column(Integer, ForeignKey("locations.id"), nullable=True)
    destination_location_id = Column(Integer, ForeignKey("locations.id"), nullable=True)

    # Tracking asset
    tracking_type = Column(String(20), nullable=False, default="gps")  # gps, sim, none
    tracking_asset_id = Column(String(100), nullable=True)
    is_trackable = Column(Boolean, nullable=False, default=True)

    # Schedule
    planned_start_time = Column(DateTime, nullable=True)
    planned_end_time = Column(DateTime, nullable=True)
    planned_eta = Column(DateTime, nullable=True)
    actual_start_time = Column(DateTime, nullable=True)
    actual_end_time = Column(DateTime, nullable=True)

    last_ping_at = Column(DateTime, nullable=True)

    # Cache of open (active + acknowledged) alerts; recomputed, never incremented
    active_alert_count = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    vehicle = relationship("Vehicle")
    driver = relationship("Driver")
    lane = relationship("Lane")
    origin_location = relationship("Location", foreign_keys=[origin_location_id])
    destination_location = relationship("Location", foreign_keys=[destination_location_id])
    shipments = relationship("Shipment", back_populates="trip")

    def __repr__(self):
        return f"<Trip {self.trip_code} ({self.status})>"


class LocationPoint(Base):
    """Single telemetry sample for a trip"""
    __tablename__ = "location_history"

    id = Column(Integer, primary_key=True, index=True)
    trip_id = Column(
        Integer,
        ForeignKey("trips.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    vehicle_id = Column(Integer, ForeignKey("vehicles.id"), nullable=True)

    latitude = Column(Float, nullable=False)
    longitude = Column(Float, nullable=False)
    speed = Column(Float, nullable=True)  # km/h
    heading = Column(Float, nullable=True)
    accuracy_meters = Column(Float, nullable=True)
    source = Column(String(20), nullable=False, default="gps")  # gps, sim

    event_time = Column(DateTime, nullable=False, index=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    trip = relationship("Trip")

    def __repr__(self):
        return f"<LocationPoint trip={self.trip_id} ({self.latitude}, {self.longitude}) @ {self.event_time}>"
