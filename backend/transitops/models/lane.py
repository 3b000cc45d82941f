"""
Lane Models

A lane is an origin/destination pair. Its route (encoded polyline, distance,
duration) is computed once by an external routing provider and cached in
lane_route_calculations; the alert evaluator only reads it.
"""
from sqlalchemy import Column, Integer, String, DateTime, Float, Boolean, ForeignKey, Text, JSON
from sqlalchemy.orm import relationship
from datetime import datetime

from transitops.db.base import Base


class Lane(Base):
    """Lane - predefined origin to destination route"""
    __tablename__ = "lanes"

    id = Column(Integer, primary_key=True, index=True)
    lane_code = Column(String(50), unique=True, nullable=False, index=True)
    lane_name = Column(String(255), nullable=True)

    origin_location_id = Column(Integer, ForeignKey("locations.id"), nullable=True)
    destination_location_id = Column(Integer, ForeignKey("locations.id"), nullable=True)

    distance_km = Column(Float, nullable=True)
    standard_tat_hours = Column(Float, nullable=True)  # Turn-around time
    is_active = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    origin = relationship("Location", foreign_keys=[origin_location_id])
    destination = relationship("Location", foreign_keys=[destination_location_id])
    route_calculation = relationship(
        "LaneRouteCalculation",
        back_populates="lane",
        uselist=False,
        cascade="all, delete-orphan",
    )

    def __repr__(self):
        return f"<Lane {self.lane_code}>"


class LaneRouteCalculation(Base):
    """Cached routing-provider result for a lane"""
    __tablename__ = "lane_route_calculations"

    id = Column(Integer, primary_key=True, index=True)
    lane_id = Column(
        Integer,
        ForeignKey("lanes.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
        index=True,
    )

    encoded_polyline = Column(Text, nullable=True)
    total_distance_meters = Column(Integer, nullable=True)
    total_duration_seconds = Column(Integer, nullable=True)
    waypoints = Column(JSON, nullable=True)  # [{"lat": .., "lng": ..}, ...]

    calculated_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    lane = relationship("Lane", back_populates="route_calculation")

    def __repr__(self):
        return f"<LaneRouteCalculation lane={self.lane_id}>"
