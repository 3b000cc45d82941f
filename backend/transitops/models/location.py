"""
Location Model

Named pickup/drop points. Coordinates and the geofence radius drive the
geofence monitor; shipments reference a pickup and a drop location.
"""
from sqlalchemy import Column, Integer, String, DateTime, Float, Boolean
from datetime import datetime

from transitops.db.base import Base


class Location(Base):
    """Location - a named site with coordinates and an optional geofence radius"""
    __tablename__ = "locations"

    id = Column(Integer, primary_key=True, index=True)
    code = Column(String(50), unique=True, nullable=True, index=True)
    name = Column(String(255), nullable=False)
    address = Column(String(500), nullable=True)
    city = Column(String(100), nullable=True)
    state = Column(String(100), nullable=True)

    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)
    # NULL means "use the configured default radius"
    geofence_radius_meters = Column(Integer, nullable=True)

    is_active = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    @property
    def has_coordinates(self) -> bool:
        return self.latitude is not None and self.longitude is not None

    def __repr__(self):
        return f"<Location {self.code or self.id}: {self.name}>"
