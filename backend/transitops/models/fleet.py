"""
Fleet Models - Vehicles and Drivers

Both carry document expiry dates scanned by the compliance monitor.
"""
from sqlalchemy import Column, Integer, String, DateTime, Date, Boolean
from datetime import datetime

from transitops.db.base import Base


class Vehicle(Base):
    """Vehicle with registration and statutory document expiries"""
    __tablename__ = "vehicles"

    id = Column(Integer, primary_key=True, index=True)
    vehicle_number = Column(String(50), unique=True, nullable=False, index=True)
    vehicle_type = Column(String(50), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True, index=True)

    # Document expiries (date only)
    rc_expiry_date = Column(Date, nullable=True)
    insurance_expiry_date = Column(Date, nullable=True)
    permit_expiry_date = Column(Date, nullable=True)
    fitness_expiry_date = Column(Date, nullable=True)
    puc_expiry_date = Column(Date, nullable=True)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<Vehicle {self.vehicle_number}>"


class Driver(Base):
    """Driver with license and police verification expiries"""
    __tablename__ = "drivers"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(200), nullable=False)
    mobile = Column(String(20), nullable=True)
    license_number = Column(String(50), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True, index=True)

    license_expiry_date = Column(Date, nullable=True)
    police_verification_expiry = Column(Date, nullable=True)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<Driver {self.name}>"
