"""
Shipment Models

A shipment moves through the status workflow in transitops.core.status_config.
Every status or sub-status change appends one ShipmentStatusHistory row.
"""
from sqlalchemy import Column, Integer, String, DateTime, Float, Boolean, ForeignKey, Text, JSON
from sqlalchemy.orm import relationship
from datetime import datetime

from transitops.db.base import Base


class Shipment(Base):
    """Shipment - consignment tracked from intake to payment"""
    __tablename__ = "shipments"

    id = Column(Integer, primary_key=True, index=True)
    shipment_code = Column(String(50), unique=True, nullable=True, index=True)

    status = Column(String(50), nullable=False, default="created", index=True)
    sub_status = Column(String(50), nullable=True)  # Scoped to status

    trip_id = Column(Integer, ForeignKey("trips.id"), nullable=True, index=True)

    # Mandatory before confirmation
    consignee_code = Column(String(50), nullable=True)
    material_id = Column(Integer, nullable=True)  # Material master lives outside this service
    pickup_location_id = Column(Integer, ForeignKey("locations.id"), nullable=True)
    drop_location_id = Column(Integer, ForeignKey("locations.id"), nullable=True)

    quantity = Column(Float, nullable=True)
    weight_kg = Column(Float, nullable=True)
    planned_pickup_time = Column(DateTime, nullable=True)
    planned_delivery_time = Column(DateTime, nullable=True)

    # Delay tracking
    is_delayed = Column(Boolean, nullable=False, default=False)
    delay_percentage = Column(Float, nullable=True)

    # Status timestamps
    confirmed_at = Column(DateTime, nullable=True)
    mapped_at = Column(DateTime, nullable=True)
    in_pickup_at = Column(DateTime, nullable=True)
    in_transit_at = Column(DateTime, nullable=True)
    out_for_delivery_at = Column(DateTime, nullable=True)
    delivered_at = Column(DateTime, nullable=True)
    ndr_at = Column(DateTime, nullable=True)
    returned_at = Column(DateTime, nullable=True)
    success_at = Column(DateTime, nullable=True)

    # Sub-status timestamps
    loading_started_at = Column(DateTime, nullable=True)
    loading_completed_at = Column(DateTime, nullable=True)
    pod_cleaned_at = Column(DateTime, nullable=True)
    billed_at = Column(DateTime, nullable=True)
    paid_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    trip = relationship("Trip", back_populates="shipments")
    pickup_location = relationship("Location", foreign_keys=[pickup_location_id])
    drop_location = relationship("Location", foreign_keys=[drop_location_id])
    status_history = relationship(
        "ShipmentStatusHistory",
        back_populates="shipment",
        order_by="ShipmentStatusHistory.changed_at",
    )

    def __repr__(self):
        return f"<Shipment {self.shipment_code} ({self.status}/{self.sub_status})>"


class ShipmentStatusHistory(Base):
    """Append-only audit row for one status or sub-status change"""
    __tablename__ = "shipment_status_history"

    id = Column(Integer, primary_key=True, index=True)
    shipment_id = Column(
        Integer,
        ForeignKey("shipments.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    previous_status = Column(String(50), nullable=True)
    new_status = Column(String(50), nullable=False)
    previous_sub_status = Column(String(50), nullable=True)
    new_sub_status = Column(String(50), nullable=True)

    changed_by = Column(String(100), nullable=True)  # User id/email, or None for automation
    change_source = Column(String(20), nullable=False, default="manual")  # manual, geofence, api, system
    notes = Column(Text, nullable=True)
    # "metadata" is reserved on declarative classes
    change_metadata = Column("metadata", JSON, nullable=True)

    changed_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)

    shipment = relationship("Shipment", back_populates="status_history")

    def __repr__(self):
        return f"<ShipmentStatusHistory {self.previous_status}->{self.new_status} for shipment {self.shipment_id}>"
