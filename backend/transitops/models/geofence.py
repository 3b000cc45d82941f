"""
Geofence State Model

Last geofence event recorded per (trip, shipment) so the monitor does not
re-fire the same event on every sweep. The event stands only while the
shipment keeps the status it produced.
"""
from sqlalchemy import Column, Integer, String, DateTime, Float, ForeignKey, UniqueConstraint
from datetime import datetime

from transitops.db.base import Base


class GeofenceState(Base):
    """Last known geofence event for a shipment on a trip"""
    __tablename__ = "geofence_states"
    __table_args__ = (
        UniqueConstraint("trip_id", "shipment_id", name="uq_geofence_states_trip_shipment"),
    )

    id = Column(Integer, primary_key=True, index=True)
    trip_id = Column(
        Integer,
        ForeignKey("trips.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    shipment_id = Column(
        Integer,
        ForeignKey("shipments.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    # pickup_entry, pickup_exit, delivery_entry, delivery_exit
    last_event = Column(String(30), nullable=False)
    resulting_status = Column(String(30), nullable=False)
    distance_meters = Column(Float, nullable=True)
    event_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    def __repr__(self):
        return f"<GeofenceState trip={self.trip_id} shipment={self.shipment_id} {self.last_event}>"
