"""
Tracking Setting Model

Key/value rows holding operational thresholds. Values are stored as text and
parsed by transitops.core.thresholds.
"""
from sqlalchemy import Column, Integer, String, DateTime, Text
from datetime import datetime

from transitops.db.base import Base


class TrackingSetting(Base):
    """Named threshold value (e.g. route_deviation_threshold_meters)"""
    __tablename__ = "tracking_settings"

    id = Column(Integer, primary_key=True, index=True)
    setting_key = Column(String(100), unique=True, nullable=False, index=True)
    setting_value = Column(String(255), nullable=True)
    description = Column(Text, nullable=True)

    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<TrackingSetting {self.setting_key}={self.setting_value}>"
