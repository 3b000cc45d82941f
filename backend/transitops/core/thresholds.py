"""
Operational thresholds

Threshold values live in the tracking_settings table as text. Each monitor
run loads them once into an immutable model and passes that model to the
evaluators, so the evaluation functions never query settings themselves.

A missing, unparseable or non-positive value falls back to the default.
Loading never raises.
"""
from typing import Dict, Iterable, Optional, Type, TypeVar

from pydantic import BaseModel, ConfigDict
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from transitops.logging_config import get_logger
from transitops.models.tracking_setting import TrackingSetting

logger = get_logger(__name__)


class _Thresholds(BaseModel):
    model_config = ConfigDict(frozen=True)


class AlertThresholds(_Thresholds):
    """Trip alert thresholds"""
    route_deviation_threshold_meters: int = 500
    stoppage_threshold_minutes: int = 30
    tracking_lost_threshold_minutes: int = 30
    delay_threshold_minutes: int = 60
    idle_threshold_minutes: int = 120


class ComplianceThresholds(_Thresholds):
    """Document expiry thresholds, in days"""
    compliance_warning_days: int = 30
    compliance_critical_days: int = 7


class GeofenceSettings(_Thresholds):
    geofence_default_radius_meters: int = 500
    geofence_stale_location_minutes: int = 30


T = TypeVar("T", bound=_Thresholds)


def parse_threshold(key: str, raw: Optional[str], default: int) -> int:
    """
    Parse one stored setting value.

    Accepts integer text (surrounding whitespace allowed). Anything else,
    including zero and negatives, yields the default and a warning.
    """
    if raw is None or str(raw).strip() == "":
        return default
    try:
        value = int(str(raw).strip())
    except ValueError:
        logger.warning(
            f"Invalid value for setting {key}: {raw!r}, using default {default}",
            extra={"setting_key": key, "setting_value": raw, "default": default},
        )
        return default
    if value <= 0:
        logger.warning(
            f"Non-positive value for setting {key}: {value}, using default {default}",
            extra={"setting_key": key, "setting_value": raw, "default": default},
        )
        return default
    return value


def build_thresholds(model: Type[T], raw_values: Dict[str, Optional[str]]) -> T:
    """Build a threshold model from raw key/value text, defaulting field by field"""
    values = {}
    for name, field in model.model_fields.items():
        values[name] = parse_threshold(name, raw_values.get(name), field.default)
    return model(**values)


def _read_settings(db: Session, keys: Iterable[str]) -> Dict[str, Optional[str]]:
    keys = list(keys)
    try:
        rows = (
            db.query(TrackingSetting)
            .filter(TrackingSetting.setting_key.in_(keys))
            .all()
        )
    except SQLAlchemyError as e:
        logger.warning(
            f"Could not read tracking settings, using defaults: {e}",
            extra={"keys": keys},
        )
        db.rollback()
        return {}
    return {row.setting_key: row.setting_value for row in rows}


def _load(db: Session, model: Type[T]) -> T:
    return build_thresholds(model, _read_settings(db, model.model_fields.keys()))


def load_alert_thresholds(db: Session) -> AlertThresholds:
    return _load(db, AlertThresholds)


def load_compliance_thresholds(db: Session) -> ComplianceThresholds:
    return _load(db, ComplianceThresholds)


def load_geofence_settings(db: Session) -> GeofenceSettings:
    return _load(db, GeofenceSettings)
