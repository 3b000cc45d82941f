"""
Compliance Expiry Scanner

Scans vehicle and driver document expiry dates and keeps compliance_alerts
current:

1. Every active vehicle/driver document inside a threshold gets exactly one
   non-resolved alert; its level is updated in place as expiry approaches.
2. Active alerts whose document was renewed (live expiry date differs from
   the one on the alert and no longer breaches any threshold) are resolved.

Safe to re-run on any cadence; an alert is never resolved while its
document date is unchanged.
"""
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from transitops.core.status_config import (
    DRIVER_DOCUMENT_FIELDS,
    VEHICLE_DOCUMENT_FIELDS,
    AlertStatus,
    ComplianceEntityType,
    ComplianceLevel,
)
from transitops.core.thresholds import ComplianceThresholds
from transitops.logging_config import get_logger
from transitops.models.alert import ComplianceAlert
from transitops.models.fleet import Driver, Vehicle

logger = get_logger(__name__)

ENTITY_MODELS = {
    ComplianceEntityType.VEHICLE.value: (Vehicle, VEHICLE_DOCUMENT_FIELDS),
    ComplianceEntityType.DRIVER.value: (Driver, DRIVER_DOCUMENT_FIELDS),
}


@dataclass
class ExpiringDocument:
    entity_type: str
    entity_id: int
    document_type: str
    expiry_date: date
    alert_level: str


@dataclass
class ComplianceScanSummary:
    vehicle_alerts: int = 0
    driver_alerts: int = 0
    alerts_created: int = 0
    alerts_updated: int = 0
    alerts_resolved: int = 0
    failed_entities: List[Tuple[str, int]] = field(default_factory=list)


def _as_date(value) -> Optional[date]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    return value


def days_until_expiry(expiry_date, today: date) -> int:
    """Whole days from today to expiry (negative once expired); time of day ignored"""
    return (_as_date(expiry_date) - today).days


def classify_expiry(
    expiry_date,
    today: date,
    thresholds: ComplianceThresholds,
) -> Optional[str]:
    """expired / critical / warning, or None when outside every threshold"""
    days = days_until_expiry(expiry_date, today)
    if days < 0:
        return ComplianceLevel.EXPIRED.value
    if days <= thresholds.compliance_critical_days:
        return ComplianceLevel.CRITICAL.value
    if days <= thresholds.compliance_warning_days:
        return ComplianceLevel.WARNING.value
    return None


def find_expiring_documents(
    entity_type: str,
    entity,
    today: date,
    thresholds: ComplianceThresholds,
) -> List[ExpiringDocument]:
    """Classified documents for one vehicle or driver"""
    _, document_fields = ENTITY_MODELS[entity_type]
    found = []
    for document_type, column in document_fields.items():
        expiry = _as_date(getattr(entity, column))
        if expiry is None:
            continue
        level = classify_expiry(expiry, today, thresholds)
        if level is None:
            continue
        found.append(ExpiringDocument(
            entity_type=entity_type,
            entity_id=entity.id,
            document_type=document_type,
            expiry_date=expiry,
            alert_level=level,
        ))
    return found


def upsert_compliance_alert(db: Session, doc: ExpiringDocument, now: datetime) -> Optional[str]:
    """
    Create or refresh the non-resolved alert for a document.

    Returns "created", "updated" or None (level unchanged). Does not commit.
    """
    existing = (
        db.query(ComplianceAlert)
        .filter(
            ComplianceAlert.entity_type == doc.entity_type,
            ComplianceAlert.entity_id == doc.entity_id,
            ComplianceAlert.document_type == doc.document_type,
            ComplianceAlert.status != AlertStatus.RESOLVED.value,
        )
        .first()
    )

    if existing is not None:
        if existing.alert_level == doc.alert_level:
            return None
        logger.info(
            f"Compliance alert level {existing.alert_level} -> {doc.alert_level}",
            extra={
                "entity_type": doc.entity_type,
                "entity_id": doc.entity_id,
                "document_type": doc.document_type,
            },
        )
        existing.alert_level = doc.alert_level
        existing.expiry_date = doc.expiry_date
        existing.updated_at = now
        return "updated"

    db.add(ComplianceAlert(
        entity_type=doc.entity_type,
        entity_id=doc.entity_id,
        document_type=doc.document_type,
        expiry_date=doc.expiry_date,
        alert_level=doc.alert_level,
        status=AlertStatus.ACTIVE.value,
        created_at=now,
        updated_at=now,
    ))
    logger.info(
        f"Created {doc.alert_level} compliance alert for {doc.entity_type} {doc.entity_id}: {doc.document_type}",
        extra={
            "entity_type": doc.entity_type,
            "entity_id": doc.entity_id,
            "document_type": doc.document_type,
            "expiry_date": doc.expiry_date,
        },
    )
    return "created"


def _live_expiry_date(db: Session, alert: ComplianceAlert) -> Optional[date]:
    model_and_fields = ENTITY_MODELS.get(alert.entity_type)
    if model_and_fields is None:
        return None
    model, document_fields = model_and_fields
    column = document_fields.get(alert.document_type)
    if column is None:
        return None
    entity = db.get(model, alert.entity_id)
    if entity is None:
        return None
    return _as_date(getattr(entity, column))


def resolve_renewed_alerts(
    db: Session,
    today: date,
    thresholds: ComplianceThresholds,
    now: datetime,
    summary: ComplianceScanSummary,
) -> int:
    """Resolve active alerts whose document has been renewed past every threshold"""
    alert_ids = [
        alert_id
        for (alert_id,) in db.query(ComplianceAlert.id)
        .filter(ComplianceAlert.status == AlertStatus.ACTIVE.value)
        .order_by(ComplianceAlert.id)
        .all()
    ]

    resolved = 0
    for alert_id in alert_ids:
        try:
            alert = db.get(ComplianceAlert, alert_id)
            live_expiry = _live_expiry_date(db, alert)
            if live_expiry is None or live_expiry == _as_date(alert.expiry_date):
                continue
            if classify_expiry(live_expiry, today, thresholds) is not None:
                continue

            alert.status = AlertStatus.RESOLVED.value
            alert.resolved_at = now
            alert.updated_at = now
            db.commit()
        except Exception as e:
            db.rollback()
            summary.failed_entities.append(("compliance_alert", alert_id))
            logger.error(
                f"Failed to resolve compliance alert {alert_id}: {e}",
                extra={"alert_id": alert_id},
                exc_info=True,
            )
            continue

        resolved += 1
        logger.info(
            f"Resolved compliance alert {alert_id}: document renewed",
            extra={"alert_id": alert_id, "new_expiry_date": live_expiry},
        )
    return resolved


def run_compliance_scan(
    db: Session,
    thresholds: ComplianceThresholds,
    today: Optional[date] = None,
    now: Optional[datetime] = None,
) -> ComplianceScanSummary:
    """
    Full scan over active vehicles and drivers, then the renewal sweep.

    Each entity's alerts are committed together; any failure rolls back that
    entity only and the scan continues.
    """
    now = now or datetime.utcnow()
    today = today or now.date()
    summary = ComplianceScanSummary()

    for entity_type, (model, _) in ENTITY_MODELS.items():
        entity_ids = [
            entity_id
            for (entity_id,) in db.query(model.id)
            .filter(model.is_active.is_(True))
            .order_by(model.id)
            .all()
        ]
        for entity_id in entity_ids:
            try:
                entity = db.get(model, entity_id)
                docs = find_expiring_documents(entity_type, entity, today, thresholds)
                outcomes = [upsert_compliance_alert(db, doc, now) for doc in docs]
                db.commit()
            except Exception as e:
                db.rollback()
                summary.failed_entities.append((entity_type, entity_id))
                logger.error(
                    f"Compliance scan failed for {entity_type} {entity_id}: {e}",
                    extra={"entity_type": entity_type, "entity_id": entity_id},
                    exc_info=True,
                )
                continue

            if entity_type == ComplianceEntityType.VEHICLE.value:
                summary.vehicle_alerts += len(docs)
            else:
                summary.driver_alerts += len(docs)
            summary.alerts_created += outcomes.count("created")
            summary.alerts_updated += outcomes.count("updated")

    summary.alerts_resolved = resolve_renewed_alerts(db, today, thresholds, now, summary)

    logger.info(
        "Compliance scan complete",
        extra={
            "vehicle_alerts": summary.vehicle_alerts,
            "driver_alerts": summary.driver_alerts,
            "alerts_created": summary.alerts_created,
            "alerts_updated": summary.alerts_updated,
            "alerts_resolved": summary.alerts_resolved,
        },
    )
    return summary


def list_open_compliance_alerts(db: Session) -> List[ComplianceAlert]:
    """Non-resolved compliance alerts, most urgent expiry first"""
    return (
        db.query(ComplianceAlert)
        .filter(ComplianceAlert.status != AlertStatus.RESOLVED.value)
        .order_by(ComplianceAlert.expiry_date.asc(), ComplianceAlert.id.asc())
        .all()
    )


def summarize_by_level(alerts: List[ComplianceAlert]) -> Dict[str, int]:
    counts = {level.value: 0 for level in ComplianceLevel}
    for alert in alerts:
        counts[alert.alert_level] = counts.get(alert.alert_level, 0) + 1
    return counts
