"""
API v1 Router - TransitOps
"""
from fastapi import APIRouter
from transitops.api.v1.endpoints import (
    shipments,
    trips,
    alerts,
    monitoring,
)

router = APIRouter()

# Shipment status workflow
router.include_router(shipments.router)

# Telemetry ingestion and trip alerts
router.include_router(trips.router)
router.include_router(alerts.router)

# Scheduler-triggered sweeps
router.include_router(monitoring.router)
