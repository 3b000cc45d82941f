#!/usr/bin/env python3
"""
TransitOps Monitoring Runner

Runs the scheduled monitoring sweeps against the configured database and
prints a JSON summary per sweep. Meant to be called from cron:

    */5 * * * *  cd backend && python scripts/run_monitors.py trip-alerts geofence
    0 6 * * *    cd backend && python scripts/run_monitors.py compliance

Exits 1 if any trip or entity failed during a sweep.
"""
import json
import os
import sys
from dataclasses import asdict

# Add project root to path
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from transitops.core.thresholds import (
    load_alert_thresholds,
    load_compliance_thresholds,
    load_geofence_settings,
)
from transitops.db.session import SessionLocal
from transitops.logging_config import setup_logging, get_logger
from transitops.services.compliance import run_compliance_scan
from transitops.services.geofence import run_geofence_sweep
from transitops.services.trip_alerts import run_trip_alert_sweep

logger = get_logger(__name__)

SWEEPS = ("trip-alerts", "compliance", "geofence")


def run_sweep(db, name: str) -> dict:
    """Run one sweep and return its summary as a plain dict"""
    if name == "trip-alerts":
        summary = run_trip_alert_sweep(db, load_alert_thresholds(db))
        result = asdict(summary)
        result["failed"] = len(summary.failed_trips)
    elif name == "compliance":
        summary = run_compliance_scan(db, load_compliance_thresholds(db))
        result = asdict(summary)
        result["failed"] = len(summary.failed_entities)
    elif name == "geofence":
        summary = run_geofence_sweep(db, load_geofence_settings(db))
        result = asdict(summary)
        result["shipments_updated"] = summary.shipments_updated
        result["failed"] = len(summary.failed_trips)
    else:
        raise ValueError(f"Unknown sweep: {name}")
    return result


def main():
    """CLI entry point"""
    import argparse

    parser = argparse.ArgumentParser(
        description="TransitOps monitoring sweeps",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python scripts/run_monitors.py all
  python scripts/run_monitors.py trip-alerts geofence
  python scripts/run_monitors.py compliance --output compliance.json
        """
    )
    parser.add_argument(
        "sweeps",
        nargs="+",
        choices=SWEEPS + ("all",),
        help="Sweeps to run, in order",
    )
    parser.add_argument(
        "--output", "-o",
        type=str,
        help="Write the JSON summary to a file instead of stdout",
    )

    args = parser.parse_args()
    setup_logging()

    names = list(SWEEPS) if "all" in args.sweeps else args.sweeps

    report = {}
    db = SessionLocal()
    try:
        for name in names:
            logger.info(f"Running {name} sweep")
            report[name] = run_sweep(db, name)
    finally:
        db.close()

    output = json.dumps(report, indent=2, default=str)
    if args.output:
        with open(args.output, "w") as f:
            f.write(output)
        print(f"Report written to {args.output}")
    else:
        print(output)

    if any(result["failed"] for result in report.values()):
        sys.exit(1)
    sys.exit(0)


if __name__ == "__main__":
    main()
