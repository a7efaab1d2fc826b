"""
Health Check Endpoints

Calendar store health and service status.
"""

import logging
import time
from datetime import datetime
from typing import Dict, Any

import psutil
from fastapi import APIRouter

from ..config import settings
from ..core.database import Database
from .deps import DatabaseDep
from .. import __version__

logger = logging.getLogger(__name__)

router = APIRouter()

_start_time = time.time()

# Disk usage (percent) of the database volume that degrades the service
DISK_DEGRADED_PERCENT = 95


async def _calendar_check(db: Database) -> Dict[str, Any]:
    stats = await db.get_calendar_stats()
    counts = stats["counts"]
    return {
        "status": "error" if stats["missing_tables"] else "ok",
        "missing_tables": stats["missing_tables"],
        "teams": counts.get("teams", 0),
        "users": counts.get("users", 0),
        "items": counts.get("items", 0),
        "bookings": counts.get("team_events", 0),
    }


def _disk_check() -> Dict[str, Any]:
    disk = psutil.disk_usage(str(settings.database_full_path.parent))
    return {
        "status": "ok" if disk.percent < 80 else "warning",
        "percent": round(disk.percent, 1),
        "free_gb": round(disk.free / (1024 * 1024 * 1024), 2)
    }


@router.get("/health")
async def health_check(db: DatabaseDep) -> Dict[str, Any]:
    """
    Health of the calendar store.

    Reports SQLite integrity, the calendar tables with their row counts
    (teams, users, items, bookings) and free space on the database disk.
    Missing tables or a failed integrity check mark the service degraded,
    an unreachable database marks it unhealthy.
    """
    health = {
        "status": "healthy",
        "timestamp": datetime.now().isoformat(),
        "version": __version__,
        "uptime_seconds": round(time.time() - _start_time, 2),
        "checks": {}
    }

    try:
        is_ok = await db.check_integrity()
        health["checks"]["database"] = {
            "status": "ok" if is_ok else "error",
            "path": str(settings.database_path)
        }
        calendar = await _calendar_check(db)
        health["checks"]["calendar"] = calendar
        if not is_ok or calendar["missing_tables"]:
            health["status"] = "degraded"
    except Exception as e:
        logger.error(f"Health check could not query the database: {e}")
        health["checks"]["database"] = {"status": "error", "message": str(e)}
        health["status"] = "unhealthy"
        return health

    try:
        disk = _disk_check()
        health["checks"]["disk"] = disk
        if disk["percent"] >= DISK_DEGRADED_PERCENT:
            health["status"] = "degraded"
    except Exception as e:
        health["checks"]["disk"] = {"status": "error", "message": str(e)}

    return health


@router.get("/status")
async def status() -> Dict[str, Any]:
    """Quick status with the active booking rules"""
    return {
        "status": "running",
        "timestamp": datetime.now().isoformat(),
        "version": __version__,
        "uptime_seconds": round(time.time() - _start_time, 2),
        "booking_rules": {
            "scope_event_lookup_by_team": settings.scope_event_lookup_by_team,
            "reject_overlapping_bookings": settings.reject_overlapping_bookings,
        }
    }
