import logging
import time

from fastapi import APIRouter

from app.responses import error, json_response
from core.database import dialect, fetch_one

log = logging.getLogger("site.health")

router = APIRouter(prefix="/api/health")


def database_up() -> bool:
    try:
        fetch_one("SELECT 1 AS ok")
    except Exception:
        log.exception("Database health check failed")
        return False
    return True


@router.get("")
def health():
    up = database_up()
    return json_response({"success": True, "status": "ok", "database": "up" if up else "down"})


@router.get("/database")
def health_database():
    started = time.perf_counter()
    if not database_up():
        return error(503, "Database unavailable")
    return json_response(
        {
            "success": True,
            "database": "up",
            "dialect": dialect(),
            "latencyMs": round((time.perf_counter() - started) * 1000, 2),
        }
    )
