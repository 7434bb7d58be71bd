# campus_vote/operations/health_monitor.py

# Liveness/readiness health checks (database, disk)

import shutil
from typing import Dict

from flask import Blueprint, current_app, jsonify
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from campus_vote import db

health = Blueprint('health', __name__)


def _check_db() -> Dict:
    try:
        db.session.execute(text("SELECT 1"))
        return {"ok": True, "detail": "database reachable", "dialect": db.engine.dialect.name}
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error("Health check database query failed: %s", e)
        return {"ok": False, "error": "database unreachable"}


def _check_disk() -> Dict:
    min_free_gb = current_app.config.get('MIN_FREE_DISK_GB', 1)
    total, used, free = shutil.disk_usage(".")
    free_gb = free / (1024**3)
    return {"ok": free_gb >= min_free_gb, "free_gb": round(free_gb, 2), "min_required_gb": min_free_gb}


def check_health() -> Dict:
    """Aggregate overall system health."""
    database = _check_db()
    disk = _check_disk()
    return {"db": database, "disk": disk, "overall_ok": database["ok"] and disk["ok"]}


@health.get("/health")
def liveness():
    res = check_health()
    code = 200 if res["overall_ok"] else 503
    return jsonify(res), code


@health.get("/ready")
def readiness():
    database = _check_db()
    res = {"db": database, "overall_ok": database["ok"]}
    code = 200 if database["ok"] else 503
    return jsonify(res), code
