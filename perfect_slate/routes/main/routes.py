import logging
from datetime import datetime, timezone

from flask import current_app, jsonify, request
from flask_login import current_user, login_required
from sqlalchemy import text

from perfect_slate import db, limiter
from perfect_slate.models import Contest
from perfect_slate.routes.main import bp

logger = logging.getLogger(__name__)


@bp.route("/")
def index():
    """Service overview with the current contest per sport"""
    contests = {}
    for sport in current_app.config.get("SUPPORTED_SPORTS", []):
        contest = Contest.get_current(sport)
        contests[sport] = contest.to_dict() if contest else None

    return jsonify({"name": "Perfect Slate", "contests": contests})


@bp.route("/health")
@limiter.exempt
def health():
    """Health check endpoint - exempt from rate limiting for monitoring systems"""
    try:
        db.session.execute(text("SELECT 1"))
        database = "ok"
    except Exception as e:
        logger.error(f"Health check database error: {e}")
        database = "error"

    status = "healthy" if database == "ok" else "degraded"
    return (
        jsonify(
            {
                "status": status,
                "database": database,
                "timestamp": datetime.now(timezone.utc).isoformat(),
            }
        ),
        200 if database == "ok" else 503,
    )


@bp.route("/admin/scheduler")
@login_required
def admin_scheduler():
    """Scheduler status for admins"""
    if not current_user.is_admin:
        return jsonify({"success": False, "error": "Admin privileges required"}), 403

    from perfect_slate.services.scheduler_service import scheduler_service
    from perfect_slate.socketio_handlers import get_connection_stats
    from perfect_slate.utils.cache_utils import get_cache_stats

    return jsonify(
        {
            "scheduler": scheduler_service.get_status(),
            "connections": get_connection_stats(),
            "cache": get_cache_stats(),
        }
    )


@bp.route("/admin/scheduler/action", methods=["POST"])
@login_required
def admin_scheduler_action():
    """Handle admin scheduler actions"""
    if not current_user.is_admin:
        return jsonify({"success": False, "error": "Access denied"}), 403

    from perfect_slate.services.scheduler_service import scheduler_service

    data = request.get_json(silent=True) or {}
    action = data.get("action")

    if action == "start":
        scheduler_service.start()
        return jsonify({"success": True, "message": "Scheduler started successfully"})

    if action == "stop":
        scheduler_service.stop()
        return jsonify({"success": True, "message": "Scheduler stopped successfully"})

    if action == "force_sync":
        success, message = scheduler_service.force_sync(data.get("sync_type", "live"))
    elif action in ("pause_job", "resume_job"):
        job_id = data.get("job_id")
        if not job_id:
            return jsonify({"success": False, "error": "Job ID required"}), 400
        handler = getattr(scheduler_service, action)
        success, message = handler(job_id)
    else:
        return jsonify({"success": False, "error": "Unknown action"}), 400

    if success:
        return jsonify({"success": True, "message": message})
    return jsonify({"success": False, "error": message}), 400
