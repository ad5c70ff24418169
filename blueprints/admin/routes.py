# blueprints/admin/routes.py
from __future__ import annotations
from flask import Blueprint, jsonify, request

from blueprints.auth.routes import admin_required
from . import services as svc

api_bp = Blueprint("admin_api", __name__)


# ---------- API (summary для дашборда) ----------
@api_bp.get("/admin/dashboard/summary")
@admin_required
def dashboard_summary():
    return jsonify({"ok": True, **svc.dashboard_summary()})


# быстрый просмотр журнала
@api_bp.get("/admin/audit-logs")
@admin_required
def audit_logs():
    limit = min(200, max(1, request.args.get("limit", 50, type=int)))
    items = svc.recent_audit(
        limit=limit,
        entity=request.args.get("entity"),
        entity_id=request.args.get("entity_id", type=int),
    )
    return jsonify({"ok": True, "items": items})
