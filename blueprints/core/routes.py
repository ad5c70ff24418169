from __future__ import annotations
import json, logging
from datetime import datetime, timezone
from uuid import uuid4

from flask import g, jsonify, request
from flask_wtf.csrf import CSRFError, generate_csrf
from pydantic import ValidationError
from sqlalchemy.exc import IntegrityError
from werkzeug.exceptions import HTTPException
from werkzeug.wrappers.response import Response

from extensions import csrf, db
from . import bp, api_bp
from .errors import DomainError

log = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"

def _utcnow() -> datetime:
    return datetime.now(timezone.utc)

class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "ts": _utcnow().isoformat(timespec="milliseconds").replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        for key in ("event", "path", "method", "status", "duration_ms", "request_id", "actor"):
            if hasattr(record, key):
                payload[key] = getattr(record, key)
        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False)

def _setup_structured_logging(app):
    logger = app.logger
    has_json = any(
        isinstance(h, logging.StreamHandler)
        and isinstance(getattr(h, "formatter", None), JSONFormatter)
        for h in logger.handlers
    )
    if not has_json:
        handler = logging.StreamHandler()
        handler.setFormatter(JSONFormatter())
        logger.addHandler(handler)
        logger.setLevel(app.config.get("LOG_LEVEL", "INFO"))

@bp.record_once
def _on_register(state):
    _setup_structured_logging(state.app)

# ---------- request id + access log ----------
@bp.before_app_request
def _start_request():
    g._req_start = _utcnow()
    g.request_id = request.headers.get(REQUEST_ID_HEADER) or uuid4().hex

@bp.after_app_request
def _finish_request(response: Response):
    rid = getattr(g, "request_id", None)
    if rid:
        response.headers[REQUEST_ID_HEADER] = rid
    start = getattr(g, "_req_start", None)
    duration_ms = int((_utcnow() - start).total_seconds() * 1000) if start else None
    from flask import current_app
    current_app.logger.info("request handled", extra={
        "event": "http_request",
        "path": request.path,
        "method": request.method,
        "status": response.status_code,
        "duration_ms": duration_ms,
        "request_id": rid,
    })
    return response

# ---------- errors → JSON ----------
def _pydantic_errors_safe(ve: ValidationError):
    errs = ve.errors(include_url=False)
    for e in errs:
        if "ctx" in e and isinstance(e["ctx"], dict):
            e["ctx"] = {k: str(v) for k, v in e["ctx"].items()}
        if "input" in e:
            e["input"] = str(e["input"])
    return errs

@bp.app_errorhandler(DomainError)
def _domain_error(err: DomainError):
    db.session.rollback()
    level = logging.INFO if err.status_code == 404 else logging.WARNING
    log.log(level, "rejected %s %s: %s", request.method, request.path, err,
            extra={"request_id": getattr(g, "request_id", None)})
    return jsonify(err.to_dict()), err.status_code

@bp.app_errorhandler(ValidationError)
def _validation_error(err: ValidationError):
    return jsonify({"ok": False, "errors": [{
        "code": "BAD_REQUEST", "message": "invalid payload", "details": {"fields": _pydantic_errors_safe(err)},
    }]}), 400

@bp.app_errorhandler(IntegrityError)
def _integrity_error(err: IntegrityError):
    # проверка на уровне приложения проиграла гонку уникальному индексу
    db.session.rollback()
    log.warning("integrity error on %s %s: %s", request.method, request.path, getattr(err, "orig", err))
    return jsonify({"ok": False, "errors": [{
        "code": "UNIQUE_CONSTRAINT", "message": "unique constraint violation", "details": {},
    }]}), 409

@bp.app_errorhandler(CSRFError)
def _csrf_error(err: CSRFError):
    return jsonify({"ok": False, "errors": [{
        "code": "CSRF_FAILED", "message": err.description, "details": {},
    }]}), 400

@bp.app_errorhandler(HTTPException)
def _http_error(err: HTTPException):
    code = (err.name or "error").upper().replace(" ", "_")
    return jsonify({"ok": False, "errors": [{
        "code": code, "message": err.description, "details": {},
    }]}), err.code

# ---------- endpoints ----------
@bp.get("/health")
def health():
    return jsonify({
        "status": "ok",
        "ts": _utcnow().isoformat(timespec="seconds").replace("+00:00", "Z"),
        "request_id": getattr(g, "request_id", None),
    })

@api_bp.get("/csrf")
@csrf.exempt          # токен выдаём без проверки
def get_csrf():
    token = generate_csrf()
    resp = jsonify({"csrf": token})
    resp.set_cookie("csrf_token", token, samesite="Lax", httponly=False, path="/")
    return resp
