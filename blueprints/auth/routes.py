# blueprints/auth/routes.py
from __future__ import annotations
import logging
import time
from functools import wraps
from typing import Callable, Optional

from flask import Blueprint, request, jsonify, abort, current_app
from flask_login import login_user, logout_user, login_required, current_user

from extensions import db, csrf, login_manager
from models import ACCOUNT_MODELS, AccountMixin, Admin, Role, Student
from blueprints.core.errors import Conflict, Forbidden, ValidationFailed
from .schemas import ChangePasswordIn, LoginIn, RegisterIn

log = logging.getLogger(__name__)

api_bp = Blueprint("auth_api", __name__)

# ---- безопасные значения по умолчанию
DEFAULT_RL_MAX = 5
DEFAULT_RL_WIN = 300  # 5 минут
_login_attempts: dict[str, list[float]] = {}  # ключ: ip|email -> [timestamps]


# ---------- Flask-Login ----------
@login_manager.user_loader
def load_user(uid: str) -> Optional[AccountMixin]:
    # формат "ROLE:id", см. AccountMixin.get_id
    role, _, raw_id = (uid or "").partition(":")
    model = ACCOUNT_MODELS.get(role)
    if model is None or not raw_id.isdigit():
        return None
    return db.session.get(model, int(raw_id))


@login_manager.unauthorized_handler
def _unauth():
    return jsonify({"ok": False, "errors": [{
        "code": "UNAUTHORIZED", "message": "authentication required", "details": {},
    }]}), 401


def find_account(email: str) -> Optional[AccountMixin]:
    email = (email or "").strip().lower()
    for model in ACCOUNT_MODELS.values():
        acc = model.query.filter_by(email=email).first()
        if acc is not None:
            return acc
    return None


def email_taken(email: str, exclude: Optional[AccountMixin] = None) -> bool:
    acc = find_account(email)
    return acc is not None and acc is not exclude


def actor_ref() -> Optional[str]:
    """Кто выполняет действие (для журнала аудита)."""
    if getattr(current_user, "is_authenticated", False):
        return current_user.get_id()
    return None


def account_to_dict(acc: AccountMixin) -> dict:
    out = {"id": acc.id, "name": acc.name, "email": acc.email, "role": acc.role}
    if isinstance(acc, Student):
        out["major"] = acc.major
    if isinstance(acc, Admin):
        out["permission_level"] = acc.permission_level.value
    return out


# ---------- rate limit ----------
def _rl_key(email: str) -> str:
    ip = request.headers.get("X-Forwarded-For", request.remote_addr or "0.0.0.0").split(",")[0].strip()
    return f"{ip}|{(email or '').lower()}"


def _rl_check_and_hit(email: str) -> bool:
    now = time.time()
    win = current_app.config.get("AUTH_RL_WINDOW", DEFAULT_RL_WIN)
    mx = current_app.config.get("AUTH_RL_MAX", DEFAULT_RL_MAX)
    key = _rl_key(email)
    bucket = _login_attempts.setdefault(key, [])
    # purge старых
    cutoff = now - win
    while bucket and bucket[0] < cutoff:
        bucket.pop(0)
    if len(bucket) >= mx:
        return False
    bucket.append(now)
    return True


# ---------- декораторы ролей ----------
def admin_required(fn: Callable):
    @wraps(fn)
    @login_required
    def wrapper(*args, **kwargs):
        if getattr(current_user, "role", None) != Role.ADMIN.value or not current_user.is_active:
            abort(403)
        # изменять данные может только активный админ с полными правами
        if request.method not in ("GET", "HEAD", "OPTIONS") and not current_user.can_perform_action():
            abort(403)
        return fn(*args, **kwargs)
    return wrapper


def teacher_required(fn: Callable):
    @wraps(fn)
    @login_required
    def wrapper(*args, **kwargs):
        if getattr(current_user, "role", None) != Role.TEACHER.value:
            abort(403)
        return fn(*args, **kwargs)
    return wrapper


def student_required(fn: Callable):
    @wraps(fn)
    @login_required
    def wrapper(*args, **kwargs):
        if getattr(current_user, "role", None) != Role.STUDENT.value:
            abort(403)
        return fn(*args, **kwargs)
    return wrapper


# ---------- API ----------
@api_bp.post("/auth/login")
@csrf.exempt
def api_login():
    data = LoginIn.model_validate(request.get_json(silent=True) or request.form or {})

    # rate limit
    if not _rl_check_and_hit(data.email):
        log.warning("login rate limit hit for %s", data.email)
        return jsonify({"ok": False, "errors": [{
            "code": "TOO_MANY_ATTEMPTS", "message": "too many login attempts", "details": {},
        }]}), 429

    acc = find_account(data.email)
    if acc is None or not acc.check_password(data.password):
        log.info("failed login for %s", data.email)
        return jsonify({"ok": False, "errors": [{
            "code": "INVALID_CREDENTIALS", "message": "invalid email or password", "details": {},
        }]}), 401

    if not acc.is_active:
        raise Forbidden.of("ACCOUNT_INACTIVE", "account is disabled")

    login_user(acc, remember=True, duration=None)
    log.info("login %s", acc.get_id())
    return jsonify({"ok": True, "user": account_to_dict(acc)})


@api_bp.post("/auth/register")
def api_register():
    data = RegisterIn.model_validate(request.get_json(silent=True) or {})
    if email_taken(data.email):
        raise Conflict.of("EMAIL_TAKEN", "email is already registered", email=data.email)

    st = Student(name=data.name, email=data.email, major=data.major)
    st.set_password(data.password)
    db.session.add(st)
    db.session.commit()
    login_user(st, remember=True, duration=None)
    log.info("student %s registered", st.id)
    return jsonify({"ok": True, "user": account_to_dict(st)}), 201


@api_bp.post("/auth/logout")
@login_required
def api_logout():
    logout_user()
    return jsonify({"ok": True})


@api_bp.get("/auth/me")
@login_required
def api_me():
    return jsonify({"ok": True, "user": account_to_dict(current_user)})


@api_bp.get("/auth/session")
def api_session():
    if not current_user.is_authenticated:
        return jsonify({"authenticated": False, "user": None})
    return jsonify({"authenticated": True, "user": account_to_dict(current_user)})


@api_bp.get("/auth/check-email")
def api_check_email():
    email = (request.args.get("email") or "").strip().lower()
    if not email:
        raise ValidationFailed.of("BAD_REQUEST", "email is required")
    return jsonify({"email": email, "available": not email_taken(email)})


@api_bp.post("/auth/change-password")
@login_required
def api_change_password():
    data = ChangePasswordIn.model_validate(request.get_json(silent=True) or {})
    acc = current_user._get_current_object()
    if not acc.check_password(data.current_password):
        raise ValidationFailed.of("WRONG_PASSWORD", "current password is incorrect")
    if data.current_password == data.new_password:
        raise ValidationFailed.of("SAME_PASSWORD", "new password must differ from the current one")
    acc.set_password(data.new_password)
    db.session.commit()
    log.info("password changed for %s", acc.get_id())
    return jsonify({"ok": True})


__all__ = [
    "api_bp", "admin_required", "teacher_required", "student_required",
    "actor_ref", "account_to_dict", "email_taken", "find_account",
]
