from __future__ import annotations
import logging
import os
from flask import Flask
from config import config_map
from extensions import db, migrate, login_manager, csrf
from sqlalchemy import inspect

def _seed_from_config(app):
    if not app.config.get("SEED_TEST_DATA"):
        return
    with app.app_context():
        # таблиц может ещё не быть (alembic upgrade и т.п.)
        if not inspect(db.engine).has_table("admin"):
            return

        from models import Admin, Teacher  # локальный импорт, чтобы избежать циклов
        models_by_role = {"ADMIN": Admin, "TEACHER": Teacher}
        created = 0
        for u in app.config.get("DEFAULT_USERS", []):
            model = models_by_role.get(u["role"])
            if model is None or model.query.filter_by(email=u["email"]).first():
                continue
            account = model(name=u.get("name") or u["email"], email=u["email"])
            account.set_password(u["password"])
            db.session.add(account)
            created += 1
        if created:
            db.session.commit()
            app.logger.info("seeded %d default accounts", created)

def register_blueprints(app: Flask) -> None:
    from blueprints.core import bp as core_bp, api_bp as core_api_bp
    from blueprints.auth.routes import api_bp as auth_api_bp
    from blueprints.directory.routes import api_bp as directory_api_bp
    from blueprints.groups.routes import api_bp as groups_api_bp
    from blueprints.constraints.routes import api_bp as constraints_api_bp
    from blueprints.enrollments.routes import api_bp as enrollments_api_bp
    from blueprints.group_requests.routes import api_bp as group_requests_api_bp
    from blueprints.student.routes import api_bp as student_api_bp
    from blueprints.teacher.routes import api_bp as teacher_api_bp
    from blueprints.admin.routes import api_bp as admin_api_bp

    # core без префикса → '/health' в корне
    app.register_blueprint(core_bp)
    app.register_blueprint(core_api_bp, url_prefix="/api/v1")
    app.register_blueprint(auth_api_bp, url_prefix="/api/v1")
    app.register_blueprint(directory_api_bp, url_prefix="/api/v1/admin")
    app.register_blueprint(groups_api_bp, url_prefix="/api/v1/admin")
    app.register_blueprint(constraints_api_bp, url_prefix="/api/v1/admin")
    app.register_blueprint(enrollments_api_bp, url_prefix="/api/v1")
    app.register_blueprint(group_requests_api_bp, url_prefix="/api/v1")
    app.register_blueprint(student_api_bp, url_prefix="/api/v1")
    app.register_blueprint(teacher_api_bp, url_prefix="/api/v1")
    app.register_blueprint(admin_api_bp, url_prefix="/api/v1")

def create_app(config_name: str | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    cfg_name = config_name or os.getenv("FLASK_CONFIG", "default")
    app.config.from_object(config_map[cfg_name])
    # pytest всегда выставляет PYTEST_CURRENT_TEST, БД только в памяти,
    # чтобы изменения одного теста не протекали в другой
    if os.environ.get("PYTEST_CURRENT_TEST"):
        app.config["SQLALCHEMY_DATABASE_URI"] = "sqlite:///:memory:"
        app.config.setdefault("SQLALCHEMY_ENGINE_OPTIONS", {"connect_args": {"check_same_thread": False}})

    logging.getLogger("blueprints").setLevel(app.config.get("LOG_LEVEL", "INFO"))

    try:
        os.makedirs(app.instance_path, exist_ok=True)
    except OSError:
        pass
    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)
    csrf.init_app(app)
    register_blueprints(app)
    _seed_from_config(app)
    return app
