import logging
import os

from flask import Flask, current_app, jsonify
from flask_sqlalchemy import SQLAlchemy
from werkzeug.exceptions import HTTPException

db = SQLAlchemy()

STORE_EXTENSION = "certdesk.store"


def _build_storage(app: Flask):
    from .services.object_storage import CertificateStorage, SupabaseStorageTransport

    base_url = app.config.get("SUPABASE_URL")
    api_key = app.config.get("SUPABASE_ANON_KEY")
    if not base_url or not api_key:
        app.logger.warning(
            "[STORAGE] SUPABASE_URL/SUPABASE_ANON_KEY not set; PDF upload disabled"
        )
        return None
    transport = SupabaseStorageTransport(
        base_url, api_key, bucket=app.config["STORAGE_BUCKET"]
    )
    return CertificateStorage(transport)


def _build_store(app: Flask):
    from .services.issuance import CertificateIssuer, make_executor
    from .services.store import CertificateStore

    issuer = CertificateIssuer(
        app,
        _build_storage(app),
        executor=make_executor(app.config["ISSUANCE_EXECUTOR"]),
        render_options={"settle_seconds": float(app.config["RENDER_SETTLE_SECONDS"])},
    )
    return CertificateStore(
        app.config["STORE_DIR"],
        verification_origin=app.config["VERIFICATION_ORIGIN"],
        issuer=issuer,
    )


def get_store():
    return current_app.extensions[STORE_EXTENSION]


def create_app(overrides: dict | None = None):
    app = Flask(__name__)
    app.secret_key = os.getenv("SECRET_KEY", "dev")

    app.config["SQLALCHEMY_DATABASE_URI"] = os.getenv(
        "DATABASE_URL", "sqlite:///certdesk.db"
    )
    app.config["SQLALCHEMY_TRACK_MODIFICATIONS"] = False
    app.config["MAX_CONTENT_LENGTH"] = 25 * 1024 * 1024
    app.config["SUPABASE_URL"] = os.getenv("SUPABASE_URL", "")
    app.config["SUPABASE_ANON_KEY"] = os.getenv("SUPABASE_ANON_KEY", "")
    app.config["STORAGE_BUCKET"] = os.getenv("STORAGE_BUCKET", "certificates")
    app.config["VERIFICATION_ORIGIN"] = os.getenv("VERIFICATION_ORIGIN", "")
    app.config["STORE_DIR"] = os.getenv("STORE_DIR", app.instance_path)
    app.config["ISSUANCE_EXECUTOR"] = os.getenv("ISSUANCE_EXECUTOR", "thread")
    app.config["RENDER_SETTLE_SECONDS"] = os.getenv("RENDER_SETTLE_SECONDS", "0.5")
    if overrides:
        app.config.update(overrides)

    if not app.debug and not app.testing:
        app.logger.setLevel(logging.INFO)

    from . import models  # noqa: F401  registers the certificates table

    db.init_app(app)
    app.extensions[STORE_EXTENSION] = _build_store(app)

    from .routes.certificates import bp as certificates_bp
    from .routes.collections import bp as collections_bp
    from .routes.data import bp as data_bp
    from .routes.recipients import bp as recipients_bp
    from .routes.templates import bp as templates_bp

    app.register_blueprint(templates_bp)
    app.register_blueprint(recipients_bp)
    app.register_blueprint(certificates_bp)
    app.register_blueprint(collections_bp)
    app.register_blueprint(data_bp)

    @app.get("/health")
    def health():  # pragma: no cover - simple healthcheck
        return "OK", 200

    @app.errorhandler(HTTPException)
    def handle_http_error(exc: HTTPException):
        return jsonify(error=exc.name, message=exc.description), exc.code

    return app
