"""Health check endpoint."""

from __future__ import annotations

from flask import Blueprint, current_app
from redis.exceptions import RedisError  # type: ignore[import-untyped]
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from authsvc.api.deps import json_response, timing
from authsvc.core.extensions import db

bp = Blueprint("health", __name__)


@bp.get("/health")
@timing
def healthcheck():
    """Return application, database and (when configured) Redis health."""

    payload = {"status": "ok", "db": "ok"}
    try:
        db.session.execute(text("SELECT 1"))
    except SQLAlchemyError:
        current_app.logger.exception("healthcheck.db_error")
        payload["db"] = "fail"

    client = current_app.extensions.get("redis_client")
    if client is not None:
        try:
            client.ping()
            payload["redis"] = "ok"
        except RedisError:
            current_app.logger.exception("healthcheck.redis_error")
            payload["redis"] = "fail"

    if "fail" in payload.values():
        payload["status"] = "degraded"
    payload["version"] = current_app.config.get("APP_VERSION", "dev")
    return json_response(payload, status=200 if payload["status"] == "ok" else 503)
