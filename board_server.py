#!/usr/bin/env python3
"""
Task Board Server
-----------------
JSON API for the shared task board, backed by the board coordinator.

Usage:
    python board_server.py                     # in-memory board
    python board_server.py --db ~/board.db     # persistent board
    python board_server.py --config taskboard.yaml --host 0.0.0.0

Callers identify themselves with an X-User-Id header. Verifying that
identity is the job of whatever sits in front of this server.

API:
    GET    /api/projects                          → projects visible to caller
    POST   /api/projects                          → { name, description? }
    GET    /api/projects/<id>                     → project
    PUT    /api/projects/<id>                     → { name?, description?, status?, members? }
    DELETE /api/projects/<id>                     → creator only, cascades to activities
    GET    /api/projects/<id>/board               → { project, activities }
    POST   /api/projects/<id>/columns             → replace column set [{id, name, order}]
    PUT    /api/projects/<id>/columns             → same as POST
    POST   /api/projects/<id>/columns/new         → { name? } append a column
    PUT    /api/projects/<id>/columns/order       → { order: [column ids] }
    PUT    /api/projects/<id>/columns/<col>       → { name }
    DELETE /api/projects/<id>/columns/<col>       → remove an empty column
    GET    /api/projects/<id>/activities          → activities of the project
    POST   /api/projects/<id>/activities          → { title, description?, column? }
    GET    /api/activities/<id>                   → activity
    PUT    /api/activities/<id>                   → { title?, description?, column? }
    DELETE /api/activities/<id>
    PUT    /api/activities/<id>/development       → claim toggle
    GET    /health
"""

import argparse
import logging
import os
from functools import wraps
from typing import Optional

from flask import Flask, current_app, g, jsonify, request
from werkzeug.exceptions import HTTPException

from pkg.taskboard.config import BoardConfig
from pkg.taskboard.coordinator import BoardCoordinator
from pkg.taskboard.errors import BoardError, ValidationError
from pkg.taskboard.schema import parse_activity_update, parse_column_set, parse_project_update
from pkg.taskboard.store import open_store

logger = logging.getLogger(__name__)

USER_HEADERS = ("X-User-Id", "user-id")


def _coordinator() -> BoardCoordinator:
    return current_app.extensions["taskboard"]


def _json_body(required: bool = True):
    data = request.get_json(force=True, silent=True)
    if data is None:
        if required:
            raise ValidationError("Request body must be JSON")
        return {}
    return data


def _json_object(required: bool = True) -> dict:
    data = _json_body(required)
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


# ── Auth ─────────────────────────────────────────────────────────────────────

def require_user(f):
    """Decorator: reject requests without an X-User-Id header."""
    @wraps(f)
    def decorated(*args, **kwargs):
        user_id = ""
        for header in USER_HEADERS:
            user_id = request.headers.get(header, "").strip()
            if user_id:
                break
        if not user_id:
            return jsonify({"message": "User id header required", "error": "unauthorized"}), 401
        known = current_app.config["BOARD"].users
        if known and user_id not in known:
            return jsonify({"message": "Unknown user", "error": "unauthorized"}), 401
        g.user_id = user_id
        return f(*args, **kwargs)
    return decorated


# ── App factory ──────────────────────────────────────────────────────────────

def create_app(config: Optional[BoardConfig] = None,
               coordinator: Optional[BoardCoordinator] = None) -> Flask:
    config = config or BoardConfig().validate()
    if coordinator is None:
        coordinator = BoardCoordinator(
            open_store(config.db_path), max_retries=config.max_write_retries
        )

    app = Flask(__name__)
    app.config["BOARD"] = config
    app.extensions["taskboard"] = coordinator

    @app.errorhandler(BoardError)
    def board_error(e: BoardError):
        if e.status >= 500:
            logger.error("Board error: %s", e.message)
        return jsonify(e.to_dict()), e.status

    @app.errorhandler(Exception)
    def unexpected_error(e: Exception):
        # Unknown routes, wrong methods and the like keep their own status
        if isinstance(e, HTTPException):
            return jsonify({"message": e.description, "error": e.name}), e.code
        logger.exception("Unhandled error on %s %s", request.method, request.path)
        return jsonify({"message": "Internal server error", "error": "internal"}), 500

    # ── Projects ─────────────────────────────────────────────────────────────

    @app.route("/api/projects", methods=["GET"])
    @require_user
    def api_projects():
        projects = _coordinator().list_projects(g.user_id)
        return jsonify([p.to_dict() for p in projects])

    @app.route("/api/projects", methods=["POST"])
    @require_user
    def api_create_project():
        data = _json_object()
        project = _coordinator().create_project(
            g.user_id, data.get("name", ""), data.get("description", "")
        )
        return jsonify(project.to_dict()), 201

    @app.route("/api/projects/<project_id>", methods=["GET"])
    @require_user
    def api_project(project_id):
        return jsonify(_coordinator().get_project(project_id, g.user_id).to_dict())

    @app.route("/api/projects/<project_id>", methods=["PUT"])
    @require_user
    def api_update_project(project_id):
        commands = parse_project_update(_json_object())
        project = _coordinator().update_project(project_id, g.user_id, commands)
        return jsonify(project.to_dict())

    @app.route("/api/projects/<project_id>", methods=["DELETE"])
    @require_user
    def api_delete_project(project_id):
        deleted = _coordinator().delete_project(project_id, g.user_id)
        return jsonify({"message": "Project deleted", "deletedActivities": deleted})

    @app.route("/api/projects/<project_id>/board", methods=["GET"])
    @require_user
    def api_board(project_id):
        project, activities = _coordinator().board(project_id, g.user_id)
        return jsonify({
            "project": project.to_dict(),
            "activities": [a.to_dict() for a in activities],
        })

    # ── Columns ──────────────────────────────────────────────────────────────

    @app.route("/api/projects/<project_id>/columns", methods=["POST", "PUT"])
    @require_user
    def api_replace_columns(project_id):
        command = parse_column_set(_json_body())
        project = _coordinator().change_columns(project_id, g.user_id, command)
        return jsonify(project.to_dict())

    @app.route("/api/projects/<project_id>/columns/new", methods=["POST"])
    @require_user
    def api_add_column(project_id):
        data = _json_object(required=False)
        project = _coordinator().add_column(project_id, g.user_id, data.get("name"))
        return jsonify(project.to_dict()), 201

    @app.route("/api/projects/<project_id>/columns/order", methods=["PUT"])
    @require_user
    def api_reorder_columns(project_id):
        order = _json_object().get("order")
        if not isinstance(order, list):
            raise ValidationError("order must be a list of column ids")
        project = _coordinator().reorder_columns(project_id, g.user_id, order)
        return jsonify(project.to_dict())

    @app.route("/api/projects/<project_id>/columns/<column_id>", methods=["PUT"])
    @require_user
    def api_rename_column(project_id, column_id):
        name = _json_object().get("name")
        project = _coordinator().rename_column(project_id, g.user_id, column_id, name)
        return jsonify(project.to_dict())

    @app.route("/api/projects/<project_id>/columns/<column_id>", methods=["DELETE"])
    @require_user
    def api_remove_column(project_id, column_id):
        project = _coordinator().remove_column(project_id, g.user_id, column_id)
        return jsonify(project.to_dict())

    # ── Activities ───────────────────────────────────────────────────────────

    @app.route("/api/projects/<project_id>/activities", methods=["GET"])
    @require_user
    def api_activities(project_id):
        activities = _coordinator().list_activities(project_id, g.user_id)
        return jsonify([a.to_dict() for a in activities])

    @app.route("/api/projects/<project_id>/activities", methods=["POST"])
    @require_user
    def api_create_activity(project_id):
        data = _json_object()
        activity = _coordinator().create_activity(
            project_id,
            g.user_id,
            title=data.get("title", ""),
            description=data.get("description", ""),
            column=data.get("column") or None,
        )
        return jsonify(activity.to_dict()), 201

    @app.route("/api/activities/<activity_id>", methods=["GET"])
    @require_user
    def api_activity(activity_id):
        return jsonify(_coordinator().get_activity(activity_id, g.user_id).to_dict())

    @app.route("/api/activities/<activity_id>", methods=["PUT"])
    @require_user
    def api_update_activity(activity_id):
        commands = parse_activity_update(_json_object())
        activity = _coordinator().update_activity(activity_id, g.user_id, commands)
        return jsonify(activity.to_dict())

    @app.route("/api/activities/<activity_id>", methods=["DELETE"])
    @require_user
    def api_delete_activity(activity_id):
        _coordinator().delete_activity(activity_id, g.user_id)
        return jsonify({"message": "Activity deleted"})

    @app.route("/api/activities/<activity_id>/development", methods=["PUT"])
    @require_user
    def api_toggle_development(activity_id):
        activity = _coordinator().toggle_development(activity_id, g.user_id)
        return jsonify(activity.to_dict())

    @app.route("/health")
    def health():
        return jsonify({
            "status": "ok",
            "db": config.db_path or ":memory:",
        })

    return app


# ── Main ─────────────────────────────────────────────────────────────────────

def main(argv=None):
    parser = argparse.ArgumentParser(description="Task Board Server")
    parser.add_argument("--config", help="Path to taskboard.yaml")
    parser.add_argument("--host", help="Bind address (use 0.0.0.0 to expose on network)")
    parser.add_argument("--port", type=int)
    parser.add_argument("--db", help="Path to board.db (overrides TASKBOARD_DB env var)")
    args = parser.parse_args(argv)

    config = BoardConfig.load(args.config)
    if args.host:
        config.host = args.host
    if args.port:
        config.port = args.port
    if args.db:
        config.db_path = os.path.expanduser(args.db)

    logging.basicConfig(
        level=config.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    print(f"""
╔═══════════════════════════════════════╗
║  Task Board Server                    ║
╠═══════════════════════════════════════╣
║  URL:  http://{config.host}:{config.port:<20}║
║  DB:   {(config.db_path or ':memory:'):<31}║
╚═══════════════════════════════════════╝
""")

    app = create_app(config)
    app.run(host=config.host, port=config.port, debug=False, threaded=True)


if __name__ == "__main__":
    main()
