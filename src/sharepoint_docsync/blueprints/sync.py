"""Sync history blueprint."""

from flask import Blueprint, abort, jsonify, request
from flask.typing import ResponseReturnValue

from sharepoint_docsync.blueprints.auth import token_required
from sharepoint_docsync.errors import NotConfiguredError
from sharepoint_docsync.models import SyncLog
from sharepoint_docsync.services import SyncService

bp = Blueprint("sync", __name__, url_prefix="/sync")


@bp.route("/logs")
@token_required
def logs() -> ResponseReturnValue:
    """List recent sync runs of an organization."""
    organization_id = request.args.get("organization_id", "").strip()
    if not organization_id:
        abort(400, "organization_id is required")
    limit = min(max(request.args.get("limit", 10, type=int), 1), 100)

    runs = SyncLog.get_recent(organization_id, limit=limit)
    return jsonify({"logs": [run.to_dict() for run in runs]})


@bp.route("/<int:log_id>")
@token_required
def view(log_id: int) -> ResponseReturnValue:
    """View one sync run."""
    run = SyncLog.get_by_id(log_id)
    if run is None:
        abort(404)
    assert run is not None
    return jsonify(run.to_dict())


@bp.route("/status")
@token_required
def status() -> ResponseReturnValue:
    """Current sync status of an organization."""
    organization_id = request.args.get("organization_id", "").strip()
    if not organization_id:
        abort(400, "organization_id is required")

    try:
        # Status only reads local state, so no Graph client is built
        info = SyncService().get_status(organization_id)
    except NotConfiguredError as e:
        return jsonify({"success": False, "error": str(e)}), 404

    config = info["config"]
    current_run = info["current_run"]
    last_run = info["last_completed_run"]
    return jsonify(
        {
            "is_running": info["is_running"],
            "current_run": current_run.to_dict() if current_run else None,
            "last_completed_run": last_run.to_dict() if last_run else None,
            "last_sync_at": config.last_sync_at,
            "last_sync_status": config.last_sync_status,
            "last_sync_error": config.last_sync_error,
            "total_documents": info["total_documents"],
            "total_size": info["total_size"],
        }
    )
