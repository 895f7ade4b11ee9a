"""JSON action dispatcher for the SharePoint integration.

Every request is a POST with a JSON body naming an ``action`` and the
``organization_id`` it applies to; a missing action means ``sync``.
"""

import base64
import binascii
import logging
from collections.abc import Callable
from typing import Any

from flask import Blueprint, jsonify, request
from flask.typing import ResponseReturnValue

from sharepoint_docsync.blueprints.auth import token_required
from sharepoint_docsync.errors import DocSyncError, InvalidRequestError
from sharepoint_docsync.services import ConfigurationService, SyncService

logger = logging.getLogger(__name__)

bp = Blueprint("actions", __name__, url_prefix="/api")

Handler = Callable[[str, dict[str, Any]], dict[str, Any]]


def _save_config(organization_id: str, body: dict[str, Any]) -> dict[str, Any]:
    payload = body.get("config") or {}
    if not isinstance(payload, dict):
        raise InvalidRequestError("config must be an object")
    return ConfigurationService().save_config(organization_id, payload)


def _delete_config(organization_id: str, body: dict[str, Any]) -> dict[str, Any]:
    return {"deleted": ConfigurationService().delete_config(organization_id)}


def _list_drives(organization_id: str, body: dict[str, Any]) -> dict[str, Any]:
    return ConfigurationService().list_drives(organization_id)


def _browse_folders(organization_id: str, body: dict[str, Any]) -> dict[str, Any]:
    return SyncService().browse_folders(
        organization_id,
        folder_path=body.get("folder_path"),
        drive_id=body.get("drive_id"),
    )


def _upload_file(organization_id: str, body: dict[str, Any]) -> dict[str, Any]:
    file_base64 = body.get("file_base64")
    file_name = body.get("file_name")
    if not file_base64 or not file_name:
        raise InvalidRequestError("file_base64 and file_name are required")
    try:
        content = base64.b64decode(file_base64, validate=True)
    except (binascii.Error, ValueError) as e:
        raise InvalidRequestError("file_base64 is not valid base64") from e

    item = SyncService().upload_file(
        organization_id,
        file_name=file_name,
        content=content,
        folder_path=body.get("folder_path"),
    )
    return {"item": {"id": item.id, "name": item.name, "webUrl": item.web_url}}


def _sync(organization_id: str, body: dict[str, Any]) -> dict[str, Any]:
    outcome = SyncService().run_sync(
        organization_id, full_sync=bool(body.get("force_full_sync", False))
    )
    return {"data": outcome.to_dict()}


ACTIONS: dict[str, Handler] = {
    "save_config": _save_config,
    "delete_config": _delete_config,
    "list_drives": _list_drives,
    "browse_folders": _browse_folders,
    "upload_file": _upload_file,
    "sync": _sync,
}


@bp.route("/sharepoint", methods=["POST"])
@token_required
def dispatch() -> ResponseReturnValue:
    """Run the requested action and return its JSON result."""
    body = request.get_json(silent=True)
    if not isinstance(body, dict):
        return jsonify({"success": False, "error": "Request body must be a JSON object"}), 400

    action = body.get("action") or "sync"
    organization_id = body.get("organization_id")

    try:
        if not organization_id:
            raise InvalidRequestError("organization_id is required")
        handler = ACTIONS.get(action)
        if handler is None:
            raise InvalidRequestError(f"Unknown action: {action}")

        result = handler(str(organization_id), body)
    except DocSyncError as e:
        if e.status_code >= 500:
            logger.exception("Action %s failed", action)
        else:
            logger.info("Action %s rejected: %s", action, e)
        return jsonify({"success": False, "error": str(e)}), e.status_code
    except Exception as e:
        logger.exception("Action %s failed", action)
        return jsonify({"success": False, "error": str(e)}), 500

    return jsonify({"success": True, **result})
