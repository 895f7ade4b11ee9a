"""Document browsing blueprint."""

from io import BytesIO

from flask import Blueprint, abort, jsonify, request, send_file
from flask.typing import ResponseReturnValue
from openpyxl import Workbook
from openpyxl.styles import Font

from sharepoint_docsync.blueprints.auth import token_required
from sharepoint_docsync.models import Document, SyncConfig
from sharepoint_docsync.paths import normalize_folder_path

bp = Blueprint("documents", __name__, url_prefix="/documents")

CATALOG_HEADERS = [
    "Name",
    "Folder",
    "Is Folder",
    "Extension",
    "MIME Type",
    "Size (bytes)",
    "Web URL",
    "Modified By",
    "SP Modified",
    "Synced At",
    "SharePoint Item ID",
    "SharePoint Drive ID",
]


def _require_organization() -> str:
    organization_id = request.args.get("organization_id", "").strip()
    if not organization_id:
        abort(400, "organization_id is required")
    return organization_id


def build_catalog(docs: list[Document]) -> Workbook:
    """Build an XLSX workbook listing documents."""
    wb = Workbook()
    ws = wb.active
    assert ws is not None
    ws.title = "Documents"
    ws.append(CATALOG_HEADERS)

    bold = Font(bold=True)
    for cell in ws[1]:
        cell.font = bold

    for doc in docs:
        ws.append(
            [
                doc.name,
                doc.folder_path,
                "yes" if doc.is_folder else "no",
                doc.file_extension,
                doc.mime_type,
                doc.size_bytes,
                doc.web_url,
                doc.sharepoint_modified_by,
                doc.sharepoint_modified_at,
                doc.synced_at,
                doc.sharepoint_item_id,
                doc.sharepoint_drive_id,
            ]
        )

    ws.auto_filter.ref = ws.dimensions
    return wb


@bp.route("/")
@token_required
def index() -> ResponseReturnValue:
    """List the active documents of one folder."""
    organization_id = _require_organization()
    folder_path = normalize_folder_path(request.args.get("folder_path", "/"))

    docs = Document.list_folder(organization_id, folder_path)
    return jsonify(
        {
            "folder_path": folder_path,
            "documents": [doc.to_dict() for doc in docs],
        }
    )


@bp.route("/catalog.xlsx")
@token_required
def catalog_xlsx() -> ResponseReturnValue:
    """Export the organization's document catalog as XLSX."""
    organization_id = _require_organization()
    config = SyncConfig.get_by_organization(organization_id)
    if config is None:
        abort(404, "No SharePoint configuration found")
    assert config is not None

    wb = build_catalog(Document.get_all(config.id, include_deleted=False))

    buf = BytesIO()
    wb.save(buf)
    buf.seek(0)

    return send_file(
        buf,
        mimetype="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        as_attachment=True,
        download_name="catalog.xlsx",
    )
