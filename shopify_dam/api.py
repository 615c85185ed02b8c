# api.py
import json
import logging
import mimetypes
from typing import Callable, Dict, List, Tuple

from flask import Blueprint, current_app, jsonify, request
from werkzeug.exceptions import HTTPException

from .exceptions import DamError, ValidationError
from .service import DamService
from .storage.dto import ROOT_FOLDER_ID

api_bp = Blueprint("dam_api", __name__)

# Body fields that may arrive as JSON arrays or numbers; everything else is text.
LIST_FIELDS = ("items", "tags", "userTags", "categories", "fileTypes")
NUMBER_FIELDS = ("limit",)


def get_service() -> DamService:
    """Get the DAM service injected into the application."""
    return current_app.config["DAM_SERVICE"]


def parse_list(value) -> List[str]:
    """Accepts a list, a JSON array string or a comma-separated string."""
    if not value:
        return []
    if isinstance(value, (list, tuple)):
        return [str(v).strip() for v in value if str(v).strip()]
    try:
        parsed = json.loads(value)
        if isinstance(parsed, list):
            return [str(v).strip() for v in parsed if str(v).strip()]
    except (TypeError, ValueError):
        pass
    return [part.strip() for part in str(value).split(",") if part.strip()]


def parse_int(value, name: str):
    if value in (None, ""):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{name} must be a number")


def require(params: dict, *names: str) -> None:
    missing = [n for n in names if not params.get(n)]
    if missing:
        raise ValidationError(f"Missing required field(s): {', '.join(missing)}")


def check_body_types(body: dict) -> None:
    """Rejects JSON values whose type the handlers cannot use."""
    for name, value in body.items():
        if value is None or isinstance(value, str) or name in LIST_FIELDS:
            continue
        if name in NUMBER_FIELDS and isinstance(value, int) and not isinstance(value, bool):
            continue
        raise ValidationError(f"{name} must be a string")


def request_params() -> dict:
    """Query string merged with the JSON body or form fields."""
    params = request.args.to_dict()
    if request.is_json:
        body = request.get_json(silent=True)
        if isinstance(body, dict):
            check_body_types(body)
            params.update(body)
    else:
        params.update(request.form.to_dict())
    return params


# ============ Folder Handlers ============


def handle_get_contents(service: DamService, params: dict):
    contents = service.get_contents(
        folder_id=params.get("folderId") or ROOT_FOLDER_ID,
        sort_by=params.get("sortBy") or "name",
        sort_order=params.get("sortOrder") or "asc",
        search=params.get("search") or None,
        user_tags=parse_list(params.get("userTags")),
    )
    return contents, 200


def handle_get_breadcrumbs(service: DamService, params: dict):
    require(params, "folderId")
    crumbs = service.get_breadcrumbs(
        params["folderId"], user_tags=parse_list(params.get("userTags"))
    )
    return {"breadcrumbs": crumbs}, 200


def handle_create_folder(service: DamService, params: dict):
    require(params, "name")
    folder = service.create_folder(
        name=params["name"],
        parent_id=params.get("parentId") or ROOT_FOLDER_ID,
        actor=params.get("userEmail"),
        color=params.get("color"),
        description=params.get("description"),
        user_tags=parse_list(params.get("userTags")),
    )
    return {"folder": folder}, 201


def handle_rename_folder(service: DamService, params: dict):
    require(params, "folderId", "newName")
    folder = service.rename_folder(
        params["folderId"], params["newName"], user_tags=parse_list(params.get("userTags"))
    )
    return {"folder": folder}, 200


def handle_move_folder(service: DamService, params: dict):
    require(params, "folderId", "newParentId")
    folder = service.move_folder(
        params["folderId"], params["newParentId"], user_tags=parse_list(params.get("userTags"))
    )
    return {"folder": folder}, 200


def handle_update_folder(service: DamService, params: dict):
    require(params, "folderId")
    changes = {k: params[k] for k in ("color", "description") if k in params}
    folder = service.update_folder(
        params["folderId"], changes, user_tags=parse_list(params.get("userTags"))
    )
    return {"folder": folder}, 200


def handle_delete_folder(service: DamService, params: dict):
    require(params, "folderId")
    result = service.delete_folder(
        params["folderId"], user_tags=parse_list(params.get("userTags"))
    )
    return result, 200


def handle_copy_folder(service: DamService, params: dict):
    require(params, "folderId", "destinationFolderId")
    result = service.copy_folder(
        params["folderId"],
        params["destinationFolderId"],
        actor=params.get("userEmail"),
        user_tags=parse_list(params.get("userTags")),
    )
    return result, 201


# ============ File Handlers ============


def handle_upload(service: DamService, params: dict):
    upload = request.files.get("file")
    if upload is None or not upload.filename:
        raise ValidationError("No file provided")

    data = upload.read()
    mime_type = upload.mimetype
    if not mime_type or mime_type == "application/octet-stream":
        mime_type = mimetypes.guess_type(upload.filename)[0] or mime_type

    record = service.upload_file(
        filename=upload.filename,
        mime_type=mime_type,
        data=data,
        folder_id=params.get("folderId") or ROOT_FOLDER_ID,
        description=params.get("description") or "",
        tags=parse_list(params.get("tags")),
        actor=params.get("userEmail"),
        user_tags=parse_list(params.get("userTags")),
    )
    return {"file": record}, 201


def handle_get_file(service: DamService, params: dict):
    require(params, "fileId")
    record = service.get_file(params["fileId"], user_tags=parse_list(params.get("userTags")))
    return {"file": record}, 200


def handle_rename_file(service: DamService, params: dict):
    require(params, "fileId", "newName")
    record = service.rename_file(
        params["fileId"], params["newName"], user_tags=parse_list(params.get("userTags"))
    )
    return {"file": record}, 200


def handle_move_file(service: DamService, params: dict):
    require(params, "fileId", "newFolderId")
    record = service.move_file(
        params["fileId"], params["newFolderId"], user_tags=parse_list(params.get("userTags"))
    )
    return {"file": record}, 200


def handle_update_file(service: DamService, params: dict):
    require(params, "fileId")
    changes = {}
    if "description" in params:
        changes["description"] = params["description"]
    if "tags" in params:
        changes["tags"] = parse_list(params["tags"])
    record = service.update_file(
        params["fileId"], changes, user_tags=parse_list(params.get("userTags"))
    )
    return {"file": record}, 200


def handle_delete_file(service: DamService, params: dict):
    require(params, "fileId")
    result = service.delete_file(params["fileId"], user_tags=parse_list(params.get("userTags")))
    return result, 200


def handle_copy_file(service: DamService, params: dict):
    require(params, "fileId", "destinationFolderId")
    record = service.copy_file(
        params["fileId"],
        params["destinationFolderId"],
        actor=params.get("userEmail"),
        user_tags=parse_list(params.get("userTags")),
    )
    return {"file": record}, 201


def handle_download(service: DamService, params: dict):
    require(params, "fileId")
    result = service.download(params["fileId"], user_tags=parse_list(params.get("userTags")))
    return result, 200


# ============ Bulk Handlers ============


def handle_bulk_move(service: DamService, params: dict):
    require(params, "destinationFolderId")
    result = service.bulk_move(
        params.get("items"),
        params["destinationFolderId"],
        user_tags=parse_list(params.get("userTags")),
    )
    return result, 200


def handle_bulk_delete(service: DamService, params: dict):
    result = service.bulk_delete(params.get("items"), user_tags=parse_list(params.get("userTags")))
    return result, 200


def handle_bulk_copy(service: DamService, params: dict):
    require(params, "destinationFolderId")
    result = service.bulk_copy(
        params.get("items"),
        params["destinationFolderId"],
        actor=params.get("userEmail"),
        user_tags=parse_list(params.get("userTags")),
    )
    return result, 200


# ============ Search and Statistics ============


def handle_search(service: DamService, params: dict):
    require(params, "query")
    result = service.search(
        params["query"],
        tag_filter=parse_list(params.get("tags")),
        folder_scope=params.get("folderId") or None,
        categories=parse_list(params.get("fileTypes") or params.get("categories")),
        limit=parse_int(params.get("limit"), "limit"),
        user_tags=parse_list(params.get("userTags")),
    )
    return result, 200


def handle_get_recent(service: DamService, params: dict):
    files = service.get_recent(
        parse_int(params.get("limit"), "limit"), user_tags=parse_list(params.get("userTags"))
    )
    return {"files": files}, 200


def handle_get_by_category(service: DamService, params: dict):
    require(params, "categories")
    files = service.get_by_category(
        parse_list(params["categories"]), user_tags=parse_list(params.get("userTags"))
    )
    return {"files": files}, 200


def handle_get_tree(service: DamService, params: dict):
    tree = service.get_tree(user_tags=parse_list(params.get("userTags")))
    return {"tree": tree}, 200


def handle_get_stats(service: DamService, params: dict):
    stats = service.get_stats(user_tags=parse_list(params.get("userTags")))
    return stats, 200


ACTIONS: Dict[str, Callable[[DamService, dict], Tuple[dict, int]]] = {
    # Folder operations
    "get-contents": handle_get_contents,
    "get-breadcrumbs": handle_get_breadcrumbs,
    "create-folder": handle_create_folder,
    "rename-folder": handle_rename_folder,
    "move-folder": handle_move_folder,
    "update-folder": handle_update_folder,
    "delete-folder": handle_delete_folder,
    "copy-folder": handle_copy_folder,
    # File operations
    "upload": handle_upload,
    "get-file": handle_get_file,
    "rename-file": handle_rename_file,
    "move-file": handle_move_file,
    "update-file": handle_update_file,
    "delete-file": handle_delete_file,
    "copy-file": handle_copy_file,
    "download": handle_download,
    # Bulk operations
    "bulk-move": handle_bulk_move,
    "bulk-delete": handle_bulk_delete,
    "bulk-copy": handle_bulk_copy,
    # Search, tree and stats
    "search": handle_search,
    "get-recent": handle_get_recent,
    "get-by-category": handle_get_by_category,
    "get-tree": handle_get_tree,
    "get-stats": handle_get_stats,
}


@api_bp.after_app_request
def add_cors_headers(response):
    response.headers["Access-Control-Allow-Origin"] = "*"
    response.headers["Access-Control-Allow-Headers"] = "Content-Type, Authorization"
    response.headers["Access-Control-Allow-Methods"] = "GET, POST, PUT, DELETE, OPTIONS"
    return response


@api_bp.errorhandler(DamError)
def handle_dam_error(error: DamError):
    return jsonify({"success": False, "error": error.message}), error.status_code


@api_bp.route("/dam", methods=["GET", "POST", "OPTIONS"])
def dam_endpoint():
    if request.method == "OPTIONS":
        return "", 200

    params = request_params()
    action = params.get("action")
    handler = ACTIONS.get(action)
    if handler is None:
        return (
            jsonify(
                {
                    "success": False,
                    "error": f"Invalid action. Valid actions: {', '.join(ACTIONS)}",
                }
            ),
            400,
        )

    try:
        payload, status = handler(get_service(), params)
    except (DamError, HTTPException):
        raise
    except Exception as e:
        logging.error(f"DAM API error during '{action}': {e}", exc_info=True)
        return jsonify({"success": False, "error": "Internal server error"}), 500

    return jsonify({"success": True, **payload}), status
