from functools import wraps

from flask import Blueprint, Response, jsonify
from flask_jwt_extended import get_jwt, verify_jwt_in_request

from csv_export import export_filename, export_to_csv
from situation_service import build_situation
from user_approval_service import approve_request

# NO imports from app at module level to avoid circular import issues

admin_bp = Blueprint("admin", __name__, url_prefix="/api/admin")

EXPORTABLE_COLLECTIONS = ("displacedPersons", "shelters", "sosAlerts", "users", "vehicles")

# never leaves the server in an export
PRIVATE_FIELDS = ("fcmToken",)


def admin_required(view_func):
    @wraps(view_func)
    def wrapper(*args, **kwargs):
        from app import ADMIN_ROLES
        verify_jwt_in_request()
        if (get_jwt().get("role") or "").lower() not in ADMIN_ROLES:
            return jsonify({"error": "Forbidden"}), 403
        return view_func(*args, **kwargs)
    return wrapper


@admin_bp.route("/situation")
@admin_required
def situation():
    from app import get_db
    return jsonify(build_situation(get_db()))


@admin_bp.route("/export/<collection>")
@admin_required
def export_collection(collection):
    """Download a whole collection as CSV."""
    from app import docs_to_list, get_db
    if collection not in EXPORTABLE_COLLECTIONS:
        return jsonify({"error": f"Unknown collection: {collection}"}), 404

    rows = docs_to_list(get_db().collection(collection))
    for row in rows:
        for key in PRIVATE_FIELDS:
            row.pop(key, None)

    try:
        body = export_to_csv(rows)
    except ValueError as e:
        return jsonify({"error": str(e)}), 400

    return Response(
        body,
        mimetype="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{export_filename(collection)}"'},
    )


@admin_bp.route("/approve-user", methods=["POST"])
@admin_required
def approve_user():
    from app import get_db, json_body
    data = json_body()
    approve_request(get_db(), data.get("requestId"))
    return jsonify({"success": True})


@admin_bp.route("/process-approved", methods=["POST"])
@admin_required
def process_approved():
    from app import run_approval_job
    result = run_approval_job()
    return jsonify(result.to_dict())
