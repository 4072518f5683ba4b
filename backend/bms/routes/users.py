# Overview: Flask API routes for user management within a company.

"""
User Management API routes

SECURITY:
- view_users to list/read, create_user, update_user, delete_user to change
- Company users only ever see users of their own company
- Only super_admin may grant super_admin/company_admin
"""

from flask import Blueprint, request, jsonify, g

from ..decorators import require_auth, require_permission
from ..permissions import (
    Permission,
    Role,
    ROLE_PERMISSIONS,
    get_all_permission_codes,
    get_permission_definition,
    get_permissions_by_category,
)
from ..services import user_service
from ..services.user_service import UserManagementError, UserNotFoundError


users_bp = Blueprint("users", __name__, url_prefix="/api/users")


@users_bp.get("")
@require_auth
@require_permission(Permission.VIEW_USERS)
def list_users_route():
    include_inactive = request.args.get("include_inactive", "false").lower() == "true"
    users = user_service.list_users(g.company_id, include_inactive=include_inactive)
    return jsonify({"users": [u.to_dict() for u in users]}), 200


@users_bp.get("/permissions")
@require_auth
@require_permission(Permission.VIEW_USERS)
def list_permissions_route():
    """
    Permission catalog and the role table.

    Query params:
    - category: str - filter by category (e.g. SALES)
    """
    category = request.args.get("category")
    if category:
        codes = [perm[0].value for perm in get_permissions_by_category(category.upper())]
    else:
        codes = get_all_permission_codes()
    return jsonify({
        "permissions": [get_permission_definition(code) for code in codes],
        "roles": {role.value: sorted(p.value for p in ROLE_PERMISSIONS[role]) for role in Role},
    }), 200


@users_bp.get("/<int:user_id>")
@require_auth
@require_permission(Permission.VIEW_USERS)
def get_user_route(user_id: int):
    try:
        user = user_service.get_user(g.company_id, user_id)
    except UserNotFoundError as e:
        return jsonify({"error": str(e)}), 404
    return jsonify({"user": user.to_dict()}), 200


@users_bp.post("")
@require_auth
@require_permission(Permission.CREATE_USER)
def create_user_route():
    """
    Create a user in the caller's company.

    Request body:
    {
        "name": "Jane Doe",
        "email": "jane@example.com",
        "password": "Password123!",
        "role": "staff"
    }
    """
    try:
        user = user_service.create_company_user(g.current_user, g.company_id, request.get_json(silent=True))
    except UserManagementError as e:
        return jsonify({"error": str(e)}), 403
    return jsonify({"user": user.to_dict()}), 201


@users_bp.put("/<int:user_id>")
@require_auth
@require_permission(Permission.UPDATE_USER)
def update_user_route(user_id: int):
    try:
        user = user_service.update_user(g.current_user, g.company_id, user_id, request.get_json(silent=True))
    except UserNotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except UserManagementError as e:
        return jsonify({"error": str(e)}), 403
    return jsonify({"user": user.to_dict()}), 200


@users_bp.patch("/<int:user_id>/deactivate")
@require_auth
@require_permission(Permission.DELETE_USER)
def deactivate_user_route(user_id: int):
    try:
        user = user_service.deactivate_user(g.current_user, g.company_id, user_id)
    except UserNotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except UserManagementError as e:
        return jsonify({"error": str(e)}), 403
    return jsonify({"user": user.to_dict()}), 200
