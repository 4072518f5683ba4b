# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

# backend/bms/routes/auth.py
"""
Authentication API routes

SECURITY FEATURES:
- bcrypt password verification
- Session management with opaque bearer tokens
- Failed and successful logins written to the activity log
"""

from flask import Blueprint, request, jsonify, g

from ..services import auth_service
from ..services import session_service
from ..services import permission_service
from ..services.activity_service import log_activity
from ..decorators import bearer_token, require_auth


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.post("/register")
def register_route():
    """
    Self-registration is disabled.

    Users are created by administrators via POST /api/users or
    `flask users create`.
    """
    return jsonify({
        "error": "Self-registration is disabled. Contact an administrator to create an account."
    }), 403


@auth_bp.post("/login")
def login_route():
    """
    Authenticate user and create session token.

    Token must be included in Authorization header for protected routes.
    """
    data = request.get_json(silent=True) or {}
    email = data.get("email")
    password = data.get("password")

    if not email or not password:
        return jsonify({"error": "email and password required"}), 400

    user = auth_service.authenticate(email, password)
    if not user:
        log_activity(action="auth.login_failed", company_id=None, user_id=None,
                     details={"email": str(email).strip().lower()})
        return jsonify({"error": "Invalid credentials"}), 401

    try:
        session, token = session_service.create_session(
            user_id=user.id,
            user_agent=request.headers.get("User-Agent"),
            ip_address=request.remote_addr
        )
    except ValueError as e:
        return jsonify({"error": str(e)}), 401

    log_activity(action="auth.login", company_id=user.company_id, user_id=user.id,
                 entity_type="user", entity_id=user.id)

    return jsonify({
        "user": user.to_dict(),
        "permissions": sorted(permission_service.get_user_permissions(user)),
        "token": token,
        "session": session.to_dict(),
        "company_id": session.company_id,
        "message": "Login successful"
    }), 200


@auth_bp.post("/logout")
def logout_route():
    """
    Revoke session token (logout).

    Expects Authorization header: Bearer <token>
    """
    token = bearer_token()
    if not token:
        return jsonify({"error": "Authorization header required"}), 401

    if not session_service.revoke_session(token, reason="User logout"):
        return jsonify({"error": "Invalid or expired token"}), 401

    return jsonify({"message": "Logout successful"}), 200


@auth_bp.get("/me")
@require_auth
def me_route():
    """
    Current user, permissions and tenant context.

    WHY: Frontend uses the permission list to hide actions the user cannot
    perform.
    """
    user = g.current_user
    return jsonify({
        "user": user.to_dict(),
        "permissions": sorted(permission_service.get_user_permissions(user)),
        "company_id": g.company_id,
    }), 200
