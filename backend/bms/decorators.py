# Overview: Route guards: bearer-token authentication and permission checks.

from functools import wraps
from flask import request, jsonify, g

from .permissions import Permission, parse_permission
from .services import session_service, permission_service
from .services.permission_service import PermissionDeniedError
from .services.tenant_service import (
    COMPANY_HEADER,
    TenantAccessError,
    UnknownCompanyError,
    resolve_company_id,
)


def bearer_token() -> str | None:
    """Token from "Authorization: Bearer <token>", or None."""
    header = request.headers.get("Authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme != "Bearer" or not token.strip():
        return None
    return token.strip()


def require_auth(f):
    """
    Authenticate the caller and fix the tenant for this request.

    Sets on flask.g:
    - current_user: the User behind the token
    - company_id: tenant the request acts in; None only for a super_admin
      working platform-wide
    - session_context: the SessionContext

    401 without a usable token. A super_admin naming an unknown company in
    X-Company-ID gets 404, a malformed header 400. Company users' headers
    are ignored.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = bearer_token()
        if token is None:
            return jsonify({"error": "Authentication required"}), 401

        context = session_service.validate_session(token)
        if context is None:
            return jsonify({"error": "Invalid or expired token"}), 401

        try:
            company_id = resolve_company_id(context.user, context.company_id, request.headers.get(COMPANY_HEADER))
        except UnknownCompanyError as e:
            return jsonify({"error": str(e)}), 404
        except TenantAccessError as e:
            return jsonify({"error": str(e)}), 400

        g.current_user = context.user
        g.company_id = company_id
        g.session_context = context
        return f(*args, **kwargs)

    return decorated_function


def require_permission(permission: Permission):
    """
    Require a permission from the static role table. Stack under @require_auth.

    Unknown tokens fail at import time; denials are written to the activity log.
    """
    token = parse_permission(permission)
    if token is None:
        raise ValueError(f"Unknown permission: {permission}")

    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if getattr(g, "current_user", None) is None:
                return jsonify({"error": "Authentication required"}), 401

            try:
                permission_service.require_permission(
                    g.current_user,
                    token,
                    company_id=g.company_id,
                    resource=f"{request.method} {request.path}",
                )
            except PermissionDeniedError as e:
                return jsonify({
                    "error": "Permission denied",
                    "required_permission": token.value,
                    "message": str(e),
                }), 403

            return f(*args, **kwargs)

        return decorated_function
    return decorator
