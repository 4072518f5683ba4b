# Overview: Flask API routes for company (tenant) management.

"""
Company API routes

SECURITY:
- create/list/activate/deactivate: super_admin (create_company, view_companies,
  delete_company)
- GET/PUT /current: the caller's own company (view_companies/update_company)
"""

from flask import Blueprint, request, jsonify, g

from ..decorators import require_auth, require_permission
from ..permissions import Permission, Role
from ..services import company_service
from ..services.company_service import CompanyError, CompanyNotFoundError
from ..services.tenant_service import require_company_id


companies_bp = Blueprint("companies", __name__, url_prefix="/api/companies")


def _is_platform_admin() -> bool:
    return g.current_user.role == Role.SUPER_ADMIN.value


@companies_bp.get("")
@require_auth
@require_permission(Permission.ACCESS_ALL_COMPANIES)
def list_companies_route():
    include_inactive = request.args.get("include_inactive", "true").lower() != "false"
    companies = company_service.list_companies(include_inactive=include_inactive)
    return jsonify({"companies": [c.to_dict() for c in companies]}), 200


@companies_bp.post("")
@require_auth
@require_permission(Permission.CREATE_COMPANY)
def create_company_route():
    company = company_service.create_company(request.get_json(silent=True), user_id=g.current_user.id)
    return jsonify({"company": company.to_dict()}), 201


@companies_bp.get("/current")
@require_auth
@require_permission(Permission.VIEW_COMPANIES)
def get_current_company_route():
    company = company_service.get_company(require_company_id())
    return jsonify({"company": company.to_dict()}), 200


@companies_bp.put("/current")
@require_auth
@require_permission(Permission.UPDATE_COMPANY)
def update_current_company_route():
    try:
        company = company_service.update_company(
            require_company_id(),
            request.get_json(silent=True),
            user_id=g.current_user.id,
            platform_admin=_is_platform_admin(),
        )
    except CompanyError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify({"company": company.to_dict()}), 200


@companies_bp.get("/<int:company_id>")
@require_auth
@require_permission(Permission.ACCESS_ALL_COMPANIES)
def get_company_route(company_id: int):
    try:
        company = company_service.get_company(company_id)
    except CompanyNotFoundError as e:
        return jsonify({"error": str(e)}), 404
    return jsonify({"company": company.to_dict()}), 200


@companies_bp.put("/<int:company_id>")
@require_auth
@require_permission(Permission.ACCESS_ALL_COMPANIES)
def update_company_route(company_id: int):
    try:
        company = company_service.update_company(
            company_id,
            request.get_json(silent=True),
            user_id=g.current_user.id,
            platform_admin=True,
        )
    except CompanyNotFoundError as e:
        return jsonify({"error": str(e)}), 404
    return jsonify({"company": company.to_dict()}), 200


@companies_bp.patch("/<int:company_id>/deactivate")
@require_auth
@require_permission(Permission.DELETE_COMPANY)
def deactivate_company_route(company_id: int):
    try:
        company = company_service.set_company_active(company_id, False, user_id=g.current_user.id)
    except CompanyNotFoundError as e:
        return jsonify({"error": str(e)}), 404
    return jsonify({"company": company.to_dict()}), 200


@companies_bp.patch("/<int:company_id>/activate")
@require_auth
@require_permission(Permission.DELETE_COMPANY)
def activate_company_route(company_id: int):
    try:
        company = company_service.set_company_active(company_id, True, user_id=g.current_user.id)
    except CompanyNotFoundError as e:
        return jsonify({"error": str(e)}), 404
    return jsonify({"company": company.to_dict()}), 200
