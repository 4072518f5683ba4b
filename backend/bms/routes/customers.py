# Overview: Flask API routes for customers; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, g

from ..decorators import require_auth, require_permission
from ..permissions import Permission
from ..services import customer_service
from ..services.customer_service import CustomerError, CustomerNotFoundError
from ..services.tenant_service import require_company_id
from .common import pagination_args, paginated


customers_bp = Blueprint("customers", __name__, url_prefix="/api/customers")


@customers_bp.get("")
@require_auth
def list_customers_route():
    page, limit = pagination_args()
    rows, total = customer_service.list_customers(
        g.company_id,
        search=request.args.get("search"),
        status=request.args.get("status"),
        page=page,
        limit=limit,
    )
    return jsonify(paginated(rows, total, page, limit, "customers")), 200


@customers_bp.get("/<int:customer_id>")
@require_auth
def get_customer_route(customer_id: int):
    try:
        customer = customer_service.get_customer(g.company_id, customer_id)
    except CustomerNotFoundError as e:
        return jsonify({"error": str(e)}), 404
    return jsonify({"customer": customer.to_dict()}), 200


@customers_bp.post("")
@require_auth
def create_customer_route():
    customer = customer_service.create_customer(
        require_company_id(), g.current_user.id, request.get_json(silent=True)
    )
    return jsonify({"customer": customer.to_dict()}), 201


@customers_bp.put("/<int:customer_id>")
@require_auth
def update_customer_route(customer_id: int):
    try:
        customer = customer_service.update_customer(
            require_company_id(), customer_id, g.current_user.id, request.get_json(silent=True)
        )
    except CustomerNotFoundError as e:
        return jsonify({"error": str(e)}), 404
    return jsonify({"customer": customer.to_dict()}), 200


@customers_bp.delete("/<int:customer_id>")
@require_auth
@require_permission(Permission.DELETE_CUSTOMER)
def delete_customer_route(customer_id: int):
    try:
        customer_service.delete_customer(require_company_id(), customer_id, g.current_user.id)
    except CustomerNotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except CustomerError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify({"message": "Customer deleted"}), 200
