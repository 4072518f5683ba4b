# Overview: Flask API routes for catalog items; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, g

from ..decorators import require_auth, require_permission
from ..permissions import Permission
from ..services import item_service
from ..services.item_service import ItemError, ItemNotFoundError
from ..services.tenant_service import require_company_id
from .common import pagination_args, paginated, query_bool


items_bp = Blueprint("items", __name__, url_prefix="/api/items")


@items_bp.get("")
@require_auth
def list_items_route():
    page, limit = pagination_args()
    rows, total = item_service.list_items(
        g.company_id,
        search=request.args.get("search"),
        item_type=request.args.get("item_type"),
        active=query_bool("active"),
        low_stock=bool(query_bool("low_stock")),
        page=page,
        limit=limit,
    )
    return jsonify(paginated(rows, total, page, limit, "items")), 200


@items_bp.get("/<int:item_id>")
@require_auth
def get_item_route(item_id: int):
    try:
        item = item_service.get_item(g.company_id, item_id)
    except ItemNotFoundError as e:
        return jsonify({"error": str(e)}), 404
    return jsonify({"item": item.to_dict()}), 200


@items_bp.post("")
@require_auth
def create_item_route():
    item = item_service.create_item(require_company_id(), g.current_user.id, request.get_json(silent=True))
    return jsonify({"item": item.to_dict()}), 201


@items_bp.put("/<int:item_id>")
@require_auth
def update_item_route(item_id: int):
    try:
        item = item_service.update_item(
            require_company_id(), item_id, g.current_user.id, request.get_json(silent=True)
        )
    except ItemNotFoundError as e:
        return jsonify({"error": str(e)}), 404
    return jsonify({"item": item.to_dict()}), 200


@items_bp.patch("/<int:item_id>/toggle-status")
@require_auth
@require_permission(Permission.MANAGE_ITEMS)
def toggle_item_route(item_id: int):
    try:
        item = item_service.toggle_item_status(require_company_id(), item_id, g.current_user.id)
    except ItemNotFoundError as e:
        return jsonify({"error": str(e)}), 404
    return jsonify({"item": item.to_dict()}), 200


@items_bp.delete("/<int:item_id>")
@require_auth
@require_permission(Permission.DELETE_ITEM)
def delete_item_route(item_id: int):
    try:
        item_service.delete_item(require_company_id(), item_id, g.current_user.id)
    except ItemNotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ItemError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify({"message": "Item deleted"}), 200
