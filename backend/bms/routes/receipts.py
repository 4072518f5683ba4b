# Overview: Flask API routes for sales receipts; parses input and returns JSON responses.

"""
Sales Receipt API routes

Receipts are completed, already-paid sales with their own per-company
numbering. They are never linked to invoices.

SECURITY:
- Any authenticated company user may create and edit receipts
- delete_receipt guards deletion
"""

from flask import Blueprint, request, jsonify, g

from ..decorators import require_auth, require_permission
from ..permissions import Permission
from ..services import receipt_service
from ..services.receipt_service import ReceiptError, ReceiptNotFoundError
from ..services.tenant_service import require_company_id
from .common import pagination_args, paginated, query_filters


receipts_bp = Blueprint("receipts", __name__, url_prefix="/api/receipts")


@receipts_bp.get("")
@require_auth
def list_receipts_route():
    page, limit = pagination_args()
    filters = query_filters(dates=("from_date", "to_date"), ints=("customer_id",))
    rows, total = receipt_service.list_receipts(
        g.company_id,
        status=request.args.get("status"),
        payment_method=request.args.get("payment_method"),
        search=request.args.get("search"),
        page=page,
        limit=limit,
        **filters,
    )
    data = paginated(rows, total, page, limit, "receipts")
    data["receipts"] = [row.to_dict(include_lines=False) for row in rows]
    return jsonify(data), 200


@receipts_bp.get("/stats")
@require_auth
def receipt_stats_route():
    filters = query_filters(dates=("from_date", "to_date"))
    return jsonify(receipt_service.get_receipt_stats(g.company_id, **filters)), 200


@receipts_bp.get("/next-number")
@require_auth
def next_receipt_number_route():
    """Preview of the next auto-assigned number; not reserved."""
    return jsonify({"next_number": receipt_service.peek_next_receipt_number(require_company_id())}), 200


@receipts_bp.get("/<int:receipt_id>")
@require_auth
def get_receipt_route(receipt_id: int):
    try:
        receipt = receipt_service.get_receipt(g.company_id, receipt_id)
    except ReceiptNotFoundError as e:
        return jsonify({"error": str(e)}), 404
    return jsonify({"receipt": receipt.to_dict()}), 200


@receipts_bp.post("")
@require_auth
def create_receipt_route():
    """
    Create a sales receipt.

    Request body:
    {
        "customer_id": 4,                 (optional; walk-in when omitted)
        "lines": [{"item_id": 3, "quantity": 1, "discount_cents": 100}],
        "sales_receipt_number": "REC-9",  (optional; allocated when omitted)
        "receipt_date": "2024-03-01",
        "payment_method": "cash",
        "payment_reference": "...",
        "discount_cents": 0,
        "notes": "..."
    }
    """
    company_id = require_company_id()
    data = receipt_service.validate_receipt_payload(request.get_json(silent=True), partial=False)
    try:
        receipt = receipt_service.create_receipt(company_id, g.current_user.id, data)
    except ReceiptError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify({"receipt": receipt.to_dict()}), 201


@receipts_bp.put("/<int:receipt_id>")
@require_auth
def update_receipt_route(receipt_id: int):
    company_id = require_company_id()
    data = receipt_service.validate_receipt_payload(request.get_json(silent=True), partial=True)
    try:
        receipt = receipt_service.update_receipt(company_id, receipt_id, g.current_user.id, data)
    except ReceiptNotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ReceiptError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify({"receipt": receipt.to_dict()}), 200


@receipts_bp.patch("/<int:receipt_id>/cancel")
@require_auth
def cancel_receipt_route(receipt_id: int):
    try:
        receipt = receipt_service.cancel_receipt(require_company_id(), receipt_id, g.current_user.id)
    except ReceiptNotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ReceiptError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify({"receipt": receipt.to_dict()}), 200


@receipts_bp.delete("/<int:receipt_id>")
@require_auth
@require_permission(Permission.DELETE_RECEIPT)
def delete_receipt_route(receipt_id: int):
    try:
        receipt_service.delete_receipt(require_company_id(), receipt_id, g.current_user.id)
    except ReceiptNotFoundError as e:
        return jsonify({"error": str(e)}), 404
    return jsonify({"message": "Sales receipt deleted"}), 200
