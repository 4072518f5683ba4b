# Overview: Flask API routes for expenses and their approval workflow.

from flask import Blueprint, request, jsonify, g

from ..decorators import require_auth, require_permission
from ..permissions import Permission
from ..services import expense_service
from ..services.expense_service import ExpenseError, ExpenseNotFoundError
from ..services.tenant_service import require_company_id
from .common import pagination_args, paginated, query_filters


expenses_bp = Blueprint("expenses", __name__, url_prefix="/api/expenses")


@expenses_bp.get("")
@require_auth
def list_expenses_route():
    page, limit = pagination_args()
    filters = query_filters(dates=("from_date", "to_date"))
    rows, total = expense_service.list_expenses(
        g.company_id,
        status=request.args.get("status"),
        category=request.args.get("category"),
        search=request.args.get("search"),
        page=page,
        limit=limit,
        **filters,
    )
    return jsonify(paginated(rows, total, page, limit, "expenses")), 200


@expenses_bp.get("/summary")
@require_auth
def expense_summary_route():
    return jsonify(expense_service.expense_summary(g.company_id)), 200


@expenses_bp.get("/<int:expense_id>")
@require_auth
def get_expense_route(expense_id: int):
    try:
        expense = expense_service.get_expense(g.company_id, expense_id)
    except ExpenseNotFoundError as e:
        return jsonify({"error": str(e)}), 404
    return jsonify({"expense": expense.to_dict()}), 200


@expenses_bp.post("")
@require_auth
def create_expense_route():
    expense = expense_service.create_expense(require_company_id(), g.current_user.id, request.get_json(silent=True))
    return jsonify({"expense": expense.to_dict()}), 201


@expenses_bp.put("/<int:expense_id>")
@require_auth
def update_expense_route(expense_id: int):
    try:
        expense = expense_service.update_expense(
            require_company_id(), expense_id, g.current_user.id, request.get_json(silent=True)
        )
    except ExpenseNotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ExpenseError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify({"expense": expense.to_dict()}), 200


@expenses_bp.patch("/<int:expense_id>/status")
@require_auth
@require_permission(Permission.APPROVE_EXPENSE)
def change_expense_status_route(expense_id: int):
    """
    Move an expense through the approval workflow.

    Request body: {"status": "approved" | "rejected" | "paid"}
    """
    data = request.get_json(silent=True) or {}
    try:
        expense = expense_service.change_expense_status(
            require_company_id(), expense_id, g.current_user.id, data.get("status")
        )
    except ExpenseNotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ExpenseError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify({"expense": expense.to_dict()}), 200


@expenses_bp.delete("/<int:expense_id>")
@require_auth
@require_permission(Permission.DELETE_EXPENSE)
def delete_expense_route(expense_id: int):
    try:
        expense_service.delete_expense(require_company_id(), expense_id, g.current_user.id)
    except ExpenseNotFoundError as e:
        return jsonify({"error": str(e)}), 404
    return jsonify({"message": "Expense deleted"}), 200
