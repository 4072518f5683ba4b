# Overview: Flask API routes for invoices and invoice payments; parses input and returns JSON responses.

# backend/bms/routes/invoices.py
"""
Invoice API routes

WHY: Invoices are the receivables workflow: draft -> sent -> partially
paid / overdue -> paid, or cancelled.

DESIGN:
- Payloads are validated at the boundary (400 with field errors)
- Status is derived by the service on every write; "paid" cannot be set
- Other companies' invoices answer 404

SECURITY:
- Any authenticated company user may create, edit and send invoices
- record_payment, cancel_invoice and delete_invoice guard those actions
"""

from flask import Blueprint, request, jsonify, g

from ..decorators import require_auth, require_permission
from ..permissions import Permission
from ..services import invoice_service, payment_service
from ..services.invoice_service import InvoiceError, InvoiceNotFoundError
from ..services.payment_service import PaymentError, PaymentInvoiceNotFoundError
from ..services.tenant_service import require_company_id
from ..validation import FieldErrors, ValidationError, parse_cents, parse_date, parse_int
from .common import pagination_args, paginated, query_filters


invoices_bp = Blueprint("invoices", __name__, url_prefix="/api/invoices")


# =============================================================================
# QUERIES
# =============================================================================

@invoices_bp.get("")
@require_auth
def list_invoices_route():
    """
    List invoices, newest first.

    Query params: status, customer_id, search, from_date, to_date,
    min_total_cents, max_total_cents, page, limit
    """
    page, limit = pagination_args()
    filters = query_filters(
        dates=("from_date", "to_date"),
        ints=("customer_id", "min_total_cents", "max_total_cents"),
    )
    rows, total = invoice_service.list_invoices(
        g.company_id,
        status=request.args.get("status"),
        search=request.args.get("search"),
        page=page,
        limit=limit,
        **filters,
    )
    data = paginated(rows, total, page, limit, "invoices")
    data["invoices"] = [row.to_dict(include_lines=False) for row in rows]
    return jsonify(data), 200


@invoices_bp.get("/stats")
@require_auth
def invoice_stats_route():
    return jsonify(invoice_service.get_invoice_stats(g.company_id)), 200


@invoices_bp.get("/next-number")
@require_auth
def next_invoice_number_route():
    """Preview of the next auto-assigned number; not reserved."""
    return jsonify({"next_number": invoice_service.peek_next_invoice_number(require_company_id())}), 200


@invoices_bp.get("/unpaid/<int:customer_id>")
@require_auth
def unpaid_invoices_route(customer_id: int):
    """Open invoices of a customer with a remaining balance, oldest due first."""
    invoices = invoice_service.list_unpaid_for_customer(require_company_id(), customer_id)
    return jsonify({
        "invoices": [inv.to_dict(include_lines=False) for inv in invoices],
        "total_balance_due_cents": sum(inv.balance_due_cents for inv in invoices),
    }), 200


@invoices_bp.post("/check-duplicate")
@require_auth
def check_duplicate_route():
    """
    Look for likely duplicates before creating an invoice.

    Request body: customer_id, invoice_date, due_date, total_cents,
    exclude_id (optional, when editing)
    """
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError("Invalid JSON payload")

    errors = FieldErrors()
    customer_id = parse_int(data.get("customer_id"), "customer_id", errors, minimum=1)
    invoice_date = parse_date(data.get("invoice_date"), "invoice_date", errors)
    due_date = parse_date(data.get("due_date"), "due_date", errors)
    total_cents = parse_cents(data.get("total_cents"), "total_cents", errors)
    exclude_id = parse_int(data.get("exclude_id"), "exclude_id", errors, required=False)
    errors.raise_if_any()

    matches = invoice_service.find_possible_duplicates(
        require_company_id(),
        customer_id=customer_id,
        invoice_date=invoice_date,
        due_date=due_date,
        total_cents=total_cents,
        exclude_id=exclude_id,
    )
    return jsonify({
        "is_duplicate": bool(matches),
        "duplicates": [inv.to_dict(include_lines=False) for inv in matches],
    }), 200


@invoices_bp.get("/<int:invoice_id>")
@require_auth
def get_invoice_route(invoice_id: int):
    try:
        invoice = invoice_service.get_invoice(g.company_id, invoice_id)
    except InvoiceNotFoundError as e:
        return jsonify({"error": str(e)}), 404
    return jsonify({"invoice": invoice.to_dict()}), 200


# =============================================================================
# WRITES
# =============================================================================

@invoices_bp.post("")
@require_auth
def create_invoice_route():
    """
    Create an invoice.

    Request body:
    {
        "customer_id": 1,
        "invoice_date": "2024-03-01",
        "due_date": "2024-03-31",
        "lines": [{"item_id": 3, "quantity": 2, "rate_cents": 1500, "tax_rate_bps": 800}],
        "invoice_number": "INV-1001",   (optional; allocated when omitted)
        "discount_cents": 0,
        "shipping_cents": 0,
        "terms": "Net 30",
        "notes": "...",
        "status": "draft" | "sent"
    }

    Returns:
        201: Invoice created
        400: Validation or business-rule error
        409: Invoice number already used in this company (retry)
    """
    company_id = require_company_id()
    data = invoice_service.validate_invoice_payload(request.get_json(silent=True), partial=False)
    try:
        invoice = invoice_service.create_invoice(company_id, g.current_user.id, data)
    except InvoiceError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify({"invoice": invoice.to_dict()}), 201


@invoices_bp.put("/<int:invoice_id>")
@require_auth
def update_invoice_route(invoice_id: int):
    company_id = require_company_id()
    data = invoice_service.validate_invoice_payload(request.get_json(silent=True), partial=True)
    try:
        invoice = invoice_service.update_invoice(company_id, invoice_id, g.current_user.id, data)
    except InvoiceNotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except InvoiceError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify({"invoice": invoice.to_dict()}), 200


@invoices_bp.patch("/<int:invoice_id>/send")
@require_auth
def send_invoice_route(invoice_id: int):
    try:
        invoice = invoice_service.send_invoice(require_company_id(), invoice_id, g.current_user.id)
    except InvoiceNotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except InvoiceError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify({"invoice": invoice.to_dict()}), 200


@invoices_bp.patch("/<int:invoice_id>/cancel")
@require_auth
@require_permission(Permission.CANCEL_INVOICE)
def cancel_invoice_route(invoice_id: int):
    try:
        invoice = invoice_service.cancel_invoice(require_company_id(), invoice_id, g.current_user.id)
    except InvoiceNotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except InvoiceError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify({"invoice": invoice.to_dict()}), 200


@invoices_bp.delete("/<int:invoice_id>")
@require_auth
@require_permission(Permission.DELETE_INVOICE)
def delete_invoice_route(invoice_id: int):
    try:
        invoice_service.delete_invoice(require_company_id(), invoice_id, g.current_user.id)
    except InvoiceNotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except InvoiceError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify({"message": "Invoice deleted"}), 200


# =============================================================================
# PAYMENTS
# =============================================================================

@invoices_bp.post("/<int:invoice_id>/payments")
@require_auth
@require_permission(Permission.RECORD_PAYMENT)
def record_payment_route(invoice_id: int):
    """
    Record a payment against an invoice.

    Request body:
    {
        "amount_cents": 5000,
        "method": "bank_transfer",      (optional, defaults to cash)
        "payment_date": "2024-03-15",   (optional, defaults to today)
        "reference": "TRX-991",
        "note": "...",
        "idempotency_key": "..."        (optional; repeats return the invoice unchanged)
    }

    Returns:
        200: Updated invoice (balance and status re-derived)
        400: Invalid amount/method/date, draft/cancelled/paid invoice, or
             amount above the remaining balance
        404: Invoice not found in this company
    """
    company_id = require_company_id()
    data = payment_service.validate_payment_payload(request.get_json(silent=True))
    try:
        invoice = payment_service.record_payment(
            company_id=company_id,
            invoice_id=invoice_id,
            user_id=g.current_user.id,
            **data,
        )
    except PaymentInvoiceNotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except PaymentError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify({"invoice": invoice.to_dict()}), 200


@invoices_bp.get("/<int:invoice_id>/payments")
@require_auth
def list_payments_route(invoice_id: int):
    try:
        payments = payment_service.get_invoice_payments(g.company_id, invoice_id)
    except PaymentInvoiceNotFoundError as e:
        return jsonify({"error": str(e)}), 404
    return jsonify({
        "payments": [p.to_dict() for p in payments],
        "total_paid_cents": sum(p.amount_cents for p in payments),
    }), 200
