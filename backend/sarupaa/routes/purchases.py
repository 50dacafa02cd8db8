# Overview: Flask API routes for purchases; parses input and returns JSON responses.

"""
Purchase routes.

A purchase (or purchase return, is_return=true) moves stock, the supplier
balance and the Inventory / Cash / Accounts Payable accounts in one
transaction; see purchase_service.
"""

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_auth
from ..services import purchase_service
from ..validation import NotFoundError, parse_bool


purchases_bp = Blueprint("purchases", __name__, url_prefix="/api/purchases")


@purchases_bp.get("")
@require_auth
def list_purchases_route():
    """
    Query params:
    - date: ISO date (single day)
    - invoice_no: contains match
    - supplier_id: int
    - is_return: true / false
    - page / limit
    """
    is_return = request.args.get("is_return")
    try:
        result = purchase_service.list_purchases(
            page=request.args.get("page", type=int),
            limit=request.args.get("limit", type=int),
            date=request.args.get("date") or None,
            invoice_no=request.args.get("invoice_no") or None,
            supplier_id=request.args.get("supplier_id", type=int),
            is_return=None if is_return in (None, "") else parse_bool(is_return),
        )
    except ValueError:
        return jsonify({"error": "date must be an ISO-8601 date"}), 400
    return jsonify(result.envelope(lambda p: p.to_dict()))


@purchases_bp.get("/next-invoice")
@require_auth
def next_invoice_route():
    """Preview of the next allocated invoice number (not reserved)."""
    return jsonify({"invoice_no": purchase_service.next_invoice_preview()})


@purchases_bp.post("")
@require_auth
def create_purchase_route():
    """
    Request body:
    {
        "supplier_id": 1,               // required unless fully paid
        "invoice_no": "2881",           // optional, allocated when blank
        "date": "2024-01-31",           // optional
        "items": [
            {"product_id": 1, "quantity": 10, "unit_price_cents": 250,
             "freight_in_cents": 0, "tax_cents": 0, "sale_price_cents": 300}
        ],
        "discount_cents": 0,
        "tax_cents": 0,                 // header tax overrides item tax
        "paid_cents": 0,
        "payment_type": "cash",
        "is_return": false,
        "notes": "..."
    }
    """
    data = request.get_json(silent=True) or {}
    try:
        purchase = purchase_service.create_purchase(
            user_id=g.current_user.id,
            store_id=g.store_id,
            supplier_id=data.get("supplier_id"),
            items=data.get("items"),
            discount_cents=data.get("discount_cents", 0),
            tax_cents=data.get("tax_cents", 0),
            paid_cents=data.get("paid_cents", 0),
            invoice_no=data.get("invoice_no"),
            date=data.get("date"),
            notes=data.get("notes"),
            payment_type=data.get("payment_type") or "cash",
            is_return=data.get("is_return", False),
        )
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to create purchase")
        return jsonify({"error": "Internal server error"}), 500
    return jsonify(purchase.to_dict(include_items=True)), 201


@purchases_bp.get("/<int:purchase_id>")
@require_auth
def get_purchase_route(purchase_id: int):
    try:
        purchase = purchase_service.get_purchase(purchase_id)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    return jsonify(purchase.to_dict(include_items=True))
