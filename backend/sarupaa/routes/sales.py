# Overview: Flask API routes for sales operations; parses input and returns JSON responses.

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_auth
from ..services import sale_service
from ..validation import NotFoundError


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


@sales_bp.get("")
@require_auth
def list_sales_route():
    """
    Query params:
    - start_date / end_date: inclusive ISO dates (both required to filter)
    - customer_id: int
    - page / limit
    """
    try:
        result = sale_service.list_sales(
            page=request.args.get("page", type=int),
            limit=request.args.get("limit", type=int),
            start_date=request.args.get("start_date") or None,
            end_date=request.args.get("end_date") or None,
            customer_id=request.args.get("customer_id", type=int),
        )
    except ValueError:
        return jsonify({"error": "start_date and end_date must be ISO-8601 dates"}), 400
    return jsonify(result.envelope(lambda s: s.to_dict()))


@sales_bp.post("")
@require_auth
def create_sale_route():
    """
    Request body:
    {
        "customer_id": 1,                // optional for fully paid cash sales
        "items": [
            {"product_id": 1, "quantity": 2, "unit_price_cents": 300,
             "discount_cents": 0, "tax_cents": 0}
        ],
        "discount_cents": 0,
        "discount_percent": 0,
        "tax_cents": 0,
        "paid_cents": 0,
        "payment_type": "cash",
        "is_cash_sale": true,
        "is_return": false,
        "collection_cents": 0,           // extra cash against old balance
        "notes": "..."
    }
    """
    data = request.get_json(silent=True) or {}
    try:
        sale = sale_service.create_sale(
            user_id=g.current_user.id,
            store_id=g.store_id,
            customer_id=data.get("customer_id"),
            items=data.get("items"),
            discount_cents=data.get("discount_cents", 0),
            discount_percent=data.get("discount_percent", 0),
            tax_cents=data.get("tax_cents", 0),
            paid_cents=data.get("paid_cents", 0),
            payment_type=data.get("payment_type") or "cash",
            is_cash_sale=data.get("is_cash_sale", True),
            is_return=data.get("is_return", False),
            collection_cents=data.get("collection_cents", 0),
            notes=data.get("notes"),
        )
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to create sale")
        return jsonify({"error": "Internal server error"}), 500
    return jsonify(sale.to_dict(include_items=True)), 201


@sales_bp.get("/<int:sale_id>")
@require_auth
def get_sale_route(sale_id: int):
    try:
        sale = sale_service.get_sale(sale_id)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    return jsonify(sale.to_dict(include_items=True))
