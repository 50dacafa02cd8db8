# Overview: Flask API routes for inventory operations; parses input and returns JSON responses.

"""
Inventory routes.

Inventory rows are the stock ledger: every purchase, sale, return and
adjustment appends one. Rows are never edited here.
"""

from flask import Blueprint, current_app, jsonify, request

from ..decorators import require_auth
from ..services import stock_service
from ..validation import NotFoundError, ValidationError


inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")


@inventory_bp.get("")
@require_auth
def list_inventory_route():
    rows = stock_service.list_inventory(
        product_id=request.args.get("product_id", type=int),
        limit=request.args.get("limit", type=int),
    )
    return jsonify({"data": [row.to_dict(include_product=True) for row in rows]})


@inventory_bp.get("/<int:row_id>")
@require_auth
def get_inventory_route(row_id: int):
    try:
        row = stock_service.get_inventory_row(row_id)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    return jsonify(row.to_dict(include_product=True))


@inventory_bp.post("/adjust")
@require_auth
def adjust_inventory_route():
    """
    Manual stock adjustment.

    Request body:
    {
        "product_id": 1,          // required
        "quantity": 5,            // required, > 0
        "type": "add",            // "add" | "subtract" | "remove"
        "notes": "..."            // optional
    }
    """
    data = request.get_json(silent=True) or {}
    if not data.get("product_id"):
        return jsonify({"error": "product_id is required"}), 400

    try:
        adjustment = stock_service.adjust_stock(
            product_id=data.get("product_id"),
            quantity=data.get("quantity"),
            direction=data.get("type") or "",
            notes=data.get("notes"),
        )
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to adjust inventory")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({
        "inventory": adjustment.row.to_dict(include_product=True),
        "price_used_cents": adjustment.price_used_cents,
        "price_source": adjustment.price_source,
        "stock": stock_service.current_stock(adjustment.row.product_id),
    }), 201
