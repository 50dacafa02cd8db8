# Overview: Flask API routes for products operations; parses input and returns JSON responses.

# backend/sarupaa/routes/products.py
"""
Product management routes.

SECURITY: All routes require authentication.

Stock is never written here: product payloads carry no quantity, and the
optional opening_stock on create is posted as an inventory movement.
"""
from flask import Blueprint, current_app, jsonify, request

from ..decorators import require_auth
from ..models import Product
from ..services import barcode_service, products_service
from ..services.products_service import PRODUCT_POLICY
from ..services.stock_service import current_stock
from ..validation import NotFoundError, enforce_rules_product, validate_payload
from sarupaa.time_utils import to_utc_z


products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
@require_auth
def list_products_route():
    """
    List active products with their current stock.

    Query params:
    - search: name, SKU or barcode contains
    - category_id: int (optional)
    - page / limit: 1-indexed paging (limit defaults to 50, max 100)
    """
    result = products_service.list_products(
        search=request.args.get("search") or None,
        category_id=request.args.get("category_id", type=int),
        page=request.args.get("page", type=int),
        limit=request.args.get("limit", type=int),
    )
    return jsonify(result.envelope(lambda row: row[0].to_dict(stock=row[1])))


@products_bp.get("/next-barcode")
@require_auth
def next_barcode_route():
    """Reserve the next numeric barcode (never handed out twice)."""
    try:
        barcode = barcode_service.next_barcode()
    except Exception:
        current_app.logger.exception("Failed to generate barcode")
        return jsonify({"error": "Internal server error"}), 500
    return jsonify({"barcode": barcode})


@products_bp.post("")
@require_auth
def create_product_route():
    """
    Create a new product.

    Body fields follow the Product columns; `opening_stock` (optional int)
    posts an opening inventory row. A blank barcode is allocated.
    """
    payload = dict(request.get_json(silent=True) or {})
    opening_stock = payload.pop("opening_stock", None)

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)
        enforce_rules_product(patch)  # Handles price validation including max check
        created = products_service.create_product(patch=patch, opening_stock=opening_stock)
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to create product")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify(created.to_dict(stock=current_stock(created.id))), 201


@products_bp.get("/<int:product_id>")
@require_auth
def get_product_route(product_id: int):
    try:
        product = products_service.get_product(product_id)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    return jsonify(product.to_dict(stock=current_stock(product.id)))


@products_bp.put("/<int:product_id>")
@require_auth
def update_product_route(product_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=True)
        enforce_rules_product(patch)
        product = products_service.update_product(product_id=product_id, patch=patch)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to update product")
        return jsonify({"error": "Internal server error"}), 500
    return jsonify(product.to_dict(stock=current_stock(product.id)))


@products_bp.post("/<int:product_id>/deactivate")
@require_auth
def deactivate_product_route(product_id: int):
    try:
        product = products_service.deactivate_product(product_id=product_id)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    return jsonify(product.to_dict())


@products_bp.delete("/<int:product_id>")
@require_auth
def delete_product_route(product_id: int):
    """Hard delete; refused (400) once the product has any history."""
    try:
        products_service.delete_product(product_id=product_id)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify({"message": "Product deleted successfully"})


@products_bp.get("/<int:product_id>/latest-price")
@require_auth
def latest_price_route(product_id: int):
    try:
        data = products_service.latest_price(product_id)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    data["latest_purchase_date"] = to_utc_z(data["latest_purchase_date"])
    return jsonify(data)
