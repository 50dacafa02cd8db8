# Overview: Flask API routes for brands, categories and units; parses input and returns JSON responses.

from flask import Blueprint, current_app, jsonify, request

from ..decorators import require_auth
from ..models import Brand, Category, Unit
from ..services import catalog_service
from ..services.catalog_service import BRAND_POLICY, CATEGORY_POLICY, UNIT_POLICY
from ..validation import NotFoundError, validate_payload


brands_bp = Blueprint("brands", __name__, url_prefix="/api/brands")
categories_bp = Blueprint("categories", __name__, url_prefix="/api/categories")
units_bp = Blueprint("units", __name__, url_prefix="/api/units")


def _error(e: ValueError):
    status = 404 if isinstance(e, NotFoundError) else 400
    return jsonify({"error": str(e)}), status


# =============================================================================
# Brands
# =============================================================================

@brands_bp.get("")
@require_auth
def list_brands_route():
    brands = catalog_service.list_brands()
    return jsonify({"data": [b.to_dict(product_count=count) for b, count in brands]})


@brands_bp.post("")
@require_auth
def create_brand_route():
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Brand, payload=payload, policy=BRAND_POLICY, partial=False)
        brand = catalog_service.create_brand(patch=patch)
    except ValueError as e:
        return _error(e)
    except Exception:
        current_app.logger.exception("Failed to create brand")
        return jsonify({"error": "Internal server error"}), 500
    return jsonify(brand.to_dict()), 201


@brands_bp.put("/<int:brand_id>")
@require_auth
def update_brand_route(brand_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Brand, payload=payload, policy=BRAND_POLICY, partial=True)
        brand = catalog_service.update_brand(brand_id=brand_id, patch=patch)
    except ValueError as e:
        return _error(e)
    except Exception:
        current_app.logger.exception("Failed to update brand")
        return jsonify({"error": "Internal server error"}), 500
    return jsonify(brand.to_dict())


@brands_bp.delete("/<int:brand_id>")
@require_auth
def delete_brand_route(brand_id: int):
    try:
        catalog_service.delete_brand(brand_id=brand_id)
    except ValueError as e:
        return _error(e)
    return jsonify({"message": "Brand deleted successfully"})


# =============================================================================
# Categories
# =============================================================================

@categories_bp.get("")
@require_auth
def list_categories_route():
    categories = catalog_service.list_categories()
    return jsonify({"data": [c.to_dict(product_count=count) for c, count in categories]})


@categories_bp.get("/stats")
@require_auth
def category_stats_route():
    return jsonify(catalog_service.category_stats())


@categories_bp.post("")
@require_auth
def create_category_route():
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Category, payload=payload, policy=CATEGORY_POLICY, partial=False)
        category = catalog_service.create_category(patch=patch)
    except ValueError as e:
        return _error(e)
    except Exception:
        current_app.logger.exception("Failed to create category")
        return jsonify({"error": "Internal server error"}), 500
    return jsonify(category.to_dict()), 201


@categories_bp.put("/<int:category_id>")
@require_auth
def update_category_route(category_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Category, payload=payload, policy=CATEGORY_POLICY, partial=True)
        category = catalog_service.update_category(category_id=category_id, patch=patch)
    except ValueError as e:
        return _error(e)
    except Exception:
        current_app.logger.exception("Failed to update category")
        return jsonify({"error": "Internal server error"}), 500
    return jsonify(category.to_dict())


@categories_bp.delete("/<int:category_id>")
@require_auth
def delete_category_route(category_id: int):
    try:
        catalog_service.delete_category(category_id=category_id)
    except ValueError as e:
        return _error(e)
    return jsonify({"message": "Category deleted successfully"})


# =============================================================================
# Units
# =============================================================================

@units_bp.get("")
@require_auth
def list_units_route():
    return jsonify({"data": [u.to_dict() for u in catalog_service.list_units()]})


@units_bp.post("")
@require_auth
def create_unit_route():
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Unit, payload=payload, policy=UNIT_POLICY, partial=False)
        unit = catalog_service.create_unit(patch=patch)
    except ValueError as e:
        return _error(e)
    return jsonify(unit.to_dict()), 201
