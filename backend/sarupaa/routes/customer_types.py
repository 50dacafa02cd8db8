# Overview: Flask API routes for customer types; parses input and returns JSON responses.

"""
Customer types carry a default discount percent (clamped to 0..100).
They are never deleted; deactivate them with is_active instead.
"""

from flask import Blueprint, current_app, jsonify, request

from ..decorators import require_auth
from ..services import catalog_service
from ..validation import NotFoundError


customer_types_bp = Blueprint("customer_types", __name__, url_prefix="/api/customer-types")


@customer_types_bp.get("")
@require_auth
def list_customer_types_route():
    types = catalog_service.list_customer_types()
    return jsonify({
        "data": [ct.to_dict(customer_count=count) for ct, count in types],
        "total": len(types),
    })


@customer_types_bp.get("/<int:type_id>")
@require_auth
def get_customer_type_route(type_id: int):
    try:
        ct, count = catalog_service.get_customer_type(type_id)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    return jsonify(ct.to_dict(customer_count=count))


@customer_types_bp.post("")
@require_auth
def create_customer_type_route():
    data = request.get_json(silent=True) or {}
    try:
        ct = catalog_service.create_customer_type(
            name=data.get("name"),
            discount_percent=data.get("discount_percent", 0),
            description=data.get("description"),
            is_active=data.get("is_active", True),
        )
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to create customer type")
        return jsonify({"error": "Internal server error"}), 500
    return jsonify(ct.to_dict(customer_count=0)), 201


@customer_types_bp.put("/<int:type_id>")
@require_auth
def update_customer_type_route(type_id: int):
    data = request.get_json(silent=True) or {}
    try:
        ct = catalog_service.update_customer_type(
            type_id=type_id,
            name=data.get("name"),
            discount_percent=data.get("discount_percent"),
            description=data.get("description"),
            is_active=data.get("is_active"),
        )
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to update customer type")
        return jsonify({"error": "Internal server error"}), 500
    return jsonify(ct.to_dict())
