# Overview: Flask API routes for customer collections; parses input and returns JSON responses.

"""
Collections across all customers.

SECURITY: All routes require authentication. Reversing a collection
additionally requires ADMINISTRATOR.
"""

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_auth, require_role
from ..models.auth import ROLE_ADMINISTRATOR
from ..services import customer_service
from ..validation import NotFoundError
from sarupaa.time_utils import parse_iso_datetime


collections_bp = Blueprint("collections", __name__, url_prefix="/api/collections")


@collections_bp.get("")
@require_auth
def list_collections_route():
    """
    Query params:
    - customer_id
    - from_date / to_date: inclusive ISO dates
    - page / limit: 1-indexed paging
    """
    try:
        from_date = parse_iso_datetime(request.args.get("from_date"))
        to_date = parse_iso_datetime(request.args.get("to_date"))
    except ValueError:
        return jsonify({"error": "from_date and to_date must be ISO-8601 dates"}), 400

    result = customer_service.list_collections(
        customer_id=request.args.get("customer_id", type=int),
        from_date=from_date,
        to_date=to_date,
        page=request.args.get("page", type=int),
        limit=request.args.get("limit", type=int),
    )
    return jsonify(result.envelope(customer_service.collection_to_dict))


@collections_bp.get("/<int:entry_id>")
@require_auth
def get_collection_route(entry_id: int):
    try:
        entry = customer_service.get_collection(entry_id)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    return jsonify(customer_service.collection_to_dict(entry))


@collections_bp.delete("/<int:entry_id>")
@require_auth
@require_role(ROLE_ADMINISTRATOR)
def reverse_collection_route(entry_id: int):
    try:
        reversal = customer_service.reverse_collection(entry_id=entry_id, user_id=g.current_user.id)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to reverse collection")
        return jsonify({"error": "Internal server error"}), 500

    entry = customer_service.get_collection(entry_id)
    return jsonify({
        "message": f"Collection of {entry.credit_cents / 100:,.2f} from {entry.customer.name} reversed.",
        "collection": customer_service.collection_to_dict(entry),
        "reversal": reversal.to_dict(),
        "balance_cents": entry.customer.balance_cents,
    })
