# Overview: Flask API routes for customer operations; parses input and returns JSON responses.

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_auth
from ..models import Customer
from ..services import customer_service, ledger_service
from ..services.customer_service import CUSTOMER_POLICY
from ..validation import (
    NotFoundError,
    ValidationError,
    enforce_rules_party,
    parse_bool,
    validate_payload,
)
from sarupaa.time_utils import parse_iso_datetime


customers_bp = Blueprint("customers", __name__, url_prefix="/api/customers")


@customers_bp.get("")
@require_auth
def list_customers_route():
    """
    Query params:
    - search: name, business name, phone, mobile or email contains
    - has_balance: only customers owing money
    - page / limit: 1-indexed paging (limit defaults to 50)
    """
    result = customer_service.list_customers(
        search=request.args.get("search") or None,
        has_balance=parse_bool(request.args.get("has_balance")),
        page=request.args.get("page", type=int),
        limit=request.args.get("limit", type=int),
    )
    return jsonify(result.envelope(lambda c: c.to_dict()))


@customers_bp.post("")
@require_auth
def create_customer_route():
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Customer, payload=payload, policy=CUSTOMER_POLICY, partial=False)
        enforce_rules_party(patch)
        customer = customer_service.create_customer(patch=patch)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to create customer")
        return jsonify({"error": "Internal server error"}), 500
    return jsonify(customer.to_dict()), 201


@customers_bp.get("/<int:customer_id>")
@require_auth
def get_customer_route(customer_id: int):
    try:
        customer = customer_service.get_customer(customer_id)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    data = customer.to_dict()
    data["counts"] = customer_service.activity_counts(customer_id)
    return jsonify(data)


@customers_bp.put("/<int:customer_id>")
@require_auth
def update_customer_route(customer_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Customer, payload=payload, policy=CUSTOMER_POLICY, partial=True)
        enforce_rules_party(patch)
        customer = customer_service.update_customer(customer_id=customer_id, patch=patch)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to update customer")
        return jsonify({"error": "Internal server error"}), 500
    return jsonify(customer.to_dict())


@customers_bp.get("/<int:customer_id>/ledger")
@require_auth
def customer_ledger_route(customer_id: int):
    """Ledger rows oldest first; from_date / to_date are inclusive ISO dates."""
    try:
        customer = customer_service.get_customer(customer_id)
        from_date = parse_iso_datetime(request.args.get("from_date"))
        to_date = parse_iso_datetime(request.args.get("to_date"))
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ValueError:
        return jsonify({"error": "from_date and to_date must be ISO-8601 dates"}), 400

    entries = ledger_service.customer_ledger(customer.id, from_date=from_date, to_date=to_date)
    return jsonify({
        "customer": customer.to_dict(),
        "data": [e.to_dict() for e in entries],
        "balance_cents": customer.balance_cents,
    })


@customers_bp.get("/<int:customer_id>/sales")
@require_auth
def customer_sales_route(customer_id: int):
    try:
        result = customer_service.customer_sales(
            customer_id=customer_id,
            page=request.args.get("page", type=int),
            limit=request.args.get("limit", type=int),
        )
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    return jsonify(result.envelope(lambda s: s.to_dict()))


@customers_bp.post("/<int:customer_id>/collections")
@require_auth
def record_collection_route(customer_id: int):
    """
    Cash received against the customer's balance.

    Request body:
    {
        "amount_cents": 5000,     // required, > 0
        "payment_type": "cash",   // optional
        "note": "..."             // optional
    }
    """
    data = request.get_json(silent=True) or {}
    try:
        collection = customer_service.record_collection(
            customer_id=customer_id,
            amount_cents=data.get("amount_cents"),
            user_id=g.current_user.id,
            payment_type=data.get("payment_type") or "cash",
            note=data.get("note"),
        )
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to record collection")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({
        "payment": collection.payment.to_dict(),
        "ledger_entry": collection.entry.to_dict(),
        "reference": collection.reference,
        "balance_cents": collection.balance_after_cents,
    }), 201
