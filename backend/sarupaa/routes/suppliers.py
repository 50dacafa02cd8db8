# Overview: Flask API routes for supplier operations; parses input and returns JSON responses.

"""
Supplier Routes

SECURITY: All routes require authentication.

Suppliers with purchases, ledger rows or payments cannot be deleted; set
is_active to false instead.
"""

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_auth
from ..models import Supplier
from ..services import ledger_service, supplier_service
from ..services.supplier_service import SUPPLIER_POLICY
from ..validation import NotFoundError, enforce_rules_party, parse_bool, validate_payload
from sarupaa.time_utils import parse_iso_datetime


suppliers_bp = Blueprint("suppliers", __name__, url_prefix="/api/suppliers")


def _with_count(row):
    supplier, purchase_count = row
    data = supplier.to_dict()
    data["purchase_count"] = purchase_count
    return data


@suppliers_bp.get("")
@require_auth
def list_suppliers_route():
    result = supplier_service.list_suppliers(
        search=request.args.get("search") or None,
        page=request.args.get("page", type=int),
        limit=request.args.get("limit", type=int),
    )
    return jsonify(result.envelope(_with_count))


@suppliers_bp.post("")
@require_auth
def create_supplier_route():
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Supplier, payload=payload, policy=SUPPLIER_POLICY, partial=False)
        enforce_rules_party(patch)
        supplier = supplier_service.create_supplier(patch=patch)
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to create supplier")
        return jsonify({"error": "Internal server error"}), 500
    return jsonify(supplier.to_dict()), 201


@suppliers_bp.get("/payments")
@require_auth
def list_payments_route():
    result = supplier_service.list_payments(
        supplier_id=request.args.get("supplier_id", type=int),
        page=request.args.get("page", type=int),
        limit=request.args.get("limit", type=int),
    )
    return jsonify(result.envelope(lambda p: p.to_dict()))


@suppliers_bp.post("/payments")
@require_auth
def record_payment_route():
    """
    Pay down a supplier balance.

    Request body:
    {
        "supplier_id": 1,          // required
        "amount_cents": 5000,      // required, 0 < amount <= balance
        "payment_type": "cash",    // optional
        "reference": "...",        // optional
        "notes": "...",            // optional
        "date": "2024-01-31"       // optional
    }
    """
    data = request.get_json(silent=True) or {}
    try:
        payment, supplier, previous = supplier_service.record_payment(
            supplier_id=data.get("supplier_id"),
            amount_cents=data.get("amount_cents"),
            user_id=g.current_user.id,
            payment_type=data.get("payment_type") or "cash",
            reference=data.get("reference"),
            notes=data.get("notes"),
            date=data.get("date"),
        )
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to record supplier payment")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({
        "payment": payment.to_dict(),
        "supplier": supplier.to_dict(),
        "previous_balance_cents": previous,
        "new_balance_cents": supplier.balance_cents,
        "message": "Payment recorded successfully",
    }), 201


@suppliers_bp.get("/<int:supplier_id>")
@require_auth
def get_supplier_route(supplier_id: int):
    try:
        supplier = supplier_service.get_supplier(supplier_id)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    activity = supplier_service.recent_activity(supplier_id)
    data = supplier.to_dict()
    data["purchases"] = [p.to_dict() for p in activity["purchases"]]
    data["ledger"] = [e.to_dict() for e in activity["ledger"]]
    return jsonify(data)


@suppliers_bp.put("/<int:supplier_id>")
@require_auth
def update_supplier_route(supplier_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Supplier, payload=payload, policy=SUPPLIER_POLICY, partial=True)
        enforce_rules_party(patch)
        supplier = supplier_service.update_supplier(supplier_id=supplier_id, patch=patch)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to update supplier")
        return jsonify({"error": "Internal server error"}), 500
    return jsonify(supplier.to_dict())


@suppliers_bp.delete("/<int:supplier_id>")
@require_auth
def delete_supplier_route(supplier_id: int):
    try:
        supplier_service.delete_supplier(supplier_id=supplier_id)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify({"message": "Supplier deleted successfully"})


@suppliers_bp.get("/<int:supplier_id>/ledger")
@require_auth
def supplier_ledger_route(supplier_id: int):
    try:
        supplier = supplier_service.get_supplier(supplier_id)
        from_date = parse_iso_datetime(request.args.get("from_date"))
        to_date = parse_iso_datetime(request.args.get("to_date"))
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ValueError:
        return jsonify({"error": "from_date and to_date must be ISO-8601 dates"}), 400

    entries = ledger_service.supplier_ledger(supplier.id, from_date=from_date, to_date=to_date)
    return jsonify({
        "supplier": supplier.to_dict(),
        "data": [e.to_dict() for e in entries],
        "balance_cents": supplier.balance_cents,
    })


@suppliers_bp.get("/<int:supplier_id>/purchases")
@require_auth
def supplier_purchases_route(supplier_id: int):
    try:
        purchases = supplier_service.supplier_purchases(
            supplier_id=supplier_id,
            unpaid_only=parse_bool(request.args.get("unpaid_only")),
        )
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    return jsonify({"data": [p.to_dict() for p in purchases]})
