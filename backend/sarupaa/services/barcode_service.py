# Overview: Service-layer operations for barcode allocation; encapsulates business logic and database work.

"""
Numeric barcode allocation.

Products created without a barcode get a 10-digit numeric one above
BARCODE_FLOOR. Allocation advances a locked high-water row; scanning
existing numeric barcodes only seeds it and catches hand-entered barcodes
that jumped ahead.
"""

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import BarcodeSequence, Product
from .concurrency import lock_for_update


PRODUCT_SEQUENCE = "product"


def _floor() -> int:
    return int(current_app.config.get("BARCODE_FLOOR", 1_000_000_000))


def scan_max_barcode() -> int:
    """
    Largest integer-valued product barcode, never below BARCODE_FLOOR.

    Non-numeric barcodes are ignored.
    """
    highest = _floor()
    rows = db.session.query(Product.barcode).filter(Product.barcode.isnot(None)).all()
    for (barcode,) in rows:
        value = barcode.strip()
        if not (value.isascii() and value.isdigit()):
            continue
        highest = max(highest, int(value))
    return highest


def _locked_sequence() -> BarcodeSequence:
    seq = lock_for_update(
        db.session.query(BarcodeSequence).filter_by(name=PRODUCT_SEQUENCE)
    ).first()
    if seq is None:
        seq = BarcodeSequence(name=PRODUCT_SEQUENCE, last_value=0)
        db.session.add(seq)
        db.session.flush()
    return seq


def allocate_barcode() -> str:
    """
    Reserve the next barcode inside the caller's transaction (flush only).

    Returned values strictly increase across calls, whether or not the
    product that used an earlier value was saved.
    """
    seq = _locked_sequence()
    value = max(seq.last_value or 0, scan_max_barcode()) + 1
    seq.last_value = value
    db.session.flush()
    return str(value)


def next_barcode() -> str:
    """Reserve and commit the next barcode (GET /api/products/next-barcode)."""
    try:
        value = allocate_barcode()
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    return value
