# Overview: Service-layer operations for document numbering; encapsulates business logic and database work.

from __future__ import annotations

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import DocumentSequence, Payment, Purchase
from sarupaa.time_utils import utcnow


PURCHASE_SEQUENCE = "purchase"
SALE_SEQUENCE = "sale"
COLLECTION_SEQUENCE = "collection"


class DocumentSequenceError(Exception):
    """Raised when document sequence operations fail."""
    pass


def next_document_number(*, document_type: str, period: str = "") -> int:
    """
    Atomically allocate the next number for a document type and period.

    The counter row is advanced with a single UPDATE so concurrent callers
    serialize on the row. The first allocation for a new period inserts the
    row inside a savepoint; losing that insert race falls back to the UPDATE.
    Caller owns the surrounding transaction.
    """
    if not document_type:
        raise DocumentSequenceError("document_type is required")

    stmt = (
        update(DocumentSequence)
        .where(
            DocumentSequence.document_type == document_type,
            DocumentSequence.period == period,
        )
        .values(next_number=DocumentSequence.next_number + 1)
    )

    def _advance_existing() -> int | None:
        result = db.session.execute(stmt)
        if not result.rowcount:
            return None
        current = (
            db.session.query(DocumentSequence.next_number)
            .filter_by(document_type=document_type, period=period)
            .scalar()
        )
        return current - 1

    allocated = _advance_existing()
    if allocated is not None:
        return allocated

    try:
        with db.session.begin_nested():
            db.session.add(DocumentSequence(document_type=document_type, period=period, next_number=2))
        return 1
    except IntegrityError:
        allocated = _advance_existing()
        if allocated is None:
            raise
        return allocated


def peek_document_number(*, document_type: str, period: str = "") -> int:
    """Number the next allocation would return, without consuming it."""
    current = (
        db.session.query(DocumentSequence.next_number)
        .filter_by(document_type=document_type, period=period)
        .scalar()
    )
    return current or 1


def format_purchase_invoice(number: int) -> str:
    return f"{number:06d}"


def next_purchase_invoice_no() -> str:
    """
    Allocate a purchase invoice number ("000042").

    Numbers already taken by hand-entered invoices are skipped.
    """
    while True:
        invoice_no = format_purchase_invoice(next_document_number(document_type=PURCHASE_SEQUENCE))
        taken = db.session.query(Purchase.id).filter_by(invoice_no=invoice_no).first()
        if not taken:
            return invoice_no


def preview_purchase_invoice_no() -> str:
    number = peek_document_number(document_type=PURCHASE_SEQUENCE)
    while db.session.query(Purchase.id).filter_by(invoice_no=format_purchase_invoice(number)).first():
        number += 1
    return format_purchase_invoice(number)


def next_sale_invoice_no(now=None) -> str:
    """Allocate a sale invoice number: INV + yyyymm + 5 digits, restarting monthly."""
    now = now or utcnow()
    period = now.strftime("%Y%m")
    number = next_document_number(document_type=SALE_SEQUENCE, period=period)
    return f"INV{period}{number:05d}"


def next_collection_reference(now=None) -> str:
    """Allocate a customer collection reference: COL-yyyymmdd-NNNN, restarting daily."""
    now = now or utcnow()
    period = now.strftime("%Y%m%d")
    while True:
        number = next_document_number(document_type=COLLECTION_SEQUENCE, period=period)
        reference = f"COL-{period}-{number:04d}"
        if not db.session.query(Payment.id).filter_by(reference=reference).first():
            return reference
