# Overview: Service-layer operations for document numbering; encapsulates business logic and database work.

from __future__ import annotations

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import InvoiceSequence, Sale


INVOICE_SEQUENCE = "INVOICE"
INVOICE_PREFIX = "INV"
INVOICE_PAD = 6


class DocumentSequenceError(Exception):
    """Raised when document sequence operations fail."""
    pass


def format_invoice_number(number: int) -> str:
    return f"{INVOICE_PREFIX}-{number:0{INVOICE_PAD}d}"


def parse_invoice_number(invoice_number: str | None) -> int:
    """Numeric suffix of "INV-000123"; 0 for missing or malformed values."""
    if not invoice_number or "-" not in invoice_number:
        return 0
    suffix = invoice_number.rsplit("-", 1)[1]
    return int(suffix) if suffix.isdigit() else 0


def last_issued_invoice() -> int:
    """
    Highest invoice number already stored on a sale.

    The field is fixed-width, so lexicographic descending order is numeric order.
    """
    last = (
        db.session.query(Sale.invoice_number)
        .order_by(Sale.invoice_number.desc())
        .limit(1)
        .scalar()
    )
    return parse_invoice_number(last)


def _advance(name: str) -> int | None:
    stmt = (
        update(InvoiceSequence)
        .where(InvoiceSequence.name == name)
        .values(next_number=InvoiceSequence.next_number + 1)
    )
    result = db.session.execute(stmt)
    if not result.rowcount:
        return None
    db.session.flush()
    current = (
        db.session.query(InvoiceSequence.next_number)
        .filter_by(name=name)
        .scalar()
    )
    return current - 1


def next_invoice_number(name: str = INVOICE_SEQUENCE) -> str:
    """
    Atomically allocate the next invoice number.

    Runs inside the caller's transaction: the number is only consumed if the
    caller commits. The sequence row is created on first use and seeded from
    the highest invoice already on file.
    """
    if not name:
        raise DocumentSequenceError("sequence name is required")

    next_num = _advance(name)
    if next_num is None:
        next_num = last_issued_invoice() + 1
        try:
            with db.session.begin_nested():
                db.session.add(InvoiceSequence(name=name, next_number=next_num + 1))
        except IntegrityError:
            # Another writer created the row first
            next_num = _advance(name)
            if next_num is None:
                raise DocumentSequenceError(f"Sequence {name} could not be allocated")

    return format_invoice_number(next_num)
