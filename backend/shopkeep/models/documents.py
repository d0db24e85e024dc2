from __future__ import annotations

from ..extensions import db


class InvoiceSequence(db.Model):
    """
    Named counter for human-readable document numbers.

    next_number is only ever advanced with an atomic
    UPDATE ... SET next_number = next_number + 1.
    """
    __tablename__ = "invoice_sequences"

    name = db.Column(db.String(32), primary_key=True)
    next_number = db.Column(db.Integer, nullable=False, default=1)

    def __repr__(self) -> str:
        return f"<InvoiceSequence {self.name} next={self.next_number}>"
