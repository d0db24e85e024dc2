from __future__ import annotations

from ..extensions import db
from shopkeep.time_utils import to_utc_z


class Sale(db.Model):
    """
    Sale document.

    Created together with its items in a single transaction; immutable
    afterwards.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.CheckConstraint("total_amount >= 0", name="ck_sales_total_non_negative"),
        db.Index("ix_sales_sale_date", "sale_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Human-readable invoice number (e.g., "INV-000042")
    invoice_number = db.Column(db.String(32), nullable=False, unique=True, index=True)

    total_amount = db.Column(db.Numeric(12, 2), nullable=False)
    sale_date = db.Column(db.DateTime(timezone=True), nullable=False)
    customer_name = db.Column(db.String(255), nullable=False, default="Cash Customer")

    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    user = db.relationship("User", backref=db.backref("sales", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "invoice_number": self.invoice_number,
            "total_amount": float(self.total_amount),
            "sale_date": to_utc_z(self.sale_date),
            "customer_name": self.customer_name,
            "user": self.user.to_summary() if self.user else None,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class SaleItem(db.Model):
    """Line item on a sale; price_per_unit_at_sale is the price snapshot."""
    __tablename__ = "sale_items"
    __table_args__ = (
        db.CheckConstraint("quantity_sold >= 1", name="ck_sale_items_quantity_positive"),
        db.CheckConstraint("price_per_unit_at_sale >= 0", name="ck_sale_items_price_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    quantity_sold = db.Column(db.Integer, nullable=False)
    price_per_unit_at_sale = db.Column(db.Numeric(12, 2), nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    sale = db.relationship("Sale", backref=db.backref("items", lazy=True, order_by="SaleItem.id"))
    product = db.relationship("Product")

    @property
    def line_total(self):
        return self.price_per_unit_at_sale * self.quantity_sold

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "product_id": self.product_id,
            "product": {
                "id": self.product.id,
                "name": self.product.name,
                "price": float(self.product.price),
            } if self.product else None,
            "quantity_sold": self.quantity_sold,
            "price_per_unit_at_sale": float(self.price_per_unit_at_sale),
            "line_total": float(self.line_total),
            "created_at": to_utc_z(self.created_at),
        }
