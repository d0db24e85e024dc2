"""
Sales Service - single-transaction sale creation

A sale, its items, the stock decrements and the invoice number are written in
one transaction. Stock is decremented with a conditional UPDATE so two
concurrent sales can never drive a product below zero; the loser rolls back
completely.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from flask import current_app
from sqlalchemy import update
from sqlalchemy.orm import joinedload

from ..extensions import db
from ..models import Sale, SaleItem, Product
from ..validation import NotFoundError, parse_sale_items
from shopkeep.time_utils import utcnow
from .document_service import next_invoice_number
from .concurrency import lock_for_update, run_with_retry


DEFAULT_CUSTOMER_NAME = "Cash Customer"


class SaleError(Exception):
    """Raised for sale operation errors."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class InsufficientStockError(SaleError):
    """Requested quantity exceeds the product's stock."""
    def __init__(self, product: Product, available: int, requested: int):
        super().__init__(
            f"Insufficient stock for product: {product.name}",
            details={
                "product_id": product.id,
                "available": available,
                "requested": requested,
            },
        )
        self.product_id = product.id
        self.available = available
        self.requested = requested


def _load_product(product_id: int) -> Product:
    product = lock_for_update(
        db.session.query(Product).filter(
            Product.id == product_id,
            Product.is_active.is_(True),
        )
    ).first()
    if not product:
        raise NotFoundError(f"Product not found: {product_id}")
    return product


def _decrement_stock(product: Product, quantity: int) -> None:
    stmt = (
        update(Product)
        .where(Product.id == product.id, Product.stock_quantity >= quantity)
        .values(stock_quantity=Product.stock_quantity - quantity)
        .execution_options(synchronize_session=False)
    )
    result = db.session.execute(stmt)
    if result.rowcount != 1:
        # A concurrent sale consumed the stock after we validated it
        available = (
            db.session.query(Product.stock_quantity)
            .filter(Product.id == product.id)
            .scalar()
        )
        raise InsufficientStockError(product, available=available or 0, requested=quantity)
    db.session.expire(product, ["stock_quantity"])


def _create_sale_locked(
    line_items: list[tuple[int, int]],
    customer_name: str,
    user_id: int,
) -> Sale:
    products: dict[int, Product] = {}
    requested: dict[int, int] = {}
    total_amount = Decimal("0.00")

    # Validate every line before writing anything
    for product_id, quantity in line_items:
        product = products.get(product_id)
        if product is None:
            product = _load_product(product_id)
            products[product_id] = product

        requested[product_id] = requested.get(product_id, 0) + quantity
        if product.stock_quantity < requested[product_id]:
            raise InsufficientStockError(
                product,
                available=product.stock_quantity,
                requested=requested[product_id],
            )

        total_amount += Decimal(product.price) * quantity

    sale = Sale(
        invoice_number=next_invoice_number(),
        total_amount=total_amount,
        sale_date=utcnow(),
        customer_name=customer_name,
        user_id=user_id,
    )
    db.session.add(sale)
    db.session.flush()

    for product_id, quantity in line_items:
        product = products[product_id]
        db.session.add(SaleItem(
            sale_id=sale.id,
            product_id=product_id,
            quantity_sold=quantity,
            price_per_unit_at_sale=product.price,
        ))
        _decrement_stock(product, quantity)

    return sale


def create_sale(*, items, customer_name: str | None, user_id: int) -> Sale:
    """
    Create a sale with its items and decrement stock.

    Raises:
        ValidationError: empty or malformed items
        NotFoundError: unknown or deleted product
        InsufficientStockError: not enough stock (nothing is persisted)
    """
    line_items = parse_sale_items(items)
    if customer_name is not None and not isinstance(customer_name, str):
        customer_name = str(customer_name)
    customer_name = (customer_name or "").strip()[:255] or DEFAULT_CUSTOMER_NAME

    def _op():
        try:
            sale = _create_sale_locked(line_items, customer_name, user_id)
            db.session.commit()
        except InsufficientStockError as e:
            db.session.rollback()
            current_app.logger.warning(
                "Rejected sale: %s (available=%s requested=%s)",
                e, e.available, e.requested,
            )
            raise
        except Exception:
            db.session.rollback()
            raise
        return sale

    sale = run_with_retry(_op)
    current_app.logger.info(
        "Created sale %s total=%s items=%s user_id=%s",
        sale.invoice_number, sale.total_amount, len(line_items), user_id,
    )
    return sale


def list_sales(
    *,
    start: datetime | None = None,
    end: datetime | None = None,
    limit: int | None = None,
) -> list[dict]:
    """Sales newest first; start/end are inclusive."""
    query = db.session.query(Sale).options(joinedload(Sale.user))
    if start:
        query = query.filter(Sale.sale_date >= start)
    if end:
        query = query.filter(Sale.sale_date <= end)

    query = query.order_by(Sale.sale_date.desc(), Sale.id.desc())
    if limit:
        query = query.limit(limit)

    return [sale.to_dict() for sale in query.all()]


def get_sale(sale_id: int) -> Sale:
    sale = db.session.get(Sale, sale_id)
    if not sale:
        raise NotFoundError("Sale not found")
    return sale


def sale_detail(sale: Sale) -> dict:
    """Sale joined with creator identity and its items."""
    items = (
        db.session.query(SaleItem)
        .options(joinedload(SaleItem.product))
        .filter(SaleItem.sale_id == sale.id)
        .order_by(SaleItem.id.asc())
        .all()
    )
    data = sale.to_dict()
    data["items"] = [item.to_dict() for item in items]
    return data
