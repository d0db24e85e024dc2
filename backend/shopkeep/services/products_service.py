# backend/shopkeep/services/products_service.py
"""
Products Service

Products are never physically deleted; delete_product clears is_active so
sale items keep pointing at a real row. Inactive products are invisible to
listing, lookup and sale creation.
"""
from __future__ import annotations
from flask import current_app
from ..extensions import db
from ..models import Product
from ..validation import ConflictError, NotFoundError

PRODUCT_MUTABLE_FIELDS = {"name", "description", "price", "stock_quantity", "category", "sku"}


def apply_product_patch(p: Product, patch: dict) -> None:
    for k, v in patch.items():
        if k not in PRODUCT_MUTABLE_FIELDS:
            continue
        setattr(p, k, v)


def _ensure_sku_available(sku: str | None, exclude_id: int | None = None) -> None:
    if sku is None:
        return
    query = db.session.query(Product).filter(Product.sku == sku)
    if exclude_id is not None:
        query = query.filter(Product.id != exclude_id)
    if query.first():
        raise ConflictError("SKU already exists.")


def list_products() -> list[dict]:
    products = (
        db.session.query(Product)
        .filter(Product.is_active.is_(True))
        .order_by(Product.name.asc(), Product.id.asc())
        .all()
    )
    return [p.to_dict() for p in products]


def get_product(product_id: int) -> Product:
    """Active product by id; raises NotFoundError."""
    p = (
        db.session.query(Product)
        .filter(Product.id == product_id, Product.is_active.is_(True))
        .first()
    )
    if not p:
        raise NotFoundError("Product not found")
    return p


def count_products() -> int:
    return db.session.query(Product).filter(Product.is_active.is_(True)).count()


def create_product(*, patch: dict) -> dict:
    """
    Create product using a validated patch dict.

    Raises:
        ConflictError: If SKU already exists
    """
    _ensure_sku_available(patch.get("sku"))

    p = Product()
    apply_product_patch(p, patch)
    if p.stock_quantity is None:
        p.stock_quantity = 0

    db.session.add(p)
    db.session.commit()

    current_app.logger.info("Created product id=%s name=%s sku=%s", p.id, p.name, p.sku)
    return p.to_dict()


def update_product(*, product_id: int, patch: dict) -> dict:
    """
    Partial update of an active product.

    Raises:
        NotFoundError: product missing or deleted
        ConflictError: If new SKU already exists
    """
    p = get_product(product_id)

    if "sku" in patch and patch["sku"] != p.sku:
        _ensure_sku_available(patch["sku"], exclude_id=p.id)

    apply_product_patch(p, patch)
    db.session.commit()
    return p.to_dict()


def delete_product(*, product_id: int) -> None:
    """Soft-delete a product; raises NotFoundError."""
    p = get_product(product_id)

    # Soft-delete only: preserve IDs and historical references.
    p.is_active = False
    db.session.commit()
    current_app.logger.info("Deactivated product id=%s sku=%s", p.id, p.sku)
