"""
Pytest fixtures for shopkeep backend tests.

Provides a file-backed SQLite database per test session, a clean schema per
test, users with tokens, and product/sale/expense factories.
"""

from datetime import datetime
from decimal import Decimal

import pytest
from shopkeep import create_app
from shopkeep.extensions import db
from shopkeep.models import Expense, Product, Role, Sale, SaleItem, User
from shopkeep.services.auth_service import hash_password
from shopkeep.services.token_service import issue_token


PASSWORD = "Password123!"


@pytest.fixture(scope='session')
def app(tmp_path_factory):
    """Create application for testing."""
    db_path = tmp_path_factory.mktemp("db") / "shopkeep-test.sqlite3"
    app = create_app({
        'TESTING': True,
        'SECRET_KEY': 'test-secret-key',
        'SQLALCHEMY_DATABASE_URI': f'sqlite:///{db_path}',
        'APP_ENV': 'testing',
    })

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function', autouse=True)
def db_session(app):
    """Create fresh database for each test."""
    # Clear all data but keep schema
    meta = db.metadata
    for table in reversed(meta.sorted_tables):
        db.session.execute(table.delete())
    db.session.commit()

    yield db.session

    # Cleanup after test
    db.session.rollback()
    db.session.expunge_all()


@pytest.fixture(scope='session')
def password_hash():
    """bcrypt is slow on purpose; hash the shared test password once."""
    return hash_password(PASSWORD)


def _make_user(db_session, password_hash, username, role):
    user = User(
        username=username,
        email=f"{username}@shopkeep.test",
        password_hash=password_hash,
        role=role,
    )
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def admin_user(db_session, password_hash):
    return _make_user(db_session, password_hash, "admin", Role.ADMIN)


@pytest.fixture(scope='function')
def regular_user(db_session, password_hash):
    return _make_user(db_session, password_hash, "clerk", Role.USER)


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture(scope='function')
def admin_headers(admin_user):
    return auth_headers(issue_token(admin_user.id))


@pytest.fixture(scope='function')
def user_headers(regular_user):
    return auth_headers(issue_token(regular_user.id))


@pytest.fixture(scope='function')
def make_product(db_session):
    """Factory: make_product(name, price, stock, category='General', **extra)."""
    def _make(name="Widget", price="10.00", stock=10, category="General", **extra):
        product = Product(
            name=name,
            price=Decimal(str(price)),
            stock_quantity=stock,
            category=category,
            **extra,
        )
        db_session.add(product)
        db_session.commit()
        return product
    return _make


@pytest.fixture(scope='function')
def make_sale(db_session, regular_user):
    """
    Factory for sales inserted directly with a chosen date.

    lines: [(product, quantity), ...]; total is derived from product prices.
    """
    counter = {"n": 0}

    def _make(sale_date: datetime, lines=(), total=None, invoice_number=None):
        counter["n"] += 1
        amount = Decimal(str(total)) if total is not None else sum(
            (Decimal(p.price) * q for p, q in lines), Decimal("0.00")
        )
        sale = Sale(
            invoice_number=invoice_number or f"INV-{900000 + counter['n']:06d}",
            total_amount=amount,
            sale_date=sale_date,
            customer_name="Cash Customer",
            user_id=regular_user.id,
        )
        db_session.add(sale)
        db_session.flush()
        for product, quantity in lines:
            db_session.add(SaleItem(
                sale_id=sale.id,
                product_id=product.id,
                quantity_sold=quantity,
                price_per_unit_at_sale=product.price,
            ))
        db_session.commit()
        return sale
    return _make


@pytest.fixture(scope='function')
def make_expense(db_session, admin_user):
    def _make(amount, expense_date: datetime, category="Rent", description=None):
        expense = Expense(
            user_id=admin_user.id,
            category=category,
            amount=Decimal(str(amount)),
            expense_date=expense_date,
            description=description,
        )
        db_session.add(expense)
        db_session.commit()
        return expense
    return _make
