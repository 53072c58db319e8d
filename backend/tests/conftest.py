"""
Pytest fixtures for the laundry backend tests.

Provides an in-memory database, branch/customer fixtures and the operator
headers that the upstream session layer would normally supply.
"""

import pytest
from laundry import create_app
from laundry.extensions import db
from laundry.models import Branch, Customer


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'RETRY_BACKOFF_SECONDS': 0,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()
        app.config['NOTIFICATION_SENDERS'] = None


@pytest.fixture(scope='function')
def branch(db_session):
    """Downtown branch, 8.5% tax."""
    branch = Branch(code="DT", name="Downtown", address="12 Main St", tax_rate_bps=850, is_active=True)
    db_session.add(branch)
    db_session.commit()
    return branch


@pytest.fixture(scope='function')
def other_branch(db_session):
    """Uptown branch, no tax."""
    branch = Branch(code="UP", name="Uptown", address="99 Hill Rd", tax_rate_bps=0, is_active=True)
    db_session.add(branch)
    db_session.commit()
    return branch


@pytest.fixture(scope='function')
def customer(db_session, branch):
    """Customer with 10 loyalty points and no balance."""
    customer = Customer(
        branch_id=branch.id,
        phone="555-0101",
        name="Ana Lopez",
        email="ana@example.com",
        loyalty_points=10,
    )
    db_session.add(customer)
    db_session.commit()
    return customer


def _operator_headers(branch, name="maria", role="staff") -> dict:
    """Headers the session layer attaches to every authenticated request."""
    return {
        'X-Operator-Name': name,
        'X-Branch-Id': str(branch.id),
        'X-Operator-Role': role,
    }


@pytest.fixture(scope='function')
def headers(branch):
    """Staff operator at the Downtown branch."""
    return _operator_headers(branch)


@pytest.fixture(scope='function')
def admin_headers(branch):
    return _operator_headers(branch, name="boss", role="admin")


@pytest.fixture(scope='function')
def other_headers(other_branch):
    """Staff operator at the Uptown branch."""
    return _operator_headers(other_branch, name="luis")


@pytest.fixture(scope='function')
def order_payload():
    """
    Builder for checkout payloads.

    Default: two shirts at 10.00 in an 8.5% branch, 20.00 + 1.70 = 21.70.
    """
    def _build(**overrides) -> dict:
        payload = {
            "customer_name": "Ana Lopez",
            "customer_phone": "555-0101",
            "items": [
                {"clothing_item": "Shirt", "service": "wash", "quantity": 2, "unit_price": "10.00"},
            ],
            "subtotal": "20.00",
            "tax": "1.70",
            "total": "21.70",
            "payment_method": "cash",
        }
        payload.update(overrides)
        return payload
    return _build
