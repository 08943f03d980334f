"""
Pytest fixtures for BMS POS backend tests.

Provides a file-backed SQLite database per test session (threads in the
concurrency tests need to share it), seeded employees/products, and helpers
for the identity headers.
"""

import pytest
from bms_pos import create_app
from bms_pos.extensions import db
from bms_pos.models import Employee, Product, SystemSettings
from bms_pos.services.actor_service import Actor
from bms_pos.services.pin_service import hash_pin
from bms_pos.services.settings_service import SettingsSnapshot

MANAGER_PIN = "111111"
CASHIER_PIN = "222222"
INVENTORY_PIN = "333333"


@pytest.fixture(scope='session')
def app(tmp_path_factory):
    """Create application for testing."""
    db_path = tmp_path_factory.mktemp("db") / "bms_pos_test.sqlite3"
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': f'sqlite:///{db_path}',
        'SQLALCHEMY_ENGINE_OPTIONS': {
            'connect_args': {'check_same_thread': False, 'timeout': 30},
        },
        'ACTIVITY_LOG_SYNC': True,
        'PIN_HASH_ROUNDS': 4,
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


def _employee(db_session, code, name, role, pin):
    employee = Employee(
        employee_code=code,
        name=name,
        role=role,
        pin_hash=hash_pin(pin),
        is_active=True,
    )
    db_session.add(employee)
    db_session.commit()
    return employee


@pytest.fixture(scope='function')
def manager(db_session):
    return _employee(db_session, "MGR001", "Morgan Manager", "Manager", MANAGER_PIN)


@pytest.fixture(scope='function')
def cashier(db_session):
    return _employee(db_session, "EMP001", "Casey Cashier", "Cashier", CASHIER_PIN)


@pytest.fixture(scope='function')
def clerk(db_session):
    return _employee(db_session, "INV001", "Ira Inventory", "Inventory", INVENTORY_PIN)


@pytest.fixture(scope='function')
def manager_actor(manager):
    return Actor.from_employee(manager)


@pytest.fixture(scope='function')
def cashier_actor(cashier):
    return Actor.from_employee(cashier)


@pytest.fixture(scope='function')
def clerk_actor(clerk):
    return Actor.from_employee(clerk)


@pytest.fixture(scope='function')
def product(db_session):
    """Widget: stock 100, price $10.00, cost $5.00."""
    product = Product(
        barcode="0001112223334",
        name="Widget",
        price_cents=1000,
        cost_cents=500,
        stock_quantity=100,
        min_stock_level=5,
    )
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def cheap_product(db_session):
    """Gadget: stock 20, price $2.50, cost $1.00."""
    product = Product(
        barcode="9998887776665",
        name="Gadget",
        price_cents=250,
        cost_cents=100,
        stock_quantity=20,
        min_stock_level=5,
    )
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def settings_row(db_session):
    row = SystemSettings()
    db_session.add(row)
    db_session.commit()
    return row


@pytest.fixture(scope='function')
def default_settings():
    return SettingsSnapshot()


def headers_for(employee) -> dict:
    """Legacy identity headers for an employee."""
    return {'X-User-Id': str(employee.id), 'X-User-Name': employee.name}
