"""
Pytest fixtures for truckcheck backend tests.

Provides the application on in-memory SQLite, a per-test table wipe, an
in-process invoice directory, and small builders for inventory/aliases.
"""

import pytest

from truckcheck import create_app
from truckcheck.errors import InvoiceDirectoryError
from truckcheck.extensions import db
from truckcheck.services import alias_service, inventory_service
from truckcheck.services.invoice_directory import InvoiceLine


class FakeInvoiceDirectory:
    """In-process stand-in for the HTTP invoice directory."""

    def __init__(self):
        self.reset()

    def reset(self):
        self.invoices = {}
        self.failing = set()
        self.calls = []

    def add(self, invoice_number, lines, invoice_type="closed"):
        """lines: [(name, quantity), ...] or [(name, quantity, status), ...]"""
        self.invoices[(invoice_number, invoice_type)] = [InvoiceLine(*line) for line in lines]

    def fail(self, invoice_number):
        self.failing.add(invoice_number)

    def fetch_invoice(self, invoice_number, invoice_type):
        self.calls.append((invoice_number, invoice_type))
        if invoice_number in self.failing:
            raise InvoiceDirectoryError("timed out")
        lines = self.invoices.get((invoice_number, invoice_type))
        return list(lines) if lines is not None else None


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app(
        {
            'TESTING': True,
            'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
            'SQLALCHEMY_TRACK_MODIFICATIONS': False,
            'DECREMENT_STOCK_ON_CHECKOUT': True,
            'DB_RETRY_ATTEMPTS': 2,
        },
        invoice_directory=FakeInvoiceDirectory(),
    )

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


@pytest.fixture(scope='function')
def invoices(app):
    """The app's invoice directory, emptied."""
    directory = app.extensions["invoice_directory"]
    directory.reset()
    return directory


@pytest.fixture(scope='function')
def widget(db_session):
    """'Widget' mapping (aliases 'WIDGET 10PK', 'widgets') with 20 on hand."""
    alias_service.create_mapping("Widget", aliases=["WIDGET 10PK", "widgets"])
    return inventory_service.register_item("Widget", sku="W-10", opening_quantity=20)


@pytest.fixture(scope='function')
def gadget(db_session):
    """'Gadget' mapping with 5 on hand."""
    alias_service.create_mapping("Gadget", aliases=["gadget blue"])
    return inventory_service.register_item("Gadget", opening_quantity=5)


@pytest.fixture(scope='function')
def runner(app):
    """A test runner for the app's Click commands."""
    return app.test_cli_runner()


@pytest.fixture(scope='function')
def file_app(tmp_path):
    """
    Separate application on a file-backed SQLite database.

    In-memory SQLite hands every thread the same connection; racing
    transactions need real connections to one database file.
    """
    app = create_app(
        {
            'TESTING': True,
            'SQLALCHEMY_DATABASE_URI': f"sqlite:///{tmp_path / 'truckcheck.db'}",
            'SQLALCHEMY_TRACK_MODIFICATIONS': False,
            'DECREMENT_STOCK_ON_CHECKOUT': True,
            'DB_RETRY_ATTEMPTS': 6,
        },
        invoice_directory=FakeInvoiceDirectory(),
    )

    with app.app_context():
        db.create_all()

    yield app

    with app.app_context():
        db.session.remove()
        db.drop_all()
        db.engine.dispose()
