import pytest
from unittest.mock import patch, MagicMock
from flask import Flask
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from storefront.base import Base
from storefront import schema
from storefront.routes.admin import admin_bp
from storefront.routes.catalog import catalog_bp
from storefront.routes.checkout import checkout_bp
from storefront.services.payment_methods import DEFAULT_PAYMENT_METHODS, payment_methods
from storefront.services.payments import PROVIDER_PAYPAL, PROVIDER_STRIPE, ChargeHandle, ProviderStatus
from storefront.utils import seed_products

ADMIN_TOKEN = "test-admin-token"


@pytest.fixture(autouse=True)
def _reset_payment_methods():
    """Payment method flags are process-wide; restore the defaults around every test."""
    payment_methods.replace(DEFAULT_PAYMENT_METHODS)
    yield
    payment_methods.replace(DEFAULT_PAYMENT_METHODS)


@pytest.fixture(autouse=True)
def _settings_env(monkeypatch):
    monkeypatch.setenv("ADMIN_API_TOKEN", ADMIN_TOKEN)
    monkeypatch.setenv("CHECKOUT_CURRENCY", "usd")
    monkeypatch.delenv("STRIPE_SECRET_KEY", raising=False)
    monkeypatch.delenv("PAYPAL_CLIENT_ID", raising=False)
    monkeypatch.delenv("PAYPAL_CLIENT_SECRET", raising=False)


@pytest.fixture
def engine():
    """In-memory SQLite DB for fast testing."""
    _engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(_engine)
    TestSession = sessionmaker(bind=_engine)
    s = TestSession()
    seed_products(s)
    s.commit()
    s.close()
    yield _engine
    Base.metadata.drop_all(_engine)


@pytest.fixture
def db_session(engine):
    """Provides a transactional database session."""
    TestSession = sessionmaker(bind=engine)
    s = TestSession()
    try:
        yield s
    finally:
        s.close()


@pytest.fixture
def stripe_provider():
    """Stripe stand-in: charges open with a client secret and confirm as succeeded."""
    provider = MagicMock()
    provider.name = PROVIDER_STRIPE
    provider.create_transaction.return_value = ChargeHandle(
        reference="pi_test_123",
        client_secret="pi_test_123_secret_abc",
        extra={"paymentIntentId": "pi_test_123", "livemode": False},
    )
    provider.retrieve_transaction_status.return_value = ProviderStatus(status="succeeded", fees_cents=215)
    return provider


@pytest.fixture
def paypal_provider():
    """PayPal stand-in: orders open with an approval link and capture as COMPLETED."""
    provider = MagicMock()
    provider.name = PROVIDER_PAYPAL
    provider.create_transaction.return_value = ChargeHandle(
        reference="PAYPAL-ORDER-1",
        approval_url="https://www.sandbox.paypal.com/checkoutnow?token=PAYPAL-ORDER-1",
        extra={"paypalOrderId": "PAYPAL-ORDER-1"},
    )
    provider.retrieve_transaction_status.return_value = ProviderStatus(status="COMPLETED", fees_cents=130)
    return provider


@pytest.fixture
def providers(stripe_provider, paypal_provider):
    return {PROVIDER_STRIPE: stripe_provider, PROVIDER_PAYPAL: paypal_provider}


@pytest.fixture
def app(engine, providers):
    """Provides a pre-configured Flask app with all blueprints, a mocked db and mocked providers."""
    TestSession = sessionmaker(bind=engine)

    def mock_get_db():
        s = TestSession()
        try:
            yield s
        finally:
            s.close()

    def mock_build_provider(name, settings=None):
        return providers[name]

    flask_app = Flask(__name__)
    flask_app.register_blueprint(catalog_bp, url_prefix="/api/v1")
    flask_app.register_blueprint(checkout_bp, url_prefix="/api/v1")
    flask_app.register_blueprint(admin_bp, url_prefix="/api/v1")
    flask_app.config["TESTING"] = True

    with patch("storefront.routes.checkout.get_db", mock_get_db), \
         patch("storefront.routes.checkout.build_provider", side_effect=mock_build_provider), \
         patch("storefront.db.SessionLocal", TestSession), \
         patch("storefront.db.get_db", mock_get_db):
        yield flask_app


@pytest.fixture
def client(app):
    """Provides a Flask test client."""
    return app.test_client()


@pytest.fixture
def admin_headers():
    return {"Authorization": f"Bearer {ADMIN_TOKEN}"}
