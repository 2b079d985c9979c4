import logging
from dataclasses import dataclass, field
from typing import Callable, Optional

from sqlalchemy.exc import SQLAlchemyError

from storefront.config import Settings, load_settings
from storefront.pricing.engine import CartLine, PricedCart, Totals
from storefront.pricing.money import to_cents
from storefront.services.orders import OrderPersistenceError, OrderRepository, order_fields
from storefront.services.payment_methods import PaymentMethodRegistry, payment_methods
from storefront.services.payments import (
    PROVIDER_PAYPAL,
    PROVIDER_STRIPE,
    STATUS_PAID,
    PaymentProviderError,
    build_provider,
    map_provider_status,
)
from storefront.services.validation import ValidationErrorKind, validate_cart

logger = logging.getLogger(__name__)

# Payment method flag that has to be enabled for each provider
PROVIDER_METHODS = {
    PROVIDER_STRIPE: "card",
    PROVIDER_PAYPAL: "paypal",
}

REQUIRED_CUSTOMER_FIELDS = ("email", "firstName", "lastName")


class CheckoutRequestError(ValueError):
    """The checkout submission is malformed."""


class PaymentMethodUnavailableError(Exception):
    pass


@dataclass(frozen=True)
class CheckoutRequest:
    lines: tuple
    totals: Totals
    customer: dict
    coupon_code: Optional[str] = None

    @classmethod
    def from_payload(cls, data) -> "CheckoutRequest":
        """
        Parses a checkout submission.

        Raises:
            CheckoutRequestError: If required fields are missing or mistyped.
        """
        if not isinstance(data, dict):
            raise CheckoutRequestError("request body must be a JSON object")

        raw_lines = data.get("cartLines")
        if not isinstance(raw_lines, list) or not raw_lines:
            raise CheckoutRequestError("cartLines must be a non-empty list")

        customer = data.get("customer")
        if not isinstance(customer, dict):
            raise CheckoutRequestError("customer is required")
        for key in REQUIRED_CUSTOMER_FIELDS:
            value = customer.get(key)
            if not isinstance(value, str) or not value.strip():
                raise CheckoutRequestError(f"customer.{key} is required")
        if "@" not in customer["email"]:
            raise CheckoutRequestError("customer.email is invalid")

        coupon_code = data.get("couponCode")
        if coupon_code is not None and not isinstance(coupon_code, str):
            raise CheckoutRequestError("couponCode must be a string")

        try:
            lines = tuple(CartLine.from_payload(line) for line in raw_lines)
            totals = Totals.from_payload(data.get("totals"))
        except ValueError as e:
            raise CheckoutRequestError(str(e)) from e

        return cls(
            lines=lines,
            totals=totals,
            customer={k: (v.strip() if isinstance(v, str) else v) for k, v in customer.items()},
            coupon_code=(coupon_code.strip() or None) if coupon_code else None,
        )


@dataclass(frozen=True)
class CheckoutResult:
    success: bool
    error_kind: Optional[ValidationErrorKind] = None
    order_id: Optional[str] = None
    order_number: Optional[str] = None
    provider: Optional[str] = None
    charge: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "orderId": self.order_id,
            "orderNumber": self.order_number,
            **self.charge,
        }


@dataclass(frozen=True)
class ConfirmationResult:
    order_id: str
    order_number: str
    status: str
    provider: str

    def to_dict(self) -> dict:
        return {
            "success": True,
            "orderId": self.order_id,
            "orderNumber": self.order_number,
            "status": self.status,
        }


class CheckoutService:
    """
    Orchestrates a checkout attempt: server-side validation, order
    persistence and the provider charge, then confirmation of that charge.

    Amounts sent to providers and stored on orders always come from the
    server's recomputation of the cart, never from the submission.
    """

    def __init__(
        self,
        db,
        settings: Optional[Settings] = None,
        provider_factory: Callable = build_provider,
        methods: PaymentMethodRegistry = payment_methods,
    ):
        self.orders = OrderRepository(db)
        self.settings = settings or load_settings()
        self.provider_factory = provider_factory
        self.methods = methods

    def _provider(self, name: str):
        return self.provider_factory(name, self.settings)

    def place_order(self, request: CheckoutRequest, provider_name: str) -> CheckoutResult:
        """
        Validates the cart, records a pending order and opens a provider charge.

        Returns:
            A CheckoutResult. A rejected cart yields success=False with the
            validation error kind; nothing is written in that case.

        Raises:
            PaymentMethodUnavailableError: The provider's payment method is disabled.
            OrderPersistenceError: Order items could not be stored (order removed).
            PaymentProviderError: The provider failed; the order stays pending.
        """
        method_id = PROVIDER_METHODS.get(provider_name)
        if method_id is None:
            raise ValueError(f"Unknown payment provider: {provider_name!r}")
        if not self.methods.is_enabled(method_id):
            raise PaymentMethodUnavailableError(method_id)

        validation = validate_cart(request.lines, request.totals, request.coupon_code)
        if not validation.valid:
            return CheckoutResult(success=False, error_kind=validation.error_kind, provider=provider_name)

        priced: PricedCart = validation.recomputed
        provider = self._provider(provider_name)
        currency = self.settings.CHECKOUT_CURRENCY

        order_id = self.orders.insert_order(order_fields(priced, request.customer, provider_name, currency))
        try:
            self.orders.insert_order_items(order_id, priced.lines)
        except SQLAlchemyError as e:
            logger.error(f"Failed to create order items for {order_id}: {e}")
            self.orders.db.rollback()
            self.orders.delete_order(order_id)
            raise OrderPersistenceError(f"Failed to create order items for {order_id}") from e

        order = self.orders.get_order(order_id)
        amount_cents = to_cents(priced.totals.total)
        try:
            handle = provider.create_transaction(amount_cents, currency, request.customer, order, priced.lines)
        except PaymentProviderError as e:
            logger.error(f"{provider_name} charge failed for order {order_id}: {e}")
            self.orders.record_event(order_id, actor=provider_name, event_type="charge_failed", content=str(e))
            raise

        self.orders.attach_provider_reference(order_id, provider_name, handle.reference)

        charge = dict(handle.extra)
        if handle.client_secret is not None:
            charge["clientSecret"] = handle.client_secret
        if handle.approval_url is not None:
            charge["approvalUrl"] = handle.approval_url

        return CheckoutResult(
            success=True,
            order_id=order_id,
            order_number=order.order_number,
            provider=provider_name,
            charge=charge,
        )

    def _confirm(self, order) -> ConfirmationResult:
        if order.status == STATUS_PAID:
            logger.info(f"Order {order.order_id} already paid, skipping provider check")
            return ConfirmationResult(order.order_id, order.order_number, order.status, order.payment_provider)

        reference = self.orders.provider_reference(order)
        if not reference:
            logger.warning(f"Order {order.order_id} has no {order.payment_provider} reference yet")
            return ConfirmationResult(order.order_id, order.order_number, order.status, order.payment_provider)

        provider = self._provider(order.payment_provider)
        provider_status = provider.retrieve_transaction_status(reference)
        status = map_provider_status(order.payment_provider, provider_status.status)
        logger.info(
            f"Order {order.order_id} {order.payment_provider} status "
            f"{provider_status.status} -> {status}"
        )

        fees = provider_status.fees_cents if status == STATUS_PAID else None
        order = self.orders.update_order_status(order.order_id, status, fees, actor=order.payment_provider)
        return ConfirmationResult(order.order_id, order.order_number, order.status, order.payment_provider)

    def confirm_order(self, order_id: str) -> ConfirmationResult:
        """
        Reconciles an order with its provider. A paid order is returned as is.

        Raises:
            OrderNotFoundError: No order with this id.
            PaymentProviderError: The provider could not be queried.
        """
        return self._confirm(self.orders.get_order(order_id))

    def capture_redirect(self, provider_token: str) -> ConfirmationResult:
        """
        Captures an approved redirect payment identified by the provider's
        order token, then reconciles the matching order.
        """
        return self._confirm(self.orders.find_by_provider_reference(PROVIDER_PAYPAL, provider_token))
