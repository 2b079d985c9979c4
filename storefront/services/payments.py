import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Optional

import requests
import stripe

from storefront.config import Settings, load_settings
from storefront.pricing.money import to_cents

logger = logging.getLogger(__name__)

PROVIDER_STRIPE = "stripe"
PROVIDER_PAYPAL = "paypal"

# Internal order statuses
STATUS_PENDING = "pending"
STATUS_PAID = "paid"
STATUS_FAILED = "failed"

CARD_STATUS_MAP = {
    "succeeded": STATUS_PAID,
    "requires_payment_method": STATUS_FAILED,
    "canceled": STATUS_FAILED,
}

REDIRECT_STATUS_MAP = {
    "COMPLETED": STATUS_PAID,
    "DECLINED": STATUS_FAILED,
    "FAILED": STATUS_FAILED,
}


class PaymentProviderError(Exception):
    """Raised when a payment provider cannot be reached or rejects a request."""


@dataclass(frozen=True)
class ChargeHandle:
    """What the buyer needs to finish paying, plus our reference to the transaction."""
    reference: str
    client_secret: Optional[str] = None
    approval_url: Optional[str] = None
    extra: dict = field(default_factory=dict)


@dataclass(frozen=True)
class ProviderStatus:
    status: str
    fees_cents: int = 0


def map_provider_status(provider: str, status: Optional[str]) -> str:
    """
    Maps a provider's transaction status onto the order status.

    Total over its inputs: anything not recognised as terminal stays pending.
    """
    table = CARD_STATUS_MAP if provider == PROVIDER_STRIPE else REDIRECT_STATUS_MAP
    return table.get(status or "", STATUS_PENDING)


class PaymentProvider(ABC):
    """
    Capability interface the checkout orchestrator charges through.

    create_transaction:          open a charge for an already-validated total.
    retrieve_transaction_status: read (or, for redirect flows, finalize)
                                 the charge and report its provider status.
    """

    name = ""

    @abstractmethod
    def create_transaction(self, amount_cents: int, currency: str, customer: dict, order, lines) -> ChargeHandle:
        ...

    @abstractmethod
    def retrieve_transaction_status(self, reference: str) -> ProviderStatus:
        ...


class StripeProvider(PaymentProvider):
    """
    Card processor backed by Stripe PaymentIntents.
    """

    name = PROVIDER_STRIPE

    def __init__(self, settings: Settings):
        if not settings.STRIPE_SECRET_KEY:
            raise PaymentProviderError("STRIPE_SECRET_KEY is not configured")
        self._api_key = settings.STRIPE_SECRET_KEY

    def _find_or_create_customer(self, customer: dict) -> str:
        existing = stripe.Customer.list(email=customer["email"], limit=1, api_key=self._api_key)
        if existing.data:
            customer_id = existing.data[0].id
            logger.info(f"Found existing Stripe customer {customer_id}")
            return customer_id

        created = stripe.Customer.create(
            api_key=self._api_key,
            email=customer["email"],
            name=f"{customer['firstName']} {customer['lastName']}",
            phone=customer.get("phone"),
            address={
                "country": customer.get("country"),
                "city": customer.get("city"),
                "line1": customer.get("streetAddress"),
                "state": customer.get("state"),
                "postal_code": customer.get("zipCode"),
            },
        )
        logger.info(f"Created new Stripe customer {created.id}")
        return created.id

    def create_transaction(self, amount_cents, currency, customer, order, lines) -> ChargeHandle:
        try:
            customer_id = self._find_or_create_customer(customer)
            intent = stripe.PaymentIntent.create(
                api_key=self._api_key,
                amount=amount_cents,
                currency=currency,
                customer=customer_id,
                automatic_payment_methods={"enabled": True},
                receipt_email=customer["email"],
                metadata=build_metadata(order, lines, customer),
                description=describe_order(lines, customer),
            )
        except stripe.StripeError as e:
            raise PaymentProviderError(f"Stripe payment intent failed: {e}") from e

        logger.info(f"Payment intent created {intent.id} for {amount_cents} {currency}")
        return ChargeHandle(
            reference=intent.id,
            client_secret=intent.client_secret,
            extra={"paymentIntentId": intent.id, "livemode": bool(intent.livemode)},
        )

    def retrieve_transaction_status(self, reference: str) -> ProviderStatus:
        try:
            intent = stripe.PaymentIntent.retrieve(
                reference,
                api_key=self._api_key,
                expand=["latest_charge.balance_transaction"],
            )
        except stripe.StripeError as e:
            raise PaymentProviderError(f"Stripe retrieve failed: {e}") from e

        return ProviderStatus(status=intent.status, fees_cents=_stripe_fee_cents(intent))


def _stripe_fee_cents(intent) -> int:
    charge = getattr(intent, "latest_charge", None)
    if charge is None or isinstance(charge, str):
        return 0
    balance_transaction = getattr(charge, "balance_transaction", None)
    if balance_transaction is None or isinstance(balance_transaction, str):
        return 0
    # Stripe reports fees in cents already
    return int(getattr(balance_transaction, "fee", 0) or 0)


class PayPalProvider(PaymentProvider):
    """
    Redirect processor backed by the PayPal Orders v2 REST API.

    The buyer approves on PayPal's site; confirming the order captures it.
    """

    name = PROVIDER_PAYPAL

    def __init__(self, settings: Settings, session: Optional[requests.Session] = None):
        if not settings.PAYPAL_CLIENT_ID or not settings.PAYPAL_CLIENT_SECRET:
            raise PaymentProviderError("PayPal credentials not configured")
        self._client_id = settings.PAYPAL_CLIENT_ID
        self._client_secret = settings.PAYPAL_CLIENT_SECRET
        self._base = settings.PAYPAL_API_BASE
        self._timeout = settings.PROVIDER_TIMEOUT_SECONDS
        self._brand = settings.STORE_BRAND_NAME
        self._public_url = settings.STORE_PUBLIC_URL
        self._http = session or requests.Session()

    def _access_token(self) -> str:
        try:
            r = self._http.post(
                f"{self._base}/v1/oauth2/token",
                auth=(self._client_id, self._client_secret),
                data={"grant_type": "client_credentials"},
                headers={"Accept": "application/json"},
                timeout=self._timeout,
            )
        except requests.RequestException as e:
            raise PaymentProviderError(f"PayPal auth request failed: {e}") from e
        if not r.ok:
            logger.error(f"PayPal auth failed ({r.status_code}): {r.text}")
            raise PaymentProviderError(f"Failed to get PayPal access token: HTTP {r.status_code}")
        return r.json()["access_token"]

    def _call(self, method: str, path: str, payload: Optional[dict] = None) -> requests.Response:
        token = self._access_token()
        try:
            return self._http.request(
                method,
                f"{self._base}{path}",
                json=payload,
                headers={"Authorization": f"Bearer {token}", "Content-Type": "application/json"},
                timeout=self._timeout,
            )
        except requests.RequestException as e:
            raise PaymentProviderError(f"PayPal request failed: {e}") from e

    def create_transaction(self, amount_cents, currency, customer, order, lines) -> ChargeHandle:
        code = currency.upper()
        paid = [line for line in lines if not line.is_gift]
        items = [
            {
                "name": line.title[:127],
                "quantity": "1",
                "unit_amount": {"currency_code": code, "value": f"{line.msrp:.2f}"},
            }
            for line in paid
        ]
        item_total_cents = sum(to_cents(line.msrp) for line in paid)
        discount_cents = max(0, item_total_cents - amount_cents)

        breakdown = {"item_total": {"currency_code": code, "value": _dollars(item_total_cents)}}
        if discount_cents > 0:
            breakdown["discount"] = {"currency_code": code, "value": _dollars(discount_cents)}

        payload = {
            "intent": "CAPTURE",
            "purchase_units": [{
                "reference_id": order.order_id,
                "custom_id": order.order_number,
                "description": describe_order(lines, customer)[:127],
                "amount": {
                    "currency_code": code,
                    "value": _dollars(item_total_cents - discount_cents),
                    "breakdown": breakdown,
                },
                "items": items,
            }],
            "application_context": {
                "brand_name": self._brand,
                "user_action": "PAY_NOW",
                "return_url": f"{self._public_url}/checkout/success?provider=paypal",
                "cancel_url": f"{self._public_url}/checkout/cancel?provider=paypal",
            },
        }

        r = self._call("POST", "/v2/checkout/orders", payload)
        if not r.ok:
            logger.error(f"PayPal order creation failed ({r.status_code}): {r.text}")
            raise PaymentProviderError(f"PayPal order creation failed: HTTP {r.status_code}")

        data = r.json()
        approval_url = next((link["href"] for link in data.get("links", []) if link.get("rel") in ("approve", "payer-action")), None)
        logger.info(f"PayPal order created {data['id']}")
        return ChargeHandle(
            reference=data["id"],
            approval_url=approval_url,
            extra={"paypalOrderId": data["id"]},
        )

    def retrieve_transaction_status(self, reference: str) -> ProviderStatus:
        r = self._call("POST", f"/v2/checkout/orders/{reference}/capture")
        if r.status_code == 422:
            # Already captured (or not capturable); read the order as it stands
            logger.info(f"PayPal order {reference} not capturable, reading status")
            r = self._call("GET", f"/v2/checkout/orders/{reference}")
        if not r.ok:
            logger.error(f"PayPal capture failed ({r.status_code}): {r.text}")
            raise PaymentProviderError(f"PayPal capture failed: HTTP {r.status_code}")

        data = r.json()
        return ProviderStatus(status=data.get("status"), fees_cents=_paypal_fee_cents(data))


def _dollars(cents: int) -> str:
    return f"{cents / 100:.2f}"


def _paypal_fee_cents(capture_data: dict) -> int:
    fees = 0
    for unit in capture_data.get("purchase_units") or []:
        for capture in (unit.get("payments") or {}).get("captures") or []:
            fee = (capture.get("seller_receivable_breakdown") or {}).get("paypal_fee") or {}
            if fee.get("value"):
                fees += to_cents(float(fee["value"]))
    return fees


def describe_order(lines, customer: dict) -> str:
    """
    Builds a short human description of the order for provider dashboards,
    e.g. "2-Course Bundle + 1 Add-on (1 Gift) - Jane Doe".
    """
    name = f"{customer.get('firstName', '')} {customer.get('lastName', '')}".strip()
    lines = list(lines)
    if len(lines) == 1:
        return f"{lines[0].title} - {name}"

    courses = [line for line in lines if line.type in ("course", "group_coaching") and not line.is_gift]
    addons = [line for line in lines if line.type == "addon" and not line.is_gift]
    gifts = [line for line in lines if line.is_gift]

    parts = []
    if courses:
        parts.append(f"{len(courses)}-Course Bundle")
    if addons:
        parts.append(f"{len(addons)} Add-on{'s' if len(addons) > 1 else ''}")
    description = " + ".join(parts) or f"{len(lines)} Items"
    if gifts:
        description += f" ({len(gifts)} Gift{'s' if len(gifts) > 1 else ''})"
    return f"{description} - {name}"


def build_metadata(order, lines, customer: dict) -> dict:
    """Provider metadata; values must be strings and under 500 characters."""
    lines = list(lines)
    savings = sum(line.discount for line in lines if not line.is_gift)
    return {
        "order_id": order.order_id,
        "order_number": order.order_number,
        "customer_name": f"{customer.get('firstName', '')} {customer.get('lastName', '')}".strip(),
        "customer_country": customer.get("country") or "",
        "item_count": str(len(lines)),
        "course_count": str(sum(1 for line in lines if line.type in ("course", "group_coaching"))),
        "addon_count": str(sum(1 for line in lines if line.type == "addon")),
        "gift_count": str(sum(1 for line in lines if line.is_gift)),
        "total_savings_cents": str(to_cents(savings)),
        "product_titles": ", ".join(line.title for line in lines)[:450],
        "product_types": ", ".join(line.type for line in lines)[:450],
    }


def build_provider(name: str, settings: Optional[Settings] = None) -> PaymentProvider:
    """
    Args:
        name: Provider identifier ('stripe' or 'paypal').
        settings: Settings snapshot; loaded from the environment when omitted.

    Raises:
        ValueError: For an unknown provider name.
        PaymentProviderError: When the provider's credentials are missing.
    """
    settings = settings or load_settings()
    if name == PROVIDER_STRIPE:
        return StripeProvider(settings)
    if name == PROVIDER_PAYPAL:
        return PayPalProvider(settings)
    raise ValueError(f"Unknown payment provider: {name!r}")
