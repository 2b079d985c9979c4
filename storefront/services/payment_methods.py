import logging
import threading
from dataclasses import dataclass, replace
from typing import Iterable, Optional, Tuple

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PaymentMethod:
    id: str
    name: str
    description: str
    countries: Tuple[str, ...]   # empty means available worldwide
    currencies: Tuple[str, ...]
    enabled: bool
    priority: int                # lower sorts first
    stripe_payment_method: Optional[str] = None
    external: bool = False       # not processed through Stripe (e.g. PayPal)
    min_amount: Optional[int] = None  # cents
    max_amount: Optional[int] = None  # cents

    def supports(self, country: str, currency: str, amount_cents: Optional[int] = None) -> bool:
        if not self.enabled:
            return False
        if currency.lower() not in self.currencies:
            return False
        if self.countries and country.upper() not in self.countries:
            return False
        if amount_cents is not None:
            if self.min_amount and amount_cents < self.min_amount:
                return False
            if self.max_amount and amount_cents > self.max_amount:
                return False
        return True

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "countries": list(self.countries),
            "currencies": list(self.currencies),
            "enabled": self.enabled,
            "priority": self.priority,
            "stripePaymentMethod": self.stripe_payment_method,
            "external": self.external,
            "minAmount": self.min_amount,
            "maxAmount": self.max_amount,
        }


_MAJOR = ("usd", "eur", "gbp", "cad", "aud")

DEFAULT_PAYMENT_METHODS: Tuple[PaymentMethod, ...] = (
    PaymentMethod("card", "Credit/Debit Card", "Visa, Mastercard, American Express, and more",
                  (), _MAJOR + ("jpy",), True, 1, stripe_payment_method="card"),
    PaymentMethod("apple_pay", "Apple Pay", "Pay with Touch ID or Face ID",
                  (), _MAJOR, True, 2, stripe_payment_method="apple_pay"),
    PaymentMethod("google_pay", "Google Pay", "Pay with one tap using Google Pay",
                  (), _MAJOR, True, 2, stripe_payment_method="google_pay"),
    PaymentMethod("klarna", "Klarna", "Buy now, pay later in installments",
                  ("US", "CA", "GB", "DE", "AT", "NL", "BE", "CH", "DK", "FI", "NO", "SE"),
                  ("usd", "eur", "gbp", "cad"), True, 3, stripe_payment_method="klarna", min_amount=1000),
    PaymentMethod("affirm", "Affirm", "Pay over time with flexible installments",
                  ("US", "CA"), ("usd", "cad"), True, 3, stripe_payment_method="affirm", min_amount=5000),
    PaymentMethod("cashapp", "Cash App Pay", "Pay instantly with Cash App",
                  ("US",), ("usd",), True, 4, stripe_payment_method="cashapp"),
    PaymentMethod("sepa_debit", "SEPA Direct Debit", "Direct debit from your bank account",
                  ("DE", "AT", "NL", "BE", "CH", "DK", "FI", "FR", "IE", "IT", "LU", "NO", "PT", "SE", "ES"),
                  ("eur",), True, 3, stripe_payment_method="sepa_debit"),
    PaymentMethod("ideal", "iDEAL", "Pay with your Dutch bank account",
                  ("NL",), ("eur",), True, 2, stripe_payment_method="ideal"),
    PaymentMethod("sofort", "Sofort", "Instant bank transfers",
                  ("DE", "AT"), ("eur",), True, 3, stripe_payment_method="sofort"),
    PaymentMethod("bancontact", "Bancontact", "Popular payment method in Belgium",
                  ("BE",), ("eur",), True, 2, stripe_payment_method="bancontact"),
    PaymentMethod("giropay", "Giropay", "German online banking payment",
                  ("DE",), ("eur",), True, 3, stripe_payment_method="giropay"),
    PaymentMethod("p24", "Przelewy24", "Popular payment method in Poland",
                  ("PL",), ("eur", "pln"), True, 3, stripe_payment_method="p24"),
    PaymentMethod("paypal", "PayPal", "Pay with your PayPal account",
                  (), _MAJOR, True, 2, external=True),
    PaymentMethod("amazon_pay", "Amazon Pay", "Pay with your Amazon account",
                  ("US", "GB", "DE", "FR", "IT", "ES", "LU", "AT", "BE", "CY", "IE", "NL", "PT"),
                  ("usd", "eur", "gbp"), False, 3, external=True),
    PaymentMethod("crypto", "Cryptocurrency", "Pay with Bitcoin, Ethereum, and more",
                  (), ("usd", "eur"), False, 5, external=True),
)

COUNTRY_CURRENCIES = {
    "US": "usd", "CA": "cad", "GB": "gbp", "DE": "eur", "FR": "eur", "IT": "eur",
    "ES": "eur", "NL": "eur", "BE": "eur", "AT": "eur", "CH": "chf", "AU": "aud",
    "JP": "jpy", "PL": "pln", "DK": "dkk", "SE": "sek", "NO": "nok",
}


def default_currency_for_country(country: str) -> str:
    return COUNTRY_CURRENCIES.get((country or "").upper(), "usd")


class PaymentMethodRegistry:
    """
    Process-wide payment method flags.

    Readers take the current snapshot (an immutable tuple) without locking.
    Writers build a complete new snapshot and swap it in under a lock, so a
    reader never observes a half-applied change.
    """

    def __init__(self, methods: Iterable[PaymentMethod] = DEFAULT_PAYMENT_METHODS):
        self._lock = threading.Lock()
        self._snapshot: Tuple[PaymentMethod, ...] = tuple(methods)

    def snapshot(self) -> Tuple[PaymentMethod, ...]:
        return self._snapshot

    def replace(self, methods: Iterable[PaymentMethod]) -> None:
        new = tuple(methods)
        with self._lock:
            self._snapshot = new

    def get(self, method_id: str) -> Optional[PaymentMethod]:
        return next((m for m in self._snapshot if m.id == method_id), None)

    def is_enabled(self, method_id: str) -> bool:
        method = self.get(method_id)
        return bool(method and method.enabled)

    def toggle(self, method_id: str, enabled: bool) -> bool:
        """
        Enables or disables a method.

        Returns:
            False when no method has the given id, True otherwise.
        """
        with self._lock:
            current = self._snapshot
            if not any(m.id == method_id for m in current):
                return False
            self._snapshot = tuple(replace(m, enabled=enabled) if m.id == method_id else m for m in current)
        logger.info(f"Payment method {method_id} {'enabled' if enabled else 'disabled'}")
        return True

    def available(self, country: str, currency: str = "usd", amount_cents: Optional[int] = None) -> list:
        snapshot = self._snapshot
        return sorted(
            (m for m in snapshot if m.supports(country, currency, amount_cents)),
            key=lambda m: m.priority,
        )

    def stripe_method_order(self, country: str, currency: str = "usd", amount_cents: Optional[int] = None) -> list:
        return [
            m.stripe_payment_method
            for m in self.available(country, currency, amount_cents)
            if m.stripe_payment_method and not m.external
        ]

    def external_methods(self, country: str, currency: str = "usd", amount_cents: Optional[int] = None) -> list:
        return [m for m in self.available(country, currency, amount_cents) if m.external]


payment_methods = PaymentMethodRegistry()
