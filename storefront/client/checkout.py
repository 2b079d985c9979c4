import time
import logging
from dataclasses import dataclass
from typing import Callable, Optional

import requests

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "http://localhost:8000/api/v1"

# Confirmation polling
MAX_RETRIES = 5
RETRY_DELAY_SECONDS = 2.0

STATUS_PENDING = "pending"
STATUS_FAILED = "failed"


class CheckoutClientError(Exception):
    """The storefront API rejected a checkout call or could not be reached."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


@dataclass(frozen=True)
class Confirmation:
    status: str
    order_id: Optional[str] = None
    order_number: Optional[str] = None
    attempts: int = 0


class CheckoutClient:
    """
    Buyer-side client for the storefront checkout API.

    Args:
        base_url: API root, e.g. http://localhost:8000/api/v1.
        session: Optional requests.Session to reuse connections.
        timeout: Per-request timeout in seconds.
        sleep: Delay function used between confirmation retries.
    """

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        session: Optional[requests.Session] = None,
        timeout: float = 15.0,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.base_url = base_url.rstrip("/")
        self.http = session or requests.Session()
        self.timeout = timeout
        self.sleep = sleep

    def _post(self, path: str, payload: dict) -> dict:
        try:
            res = self.http.post(f"{self.base_url}{path}", json=payload, timeout=self.timeout)
        except requests.RequestException as e:
            raise CheckoutClientError(f"Request to {path} failed: {e}") from e

        try:
            data = res.json()
        except ValueError:
            data = {}
        if res.status_code // 100 != 2 or not data.get("success"):
            raise CheckoutClientError(data.get("error") or f"HTTP {res.status_code}", res.status_code)
        return data

    def submit(self, payload: dict, provider: str = "stripe") -> dict:
        """
        Submits a checkout for the given provider ('stripe' or 'paypal').

        Returns:
            The charge handle: orderId, orderNumber plus clientSecret and
            paymentIntentId (Stripe) or paypalOrderId and approvalUrl (PayPal).
        """
        return self._post(f"/checkout/{provider}", payload)

    def confirm(self, order_id: str) -> dict:
        return self._post("/checkout/confirm", {"orderId": order_id})

    def capture(self, paypal_order_id: str) -> dict:
        return self._post("/checkout/paypal/capture", {"paypalOrderId": paypal_order_id})

    def await_confirmation(
        self,
        order_id: Optional[str] = None,
        paypal_order_id: Optional[str] = None,
        max_retries: int = MAX_RETRIES,
        delay: float = RETRY_DELAY_SECONDS,
    ) -> Confirmation:
        """
        Polls the order's payment status until it leaves `pending`.

        A PayPal return (paypal_order_id) is captured on every attempt; the
        server treats repeated captures of a paid order as a no-op.

        Returns:
            The final Confirmation. Still `pending` once retries run out;
            `failed` when the API cannot be reached or rejects the call.
        """
        if not order_id and not paypal_order_id:
            raise ValueError("order_id or paypal_order_id is required")

        attempt = 0
        while True:
            try:
                data = self.capture(paypal_order_id) if paypal_order_id else self.confirm(order_id)
            except CheckoutClientError as e:
                logger.error(f"Payment confirmation failed: {e}")
                return Confirmation(status=STATUS_FAILED, order_id=order_id, attempts=attempt + 1)

            status = data.get("status") or STATUS_PENDING
            if status != STATUS_PENDING or attempt >= max_retries:
                return Confirmation(
                    status=status,
                    order_id=data.get("orderId") or order_id,
                    order_number=data.get("orderNumber"),
                    attempts=attempt + 1,
                )

            attempt += 1
            logger.info(f"Payment pending, retrying... ({attempt}/{max_retries})")
            self.sleep(delay)
