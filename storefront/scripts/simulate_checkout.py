#!/usr/bin/env python3
import json
import os
import sys
import logging

import requests

# Add the project root to sys.path so the storefront package resolves when run as a script
sys.path.append(os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__)))))

from storefront.client.bundle import BundleBuilder
from storefront.client.checkout import CheckoutClient, CheckoutClientError

logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s")
logger = logging.getLogger(__name__)

BASE_URL = os.environ.get("STOREFRONT_API_URL", "http://localhost:8000/api/v1")

CUSTOMER = {
    "email": "jane.doe@example.com",
    "firstName": "Jane",
    "lastName": "Doe",
    "country": "US",
    "newsletter": True,
}


def print_step(step_name: str):
    """
    Renders a highlighted progression step to the console output.

    Args:
        step_name: Description of the current simulation stage.
    """
    logger.info(f"=== {step_name} ===")


def run_demo(provider: str = "stripe"):
    """
    Drives a full buyer journey against a running storefront server.

    Builds a three-course bundle with a gift, takes the consultation offer,
    applies a coupon, checks the server quote matches the local one, submits
    the checkout and polls the order status.
    """
    print_step("1. Server health")
    res = requests.get(f"{BASE_URL}/health", timeout=10)
    res.raise_for_status()
    logger.info(f"Server catalog version: {res.json().get('catalogVersion')}")

    print_step("2. Buyer builds a bundle")
    builder = BundleBuilder()
    for sku in ("COURSE_AVOIDANT_MAN", "COURSE_ATTACHMENT_BOOTCAMP", "COURSE_SECURE_MARRIAGE"):
        builder.toggle_paid(sku)
    builder.toggle_gift("GUIDE_4_STYLES")
    builder.accept_offer("breakthrough-call")
    builder.apply_coupon("LILAROSE10")
    local = builder.quote()
    logger.info(f"Local quote: {json.dumps(local.totals.to_dict())}")

    print_step("3. Server re-prices the same cart")
    res = requests.post(f"{BASE_URL}/pricing/quote", json={
        "selectedSkus": builder.selected,
        "giftSkus": builder.gifts,
        "otoSkus": builder.otos,
        "couponCode": builder.coupon.code,
    }, timeout=10)
    res.raise_for_status()
    remote = res.json()["totals"]
    if remote != local.totals.to_dict():
        logger.error(f"Quote mismatch: server {remote}")
        sys.exit(1)
    logger.info("Server quote matches")

    print_step(f"4. Checkout with {provider}")
    client = CheckoutClient(BASE_URL)
    try:
        handle = client.submit(builder.checkout_payload(CUSTOMER), provider)
    except CheckoutClientError as e:
        logger.error(f"Checkout failed ({e.status_code}): {e}")
        sys.exit(1)
    logger.info(f"Order {handle['orderNumber']} created: {json.dumps(handle, indent=2)[:300]}")

    print_step("5. Poll payment status")
    confirmation = client.await_confirmation(order_id=handle["orderId"])
    logger.info(f"Final status after {confirmation.attempts} attempt(s): {confirmation.status}")


if __name__ == "__main__":
    run_demo(sys.argv[1] if len(sys.argv) > 1 else "stripe")
