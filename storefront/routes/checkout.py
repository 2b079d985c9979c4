import logging
from flask import Blueprint, request, jsonify
from storefront.db import get_db
from storefront.services.checkout import (
    CheckoutRequest,
    CheckoutRequestError,
    CheckoutService,
    PaymentMethodUnavailableError,
)
from storefront.services.orders import OrderNotFoundError, OrderPersistenceError
from storefront.services.payments import PROVIDER_PAYPAL, PROVIDER_STRIPE, PaymentProviderError, build_provider

logger = logging.getLogger(__name__)

checkout_bp = Blueprint("checkout", __name__)

# Buyer-facing messages; details stay in the server log
CART_REJECTED = "Your cart could not be verified. Please refresh and try again."
PAYMENT_FAILED = "Payment could not be started. Please try again."
ORDER_FAILED = "Failed to create order. Please try again."
METHOD_UNAVAILABLE = "This payment method is currently unavailable."


def _service(db):
    return CheckoutService(db, provider_factory=build_provider)


def _place_order(provider_name):
    """
    Shared handler for both checkout providers.

    Returns:
        A tuple containing the JSON response and HTTP status code.
    """
    try:
        checkout_request = CheckoutRequest.from_payload(request.get_json(silent=True))
    except CheckoutRequestError as e:
        return jsonify({"success": False, "error": str(e)}), 400

    db = next(get_db())
    try:
        result = _service(db).place_order(checkout_request, provider_name)
        if not result.success:
            logger.warning(f"{provider_name} checkout rejected: {result.error_kind.value}")
            return jsonify({"success": False, "error": CART_REJECTED}), 400

        logger.info(f"{provider_name} checkout started for order {result.order_id}")
        return jsonify(result.to_dict()), 200
    except PaymentMethodUnavailableError as e:
        logger.warning(f"Checkout attempted with disabled payment method {e}")
        return jsonify({"success": False, "error": METHOD_UNAVAILABLE}), 400
    except PaymentProviderError as e:
        logger.error(f"{provider_name} checkout failed: {e}")
        return jsonify({"success": False, "error": PAYMENT_FAILED}), 502
    except OrderPersistenceError as e:
        logger.error(str(e))
        return jsonify({"success": False, "error": ORDER_FAILED}), 500
    except Exception as e:
        db.rollback()
        logger.exception(f"Unexpected {provider_name} checkout error: {e}")
        return jsonify({"success": False, "error": ORDER_FAILED}), 500
    finally:
        db.close()


@checkout_bp.route("/checkout/stripe", methods=["POST"])
def checkout_stripe():
    """
    Validates the cart and opens a Stripe PaymentIntent.
    ---
    Output (200):
        - success, orderId, orderNumber, clientSecret, paymentIntentId
    Errors:
        - 400: Malformed request, rejected cart or card payments disabled
        - 500: Order could not be stored
        - 502: Stripe failure
    """
    return _place_order(PROVIDER_STRIPE)


@checkout_bp.route("/checkout/paypal", methods=["POST"])
def checkout_paypal():
    """
    Validates the cart and opens a PayPal order for buyer approval.
    ---
    Output (200):
        - success, orderId, orderNumber, paypalOrderId, approvalUrl
    """
    return _place_order(PROVIDER_PAYPAL)


def _confirm(lookup):
    db = next(get_db())
    try:
        result = lookup(_service(db))
        return jsonify(result.to_dict()), 200
    except OrderNotFoundError:
        return jsonify({"success": False, "error": "Order not found"}), 404
    except PaymentProviderError as e:
        logger.error(f"Payment confirmation failed: {e}")
        return jsonify({"success": False, "error": "Payment status could not be confirmed."}), 502
    except Exception as e:
        db.rollback()
        logger.exception(f"Unexpected confirmation error: {e}")
        return jsonify({"success": False, "error": "Payment status could not be confirmed."}), 500
    finally:
        db.close()


@checkout_bp.route("/checkout/confirm", methods=["POST"])
def confirm():
    """
    Reconciles an order with its payment provider.
    ---
    Input (JSON):
        - orderId (str)
    Output (200):
        - success (bool): True whenever the order was found; the outcome is in status
        - status (str): pending, paid or failed
        - orderId, orderNumber
    Errors:
        - 400: Missing orderId
        - 404: Unknown order
    """
    data = request.get_json(silent=True) or {}
    order_id = data.get("orderId")
    if not isinstance(order_id, str) or not order_id:
        return jsonify({"success": False, "error": "orderId is required"}), 400
    return _confirm(lambda service: service.confirm_order(order_id))


@checkout_bp.route("/checkout/paypal/capture", methods=["POST"])
def capture_paypal():
    """
    Captures an approved PayPal order after the buyer returns from PayPal.
    ---
    Input (JSON):
        - paypalOrderId (str): The token PayPal appended to the return URL
    """
    data = request.get_json(silent=True) or {}
    token = data.get("paypalOrderId") or data.get("token")
    if not isinstance(token, str) or not token:
        return jsonify({"success": False, "error": "paypalOrderId is required"}), 400
    return _confirm(lambda service: service.capture_redirect(token))
