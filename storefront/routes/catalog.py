import logging
from flask import Blueprint, request, jsonify
from storefront.pricing.catalog import CATALOG, UnknownSkuError
from storefront.pricing.coupons import validate_coupon
from storefront.pricing.engine import quote_cart
from storefront.pricing.tiers import TIERS
from storefront.services.payment_methods import default_currency_for_country, payment_methods

logger = logging.getLogger(__name__)

catalog_bp = Blueprint("catalog", __name__)


def _sku_list(data, key):
    value = data.get(key) or []
    if not isinstance(value, list) or not all(isinstance(sku, str) for sku in value):
        raise ValueError(f"{key} must be a list of SKUs")
    return value


@catalog_bp.route("/products", methods=["GET"])
def list_products():
    """
    Returns the catalog in display order.
    ---
    Output (200):
        - products (list): Product dicts with msrp in dollars
        - version (str): Catalog revision
    """
    return jsonify({
        "version": CATALOG.version,
        "products": [p.to_dict() for p in CATALOG.sorted()],
    }), 200


@catalog_bp.route("/pricing/config", methods=["GET"])
def pricing_config():
    """
    Returns everything a buyer-side bundle builder needs to price a cart.
    """
    return jsonify({
        "version": CATALOG.version,
        "tiers": [t.to_dict() for t in sorted(TIERS, key=lambda t: t.min_courses)],
        "products": [p.to_dict() for p in CATALOG.sorted()],
        "giftPool": [p.sku for p in CATALOG.gift_pool()],
    }), 200


@catalog_bp.route("/pricing/quote", methods=["POST"])
def quote():
    """
    Prices a cart with the server's catalog, tiers and coupons.
    ---
    Input (JSON):
        - selectedSkus (list): Paid SKUs
        - giftSkus (list, optional): Gift SKUs
        - otoSkus (list, optional): Paid SKUs taken as one-time offers
        - couponCode (str, optional)
    Output (200):
        - lines, totals, tier, qualifyingCount, allowedGiftCount, coupon
    Errors:
        - 400: Malformed body or unknown SKU
    """
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return jsonify({"success": False, "error": "JSON body is required"}), 400

    try:
        selected = _sku_list(data, "selectedSkus")
        gifts = _sku_list(data, "giftSkus")
        otos = _sku_list(data, "otoSkus")
    except ValueError as e:
        return jsonify({"success": False, "error": str(e)}), 400

    coupon_code = data.get("couponCode")
    if coupon_code is not None and not isinstance(coupon_code, str):
        return jsonify({"success": False, "error": "couponCode must be a string"}), 400

    try:
        priced = quote_cart(selected, gifts, otos, coupon_code=coupon_code)
    except UnknownSkuError as e:
        logger.info(f"Quote requested for unknown SKU {e.sku}")
        return jsonify({"success": False, "error": "Unknown product"}), 400

    return jsonify({"success": True, **priced.to_dict()}), 200


@catalog_bp.route("/coupons/validate", methods=["POST"])
def check_coupon():
    data = request.get_json(silent=True) or {}
    code = data.get("code")
    if not isinstance(code, str):
        return jsonify({"valid": False, "percentOff": 0}), 200
    return jsonify(validate_coupon(code).to_dict()), 200


@catalog_bp.route("/payment-methods", methods=["GET"])
def available_payment_methods():
    """
    Lists the payment methods a buyer can use.
    ---
    Query:
        - country (str, optional): ISO country code, defaults to US
        - currency (str, optional): Defaults to the country's currency
        - amount (int, optional): Order total in cents
    """
    country = (request.args.get("country") or "US").upper()
    currency = (request.args.get("currency") or default_currency_for_country(country)).lower()
    amount = request.args.get("amount", type=int)

    methods = payment_methods.available(country, currency, amount)
    return jsonify({
        "country": country,
        "currency": currency,
        "methods": [m.to_dict() for m in methods],
        "stripeMethodOrder": payment_methods.stripe_method_order(country, currency, amount),
    }), 200
