from flask import Blueprint, request, jsonify
from storefront.routes.auth import require_admin
from storefront.services.payment_methods import payment_methods

admin_bp = Blueprint("admin", __name__)


@admin_bp.route("/admin/payment-methods", methods=["GET"])
@require_admin
def list_payment_methods():
    """
    Returns the full payment method table, including disabled methods.
    """
    methods = sorted(payment_methods.snapshot(), key=lambda m: (m.priority, m.id))
    return jsonify({"success": True, "methods": [m.to_dict() for m in methods]}), 200


@admin_bp.route("/admin/payment-methods/<method_id>", methods=["POST"])
@require_admin
def toggle_payment_method(method_id):
    """
    Enables or disables one payment method.
    ---
    Input (JSON):
        - enabled (bool): New flag value
    Output (200):
        - method: The updated method
    Errors:
        - 400: enabled missing or not a boolean
        - 404: Unknown method id
    """
    data = request.get_json(silent=True) or {}
    enabled = data.get("enabled")
    if not isinstance(enabled, bool):
        return jsonify({"success": False, "error": "enabled must be a boolean"}), 400

    if not payment_methods.toggle(method_id, enabled):
        return jsonify({"success": False, "error": "Payment method not found"}), 404

    return jsonify({"success": True, "method": payment_methods.get(method_id).to_dict()}), 200
