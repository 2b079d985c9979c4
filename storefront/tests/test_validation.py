import pytest
from helpers import THREE_COURSES, checkout_payload, line, tamper
from storefront.pricing.engine import CartLine, Totals
from storefront.services.validation import ValidationErrorKind, validate_cart


def run(payload, coupon_code=None):
    lines = [CartLine.from_payload(cart_line) for cart_line in payload["cartLines"]]
    totals = Totals.from_payload(payload["totals"])
    return validate_cart(lines, totals, coupon_code if coupon_code is not None else payload.get("couponCode"))


def test_honest_cart_is_valid():
    payload = checkout_payload(THREE_COURSES, gifts=["GUIDE_4_STYLES"], coupon_code="LILAROSE10")
    result = run(payload)
    assert result.valid
    assert result.error_kind is None
    assert result.totals.to_dict() == payload["totals"]


def test_offer_cart_is_valid():
    payload = checkout_payload(THREE_COURSES + ["breakthrough-call"], otos=["breakthrough-call"])
    result = run(payload)
    assert result.valid
    assert result.recomputed.line_for("breakthrough-call").net == 397


def test_unknown_product_rejected_before_price_checks():
    payload = checkout_payload(["COURSE_AVOIDANT_MAN"])
    payload = tamper(payload, "COURSE_AVOIDANT_MAN", msrp=1)
    payload["cartLines"].append(line("FAKE_SKU", 10))
    assert run(payload).error_kind == ValidationErrorKind.UNKNOWN_PRODUCT


def test_duplicate_product_rejected():
    payload = checkout_payload(["COURSE_AVOIDANT_MAN", "COURSE_SECURE_MARRIAGE"])
    payload["cartLines"].append(dict(payload["cartLines"][0]))
    assert run(payload).error_kind == ValidationErrorKind.DUPLICATE_PRODUCT


def test_price_tampering_rejected():
    payload = tamper(checkout_payload(["COURSE_AVOIDANT_MAN"]), "COURSE_AVOIDANT_MAN", msrp=1, net=1)
    assert run(payload).error_kind == ValidationErrorKind.PRICE_TAMPERING


def test_msrp_within_a_cent_is_accepted():
    payload = tamper(checkout_payload(["COURSE_AVOIDANT_MAN"]), "COURSE_AVOIDANT_MAN", msrp=497.005)
    assert run(payload).valid


def test_inflated_discount_rejected():
    payload = tamper(checkout_payload(THREE_COURSES), "COURSE_SECURE_MARRIAGE", discount=400, net=447)
    assert run(payload).error_kind == ValidationErrorKind.INVALID_DISCOUNT


def test_tier_not_reached_rejects_bundle_discount():
    # Two courses are only worth 10%, not 20%
    payload = checkout_payload(["COURSE_AVOIDANT_MAN", "COURSE_SECURE_MARRIAGE"])
    payload = tamper(payload, "COURSE_AVOIDANT_MAN", discount=99.4, net=397.6)
    assert run(payload).error_kind == ValidationErrorKind.INVALID_DISCOUNT


def test_non_gift_eligible_gift_rejected():
    payload = checkout_payload(THREE_COURSES, gifts=["ASSESSMENT_SINGLES"])
    assert run(payload).error_kind == ValidationErrorKind.INVALID_GIFT


def test_gift_with_a_price_rejected():
    payload = checkout_payload(THREE_COURSES, gifts=["GUIDE_4_STYLES"])
    for cart_line in payload["cartLines"]:
        if cart_line["isGift"]:
            cart_line["discount"] = 190
            cart_line["net"] = 6
    assert run(payload).error_kind == ValidationErrorKind.INVALID_GIFT


def test_gift_ceiling_for_top_tier():
    payload = checkout_payload(THREE_COURSES, gifts=["GUIDE_4_STYLES", "CONVERSATION_CARDS"])
    assert run(payload).error_kind == ValidationErrorKind.TOO_MANY_GIFTS


def test_gift_without_qualifying_items_rejected():
    payload = checkout_payload(["GUIDE_BOND_AVOIDANT"], gifts=["GUIDE_4_STYLES"])
    assert run(payload).error_kind == ValidationErrorKind.TOO_MANY_GIFTS


def test_gift_below_top_tier_rejected():
    payload = checkout_payload(["COURSE_AVOIDANT_MAN", "COURSE_SECURE_MARRIAGE"], gifts=["GUIDE_4_STYLES"])
    assert run(payload).error_kind == ValidationErrorKind.TOO_MANY_GIFTS


def test_unknown_coupon_rejected():
    payload = checkout_payload(THREE_COURSES)
    assert run(payload, coupon_code="BOGUS").error_kind == ValidationErrorKind.INVALID_COUPON


def test_empty_coupon_means_no_coupon():
    payload = checkout_payload(THREE_COURSES)
    assert run(payload, coupon_code="").valid


def test_coupon_code_is_case_insensitive():
    payload = checkout_payload(THREE_COURSES, coupon_code="LILAROSE10")
    assert run(payload, coupon_code="lilarose10").valid


def test_coupon_discount_without_coupon_rejected():
    payload = checkout_payload(THREE_COURSES, coupon_code="LILAROSE10")
    payload.pop("couponCode")
    result = run(payload)
    assert result.error_kind == ValidationErrorKind.TOTALS_MISMATCH


def test_total_mismatch_rejected():
    payload = checkout_payload(THREE_COURSES)
    payload["totals"]["total"] -= 1
    assert run(payload).error_kind == ValidationErrorKind.TOTALS_MISMATCH


@pytest.mark.parametrize("drift,valid", [(0.01, True), (0.02, True), (0.03, False)])
def test_totals_tolerance(drift, valid):
    payload = checkout_payload(THREE_COURSES)
    payload["totals"]["total"] = round(payload["totals"]["total"] + drift, 2)
    assert run(payload).valid is valid


def test_missing_coupon_discount_treated_as_zero():
    payload = checkout_payload(THREE_COURSES)
    payload["totals"].pop("couponDiscount")
    assert run(payload).valid


def test_recomputed_amounts_come_from_catalog():
    payload = tamper(checkout_payload(["COURSE_AVOIDANT_MAN"]), "COURSE_AVOIDANT_MAN", title="Cheap course")
    result = run(payload)
    assert result.valid
    assert result.recomputed.lines[0].title == "How to Love an Avoidant Man"
