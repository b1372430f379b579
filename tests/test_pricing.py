from checkout_service.pricing import compute_totals, round_half_up, to_minor_units

from conftest import line


def test_subtotal_below_threshold_pays_shipping():
    totals = compute_totals([line(150, 2)], 999, 50)
    assert totals.subtotal == 300
    assert totals.shipping == 50
    assert totals.total == 350


def test_subtotal_above_threshold_ships_free():
    totals = compute_totals([line(600, 2)], 999, 50)
    assert totals.shipping == 0
    assert totals.total == 1200


def test_subtotal_equal_to_threshold_still_pays_shipping():
    totals = compute_totals([line(999)], 999, 50)
    assert totals.shipping == 50


def test_threshold_and_fee_come_from_caller():
    assert compute_totals([line(600)], 499, 40).shipping == 0
    assert compute_totals([line(400)], 499, 40).shipping == 40


def test_same_inputs_give_same_totals():
    cart = [line(199.99, 3, "a"), line(49.5, 1, "b")]
    assert compute_totals(cart, 999, 50, 25) == compute_totals(cart, 999, 50, 25)


def test_only_final_total_is_rounded():
    totals = compute_totals([line(0.35, 3)], 999, 0)
    assert totals.subtotal == 0.35 * 3
    assert totals.total == 1


def test_total_rounds_half_up():
    assert compute_totals([line(100.5)], 999, 0).total == 101
    assert compute_totals([line(100.49)], 999, 0).total == 100


def test_large_discount_is_capped_at_the_floor():
    totals = compute_totals([line(500)], 999, 50, 600)
    assert totals.total == 1
    assert totals.discount == 549
    assert totals.total == round_half_up(totals.subtotal + totals.shipping - totals.discount)


def test_total_never_below_one():
    for discount in (0, 10, 349, 350, 1000, 10 ** 6):
        assert compute_totals([line(150, 2)], 999, 50, discount).total >= 1


def test_negative_discount_is_ignored():
    assert compute_totals([line(300)], 999, 50, -20).total == 350


def test_empty_cart():
    totals = compute_totals([], 999, 50, 10)
    assert totals.subtotal == 0
    assert totals.shipping == 50
    assert totals.total == 40


def test_empty_cart_without_shipping_hits_floor():
    assert compute_totals([], 999, 0).total == 1


def test_minor_units():
    assert to_minor_units(350) == 35000
    assert to_minor_units(1) == 100
    assert to_minor_units(19.99) == 1999
