import pytest

from orders.cart import Cart


def test_adding_the_same_product_merges_lines():
    cart = Cart()
    cart.add_item("p_cig", "Cigarettes", 5.5)
    cart.add_item("p_cig", "Cigarettes", 5.5, quantity=2)
    cart.add_item("p_lighter", "Lighter", 1.5)

    assert len(cart.items) == 2
    assert cart.items[0].quantity == 3
    assert cart.item_count == 4
    assert cart.total == 3 * 5.5 + 1.5
    assert cart.is_submittable


def test_non_positive_quantity_is_ignored():
    cart = Cart()
    cart.add_item("p", "Thing", 2.0, quantity=0)
    cart.add_item("p", "Thing", 2.0, quantity=-3)

    assert cart.items == ()
    assert not cart.is_submittable


def test_negative_price_is_rejected():
    with pytest.raises(ValueError):
        Cart().add_item("p", "Thing", -1.0)


def test_decrement_to_zero_removes_the_line():
    cart = Cart()
    cart.add_item("p", "Thing", 2.0)
    cart.increment("p")
    assert cart.item_count == 2

    cart.decrement("p")
    cart.decrement("p")
    assert cart.items == ()


def test_free_items_alone_cannot_be_submitted():
    cart = Cart()
    cart.add_item("bag", "Bag", 0.0)
    assert not cart.is_submittable


def test_remove_and_clear():
    cart = Cart()
    cart.add_item("a", "A", 1.0)
    cart.add_item("b", "B", 1.0)

    cart.remove_item("a")
    assert [i.product_id for i in cart.items] == ["b"]

    cart.clear()
    assert cart.total == 0
