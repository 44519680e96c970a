import pytest

from seachain.services import purchases
from seachain.services.purchases import (
    PURCHASE_QTY_MESSAGE,
    auto_crates,
    check_purchase_quantity,
    create_purchase,
    delete_purchase,
    get_purchase,
    list_purchases,
    purchase_order_labels,
    update_purchase,
)
from seachain.services.reference import create_entity
from seachain.services.sales import SaleItemInput, record_sale, sale_order_labels


def test_auto_crates():
    assert auto_crates(45) == 2
    assert auto_crates(75) == 3
    assert auto_crates(200) == 7
    assert auto_crates(None) == 0
    assert auto_crates(100, crate_weight=25) == 4


def test_check_purchase_quantity():
    assert check_purchase_quantity(100, 100) is None
    assert check_purchase_quantity(100, 100.5) == PURCHASE_QTY_MESSAGE
    assert check_purchase_quantity(None, 10) is None


def test_create_purchase_fills_crates_gear_and_remaining(conn, make_purchase):
    p = get_purchase(conn, make_purchase())
    assert p["remaining_quantity"] == 200.0
    assert p["num_crates"] == 7
    assert p["gear_type"] == "Longline"
    assert p["is_downstream_purchase"] == 0
    assert p["vessel_registration"] == "NS-1"
    assert p["fishing_zone"] == "LFA 34"


def test_explicit_crates_and_gear_are_kept(conn, make_purchase):
    p = get_purchase(conn, make_purchase(num_crates=5, gear_type="Trap/Pots"))
    assert p["num_crates"] == 5
    assert p["gear_type"] == "Trap/Pots"


@pytest.mark.parametrize(
    "overrides, message",
    [
        ({"supplier_id": None}, "Supplier is required"),
        ({"fishing_zone_id": None}, "Fishing zone is required"),
        ({"harvest_quantity": 0}, "Harvest quantity must be > 0"),
        ({"purchase_quantity": 300}, PURCHASE_QTY_MESSAGE),
        ({"landing_date": ""}, "dates are required"),
        ({"trip_start_date": "2024-05-04"}, "on or before the trip end date"),
        ({"num_crates": -1}, "cannot be negative"),
    ],
)
def test_invalid_purchases_are_refused(conn, purchase_input, overrides, message):
    with pytest.raises(ValueError, match=message):
        create_purchase(conn, purchase_input(**overrides))
    assert list_purchases(conn) == []


def test_vessel_must_belong_to_supplier(conn, refs, purchase_input):
    with pytest.raises(ValueError, match="does not belong"):
        create_purchase(conn, purchase_input(supplier_id=refs["buyer"]))


def test_update_keeps_what_was_sold(conn, refs, make_purchase, purchase_input):
    pid = make_purchase()
    record_sale(
        conn,
        seller_id=refs["buyer"],
        customer_id=refs["distributor"],
        sale_date="2024-05-04",
        notes=None,
        items=[SaleItemInput(purchase_id=pid, quantity=50)],
    )

    update_purchase(conn, pid, purchase_input(purchase_quantity=180))
    p = get_purchase(conn, pid)
    assert p["purchase_quantity"] == 180.0
    assert p["remaining_quantity"] == 130.0

    with pytest.raises(ValueError, match="already sold"):
        update_purchase(conn, pid, purchase_input(purchase_quantity=40))


def test_update_refused_when_stock_sold_meanwhile(conn, make_purchase, purchase_input, monkeypatch):
    pid = make_purchase()
    validate = purchases._validate

    def validate_then_sell(conn, data, **kwargs):
        row = validate(conn, data, **kwargs)
        conn.execute("UPDATE purchases SET remaining_quantity = 10 WHERE id=?", (pid,))
        conn.commit()
        return row

    monkeypatch.setattr(purchases, "_validate", validate_then_sell)
    with pytest.raises(ValueError, match="Reload and try again"):
        update_purchase(conn, pid, purchase_input(purchase_quantity=150))

    p = get_purchase(conn, pid)
    assert p["purchase_quantity"] == 200.0
    assert p["remaining_quantity"] == 10.0


def test_delete_purchase(conn, refs, make_purchase):
    unused = make_purchase()
    delete_purchase(conn, unused)
    assert get_purchase(conn, unused) is None

    sold = make_purchase()
    record_sale(
        conn,
        seller_id=refs["buyer"],
        customer_id=refs["distributor"],
        sale_date="2024-05-04",
        notes=None,
        items=[SaleItemInput(purchase_id=sold, quantity=10)],
    )
    with pytest.raises(ValueError, match="cannot be deleted"):
        delete_purchase(conn, sold)


def test_purchase_order_labels_follow_sale_order(conn, refs, make_purchase):
    pid = make_purchase()
    other = create_entity(conn, "customers", {"name": "Bay Lobster Co", "type": "distributor"})

    # Recorded first but dated later, so it gets the higher SO number
    later = record_sale(
        conn,
        seller_id=refs["buyer"],
        customer_id=refs["distributor"],
        sale_date="2024-05-10",
        notes=None,
        items=[SaleItemInput(purchase_id=pid, quantity=20)],
    )
    earlier = record_sale(
        conn,
        seller_id=refs["buyer"],
        customer_id=other,
        sale_date="2024-05-05",
        notes=None,
        items=[SaleItemInput(purchase_id=pid, quantity=30)],
    )

    so = sale_order_labels(conn)
    assert so[earlier.sale_id] == "SO-0001"
    assert so[later.sale_id] == "SO-0002"

    po = purchase_order_labels(conn, so)
    assert po[earlier.downstream_purchase_ids[0]] == "PO-0001"
    assert po[later.downstream_purchase_ids[0]] == "PO-0002"


def test_purchase_order_labels_without_sale_labels(conn, refs, make_purchase):
    pid = make_purchase()
    result = record_sale(
        conn,
        seller_id=refs["buyer"],
        customer_id=refs["distributor"],
        sale_date="2024-05-05",
        notes=None,
        items=[SaleItemInput(purchase_id=pid, quantity=30)],
    )
    assert purchase_order_labels(conn) == {result.downstream_purchase_ids[0]: "PO-0001"}
