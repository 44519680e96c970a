from contextlib import contextmanager

import pytest

from seachain.db import atomic
from seachain.services import sales
from seachain.services.grading import GradeLineInput, GradingInput, create_grading, get_grading
from seachain.services.purchases import get_purchase, list_downstream_purchases
from seachain.services.sales import (
    GradedItemInput,
    SaleItemInput,
    delete_sale,
    get_sale,
    list_sale_items,
    list_sales,
    reconcile_item,
    record_distributor_sale,
    record_sale,
    update_sale,
)


def _sell(conn, refs, items, sale_date="2024-05-04"):
    return record_sale(
        conn,
        seller_id=refs["buyer"],
        customer_id=refs["distributor"],
        sale_date=sale_date,
        notes="to the plant",
        items=items,
    )


def test_reconcile_item():
    assert reconcile_item(200, None, 25) == (50.0, 25.0)
    assert reconcile_item(200, 50, None) == (50.0, 25.0)
    assert reconcile_item(200, 50, 10) == (50.0, 10.0)
    assert reconcile_item(0, None, 25) == (None, 25.0)


def test_record_sale_draws_down_and_creates_downstream_purchase(conn, refs, make_purchase):
    pid = make_purchase()
    result = _sell(conn, refs, [SaleItemInput(purchase_id=pid, percentage_used=30)])

    assert get_purchase(conn, pid)["remaining_quantity"] == 140.0

    items = list_sale_items(conn, result.sale_id)
    assert len(items) == 1
    assert items[0]["quantity"] == 60.0
    assert items[0]["percentage_used"] == 30.0
    assert items[0]["grade_id"] is None

    sale = get_sale(conn, result.sale_id)
    assert sale["portal"] == "tracker"
    assert sale["seller_name"] == "Wharf Buyers"

    (ds,) = list_downstream_purchases(conn, customer_id=refs["distributor"])
    assert int(ds["id"]) == result.downstream_purchase_ids[0]
    assert ds["is_downstream_purchase"] == 1
    assert ds["source_sale_id"] == result.sale_id
    assert ds["supplier_id"] == refs["buyer"]
    assert ds["vessel_id"] == refs["vessel"]
    assert ds["fishing_zone_id"] == refs["zone"]
    assert ds["gear_type"] == "Longline"
    assert ds["harvest_quantity"] == 250.0
    assert ds["purchase_quantity"] == 60.0
    assert ds["remaining_quantity"] == 60.0
    assert ds["num_crates"] == 2
    assert ds["trip_start_date"] == "2024-05-01"
    assert ds["landing_date"] == "2024-05-04"


def test_one_downstream_purchase_per_item(conn, refs, make_purchase):
    a = make_purchase()
    b = make_purchase(purchase_quantity=100)
    result = _sell(conn, refs, [SaleItemInput(purchase_id=a, quantity=20), SaleItemInput(purchase_id=b, quantity=30)])
    assert len(result.item_ids) == 2
    assert len(result.downstream_purchase_ids) == 2
    assert get_purchase(conn, b)["remaining_quantity"] == 70.0


def test_oversell_is_refused_across_lines(conn, refs, make_purchase):
    pid = make_purchase()
    with pytest.raises(ValueError, match="exceeds the 200.00 remaining"):
        _sell(conn, refs, [SaleItemInput(purchase_id=pid, quantity=150), SaleItemInput(purchase_id=pid, quantity=60)])
    assert list_sales(conn) == []
    assert get_purchase(conn, pid)["remaining_quantity"] == 200.0
    assert list_downstream_purchases(conn) == []


@pytest.mark.parametrize(
    "kwargs, message",
    [
        ({"seller_id": None}, "Seller is required"),
        ({"customer_id": None}, "Customer is required"),
        ({"sale_date": ""}, "Sale date is required"),
        ({"items": []}, "at least one sale item"),
        ({"items": [SaleItemInput(purchase_id=None, quantity=1)]}, "needs a purchase"),
        ({"items": [SaleItemInput(purchase_id=999, quantity=1)]}, "not found"),
    ],
)
def test_invalid_sales_are_refused(conn, refs, kwargs, message):
    args = dict(
        seller_id=refs["buyer"],
        customer_id=refs["distributor"],
        sale_date="2024-05-04",
        notes=None,
        items=[],
    )
    args.update(kwargs)
    with pytest.raises(ValueError, match=message):
        record_sale(conn, **args)


def test_zero_quantity_is_refused(conn, refs, make_purchase):
    pid = make_purchase()
    with pytest.raises(ValueError, match="must be > 0"):
        _sell(conn, refs, [SaleItemInput(purchase_id=pid)])


def test_downstream_purchases_are_not_sold_raw(conn, refs, make_purchase):
    result = _sell(conn, refs, [SaleItemInput(purchase_id=make_purchase(), quantity=50)])
    with pytest.raises(ValueError, match="sold through graded lots"):
        _sell(conn, refs, [SaleItemInput(purchase_id=result.downstream_purchase_ids[0], quantity=10)])


def test_update_sale_follows_to_downstream(conn, refs, make_purchase):
    result = _sell(conn, refs, [SaleItemInput(purchase_id=make_purchase(), quantity=50)])
    other = conn.execute("INSERT INTO customers (name, type) VALUES ('Bay Lobster Co', 'distributor')").lastrowid
    conn.commit()

    update_sale(conn, result.sale_id, customer_id=other, sale_date="2024-05-08", notes="moved")
    sale = get_sale(conn, result.sale_id)
    assert sale["customer_id"] == other
    assert sale["sale_date"] == "2024-05-08"
    assert sale["notes"] == "moved"
    ds = get_purchase(conn, result.downstream_purchase_ids[0])
    assert ds["downstream_customer_id"] == other
    assert ds["landing_date"] == "2024-05-08"


def test_delete_sale_restores_stock(conn, refs, make_purchase):
    pid = make_purchase()
    result = _sell(conn, refs, [SaleItemInput(purchase_id=pid, quantity=50)])
    delete_sale(conn, result.sale_id)

    assert get_sale(conn, result.sale_id) is None
    assert get_purchase(conn, pid)["remaining_quantity"] == 200.0
    assert list_downstream_purchases(conn) == []
    assert conn.execute("SELECT COUNT(1) FROM sale_items").fetchone()[0] == 0


def test_delete_sale_refused_once_graded(conn, refs, make_purchase):
    result = _sell(conn, refs, [SaleItemInput(purchase_id=make_purchase(), quantity=50)])
    create_grading(
        conn,
        GradingInput(purchase_id=result.downstream_purchase_ids[0], lines=[GradeLineInput("selects", 40)]),
    )
    with pytest.raises(ValueError, match="already graded or sold"):
        delete_sale(conn, result.sale_id)
    assert get_sale(conn, result.sale_id) is not None


@pytest.fixture
def lots(conn, refs, make_purchase) -> list[int]:
    result = _sell(conn, refs, [SaleItemInput(purchase_id=make_purchase(), quantity=100)])
    return create_grading(
        conn,
        GradingInput(
            purchase_id=result.downstream_purchase_ids[0],
            lines=[GradeLineInput("selects", 60), GradeLineInput("jumbo", 30)],
        ),
    )


def test_distributor_sale_draws_from_lots(conn, refs, lots):
    result = record_distributor_sale(
        conn,
        customer_id=refs["retailer"],
        sale_date="2024-05-06",
        notes=None,
        items=[GradedItemInput(grading_id=lots[0], quantity=25), GradedItemInput(grading_id=lots[1], quantity=30)],
    )
    assert get_grading(conn, lots[0])["available_quantity"] == 35.0
    assert get_grading(conn, lots[1])["available_quantity"] == 0.0
    assert result.downstream_purchase_ids == []

    sale = get_sale(conn, result.sale_id)
    assert sale["portal"] == "distributor"
    assert sale["seller_id"] == refs["buyer"]
    assert [i["grade"] for i in list_sale_items(conn, result.sale_id)] == ["selects", "jumbo"]


def test_distributor_oversell_is_refused(conn, refs, lots):
    with pytest.raises(ValueError, match="Quantity exceeds available stock for Selects"):
        record_distributor_sale(
            conn,
            customer_id=refs["retailer"],
            sale_date="2024-05-06",
            notes=None,
            items=[GradedItemInput(grading_id=lots[0], quantity=40), GradedItemInput(grading_id=lots[0], quantity=21)],
        )
    assert get_grading(conn, lots[0])["available_quantity"] == 60.0
    assert list_sales(conn, portal="distributor") == []


def test_distributor_sale_needs_items(conn, refs, lots):
    with pytest.raises(ValueError, match="at least one sale item"):
        record_distributor_sale(conn, customer_id=refs["retailer"], sale_date="2024-05-06", notes=None, items=[])
    with pytest.raises(ValueError, match="needs a graded lot"):
        record_distributor_sale(
            conn,
            customer_id=refs["retailer"],
            sale_date="2024-05-06",
            notes=None,
            items=[GradedItemInput(grading_id=None, quantity=1)],
        )


def test_delete_distributor_sale_returns_to_lot(conn, refs, lots):
    result = record_distributor_sale(
        conn,
        customer_id=refs["retailer"],
        sale_date="2024-05-06",
        notes=None,
        items=[GradedItemInput(grading_id=lots[0], quantity=25)],
    )
    delete_sale(conn, result.sale_id)
    assert get_grading(conn, lots[0])["available_quantity"] == 60.0


def test_list_sales_totals(conn, refs, make_purchase):
    pid = make_purchase()
    _sell(conn, refs, [SaleItemInput(purchase_id=pid, quantity=20), SaleItemInput(purchase_id=pid, quantity=30)])
    (s,) = list_sales(conn, portal="tracker")
    assert s["item_count"] == 2
    assert s["total_quantity"] == 50.0
    assert s["customer_name"] == "Atlantic Seafoods"


def _sold_elsewhere_first(sql, params):
    """An atomic() that lets another writer commit before the sale's own writes start."""

    @contextmanager
    def wrapper(conn):
        conn.execute(sql, params)
        conn.commit()
        with atomic(conn) as c:
            yield c

    return wrapper


def test_sale_rolls_back_when_stock_taken_meanwhile(conn, refs, make_purchase, monkeypatch):
    a = make_purchase()
    b = make_purchase(purchase_quantity=100)
    monkeypatch.setattr(
        sales, "atomic", _sold_elsewhere_first("UPDATE purchases SET remaining_quantity = 5 WHERE id=?", (b,))
    )

    with pytest.raises(ValueError, match="Reload and try again"):
        _sell(conn, refs, [SaleItemInput(purchase_id=a, quantity=20), SaleItemInput(purchase_id=b, quantity=30)])

    assert list_sales(conn) == []
    assert conn.execute("SELECT COUNT(1) FROM sale_items").fetchone()[0] == 0
    assert list_downstream_purchases(conn) == []
    assert get_purchase(conn, a)["remaining_quantity"] == 200.0
    assert get_purchase(conn, b)["remaining_quantity"] == 5.0


def test_distributor_sale_rolls_back_when_lot_taken_meanwhile(conn, refs, lots, monkeypatch):
    monkeypatch.setattr(
        sales, "atomic", _sold_elsewhere_first("UPDATE grading SET available_quantity = 5 WHERE id=?", (lots[1],))
    )

    with pytest.raises(ValueError, match="Reload and try again"):
        record_distributor_sale(
            conn,
            customer_id=refs["retailer"],
            sale_date="2024-05-06",
            notes=None,
            items=[GradedItemInput(grading_id=lots[0], quantity=25), GradedItemInput(grading_id=lots[1], quantity=20)],
        )

    assert list_sales(conn, portal="distributor") == []
    assert conn.execute("SELECT COUNT(1) FROM sale_items WHERE grade_id IS NOT NULL").fetchone()[0] == 0
    assert get_grading(conn, lots[0])["available_quantity"] == 60.0
    assert get_grading(conn, lots[1])["available_quantity"] == 5.0
