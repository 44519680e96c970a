from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from seachain.db import q, u, x
from seachain.services.reference import DEFAULT_GEAR_TYPE
from seachain.utils import blank_to_none, iso_date, iso_now, round_half_up, to_float_or_none

logger = logging.getLogger(__name__)

DEFAULT_CRATE_WEIGHT = 30.0
QTY_EPS = 1e-9

PURCHASE_QTY_MESSAGE = "Enter a valid purchase quantity less than or equal to harvest quantity."


@dataclass
class PurchaseInput:
    supplier_id: Optional[int]
    vessel_id: Optional[int]
    product_id: Optional[int]
    fishing_zone_id: Optional[int]
    harvest_quantity: Optional[float]
    purchase_quantity: Optional[float]
    trip_start_date: Optional[str]
    trip_end_date: Optional[str]
    landing_date: Optional[str]
    num_crates: Optional[float] = None  # None -> auto from purchase quantity
    gear_type: Optional[str] = None
    notes: Optional[str] = None


_PURCHASE_SELECT = """
    SELECT p.*,
           s.name AS supplier_name,
           v.registration_number AS vessel_registration,
           pr.species AS species,
           pr.unit_of_measurement AS unit,
           fz.name AS fishing_zone,
           c.name AS downstream_customer
    FROM purchases p
    JOIN suppliers s ON s.id = p.supplier_id
    JOIN vessels v ON v.id = p.vessel_id
    JOIN products pr ON pr.id = p.product_id
    JOIN fishing_zones fz ON fz.id = p.fishing_zone_id
    LEFT JOIN customers c ON c.id = p.downstream_customer_id
"""


def auto_crates(purchase_quantity: Optional[float], crate_weight: float = DEFAULT_CRATE_WEIGHT) -> int:
    qty = to_float_or_none(purchase_quantity)
    if not qty or crate_weight <= 0:
        return 0
    return round_half_up(qty / float(crate_weight))


def check_purchase_quantity(harvest_quantity: Optional[float], purchase_quantity: Optional[float]) -> Optional[str]:
    """Returns the warning shown next to the purchase field, or None when the pair is fine."""
    h = to_float_or_none(harvest_quantity)
    p = to_float_or_none(purchase_quantity)
    if h is not None and p is not None and p > h + QTY_EPS:
        return PURCHASE_QTY_MESSAGE
    return None


def get_purchase(conn, purchase_id: int):
    rows = q(conn, _PURCHASE_SELECT + " WHERE p.id=?", (int(purchase_id),))
    return rows[0] if rows else None


def list_purchases(conn, *, downstream: bool = False):
    return q(
        conn,
        _PURCHASE_SELECT + " WHERE p.is_downstream_purchase=? ORDER BY p.landing_date DESC, p.id DESC",
        (1 if downstream else 0,),
    )


def list_downstream_purchases(conn, *, customer_id: Optional[int] = None):
    if customer_id is None:
        return list_purchases(conn, downstream=True)
    return q(
        conn,
        _PURCHASE_SELECT
        + " WHERE p.is_downstream_purchase=1 AND p.downstream_customer_id=? ORDER BY p.landing_date DESC, p.id DESC",
        (int(customer_id),),
    )


def _validate(conn, data: PurchaseInput, *, crate_weight: float) -> dict:
    for attr, label in (
        ("supplier_id", "Supplier"),
        ("vessel_id", "Vessel"),
        ("product_id", "Product"),
        ("fishing_zone_id", "Fishing zone"),
    ):
        if getattr(data, attr) in (None, ""):
            raise ValueError(f"{label} is required.")

    harvest = to_float_or_none(data.harvest_quantity)
    purchase = to_float_or_none(data.purchase_quantity)
    if harvest is None or harvest <= 0:
        raise ValueError("Harvest quantity must be > 0.")
    if purchase is None or purchase <= 0:
        raise ValueError("Purchase quantity must be > 0.")
    if check_purchase_quantity(harvest, purchase):
        raise ValueError(PURCHASE_QTY_MESSAGE)

    trip_start = iso_date(data.trip_start_date)
    trip_end = iso_date(data.trip_end_date)
    landing = iso_date(data.landing_date)
    if not trip_start or not trip_end or not landing:
        raise ValueError("Trip start, trip end and landing dates are required.")
    if trip_start > trip_end:
        raise ValueError("Trip start date must be on or before the trip end date.")

    vessel = q(conn, "SELECT supplier_id, gear_type FROM vessels WHERE id=?", (int(data.vessel_id),))
    if not vessel:
        raise ValueError("Vessel not found.")
    if vessel[0]["supplier_id"] is not None and int(vessel[0]["supplier_id"]) != int(data.supplier_id):
        raise ValueError("Selected vessel does not belong to the selected supplier.")

    gear = blank_to_none(data.gear_type) or blank_to_none(vessel[0]["gear_type"]) or DEFAULT_GEAR_TYPE

    crates = to_float_or_none(data.num_crates)
    if crates is None:
        crates = float(auto_crates(purchase, crate_weight))
    if crates < 0:
        raise ValueError("Number of crates cannot be negative.")

    return {
        "supplier_id": int(data.supplier_id),
        "vessel_id": int(data.vessel_id),
        "product_id": int(data.product_id),
        "fishing_zone_id": int(data.fishing_zone_id),
        "harvest_quantity": float(harvest),
        "purchase_quantity": float(purchase),
        "num_crates": crates,
        "gear_type": gear,
        "trip_start_date": trip_start,
        "trip_end_date": trip_end,
        "landing_date": landing,
        "notes": blank_to_none(data.notes),
    }


def create_purchase(conn, data: PurchaseInput, *, crate_weight: float = DEFAULT_CRATE_WEIGHT) -> int:
    row = _validate(conn, data, crate_weight=crate_weight)

    purchase_id = x(
        conn,
        """
        INSERT INTO purchases (
            supplier_id, vessel_id, product_id, fishing_zone_id,
            harvest_quantity, purchase_quantity, remaining_quantity, num_crates,
            gear_type, trip_start_date, trip_end_date, landing_date, notes,
            is_downstream_purchase
        ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, 0)
        """,
        (
            row["supplier_id"],
            row["vessel_id"],
            row["product_id"],
            row["fishing_zone_id"],
            row["harvest_quantity"],
            row["purchase_quantity"],
            row["purchase_quantity"],
            row["num_crates"],
            row["gear_type"],
            row["trip_start_date"],
            row["trip_end_date"],
            row["landing_date"],
            row["notes"],
        ),
    )
    logger.info("Recorded purchase %s: %.2f from supplier %s", purchase_id, row["purchase_quantity"], row["supplier_id"])
    return purchase_id


def update_purchase(conn, purchase_id: int, data: PurchaseInput, *, crate_weight: float = DEFAULT_CRATE_WEIGHT) -> None:
    """
    Edits keep what has already been sold: remaining moves by the same delta as
    purchase_quantity, and an edit that would take remaining below zero is refused.
    """
    existing = q(conn, "SELECT * FROM purchases WHERE id=?", (int(purchase_id),))
    if not existing:
        raise ValueError("Purchase not found.")
    old = existing[0]

    row = _validate(conn, data, crate_weight=crate_weight)
    consumed = float(old["purchase_quantity"]) - float(old["remaining_quantity"])
    remaining = row["purchase_quantity"] - consumed
    if remaining < -QTY_EPS:
        raise ValueError(
            f"Purchase quantity cannot be lower than the {consumed:.2f} already sold from this purchase."
        )

    n = u(
        conn,
        """
        UPDATE purchases SET
            supplier_id=?, vessel_id=?, product_id=?, fishing_zone_id=?,
            harvest_quantity=?, purchase_quantity=?,
            remaining_quantity=MAX(0, remaining_quantity + (? - purchase_quantity)), num_crates=?,
            gear_type=?, trip_start_date=?, trip_end_date=?, landing_date=?, notes=?,
            updated_at=?
        WHERE id=? AND remaining_quantity + (? - purchase_quantity) >= -?
        """,
        (
            row["supplier_id"],
            row["vessel_id"],
            row["product_id"],
            row["fishing_zone_id"],
            row["harvest_quantity"],
            row["purchase_quantity"],
            row["purchase_quantity"],
            row["num_crates"],
            row["gear_type"],
            row["trip_start_date"],
            row["trip_end_date"],
            row["landing_date"],
            row["notes"],
            iso_now(),
            int(purchase_id),
            row["purchase_quantity"],
            QTY_EPS,
        ),
    )
    if n != 1:
        raise ValueError("Stock was sold from this purchase while you were editing it. Reload and try again.")
    logger.info("Updated purchase %s", purchase_id)


def delete_purchase(conn, purchase_id: int) -> None:
    if not q(conn, "SELECT 1 FROM purchases WHERE id=?", (int(purchase_id),)):
        raise ValueError("Purchase not found.")

    used = q(
        conn,
        """
        SELECT
          (SELECT COUNT(1) FROM sale_items WHERE purchase_id=?) AS sold,
          (SELECT COUNT(1) FROM grading WHERE purchase_id=?) AS graded
        """,
        (int(purchase_id), int(purchase_id)),
    )[0]
    if int(used["sold"]) or int(used["graded"]):
        logger.warning("Refused to delete purchase %s: sold=%s graded=%s", purchase_id, used["sold"], used["graded"])
        raise ValueError("Purchase has sales or grading records and cannot be deleted.")

    u(conn, "DELETE FROM purchases WHERE id=?", (int(purchase_id),))
    logger.info("Deleted purchase %s", purchase_id)


def purchase_order_labels(conn, so_labels: Optional[dict[int, str]] = None) -> dict[int, str]:
    """
    PO numbers for distributor purchases: sorted by the SO number of the sale
    they came from (purchases without a known sale last), numbered PO-0001...
    """
    if so_labels is None:
        sales = q(conn, "SELECT id FROM sales ORDER BY sale_date ASC, id ASC")
        so_labels = {int(r["id"]): f"SO-{i:04d}" for i, r in enumerate(sales, start=1)}

    rows = q(conn, "SELECT id, source_sale_id FROM purchases WHERE is_downstream_purchase=1 ORDER BY id")

    def sort_key(r) -> tuple[float, int]:
        label = so_labels.get(r["source_sale_id"]) if r["source_sale_id"] is not None else None
        if not label:
            return (float("inf"), int(r["id"]))
        digits = "".join(ch for ch in label if ch.isdigit())
        return (float(digits) if digits else float("inf"), int(r["id"]))

    ordered = sorted(rows, key=sort_key)
    return {int(r["id"]): f"PO-{i:04d}" for i, r in enumerate(ordered, start=1)}
