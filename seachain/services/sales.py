from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Iterable, Optional

from seachain.db import atomic, q, u, x
from seachain.services.grades import grade_label, grade_labels
from seachain.services.purchases import DEFAULT_CRATE_WEIGHT, auto_crates
from seachain.utils import blank_to_none, iso_date, iso_now, to_float_or_none

logger = logging.getLogger(__name__)

QTY_EPS = 1e-6


@dataclass
class SaleItemInput:
    """Tracker line: draws from a raw purchase. Give quantity, percentage, or both."""
    purchase_id: Optional[int]
    quantity: Optional[float] = None
    percentage_used: Optional[float] = None


@dataclass
class GradedItemInput:
    """Distributor line: draws from a graded lot."""
    grading_id: Optional[int]
    quantity: Optional[float]


@dataclass
class SaleResult:
    sale_id: int
    item_ids: list[int]
    downstream_purchase_ids: list[int]


def reconcile_item(
    base_quantity: Optional[float],
    quantity: Optional[float],
    percentage: Optional[float],
) -> tuple[Optional[float], Optional[float]]:
    """
    Quantity and percentage_used describe the same thing against the source
    purchase quantity. The one that is missing is derived from the other.
    """
    qty = to_float_or_none(quantity)
    pct = to_float_or_none(percentage)
    base = to_float_or_none(base_quantity) or 0.0

    if qty is None and pct is not None and base > 0:
        qty = round(pct / 100.0 * base, 2)
    elif qty is not None and pct is None and base > 0:
        pct = round(qty / base * 100.0, 2)
    return qty, pct


def _check_header(seller_id: Optional[int], customer_id: Optional[int], sale_date) -> str:
    if seller_id in (None, ""):
        raise ValueError("Seller is required.")
    if customer_id in (None, ""):
        raise ValueError("Customer is required.")
    d = iso_date(sale_date)
    if not d:
        raise ValueError("Sale date is required.")
    return d


def _insert_sale(conn, *, seller_id: int, customer_id: int, sale_date: str, notes: Optional[str], portal: str) -> int:
    return x(
        conn,
        "INSERT INTO sales (seller_id, customer_id, sale_date, notes, portal) VALUES (?, ?, ?, ?, ?)",
        (int(seller_id), int(customer_id), sale_date, blank_to_none(notes), portal),
        commit=False,
    )


def _insert_item(
    conn,
    *,
    sale_id: int,
    purchase_id: int,
    product_id: int,
    quantity: float,
    grade_id: Optional[int] = None,
    percentage_used: Optional[float] = None,
) -> int:
    return x(
        conn,
        """
        INSERT INTO sale_items (sale_id, purchase_id, product_id, grade_id, quantity, percentage_used)
        VALUES (?, ?, ?, ?, ?, ?)
        """,
        (int(sale_id), int(purchase_id), int(product_id), grade_id, float(quantity), percentage_used),
        commit=False,
    )


# -------------------------
# Tracker sales (raw purchases)
# -------------------------

def record_sale(
    conn,
    *,
    seller_id: int,
    customer_id: int,
    sale_date,
    notes: Optional[str],
    items: Iterable[SaleItemInput],
    crate_weight: float = DEFAULT_CRATE_WEIGHT,
) -> SaleResult:
    """
    Sell from tracker purchases.

    Each line decrements the source purchase's remaining quantity and creates a
    downstream purchase for the customer, linked back through source_sale_id
    and source_sale_item_id.
    The whole sale is one transaction: if any decrement finds less stock than
    validated (another session sold it first), nothing is written.
    """
    sale_date = _check_header(seller_id, customer_id, sale_date)

    lines: list[tuple[object, float, Optional[float]]] = []
    wanted: dict[int, float] = defaultdict(float)
    for item in items:
        if item.purchase_id in (None, ""):
            raise ValueError("Every item needs a purchase.")
        rows = q(conn, "SELECT * FROM purchases WHERE id=?", (int(item.purchase_id),))
        if not rows:
            raise ValueError(f"Purchase {item.purchase_id} not found.")
        p = rows[0]
        if int(p["is_downstream_purchase"]):
            raise ValueError("Distributor purchases are sold through graded lots, not tracker sales.")
        qty, pct = reconcile_item(p["purchase_quantity"], item.quantity, item.percentage_used)
        if qty is None or qty <= 0:
            raise ValueError("Item quantity must be > 0.")
        lines.append((p, float(qty), pct))
        wanted[int(p["id"])] += float(qty)

    if not lines:
        raise ValueError("Add at least one sale item.")

    for pid, qty in wanted.items():
        p = next(p for p, _, _ in lines if int(p["id"]) == pid)
        if qty > float(p["remaining_quantity"]) + QTY_EPS:
            raise ValueError(
                f"Quantity {qty:.2f} exceeds the {float(p['remaining_quantity']):.2f} remaining on purchase {pid}."
            )

    item_ids: list[int] = []
    downstream_ids: list[int] = []
    with atomic(conn):
        sale_id = _insert_sale(
            conn, seller_id=seller_id, customer_id=customer_id, sale_date=sale_date, notes=notes, portal="tracker"
        )
        for p, qty, pct in lines:
            item_id = _insert_item(
                conn,
                sale_id=sale_id,
                purchase_id=int(p["id"]),
                product_id=int(p["product_id"]),
                quantity=qty,
                percentage_used=pct,
            )
            item_ids.append(item_id)
            n = u(
                conn,
                """
                UPDATE purchases
                SET remaining_quantity = remaining_quantity - ?, updated_at = ?
                WHERE id = ? AND remaining_quantity >= ? - ?
                """,
                (qty, iso_now(), int(p["id"]), qty, QTY_EPS),
                commit=False,
            )
            if n != 1:
                raise ValueError(f"Purchase {p['id']} no longer has {qty:.2f} remaining. Reload and try again.")

            downstream_ids.append(
                x(
                    conn,
                    """
                    INSERT INTO purchases (
                        supplier_id, vessel_id, product_id, fishing_zone_id,
                        harvest_quantity, purchase_quantity, remaining_quantity, num_crates,
                        gear_type, trip_start_date, trip_end_date, landing_date, notes,
                        is_downstream_purchase, source_sale_id, source_sale_item_id, downstream_customer_id
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, NULL, 1, ?, ?, ?)
                    """,
                    (
                        int(seller_id),
                        int(p["vessel_id"]),
                        int(p["product_id"]),
                        int(p["fishing_zone_id"]),
                        float(p["harvest_quantity"]),
                        qty,
                        qty,
                        float(auto_crates(qty, crate_weight)),
                        p["gear_type"],
                        p["trip_start_date"],
                        p["trip_end_date"],
                        sale_date,
                        int(sale_id),
                        int(item_id),
                        int(customer_id),
                    ),
                    commit=False,
                )
            )

    logger.info(
        "Recorded tracker sale %s: %d item(s), %.2f total to customer %s",
        sale_id,
        len(item_ids),
        sum(wanted.values()),
        customer_id,
    )
    return SaleResult(sale_id=int(sale_id), item_ids=item_ids, downstream_purchase_ids=downstream_ids)


# -------------------------
# Distributor sales (graded lots)
# -------------------------

def record_distributor_sale(
    conn,
    *,
    customer_id: int,
    sale_date,
    notes: Optional[str],
    items: Iterable[GradedItemInput],
    seller_id: Optional[int] = None,
) -> SaleResult:
    items = list(items)
    if not items:
        raise ValueError("Add at least one sale item.")

    labels = grade_labels(conn)
    lots: list[tuple[object, float]] = []
    wanted: dict[int, float] = defaultdict(float)
    for item in items:
        if item.grading_id in (None, ""):
            raise ValueError("Every item needs a graded lot.")
        rows = q(
            conn,
            """
            SELECT g.*, p.supplier_id AS purchase_supplier_id
            FROM grading g
            JOIN purchases p ON p.id = g.purchase_id
            WHERE g.id=?
            """,
            (int(item.grading_id),),
        )
        if not rows:
            raise ValueError(f"Graded lot {item.grading_id} not found.")
        qty = to_float_or_none(item.quantity)
        if qty is None or qty <= 0:
            raise ValueError("Item quantity must be > 0.")
        lots.append((rows[0], float(qty)))
        wanted[int(rows[0]["id"])] += float(qty)

    for g, _ in lots:
        if wanted[int(g["id"])] > float(g["available_quantity"]) + QTY_EPS:
            raise ValueError(f"Quantity exceeds available stock for {grade_label(labels, g['grade'])}")

    # Seller for record keeping: explicit distributor, else the supplier of the first lot's purchase
    seller = seller_id if seller_id not in (None, "") else lots[0][0]["purchase_supplier_id"]
    if seller is None:
        raise ValueError(
            "Unable to determine seller. Please ensure the graded item links to a purchase with a supplier."
        )
    sale_date = _check_header(seller, customer_id, sale_date)

    item_ids: list[int] = []
    with atomic(conn):
        sale_id = _insert_sale(
            conn, seller_id=int(seller), customer_id=customer_id, sale_date=sale_date, notes=notes, portal="distributor"
        )
        for g, qty in lots:
            item_ids.append(
                _insert_item(
                    conn,
                    sale_id=sale_id,
                    purchase_id=int(g["purchase_id"]),
                    product_id=int(g["product_id"]),
                    grade_id=int(g["id"]),
                    quantity=qty,
                )
            )
            n = u(
                conn,
                "UPDATE grading SET available_quantity = available_quantity - ? WHERE id = ? AND available_quantity >= ? - ?",
                (qty, int(g["id"]), qty, QTY_EPS),
                commit=False,
            )
            if n != 1:
                raise ValueError(
                    f"Quantity exceeds available stock for {grade_label(labels, g['grade'])}. Reload and try again."
                )

    logger.info("Recorded distributor sale %s: %d item(s) to customer %s", sale_id, len(item_ids), customer_id)
    return SaleResult(sale_id=int(sale_id), item_ids=item_ids, downstream_purchase_ids=[])


# -------------------------
# Edit / delete / list
# -------------------------

def get_sale(conn, sale_id: int):
    rows = q(
        conn,
        """
        SELECT s.*, sp.name AS seller_name, c.name AS customer_name
        FROM sales s
        JOIN suppliers sp ON sp.id = s.seller_id
        JOIN customers c ON c.id = s.customer_id
        WHERE s.id=?
        """,
        (int(sale_id),),
    )
    return rows[0] if rows else None


def update_sale(conn, sale_id: int, *, customer_id: int, sale_date, notes: Optional[str]) -> None:
    """Header-only edit. Items are immutable; delete and re-record the sale to change them."""
    sale = get_sale(conn, sale_id)
    if sale is None:
        raise ValueError("Sale not found.")
    sale_date = _check_header(sale["seller_id"], customer_id, sale_date)

    with atomic(conn):
        u(
            conn,
            "UPDATE sales SET customer_id=?, sale_date=?, notes=?, updated_at=? WHERE id=?",
            (int(customer_id), sale_date, blank_to_none(notes), iso_now(), int(sale_id)),
            commit=False,
        )
        # Downstream purchases follow their source sale's customer and date
        u(
            conn,
            "UPDATE purchases SET downstream_customer_id=?, landing_date=?, updated_at=? WHERE source_sale_id=?",
            (int(customer_id), sale_date, iso_now(), int(sale_id)),
            commit=False,
        )
    logger.info("Updated sale %s", sale_id)


def delete_sale(conn, sale_id: int) -> None:
    """Reverse a sale: give quantities back to their sources and drop the downstream purchases it created."""
    if get_sale(conn, sale_id) is None:
        raise ValueError("Sale not found.")

    downstream = q(conn, "SELECT id FROM purchases WHERE source_sale_id=?", (int(sale_id),))
    ds_ids = [int(r["id"]) for r in downstream]
    if ds_ids:
        marks = ", ".join("?" for _ in ds_ids)
        used = q(
            conn,
            f"""
            SELECT
              (SELECT COUNT(1) FROM grading WHERE purchase_id IN ({marks})) AS graded,
              (SELECT COUNT(1) FROM sale_items WHERE purchase_id IN ({marks})) AS sold
            """,
            [*ds_ids, *ds_ids],
        )[0]
        if int(used["graded"]) or int(used["sold"]):
            logger.warning("Refused to delete sale %s: downstream purchases already graded or sold", sale_id)
            raise ValueError("The distributor has already graded or sold this stock; the sale cannot be deleted.")

    items = q(conn, "SELECT * FROM sale_items WHERE sale_id=?", (int(sale_id),))
    with atomic(conn):
        for it in items:
            if it["grade_id"] is not None:
                u(
                    conn,
                    "UPDATE grading SET available_quantity = available_quantity + ? WHERE id=?",
                    (float(it["quantity"]), int(it["grade_id"])),
                    commit=False,
                )
            else:
                u(
                    conn,
                    "UPDATE purchases SET remaining_quantity = remaining_quantity + ?, updated_at=? WHERE id=?",
                    (float(it["quantity"]), iso_now(), int(it["purchase_id"])),
                    commit=False,
                )
        for pid in ds_ids:
            u(conn, "DELETE FROM purchases WHERE id=?", (pid,), commit=False)
        u(conn, "DELETE FROM sale_items WHERE sale_id=?", (int(sale_id),), commit=False)
        u(conn, "DELETE FROM sales WHERE id=?", (int(sale_id),), commit=False)

    logger.info("Deleted sale %s (%d item(s) restored)", sale_id, len(items))


def list_sales(conn, *, portal: Optional[str] = None, customer_id: Optional[int] = None):
    where = ["1=1"]
    params: list = []
    if portal:
        where.append("s.portal=?")
        params.append(portal)
    if customer_id is not None:
        where.append("s.customer_id=?")
        params.append(int(customer_id))
    return q(
        conn,
        f"""
        SELECT s.*, sp.name AS seller_name, c.name AS customer_name,
               (SELECT COUNT(1) FROM sale_items si WHERE si.sale_id = s.id) AS item_count,
               (SELECT COALESCE(SUM(si.quantity),0) FROM sale_items si WHERE si.sale_id = s.id) AS total_quantity
        FROM sales s
        JOIN suppliers sp ON sp.id = s.seller_id
        JOIN customers c ON c.id = s.customer_id
        WHERE {' AND '.join(where)}
        ORDER BY s.sale_date DESC, s.id DESC
        """,
        params,
    )


def list_sale_items(conn, sale_id: int):
    return q(
        conn,
        """
        SELECT si.*, pr.species, pr.unit_of_measurement AS unit, g.grade,
               v.registration_number AS vessel_registration
        FROM sale_items si
        JOIN products pr ON pr.id = si.product_id
        JOIN purchases p ON p.id = si.purchase_id
        JOIN vessels v ON v.id = p.vessel_id
        LEFT JOIN grading g ON g.id = si.grade_id
        WHERE si.sale_id=?
        ORDER BY si.id
        """,
        (int(sale_id),),
    )


def sale_order_labels(conn) -> dict[int, str]:
    """SO-0001... in (sale_date, id) order, shared by both portals."""
    rows = q(conn, "SELECT id FROM sales ORDER BY sale_date ASC, id ASC")
    return {int(r["id"]): f"SO-{i:04d}" for i, r in enumerate(rows, start=1)}
