from __future__ import annotations

from seachain.db import q


def purchase_on_hand(conn, purchase_id: int) -> dict:
    """
    Remaining on a purchase, recomputed from its sale lines.

    purchases.remaining_quantity is maintained by the sale writers; this is the
    auditable cross-check (purchase_quantity - sum of raw sale lines).
    """
    p = q(conn, "SELECT purchase_quantity, remaining_quantity FROM purchases WHERE id=?", (int(purchase_id),))
    if not p:
        return {"qty": 0.0, "stored": 0.0}
    sold = q(
        conn,
        "SELECT COALESCE(SUM(quantity),0) AS qty FROM sale_items WHERE purchase_id=? AND grade_id IS NULL",
        (int(purchase_id),),
    )[0]
    return {
        "qty": float(p[0]["purchase_quantity"]) - float(sold["qty"]),
        "stored": float(p[0]["remaining_quantity"]),
    }


def lot_on_hand(conn, grading_id: int) -> dict:
    g = q(conn, "SELECT quantity, available_quantity FROM grading WHERE id=?", (int(grading_id),))
    if not g:
        return {"qty": 0.0, "stored": 0.0}
    sold = q(conn, "SELECT COALESCE(SUM(quantity),0) AS qty FROM sale_items WHERE grade_id=?", (int(grading_id),))[0]
    return {
        "qty": float(g[0]["quantity"]) - float(sold["qty"]),
        "stored": float(g[0]["available_quantity"]),
    }


def stock_on_hand(conn, *, downstream: bool = False):
    return q(
        conn,
        """
        SELECT
          p.id AS purchase_id,
          p.landing_date,
          s.name AS supplier,
          v.registration_number AS vessel,
          pr.species,
          pr.unit_of_measurement AS unit,
          ROUND(p.purchase_quantity, 2) AS purchase_quantity,
          ROUND(p.remaining_quantity, 2) AS remaining_quantity,
          ROUND(p.purchase_quantity - p.remaining_quantity, 2) AS sold_quantity
        FROM purchases p
        JOIN suppliers s ON s.id = p.supplier_id
        JOIN vessels v ON v.id = p.vessel_id
        JOIN products pr ON pr.id = p.product_id
        WHERE p.is_downstream_purchase=? AND p.remaining_quantity > 0
        ORDER BY p.landing_date ASC, p.id ASC
        """,
        (1 if downstream else 0,),
    )


def graded_stock(conn):
    return q(
        conn,
        """
        SELECT
          g.id AS lot_id,
          g.purchase_id,
          g.graded_at,
          pr.species,
          pr.unit_of_measurement AS unit,
          COALESCE(gr.name, g.grade) AS grade,
          ROUND(g.quantity, 2) AS quantity,
          ROUND(g.available_quantity, 2) AS available_quantity
        FROM grading g
        JOIN products pr ON pr.id = g.product_id
        LEFT JOIN grades gr ON gr.code = g.grade
        WHERE g.available_quantity > 0
        ORDER BY COALESCE(gr.sort_order, 999), g.graded_at, g.id
        """,
    )
