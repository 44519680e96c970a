from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional

from seachain.db import q
from seachain.services.grading import list_gradings
from seachain.services.purchases import list_downstream_purchases
from seachain.services.sales import list_sales


def _count(conn, sql: str) -> int:
    return int(q(conn, sql)[0]["n"])


def tracker_stats(conn) -> dict[str, int]:
    return {
        "purchases": _count(conn, "SELECT COUNT(1) AS n FROM purchases WHERE is_downstream_purchase=0"),
        "sales": _count(conn, "SELECT COUNT(1) AS n FROM sales WHERE portal='tracker'"),
        "vessels": _count(conn, "SELECT COUNT(1) AS n FROM vessels"),
        "suppliers": _count(conn, "SELECT COUNT(1) AS n FROM suppliers WHERE portal='tracker'"),
        "customers": _count(conn, "SELECT COUNT(1) AS n FROM customers"),
        "products": _count(conn, "SELECT COUNT(1) AS n FROM products"),
    }


def distributor_stats(conn) -> dict[str, int]:
    return {
        "purchases": _count(conn, "SELECT COUNT(1) AS n FROM purchases WHERE is_downstream_purchase=1"),
        "sales": _count(conn, "SELECT COUNT(1) AS n FROM sales WHERE portal='distributor'"),
        "graded": _count(conn, "SELECT COUNT(1) AS n FROM grading"),
        "pending_grading": _count(
            conn,
            """
            SELECT COUNT(1) AS n FROM purchases p
            WHERE p.is_downstream_purchase=1
              AND NOT EXISTS (SELECT 1 FROM grading g WHERE g.purchase_id = p.id)
            """,
        ),
    }


def shrinkage_report(conn):
    """One row per graded purchase. Shrinkage is recomputed from the lots, not read from the shared columns."""
    return q(
        conn,
        """
        SELECT
          p.id AS purchase_id,
          p.landing_date,
          pr.species,
          s.name AS supplier,
          MAX(g.graded_at) AS graded_at,
          MAX(g.total_weight) AS total_weight,
          ROUND(SUM(g.quantity), 2) AS graded_weight,
          ROUND(MAX(g.total_weight) - SUM(g.quantity), 2) AS shrinkage_weight,
          ROUND(
            CASE WHEN MAX(g.total_weight) > 0
                 THEN (MAX(g.total_weight) - SUM(g.quantity)) * 100.0 / MAX(g.total_weight)
                 ELSE 0 END,
            2
          ) AS shrinkage_pct
        FROM grading g
        JOIN purchases p ON p.id = g.purchase_id
        JOIN products pr ON pr.id = p.product_id
        JOIN suppliers s ON s.id = p.supplier_id
        GROUP BY p.id
        ORDER BY graded_at DESC, p.id DESC
        """,
    )


@dataclass
class DistributorOverview:
    customer: Any
    purchases: list = field(default_factory=list)
    gradings: list = field(default_factory=list)
    sales: list = field(default_factory=list)


def find_customer_by_slug(conn, slug: str):
    """'Atlantic_Seafoods' matches the customer 'atlantic seafoods' (case-insensitive)."""
    name = str(slug or "").replace("_", " ").strip()
    if not name:
        return None
    rows = q(conn, "SELECT * FROM customers WHERE name = ? COLLATE NOCASE ORDER BY id LIMIT 1", (name,))
    return rows[0] if rows else None


def distributor_overview(conn, slug: str) -> Optional[DistributorOverview]:
    customer = find_customer_by_slug(conn, slug)
    if customer is None:
        return None
    purchases = list_downstream_purchases(conn, customer_id=int(customer["id"]))
    return DistributorOverview(
        customer=customer,
        purchases=purchases,
        gradings=list_gradings(conn, purchase_ids=[int(p["id"]) for p in purchases]),
        sales=list_sales(conn, customer_id=int(customer["id"])),
    )
