from __future__ import annotations

import csv
import io
from dataclasses import dataclass, field
from typing import Any, Optional

from seachain.db import q
from seachain.services.grades import grade_label
from seachain.services.grading import list_gradings
from seachain.services.sales import get_sale
from seachain.utils import iso_now


@dataclass
class TraceReport:
    purchase: Any
    source_sale: Optional[Any] = None
    upstream_purchases: list = field(default_factory=list)
    gradings: list = field(default_factory=list)
    downstream_sales: list = field(default_factory=list)
    onward_sales: list = field(default_factory=list)


def _purchase_detail(conn, purchase_id: int):
    rows = q(
        conn,
        """
        SELECT p.*,
               pr.species, pr.unit_of_measurement AS unit,
               v.registration_number AS vessel_registration, v.license_number, v.gear_type AS vessel_gear_type,
               s.name AS supplier_name, s.contact_name AS supplier_contact, s.contact_email AS supplier_email,
               fz.name AS fishing_zone, fz.description AS fishing_zone_description
        FROM purchases p
        JOIN products pr ON pr.id = p.product_id
        JOIN vessels v ON v.id = p.vessel_id
        JOIN suppliers s ON s.id = p.supplier_id
        JOIN fishing_zones fz ON fz.id = p.fishing_zone_id
        WHERE p.id=?
        """,
        (int(purchase_id),),
    )
    return rows[0] if rows else None


def trace_purchase(conn, purchase_id: int) -> TraceReport:
    """Walk the chain around one purchase: where it came from, how it was graded, and where it went."""
    purchase = _purchase_detail(conn, purchase_id)
    if purchase is None:
        raise ValueError("Purchase not found.")

    report = TraceReport(purchase=purchase)

    if purchase["source_sale_id"] is not None:
        report.source_sale = get_sale(conn, int(purchase["source_sale_id"]))
        report.upstream_purchases = q(
            conn,
            """
            SELECT si.quantity AS sold_quantity,
                   p.id, p.landing_date, p.trip_start_date, p.trip_end_date,
                   p.harvest_quantity, p.purchase_quantity,
                   v.registration_number AS vessel_registration,
                   s.name AS supplier_name,
                   fz.name AS fishing_zone
            FROM sale_items si
            JOIN purchases p ON p.id = si.purchase_id
            JOIN vessels v ON v.id = p.vessel_id
            JOIN suppliers s ON s.id = p.supplier_id
            JOIN fishing_zones fz ON fz.id = p.fishing_zone_id
            WHERE si.sale_id=? AND si.grade_id IS NULL
              AND (? IS NULL OR si.id = ?)
            ORDER BY si.id
            """,
            (int(purchase["source_sale_id"]), purchase["source_sale_item_id"], purchase["source_sale_item_id"]),
        )

    report.gradings = list_gradings(conn, purchase_ids=[int(purchase_id)])
    grading_ids = [int(g["id"]) for g in report.gradings]
    if grading_ids:
        marks = ", ".join("?" for _ in grading_ids)
        report.downstream_sales = q(
            conn,
            f"""
            SELECT si.*, g.grade, sa.sale_date, c.name AS customer_name
            FROM sale_items si
            JOIN grading g ON g.id = si.grade_id
            JOIN sales sa ON sa.id = si.sale_id
            JOIN customers c ON c.id = sa.customer_id
            WHERE si.grade_id IN ({marks})
            ORDER BY sa.sale_date, si.id
            """,
            grading_ids,
        )

    report.onward_sales = q(
        conn,
        """
        SELECT si.*, sa.sale_date, c.name AS customer_name, dp.id AS downstream_purchase_id
        FROM sale_items si
        JOIN sales sa ON sa.id = si.sale_id
        JOIN customers c ON c.id = sa.customer_id
        LEFT JOIN purchases dp ON dp.source_sale_item_id = si.id
        WHERE si.purchase_id=? AND si.grade_id IS NULL
        ORDER BY sa.sale_date, si.id
        """,
        (int(purchase_id),),
    )
    return report


def trace_to_csv(report: TraceReport, labels: dict[str, str], *, generated: Optional[str] = None) -> str:
    p = report.purchase
    rows: list[list[Any]] = [
        ["Traceability Report"],
        ["Generated", generated or iso_now()],
        [],
        ["UPSTREAM CHAIN"],
        ["Vessel", p["vessel_registration"]],
        ["Supplier", p["supplier_name"]],
        ["Fishing Zone", p["fishing_zone"]],
        ["Landing Date", p["landing_date"]],
        ["Product", p["species"]],
        ["Quantity", p["purchase_quantity"]],
    ]
    if report.source_sale is not None:
        rows.append(["Source Sale Date", report.source_sale["sale_date"]])
        rows.append(["Sold By", report.source_sale["seller_name"]])
        for up in report.upstream_purchases:
            rows.append(["Origin Vessel", up["vessel_registration"], up["supplier_name"], up["landing_date"]])

    rows += [
        [],
        ["GRADING BREAKDOWN"],
        ["Grade", "Quantity", "Available"],
    ]
    rows += [[grade_label(labels, g["grade"]), g["quantity"], g["available_quantity"]] for g in report.gradings]

    rows += [
        [],
        ["DOWNSTREAM SALES"],
        ["Customer", "Grade", "Quantity", "Sale Date"],
    ]
    rows += [
        [s["customer_name"], grade_label(labels, s["grade"]), s["quantity"], s["sale_date"]]
        for s in report.downstream_sales
    ]
    rows += [[s["customer_name"], "-", s["quantity"], s["sale_date"]] for s in report.onward_sales]

    buf = io.StringIO()
    csv.writer(buf, lineterminator="\n").writerows(rows)
    return buf.getvalue()
