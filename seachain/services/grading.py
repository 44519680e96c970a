from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, Optional

from seachain.db import atomic, q, u, x
from seachain.utils import blank_to_none, iso_date, iso_today, to_float_or_none

logger = logging.getLogger(__name__)

QTY_EPS = 1e-6


@dataclass
class GradeLineInput:
    grade: Optional[str]
    quantity: Optional[float] = None
    percentage: Optional[float] = None


@dataclass
class GradingInput:
    purchase_id: int
    lines: list[GradeLineInput]
    graded_on: Optional[str] = None
    graded_by: Optional[str] = None
    num_crates: Optional[float] = None
    weight_per_crate: Optional[float] = None
    notes: Optional[str] = None


@dataclass(frozen=True)
class GradingSummary:
    total_weight: float
    graded_weight: float
    graded_percentage: float
    shrinkage_weight: float
    shrinkage_percentage: float
    lines: list[GradeLineInput] = field(default_factory=list)


# -------------------------
# Weight <-> percentage arithmetic
# -------------------------

def weight_to_percentage(quantity: Optional[float], total_weight: Optional[float]) -> Optional[float]:
    qty = to_float_or_none(quantity)
    total = to_float_or_none(total_weight)
    if qty is None or not total or total <= 0:
        return None
    return round(qty / total * 100.0, 2)


def percentage_to_weight(percentage: Optional[float], total_weight: Optional[float]) -> Optional[float]:
    pct = to_float_or_none(percentage)
    total = to_float_or_none(total_weight)
    if pct is None or not total or total <= 0:
        return None
    return round(pct / 100.0 * total, 2)


def grading_total_weight(
    purchase_quantity: Optional[float],
    num_crates: Optional[float] = None,
    weight_per_crate: Optional[float] = None,
) -> float:
    """The purchase quantity wins; crates x weight/crate is the fallback for purchases without one."""
    pq = to_float_or_none(purchase_quantity)
    if pq:
        return float(pq)
    crates = to_float_or_none(num_crates)
    wpc = to_float_or_none(weight_per_crate)
    if crates and wpc:
        return float(crates) * float(wpc)
    return 0.0


def normalize_lines(lines: Iterable[GradeLineInput], total_weight: float) -> list[GradeLineInput]:
    """Fill whichever of weight / percentage is missing from the other. Weight wins when both are given."""
    out: list[GradeLineInput] = []
    for line in lines:
        qty = to_float_or_none(line.quantity)
        pct = to_float_or_none(line.percentage)
        if qty is not None:
            pct = weight_to_percentage(qty, total_weight)
        elif pct is not None:
            qty = percentage_to_weight(pct, total_weight)
        out.append(GradeLineInput(grade=blank_to_none(line.grade), quantity=qty, percentage=pct))
    return out


def summarize_grading(total_weight: float, lines: Iterable[GradeLineInput]) -> GradingSummary:
    lines = list(lines)
    graded_weight = sum(to_float_or_none(l.quantity) or 0.0 for l in lines)
    graded_pct = sum(to_float_or_none(l.percentage) or 0.0 for l in lines)

    shrink_pct = max(0.0, 100.0 - graded_pct)
    shrink_weight = (shrink_pct / 100.0) * total_weight if total_weight > 0 else 0.0

    return GradingSummary(
        total_weight=float(total_weight),
        graded_weight=float(graded_weight),
        graded_percentage=float(graded_pct),
        shrinkage_weight=float(shrink_weight),
        shrinkage_percentage=float(shrink_pct),
        lines=lines,
    )


# -------------------------
# Persistence
# -------------------------

_GRADING_SELECT = """
    SELECT g.*,
           pr.species AS species,
           pr.unit_of_measurement AS unit,
           p.purchase_quantity AS purchase_quantity,
           p.landing_date AS landing_date,
           v.registration_number AS vessel_registration,
           s.id AS supplier_id,
           s.name AS supplier_name
    FROM grading g
    JOIN products pr ON pr.id = g.product_id
    JOIN purchases p ON p.id = g.purchase_id
    JOIN vessels v ON v.id = p.vessel_id
    JOIN suppliers s ON s.id = p.supplier_id
"""


def get_grading(conn, grading_id: int):
    rows = q(conn, _GRADING_SELECT + " WHERE g.id=?", (int(grading_id),))
    return rows[0] if rows else None


def list_gradings(conn, *, purchase_ids: Optional[Iterable[int]] = None):
    if purchase_ids is None:
        return q(conn, _GRADING_SELECT + " ORDER BY g.graded_at DESC, g.id DESC")
    ids = [int(i) for i in purchase_ids]
    if not ids:
        return []
    marks = ", ".join("?" for _ in ids)
    return q(conn, _GRADING_SELECT + f" WHERE g.purchase_id IN ({marks}) ORDER BY g.graded_at DESC, g.id DESC", ids)


def available_lots(conn):
    return q(conn, _GRADING_SELECT + " WHERE g.available_quantity > 0 ORDER BY g.graded_at ASC, g.id ASC")


def graded_quantity(conn, purchase_id: int) -> float:
    r = q(conn, "SELECT COALESCE(SUM(quantity),0) AS qty FROM grading WHERE purchase_id=?", (int(purchase_id),))
    return float(r[0]["qty"])


def pending_grading(conn):
    return q(
        conn,
        """
        SELECT p.*
        FROM purchases p
        WHERE p.is_downstream_purchase=1
          AND NOT EXISTS (SELECT 1 FROM grading g WHERE g.purchase_id = p.id)
        ORDER BY p.landing_date ASC, p.id ASC
        """,
    )


def _shrinkage(total_weight: float, graded_weight: float) -> tuple[Optional[float], Optional[float]]:
    """(weight, percentage) left ungraded, or (None, None) when nothing is."""
    weight = max(0.0, float(total_weight) - float(graded_weight))
    if weight <= QTY_EPS or total_weight <= 0:
        return None, None
    return weight, round(weight / float(total_weight) * 100.0, 2)


def create_grading(conn, data: GradingInput) -> list[int]:
    """
    Grade one downstream purchase into several lots (one grading row per grade).

    Rows share the crate figures and total weight of the grading. Shrinkage is
    what the purchase's gradings so far leave ungraded, and is rewritten on
    the purchase's earlier rows as well.
    """
    rows = q(conn, "SELECT * FROM purchases WHERE id=?", (int(data.purchase_id),))
    if not rows:
        raise ValueError("Purchase not found.")
    purchase = rows[0]
    if not int(purchase["is_downstream_purchase"]):
        raise ValueError("Only distributor purchases can be graded.")

    graded_on = iso_date(data.graded_on) or iso_today()
    total_weight = grading_total_weight(purchase["purchase_quantity"], data.num_crates, data.weight_per_crate)
    if total_weight <= 0:
        raise ValueError("Total weight must be > 0. Enter crates and weight per crate.")

    lines = normalize_lines(data.lines, total_weight)
    summary = summarize_grading(total_weight, lines)
    if summary.graded_percentage > 100.0 + QTY_EPS:
        raise ValueError("Total grade percentages cannot exceed 100%")

    keep = [l for l in lines if l.grade and (l.quantity or 0) > 0]
    if not keep:
        raise ValueError("Enter at least one grade with a weight > 0.")

    active = {str(r["code"]) for r in q(conn, "SELECT code FROM grades WHERE is_active=1")}
    unknown = sorted({l.grade for l in keep if l.grade not in active})
    if unknown:
        raise ValueError(f"Unknown or inactive grade(s): {', '.join(unknown)}.")

    already = graded_quantity(conn, int(data.purchase_id))
    new_qty = sum(float(l.quantity) for l in keep)
    if already + new_qty > total_weight + QTY_EPS:
        raise ValueError(
            f"Graded weight ({already + new_qty:.2f}) would exceed the purchase weight ({total_weight:.2f})."
        )

    crates = to_float_or_none(data.num_crates)
    if crates is None and purchase["num_crates"] is not None:
        crates = float(purchase["num_crates"])
    wpc = to_float_or_none(data.weight_per_crate)

    # Shrinkage covers every grading of the purchase, not just this one
    shrink = _shrinkage(total_weight, already + new_qty)

    created: list[int] = []
    with atomic(conn):
        u(
            conn,
            "UPDATE grading SET shrinkage_weight=?, shrinkage_percentage=? WHERE purchase_id=?",
            (*shrink, int(purchase["id"])),
            commit=False,
        )
        for l in keep:
            gid = x(
                conn,
                """
                INSERT INTO grading (
                    purchase_id, product_id, grade, quantity, available_quantity, percentage_of_purchase,
                    graded_by, graded_at, purchased_on, num_crates, weight_per_crate, total_weight,
                    shrinkage_weight, shrinkage_percentage, notes
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    int(purchase["id"]),
                    int(purchase["product_id"]),
                    l.grade,
                    float(l.quantity),
                    float(l.quantity),
                    l.percentage,
                    blank_to_none(data.graded_by),
                    graded_on,
                    purchase["landing_date"],
                    crates,
                    wpc,
                    float(total_weight),
                    *shrink,
                    blank_to_none(data.notes),
                ),
                commit=False,
            )
            created.append(gid)

    logger.info(
        "Graded purchase %s into %d lot(s); shrinkage %.2f%%",
        purchase["id"],
        len(created),
        shrink[1] or 0.0,
    )
    return created


def delete_grading(conn, grading_id: int) -> None:
    rows = q(
        conn,
        "SELECT purchase_id, quantity, available_quantity, total_weight FROM grading WHERE id=?",
        (int(grading_id),),
    )
    if not rows:
        raise ValueError("Grading record not found.")
    sold = q(conn, "SELECT COUNT(1) AS n FROM sale_items WHERE grade_id=?", (int(grading_id),))[0]
    if int(sold["n"]) or float(rows[0]["available_quantity"]) < float(rows[0]["quantity"]) - QTY_EPS:
        logger.warning("Refused to delete grading %s: already sold from", grading_id)
        raise ValueError("This graded lot has sales against it and cannot be deleted.")
    purchase_id = int(rows[0]["purchase_id"])
    with atomic(conn):
        u(conn, "DELETE FROM grading WHERE id=?", (int(grading_id),), commit=False)
        shrink = _shrinkage(float(rows[0]["total_weight"] or 0.0), graded_quantity(conn, purchase_id))
        u(
            conn,
            "UPDATE grading SET shrinkage_weight=?, shrinkage_percentage=? WHERE purchase_id=?",
            (*shrink, purchase_id),
            commit=False,
        )
    logger.info("Deleted grading %s", grading_id)
