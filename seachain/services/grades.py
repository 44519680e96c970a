from __future__ import annotations

import logging
import re
from typing import Optional

from seachain.db import q, u, x
from seachain.utils import blank_to_none, iso_now

logger = logging.getLogger(__name__)

# (code, name, description)
DEFAULT_GRADES = [
    ("culls", "Culls", "Missing claw or damaged"),
    ("selects", "Selects", "Standard market size"),
    ("chicks", "Chicks", "Under 1 lb"),
    ("quarters", "Quarters", "1 1/4 lb"),
    ("halves", "Halves", "1 1/2 lb"),
    ("jumbo", "Jumbo", "2+ lbs"),
    ("soft_shell", "Soft Shell", "Recently moulted"),
    ("hard_shell", "Hard Shell", "Full, hard shell"),
]


def normalize_grade_code(code: str) -> str:
    """'Soft Shell' -> 'soft_shell'"""
    return re.sub(r"\s+", "_", str(code or "").strip().lower())


def list_grades(conn, *, active_only: bool = False):
    if active_only:
        return q(conn, "SELECT * FROM grades WHERE is_active=1 ORDER BY sort_order, id")
    return q(conn, "SELECT * FROM grades ORDER BY sort_order, id")


def get_grade(conn, grade_id: int):
    rows = q(conn, "SELECT * FROM grades WHERE id=?", (int(grade_id),))
    return rows[0] if rows else None


def grade_labels(conn) -> dict[str, str]:
    return {str(r["code"]): str(r["name"]) for r in list_grades(conn)}


def grade_label(labels: dict[str, str], code: Optional[str]) -> str:
    if not code:
        return "-"
    return labels.get(code, code)


def save_grade(
    conn,
    *,
    name: str,
    code: str,
    description: Optional[str] = None,
    is_active: bool = True,
    grade_id: Optional[int] = None,
) -> int:
    name = blank_to_none(name)
    if not name:
        raise ValueError("Grade name is required.")
    code = normalize_grade_code(code)
    if not code:
        raise ValueError("Grade code is required.")

    clash = q(conn, "SELECT id FROM grades WHERE code=? AND id IS NOT ?", (code, grade_id))
    if clash:
        raise ValueError(f"Grade code '{code}' already exists.")

    if grade_id is None:
        n = int(q(conn, "SELECT COUNT(1) AS n FROM grades")[0]["n"])
        new_id = x(
            conn,
            "INSERT INTO grades (name, code, description, sort_order, is_active) VALUES (?, ?, ?, ?, ?)",
            (name, code, blank_to_none(description), n + 1, 1 if is_active else 0),
        )
        logger.info("Created grade %s (%s)", new_id, code)
        return new_id

    existing = get_grade(conn, grade_id)
    if existing is None:
        raise ValueError("Grade not found.")

    old_code = str(existing["code"])
    if old_code != code and _grade_in_use(conn, old_code):
        raise ValueError(f"Grade '{old_code}' is already used by grading records; its code cannot change.")

    u(
        conn,
        "UPDATE grades SET name=?, code=?, description=?, is_active=?, updated_at=? WHERE id=?",
        (name, code, blank_to_none(description), 1 if is_active else 0, iso_now(), int(grade_id)),
    )
    logger.info("Updated grade %s (%s)", grade_id, code)
    return int(grade_id)


def toggle_grade(conn, grade_id: int) -> bool:
    g = get_grade(conn, grade_id)
    if g is None:
        raise ValueError("Grade not found.")
    active = not bool(g["is_active"])
    u(conn, "UPDATE grades SET is_active=?, updated_at=? WHERE id=?", (1 if active else 0, iso_now(), int(grade_id)))
    return active


def _grade_in_use(conn, code: str) -> bool:
    return bool(q(conn, "SELECT 1 FROM grading WHERE grade=? LIMIT 1", (code,)))


def delete_grade(conn, grade_id: int) -> None:
    g = get_grade(conn, grade_id)
    if g is None:
        raise ValueError("Grade not found.")
    if _grade_in_use(conn, str(g["code"])):
        raise ValueError(f"Grade '{g['name']}' is used by grading records. Deactivate it instead.")
    u(conn, "DELETE FROM grades WHERE id=?", (int(grade_id),))
    logger.info("Deleted grade %s", grade_id)


def upsert_default_grades(conn) -> None:
    for order, (code, name, desc) in enumerate(DEFAULT_GRADES, start=1):
        x(
            conn,
            "INSERT OR IGNORE INTO grades (name, code, description, sort_order) VALUES (?, ?, ?, ?)",
            (name, code, desc, order),
        )
