from __future__ import annotations

import logging
import re
import sqlite3
from dataclasses import dataclass, field
from typing import Any, Optional

from seachain.db import atomic, q, u, x
from seachain.utils import blank_to_none, iso_now

logger = logging.getLogger(__name__)

PORTALS = ("tracker", "distributor")
DEFAULT_GEAR_TYPE = "Trap/Pots"

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


@dataclass(frozen=True)
class EntitySpec:
    table: str
    label: str
    title_field: str
    fields: tuple[str, ...]
    defaults: dict[str, Any] = field(default_factory=dict)
    has_portal: bool = False
    order_by: str = "id DESC"


ENTITIES: dict[str, EntitySpec] = {
    "suppliers": EntitySpec(
        table="suppliers",
        label="Supplier",
        title_field="name",
        fields=("name", "type", "contact_name", "contact_email", "contact_phone", "location_id"),
        defaults={"type": "fisherman"},
        has_portal=True,
        order_by="name COLLATE NOCASE",
    ),
    "customers": EntitySpec(
        table="customers",
        label="Customer",
        title_field="name",
        fields=("name", "type", "contact_name", "contact_email", "contact_phone", "location_id"),
        defaults={"type": "retailer"},
        has_portal=True,
        order_by="name COLLATE NOCASE",
    ),
    "vessels": EntitySpec(
        table="vessels",
        label="Vessel",
        title_field="registration_number",
        fields=("registration_number", "license_number", "gear_type", "captain_name", "supplier_id"),
        defaults={"gear_type": DEFAULT_GEAR_TYPE},
        order_by="registration_number COLLATE NOCASE",
    ),
    "products": EntitySpec(
        table="products",
        label="Product",
        title_field="species",
        fields=("species", "unit_of_measurement"),
        defaults={"unit_of_measurement": "lbs"},
        order_by="species COLLATE NOCASE",
    ),
    "locations": EntitySpec(
        table="locations",
        label="Location",
        title_field="name",
        fields=("name", "type", "address"),
        defaults={"type": "wharf"},
        has_portal=True,
        order_by="created_at DESC, id DESC",
    ),
    "fishing_zones": EntitySpec(
        table="fishing_zones",
        label="Fishing zone",
        title_field="name",
        fields=("name", "description"),
        order_by="name COLLATE NOCASE",
    ),
}


def entity_spec(table: str) -> EntitySpec:
    try:
        return ENTITIES[table]
    except KeyError:
        raise ValueError(f"Unknown entity '{table}'.")


def _check_portal(portal: Optional[str]) -> Optional[str]:
    if portal is None:
        return None
    p = str(portal).strip().lower()
    if p not in PORTALS:
        raise ValueError(f"Invalid portal '{portal}'. Use one of: {', '.join(PORTALS)}.")
    return p


def _clean(spec: EntitySpec, data: dict[str, Any]) -> dict[str, Any]:
    row: dict[str, Any] = {}
    for f in spec.fields:
        v = data.get(f)
        if f.endswith("_id"):
            row[f] = int(v) if v not in (None, "") else None
        else:
            row[f] = blank_to_none(v)
        if row[f] is None and f in spec.defaults:
            row[f] = spec.defaults[f]

    if not row.get(spec.title_field):
        raise ValueError(f"{spec.label} {spec.title_field.replace('_', ' ')} is required.")

    email = row.get("contact_email")
    if email and not _EMAIL_RE.match(email):
        raise ValueError(f"'{email}' is not a valid e-mail address.")
    return row


# -------------------------
# Generic CRUD
# -------------------------

def list_entities(conn, table: str, *, portal: Optional[str] = None):
    spec = entity_spec(table)
    portal = _check_portal(portal)
    if spec.has_portal and portal:
        return q(conn, f"SELECT * FROM {spec.table} WHERE portal=? ORDER BY {spec.order_by}", (portal,))
    return q(conn, f"SELECT * FROM {spec.table} ORDER BY {spec.order_by}")


def get_entity(conn, table: str, entity_id: int):
    spec = entity_spec(table)
    rows = q(conn, f"SELECT * FROM {spec.table} WHERE id=?", (int(entity_id),))
    return rows[0] if rows else None


def create_entity(conn, table: str, data: dict[str, Any], *, portal: Optional[str] = None) -> int:
    spec = entity_spec(table)
    row = _clean(spec, data)
    if spec.has_portal:
        row["portal"] = _check_portal(portal) or "tracker"

    cols = list(row)
    try:
        new_id = x(
            conn,
            f"INSERT INTO {spec.table} ({', '.join(cols)}) VALUES ({', '.join('?' for _ in cols)})",
            [row[c] for c in cols],
        )
    except sqlite3.IntegrityError as e:
        conn.rollback()
        raise ValueError(f"Could not save {spec.label.lower()}: {e}") from e
    logger.info("Created %s %s (%s)", spec.label.lower(), new_id, row[spec.title_field])
    return new_id


def update_entity(conn, table: str, entity_id: int, data: dict[str, Any]) -> None:
    spec = entity_spec(table)
    if get_entity(conn, table, entity_id) is None:
        raise ValueError(f"{spec.label} not found.")
    row = _clean(spec, data)
    row["updated_at"] = iso_now()

    assignments = ", ".join(f"{c}=?" for c in row)
    try:
        u(conn, f"UPDATE {spec.table} SET {assignments} WHERE id=?", [*row.values(), int(entity_id)])
    except sqlite3.IntegrityError as e:
        conn.rollback()
        raise ValueError(f"Could not save {spec.label.lower()}: {e}") from e
    logger.info("Updated %s %s", spec.label.lower(), entity_id)


def delete_entity(conn, table: str, entity_id: int) -> None:
    spec = entity_spec(table)
    try:
        n = u(conn, f"DELETE FROM {spec.table} WHERE id=?", (int(entity_id),))
    except sqlite3.IntegrityError:
        conn.rollback()
        logger.warning("Refused to delete %s %s: still referenced", spec.label.lower(), entity_id)
        raise ValueError(f"{spec.label} is in use by other records and cannot be deleted.")
    if n == 0:
        raise ValueError(f"{spec.label} not found.")
    logger.info("Deleted %s %s", spec.label.lower(), entity_id)


# -------------------------
# Entity-specific helpers
# -------------------------

def vessels_for_supplier(conn, supplier_id: int):
    return q(
        conn,
        "SELECT * FROM vessels WHERE supplier_id=? ORDER BY registration_number COLLATE NOCASE",
        (int(supplier_id),),
    )


def location_scope(location_type: Optional[str]) -> str:
    t = location_type or ""
    if t.startswith("external_"):
        return "external"
    return "internal"


def location_kind(location_type: Optional[str]) -> str:
    """'external_wharf' -> 'wharf'; unprefixed types are returned as-is."""
    m = re.match(r"^(internal|external)_(.+)$", location_type or "")
    return m.group(2) if m else (location_type or "")


def compose_location_type(scope: str, kind: str) -> str:
    scope = (scope or "internal").strip().lower()
    if scope not in {"internal", "external"}:
        raise ValueError("Location scope must be 'internal' or 'external'.")
    kind = (kind or "").strip().lower().replace(" ", "_")
    if not kind:
        raise ValueError("Location type is required.")
    return f"{scope}_{kind}"


def sync_distributor_suppliers(conn) -> int:
    """
    Tracker customers are the distributor's suppliers. Copies every tracker
    customer not already present (by trimmed, case-insensitive name) into
    suppliers with portal='distributor'.
    """
    existing = q(conn, "SELECT name FROM suppliers WHERE portal='distributor'")
    existing_names = {str(r["name"]).strip().lower() for r in existing}

    customers = q(
        conn,
        """
        SELECT name, type, contact_name, contact_email, contact_phone
        FROM customers
        WHERE portal='tracker'
        ORDER BY id
        """,
    )

    added = 0
    with atomic(conn):
        for c in customers:
            name = blank_to_none(c["name"])
            if not name or name.lower() in existing_names:
                continue
            x(
                conn,
                """
                INSERT INTO suppliers (name, type, contact_name, contact_email, contact_phone, location_id, portal)
                VALUES (?, ?, ?, ?, ?, NULL, 'distributor')
                """,
                (name, c["type"], c["contact_name"], c["contact_email"], c["contact_phone"]),
                commit=False,
            )
            existing_names.add(name.lower())
            added += 1

    if added:
        logger.info("Synced %d tracker customer(s) into distributor suppliers", added)
    return added
