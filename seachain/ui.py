from __future__ import annotations

from typing import Any, Iterable, Optional

import pandas as pd
import streamlit as st

from seachain.services.reference import (
    compose_location_type,
    create_entity,
    delete_entity,
    entity_spec,
    list_entities,
    location_kind,
    location_scope,
    update_entity,
)

NEW = "➕ New"

SUPPLIER_TYPES = ["fisherman", "buyer", "co-op", "processor", "other"]
CUSTOMER_TYPES = ["retailer", "distributor", "restaurant", "processor", "other"]
LOCATION_KINDS = ["wharf", "processing", "warehouse", "market", "other"]
GEAR_TYPES = ["Trap/Pots", "Longline", "Gillnet", "Trawl", "Dredge", "Other"]
UNITS = ["lbs", "kg"]


def frame(rows: Iterable[Any], columns: Optional[dict[str, str]] = None) -> pd.DataFrame:
    """sqlite rows -> DataFrame; `columns` selects and renames (db name -> header)."""
    df = pd.DataFrame([dict(r) for r in rows])
    if columns and not df.empty:
        df = df[[c for c in columns if c in df.columns]].rename(columns=columns)
    return df


def show_table(rows, columns: Optional[dict[str, str]] = None, *, empty: str = "Nothing here yet.") -> None:
    if rows:
        st.dataframe(frame(rows, columns), use_container_width=True, hide_index=True)
    else:
        st.info(empty)


def pick(label: str, rows, fmt, *, key: str, allow_none: bool = False, index: int = 0) -> Optional[int]:
    """Selectbox over rows; returns the chosen row id."""
    options: list[Optional[int]] = ([None] if allow_none else []) + [int(r["id"]) for r in rows]
    by_id = {int(r["id"]): r for r in rows}
    if not options:
        st.selectbox(label, options=["—"], disabled=True, key=key)
        return None
    return st.selectbox(
        label,
        options=options,
        index=min(index, len(options) - 1),
        format_func=lambda i: "—" if i is None else fmt(by_id[i]),
        key=key,
    )


def _index_of(options: list, value, default: int = 0) -> int:
    try:
        return options.index(value)
    except ValueError:
        return default


def _choice(label: str, options: list[str], current: Optional[str], *, key: str) -> str:
    opts = list(options)
    if current and current not in opts:
        opts.append(current)
    return st.selectbox(label, options=opts, index=_index_of(opts, current), key=key)


def _ref_select(label: str, rows, current: Optional[int], *, key: str, title: str = "name") -> Optional[int]:
    ids: list[Optional[int]] = [None] + [int(r["id"]) for r in rows]
    names = {int(r["id"]): str(r[title]) for r in rows}
    return st.selectbox(
        label,
        options=ids,
        index=_index_of(ids, current),
        format_func=lambda i: "—" if i is None else names[i],
        key=key,
    )


def _entity_form(conn, table: str, portal: str, record, key: str) -> dict[str, Any]:
    r = dict(record) if record is not None else {}
    data: dict[str, Any] = {}

    if table in ("suppliers", "customers"):
        data["name"] = st.text_input("Name *", value=r.get("name") or "", key=f"{key}_name")
        types = SUPPLIER_TYPES if table == "suppliers" else CUSTOMER_TYPES
        data["type"] = _choice("Type", types, r.get("type"), key=f"{key}_type")
        data["contact_name"] = st.text_input("Contact name", value=r.get("contact_name") or "", key=f"{key}_cn")
        data["contact_email"] = st.text_input("Contact e-mail", value=r.get("contact_email") or "", key=f"{key}_ce")
        data["contact_phone"] = st.text_input("Contact phone", value=r.get("contact_phone") or "", key=f"{key}_cp")
        locations = list_entities(conn, "locations", portal=portal)
        data["location_id"] = _ref_select("Location", locations, r.get("location_id"), key=f"{key}_loc")

    elif table == "vessels":
        data["registration_number"] = st.text_input(
            "Registration number *", value=r.get("registration_number") or "", key=f"{key}_reg"
        )
        data["license_number"] = st.text_input("License number", value=r.get("license_number") or "", key=f"{key}_lic")
        data["gear_type"] = _choice("Gear type", GEAR_TYPES, r.get("gear_type") or GEAR_TYPES[0], key=f"{key}_gear")
        data["captain_name"] = st.text_input("Captain", value=r.get("captain_name") or "", key=f"{key}_cap")
        suppliers = list_entities(conn, "suppliers", portal="tracker")
        data["supplier_id"] = _ref_select("Owner (supplier)", suppliers, r.get("supplier_id"), key=f"{key}_sup")

    elif table == "products":
        data["species"] = st.text_input("Species *", value=r.get("species") or "", key=f"{key}_species")
        data["unit_of_measurement"] = _choice(
            "Unit of measurement", UNITS, r.get("unit_of_measurement") or UNITS[0], key=f"{key}_unit"
        )

    elif table == "locations":
        data["name"] = st.text_input("Name *", value=r.get("name") or "", key=f"{key}_name")
        scope = st.radio(
            "Scope",
            options=["internal", "external"],
            index=_index_of(["internal", "external"], location_scope(r.get("type"))),
            horizontal=True,
            key=f"{key}_scope",
        )
        kind = _choice("Type", LOCATION_KINDS, location_kind(r.get("type")) or LOCATION_KINDS[0], key=f"{key}_kind")
        data["type"] = compose_location_type(scope, kind)
        data["address"] = st.text_area("Address", value=r.get("address") or "", height=80, key=f"{key}_addr")

    elif table == "fishing_zones":
        data["name"] = st.text_input("Name *", value=r.get("name") or "", key=f"{key}_name")
        data["description"] = st.text_area("Description", value=r.get("description") or "", height=80, key=f"{key}_desc")

    return data


def _list_view(conn, table: str, portal: str):
    rows = list_entities(conn, table, portal=portal)
    if table == "vessels":
        owners = {int(s["id"]): s["name"] for s in list_entities(conn, "suppliers")}
        data = [{**dict(r), "owner": owners.get(r["supplier_id"], "-")} for r in rows]
        show_table(
            data,
            {
                "registration_number": "Registration",
                "license_number": "License",
                "gear_type": "Gear",
                "captain_name": "Captain",
                "owner": "Owner",
            },
        )
    elif table in ("suppliers", "customers"):
        locs = {int(l["id"]): l["name"] for l in list_entities(conn, "locations")}
        data = [{**dict(r), "location": locs.get(r["location_id"], "-")} for r in rows]
        show_table(
            data,
            {
                "name": "Name",
                "type": "Type",
                "contact_name": "Contact",
                "contact_email": "Email",
                "contact_phone": "Phone",
                "location": "Location",
            },
        )
    elif table == "locations":
        data = [{**dict(r), "scope": location_scope(r["type"]), "kind": location_kind(r["type"])} for r in rows]
        show_table(data, {"name": "Name", "scope": "Scope", "kind": "Type", "address": "Address"})
    elif table == "products":
        show_table(rows, {"species": "Species", "unit_of_measurement": "Unit"})
    else:
        show_table(rows, {"name": "Name", "description": "Description"})
    return rows


def render_entity_page(conn, table: str, *, portal: str = "tracker") -> None:
    """List + add/edit/delete page for one master-data table."""
    spec = entity_spec(table)
    tab_list, tab_edit = st.tabs([f"{spec.label}s", "Add / Edit"])

    with tab_list:
        rows = _list_view(conn, table, portal)

    with tab_edit:
        by_id = {int(r["id"]): r for r in rows}
        choice = st.selectbox(
            f"{spec.label}",
            options=[NEW] + list(by_id),
            format_func=lambda i: i if i == NEW else str(by_id[i][spec.title_field]),
            key=f"{portal}_{table}_pick",
        )
        record = None if choice == NEW else by_id[choice]
        form_key = f"{portal}_{table}_{choice}"

        data = _entity_form(conn, table, portal, record, form_key)

        c1, c2 = st.columns([1, 1])
        with c1:
            if st.button(f"{'Create' if record is None else 'Update'} {spec.label}", type="primary", key=f"{form_key}_save"):
                try:
                    if record is None:
                        create_entity(conn, table, data, portal=portal)
                    else:
                        update_entity(conn, table, int(record["id"]), data)
                    st.success(f"{spec.label} {'created' if record is None else 'updated'} successfully")
                    st.rerun()
                except Exception as e:
                    st.error(str(e))
        with c2:
            if record is not None:
                confirm = st.checkbox(f"Confirm delete of '{record[spec.title_field]}'", key=f"{form_key}_confirm")
                if st.button(f"Delete {spec.label}", disabled=not confirm, key=f"{form_key}_delete"):
                    try:
                        delete_entity(conn, table, int(record["id"]))
                        st.success(f"{spec.label} deleted")
                        st.rerun()
                    except Exception as e:
                        st.error(str(e))
