import pytest

from seachain.services.reference import (
    compose_location_type,
    create_entity,
    delete_entity,
    get_entity,
    list_entities,
    location_kind,
    location_scope,
    sync_distributor_suppliers,
    update_entity,
    vessels_for_supplier,
)


def test_create_applies_defaults_and_portal(conn):
    sid = create_entity(conn, "suppliers", {"name": "  Cove Fishers  ", "type": ""})
    s = get_entity(conn, "suppliers", sid)
    assert s["name"] == "Cove Fishers"
    assert s["type"] == "fisherman"
    assert s["portal"] == "tracker"

    pid = create_entity(conn, "products", {"species": "Scallop"})
    assert get_entity(conn, "products", pid)["unit_of_measurement"] == "lbs"


def test_title_field_is_required(conn):
    with pytest.raises(ValueError, match="Supplier name is required"):
        create_entity(conn, "suppliers", {"name": " "})
    with pytest.raises(ValueError, match="Vessel registration number is required"):
        create_entity(conn, "vessels", {"license_number": "L-9"})


def test_email_is_validated(conn):
    with pytest.raises(ValueError, match="not a valid e-mail"):
        create_entity(conn, "customers", {"name": "X", "contact_email": "nope"})


def test_unknown_entity_and_portal(conn):
    with pytest.raises(ValueError, match="Unknown entity"):
        list_entities(conn, "boats")
    with pytest.raises(ValueError, match="Invalid portal"):
        create_entity(conn, "customers", {"name": "X"}, portal="elsewhere")


def test_list_filters_by_portal(conn, refs):
    tracker = [c["name"] for c in list_entities(conn, "customers", portal="tracker")]
    distributor = [c["name"] for c in list_entities(conn, "customers", portal="distributor")]
    assert tracker == ["Atlantic Seafoods"]
    assert distributor == ["Harbourfront Market"]
    assert len(list_entities(conn, "customers")) == 2


def test_duplicate_vessel_registration_is_refused(conn, refs):
    with pytest.raises(ValueError, match="Could not save vessel"):
        create_entity(conn, "vessels", {"registration_number": "NS-1"})


def test_update_entity(conn, refs):
    update_entity(conn, "vessels", refs["vessel"], {"registration_number": "NS-1", "captain_name": "Ana"})
    v = get_entity(conn, "vessels", refs["vessel"])
    assert v["captain_name"] == "Ana"
    assert v["gear_type"] == "Trap/Pots"
    assert v["supplier_id"] is None
    assert v["updated_at"] is not None

    with pytest.raises(ValueError, match="not found"):
        update_entity(conn, "vessels", 999, {"registration_number": "NS-9"})


def test_delete_in_use_is_refused(conn, refs):
    with pytest.raises(ValueError, match="in use"):
        delete_entity(conn, "suppliers", refs["fisher"])
    assert get_entity(conn, "suppliers", refs["fisher"]) is not None

    delete_entity(conn, "suppliers", refs["buyer"])
    assert get_entity(conn, "suppliers", refs["buyer"]) is None
    with pytest.raises(ValueError, match="not found"):
        delete_entity(conn, "suppliers", refs["buyer"])


def test_vessels_for_supplier(conn, refs):
    assert [v["registration_number"] for v in vessels_for_supplier(conn, refs["fisher"])] == ["NS-1"]
    assert vessels_for_supplier(conn, refs["buyer"]) == []


def test_location_type_scope_and_kind():
    assert location_scope("external_wharf") == "external"
    assert location_scope("internal_plant") == "internal"
    assert location_scope("wharf") == "internal"
    assert location_scope(None) == "internal"
    assert location_kind("external_wharf") == "wharf"
    assert location_kind("wharf") == "wharf"
    assert compose_location_type("External", "cold storage") == "external_cold_storage"
    with pytest.raises(ValueError):
        compose_location_type("outside", "wharf")


def test_sync_distributor_suppliers_is_idempotent(conn, refs):
    create_entity(conn, "suppliers", {"name": "atlantic seafoods "}, portal="distributor")
    create_entity(conn, "customers", {"name": "Bay Lobster Co", "contact_email": "a@b.co"})

    assert sync_distributor_suppliers(conn) == 1
    assert sync_distributor_suppliers(conn) == 0

    names = sorted(s["name"] for s in list_entities(conn, "suppliers", portal="distributor"))
    assert names == ["Bay Lobster Co", "atlantic seafoods"]
