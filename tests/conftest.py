from __future__ import annotations

from pathlib import Path

import pytest

from seachain.db import _connect, ensure_schema
from seachain.services.demo_data import upsert_reference_data
from seachain.services.purchases import PurchaseInput, create_purchase
from seachain.services.reference import create_entity


@pytest.fixture
def conn():
    c = _connect(Path(":memory:"))
    ensure_schema(c)
    upsert_reference_data(c)
    yield c
    c.close()


@pytest.fixture
def refs(conn) -> dict:
    """A fisherman with one vessel, a wharf buyer, a distributor customer, and the default product/zone."""
    fisher = create_entity(conn, "suppliers", {"name": "Harbour Fishers", "type": "fisherman"})
    buyer = create_entity(conn, "suppliers", {"name": "Wharf Buyers", "type": "buyer"})
    vessel = create_entity(
        conn,
        "vessels",
        {"registration_number": "NS-1", "license_number": "LIC-1", "gear_type": "Longline", "supplier_id": fisher},
    )
    distributor = create_entity(conn, "customers", {"name": "Atlantic Seafoods", "type": "distributor"})
    retailer = create_entity(conn, "customers", {"name": "Harbourfront Market"}, portal="distributor")
    product = int(conn.execute("SELECT id FROM products WHERE species='Lobster'").fetchone()["id"])
    zone = int(conn.execute("SELECT id FROM fishing_zones WHERE name='LFA 34'").fetchone()["id"])
    return {
        "fisher": fisher,
        "buyer": buyer,
        "vessel": vessel,
        "distributor": distributor,
        "retailer": retailer,
        "product": product,
        "zone": zone,
    }


@pytest.fixture
def purchase_input(refs):
    def _make(**overrides) -> PurchaseInput:
        values = dict(
            supplier_id=refs["fisher"],
            vessel_id=refs["vessel"],
            product_id=refs["product"],
            fishing_zone_id=refs["zone"],
            harvest_quantity=250.0,
            purchase_quantity=200.0,
            trip_start_date="2024-05-01",
            trip_end_date="2024-05-03",
            landing_date="2024-05-03",
        )
        values.update(overrides)
        return PurchaseInput(**values)

    return _make


@pytest.fixture
def make_purchase(conn, purchase_input):
    def _make(**overrides) -> int:
        return create_purchase(conn, purchase_input(**overrides))

    return _make
