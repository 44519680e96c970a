from __future__ import annotations

import logging
import random
from datetime import date, timedelta

from seachain.db import q, x, ensure_schema
from seachain.services.grades import upsert_default_grades
from seachain.services.grading import GradeLineInput, GradingInput, create_grading
from seachain.services.purchases import PurchaseInput, create_purchase
from seachain.services.reference import create_entity, sync_distributor_suppliers
from seachain.services.sales import GradedItemInput, SaleItemInput, record_distributor_sale, record_sale

logger = logging.getLogger(__name__)

DEFAULT_PRODUCTS = [
    ("Lobster", "lbs"),
    ("Snow Crab", "lbs"),
]
DEFAULT_ZONES = [
    ("LFA 33", "South Shore, Nova Scotia"),
    ("LFA 34", "Southwest Nova Scotia"),
    ("LFA 35", "Bay of Fundy"),
]

# Order matters for FKs
_TABLES = [
    "sale_items",
    "grading",
    "purchases",
    "sales",
    "vessels",
    "suppliers",
    "customers",
    "locations",
    "fishing_zones",
    "products",
    "grades",
]


def upsert_reference_data(conn) -> None:
    ensure_schema(conn)
    upsert_default_grades(conn)

    if not q(conn, "SELECT 1 FROM products LIMIT 1"):
        for species, unit in DEFAULT_PRODUCTS:
            x(conn, "INSERT INTO products (species, unit_of_measurement) VALUES (?, ?)", (species, unit))

    if not q(conn, "SELECT 1 FROM fishing_zones LIMIT 1"):
        for name, desc in DEFAULT_ZONES:
            x(conn, "INSERT INTO fishing_zones (name, description) VALUES (?, ?)", (name, desc))


def wipe_all(conn) -> None:
    # Keep schema, delete data.
    conn.execute("UPDATE purchases SET source_sale_item_id = NULL;")
    for t in _TABLES:
        conn.execute(f"DELETE FROM {t};")
    conn.commit()
    logger.info("Wiped all data")


def load_demo_data(conn, *, seed: int = 7) -> None:
    rnd = random.Random(seed)
    upsert_reference_data(conn)

    wharf = create_entity(conn, "locations", {"name": "Yarmouth Wharf", "type": "internal_wharf", "address": "Water St, Yarmouth"})
    plant = create_entity(
        conn, "locations", {"name": "Halifax Plant", "type": "processing", "address": "Lower Water St"}, portal="distributor"
    )

    fisher = create_entity(conn, "suppliers", {"name": "Harbour Fishers Co-op", "type": "fisherman", "location_id": wharf})
    buyer = create_entity(conn, "suppliers", {"name": "South Shore Wharf Buyers", "type": "buyer", "location_id": wharf})
    vessels = [
        create_entity(
            conn,
            "vessels",
            {"registration_number": f"NS-{1040 + i}", "license_number": f"LIC-{300 + i}", "supplier_id": fisher},
        )
        for i in range(3)
    ]

    distributor = create_entity(
        conn,
        "customers",
        {"name": "Atlantic Seafoods", "type": "distributor", "contact_email": "orders@atlanticseafoods.example", "location_id": plant},
    )
    retailer = create_entity(conn, "customers", {"name": "Harbourfront Market", "type": "retailer"}, portal="distributor")

    products = q(conn, "SELECT id FROM products ORDER BY id")
    zones = q(conn, "SELECT id FROM fishing_zones ORDER BY id")

    base = date.today() - timedelta(days=10)
    purchase_ids: list[int] = []
    for i, vessel_id in enumerate(vessels):
        start = base + timedelta(days=i)
        harvest = round(rnd.uniform(600, 1200), 1)
        purchase_ids.append(
            create_purchase(
                conn,
                PurchaseInput(
                    supplier_id=fisher,
                    vessel_id=vessel_id,
                    product_id=int(products[0]["id"]),
                    fishing_zone_id=int(rnd.choice(zones)["id"]),
                    harvest_quantity=harvest,
                    purchase_quantity=round(harvest * rnd.uniform(0.8, 1.0), 1),
                    trip_start_date=start.isoformat(),
                    trip_end_date=(start + timedelta(days=2)).isoformat(),
                    landing_date=(start + timedelta(days=2)).isoformat(),
                    notes="Demo trip",
                ),
            )
        )

    # Wharf buyer sells part of two trips to the distributor
    sale = record_sale(
        conn,
        seller_id=buyer,
        customer_id=distributor,
        sale_date=(base + timedelta(days=5)).isoformat(),
        notes="Demo sale",
        items=[
            SaleItemInput(purchase_id=purchase_ids[0], percentage_used=60.0),
            SaleItemInput(purchase_id=purchase_ids[1], quantity=300.0),
        ],
    )
    sync_distributor_suppliers(conn)

    # Distributor grades the first downstream purchase, leaving ~6% shrinkage
    ds = q(conn, "SELECT * FROM purchases WHERE id=?", (sale.downstream_purchase_ids[0],))[0]
    lots = create_grading(
        conn,
        GradingInput(
            purchase_id=int(ds["id"]),
            lines=[
                GradeLineInput(grade="selects", percentage=45.0),
                GradeLineInput(grade="jumbo", percentage=20.0),
                GradeLineInput(grade="chicks", percentage=17.0),
                GradeLineInput(grade="culls", percentage=12.0),
            ],
            graded_on=(base + timedelta(days=6)).isoformat(),
            graded_by="Demo grader",
        ),
    )

    lot = q(conn, "SELECT available_quantity FROM grading WHERE id=?", (lots[0],))[0]
    record_distributor_sale(
        conn,
        customer_id=retailer,
        sale_date=(base + timedelta(days=7)).isoformat(),
        notes="Demo graded sale",
        items=[GradedItemInput(grading_id=lots[0], quantity=round(float(lot["available_quantity"]) / 2, 2))],
    )
    logger.info("Loaded demo data (seed=%s)", seed)
