SCHEMA_SQL = r"""
-- Locations (wharves, plants, warehouses). type may carry an internal_/external_ scope prefix.
CREATE TABLE IF NOT EXISTS locations (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  name TEXT NOT NULL,
  type TEXT,
  address TEXT,
  portal TEXT NOT NULL DEFAULT 'tracker',   -- tracker / distributor
  created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
  updated_at TEXT
);

CREATE TABLE IF NOT EXISTS suppliers (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  name TEXT NOT NULL,
  type TEXT,
  contact_name TEXT,
  contact_email TEXT,
  contact_phone TEXT,
  location_id INTEGER,
  portal TEXT NOT NULL DEFAULT 'tracker',
  created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
  updated_at TEXT,
  FOREIGN KEY (location_id) REFERENCES locations(id)
);

CREATE TABLE IF NOT EXISTS customers (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  name TEXT NOT NULL,
  type TEXT,
  contact_name TEXT,
  contact_email TEXT,
  contact_phone TEXT,
  location_id INTEGER,
  portal TEXT NOT NULL DEFAULT 'tracker',
  created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
  updated_at TEXT,
  FOREIGN KEY (location_id) REFERENCES locations(id)
);

CREATE TABLE IF NOT EXISTS vessels (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  registration_number TEXT NOT NULL UNIQUE,
  license_number TEXT,
  gear_type TEXT,
  captain_name TEXT,
  supplier_id INTEGER,
  created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
  updated_at TEXT,
  FOREIGN KEY (supplier_id) REFERENCES suppliers(id)
);

CREATE TABLE IF NOT EXISTS products (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  species TEXT NOT NULL,
  unit_of_measurement TEXT,
  created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
  updated_at TEXT
);

CREATE TABLE IF NOT EXISTS fishing_zones (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  name TEXT NOT NULL,
  description TEXT,
  created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
  updated_at TEXT
);

-- Grade setup (Jumbo, Selects, ...). grading.grade stores the code.
CREATE TABLE IF NOT EXISTS grades (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  name TEXT NOT NULL,
  code TEXT NOT NULL UNIQUE,
  description TEXT,
  sort_order INTEGER NOT NULL DEFAULT 0,
  is_active INTEGER NOT NULL DEFAULT 1,
  created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
  updated_at TEXT
);

-- Purchases (upstream trips, or downstream purchases created from a tracker sale)
CREATE TABLE IF NOT EXISTS purchases (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  supplier_id INTEGER NOT NULL,
  vessel_id INTEGER NOT NULL,
  product_id INTEGER NOT NULL,
  fishing_zone_id INTEGER NOT NULL,

  harvest_quantity REAL NOT NULL,
  purchase_quantity REAL NOT NULL,
  remaining_quantity REAL NOT NULL,      -- purchase_quantity - sold via sale_items
  num_crates REAL,

  gear_type TEXT,
  trip_start_date TEXT NOT NULL,         -- ISO date
  trip_end_date TEXT NOT NULL,
  landing_date TEXT NOT NULL,
  notes TEXT,

  is_downstream_purchase INTEGER NOT NULL DEFAULT 0,
  source_sale_id INTEGER,
  source_sale_item_id INTEGER,           -- the tracker sale line this purchase was created from
  downstream_customer_id INTEGER,

  created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
  updated_at TEXT,

  FOREIGN KEY (supplier_id) REFERENCES suppliers(id),
  FOREIGN KEY (vessel_id) REFERENCES vessels(id),
  FOREIGN KEY (product_id) REFERENCES products(id),
  FOREIGN KEY (fishing_zone_id) REFERENCES fishing_zones(id),
  FOREIGN KEY (source_sale_id) REFERENCES sales(id),
  FOREIGN KEY (source_sale_item_id) REFERENCES sale_items(id),
  FOREIGN KEY (downstream_customer_id) REFERENCES customers(id)
);

-- Grading: one row per grade of a purchase (many rows share purchase_id)
CREATE TABLE IF NOT EXISTS grading (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  purchase_id INTEGER NOT NULL,
  product_id INTEGER NOT NULL,
  grade TEXT NOT NULL,                   -- grades.code
  quantity REAL NOT NULL,
  available_quantity REAL NOT NULL,      -- quantity - sold via sale_items
  percentage_of_purchase REAL,

  graded_by TEXT,
  graded_at TEXT NOT NULL,
  purchased_on TEXT,
  num_crates REAL,
  weight_per_crate REAL,
  total_weight REAL,
  shrinkage_weight REAL,
  shrinkage_percentage REAL,
  notes TEXT,

  created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,

  FOREIGN KEY (purchase_id) REFERENCES purchases(id),
  FOREIGN KEY (product_id) REFERENCES products(id)
);

CREATE TABLE IF NOT EXISTS sales (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  seller_id INTEGER NOT NULL,
  customer_id INTEGER NOT NULL,
  sale_date TEXT NOT NULL,
  notes TEXT,
  portal TEXT NOT NULL DEFAULT 'tracker',
  created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
  updated_at TEXT,
  FOREIGN KEY (seller_id) REFERENCES suppliers(id),
  FOREIGN KEY (customer_id) REFERENCES customers(id)
);

-- Sale lines draw from a raw purchase (tracker) or a graded lot (distributor)
CREATE TABLE IF NOT EXISTS sale_items (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  sale_id INTEGER NOT NULL,
  purchase_id INTEGER NOT NULL,
  product_id INTEGER NOT NULL,
  grade_id INTEGER,
  quantity REAL NOT NULL,
  percentage_used REAL,
  created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
  FOREIGN KEY (sale_id) REFERENCES sales(id) ON DELETE CASCADE,
  FOREIGN KEY (purchase_id) REFERENCES purchases(id),
  FOREIGN KEY (product_id) REFERENCES products(id),
  FOREIGN KEY (grade_id) REFERENCES grading(id)
);

CREATE INDEX IF NOT EXISTS idx_grading_purchase ON grading(purchase_id);
CREATE INDEX IF NOT EXISTS idx_sale_items_sale ON sale_items(sale_id);
CREATE INDEX IF NOT EXISTS idx_purchases_source_sale ON purchases(source_sale_id);
"""
