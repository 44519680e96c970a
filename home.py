from __future__ import annotations

import streamlit as st

from seachain.config import get_settings
from seachain.db import get_conn, ensure_schema
from seachain.services.demo_data import upsert_reference_data

st.title("🦞 SeaChain")
st.caption("Seafood supply-chain records: harvest and wharf purchases upstream, grading and sales downstream.")

settings = get_settings()
conn = get_conn(settings.db_path)
ensure_schema(conn)
upsert_reference_data(conn)

with st.sidebar:
    st.subheader("Environment")
    st.write(f"**Data directory:** `{settings.data_dir}`")
    st.write(f"**Database:** `{settings.db_path.name}`")

st.subheader("Select your portal to continue")

c1, c2 = st.columns(2, gap="large")
with c1:
    with st.container(border=True):
        st.markdown("### 🚢 SeaChain Tracker")
        st.write("Harvester / wharf-buyer records: vessel trips, purchases, and sales to distributors.")
        st.page_link("pages/tracker/1_📊_Dashboard.py", label="Open Tracker", icon="➡️")
with c2:
    with st.container(border=True):
        st.markdown("### 🏢 Distributor")
        st.write("Incoming purchases from tracker sales, grading and sorting, and graded sales.")
        st.page_link("pages/distributor/1_📊_Dashboard.py", label="Open Distributor", icon="➡️")

st.info(
    "New here? Load demo data in **🧪 Data Management** (Admin section), then follow a lot from "
    "**Purchases** → **Sales** → distributor **Grading** → **Traceability**.",
    icon="ℹ️",
)
