from __future__ import annotations

import streamlit as st

from seachain.config import configure_logging

configure_logging()

st.set_page_config(page_title="SeaChain", page_icon="🦞", layout="wide")

pages = {
    "": [
        st.Page("home.py", title="Select Portal", icon="🏠", default=True),
    ],
    "SeaChain Tracker": [
        st.Page("pages/tracker/1_📊_Dashboard.py", title="Dashboard", icon="📊", url_path="tracker"),
        st.Page("pages/tracker/2_🛒_Purchases.py", title="Purchases", icon="🛒", url_path="purchases"),
        st.Page("pages/tracker/3_💵_Sales.py", title="Sales", icon="💵", url_path="sales"),
        st.Page("pages/tracker/4_🔎_Traceability.py", title="Traceability", icon="🔎", url_path="traceability"),
        st.Page("pages/tracker/5_👥_Suppliers.py", title="Suppliers", icon="👥", url_path="suppliers"),
        st.Page("pages/tracker/6_🚢_Vessels.py", title="Vessels", icon="🚢", url_path="vessels"),
        st.Page("pages/tracker/7_🐟_Products.py", title="Products", icon="🐟", url_path="products"),
        st.Page("pages/tracker/8_⚓_Customers.py", title="Customers", icon="⚓", url_path="customers"),
        st.Page("pages/tracker/9_📍_Locations.py", title="Locations", icon="📍", url_path="locations"),
        st.Page("pages/tracker/10_🌊_Fishing_Zones.py", title="Fishing Zones", icon="🌊", url_path="fishing-zones"),
    ],
    "Distributor": [
        st.Page("pages/distributor/1_📊_Dashboard.py", title="Dashboard", icon="📊", url_path="distributor"),
        st.Page("pages/distributor/2_🛒_Purchases.py", title="Purchases", icon="🛒", url_path="distributor-purchases"),
        st.Page("pages/distributor/3_⚖️_Grading.py", title="Grading", icon="⚖️", url_path="distributor-grading"),
        st.Page("pages/distributor/4_⚙️_Grade_Setup.py", title="Grade Setup", icon="⚙️", url_path="distributor-grade-management"),
        st.Page("pages/distributor/5_💵_Sales.py", title="Sales", icon="💵", url_path="distributor-sales"),
        st.Page("pages/distributor/6_🔎_Traceability.py", title="Traceability", icon="🔎", url_path="distributor-traceability"),
        st.Page("pages/distributor/7_👥_Suppliers.py", title="Suppliers", icon="👥", url_path="distributor-suppliers"),
        st.Page("pages/distributor/8_🚢_Vessels.py", title="Vessels", icon="🚢", url_path="distributor-vessels"),
        st.Page("pages/distributor/9_🐟_Products.py", title="Products", icon="🐟", url_path="distributor-products"),
        st.Page("pages/distributor/10_⚓_Customers.py", title="Customers", icon="⚓", url_path="distributor-customers"),
        st.Page("pages/distributor/11_📍_Locations.py", title="Locations", icon="📍", url_path="distributor-locations"),
        st.Page("pages/distributor/12_🏢_Distributor_View.py", title="Distributor View", icon="🏢", url_path="distributor-view"),
    ],
    "Admin": [
        st.Page("pages/admin/1_📦_Stock.py", title="Stock on Hand", icon="📦", url_path="stock"),
        st.Page("pages/admin/2_📈_Reports.py", title="Reports", icon="📈", url_path="reports"),
        st.Page("pages/admin/3_🧪_Data_Management.py", title="Data Management", icon="🧪", url_path="data"),
    ],
}

st.navigation(pages).run()
