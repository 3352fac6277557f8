# app.py
import streamlit as st

from woid_portal.layout import portal_page

user = portal_page("WOID Portal", "🏗️")

st.subheader(f"Welcome, {user.display_name}")
st.write(
    "You are successfully authenticated and have access to your organization. "
    "Track work orders, field teams, daily reports, utility tickets and files by address."
)
st.info("Select a page from the navigation sidebar on the left to begin.")
