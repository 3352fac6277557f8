# pages/5_Address_Detail.py

import pandas as pd
import streamlit as st

from woid_portal.aggregation import utility_status_tone
from woid_portal.layout import (
    format_date, format_datetime, get_dal, navigate, page_params, portal_page, status_badge,
)

# --- Page Configuration ---
user = portal_page("Address Details", "📍")

# --- Initialization ---
dal = get_dal()
address, woid, project_id = page_params("address", "woid", "projectId")

def back_to_search():
    navigate("pages/1_Address_Search.py", projectId=project_id)

if not address or not project_id:
    st.error("Missing address or project.")
    if st.button("← Back to Search"):
        back_to_search()
    st.stop()

@st.cache_data(ttl=30)
def load_address(address: str, project_id: str):
    return dal.search_by_address(address, project_id)

@st.cache_data(ttl=30)
def load_ticket_updates(ticket_id: str, address: str):
    return dal.get_updates_by_ticket(ticket_id, address)

# --- Data Loading ---
with st.spinner("Loading address details..."):
    try:
        results = load_address(address, project_id)
    except Exception as e:
        st.error(f"Failed to load address details: {e}")
        st.stop()

woids = [match for match in results.woids if not woid or match.woid == woid]

if st.button("← Back to Search"):
    back_to_search()

st.header(address)
if woid:
    st.caption(f"Work Order ID: {woid}")

# --- Work Orders ---
st.subheader("Work Orders")
if not woids:
    st.info("No work orders found for this address.")
for match in woids:
    with st.container(border=True):
        st.markdown(f"**WOID: {match.woid}**")
        if not match.teams:
            st.caption("No teams assigned.")
        for team in match.teams:
            name_col, updated_col, status_col = st.columns([3, 2, 1])
            name_col.write(team.task_force_name or "Unnamed Team")
            updated_col.caption(f"Last updated: {format_date(team.last_updated)}")
            status_col.markdown(status_badge(team.status))

# --- Tickets ---
st.subheader("Tickets")
if not results.tickets:
    st.info("No tickets found for this address.")
    st.stop()

for ticket in results.tickets:
    with st.container(border=True):
        st.markdown(f"**{ticket.ticket_id}**")
        st.caption(f"Assigned: {format_date(ticket.assigned_date)}")
        st.write(f"WOIDs: {', '.join(ticket.woids) if ticket.woids else '-'}")

# Updates are shown for the first matching ticket only.
first_ticket = results.tickets[0]
st.subheader(f"Ticket Updates · {first_ticket.ticket_id}")
try:
    updates = load_ticket_updates(first_ticket.ticket_id, address)
except Exception as e:
    st.error(f"Failed to load ticket updates: {e}")
    st.stop()

if not updates:
    st.info("No updates recorded for this ticket.")
else:
    for update in updates:
        company_col, status_col, date_col = st.columns([3, 2, 2])
        company_col.write(update.utility_company)
        status_col.markdown(status_badge(utility_status_tone(update.status), update.status or "Unknown"))
        date_col.caption(format_datetime(update.creation_time))

    with st.expander("Raw updates"):
        st.dataframe(
            pd.DataFrame([
                {
                    "Utility": update.utility_company,
                    "Status": update.status,
                    "Received": format_datetime(update.creation_time),
                    "Subject": update.email_subject or "-",
                    "From": update.email_from or "-",
                }
                for update in updates
            ]),
            hide_index=True,
            use_container_width=True,
        )
