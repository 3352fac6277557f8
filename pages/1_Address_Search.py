# pages/1_Address_Search.py

import streamlit as st

from woid_portal.layout import format_date, get_dal, navigate, portal_page, project_selector, status_badge

# --- Page Configuration ---
user = portal_page("Address Search", "🔎")

# --- Initialization ---
dal = get_dal()

if "address_search_query" not in st.session_state:
    st.session_state.address_search_query = ""

@st.cache_data(ttl=30)
def load_search_results(address: str, project_id: str):
    """Searches the project for WOIDs and tickets at matching addresses."""
    return dal.search_by_address(address, project_id)

# --- Search Form ---
project = project_selector(user, key="search_project")

with st.form("address_search_form"):
    search_address = st.text_input("Search Address", placeholder="Enter address...")
    submitted = st.form_submit_button("Search", disabled=project is None)

if submitted:
    st.session_state.address_search_query = search_address.strip()

query = st.session_state.address_search_query
if not project or not query:
    st.info("Select a project and enter an address to search.")
    st.stop()

# --- Search Results ---
with st.spinner(f"Searching for '{query}'..."):
    try:
        results = load_search_results(query, project.project_id)
    except Exception as e:
        st.error(f"Failed to search addresses: {e}")
        st.stop()

if results.is_empty:
    st.warning(f"No work orders or tickets found for '{query}'.")
    st.stop()

if results.woids:
    st.subheader(f"Work Orders ({len(results.woids)})")
    for match in results.woids:
        with st.container(border=True):
            head_col, link_col = st.columns([5, 1])
            head_col.markdown(f"**WOID: {match.woid}**")
            head_col.caption(f"Address: {match.address}")
            if link_col.button("Details", key=f"detail_{match.woid}"):
                navigate(
                    "pages/5_Address_Detail.py",
                    address=match.address, woid=match.woid, projectId=project.project_id,
                )

            if not match.teams:
                st.caption("No teams assigned.")
            for team in match.teams:
                name_col, updated_col, status_col = st.columns([3, 2, 1])
                name_col.write(team.task_force_name or "Unnamed Team")
                updated_col.caption(f"Last updated: {format_date(team.last_updated)}")
                status_col.markdown(status_badge(team.status))

if results.tickets:
    st.subheader(f"Tickets ({len(results.tickets)})")
    for ticket in results.tickets:
        with st.container(border=True):
            st.markdown(f"**{ticket.ticket_id}**")
            st.caption(f"Assigned: {format_date(ticket.assigned_date)}")
            st.write(f"WOIDs: {', '.join(ticket.woids) if ticket.woids else '-'}")
