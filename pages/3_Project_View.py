# pages/3_Project_View.py

import pandas as pd
import sqlalchemy
import streamlit as st

from woid_portal.aggregation import address_row_tone, group_rows_by_address, normalize_status
from woid_portal.config import load_config, sqlalchemy_url
from woid_portal.dal_portal import PROJECT_WOID_ROWS_SQL
from woid_portal.layout import (
    format_date, get_dal, navigate, portal_page, project_selector,
)

# --- Page Configuration ---
user = portal_page("Project View", "📋")

# --- Initialization ---
dal = get_dal()

if "woid_search_query" not in st.session_state:
    st.session_state.woid_search_query = ""

ROW_TONE_ICONS = {"void": "🟧", "complete": "🟩", "default": "🟪"}

# --- Database Connection ---
@st.cache_resource
def get_db_engine():
    config = load_config()
    return sqlalchemy.create_engine(sqlalchemy_url(config['portal_db']))

@st.cache_data(ttl=30)
def load_woid_rows(project_id: str) -> pd.DataFrame:
    """Flat address / WOID / team rows for the whole project."""
    df = pd.read_sql(sqlalchemy.text(PROJECT_WOID_ROWS_SQL), get_db_engine(), params={"project_id": project_id})
    return df.astype(object).where(df.notna(), None)

@st.cache_data(ttl=30)
def load_project_tickets(project_id: str):
    return dal.get_project_tickets(project_id)

@st.cache_data(ttl=30)
def load_reports_for_woid(woid: str, project_id: str):
    return dal.get_daily_reports_by_woid(woid, project_id)

@st.cache_data(ttl=30)
def load_project(project_id: str):
    """Fresh project record, so a newly uploaded completing team shows up."""
    return dal.get_project(project_id)

# --- Project & WOID Search ---
project = project_selector(user, key="view_project")
if not project:
    st.info("Select a project to view its work orders.")
    st.stop()

with st.form("woid_search_form"):
    search_col, button_col = st.columns([4, 1])
    search_woid = search_col.text_input(
        "Search for WOID Daily Reports", placeholder="Enter WOID to search...", label_visibility="collapsed"
    )
    if button_col.form_submit_button("Search"):
        st.session_state.woid_search_query = search_woid.strip()

query = st.session_state.woid_search_query

# =================================================================================
# VIEW 1: DAILY REPORTS FOR ONE WOID
# =================================================================================
if query:
    if st.button("Clear search"):
        st.session_state.woid_search_query = ""
        st.rerun()

    st.subheader(f"Daily Reports for WOID: {query}")
    try:
        reports = load_reports_for_woid(query, project.project_id)
    except Exception as e:
        st.error(f"Failed to load daily reports: {e}")
        st.stop()

    if not reports:
        st.info(f"No daily reports found for WOID {query}.")
    else:
        df_reports = pd.DataFrame([
            {
                "Task Order ID": report.task_order_id or "-",
                "Task Force ID": report.task_force_id or "-",
                "Status": (report.completion_status or "-").capitalize(),
                "Date": format_date(report.date or report.creation_time),
                "Work Order ID": report.work_order_id,
            }
            for report in reports
        ])
        st.dataframe(df_reports, hide_index=True, use_container_width=True)
    st.stop()

# =================================================================================
# VIEW 2: ALL ADDRESSES IN THE PROJECT
# =================================================================================
with st.spinner("Loading work orders..."):
    try:
        df_rows = load_woid_rows(project.project_id)
        tickets_by_address = load_project_tickets(project.project_id)
        completing_team_id = (load_project(project.project_id) or project).completing_team_id
    except Exception as e:
        st.error(f"Failed to load work orders from the database: {e}")
        st.stop()

if df_rows.empty:
    st.info("No work orders found for this project. Upload assignments to get started.")
    st.stop()

summaries = group_rows_by_address(df_rows.to_dict('records'), tickets_by_address, project.name)

st.caption(
    f"{len(summaries)} addresses · "
    f"{ROW_TONE_ICONS['void']} has a void team · "
    f"{ROW_TONE_ICONS['complete']} completing team complete"
)
st.download_button(
    "Download CSV",
    df_rows.to_csv(index=False),
    file_name=f"{project.name}_work_orders.csv",
    mime="text/csv",
)

for summary in summaries:
    tone = address_row_tone(summary.woids, completing_team_id)
    with st.container(border=True):
        address_col, count_col, tickets_col, link_col = st.columns([4, 1, 3, 1])
        address_col.markdown(f"{ROW_TONE_ICONS[tone]} **{summary.address}**")
        address_col.caption(summary.project_name)
        count_col.write(f"{len(summary.woids)} WOID{'s' if len(summary.woids) != 1 else ''}")
        if summary.tickets:
            tickets_col.markdown("  \n".join(
                f"🎫 {ticket.ticket_id} · {format_date(ticket.assigned_date)}" for ticket in summary.tickets
            ))
        else:
            tickets_col.caption("No tickets")
        if link_col.button("History", key=f"history_{summary.address}"):
            navigate("pages/4_Address_History.py", address=summary.address, projectId=project.project_id)

        woid_table = []
        for woid in summary.woids:
            teams, statuses, completed = [], [], []
            for team in woid.teams:
                name = team.task_force_name or "Unnamed Team"
                if completing_team_id and team.task_force_id == completing_team_id:
                    name += " (COMPLETING)"
                teams.append(name)
                statuses.append(normalize_status(team.status) or "-")
                if normalize_status(team.status) == "void":
                    completed.append("Void")
                else:
                    completed.append(format_date(team.completion_date))
            woid_table.append({
                "WOID": woid.woid,
                "Teams": ", ".join(teams) or "No teams",
                "Status": ", ".join(statuses) or "-",
                "Date of Completion": ", ".join(completed) or "-",
            })
        st.dataframe(pd.DataFrame(woid_table), hide_index=True, use_container_width=True)
