# pages/4_Address_History.py

import streamlit as st

from woid_portal.aggregation import (
    KIND_REPORT, TIMELINE_FILTERS, bucket_by_day, build_timeline, classify_teams,
    compute_address_stats, group_files_by_woid, group_reports_by_woid, group_teams_by_woid,
    is_image_file, latest_utility_statuses, utility_status_tone,
)
from woid_portal.files import FileFetchError, fetch_file_bytes, guess_mime_type
from woid_portal.layout import (
    WOID_STATUS_LABELS, format_date, format_datetime, format_time, get_dal, get_settings,
    navigate, page_params, portal_page, status_badge,
)
from woid_portal.utils import humanize_key

# --- Page Configuration ---
user = portal_page("Address History", "🏠")

# --- Initialization ---
dal = get_dal()
address, project_id = page_params("address", "projectId")

if not address or not project_id:
    st.error("⚠️ Missing Parameters")
    st.write("Address and Project ID are required.")
    st.stop()

@st.cache_data(ttl=30)
def load_history(address: str, project_id: str):
    return dal.get_address_history(address, project_id)

@st.cache_data(ttl=300, show_spinner=False)
def load_file_bytes(url: str):
    return fetch_file_bytes(url)

# --- Dialogs ---
def render_file(portal_file, key_prefix: str):
    """Image files are shown inline; anything else gets an open link."""
    if is_image_file(portal_file.name, portal_file.file_type) and portal_file.url:
        st.image(portal_file.url, caption=portal_file.name or "Unnamed File", use_container_width=True)
        if st.button("Preview", key=f"{key_prefix}_preview_{portal_file.file_id}"):
            show_image(portal_file)
    elif portal_file.url:
        st.link_button(f"📄 {portal_file.name or 'Unnamed File'}", portal_file.url)
    else:
        st.caption(f"📄 {portal_file.name or 'Unnamed File'} (no link)")

@st.dialog("Image", width="large")
def show_image(portal_file):
    st.image(portal_file.url, caption=portal_file.name, use_container_width=True)
    st.link_button("Open Original", portal_file.url)
    try:
        data, content_type = load_file_bytes(portal_file.url)
    except FileFetchError as e:
        st.warning(str(e))
    else:
        st.download_button(
            "Download",
            data,
            file_name=portal_file.name or "image",
            mime=content_type or guess_mime_type(portal_file.name, portal_file.file_type),
        )

@st.dialog("Daily Report", width="large")
def show_report(work_order_id, report):
    st.markdown(f"**WOID:** {work_order_id}")
    st.caption(f"Filed {format_datetime(report.creation_time)}")
    if report.completion_status:
        st.markdown(f"**Status:** {status_badge(report.completion_status)}")
    if report.task_order_id:
        st.markdown(f"**Task Order:** {report.task_order_id}")
    if report.text:
        st.markdown("**Notes**")
        st.write(report.text)
    if report.details:
        st.markdown("**Details**")
        for key, value in report.details.items():
            st.markdown(f"- **{humanize_key(key)}:** {value}")
    if report.files:
        st.markdown(f"**Files ({len(report.files)})**")
        for portal_file in report.files:
            if is_image_file(portal_file.name, portal_file.file_type) and portal_file.url:
                st.image(portal_file.url, caption=portal_file.name, use_container_width=True)
            elif portal_file.url:
                st.link_button(f"📄 {portal_file.name or 'Unnamed File'}", portal_file.url)

# --- Data Loading ---
with st.spinner("Loading address history..."):
    try:
        history = load_history(address, project_id)
    except Exception as e:
        st.error(f"Failed to load address history: {e}")
        st.stop()

woid_teams = group_teams_by_woid(history.woid_assignments, history.task_force_assignments)
reports_by_woid = group_reports_by_woid(history.daily_reports)
files_by_woid = group_files_by_woid(history.files)
stats = compute_address_stats(woid_teams)

# --- Header ---
if st.button("← Back to Project View"):
    navigate("pages/3_Project_View.py", projectId=project_id)

st.header(address)
st.caption(f"{stats.total} work orders across {history.summary.total_teams} teams")
st.progress(stats.completion_percentage / 100, text=f"{stats.completion_percentage}% complete")

col1, col2, col3, col4 = st.columns(4)
col1.metric("Complete", stats.complete)
col2.metric("In Progress", stats.in_progress)
col3.metric("Void", stats.void)
col4.metric("Files", history.summary.total_files)

st.markdown("---")

# --- Work Orders & Tabs ---
sidebar_col, main_col = st.columns([1, 3])

with sidebar_col:
    st.markdown(f"**Work Orders ({stats.total})**")

    def woid_label(woid):
        if woid is None:
            return "All Work Orders"
        status = WOID_STATUS_LABELS[classify_teams(woid_teams.get(woid, ()))]
        return (
            f"{woid} · {status} · 👥 {len(woid_teams.get(woid, ()))}"
            f" · 📄 {len(reports_by_woid.get(woid, ()))} · 📎 {len(files_by_woid.get(woid, ()))}"
        )

    selected_woid = st.radio(
        "Work Orders",
        options=[None] + list(woid_teams),
        format_func=woid_label,
        label_visibility="collapsed",
        key="history_selected_woid",
    )

with main_col:
    activity_tab, teams_tab, utilities_tab, files_tab = st.tabs(
        ["🕒 Activity", "👥 Teams", "🎫 Utilities", f"📁 Files ({history.summary.total_files})"]
    )

    # =================================================================================
    # ACTIVITY
    # =================================================================================
    with activity_tab:
        timeline_filter = st.radio(
            "Show", TIMELINE_FILTERS, horizontal=True, key="timeline_filter",
            format_func=str.capitalize,
        )
        timeline = build_timeline(history.daily_reports, history.tickets, timeline_filter)
        grouped_timeline = bucket_by_day(timeline, get_settings().timezone)

        if not grouped_timeline:
            st.info("No activity recorded for this address yet.")

        for day, items in grouped_timeline.items():
            st.markdown(f"#### {format_date(items[0].date)}")
            for index, item in enumerate(items):
                with st.container(border=True):
                    if item.kind == KIND_REPORT:
                        head_col, button_col = st.columns([5, 1])
                        head_col.markdown(
                            f"📄 **Report Filed** · `{item.work_order_id}` · {format_time(item.date)}"
                        )
                        if item.report.text:
                            head_col.caption(item.report.text)
                        if button_col.button("View", key=f"report_{day}_{index}"):
                            show_report(item.work_order_id, item.report)
                    else:
                        st.markdown(f"🎫 **Utility Update** · `#{item.ticket_id}` · {format_time(item.date)}")
                        st.markdown(
                            f"{item.update.utility_company} · "
                            f"{status_badge(utility_status_tone(item.update.status), item.update.status or 'Unknown')}"
                        )

    # =================================================================================
    # TEAMS
    # =================================================================================
    with teams_tab:
        shown = [(woid, teams) for woid, teams in woid_teams.items() if not selected_woid or woid == selected_woid]
        if not shown:
            st.info("No work orders at this address.")
        for woid, teams in shown:
            with st.container(border=True):
                st.markdown(f"**{woid}** · {len(teams)} teams · {status_badge(classify_teams(teams))}")
                if not teams:
                    st.caption("No teams assigned yet.")
                for team in teams:
                    name_col, status_col = st.columns([4, 1])
                    initials = (team.task_force_name or "TM")[:2].upper()
                    name_col.markdown(f"`{initials}` {team.task_force_name or 'Unnamed Team'}")
                    if team.completion_date:
                        name_col.caption(f"Completed {format_date(team.completion_date)}")
                    status_col.markdown(status_badge(team.status))

    # =================================================================================
    # UTILITIES
    # =================================================================================
    with utilities_tab:
        st.caption(f"{len(history.tickets)} ticket(s) with utility updates")
        if not history.tickets:
            st.info("No utility tickets for this address.")
        for ticket in history.tickets:
            with st.container(border=True):
                st.markdown(f"**#{ticket.ticket_id}** · {len(ticket.updates)} updates")
                for company, update in latest_utility_statuses(ticket.updates).items():
                    company_col, status_col, date_col = st.columns([3, 2, 2])
                    company_col.write(company)
                    status_col.markdown(status_badge(utility_status_tone(update.status), update.status or "Unknown"))
                    date_col.caption(format_date(update.creation_time))

    # =================================================================================
    # FILES
    # =================================================================================
    with files_tab:
        files = files_by_woid.get(selected_woid, ()) if selected_woid else history.files
        st.markdown(f"**Files ({len(files)})**")
        if not files:
            st.info("No files uploaded yet.")
        grid = st.columns(4)
        for index, portal_file in enumerate(files):
            with grid[index % 4]:
                render_file(portal_file, key_prefix="files")
                st.caption(format_date(portal_file.creation_time))
