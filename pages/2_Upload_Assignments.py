# pages/2_Upload_Assignments.py

import pandas as pd
import streamlit as st

from woid_portal.layout import get_dal, load_task_forces, portal_page, project_selector
from woid_portal.upload import (
    UploadFormatError, parse_assignments, preview_assignments, read_sheet, summarize_errors,
)

# --- Page Configuration ---
user = portal_page("Upload WOID Assignments", "📤", layout="centered")

# --- Initialization ---
dal = get_dal()

if "upload_result" not in st.session_state:
    st.session_state.upload_result = None

# --- Project & Completing Team ---
project = project_selector(user, key="upload_project")
if project:
    st.caption(f"Selected: **{project.name}**")

completing_team_id = None
if user.organization_id:
    try:
        teams = load_task_forces(user.organization_id)
    except Exception as e:
        st.error(f"Failed to load teams: {e}")
        teams = []

    if teams:
        team_names = {team.task_force_id: team.name for team in teams}
        completing_team_id = st.selectbox(
            "Completing Team",
            options=[None] + list(team_names),
            format_func=lambda tid: "Select completing team..." if tid is None else team_names[tid],
            key="upload_completing_team",
        )
        st.caption("The team whose completion status determines if an address is complete")
    else:
        st.info("No teams available for your organization.")

# --- File ---
uploaded = st.file_uploader(
    "Excel File",
    type=["xlsx", "xls", "csv"],
    help="Columns: address and workOrderId (or work_order_id or woid).",
)

rows = None
if uploaded is not None:
    try:
        rows = read_sheet(uploaded.name, uploaded.getvalue())
        preview = preview_assignments(rows)
    except UploadFormatError as e:
        st.error(str(e))
        rows = None
    else:
        st.subheader("Preview (first 5 rows)")
        st.dataframe(
            pd.DataFrame(
                [{"Address": a.address or "-", "Work Order ID": a.work_order_id or "-"} for a in preview]
            ),
            hide_index=True,
            use_container_width=True,
        )

# --- Upload ---
ready = bool(rows) and project is not None and completing_team_id is not None
if st.button("Upload Assignments", type="primary", disabled=not ready):
    st.session_state.upload_result = None
    try:
        assignments = parse_assignments(rows)
    except UploadFormatError as e:
        st.error(str(e))
    else:
        with st.spinner("Uploading..."):
            try:
                st.session_state.upload_result = dal.bulk_insert_assignments(
                    assignments, project.project_id, completing_team_id
                )
            except Exception as e:
                st.error(f"Error uploading file: {e}")
        st.cache_data.clear()

# --- Results ---
result = st.session_state.upload_result
if result is not None:
    st.subheader("Upload Results")
    col1, col2, col3 = st.columns(3)
    col1.metric("Created", result.created)
    col2.metric("Updated", result.updated)
    col3.metric("Errors", len(result.errors))
    if result.errors:
        st.error(f"Errors ({len(result.errors)}):")
        st.markdown("\n".join(f"- {line}" for line in summarize_errors(result.errors)))
