# woid_portal/layout.py
# Shared page chrome and display formatting for the portal pages.

from typing import List, Optional, Tuple

import streamlit as st

from .aggregation import (
    MONTH_ABBRS, WOID_COMPLETE, WOID_IN_PROGRESS, WOID_NOT_STARTED, WOID_VOID, normalize_status, to_local_datetime,
)
from .auth import require_organization_access
from .config import PortalSettings, load_config, portal_settings
from .dal_portal import PortalDAL
from .models import PortalUser, Project, TaskForce
from .theme import environment_colors, environment_name
from .utils import setup_logger

WOID_STATUS_LABELS = {
    WOID_COMPLETE: "Complete",
    WOID_VOID: "Void",
    WOID_IN_PROGRESS: "In Progress",
    WOID_NOT_STARTED: "Not Started",
}

# Streamlit markdown colours per status / tone
STATUS_COLORS = {
    "complete": "green",
    "incomplete": "gray",
    "void": "orange",
    "in_progress": "blue",
    "not_started": "gray",
    "green": "green",
    "yellow": "orange",
    "gray": "gray",
}


@st.cache_resource
def get_settings() -> PortalSettings:
    return portal_settings(load_config())


@st.cache_resource
def _backend_name() -> str:
    config = load_config()
    if not config.has_section('portal_db'):
        return ""
    return f"{config['portal_db'].get('server', '')}/{config['portal_db'].get('database', '')}"


def render_page(title: str, icon: str, layout: str = "wide"):
    """Page config, environment header colours and the title."""
    st.set_page_config(page_title=title, page_icon=icon, layout=layout)
    settings = get_settings()
    setup_logger("woid_portal", settings.log_dir)
    colors = environment_colors(_backend_name(), settings.production_marker)
    st.markdown(
        f"""
        <style>
          header[data-testid="stHeader"] {{background-color: {colors.primary};}}
          div.stButton > button[kind="primary"] {{background-color: {colors.primary}; border-color: {colors.primary};}}
          div.stButton > button[kind="primary"]:hover {{background-color: {colors.primary_dark};}}
        </style>
        """,
        unsafe_allow_html=True,
    )
    st.title(f"{icon} {title}")


def render_user_sidebar(user: PortalUser):
    settings = get_settings()
    with st.sidebar:
        st.markdown(f"**{user.display_name}**")
        if user.email:
            st.caption(user.email)
        env = environment_name(_backend_name(), settings.production_marker)
        if env != "production":
            st.caption(f"Environment: {env}")
        st.button("Sign out", on_click=st.logout, key="sidebar_sign_out")


def portal_page(title: str, icon: str, layout: str = "wide") -> PortalUser:
    """Renders the page chrome behind the organization gate and returns the signed-in user."""
    render_page(title, icon, layout)
    user = require_organization_access(get_dal())
    render_user_sidebar(user)
    return user


# --- Formatting ---

def format_date(timestamp_ms: Optional[float]) -> str:
    """'Oct 5, 2026' in the portal timezone."""
    if timestamp_ms is None:
        return "-"
    dt = to_local_datetime(timestamp_ms, get_settings().timezone)
    return f"{MONTH_ABBRS[dt.month - 1]} {dt.day}, {dt.year}"


def format_time(timestamp_ms: Optional[float]) -> str:
    if timestamp_ms is None:
        return "-"
    dt = to_local_datetime(timestamp_ms, get_settings().timezone)
    return f"{(dt.hour - 1) % 12 + 1:02d}:{dt.minute:02d} {'AM' if dt.hour < 12 else 'PM'}"


def format_datetime(timestamp_ms: Optional[float]) -> str:
    if timestamp_ms is None:
        return "-"
    return f"{format_date(timestamp_ms)}, {format_time(timestamp_ms)}"


def status_badge(status: Optional[str], label: Optional[str] = None) -> str:
    """Coloured markdown for a team status, WOID status or utility tone."""
    key = normalize_status(status)
    text = label or (WOID_STATUS_LABELS.get(key) or (status.strip().capitalize() if status else "Not Started"))
    color = STATUS_COLORS.get(key, "gray")
    return f":{color}[**{text}**]"


# --- Data & navigation shared by the pages ---

NAV_PARAMS_KEY = "nav_params"
NO_PROJECT = "-- Select a Project --"


@st.cache_resource
def get_dal() -> PortalDAL:
    return PortalDAL()


@st.cache_data(ttl=60)
def load_projects(organization_id: str) -> List[Project]:
    return get_dal().get_projects_for_organization(organization_id)


@st.cache_data(ttl=60)
def load_task_forces(organization_id: str) -> List[TaskForce]:
    return get_dal().get_task_forces(organization_id)


def project_selector(user: PortalUser, key: str) -> Optional[Project]:
    """Project dropdown for the user's organization; preselects the projectId query param."""
    if not user.organization_id:
        st.warning("User is not associated with any organization.")
        return None
    try:
        projects = load_projects(user.organization_id)
    except Exception as e:
        st.error(f"Failed to load projects: {e}")
        return None
    if not projects:
        st.info("No projects found for your organization.")
        return None

    by_id = {project.project_id: project for project in projects}
    options = [NO_PROJECT] + list(by_id)
    requested, = page_params("projectId")
    index = options.index(requested) if requested in by_id else 0
    selected = st.selectbox(
        "Select Project",
        options=options,
        index=index,
        key=key,
        format_func=lambda pid: by_id[pid].name if pid in by_id else pid,
    )
    return by_id.get(selected)


def navigate(page: str, **params):
    """Switches page, carrying params that the target page turns into query params."""
    st.session_state[NAV_PARAMS_KEY] = {name: str(value) for name, value in params.items() if value is not None}
    st.switch_page(page)


def page_params(*names: str) -> Tuple[Optional[str], ...]:
    """Reads page parameters from the URL, after applying any carried over by navigate()."""
    pending = st.session_state.pop(NAV_PARAMS_KEY, None)
    if pending:
        st.query_params.from_dict(pending)
    return tuple(st.query_params.get(name) or None for name in names)
