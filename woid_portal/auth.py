# woid_portal/auth.py
# Organization-membership gate in front of every portal page.

import logging
from configparser import ConfigParser
from typing import Mapping, Optional

import streamlit as st

from .config import load_config
from .dal_portal import PortalDAL
from .models import PortalUser

logger = logging.getLogger(__name__)

UNAUTHORIZED_PAGE = "pages/9_Unauthorized.py"
SESSION_USER_KEY = "portal_user"


def token_identifier(issuer: str, user_id: str) -> str:
    """The backend keys users by '<issuer>|<subject>', the same value the mobile app stores."""
    return f"{issuer}|{user_id}"


def identity_issuer(config: ConfigParser, claims: Optional[Mapping] = None) -> str:
    """
    The identity provider's issuer URL. An explicit [identity] hostname wins,
    so the portal can match users created through another instance;
    otherwise the 'iss' claim of the signed-in user is used.
    """
    if config.has_section('identity') and config['identity'].get('hostname'):
        return f"https://{config['identity']['hostname'].strip()}"
    if claims and claims.get('iss'):
        return str(claims['iss']).rstrip('/')
    raise KeyError("No identity issuer: set [identity] hostname in config.ini")


def get_current_user(dal: PortalDAL, token_id: str) -> Optional[PortalUser]:
    try:
        return dal.get_user(token_id)
    except Exception:
        logger.exception("Error getting current user %s", token_id)
        return None


def has_organization_access(user: Optional[PortalUser]) -> bool:
    return user is not None and bool(user.organization_ids)


def check_organization_access(dal: PortalDAL, token_id: str) -> bool:
    """True only when the user exists in the backend and belongs to at least one organization."""
    user = get_current_user(dal, token_id)
    if user is None:
        logger.info("Access denied: no user for token identifier %s", token_id)
        return False

    has_access = has_organization_access(user)
    logger.info(
        "Organization access check for %s: %s (organizations: %s)",
        token_id, has_access, list(user.organization_ids)
    )
    return has_access


def require_organization_access(dal: Optional[PortalDAL] = None) -> PortalUser:
    """
    Stops the page for anonymous visitors and sends signed-in users without
    an organization to the Unauthorized page. Returns the portal user.
    """
    if not st.user.is_logged_in:
        st.info("Please sign in to access the portal.")
        st.button("Sign in", on_click=st.login, type="primary")
        st.stop()

    claims = dict(st.user)
    token_id = token_identifier(identity_issuer(load_config(), claims), str(claims.get('sub', '')))

    cached = st.session_state.get(SESSION_USER_KEY)
    if isinstance(cached, PortalUser) and cached.token_identifier == token_id:
        return cached

    # Runs once per session; later reruns return the cached user above.
    dal = dal or PortalDAL()
    user = get_current_user(dal, token_id) if check_organization_access(dal, token_id) else None
    if user is None:
        logger.info("Redirecting %s to Unauthorized", token_id)
        st.switch_page(UNAUTHORIZED_PAGE)

    st.session_state[SESSION_USER_KEY] = user
    return user
