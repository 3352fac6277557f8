# pages/9_Unauthorized.py

import streamlit as st

from woid_portal.auth import SESSION_USER_KEY
from woid_portal.layout import render_page

# No organization gate here: this is where the gate sends people.
render_page("Access Denied", "🔒", layout="centered")

def sign_out():
    st.session_state.pop(SESSION_USER_KEY, None)
    st.logout()

st.error("Access Denied")
st.write(
    "You need to be a member of an organization to access this application. "
    "Please contact your administrator to be added to an organization."
)

if st.user.is_logged_in:
    st.caption(f"Signed in as {st.user.get('email') or st.user.get('name') or 'unknown user'}")

col1, col2 = st.columns(2)
col1.button("Sign Out", on_click=sign_out, type="primary", use_container_width=True)
col2.button("Try Different Account", on_click=sign_out, use_container_width=True)
