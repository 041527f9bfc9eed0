import os
import html
import requests
import streamlit as st
from dotenv import load_dotenv, find_dotenv

load_dotenv(find_dotenv(), override=False)

BACKEND_URL = os.getenv("BACKEND_URL", "http://127.0.0.1:8000").rstrip("/")

# ----------------------------
# Streamlit page config
# ----------------------------
st.set_page_config(
    page_title="🎵 moodlist",
    page_icon="🎧",
    layout="centered",
)

st.markdown("""
<style>
:root {
    --primary: #1DB954;
    --primary-hover: #1ed760;
    --bg: #121212;
    --card-bg: #1e1e1e;
    --text: #ffffff;
    --text-secondary: #b3b3b3;
    --border-radius: 8px;
}

.stApp {
    background: var(--bg);
    color: var(--text);
    font-family: 'Inter', sans-serif;
}

.stTextInput input, .stTextArea textarea {
    background: rgba(255,255,255,0.05) !important;
    color: var(--text) !important;
    border-radius: var(--border-radius) !important;
    border: 1px solid rgba(255,255,255,0.1) !important;
}

.stButton button {
    background-color: var(--primary);
    color: white;
    border-radius: var(--border-radius);
    font-weight: 600;
    border: none;
    width: 100%;
}
.stButton button:hover { background-color: var(--primary-hover); }

.header-title { font-size: 2.2rem; font-weight: 700; color: var(--primary); text-align: center; }
.header-subtitle { color: var(--text-secondary); text-align: center; margin-bottom: 1.5rem; }

.track-row {
    background: var(--card-bg);
    padding: .6rem 1rem;
    border-radius: var(--border-radius);
    border: 1px solid rgba(255,255,255,0.08);
    margin-bottom: .4rem;
}
</style>
""", unsafe_allow_html=True)

st.markdown("""
<div class="header-title">moodlist</div>
<div class="header-subtitle">Describe the moment, get a playlist</div>
""", unsafe_allow_html=True)

# ----------------------------
# Tokens from the OAuth redirect
# ----------------------------
params = st.query_params
if params.get("access_token"):
    st.session_state["access_token"] = params.get("access_token")
    if params.get("refresh_token"):
        st.session_state["refresh_token"] = params.get("refresh_token")
    st.query_params.clear()

logged_in = bool(st.session_state.get("access_token"))

if logged_in:
    st.success("Connected ✅")
else:
    st.info("Log in first so the playlist can be saved to your account.")
st.link_button("Log in", f"{BACKEND_URL}/login")

# ----------------------------
# Inputs
# ----------------------------
prompt = st.text_area("Describe the situation", placeholder="E.g. 'relaxing evening after a long week'")
playlist_name = st.text_input("Playlist name", placeholder="Chill")
col1, col2 = st.columns(2)
with col1:
    preview_btn = st.button("Preview tags")
with col2:
    build_btn = st.button("Generate playlist", disabled=not logged_in)

if preview_btn and prompt.strip():
    try:
        r = requests.post(f"{BACKEND_URL}/analyze", json={"prompt": prompt}, timeout=30)
        r.raise_for_status()
        a = r.json()
        st.caption(f"tags: {', '.join(a['tags'])} · via {a['source']}")
    except requests.RequestException as e:
        st.warning(f"Could not analyze prompt: {e}")

# ----------------------------
# Generation
# ----------------------------
if build_btn:
    with st.spinner("Generating..."):
        try:
            r = requests.post(
                f"{BACKEND_URL}/generate-playlist",
                json={
                    "prompt": prompt,
                    "playlistName": playlist_name,
                    "access_token": st.session_state.get("access_token"),
                    "refresh_token": st.session_state.get("refresh_token"),
                },
                timeout=120,
            )
        except requests.RequestException as e:
            st.error(f"Backend unreachable: {e}")
            st.stop()

    if not r.ok:
        try:
            msg = r.json().get("error") or r.text
        except ValueError:
            msg = r.text
        st.error(f"Error {r.status_code}: {msg}")
        st.stop()

    # an expired token is refreshed server side and handed back as a cookie
    fresh_token = r.cookies.get("access_token")
    if fresh_token:
        st.session_state["access_token"] = fresh_token

    result = r.json()
    st.session_state["last_result"] = result

result = st.session_state.get("last_result")
if result:
    st.subheader("Playlist created! 🎉")
    st.caption(result.get("message", ""))
    st.link_button("Open playlist", result["playlistUrl"])

    labels = result.get("genres") or result.get("tags") or []
    meta = []
    if result.get("mood"):
        meta.append(f"mood: **{result['mood']}**")
    if result.get("energy") is not None:
        meta.append(f"energy: **{result['energy']:.2f}**")
    if labels:
        meta.append("tags: " + ", ".join(f"`{g}`" for g in labels))
    if meta:
        st.markdown(" · ".join(meta))

    for t in result.get("tracks", []):
        line = html.escape(f"{t['name']} – {t['artist']}")
        if t.get("url"):
            line = f"<a href=\"{html.escape(t['url'])}\" target=\"_blank\">{line}</a>"
        st.markdown(f'<div class="track-row">{line}</div>', unsafe_allow_html=True)
