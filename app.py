# streamlit_app.py
import streamlit as st
import requests
import json
import base64
import io
import time
from PIL import Image
import logging

import config

# Configure basic logging for the Streamlit app (optional, for debugging server-side)
logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)

# --- Configuration ---
API_BASE_URL = config.API_BASE_URL
POLL_INTERVAL_SECONDS = 1.0

# --- Helper Functions for API Interaction ---

def call_api(method: str, endpoint: str, json_data: dict = None):
    """Generic helper to call the FastAPI backend. Returns the JSON body or {"api_error": ...}."""
    formatted_endpoint = endpoint if endpoint.startswith('/') else '/' + endpoint
    url = f"{API_BASE_URL}{formatted_endpoint}"
    try:
        logger.info(f"Calling API: {method} {url}")
        response = requests.request(method, url, json=json_data, timeout=120)
        response.raise_for_status() # Raise an HTTPError for bad responses (4xx or 5xx)
        return response.json()
    except requests.exceptions.RequestException as e:
        status_code = e.response.status_code if e.response is not None else 'Unknown'
        logger.error(f"API Error ({status_code}): {e}")

        # The backend puts a user-facing message in "detail"
        detail = f"API Error ({status_code}): {e}"
        if e.response is not None and e.response.content:
            try:
                detail = e.response.json().get("detail", detail)
            except json.JSONDecodeError:
                detail = f"API returned non-JSON error: {e.response.text[:200]}..."
        return {"api_error": detail}


def decode_data_url(data_url: str) -> Image.Image:
    """data:image/jpeg;base64,... -> PIL image"""
    _, encoded = data_url.split(",", 1)
    return Image.open(io.BytesIO(base64.b64decode(encoded)))


# --- Storyboard API calls ---

def start_storyboard_api(script: str):
    # A new run replaces the current one
    current = st.session_state.storyboard
    if current and current.get("run_id") and current.get("status") in ("parsing", "generating"):
        call_api("DELETE", f"/storyboards/{current['run_id']}")

    st.session_state.storyboard_error = None
    st.session_state.storyboard = None
    response_data = call_api("POST", "/storyboards", json_data={"script": script})
    if "api_error" in response_data:
        st.session_state.storyboard_error = response_data["api_error"]
    else:
        st.session_state.storyboard = response_data


def refresh_storyboard_api():
    run_id = st.session_state.storyboard["run_id"]
    response_data = call_api("GET", f"/storyboards/{run_id}")
    if "api_error" in response_data:
        st.session_state.storyboard_error = response_data["api_error"]
        # The run is gone (replaced or cancelled elsewhere); stop polling it
        st.session_state.storyboard["status"] = "cancelled"
    else:
        st.session_state.storyboard = response_data


# --- Chat API calls ---

def new_chat_session_api():
    old_session = st.session_state.chat_session
    if old_session:
        call_api("DELETE", f"/chat/sessions/{old_session['session_id']}")
    response_data = call_api("POST", "/chat/sessions")
    st.session_state.chat_error = response_data.get("api_error")
    st.session_state.chat_session = None if "api_error" in response_data else response_data


def send_chat_message_api(message: str):
    session_id = st.session_state.chat_session["session_id"]
    response_data = call_api("POST", f"/chat/sessions/{session_id}/messages", json_data={"message": message})
    if "api_error" in response_data:
        st.session_state.chat_error = response_data["api_error"]
        # The user turn is kept server-side; reload the log to show it
        refreshed = call_api("GET", f"/chat/sessions/{session_id}")
        if "api_error" not in refreshed:
            st.session_state.chat_session = refreshed
    else:
        st.session_state.chat_error = None
        st.session_state.chat_session = response_data


# --- Initialize Session State ---
if 'storyboard' not in st.session_state:
    logger.info("Initializing Streamlit Session State: storyboard")
    st.session_state.storyboard = None # Latest StoryboardState from the API
if 'storyboard_error' not in st.session_state:
    st.session_state.storyboard_error = None
if 'chat_session' not in st.session_state:
    logger.info("Initializing Streamlit Session State: chat_session")
    st.session_state.chat_session = None
    new_chat_session_api()
if 'chat_error' not in st.session_state:
    st.session_state.chat_error = None


# --- UI Layout ---

st.set_page_config(layout="wide", page_title="Storyboard Studio")
st.title("🎬 Storyboard Studio")
st.caption(f"Connected to backend at: {API_BASE_URL}")

tab_storyboard, tab_chat = st.tabs(["Storyboard Generator", "Filmmaking Chatbot"])

with tab_storyboard:
    storyboard = st.session_state.storyboard
    run_active = bool(storyboard) and storyboard.get("status") in ("parsing", "generating")

    st.subheader("Enter Your Script")
    script = st.text_area(
        "Script",
        placeholder="e.g., INT. COFFEE SHOP - DAY. JANE sits at a table, looking anxious. The door opens.",
        height=200,
        key="ta_script_ui",
        disabled=run_active,
    )
    col_generate, col_cancel = st.columns([1, 1])
    with col_generate:
        if st.button("Generating..." if run_active else "Generate Storyboard", key="btn_generate_ui", disabled=run_active):
            if not script.strip():
                st.session_state.storyboard_error = "Script cannot be empty."
            else:
                start_storyboard_api(script)
            st.rerun()
    with col_cancel:
        if run_active and st.button("Cancel", key="btn_cancel_ui"):
            call_api("DELETE", f"/storyboards/{storyboard['run_id']}")
            # The backend drops cancelled runs, so keep the board shown so far
            st.session_state.storyboard["status"] = "cancelled"
            for scene in st.session_state.storyboard.get("scenes", []):
                scene["is_loading"] = False
            st.rerun()

    if st.session_state.storyboard_error:
        st.error(st.session_state.storyboard_error)
    elif storyboard and storyboard.get("error"):
        st.error(storyboard["error"])

    if storyboard and storyboard.get("status") == "parsing":
        st.info("Parsing script and preparing scenes...")

    scenes = storyboard.get("scenes", []) if storyboard else []
    if scenes:
        st.header("Your Storyboard")
        if storyboard.get("status") == "cancelled":
            st.warning("Storyboard generation was cancelled.")
        columns = st.columns(3)
        for scene in scenes:
            with columns[scene["id"] % 3]:
                with st.container(border=True):
                    if scene.get("is_loading"):
                        st.info("Generating image...")
                    elif scene.get("error"):
                        st.error(scene["error"])
                    elif scene.get("image"):
                        try:
                            st.image(decode_data_url(scene["image"]), use_container_width=True)
                        except Exception as e:
                            st.warning(f"Failed to display image for scene {scene['id'] + 1}: {e}")
                    st.write(scene["description"])

with tab_chat:
    chat_session = st.session_state.chat_session

    if st.button("New conversation", key="btn_new_chat_ui"):
        new_chat_session_api()
        st.rerun()

    if chat_session:
        for message in chat_session.get("messages", []):
            with st.chat_message("assistant" if message["role"] == "model" else "user"):
                st.write(message["content"])

    if st.session_state.chat_error:
        st.error(st.session_state.chat_error)

    user_input = st.chat_input("Ask a question...", disabled=chat_session is None)
    if user_input and user_input.strip() and chat_session:
        with st.spinner("Thinking..."):
            send_chat_message_api(user_input)
        st.rerun()

st.divider()
st.caption("Powered by Google Gemini")

# Poll the running storyboard after the whole page has rendered
if run_active:
    time.sleep(POLL_INTERVAL_SECONDS)
    refresh_storyboard_api()
    st.rerun()
