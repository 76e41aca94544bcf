"""Streamlit UI for document chat - upload a document, then ask about it.

Run with: streamlit run ui/app.py
"""

# Add project root to sys.path for imports to work when run via streamlit
import sys
from pathlib import Path

_ROOT = Path(__file__).resolve().parents[1]
if str(_ROOT) not in sys.path:
    sys.path.insert(0, str(_ROOT))

import os  # noqa: E402

import httpx  # noqa: E402
import streamlit as st  # noqa: E402

from ui.helpers import (  # noqa: E402
    ApiError,
    build_transcript,
    create_chat,
    document_label,
    get_chat,
    list_chats,
    list_documents,
    make_client,
    send_message,
    upload_document,
)

# Configuration
BACKEND_URL = os.getenv("BACKEND_URL", "http://localhost:8000")

# Page config
st.set_page_config(page_title="Document Chat", page_icon="📄", layout="wide")

# Initialize session state
if "chat_id" not in st.session_state:
    st.session_state.chat_id = None
if "error" not in st.session_state:
    st.session_state.error = None

client = make_client(BACKEND_URL)

st.title("📄 Document Chat")
st.markdown("*Upload a document and ask questions about it*")
st.divider()

col_left, col_right = st.columns([1, 2])

# =============================================================================
# LEFT COLUMN - DOCUMENTS AND CHATS
# =============================================================================
with col_left:
    st.subheader("Documents")

    uploaded = st.file_uploader(
        "Upload a document",
        type=["pdf", "txt", "doc", "docx", "png", "jpg", "jpeg"],
        help="Max 10 MB",
    )
    if uploaded is not None and st.button("Process document", type="primary"):
        with st.spinner("Extracting and indexing..."):
            try:
                document = upload_document(
                    client, uploaded.name, uploaded.getvalue(), uploaded.type or ""
                )
                chat = create_chat(client, document["id"], title=document["filename"])
                st.session_state.chat_id = chat["id"]
                st.session_state.error = None
            except (ApiError, httpx.HTTPError) as e:
                st.session_state.error = str(e)
        st.rerun()

    try:
        documents = list_documents(client)
        chats = list_chats(client)
    except (ApiError, httpx.HTTPError) as e:
        documents, chats = [], []
        st.error(f"Backend unavailable: {e}")

    if documents:
        with st.form("new_chat"):
            labels = {document_label(d): d["id"] for d in documents}
            choice = st.selectbox("Start a chat about", options=list(labels))
            title = st.text_input("Chat title", value="")
            if st.form_submit_button("New chat"):
                try:
                    chat = create_chat(client, labels[choice], title=title or None)
                    st.session_state.chat_id = chat["id"]
                except ApiError as e:
                    st.session_state.error = e.message
                st.rerun()

    st.subheader("Chats")
    if not chats:
        st.caption("_No chats yet_")
    for chat in chats:
        filename = chat.get("document_filename") or "document deleted"
        if st.button(f"{chat['title']} · {filename}", key=f"chat-{chat['id']}"):
            st.session_state.chat_id = chat["id"]
            st.rerun()

    if st.session_state.error:
        st.error(st.session_state.error)

# =============================================================================
# RIGHT COLUMN - CONVERSATION
# =============================================================================
with col_right:
    if not st.session_state.chat_id:
        st.info("👈 Upload a document or pick a chat to start.")
    else:
        try:
            chat = get_chat(client, st.session_state.chat_id)
        except ApiError as e:
            st.session_state.chat_id = None
            st.error(e.message)
            st.stop()

        st.subheader(chat["title"])
        st.caption(chat.get("document_filename") or "The document for this chat was deleted")

        for entry in build_transcript(chat["messages"]):
            with st.chat_message(entry["role"]):
                st.markdown(entry["content"])

        question = st.chat_input("Ask about the document")
        if question:
            with st.spinner("Thinking..."):
                try:
                    send_message(client, chat["id"], question)
                except ApiError as e:
                    st.session_state.error = e.message
            st.rerun()
