"""Helper functions for UI - thin httpx client for the document chat API."""

from typing import Any

import httpx

DEV_USER_ID = "00000000-0000-0000-0000-000000000002"


class ApiError(Exception):
    """API call failed; message is the envelope's public message."""

    def __init__(self, status_code: int, message: str, data: Any = None) -> None:
        super().__init__(f"{status_code}: {message}")
        self.status_code = status_code
        self.message = message
        self.data = data


def get_auth_header(user_id: str = DEV_USER_ID) -> dict[str, str]:
    """Get auth header for API calls (the API trusts the user id as-is)."""
    return {"Authorization": f"Bearer {user_id}"}


def make_client(backend_url: str, user_id: str = DEV_USER_ID, **kwargs: Any) -> httpx.Client:
    """Create an httpx client bound to the backend with auth headers.

    Uploads and answers can take a while, so the timeout is generous.
    """
    kwargs.setdefault("timeout", 120.0)
    return httpx.Client(base_url=backend_url, headers=get_auth_header(user_id), **kwargs)


def unwrap(response: httpx.Response) -> Any:
    """Return the envelope's data, or raise ApiError with its message."""
    try:
        body: dict[str, Any] = response.json()
    except ValueError:
        body = {}

    if response.is_success and body.get("success", False):
        return body.get("data")

    message = body.get("message") or response.reason_phrase or "Request failed"
    raise ApiError(response.status_code, message, body.get("data"))


def upload_document(
    client: httpx.Client, filename: str, data: bytes, content_type: str
) -> dict[str, Any]:
    """Upload a file; returns the ingested document."""
    response = client.post(
        "/api/documents/upload",
        files={"file": (filename, data, content_type)},
    )
    result: dict[str, Any] = unwrap(response)
    return result


def list_documents(client: httpx.Client) -> list[dict[str, Any]]:
    result: list[dict[str, Any]] = unwrap(client.get("/api/documents"))
    return result


def create_chat(client: httpx.Client, document_id: str, title: str | None = None) -> dict[str, Any]:
    payload: dict[str, Any] = {"document_id": document_id}
    if title:
        payload["title"] = title
    result: dict[str, Any] = unwrap(client.post("/api/chats", json=payload))
    return result


def list_chats(client: httpx.Client) -> list[dict[str, Any]]:
    result: list[dict[str, Any]] = unwrap(client.get("/api/chats"))
    return result


def get_chat(client: httpx.Client, chat_id: str) -> dict[str, Any]:
    result: dict[str, Any] = unwrap(client.get(f"/api/chats/{chat_id}"))
    return result


def send_message(client: httpx.Client, chat_id: str, content: str) -> dict[str, Any]:
    """Send a question; returns {"user_message", "assistant_message"}.

    Raises:
        ApiError: On failure. A 502 carries {"failed_message_id"} in data.
    """
    result: dict[str, Any] = unwrap(
        client.post(f"/api/chats/{chat_id}/messages", json={"content": content})
    )
    return result


def build_transcript(messages: list[dict[str, Any]]) -> list[dict[str, str]]:
    """Render stored messages for display, oldest first.

    Failed user turns are kept and labelled so the user can resend them.
    """
    transcript = []
    for message in sorted(messages, key=lambda m: m.get("created_at", "")):
        content = message.get("content", "")
        if message.get("status") == "failed":
            content = f"{content}\n\n_No answer was generated for this message._"
        transcript.append({"role": message.get("role", "user"), "content": content})
    return transcript


def document_label(document: dict[str, Any]) -> str:
    """Short label for a document picker."""
    chunks = document.get("chunk_count", 0)
    return f"{document.get('filename', 'untitled')} ({chunks} chunk{'s' if chunks != 1 else ''})"
