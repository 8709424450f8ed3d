"""Test helpers for authentication and common test operations.

Provides:
- Account registration / login through the API (the client keeps the cookie)
- Chat creation helpers
- SSE body parsing
"""

import json
from uuid import uuid4

from fastapi.testclient import TestClient

DEFAULT_PASSWORD = "correct-horse"


def unique_email() -> str:
    """Generate an email address no other test uses."""
    return f"student-{uuid4().hex[:12]}@example.com"


def register_user(
    client: TestClient,
    email: str | None = None,
    password: str = DEFAULT_PASSWORD,
    **names,
) -> dict:
    """Register through the API and return the user JSON.

    The TestClient stores the session cookie, so later requests are authenticated.
    """
    response = client.post(
        "/api/auth/register",
        json={"email": email or unique_email(), "password": password, **names},
    )
    assert response.status_code == 200, response.text
    return response.json()["user"]


def login_user(client: TestClient, email: str, password: str = DEFAULT_PASSWORD) -> dict:
    response = client.post("/api/auth/login", json={"email": email, "password": password})
    assert response.status_code == 200, response.text
    return response.json()["user"]


def create_chat(client: TestClient, title: str = "Studying in Germany") -> dict:
    response = client.post("/api/chats", json={"title": title})
    assert response.status_code == 200, response.text
    return response.json()


def parse_sse_events(body: str) -> list[dict]:
    """Decode every `data:` frame of an SSE body into a dict."""
    events = []
    for frame in body.split("\n\n"):
        frame = frame.strip()
        if frame.startswith("data:"):
            events.append(json.loads(frame[len("data:") :].strip()))
    return events
