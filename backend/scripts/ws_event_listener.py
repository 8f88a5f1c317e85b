"""Command-line listener for the real-time event stream.

Prerequisites:
1. `py manage.py runserver` (or daphne) must be running.
2. Install dependencies once: `py -m pip install requests websocket-client`.

The script will:
- Log in via the REST API and keep the access token.
- Open the event WebSocket and register with the user id.
- Print every event it receives.
- On disconnect, reconnect with capped exponential backoff and re-fetch the
  active ride and notifications so nothing missed while offline is lost.

Usage:
    py scripts/ws_event_listener.py <username> <password>
"""

from __future__ import annotations

import json
import os
import sys
import time
from typing import Dict

import requests
import websocket  # type: ignore

BASE_URL = os.environ.get("RIDES_BASE_URL", "http://127.0.0.1:8000")
WS_URL = os.environ.get("RIDES_WS_URL", BASE_URL.replace("http", "ws", 1))
API_ROOT = f"{BASE_URL}/api"

BACKOFF_BASE_SECONDS = 1
BACKOFF_FACTOR = 2
BACKOFF_CAP_SECONDS = 16
MAX_RECONNECT_ATTEMPTS = 5


def backoff_delay(attempt: int) -> int:
    """Delay before reconnect ``attempt`` (1-based): 1, 2, 4, 8, 16, 16, ..."""
    return min(BACKOFF_BASE_SECONDS * BACKOFF_FACTOR ** (attempt - 1), BACKOFF_CAP_SECONDS)


def _login(session: requests.Session, username: str, password: str) -> Dict:
    resp = session.post(
        f"{API_ROOT}/auth/login/",
        json={"username": username, "password": password},
        timeout=10,
    )
    resp.raise_for_status()
    data = resp.json()
    session.headers.update({"Authorization": f"Bearer {data['tokens']['access']}"})
    return data


def _resync(session: requests.Session) -> None:
    """Pull the durable state the live stream may have missed."""
    active = session.get(f"{API_ROOT}/rides/active/", timeout=10)
    if active.ok:
        print("[sync] active ride:", json.dumps(active.json().get("ride"), indent=2))
    else:
        print(f"[sync] active ride fetch failed: {active.status_code}")

    inbox = session.get(f"{API_ROOT}/notifications/", timeout=10)
    if inbox.ok:
        body = inbox.json()
        print(f"[sync] {body.get('unread_count', 0)} unread notification(s)")
        for note in body.get("notifications", [])[:10]:
            marker = " " if note.get("is_read") else "*"
            print(f"  {marker} [{note.get('type')}] {note.get('title')}: {note.get('message')}")
    else:
        print(f"[sync] notifications fetch failed: {inbox.status_code}")


def _connect(token: str):
    return websocket.create_connection(f"{WS_URL}/ws/events/?token={token}", timeout=30)


def _listen(ws, user_id: int) -> None:
    """Run one connection until the server closes it or the network drops."""
    try:
        ws.send(json.dumps({"type": "register", "userId": user_id}))
        while True:
            try:
                raw = ws.recv()
            except websocket.WebSocketTimeoutException:
                continue
            if not raw:
                return
            message = json.loads(raw)
            print(f"[event] {message.get('type')}: {json.dumps(message.get('data'), indent=2)}")
    finally:
        ws.close()


def run(username: str, password: str) -> int:
    session = requests.Session()
    login = _login(session, username, password)
    token = login["tokens"]["access"]
    user_id = login["user"]["id"]
    print(f"Logged in as {login['user']['username']} ({login['user']['role']})")

    attempt = 0
    reconnecting = False
    while True:
        try:
            ws = _connect(token)
        except (websocket.WebSocketException, OSError) as exc:
            reason = str(exc) or exc.__class__.__name__
        else:
            attempt = 0
            if reconnecting:
                try:
                    _resync(session)
                except requests.RequestException as exc:
                    print(f"[sync] failed: {exc}")
            try:
                _listen(ws, user_id)
                reason = "connection closed"
            except (websocket.WebSocketException, OSError) as exc:
                reason = str(exc) or exc.__class__.__name__

        reconnecting = True
        attempt += 1
        if attempt > MAX_RECONNECT_ATTEMPTS:
            print(f"Giving up after {MAX_RECONNECT_ATTEMPTS} reconnect attempts ({reason})")
            return 1

        delay = backoff_delay(attempt)
        print(f"Disconnected ({reason}); reconnecting in {delay}s [{attempt}/{MAX_RECONNECT_ATTEMPTS}]")
        time.sleep(delay)


if __name__ == "__main__":
    if len(sys.argv) != 3:
        print(__doc__)
        sys.exit(2)
    sys.exit(run(sys.argv[1], sys.argv[2]))
