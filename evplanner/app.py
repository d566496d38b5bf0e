import os
import secrets
import threading
import time
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from flask import Flask, jsonify, redirect, request
from google_auth_oauthlib.flow import Flow
from googleapiclient.errors import HttpError

from evplanner.calendar_utils import get_service, list_calendars
from evplanner.config import (
    COOKIE_DOMAIN,
    COOKIE_NAME,
    FLASK_SECRET,
    GOOGLE_CLIENT_ID,
    GOOGLE_CLIENT_SECRET,
    OAUTH_REDIRECT_URL,
    PENDING_LOGIN_SECONDS,
    SCOPES,
    STATIC_DIR,
)
from evplanner.distance_utils import DistanceProviderError, GoogleDistanceMatrix
from evplanner.models import Event, LocatedTimeSlot
from evplanner.planner import InvalidQueryError, Query, find_slots

if OAUTH_REDIRECT_URL.startswith("http://localhost"):
    os.environ["OAUTHLIB_INSECURE_TRANSPORT"] = "1"   # dev-only

app = Flask(__name__, static_folder=STATIC_DIR, static_url_path="")
app.secret_key = FLASK_SECRET

QUERY_HELP = (
    'Please provide the query in the body of the request in the following format: '
    '{"NumDays": 5, "EventLoc": "New York", "StartLoc": "San Francisco", '
    '"Duration": 60, "CalIds": ["calendar1", "calendar2"]}'
)

# ---------- sessions ----------
@dataclass
class _Session:
    credentials: object = None
    code_verifier: Optional[str] = None
    created: float = 0.0


class SessionStore:
    """Per-user OAuth sessions keyed by the login state token.

    A token maps to ``None`` credentials while the OAuth round trip is pending.
    Pending logins older than ``pending_ttl`` seconds are dropped.
    """

    def __init__(self, pending_ttl: float = PENDING_LOGIN_SECONDS, clock=time.monotonic):
        self._lock = threading.Lock()
        self._sessions: dict[str, _Session] = {}
        self._pending_ttl = pending_ttl
        self._clock = clock

    def _expired(self, session: _Session, now: float) -> bool:
        return session.credentials is None and now - session.created > self._pending_ttl

    def _get(self, token: str) -> Optional[_Session]:
        # caller holds the lock
        session = self._sessions.get(token)
        if session is not None and self._expired(session, self._clock()):
            del self._sessions[token]
            return None
        return session

    def begin(self, token: str, code_verifier: Optional[str] = None) -> None:
        with self._lock:
            now = self._clock()
            for stale in [t for t, s in self._sessions.items() if self._expired(s, now)]:
                del self._sessions[stale]
            self._sessions[token] = _Session(code_verifier=code_verifier, created=now)

    def __contains__(self, token: str) -> bool:
        with self._lock:
            return self._get(token) is not None

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def credentials(self, token: str):
        with self._lock:
            session = self._get(token)
            return session.credentials if session else None

    def code_verifier(self, token: str) -> Optional[str]:
        with self._lock:
            session = self._get(token)
            return session.code_verifier if session else None

    def authorize(self, token: str, credentials) -> None:
        with self._lock:
            self._sessions[token] = _Session(credentials=credentials, created=self._clock())

    def discard(self, token: str) -> None:
        with self._lock:
            self._sessions.pop(token, None)


sessions = SessionStore()
_distance_provider: Optional[GoogleDistanceMatrix] = None


def get_distance_provider() -> GoogleDistanceMatrix:
    global _distance_provider
    if _distance_provider is None:
        _distance_provider = GoogleDistanceMatrix()
    return _distance_provider

# ---------- auth helpers ----------
def _client_config() -> dict:
    return {
        "web": {
            "client_id": GOOGLE_CLIENT_ID,
            "client_secret": GOOGLE_CLIENT_SECRET,
            "auth_uri": "https://accounts.google.com/o/oauth2/auth",
            "token_uri": "https://oauth2.googleapis.com/token",
            "redirect_uris": [OAUTH_REDIRECT_URL],
        }
    }


def _flow(state: Optional[str] = None, code_verifier: Optional[str] = None) -> Flow:
    return Flow.from_client_config(
        _client_config(), scopes=SCOPES,
        state=state,
        redirect_uri=OAUTH_REDIRECT_URL,
        code_verifier=code_verifier,
    )


def _session_token() -> Optional[str]:
    token = request.cookies.get(COOKIE_NAME, "")
    return token or None


def _unauthorized(expire_cookie: bool = False):
    response = jsonify({"auth": False})
    if expire_cookie:
        response.delete_cookie(COOKIE_NAME, domain=COOKIE_DOMAIN)
    return response, 401


def _calendar_service():
    """Calendar service for the caller, or an error response tuple."""
    token = _session_token()
    if token is None:
        print("No auth code found")
        return None, _unauthorized()
    creds = sessions.credentials(token)
    if creds is None:
        print("No session found")
        return None, _unauthorized(expire_cookie=True)
    return get_service(creds), None

# ---------- serialisation ----------
def _event_json(event: Optional[Event]) -> Optional[dict]:
    if event is None:
        return None
    return {"Summary": event.summary, "Location": event.location}


def slot_to_json(slot: LocatedTimeSlot) -> dict:
    return {
        "Year": slot.date.year,
        "Month": slot.date.month,
        "Day": slot.date.day,
        "Start": slot.start.isoformat(),
        "End": slot.end.isoformat(),
        "ComesAfter": _event_json(slot.comes_after),
        "ComesBefore": _event_json(slot.comes_before),
        "Distance": slot.added_distance,
    }

# ---------- routes ----------
@app.route("/")
def root():
    return app.send_static_file("index.html")


@app.route("/login")
def login():
    token = _session_token()
    if token and sessions.credentials(token) is not None:
        print("User already logged in")
        return redirect("/")

    state = secrets.token_hex(16)
    flow = _flow()
    auth_url, _ = flow.authorization_url(
        state=state,
        access_type="offline",
        include_granted_scopes="true",
        prompt="consent",
    )
    sessions.begin(state, getattr(flow, "code_verifier", None))
    print(f"Redirecting to {auth_url}")
    return redirect(auth_url)


@app.route("/api/authcallback")
def auth_callback():
    state = request.args.get("state", "")
    code = request.args.get("code", "")
    if not state or not code:
        print("No state or auth code given")
        return "No state or auth code given", 400
    if state not in sessions:
        # CSRF state mismatch
        print("Invalid state")
        return "Invalid state", 400
    if sessions.credentials(state) is not None:
        print(f"Session already exists for {state}")
        return redirect("/")

    try:
        flow = _flow(state=state, code_verifier=sessions.code_verifier(state))
        flow.fetch_token(code=code)
    except Exception as e:
        sessions.discard(state)
        print(f"❌ Unable to exchange auth code for token: {e}")
        return "Unable to create calendar service", 500

    sessions.authorize(state, flow.credentials)
    response = redirect("/")
    response.set_cookie(
        COOKIE_NAME, state,
        domain=COOKIE_DOMAIN,
        expires=datetime.now(timezone.utc) + timedelta(hours=24),
        secure=True,
        samesite="Lax",
    )
    print(f"User {state} has been authorized")
    return response


@app.route("/api/calendars")
def calendars():
    service, error = _calendar_service()
    if error:
        return error
    try:
        return jsonify(list_calendars(service))
    except HttpError as e:
        print(f"❌ Unable to list calendars: {e}")
        return jsonify({"error": "Unable to list calendars"}), 502


@app.route("/api/slots", methods=["POST"])
def available_slots():
    service, error = _calendar_service()
    if error:
        return error

    body = request.get_json(silent=True)
    if body is None:
        return jsonify({"error": QUERY_HELP}), 400

    try:
        query = Query.from_json(body)
        slots = find_slots(service, get_distance_provider(), query)
    except InvalidQueryError as e:
        return jsonify({"error": str(e)}), 400
    except DistanceProviderError as e:
        return jsonify({"error": f"Distance lookup failed: {e}"}), 502
    except HttpError as e:
        print(f"❌ Unable to retrieve events: {e}")
        return jsonify({"error": "Unable to retrieve events"}), 502

    return jsonify([slot_to_json(s) for s in slots])


if __name__ == "__main__":
    print("✅ Starting Flask app...")
    app.run(debug=True, port=8080)
