# Google OAuth settings, API keys & sane defaults
import json
import os
import pathlib
from zoneinfo import ZoneInfo

from dotenv import load_dotenv

load_dotenv()

SCOPES = ["https://www.googleapis.com/auth/calendar.readonly"]

WORKDAY_START = 9   # 09:00 local
WORKDAY_END   = 17  # 17:00 local
DEFAULT_SLOT_MINUTES = 60
DEFAULT_DAYS = 7
INCLUDE_OUT_OF_HOURS_EVENTS = True

LOCAL_TZ = ZoneInfo(os.getenv("PLANNER_TZ", "UTC"))

GOOGLE_MAPS_API_KEY  = os.getenv("GOOGLE_MAPS_API_KEY", "")
GOOGLE_CLIENT_ID     = os.getenv("GOOGLE_CLIENT_ID", "")
GOOGLE_CLIENT_SECRET = os.getenv("GOOGLE_CLIENT_SECRET", "")
OAUTH_REDIRECT_URL   = os.getenv("OAUTH_REDIRECT_URL", "http://localhost:8080/api/authcallback")
FLASK_SECRET         = os.getenv("FLASK_SECRET", "dev-secret")

STATIC_DIR = os.getenv("STATIC_DIR", str(pathlib.Path(__file__).resolve().parent.parent / "dist"))

COOKIE_NAME   = "authCodeEvPlanner"
COOKIE_DOMAIN = os.getenv("COOKIE_DOMAIN") or None

DISTANCE_TIMEOUT_SECONDS = int(os.getenv("DISTANCE_TIMEOUT_SECONDS", "30"))

# unfinished logins are forgotten after this long
PENDING_LOGIN_SECONDS = int(os.getenv("PENDING_LOGIN_SECONDS", "600"))


def load_config(path) -> dict:
    """Read the optional address file used by the CLI.

    The file looks like ``{"start_address": "...", "end_address": "..."}``;
    ``end_address`` may be omitted.
    """
    data = json.loads(pathlib.Path(path).read_text())
    return {
        "start_address": data.get("start_address", ""),
        "end_address": data.get("end_address"),
    }
