# debug_routes.py
"""
Operator endpoints: health check, configuration/integration status, and the
one-off Google OAuth flow that yields the calendar refresh token.

Everything except /health and the OAuth callback requires ADMIN_TOKEN. With
no ADMIN_TOKEN configured these routes answer 403 to everyone.
"""

from __future__ import annotations

import hashlib
import hmac
import html
import logging
import secrets
import time
from datetime import datetime, timezone

from flask import Blueprint, current_app, jsonify, make_response, redirect, request

from google_calendar import CalendarError
from notion import NotionError
from slack_api import SlackApiError

logger = logging.getLogger(__name__)

bp = Blueprint("debug", __name__)

# Seconds between /google/oauth/start and the callback
OAUTH_STATE_MAX_AGE = 600


def _ctx():
    return current_app.extensions["learning_bot"]


def _is_admin(token: str | None) -> bool:
    admin_token = _ctx().settings.admin_token
    if not admin_token or not token:
        return False
    return hmac.compare_digest(token.encode("utf-8"), admin_token.encode("utf-8"))


def _forbidden():
    return make_response("Forbidden", 403, {"Content-Type": "text/plain; charset=utf-8"})


def _ping(fn, errors) -> dict:
    try:
        fn()
        return {"ok": True, "error": None}
    except errors as exc:
        return {"ok": False, "error": str(exc)}


@bp.route("/health", methods=["GET"])
def health():
    return jsonify({"status": "ok"})


@bp.route("/debug/status", methods=["GET"])
def debug_status():
    if not _is_admin(request.headers.get("X-Admin-Token")):
        return _forbidden()

    ctx = _ctx()
    network = (SlackApiError, NotionError, CalendarError, OSError)
    return jsonify({
        "at": datetime.now(timezone.utc).isoformat(),
        "env": ctx.settings.redacted(),
        "ping": {
            "slack": _ping(ctx.slack.auth_test, network),
            "notion": _ping(ctx.notion.ping, network),
            "gcal": _ping(ctx.calendar.access_token, network),
        },
    })


# ---------- Google OAuth (one-off, to obtain GCAL_OAUTH_REFRESH_TOKEN) ----------

def _state_signature(issued_at: str, nonce: str) -> str:
    key = _ctx().settings.admin_token.encode("utf-8")
    return hmac.new(key, f"{issued_at}.{nonce}".encode("utf-8"), hashlib.sha256).hexdigest()


def _make_state() -> str:
    issued_at = str(int(time.time()))
    nonce = secrets.token_urlsafe(16)
    return f"{issued_at}.{nonce}.{_state_signature(issued_at, nonce)}"


def _check_state(state: str) -> bool:
    """Signed by us, and issued no more than OAUTH_STATE_MAX_AGE seconds ago."""
    if not _ctx().settings.admin_token:
        return False
    parts = state.split(".")
    if len(parts) != 3 or not all(parts):
        return False
    issued_at, nonce, sig = parts
    if not hmac.compare_digest(sig.encode("utf-8"), _state_signature(issued_at, nonce).encode("utf-8")):
        return False
    try:
        age = time.time() - int(issued_at)
    except (ValueError, OverflowError):
        return False
    return 0 <= age <= OAUTH_STATE_MAX_AGE


@bp.route("/google/oauth/start", methods=["GET"])
def google_oauth_start():
    token = request.headers.get("X-Admin-Token") or request.args.get("token")
    if not _is_admin(token):
        return _forbidden()
    return redirect(_ctx().calendar.authorization_url(_make_state()))


@bp.route("/google/oauth/callback", methods=["GET"])
def google_oauth_callback():
    code = request.args.get("code")
    if not code:
        return make_response("Missing code", 400)
    if not _check_state(request.args.get("state", "")):
        return make_response("Invalid state", 400)

    try:
        tokens = _ctx().calendar.exchange_code(code)
    except (CalendarError, OSError):
        logger.exception("OAuth code exchange failed")
        return make_response("Token exchange failed", 502)

    # Shown once: the operator copies it into GCAL_OAUTH_REFRESH_TOKEN.
    refresh_token = tokens.get("refresh_token") or "NO_REFRESH_TOKEN_RETURNED"
    return f"<pre>{html.escape(refresh_token)}</pre>"
