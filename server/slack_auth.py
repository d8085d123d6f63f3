# slack_auth.py
"""
Slack request verification.

Slack signing guide:
  base_string = "v0:{timestamp}:{raw_body}"
  my_sig      = "v0=" + HMAC_SHA256(signing_secret, base_string)
  Compare my_sig to the X-Slack-Signature header in constant time.
Requests whose timestamp is more than 5 minutes away from now are rejected
to limit replay of captured requests.

Only a request that passes both checks becomes a VerifiedRequest; views
behind @require_slack_signature find it on flask.g.slack_request.
"""

from __future__ import annotations

import functools
import hashlib
import hmac
import logging
import time
import urllib.parse
from dataclasses import dataclass, field
from typing import Callable

from flask import current_app, g, make_response, request
from werkzeug.exceptions import ClientDisconnected

logger = logging.getLogger(__name__)

TIMESTAMP_HEADER = "X-Slack-Request-Timestamp"
SIGNATURE_HEADER = "X-Slack-Signature"
VERSION = "v0"
MAX_AGE_SECONDS = 300

# Key under which create_app() stores the verifier in app.extensions
EXTENSION_KEY = "slack_verifier"


class SlackAuthError(Exception):
    """Base class for every way a request can fail authentication."""

    status = 400
    body = "Bad Request"


class MalformedRequest(SlackAuthError):
    """Missing or unparseable timestamp/signature headers, or unreadable body."""


class StaleRequest(SlackAuthError):
    """Timestamp outside the freshness window."""


class InvalidSignature(SlackAuthError):
    status = 401
    body = "Unauthorized"


class Misconfigured(SlackAuthError):
    """No signing secret configured; every request is refused."""

    status = 500
    body = "Internal Server Error"


@dataclass(frozen=True)
class VerifiedRequest:
    body: bytes
    timestamp: int
    form: dict[str, str] = field(default_factory=dict)


def sign(secret: str | bytes, timestamp: str | int, body: bytes) -> str:
    """Slack-style v0 signature for a body sent at `timestamp`."""
    if isinstance(secret, str):
        secret = secret.encode("utf-8")
    base = b":".join([VERSION.encode(), str(timestamp).encode("utf-8"), body])
    return f"{VERSION}=" + hmac.new(secret, base, hashlib.sha256).hexdigest()


def parse_form(body: bytes) -> dict[str, str]:
    """
    Decode an application/x-www-form-urlencoded body into a plain dict.
    Last occurrence of a key wins. Bad percent-escapes are kept literally
    and invalid UTF-8 is replaced, so this never raises on user input.
    """
    text = body.decode("utf-8", errors="replace")
    return dict(urllib.parse.parse_qsl(text, keep_blank_values=True, errors="replace"))


class SlackRequestVerifier:
    """
    Verifies raw Slack requests against a signing secret.

    Holds nothing but the immutable secret, so one instance serves every
    request concurrently.
    """

    def __init__(
        self,
        signing_secret: str,
        max_age: int = MAX_AGE_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        self._secret = (signing_secret or "").encode("utf-8")
        self.max_age = max_age
        self.clock = clock

    @property
    def configured(self) -> bool:
        return bool(self._secret)

    def verify(self, body: bytes, timestamp: str | None, signature: str | None) -> VerifiedRequest:
        if not self._secret:
            raise Misconfigured("signing secret is not configured")

        if not timestamp or not signature:
            raise MalformedRequest("missing timestamp or signature header")

        try:
            ts = int(timestamp)
            age = abs(self.clock() - ts)
        except (ValueError, OverflowError):
            # OverflowError: digit strings too large to compare with a float clock
            raise MalformedRequest("timestamp header is not a usable integer") from None

        if age > self.max_age:
            raise StaleRequest(f"timestamp outside {self.max_age}s window")

        expected = sign(self._secret, timestamp, body)
        # compare_digest on bytes: unequal lengths just return False
        if not hmac.compare_digest(expected.encode("utf-8"), signature.encode("utf-8")):
            raise InvalidSignature("signature mismatch")

        return VerifiedRequest(body=body, timestamp=ts, form=parse_form(body))


def _read_body() -> bytes:
    try:
        return request.get_data(cache=True)
    except (ClientDisconnected, OSError) as exc:
        raise MalformedRequest(f"could not read request body: {exc!r}") from exc


def verify_flask_request(verifier: SlackRequestVerifier) -> VerifiedRequest:
    """Run the verifier against the current Flask request."""
    body = _read_body()
    return verifier.verify(
        body,
        request.headers.get(TIMESTAMP_HEADER),
        request.headers.get(SIGNATURE_HEADER),
    )


def require_slack_signature(view):
    """
    Gate a Flask view behind Slack signature verification.
    On failure the view is never called and a short plain-text response is
    returned instead.
    """

    @functools.wraps(view)
    def wrapper(*args, **kwargs):
        verifier = current_app.extensions[EXTENSION_KEY]
        try:
            g.slack_request = verify_flask_request(verifier)
        except Misconfigured:
            logger.error("Rejecting %s: SLACK_SIGNING_SECRET is not set", request.path)
            return _reject(Misconfigured)
        except SlackAuthError as exc:
            logger.warning("Rejecting %s: %s (%s)", request.path, type(exc).__name__, exc)
            return _reject(type(exc))
        return view(*args, **kwargs)

    return wrapper


def _reject(error_type: type[SlackAuthError]):
    resp = make_response(error_type.body, error_type.status)
    resp.headers["Content-Type"] = "text/plain; charset=utf-8"
    return resp
