"""Tests for Slack request signature verification and form normalization."""

from __future__ import annotations

import hashlib
import hmac
import time

import flask
import pytest
from werkzeug.exceptions import ClientDisconnected

from app import create_app
from config import Settings
from slack_auth import (
    InvalidSignature,
    MalformedRequest,
    Misconfigured,
    SlackRequestVerifier,
    StaleRequest,
    parse_form,
    sign,
)

from conftest import SECRET, form_body, signed_headers

NOW = 1_700_000_000
PING_BODY = b"command=%2Fping"


@pytest.fixture
def verifier():
    return SlackRequestVerifier(SECRET, clock=lambda: NOW)


# ---------------------------------------------------------------------------
# sign
# ---------------------------------------------------------------------------


class TestSign:
    def test_base_string_layout(self):
        expected = "v0=" + hmac.new(b"s3cret", b"v0:1700000000:command=%2Fping", hashlib.sha256).hexdigest()
        assert sign(SECRET, NOW, PING_BODY) == expected

    def test_accepts_bytes_secret_and_str_timestamp(self):
        assert sign(SECRET.encode(), str(NOW), PING_BODY) == sign(SECRET, NOW, PING_BODY)

    def test_empty_body(self):
        expected = "v0=" + hmac.new(b"s3cret", b"v0:1700000000:", hashlib.sha256).hexdigest()
        assert sign(SECRET, NOW, b"") == expected


# ---------------------------------------------------------------------------
# verify
# ---------------------------------------------------------------------------


class TestVerify:
    def test_round_trip(self, verifier):
        result = verifier.verify(PING_BODY, str(NOW), sign(SECRET, NOW, PING_BODY))
        assert result.form == {"command": "/ping"}
        assert result.body == PING_BODY
        assert result.timestamp == NOW

    @pytest.mark.parametrize("body", [b"", b"text=hello+world", "text=café".encode(), b"a=\xff\xfe"])
    def test_round_trip_various_bodies(self, verifier, body):
        verifier.verify(body, str(NOW), sign(SECRET, NOW, body))

    @pytest.mark.parametrize("position", [3, 4, 20, -1])
    def test_single_byte_change_fails(self, verifier, position):
        good = sign(SECRET, NOW, PING_BODY)
        chars = list(good)
        chars[position] = "0" if chars[position] != "0" else "1"
        with pytest.raises(InvalidSignature):
            verifier.verify(PING_BODY, str(NOW), "".join(chars))

    def test_wrong_version_prefix_fails(self, verifier):
        good = sign(SECRET, NOW, PING_BODY)
        with pytest.raises(InvalidSignature):
            verifier.verify(PING_BODY, str(NOW), "v1" + good[2:])

    @pytest.mark.parametrize("mangle", [lambda s: s[:-1], lambda s: s + "0", lambda s: "v0=", lambda s: "x"])
    def test_length_mismatch_is_invalid_not_crash(self, verifier, mangle):
        with pytest.raises(InvalidSignature):
            verifier.verify(PING_BODY, str(NOW), mangle(sign(SECRET, NOW, PING_BODY)))

    def test_non_ascii_signature_is_invalid(self, verifier):
        with pytest.raises(InvalidSignature):
            verifier.verify(PING_BODY, str(NOW), "v0=é" * 10)

    def test_tampered_body_fails(self, verifier):
        sig = sign(SECRET, NOW, PING_BODY)
        with pytest.raises(InvalidSignature):
            verifier.verify(b"command=%2Flearning", str(NOW), sig)

    def test_wrong_secret_fails(self, verifier):
        with pytest.raises(InvalidSignature):
            verifier.verify(PING_BODY, str(NOW), sign("other-secret", NOW, PING_BODY))

    @pytest.mark.parametrize("skew", [-400, -301, 301, 3600])
    def test_stale_even_when_correctly_signed(self, verifier, skew):
        ts = NOW + skew
        with pytest.raises(StaleRequest):
            verifier.verify(PING_BODY, str(ts), sign(SECRET, ts, PING_BODY))

    @pytest.mark.parametrize("skew", [-300, 0, 300])
    def test_edge_of_window_is_fresh(self, verifier, skew):
        ts = NOW + skew
        verifier.verify(PING_BODY, str(ts), sign(SECRET, ts, PING_BODY))

    @pytest.mark.parametrize("timestamp", [None, ""])
    def test_missing_timestamp(self, verifier, timestamp):
        with pytest.raises(MalformedRequest):
            verifier.verify(PING_BODY, timestamp, sign(SECRET, NOW, PING_BODY))

    @pytest.mark.parametrize("signature", [None, ""])
    def test_missing_signature(self, verifier, signature):
        with pytest.raises(MalformedRequest):
            verifier.verify(PING_BODY, str(NOW), signature)

    @pytest.mark.parametrize("timestamp", ["abc", "17e8", "1.5"])
    def test_unparseable_timestamp(self, verifier, timestamp):
        with pytest.raises(MalformedRequest):
            verifier.verify(PING_BODY, timestamp, "v0=00")

    @pytest.mark.parametrize("secret", ["", None])
    def test_missing_secret_fails_closed(self, secret):
        v = SlackRequestVerifier(secret, clock=lambda: NOW)
        assert not v.configured
        with pytest.raises(Misconfigured):
            v.verify(PING_BODY, str(NOW), sign("", NOW, PING_BODY))

    def test_repeated_verification_is_stable(self, verifier):
        sig = sign(SECRET, NOW, PING_BODY)
        first = verifier.verify(PING_BODY, str(NOW), sig)
        second = verifier.verify(PING_BODY, str(NOW), sig)
        assert first == second


# ---------------------------------------------------------------------------
# parse_form
# ---------------------------------------------------------------------------


class TestParseForm:
    def test_duplicate_keys_last_wins(self):
        assert parse_form(b"a=1&a=2") == {"a": "2"}

    def test_decodes_percent_and_plus(self):
        assert parse_form(b"command=%2Flearning&text=hello+there") == {"command": "/learning", "text": "hello there"}

    def test_blank_values_kept(self):
        assert parse_form(b"text=&user_id=U1") == {"text": "", "user_id": "U1"}

    def test_empty_body(self):
        assert parse_form(b"") == {}

    def test_malformed_percent_escape_is_kept(self):
        assert parse_form(b"x=%zz&y=1") == {"x": "%zz", "y": "1"}

    def test_invalid_utf8_does_not_raise(self):
        form = parse_form(b"a=%E2%82&b=\xff")
        assert set(form) == {"a", "b"}
        assert "�" in form["b"]


# ---------------------------------------------------------------------------
# Flask gate
# ---------------------------------------------------------------------------


class TestRequireSlackSignature:
    def test_scenario_ping_passes(self, client):
        body = form_body(command="/ping")
        assert body == PING_BODY
        resp = client.post("/slack/commands", data=body, headers=signed_headers(body))
        assert resp.status_code == 200
        assert resp.get_json()["text"].startswith("pong")

    def test_missing_timestamp_is_400(self, client, ctx):
        headers = signed_headers(PING_BODY)
        del headers["X-Slack-Request-Timestamp"]
        resp = client.post("/slack/commands", data=PING_BODY, headers=headers)
        assert resp.status_code == 400
        assert resp.get_data(as_text=True) == "Bad Request"

    def test_missing_signature_is_400(self, client):
        headers = signed_headers(PING_BODY)
        del headers["X-Slack-Signature"]
        resp = client.post("/slack/commands", data=PING_BODY, headers=headers)
        assert resp.status_code == 400

    def test_wrong_secret_is_401(self, client):
        resp = client.post("/slack/commands", data=PING_BODY, headers=signed_headers(PING_BODY, secret="nope"))
        assert resp.status_code == 401
        assert resp.get_data(as_text=True) == "Unauthorized"

    def test_stale_is_400(self, client):
        headers = signed_headers(PING_BODY, timestamp=int(time.time()) - 400)
        resp = client.post("/slack/commands", data=PING_BODY, headers=headers)
        assert resp.status_code == 400
        assert resp.get_data(as_text=True) == "Bad Request"

    @pytest.mark.parametrize("timestamp", ["1" + "0" * 400, "99999999999999999999999999", "-" + "9" * 400])
    def test_huge_timestamp_is_400(self, client, ctx, timestamp):
        headers = signed_headers(PING_BODY)
        headers["X-Slack-Request-Timestamp"] = timestamp
        resp = client.post("/slack/commands", data=PING_BODY, headers=headers)
        assert resp.status_code == 400
        assert resp.get_data(as_text=True) == "Bad Request"

    def test_rejection_runs_no_handler(self, client, ctx):
        body = form_body(command="/learning", trigger_id="T1", user_id="U1")
        resp = client.post("/slack/commands", data=body, headers=signed_headers(body, secret="nope"))
        assert resp.status_code == 401
        ctx.slack.open_view.assert_not_called()
        ctx.slack.post_message.assert_not_called()

    def test_interactions_route_is_gated(self, client):
        resp = client.post("/slack/interactions", data=b"payload=%7B%7D")
        assert resp.status_code == 400

    def test_body_read_failure_is_400(self, client, monkeypatch):
        def boom(self, *args, **kwargs):
            raise ClientDisconnected()

        monkeypatch.setattr(flask.Request, "get_data", boom)
        resp = client.post("/slack/commands", data=PING_BODY, headers=signed_headers(PING_BODY))
        assert resp.status_code == 400

    def test_no_secret_rejects_everything(self, ctx):
        ctx.settings = Settings()
        client = create_app(context=ctx).test_client()
        resp = client.post("/slack/commands", data=PING_BODY, headers=signed_headers(PING_BODY, secret=""))
        assert resp.status_code == 500
        assert resp.get_data(as_text=True) == "Internal Server Error"
