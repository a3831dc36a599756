"""Tests for the command line client."""

from __future__ import annotations

import io
import json

import httpx
import pytest

from app.cli import main
from app.tests.fakes import CHANNEL_A, CHANNEL_B

BASE_URL = "https://hooks.example.com"


def _run(argv: list[str], handler) -> tuple[int, str, list[httpx.Request]]:
    requests: list[httpx.Request] = []

    def recording_handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return handler(request)

    out = io.StringIO()
    code = main([*argv, "--url", BASE_URL], transport=httpx.MockTransport(recording_handler), out=out)
    return code, out.getvalue(), requests


def test_subscribe_prints_expiry():
    body = {
        "status": "success",
        "channel_id": CHANNEL_A,
        "message": "Subscription initiated",
        "expires_at": "2024-07-17T12:00:00Z",
    }

    code, output, requests = _run(["subscribe", "--channel", CHANNEL_A], lambda r: httpx.Response(200, json=body))

    assert code == 0
    assert f"Subscribed to channel {CHANNEL_A}" in output
    assert "Expires: 2024-07-17T12:00:00Z" in output
    assert requests[0].method == "POST"
    assert requests[0].url.path == "/subscribe"
    assert requests[0].url.params["channel_id"] == CHANNEL_A


def test_subscribe_conflict_is_not_an_error():
    body = {"status": "conflict", "channel_id": CHANNEL_A, "message": "x", "expires_at": "2024-07-17T12:00:00Z"}

    code, output, _ = _run(["subscribe", "--channel", CHANNEL_A], lambda r: httpx.Response(409, json=body))

    assert code == 0
    assert f"Already subscribed to channel {CHANNEL_A}" in output


def test_subscribe_server_error(capsys: pytest.CaptureFixture[str]):
    body = {"status": "error", "message": "PubSubHubbub subscription failed: boom"}

    code, _, _ = _run(["subscribe", "--channel", CHANNEL_A], lambda r: httpx.Response(502, json=body))

    assert code == 1
    assert "server error (502): PubSubHubbub subscription failed: boom" in capsys.readouterr().err


def test_unsubscribe_success():
    code, output, requests = _run(["unsubscribe", "--channel", CHANNEL_A], lambda r: httpx.Response(204))

    assert code == 0
    assert output.strip() == f"Unsubscribed from channel {CHANNEL_A}"
    assert requests[0].method == "DELETE"


def test_unsubscribe_not_found(capsys: pytest.CaptureFixture[str]):
    code, _, _ = _run(["unsubscribe", "--channel", CHANNEL_A], lambda r: httpx.Response(404, json={}))

    assert code == 1
    assert f"not subscribed to channel {CHANNEL_A}" in capsys.readouterr().err


LISTING = {
    "subscriptions": [
        {"channel_id": CHANNEL_A, "status": "active", "expires_at": "2024-07-17T12:00:00Z", "days_until_expiry": 0.5},
        {"channel_id": CHANNEL_B, "status": "expired", "expires_at": "2024-07-15T12:00:00Z", "days_until_expiry": -1.0},
    ],
    "total": 2,
    "active": 1,
    "expired": 1,
}


def test_list_table():
    code, output, _ = _run(["list"], lambda r: httpx.Response(200, json=LISTING))

    assert code == 0
    assert "Total: 2 | Active: 1 | Expired: 1" in output
    lines = output.splitlines()
    header = next(line for line in lines if line.startswith("CHANNEL ID"))
    assert header.split() == ["CHANNEL", "ID", "STATUS", "EXPIRES", "DAYS", "LEFT"]
    row_a = next(line for line in lines if line.startswith(CHANNEL_A))
    row_b = next(line for line in lines if line.startswith(CHANNEL_B))
    assert row_a.split()[-1] == "0.5"
    assert row_b.split()[-1] == "expired"


def test_list_json():
    code, output, _ = _run(["list", "--format", "json"], lambda r: httpx.Response(200, json=LISTING))

    assert code == 0
    assert json.loads(output) == LISTING


def test_list_empty():
    empty = {"subscriptions": [], "total": 0, "active": 0, "expired": 0}

    code, output, _ = _run(["list"], lambda r: httpx.Response(200, json=empty))

    assert code == 0
    assert "No subscriptions found." in output


def test_renew_prints_failures():
    summary = {
        "status": "success",
        "totalChecked": 3,
        "renewalsCandidates": 2,
        "renewalsSucceeded": 1,
        "renewalsFailed": 1,
        "results": [
            {
                "channelID": CHANNEL_A,
                "success": True,
                "message": "Successfully renewed subscription",
                "newExpiryTime": "2024-07-17T12:00:00Z",
                "attemptCount": 0,
            },
            {
                "channelID": CHANNEL_B,
                "success": False,
                "message": "Max renewal attempts (3) exceeded",
                "attemptCount": 3,
            },
        ],
    }

    code, output, requests = _run(["renew"], lambda r: httpx.Response(200, json=summary))

    assert code == 0
    assert requests[0].url.path == "/renew"
    assert "Checked: 3 | Candidates: 2 | Succeeded: 1 | Failed: 1" in output
    assert f"OK   {CHANNEL_A} - Renewed (expires: 2024-07-17T12:00:00Z)" in output
    assert f"FAIL {CHANNEL_B} - Failed: Max renewal attempts (3) exceeded" in output


def test_renew_nothing_to_do():
    summary = {"status": "success", "totalChecked": 1, "renewalsCandidates": 0, "renewalsSucceeded": 0,
               "renewalsFailed": 0, "results": []}

    code, output, _ = _run(["renew"], lambda r: httpx.Response(200, json=summary))

    assert code == 0
    assert "No subscriptions needed renewal." in output


def test_connection_error_exits_non_zero(capsys: pytest.CaptureFixture[str]):
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    code, _, _ = _run(["list"], handler)

    assert code == 1
    assert "making request" in capsys.readouterr().err


def test_missing_url_exits_non_zero(monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]):
    monkeypatch.delenv("YOUTUBE_WEBHOOK_URL", raising=False)

    assert main(["list"], out=io.StringIO()) == 1
    assert "YOUTUBE_WEBHOOK_URL" in capsys.readouterr().err
