"""Command line client for a deployed webhook service."""

from __future__ import annotations

import argparse
import json
import os
import sys
from typing import Any, Sequence, TextIO

import httpx
from pydantic import ValidationError

from app.schema.subscription import APIResponse, RenewalSummary, SubscriptionListResponse

DEFAULT_TIMEOUT_SECONDS = 30.0
URL_ENV_VAR = "YOUTUBE_WEBHOOK_URL"


class CLIError(RuntimeError):
    """Raised when the service cannot be reached or answers with an error."""

    def __init__(self, message: str, *, response: APIResponse | None = None) -> None:
        super().__init__(message)
        self.response = response


def _error_message(response: httpx.Response) -> str | None:
    try:
        return APIResponse.model_validate(response.json()).message
    except (ValueError, ValidationError):
        return None


def _raise_for_error(response: httpx.Response) -> None:
    message = _error_message(response)
    if message:
        raise CLIError(f"server error ({response.status_code}): {message}")
    raise CLIError(f"server returned status {response.status_code}")


class WebhookAPIClient:
    """Thin wrapper over the subscription management endpoints."""

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._client = httpx.Client(base_url=base_url.rstrip("/"), timeout=timeout, transport=transport)

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "WebhookAPIClient":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        try:
            return self._client.request(method, path, **kwargs)
        except httpx.HTTPError as exc:
            raise CLIError(f"making request: {exc}") from exc

    def subscribe(self, channel_id: str) -> APIResponse:
        response = self._request("POST", "/subscribe", params={"channel_id": channel_id})
        try:
            payload = APIResponse.model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            raise CLIError(f"parsing response: {exc}") from exc

        if response.status_code >= 400:
            if payload.message:
                raise CLIError(f"server error ({response.status_code}): {payload.message}", response=payload)
            raise CLIError(f"server returned status {response.status_code}", response=payload)
        return payload

    def unsubscribe(self, channel_id: str) -> None:
        response = self._request("DELETE", "/unsubscribe", params={"channel_id": channel_id})
        if response.status_code == httpx.codes.NO_CONTENT:
            return
        if response.status_code == httpx.codes.NOT_FOUND:
            raise CLIError(f"not subscribed to channel {channel_id}")
        _raise_for_error(response)

    def list_subscriptions(self) -> SubscriptionListResponse:
        response = self._request("GET", "/subscriptions")
        if response.status_code != httpx.codes.OK:
            _raise_for_error(response)
        try:
            return SubscriptionListResponse.model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            raise CLIError(f"parsing response: {exc}") from exc

    def renew(self) -> RenewalSummary:
        response = self._request("POST", "/renew")
        if response.status_code != httpx.codes.OK:
            _raise_for_error(response)
        try:
            return RenewalSummary.model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            raise CLIError(f"parsing response: {exc}") from exc


def handle_subscribe(client: WebhookAPIClient, args: argparse.Namespace, out: TextIO) -> None:
    try:
        response = client.subscribe(args.channel)
    except CLIError as exc:
        if exc.response is not None and exc.response.status == "conflict":
            print(f"Already subscribed to channel {args.channel}", file=out)
            if exc.response.expires_at:
                print(f"   Expires: {exc.response.expires_at}", file=out)
            return
        raise CLIError(f"failed to subscribe: {exc}") from exc

    print(f"Subscribed to channel {response.channel_id or args.channel}", file=out)
    if response.expires_at:
        print(f"   Expires: {response.expires_at}", file=out)


def handle_unsubscribe(client: WebhookAPIClient, args: argparse.Namespace, out: TextIO) -> None:
    try:
        client.unsubscribe(args.channel)
    except CLIError as exc:
        raise CLIError(f"failed to unsubscribe: {exc}") from exc
    print(f"Unsubscribed from channel {args.channel}", file=out)


def handle_list(client: WebhookAPIClient, args: argparse.Namespace, out: TextIO) -> None:
    try:
        listing = client.list_subscriptions()
    except CLIError as exc:
        raise CLIError(f"failed to list subscriptions: {exc}") from exc

    if args.format == "json":
        print(json.dumps(listing.model_dump(), indent=2), file=out)
        return

    print("Subscription Summary", file=out)
    print(f"   Total: {listing.total} | Active: {listing.active} | Expired: {listing.expired}", file=out)
    print(file=out)
    if not listing.subscriptions:
        print("No subscriptions found.", file=out)
        return

    rows = [("CHANNEL ID", "STATUS", "EXPIRES", "DAYS LEFT"), ("----------", "------", "-------", "---------")]
    for item in listing.subscriptions:
        days_left = "expired" if item.days_until_expiry < 0 else f"{item.days_until_expiry:.1f}"
        rows.append((item.channel_id, item.status, item.expires_at, days_left))
    widths = [max(len(row[col]) for row in rows) for col in range(4)]
    for row in rows:
        print("  ".join(cell.ljust(width) for cell, width in zip(row, widths)).rstrip(), file=out)


def handle_renew(client: WebhookAPIClient, args: argparse.Namespace, out: TextIO) -> None:
    try:
        summary = client.renew()
    except CLIError as exc:
        raise CLIError(f"failed to renew subscriptions: {exc}") from exc

    print("Renewal Summary", file=out)
    print(
        f"   Checked: {summary.total_checked} | Candidates: {summary.renewals_candidates} | "
        f"Succeeded: {summary.renewals_succeeded} | Failed: {summary.renewals_failed}",
        file=out,
    )
    print(file=out)
    if not summary.results:
        print("No subscriptions needed renewal.", file=out)
        return

    if args.verbose or summary.renewals_failed > 0:
        print("Results:", file=out)
        for result in summary.results:
            if result.success:
                expiry = f" (expires: {result.new_expiry_time})" if result.new_expiry_time else ""
                print(f"  OK   {result.channel_id} - Renewed{expiry}", file=out)
            else:
                print(f"  FAIL {result.channel_id} - Failed: {result.message}", file=out)


HANDLERS = {
    "subscribe": handle_subscribe,
    "unsubscribe": handle_unsubscribe,
    "list": handle_list,
    "renew": handle_renew,
}


def build_parser() -> argparse.ArgumentParser:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--url",
        default=os.environ.get(URL_ENV_VAR),
        help=f"Base URL of the webhook service (env: {URL_ENV_VAR})",
    )
    common.add_argument("--timeout", type=float, default=DEFAULT_TIMEOUT_SECONDS, help="Request timeout in seconds")

    parser = argparse.ArgumentParser(prog="youtube-webhook", description="Manage YouTube webhook subscriptions")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subscribe_parser = subparsers.add_parser("subscribe", parents=[common], help="Subscribe to a channel")
    subscribe_parser.add_argument("--channel", required=True, help="YouTube channel ID")

    unsubscribe_parser = subparsers.add_parser("unsubscribe", parents=[common], help="Unsubscribe from a channel")
    unsubscribe_parser.add_argument("--channel", required=True, help="YouTube channel ID")

    list_parser = subparsers.add_parser("list", parents=[common], help="List subscriptions")
    list_parser.add_argument("--format", choices=("table", "json"), default="table")

    renew_parser = subparsers.add_parser("renew", parents=[common], help="Renew expiring subscriptions")
    renew_parser.add_argument("--verbose", action="store_true", help="Show every renewal result")

    return parser


def main(
    argv: Sequence[str] | None = None,
    *,
    transport: httpx.BaseTransport | None = None,
    out: TextIO | None = None,
) -> int:
    out = out or sys.stdout
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.url:
        print(f"Error: --url flag or {URL_ENV_VAR} environment variable is required", file=sys.stderr)
        return 1

    try:
        with WebhookAPIClient(args.url, timeout=args.timeout, transport=transport) as client:
            HANDLERS[args.command](client, args, out)
    except CLIError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
