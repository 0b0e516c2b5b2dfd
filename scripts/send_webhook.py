#!/usr/bin/env python3
"""
Test script to send Meta-style webhooks to the relay.

Usage:
    python scripts/send_webhook.py                          # Messenger webhook for page 123
    python scripts/send_webhook.py --platform instagram     # Instagram webhook
    python scripts/send_webhook.py --id 456                 # Custom page / IG ID
    python scripts/send_webhook.py --method GET --query id=123 --query test=1
"""
from __future__ import annotations

import argparse
import json
import sys
import time

import httpx


def build_payload(platform: str, entry_id: str) -> dict:
    """Build a minimal Meta webhook delivery for the platform."""
    return {
        "object": "page" if platform == "messenger" else "instagram",
        "entry": [
            {
                "id": entry_id,
                "time": int(time.time() * 1000),
                "messaging": [
                    {
                        "sender": {"id": "USER_ID"},
                        "recipient": {"id": entry_id},
                        "message": {"mid": "mid.test", "text": "hello from send_webhook"},
                    }
                ],
            }
        ],
    }


def parse_query(values: list[str]) -> list[tuple[str, str]]:
    params = []
    for item in values:
        key, _, value = item.partition("=")
        params.append((key, value))
    return params


def main() -> int:
    parser = argparse.ArgumentParser(description="Send a webhook to the relay")
    parser.add_argument("--url", default="http://localhost:3000", help="Relay base URL")
    parser.add_argument("--platform", choices=["messenger", "instagram"], default="messenger")
    parser.add_argument("--id", default="123", help="Page / IG ID placed in entry[0].id")
    parser.add_argument("--method", default="POST")
    parser.add_argument("--query", action="append", default=[], help="key=value, repeatable")
    args = parser.parse_args()

    url = f"{args.url.rstrip('/')}/webhooks/{args.platform}"
    method = args.method.upper()
    content = None
    headers = {}
    if method not in ("GET", "HEAD"):
        content = json.dumps(build_payload(args.platform, args.id)).encode()
        headers["Content-Type"] = "application/json"

    try:
        response = httpx.request(
            method, url, params=parse_query(args.query), content=content, headers=headers, timeout=30.0
        )
    except httpx.RequestError as e:
        print(f"Request failed: {e}")
        return 1

    print(f"{method} {response.request.url} -> {response.status_code}")
    for name, value in response.headers.multi_items():
        print(f"  {name}: {value}")
    print(response.text)
    return 0 if response.status_code < 400 else 1


if __name__ == "__main__":
    sys.exit(main())
