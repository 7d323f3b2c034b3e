#!/usr/bin/env python3
"""Post a WhatsApp Cloud shaped message to a running inventory agent.

Examples:
    python ops/simulate_webhook.py text 923001234567 "hi"
    python ops/simulate_webhook.py button 923001234567 ADD_PRODUCT
    python ops/simulate_webhook.py image 923001234567 <media_id> --caption "Yonex racket 5000"
"""

import argparse
import hashlib
import hmac
import json
import os
import sys
import time
import uuid

import httpx


def build_message(kind: str, phone: str, value: str, caption: str | None) -> dict:
    message = {
        "from": phone,
        "id": f"wamid.sim.{uuid.uuid4().hex[:16]}",
        "timestamp": str(int(time.time())),
    }
    if kind == "text":
        message.update({"type": "text", "text": {"body": value}})
    elif kind in ("image", "video"):
        media = {"id": value, "mime_type": "image/jpeg" if kind == "image" else "video/mp4"}
        if caption:
            media["caption"] = caption
        message.update({"type": kind, kind: media})
    elif kind == "button":
        message.update(
            {"type": "interactive", "interactive": {"type": "button_reply", "button_reply": {"id": value, "title": value}}}
        )
    elif kind == "list":
        message.update(
            {"type": "interactive", "interactive": {"type": "list_reply", "list_reply": {"id": value, "title": value}}}
        )
    return message


def build_payload(message: dict) -> dict:
    return {
        "object": "whatsapp_business_account",
        "entry": [
            {
                "id": "sim",
                "changes": [
                    {
                        "field": "messages",
                        "value": {
                            "messaging_product": "whatsapp",
                            "metadata": {"phone_number_id": os.environ.get("WHATSAPP_PHONE_NUMBER_ID", "sim")},
                            "messages": [message],
                        },
                    }
                ],
            }
        ],
    }


def main() -> int:
    parser = argparse.ArgumentParser(description=__doc__, formatter_class=argparse.RawDescriptionHelpFormatter)
    parser.add_argument("kind", choices=["text", "image", "video", "button", "list"])
    parser.add_argument("phone")
    parser.add_argument("value", help="text body, media id or button id")
    parser.add_argument("--caption")
    parser.add_argument("--url", default=os.environ.get("AGENT_URL", "http://localhost:8000"))
    args = parser.parse_args()

    body = json.dumps(build_payload(build_message(args.kind, args.phone, args.value, args.caption))).encode("utf-8")
    headers = {"Content-Type": "application/json"}
    secret = os.environ.get("WHATSAPP_APP_SECRET")
    if secret:
        signature = hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()
        headers["X-Hub-Signature-256"] = f"sha256={signature}"

    response = httpx.post(f"{args.url.rstrip('/')}/webhook", content=body, headers=headers, timeout=10.0)
    print(f"{response.status_code} {response.text}")

    state = httpx.get(f"{args.url.rstrip('/')}/debug/state/{args.phone}", timeout=10.0)
    if state.status_code == 200:
        print(json.dumps(state.json(), indent=2, ensure_ascii=False))
    return 0 if response.status_code == 200 else 1


if __name__ == "__main__":
    sys.exit(main())
