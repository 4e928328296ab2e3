from __future__ import annotations

import re

import httpx

from app import settings
from app.errors import ProviderError


class SmsProviderError(ProviderError):
    pass


def normalize_phone(phone: str) -> str:
    """E.164-ish: digits only, 10 digits get +1, everything else a leading +."""
    digits = re.sub(r"\D", "", phone or "")
    if len(digits) == 10:
        return "+1" + digits
    return "+" + digits


class SmsProvider:
    def send(self, to: str, from_: str, body: str) -> dict:
        """Deliver one message; return ``{"id": ..., "status": ...}``."""
        raise NotImplementedError

    def sender(self) -> str:
        raise NotImplementedError


class TelnyxProvider(SmsProvider):
    API_URL = "https://api.telnyx.com/v2/messages"

    def __init__(self, api_key: str | None = None, phone_number: str | None = None, transport: httpx.BaseTransport | None = None) -> None:
        self._api_key = api_key
        self._phone_number = phone_number
        self._transport = transport

    def sender(self) -> str:
        return self._phone_number or settings.telnyx_phone_number()

    def send(self, to: str, from_: str, body: str) -> dict:
        api_key = self._api_key or settings.telnyx_api_key()
        if not api_key or not from_:
            raise SmsProviderError("Telnyx credentials not configured")
        headers = {"Authorization": f"Bearer {api_key}"}
        payload = {"from": from_, "to": to, "text": body}
        with httpx.Client(timeout=settings.action_timeout_seconds(), transport=self._transport) as client:
            resp = client.post(self.API_URL, json=payload, headers=headers)
        if resp.status_code >= 400:
            raise SmsProviderError(f"Failed to send SMS: {resp.status_code} {resp.text}")
        try:
            data = (resp.json() or {}).get("data") or {}
        except ValueError:
            data = {}
        to_entries = data.get("to") if isinstance(data.get("to"), list) else []
        status = to_entries[0].get("status") if to_entries and isinstance(to_entries[0], dict) else None
        return {"id": data.get("id"), "status": status or "queued"}
