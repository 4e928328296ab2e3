from __future__ import annotations

import base64
import mimetypes
import smtplib
import uuid
from email.message import EmailMessage

import httpx

from app import settings
from app.errors import ProviderError


class EmailProviderError(ProviderError):
    pass


class EmailProvider:
    def send(self, message: dict) -> dict:
        """Deliver ``{from, to, subject, html, attachments}``; return ``{"id": ...}``."""
        raise NotImplementedError


class ResendProvider(EmailProvider):
    API_URL = "https://api.resend.com/emails"

    def __init__(self, api_key: str | None = None, transport: httpx.BaseTransport | None = None) -> None:
        self._api_key = api_key
        self._transport = transport

    def send(self, message: dict) -> dict:
        api_key = self._api_key or settings.resend_api_key()
        if not api_key:
            raise EmailProviderError("RESEND_API_KEY not configured")
        payload = {
            "from": message.get("from"),
            "to": list(message.get("to") or []),
            "subject": message.get("subject"),
            "html": message.get("html"),
        }
        if message.get("attachments"):
            payload["attachments"] = message["attachments"]
        headers = {"Authorization": f"Bearer {api_key}"}
        with httpx.Client(timeout=settings.action_timeout_seconds(), transport=self._transport) as client:
            resp = client.post(self.API_URL, json=payload, headers=headers)
        if resp.status_code >= 400:
            raise EmailProviderError(f"Failed to send email: {resp.status_code} {resp.text}")
        try:
            data = resp.json()
        except ValueError:
            data = {}
        return {"id": (data or {}).get("id")}


class SmtpProvider(EmailProvider):
    def __init__(self, config: dict | None = None) -> None:
        self._config = config

    def send(self, message: dict) -> dict:
        config = self._config or settings.smtp_config()
        host = (config.get("host") or "").strip()
        port = int(config.get("port") or 587)
        security = (config.get("security") or "starttls").strip().lower()
        username = (config.get("username") or "").strip()
        password = config.get("password") or ""

        if not host:
            raise EmailProviderError("Missing SMTP host")
        if security not in {"none", "starttls", "ssl"}:
            raise EmailProviderError("Invalid SMTP security mode")
        recipients = [addr for addr in (message.get("to") or []) if addr]
        if not recipients:
            raise EmailProviderError("Missing recipients")

        msg = EmailMessage()
        msg["From"] = message.get("from") or ""
        msg["To"] = ", ".join(recipients)
        msg["Subject"] = message.get("subject") or ""
        msg.set_content(message.get("html") or "", subtype="html")
        for attachment in message.get("attachments") or []:
            filename = attachment.get("filename") or "attachment"
            mime_type = mimetypes.guess_type(filename)[0] or "application/octet-stream"
            maintype, subtype = mime_type.split("/", 1)
            msg.add_attachment(
                base64.b64decode(attachment.get("content") or ""),
                maintype=maintype,
                subtype=subtype,
                filename=filename,
            )

        try:
            if security == "ssl":
                with smtplib.SMTP_SSL(host, port, timeout=settings.action_timeout_seconds()) as server:
                    if username:
                        server.login(username, password)
                    server.send_message(msg, to_addrs=recipients)
            else:
                with smtplib.SMTP(host, port, timeout=settings.action_timeout_seconds()) as server:
                    if security == "starttls":
                        server.starttls()
                    if username:
                        server.login(username, password)
                    server.send_message(msg, to_addrs=recipients)
        except (smtplib.SMTPException, OSError) as exc:
            raise EmailProviderError(f"Failed to send email: {exc}") from exc
        return {"id": str(uuid.uuid4())}


def get_provider(name: str, transport: httpx.BaseTransport | None = None) -> EmailProvider:
    if name == "resend":
        return ResendProvider(transport=transport)
    if name == "smtp":
        return SmtpProvider()
    raise EmailProviderError(f"Unknown provider: {name}")
