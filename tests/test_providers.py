import json
import os
import sys
import tempfile
import unittest
from pathlib import Path

ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
SRC = os.path.join(ROOT, "src")
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)
if SRC not in sys.path:
    sys.path.insert(0, SRC)

import httpx

from app import attachments
from app.email import EmailProviderError, ResendProvider, SmtpProvider, get_provider
from app.sms import SmsProviderError, TelnyxProvider, normalize_phone
from app.template_render import render_email_html

_ENV_KEYS = ("RESEND_API_KEY", "SUPABASE_URL", "SUPABASE_SERVICE_ROLE_KEY", "CLAIMFLOW_STORAGE_DIR", "TELNYX_API_KEY", "TELNYX_PHONE_NUMBER")


class _EnvTestCase(unittest.TestCase):
    def setUp(self):
        self._saved_env = {key: os.environ.get(key) for key in _ENV_KEYS}
        for key in _ENV_KEYS:
            os.environ.pop(key, None)

    def tearDown(self):
        for key, value in self._saved_env.items():
            if value is None:
                os.environ.pop(key, None)
            else:
                os.environ[key] = value


class TestEmailProviders(_EnvTestCase):
    def test_resend_requires_api_key(self):
        with self.assertRaises(EmailProviderError) as ctx:
            ResendProvider(transport=httpx.MockTransport(lambda r: httpx.Response(200))).send({"to": ["a@b.c"]})
        self.assertIn("RESEND_API_KEY", str(ctx.exception))

    def test_resend_reports_provider_failure(self):
        transport = httpx.MockTransport(lambda r: httpx.Response(422, text="invalid from"))
        with self.assertRaises(EmailProviderError) as ctx:
            ResendProvider(api_key="k", transport=transport).send({"to": ["a@b.c"], "subject": "s", "html": "h"})
        self.assertEqual(str(ctx.exception), "Failed to send email: 422 invalid from")

    def test_resend_omits_empty_attachments(self):
        seen = []

        def handler(request):
            seen.append(json.loads(request.content))
            return httpx.Response(200, json={"id": "em_9"})

        os.environ["RESEND_API_KEY"] = "env-key"
        out = get_provider("resend", transport=httpx.MockTransport(handler)).send(
            {"from": "x@y.z", "to": ["a@b.c"], "subject": "s", "html": "h", "attachments": []}
        )
        self.assertEqual(out, {"id": "em_9"})
        self.assertNotIn("attachments", seen[0])

    def test_smtp_requires_host(self):
        with self.assertRaises(EmailProviderError):
            SmtpProvider({"host": ""}).send({"to": ["a@b.c"]})

    def test_unknown_provider(self):
        with self.assertRaises(EmailProviderError):
            get_provider("carrier-pigeon")

    def test_email_html_layout(self):
        html = render_email_html("Line one\nLine two")
        self.assertEqual(html, '<div style="font-family: sans-serif;">Line one<br>Line two</div>')


class TestSmsProvider(_EnvTestCase):
    def test_normalize_phone(self):
        self.assertEqual(normalize_phone("(555) 123-4567"), "+15551234567")
        self.assertEqual(normalize_phone("+44 20 7946 0958"), "+442079460958")
        self.assertEqual(normalize_phone("1-555-123-4567"), "+15551234567")

    def test_missing_credentials(self):
        with self.assertRaises(SmsProviderError) as ctx:
            TelnyxProvider().send("+15551234567", "", "hi")
        self.assertEqual(str(ctx.exception), "Telnyx credentials not configured")

    def test_send_returns_id_and_status(self):
        transport = httpx.MockTransport(
            lambda r: httpx.Response(200, json={"data": {"id": "msg_1", "to": [{"status": "sent"}]}})
        )
        provider = TelnyxProvider(api_key="k", phone_number="+15550000000", transport=transport)
        self.assertEqual(provider.send("+15551234567", provider.sender(), "hi"), {"id": "msg_1", "status": "sent"})

    def test_provider_error_status(self):
        transport = httpx.MockTransport(lambda r: httpx.Response(400, text="bad"))
        provider = TelnyxProvider(api_key="k", phone_number="+15550000000", transport=transport)
        with self.assertRaises(SmsProviderError):
            provider.send("+15551234567", provider.sender(), "hi")


class TestAttachments(_EnvTestCase):
    def test_local_storage_read_and_escape_guard(self):
        with tempfile.TemporaryDirectory() as tmp:
            os.environ["CLAIMFLOW_STORAGE_DIR"] = tmp
            target = Path(tmp) / "claim-1" / "report.pdf"
            target.parent.mkdir(parents=True)
            target.write_bytes(b"%PDF")
            self.assertEqual(attachments.read_bytes("claim-1/report.pdf"), b"%PDF")
            with self.assertRaises(FileNotFoundError):
                attachments.read_bytes("../outside.txt")
            self.assertIsNone(attachments.signed_url("claim-1/report.pdf"))

    def test_supabase_download_and_sign(self):
        os.environ["SUPABASE_URL"] = "https://proj.supabase.test"
        os.environ["SUPABASE_SERVICE_ROLE_KEY"] = "service"
        calls = []

        def handler(request):
            calls.append((request.method, request.url.path))
            if request.url.path.startswith("/storage/v1/object/sign/"):
                return httpx.Response(200, json={"signedURL": "/object/sign/claim-files/c1/a.pdf?token=t"})
            if request.url.path.endswith("missing.pdf"):
                return httpx.Response(404)
            return httpx.Response(200, content=b"bytes")

        transport = httpx.MockTransport(handler)
        self.assertEqual(attachments.read_bytes("c1/a.pdf", transport=transport), b"bytes")
        self.assertEqual(
            attachments.signed_url("c1/a.pdf", transport=transport),
            "https://proj.supabase.test/storage/v1/object/sign/claim-files/c1/a.pdf?token=t",
        )
        with self.assertRaises(FileNotFoundError):
            attachments.read_bytes("c1/missing.pdf", transport=transport)
        self.assertEqual(calls[0], ("GET", "/storage/v1/object/claim-files/c1/a.pdf"))


if __name__ == "__main__":
    unittest.main()
