"""Environment-backed settings, read on each access."""

from __future__ import annotations

import os
from pathlib import Path


def load_env_file(path: Path) -> None:
    if not path.exists():
        return
    for line in path.read_text(encoding="utf-8").splitlines():
        line = line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        key = key.strip()
        value = value.strip().strip('"').strip("'")
        if key and key not in os.environ:
            os.environ[key] = value


def _env(key: str, default: str = "") -> str:
    return (os.getenv(key) or default).strip()


def _int_env(key: str, default: int) -> int:
    try:
        return int(_env(key, str(default)))
    except ValueError:
        return default


def use_db() -> bool:
    return _env("USE_DB") == "1"


def db_url() -> str:
    url = _env("SUPABASE_DB_URL") or _env("DATABASE_URL")
    if not url:
        raise RuntimeError("SUPABASE_DB_URL or DATABASE_URL is required when USE_DB=1")
    return url


def db_pool_bounds() -> tuple[int, int]:
    return _int_env("CLAIMFLOW_DB_POOL_MIN", 1), _int_env("CLAIMFLOW_DB_POOL_MAX", 10)


def webhook_secret() -> str:
    return _env("AUTOMATION_WEBHOOK_SECRET")


def signature_header() -> str:
    return _env("AUTOMATION_SIGNATURE_HEADER", "x-webhook-signature").lower()


def cron_secret() -> str:
    return _env("CRON_SECRET")


def worker_batch_size() -> int:
    return max(1, _int_env("WORKER_BATCH", 10))


def worker_poll_ms() -> int:
    return max(100, _int_env("WORKER_POLL_MS", 5000))


def action_timeout_seconds() -> float:
    try:
        return float(_env("ACTION_TIMEOUT_SECONDS", "30"))
    except ValueError:
        return 30.0


def email_provider() -> str:
    return _env("EMAIL_PROVIDER", "resend").lower()


def email_from() -> str:
    return _env("EMAIL_FROM", "Claims <claims@example.com>")


def resend_api_key() -> str:
    return _env("RESEND_API_KEY")


def smtp_config() -> dict:
    return {
        "host": _env("SMTP_HOST"),
        "port": _int_env("SMTP_PORT", 587),
        "security": _env("SMTP_SECURITY", "starttls").lower(),
        "username": _env("SMTP_USERNAME"),
        "password": _env("SMTP_PASSWORD"),
    }


def telnyx_api_key() -> str:
    return _env("TELNYX_API_KEY")


def telnyx_phone_number() -> str:
    return _env("TELNYX_PHONE_NUMBER")


def supabase_url() -> str:
    return _env("SUPABASE_URL").rstrip("/")


def supabase_service_role_key() -> str:
    return _env("SUPABASE_SERVICE_ROLE_KEY")


def claim_files_bucket() -> str:
    return _env("CLAIM_FILES_BUCKET", "claim-files")


def storage_dir() -> Path:
    return Path(_env("CLAIMFLOW_STORAGE_DIR", "storage"))
