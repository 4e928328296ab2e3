from __future__ import annotations

from pathlib import Path
from urllib.parse import quote

import httpx

from app import settings


def _supabase_enabled() -> bool:
    return bool(settings.supabase_url() and settings.supabase_service_role_key())


def _supabase_headers(content_type: str | None = None) -> dict:
    headers = {
        "Authorization": f"Bearer {settings.supabase_service_role_key()}",
        "apikey": settings.supabase_service_role_key(),
    }
    if content_type:
        headers["Content-Type"] = content_type
    return headers


def _supabase_download(bucket: str, storage_key: str, transport: httpx.BaseTransport | None = None) -> bytes:
    path = quote(storage_key, safe="/")
    url = f"{settings.supabase_url()}/storage/v1/object/{bucket}/{path}"
    with httpx.Client(timeout=settings.action_timeout_seconds(), transport=transport) as client:
        res = client.get(url, headers=_supabase_headers())
        if res.status_code >= 400:
            raise FileNotFoundError(f"supabase_download_failed:{res.status_code}")
        return res.content


def _supabase_sign(bucket: str, storage_key: str, expires_in: int, transport: httpx.BaseTransport | None = None) -> str | None:
    path = quote(storage_key, safe="/")
    url = f"{settings.supabase_url()}/storage/v1/object/sign/{bucket}/{path}"
    with httpx.Client(timeout=settings.action_timeout_seconds(), transport=transport) as client:
        res = client.post(url, headers=_supabase_headers("application/json"), json={"expiresIn": expires_in})
        if res.status_code >= 400:
            return None
        body = res.json() or {}
        signed = body.get("signedURL") or body.get("signedUrl")
    if not signed:
        return None
    return f"{settings.supabase_url()}/storage/v1{signed}" if signed.startswith("/") else signed


def resolve_path(storage_key: str) -> Path:
    if _supabase_enabled():
        raise RuntimeError("resolve_path is unavailable when using Supabase storage")
    root = settings.storage_dir().resolve()
    path = (root / storage_key).resolve()
    if root not in path.parents:
        raise FileNotFoundError(f"storage key escapes storage root: {storage_key}")
    return path


def read_bytes(storage_key: str, bucket: str | None = None, transport: httpx.BaseTransport | None = None) -> bytes:
    selected_bucket = (bucket or settings.claim_files_bucket()).strip()
    if _supabase_enabled():
        return _supabase_download(selected_bucket, storage_key, transport=transport)
    return resolve_path(storage_key).read_bytes()


def signed_url(storage_key: str, expires_in: int = 3600, bucket: str | None = None, transport: httpx.BaseTransport | None = None) -> str | None:
    selected_bucket = (bucket or settings.claim_files_bucket()).strip()
    if _supabase_enabled():
        return _supabase_sign(selected_bucket, storage_key, expires_in, transport=transport)
    return None
