"""DB-backed stores over the claims schema."""

from __future__ import annotations

import json
from datetime import date, datetime, time, timedelta

import httpx
from psycopg2 import sql

from app import attachments
from app.db import execute, fetch_all, fetch_one, get_conn


def _ensure_json(value):
    if isinstance(value, str):
        return json.loads(value)
    return value


def _to_iso(value):
    if isinstance(value, datetime):
        return value.strftime("%Y-%m-%dT%H:%M:%SZ")
    if isinstance(value, (date, time)):
        return value.isoformat()
    return value


def _row(row: dict | None) -> dict | None:
    if not row:
        return None
    return {key: _to_iso(val) for key, val in row.items()}


def _is_safe_field_id(value: str) -> bool:
    if not value or not isinstance(value, str):
        return False
    for ch in value:
        if not (ch.isalnum() or ch == "_"):
            return False
    return True


class DbClaimStore:
    def get(self, claim_id: str | None) -> dict | None:
        if not claim_id:
            return None
        with get_conn() as conn:
            row = fetch_one(
                conn,
                """
                select c.*, r.name as referrer_name, r.email as referrer_email
                from claims c
                left join referrers r on r.id = c.referrer_id
                where c.id=%s
                """,
                [claim_id],
                query_name="claims.get",
            )
        claim = _row(row)
        if not claim:
            return None
        name = claim.pop("referrer_name", None)
        email = claim.pop("referrer_email", None)
        claim["referrer"] = {"name": name, "email": email} if (name or email) else None
        return claim

    def update(self, claim_id: str | None, fields: dict) -> dict | None:
        if not claim_id:
            return None
        if not fields:
            return self.get(claim_id)
        for key in fields:
            if not _is_safe_field_id(key):
                raise ValueError(f"Invalid claim field: {key}")
        assignments = sql.SQL(", ").join(
            sql.SQL("{}=%s").format(sql.Identifier(key)) for key in fields
        )
        params = [json.dumps(v) if isinstance(v, (dict, list)) else v for v in fields.values()]
        query = sql.SQL("update claims set {}, updated_at=now() where id=%s returning *").format(assignments)
        with get_conn() as conn:
            row = fetch_one(conn, query, params + [claim_id], query_name="claims.update")
        return _row(row)

    def latest_inspection(self, claim_id: str) -> dict | None:
        with get_conn() as conn:
            row = fetch_one(
                conn,
                """
                select inspection_date, inspection_time, inspector_name, inspection_type
                from inspections where claim_id=%s
                order by inspection_date desc
                limit 1
                """,
                [claim_id],
                query_name="inspections.latest",
            )
        return _row(row)

    def first_staff_id(self, claim_id: str) -> str | None:
        with get_conn() as conn:
            row = fetch_one(conn, "select staff_id from claim_staff where claim_id=%s limit 1", [claim_id], query_name="claim_staff.first")
        return str(row["staff_id"]) if row and row.get("staff_id") else None

    def first_contractor_id(self, claim_id: str) -> str | None:
        with get_conn() as conn:
            row = fetch_one(
                conn,
                "select contractor_id from claim_contractors where claim_id=%s limit 1",
                [claim_id],
                query_name="claim_contractors.first",
            )
        return str(row["contractor_id"]) if row and row.get("contractor_id") else None

    def contractor_contacts(self, claim_id: str) -> list[dict]:
        with get_conn() as conn:
            rows = fetch_all(
                conn,
                """
                select cl.id, cl.name, cl.phone
                from claim_contractors cc
                join clients cl on cl.id = cc.contractor_id
                where cc.claim_id=%s
                """,
                [claim_id],
                query_name="claim_contractors.contacts",
            )
        return [_row(r) for r in rows]

    def list_open(self) -> list[dict]:
        with get_conn() as conn:
            rows = fetch_all(
                conn,
                "select id, claim_number, created_at, updated_at from claims where is_closed = false",
                query_name="claims.list_open",
            )
        return [_row(r) for r in rows]

    def list_open_created_on(self, day: date) -> list[dict]:
        with get_conn() as conn:
            rows = fetch_all(
                conn,
                """
                select id, claim_number, created_at, updated_at from claims
                where is_closed = false and created_at >= %s and created_at < %s
                """,
                [day, day + timedelta(days=1)],
                query_name="claims.list_open_created_on",
            )
        return [_row(r) for r in rows]


class DbTaskStore:
    def create(self, task: dict) -> dict:
        with get_conn() as conn:
            row = fetch_one(
                conn,
                """
                insert into tasks (claim_id, title, description, priority, status, due_date, assigned_to)
                values (%s, %s, %s, %s, %s, %s, %s)
                returning *
                """,
                [
                    task.get("claim_id"),
                    task.get("title"),
                    task.get("description"),
                    task.get("priority"),
                    task.get("status", "pending"),
                    task.get("due_date"),
                    task.get("assigned_to"),
                ],
                query_name="tasks.insert",
            )
        return _row(row)

    def latest_update_at(self, claim_id: str) -> str | None:
        with get_conn() as conn:
            row = fetch_one(conn, "select max(updated_at) as ts from tasks where claim_id=%s", [claim_id], query_name="tasks.latest")
        return _to_iso(row.get("ts")) if row else None


class DbActivityStore:
    def append(self, claim_id: str, message: str, update_type: str) -> dict:
        with get_conn() as conn:
            row = fetch_one(
                conn,
                """
                insert into claim_updates (claim_id, content, update_type)
                values (%s, %s, %s)
                returning *
                """,
                [claim_id, message, update_type],
                query_name="claim_updates.insert",
            )
        return _row(row)

    def latest_at(self, claim_id: str) -> str | None:
        with get_conn() as conn:
            row = fetch_one(
                conn,
                "select max(created_at) as ts from claim_updates where claim_id=%s",
                [claim_id],
                query_name="claim_updates.latest",
            )
        return _to_iso(row.get("ts")) if row else None


class DbFileStore:
    def __init__(self, transport: httpx.BaseTransport | None = None) -> None:
        self._transport = transport

    def list_by_folder_names(self, claim_id: str, names: list[str]) -> list[dict]:
        if not names:
            return []
        with get_conn() as conn:
            rows = fetch_all(
                conn,
                """
                select f.file_name, f.file_path
                from claim_files f
                join claim_folders d on d.id = f.folder_id
                where f.claim_id=%s and d.claim_id=%s and d.name = any(%s)
                """,
                [claim_id, claim_id, list(names)],
                query_name="claim_files.by_folder_names",
            )
        return [_row(r) for r in rows]

    def list_recent(self, claim_id: str, limit: int = 20) -> list[dict]:
        with get_conn() as conn:
            rows = fetch_all(
                conn,
                """
                select id, file_name, file_path, file_type, uploaded_at
                from claim_files where claim_id=%s
                order by uploaded_at desc
                limit %s
                """,
                [claim_id, limit],
                query_name="claim_files.recent",
            )
        return [_row(r) for r in rows]

    def download(self, path: str) -> bytes:
        return attachments.read_bytes(path, transport=self._transport)

    def signed_url(self, path: str, expires_in: int = 3600) -> str | None:
        return attachments.signed_url(path, expires_in=expires_in, transport=self._transport)

    def latest_upload_at(self, claim_id: str) -> str | None:
        with get_conn() as conn:
            row = fetch_one(
                conn,
                "select max(uploaded_at) as ts from claim_files where claim_id=%s",
                [claim_id],
                query_name="claim_files.latest",
            )
        return _to_iso(row.get("ts")) if row else None


class DbMessageStore:
    def log_email(self, record: dict) -> dict:
        with get_conn() as conn:
            row = fetch_one(
                conn,
                """
                insert into emails (claim_id, recipient_email, recipient_name, recipient_type, subject, body)
                values (%s, %s, %s, %s, %s, %s)
                returning *
                """,
                [
                    record.get("claim_id"),
                    record.get("recipient_email"),
                    record.get("recipient_name"),
                    record.get("recipient_type"),
                    record.get("subject"),
                    record.get("body"),
                ],
                query_name="emails.insert",
            )
        return _row(row)

    def log_sms(self, record: dict) -> dict:
        with get_conn() as conn:
            row = fetch_one(
                conn,
                """
                insert into sms_messages (claim_id, to_number, from_number, message_body, direction, status, telnyx_message_id)
                values (%s, %s, %s, %s, %s, %s, %s)
                returning *
                """,
                [
                    record.get("claim_id"),
                    record.get("to_number"),
                    record.get("from_number"),
                    record.get("message_body"),
                    record.get("direction", "outbound"),
                    record.get("status", "sent"),
                    record.get("telnyx_message_id"),
                ],
                query_name="sms_messages.insert",
            )
        return _row(row)

    def get_sms_template(self, template_id: str) -> dict | None:
        with get_conn() as conn:
            row = fetch_one(conn, "select id, name, body from sms_templates where id=%s", [template_id], query_name="sms_templates.get")
        return _row(row)


def _automation_from_row(row: dict | None) -> dict | None:
    item = _row(row)
    if not item:
        return None
    item["actions"] = _ensure_json(item.get("actions")) or []
    item["trigger_config"] = _ensure_json(item.get("trigger_config")) or {}
    return item


class DbAutomationStore:
    def get(self, automation_id: str) -> dict | None:
        with get_conn() as conn:
            row = fetch_one(conn, "select * from automations where id=%s", [automation_id], query_name="automations.get")
        return _automation_from_row(row)

    def get_active(self, automation_id: str, trigger_type: str) -> dict | None:
        with get_conn() as conn:
            row = fetch_one(
                conn,
                """
                select * from automations
                where id=%s and is_active = true and trigger_type=%s
                """,
                [automation_id, trigger_type],
                query_name="automations.get_active",
            )
        return _automation_from_row(row)

    def list_active(self, trigger_types: list[str]) -> list[dict]:
        with get_conn() as conn:
            rows = fetch_all(
                conn,
                """
                select * from automations
                where is_active = true and trigger_type = any(%s)
                order by created_at asc
                """,
                [list(trigger_types)],
                query_name="automations.list_active",
            )
        return [_automation_from_row(r) for r in rows]


def _execution_from_row(row: dict | None) -> dict | None:
    item = _row(row)
    if not item:
        return None
    item["trigger_data"] = _ensure_json(item.get("trigger_data")) or {}
    item["result"] = _ensure_json(item.get("result"))
    return item


class DbExecutionStore:
    def create(self, record: dict) -> dict:
        with get_conn() as conn:
            row = fetch_one(
                conn,
                """
                insert into automation_executions (automation_id, claim_id, trigger_data, status, started_at)
                values (%s, %s, %s, 'pending', null)
                returning *
                """,
                [record.get("automation_id"), record.get("claim_id"), json.dumps(record.get("trigger_data") or {})],
                query_name="automation_executions.insert",
            )
        return _execution_from_row(row)

    def get(self, execution_id: str) -> dict | None:
        with get_conn() as conn:
            row = fetch_one(
                conn,
                "select * from automation_executions where id=%s",
                [execution_id],
                query_name="automation_executions.get",
            )
        return _execution_from_row(row)

    def list(self, status: str | None = None, automation_id: str | None = None, limit: int = 200) -> list[dict]:
        clauses = ["true"]
        params: list = []
        if status:
            clauses.append("status=%s")
            params.append(status)
        if automation_id:
            clauses.append("automation_id=%s")
            params.append(automation_id)
        where = " and ".join(clauses)
        with get_conn() as conn:
            rows = fetch_all(
                conn,
                f"""
                select * from automation_executions where {where}
                order by created_at asc
                limit %s
                """,
                params + [limit],
                query_name="automation_executions.list",
            )
        return [_execution_from_row(r) for r in rows]

    def list_pending(self, limit: int) -> list[dict]:
        return self.list(status="pending", limit=limit)

    def claim(self, execution_id: str) -> bool:
        with get_conn() as conn:
            count = execute(
                conn,
                """
                update automation_executions
                set status='running', started_at=now()
                where id=%s and status='pending'
                """,
                [execution_id],
                query_name="automation_executions.claim",
            )
        return count == 1

    def complete(self, execution_id: str, result: dict) -> bool:
        with get_conn() as conn:
            count = execute(
                conn,
                """
                update automation_executions
                set status='success', result=%s, completed_at=now()
                where id=%s and status='running'
                """,
                [json.dumps(result, default=str), execution_id],
                query_name="automation_executions.complete",
            )
        return count == 1

    def fail(self, execution_id: str, error_message: str) -> bool:
        with get_conn() as conn:
            count = execute(
                conn,
                """
                update automation_executions
                set status='failed', error_message=%s, completed_at=now()
                where id=%s and status in ('pending', 'running')
                """,
                [error_message, execution_id],
                query_name="automation_executions.fail",
            )
        return count == 1

    def exists(self, automation_id: str, claim_id: str, since: str | None = None) -> bool:
        clauses = ["automation_id=%s", "claim_id=%s"]
        params: list = [automation_id, claim_id]
        if since:
            clauses.append("created_at >= %s")
            params.append(since)
        where = " and ".join(clauses)
        with get_conn() as conn:
            row = fetch_one(
                conn,
                f"select id from automation_executions where {where} limit 1",
                params,
                query_name="automation_executions.exists",
            )
        return row is not None
