"""In-memory stores used by tests and USE_DB=0 deployments."""

from __future__ import annotations

import copy
import itertools
import threading
import uuid
from datetime import date, datetime, timezone
from typing import Dict, Iterable, List


def _now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def _latest(values: Iterable[str | None]) -> str | None:
    present = [v for v in values if v]
    return max(present) if present else None


class MemoryClaimStore:
    def __init__(self) -> None:
        self._claims: Dict[str, dict] = {}
        self._referrers: Dict[str, dict] = {}
        self._inspections: List[dict] = []
        self._staff: Dict[str, List[str]] = {}
        self._contractors: Dict[str, List[str]] = {}
        self._clients: Dict[str, dict] = {}

    def create(self, record: dict) -> dict:
        item = copy.deepcopy(record)
        item.setdefault("id", str(uuid.uuid4()))
        item.setdefault("status", "open")
        item.setdefault("is_closed", False)
        item.setdefault("created_at", _now())
        item.setdefault("updated_at", _now())
        self._claims[item["id"]] = item
        return copy.deepcopy(item)

    def add_referrer(self, record: dict) -> dict:
        item = copy.deepcopy(record)
        item.setdefault("id", str(uuid.uuid4()))
        self._referrers[item["id"]] = item
        return copy.deepcopy(item)

    def add_inspection(self, record: dict) -> dict:
        item = copy.deepcopy(record)
        item.setdefault("id", str(uuid.uuid4()))
        self._inspections.append(item)
        return copy.deepcopy(item)

    def add_client(self, record: dict) -> dict:
        item = copy.deepcopy(record)
        item.setdefault("id", str(uuid.uuid4()))
        self._clients[item["id"]] = item
        return copy.deepcopy(item)

    def link_staff(self, claim_id: str, staff_id: str) -> None:
        self._staff.setdefault(claim_id, []).append(staff_id)

    def link_contractor(self, claim_id: str, contractor_id: str) -> None:
        self._contractors.setdefault(claim_id, []).append(contractor_id)

    def get(self, claim_id: str | None) -> dict | None:
        item = self._claims.get(claim_id) if claim_id else None
        if not item:
            return None
        out = copy.deepcopy(item)
        referrer = self._referrers.get(item.get("referrer_id") or "")
        out["referrer"] = {"name": referrer.get("name"), "email": referrer.get("email")} if referrer else None
        return out

    def update(self, claim_id: str | None, fields: dict) -> dict | None:
        item = self._claims.get(claim_id) if claim_id else None
        if not item:
            return None
        item.update(copy.deepcopy(fields))
        item["updated_at"] = _now()
        return copy.deepcopy(item)

    def latest_inspection(self, claim_id: str) -> dict | None:
        items = [i for i in self._inspections if i.get("claim_id") == claim_id]
        if not items:
            return None
        items.sort(key=lambda i: str(i.get("inspection_date") or ""), reverse=True)
        return copy.deepcopy(items[0])

    def first_staff_id(self, claim_id: str) -> str | None:
        ids = self._staff.get(claim_id) or []
        return ids[0] if ids else None

    def first_contractor_id(self, claim_id: str) -> str | None:
        ids = self._contractors.get(claim_id) or []
        return ids[0] if ids else None

    def contractor_contacts(self, claim_id: str) -> list[dict]:
        out = []
        for contractor_id in self._contractors.get(claim_id) or []:
            client = self._clients.get(contractor_id)
            if client:
                out.append({"id": client["id"], "name": client.get("name"), "phone": client.get("phone")})
        return out

    def list_open(self) -> list[dict]:
        return [copy.deepcopy(c) for c in self._claims.values() if not c.get("is_closed")]

    def list_open_created_on(self, day: date) -> list[dict]:
        prefix = day.isoformat()
        return [c for c in self.list_open() if str(c.get("created_at") or "").startswith(prefix)]


class MemoryTaskStore:
    def __init__(self) -> None:
        self._tasks: Dict[str, dict] = {}

    def create(self, task: dict) -> dict:
        item = copy.deepcopy(task)
        item.setdefault("id", str(uuid.uuid4()))
        item.setdefault("created_at", _now())
        item.setdefault("updated_at", _now())
        self._tasks[item["id"]] = item
        return copy.deepcopy(item)

    def list(self, claim_id: str) -> list[dict]:
        return [copy.deepcopy(t) for t in self._tasks.values() if t.get("claim_id") == claim_id]

    def latest_update_at(self, claim_id: str) -> str | None:
        return _latest(t.get("updated_at") for t in self._tasks.values() if t.get("claim_id") == claim_id)


class MemoryActivityStore:
    def __init__(self) -> None:
        self._entries: Dict[str, List[dict]] = {}

    def append(self, claim_id: str, message: str, update_type: str) -> dict:
        entry = {
            "id": str(uuid.uuid4()),
            "claim_id": claim_id,
            "content": message,
            "update_type": update_type,
            "created_at": _now(),
        }
        self._entries.setdefault(claim_id, []).insert(0, entry)
        return copy.deepcopy(entry)

    def list(self, claim_id: str, limit: int = 50) -> list[dict]:
        items = self._entries.get(claim_id, [])
        return [copy.deepcopy(item) for item in items[: max(1, min(limit, 200))]]

    def latest_at(self, claim_id: str) -> str | None:
        return _latest(e.get("created_at") for e in self._entries.get(claim_id, []))


class MemoryFileStore:
    def __init__(self) -> None:
        self._folders: Dict[str, dict] = {}
        self._files: List[dict] = []
        self._blobs: Dict[str, bytes] = {}

    def add_folder(self, claim_id: str, name: str) -> dict:
        folder = {"id": str(uuid.uuid4()), "claim_id": claim_id, "name": name}
        self._folders[folder["id"]] = folder
        return copy.deepcopy(folder)

    def add_file(self, claim_id: str, folder_id: str | None, file_name: str, data: bytes | None = None, file_path: str | None = None, uploaded_at: str | None = None) -> dict:
        path = file_path or f"{claim_id}/{uuid.uuid4()}_{file_name}"
        item = {
            "id": str(uuid.uuid4()),
            "claim_id": claim_id,
            "folder_id": folder_id,
            "file_name": file_name,
            "file_path": path,
            "file_type": None,
            "uploaded_at": uploaded_at or _now(),
        }
        self._files.append(item)
        if data is not None:
            self._blobs[path] = data
        return copy.deepcopy(item)

    def list_by_folder_names(self, claim_id: str, names: list[str]) -> list[dict]:
        wanted = set(names or [])
        folder_ids = {f["id"] for f in self._folders.values() if f["claim_id"] == claim_id and f["name"] in wanted}
        if not folder_ids:
            return []
        return [
            {"file_name": f["file_name"], "file_path": f["file_path"]}
            for f in self._files
            if f["claim_id"] == claim_id and f.get("folder_id") in folder_ids
        ]

    def list_recent(self, claim_id: str, limit: int = 20) -> list[dict]:
        items = [f for f in self._files if f["claim_id"] == claim_id]
        items.sort(key=lambda f: f.get("uploaded_at") or "", reverse=True)
        return [
            {k: f.get(k) for k in ("id", "file_name", "file_path", "file_type", "uploaded_at")}
            for f in items[:limit]
        ]

    def download(self, path: str) -> bytes:
        if path not in self._blobs:
            raise FileNotFoundError(f"storage object not found: {path}")
        return self._blobs[path]

    def signed_url(self, path: str, expires_in: int = 3600) -> str | None:
        return f"memory://claim-files/{path}?expires_in={expires_in}"

    def latest_upload_at(self, claim_id: str) -> str | None:
        return _latest(f.get("uploaded_at") for f in self._files if f["claim_id"] == claim_id)


class MemoryMessageStore:
    def __init__(self) -> None:
        self.emails: List[dict] = []
        self.sms: List[dict] = []
        self._sms_templates: Dict[str, dict] = {}

    def log_email(self, record: dict) -> dict:
        item = copy.deepcopy(record)
        item.setdefault("id", str(uuid.uuid4()))
        item.setdefault("sent_at", _now())
        self.emails.append(item)
        return copy.deepcopy(item)

    def log_sms(self, record: dict) -> dict:
        item = copy.deepcopy(record)
        item.setdefault("id", str(uuid.uuid4()))
        item.setdefault("created_at", _now())
        self.sms.append(item)
        return copy.deepcopy(item)

    def add_sms_template(self, body: str, name: str | None = None) -> dict:
        item = {"id": str(uuid.uuid4()), "name": name, "body": body}
        self._sms_templates[item["id"]] = item
        return copy.deepcopy(item)

    def get_sms_template(self, template_id: str) -> dict | None:
        item = self._sms_templates.get(template_id)
        return copy.deepcopy(item) if item else None


class MemoryAutomationStore:
    def __init__(self) -> None:
        self._automations: Dict[str, dict] = {}

    def create(self, record: dict) -> dict:
        item = copy.deepcopy(record)
        item.setdefault("id", str(uuid.uuid4()))
        item.setdefault("is_active", True)
        item.setdefault("trigger_config", {})
        item.setdefault("actions", [])
        item.setdefault("created_at", _now())
        item.setdefault("updated_at", _now())
        self._automations[item["id"]] = item
        return copy.deepcopy(item)

    def delete(self, automation_id: str) -> bool:
        return self._automations.pop(automation_id, None) is not None

    def get(self, automation_id: str) -> dict | None:
        item = self._automations.get(automation_id)
        return copy.deepcopy(item) if item else None

    def get_active(self, automation_id: str, trigger_type: str) -> dict | None:
        item = self._automations.get(automation_id)
        if not item or not item.get("is_active") or item.get("trigger_type") != trigger_type:
            return None
        return copy.deepcopy(item)

    def list_active(self, trigger_types: list[str]) -> list[dict]:
        wanted = set(trigger_types)
        items = [a for a in self._automations.values() if a.get("is_active") and a.get("trigger_type") in wanted]
        items.sort(key=lambda a: a.get("created_at", ""))
        return [copy.deepcopy(a) for a in items]


class MemoryExecutionStore:
    def __init__(self) -> None:
        self._items: Dict[str, dict] = {}
        self._order: Dict[str, int] = {}
        self._seq = itertools.count()
        self._lock = threading.Lock()

    def create(self, record: dict) -> dict:
        item = copy.deepcopy(record)
        item.setdefault("id", str(uuid.uuid4()))
        item["status"] = "pending"
        item.setdefault("claim_id", None)
        item["trigger_data"] = copy.deepcopy(item.get("trigger_data") or {})
        item.setdefault("result", None)
        item.setdefault("error_message", None)
        item.setdefault("created_at", _now())
        item.setdefault("started_at", None)
        item.setdefault("completed_at", None)
        with self._lock:
            self._items[item["id"]] = item
            self._order[item["id"]] = next(self._seq)
        return copy.deepcopy(item)

    def get(self, execution_id: str) -> dict | None:
        item = self._items.get(execution_id)
        return copy.deepcopy(item) if item else None

    def list(self, status: str | None = None, automation_id: str | None = None) -> list[dict]:
        items = list(self._items.values())
        if status:
            items = [i for i in items if i.get("status") == status]
        if automation_id:
            items = [i for i in items if i.get("automation_id") == automation_id]
        items.sort(key=lambda i: (i.get("created_at", ""), self._order[i["id"]]))
        return [copy.deepcopy(i) for i in items]

    def list_pending(self, limit: int) -> list[dict]:
        return self.list(status="pending")[: max(0, limit)]

    def claim(self, execution_id: str) -> bool:
        with self._lock:
            item = self._items.get(execution_id)
            if not item or item.get("status") != "pending":
                return False
            item["status"] = "running"
            item["started_at"] = _now()
            return True

    def complete(self, execution_id: str, result: dict) -> bool:
        with self._lock:
            item = self._items.get(execution_id)
            if not item or item.get("status") != "running":
                return False
            item["status"] = "success"
            item["result"] = copy.deepcopy(result)
            item["completed_at"] = _now()
            return True

    def fail(self, execution_id: str, error_message: str) -> bool:
        with self._lock:
            item = self._items.get(execution_id)
            if not item or item.get("status") not in {"pending", "running"}:
                return False
            item["status"] = "failed"
            item["error_message"] = error_message
            item["completed_at"] = _now()
            return True

    def exists(self, automation_id: str, claim_id: str, since: str | None = None) -> bool:
        for item in self._items.values():
            if item.get("automation_id") != automation_id or item.get("claim_id") != claim_id:
                continue
            if since and str(item.get("created_at") or "") < since:
                continue
            return True
        return False
