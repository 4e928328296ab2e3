"""FastAPI app for the claim automation engine."""

from __future__ import annotations

import logging
import sys
import time
from pathlib import Path

from fastapi import BackgroundTasks, FastAPI, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse, Response

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app import settings

settings.load_env_file(ROOT / "app" / ".env")

from app.automations_runtime import handle_event
from app.errors import AuthenticationError, EngineError, NotFoundError, ValidationError
from app.receiver import authenticate, parse_body, receive_webhook
from app.scheduler import check_scheduled
from app.services import build_services
from app.worker import process_pending
from claimflow import constant_time_equals

app = FastAPI(title="Claimflow automation engine")
logger = logging.getLogger("claimflow")
_http_logger = logging.getLogger("claimflow.http")
logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s %(message)s")
REQ_SLOW_MS = 1000.0

services = build_services()


def _cors_headers() -> dict:
    allowed = ["authorization", "x-client-info", "apikey", "content-type", "x-cron-secret", settings.signature_header()]
    return {
        "Access-Control-Allow-Origin": "*",
        "Access-Control-Allow-Headers": ", ".join(allowed),
        "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
    }


@app.middleware("http")
async def cors_and_timing_middleware(request: Request, call_next):
    start = time.perf_counter()
    if request.method == "OPTIONS":
        response = Response(status_code=200)
    else:
        response = await call_next(request)
    for key, value in _cors_headers().items():
        response.headers.setdefault(key, value)
    total_ms = (time.perf_counter() - start) * 1000
    response.headers["X-Req-MS"] = f"{total_ms:.1f}"
    log = _http_logger.warning if total_ms >= REQ_SLOW_MS else _http_logger.info
    log("request method=%s path=%s status=%s ms=%.1f", request.method, request.url.path, response.status_code, total_ms)
    return response


def _error_response(code: str, message: str, path: str | None = None, detail: dict | None = None, status: int = 400) -> JSONResponse:
    body = {
        "ok": False,
        "error": message,
        "errors": [{"code": code, "message": message, "path": path, "detail": detail}],
        "warnings": [],
    }
    return JSONResponse(jsonable_encoder(body), status_code=status)


def _ok_response(payload: dict, warnings: list | None = None, status: int = 200) -> JSONResponse:
    body = {"ok": True, **payload, "errors": [], "warnings": warnings or []}
    return JSONResponse(jsonable_encoder(body), status_code=status)


@app.exception_handler(EngineError)
async def engine_error_handler(request: Request, exc: EngineError):
    return _error_response(exc.code, exc.message, path=exc.path, detail=exc.detail, status=exc.status)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("unhandled_error path=%s", request.url.path)
    return _error_response("INTERNAL_ERROR", str(exc) or "Unexpected server error", status=500)


def _require_cron_secret(request: Request) -> None:
    expected = settings.cron_secret()
    if not expected:
        return
    provided = request.headers.get("x-cron-secret") or ""
    if not constant_time_equals(expected.encode("utf-8"), provided.encode("utf-8")):
        logger.warning("cron_secret_rejected path=%s", request.url.path)
        raise AuthenticationError("Unauthorized")


@app.get("/health")
async def health() -> dict:
    return {"ok": True}


@app.post("/automation-webhook")
async def automation_webhook(request: Request, background_tasks: BackgroundTasks):
    raw_body = await request.body()
    signature = request.headers.get(settings.signature_header())
    execution = receive_webhook(raw_body, signature, services)
    background_tasks.add_task(process_pending, services, settings.worker_batch_size())
    return _ok_response(
        {
            "success": True,
            "execution_id": execution.get("id"),
            "message": "Automation triggered successfully",
        }
    )


@app.post("/automation-events")
async def automation_events(request: Request, background_tasks: BackgroundTasks):
    raw_body = await request.body()
    authenticate(raw_body, request.headers.get(settings.signature_header()))
    body = parse_body(raw_body)
    event_type = body.get("event")
    if not isinstance(event_type, str) or not event_type:
        raise ValidationError("event is required", path="event")
    executions = handle_event(services, event_type, body.get("payload") or {})
    if executions:
        background_tasks.add_task(process_pending, services, settings.worker_batch_size())
    return _ok_response({"execution_ids": [item.get("id") for item in executions], "count": len(executions)})


@app.post("/execute-automations")
async def execute_automations(request: Request):
    _require_cron_secret(request)
    results = await run_in_threadpool(process_pending, services, settings.worker_batch_size())
    return _ok_response({"processed": len(results), "results": results})


@app.post("/check-scheduled-automations")
async def check_scheduled_automations(request: Request):
    _require_cron_secret(request)
    outcome = await run_in_threadpool(check_scheduled, services)
    return _ok_response(outcome)


@app.get("/executions/{execution_id}")
async def get_execution(execution_id: str, request: Request):
    _require_cron_secret(request)
    execution = services.executions.get(execution_id)
    if not execution:
        raise NotFoundError("Execution not found", path="execution_id")
    return _ok_response({"execution": execution})
