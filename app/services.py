from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import httpx

from app import settings
from app.email import EmailProvider, get_provider
from app.sms import SmsProvider, TelnyxProvider
from app.stores import (
    MemoryActivityStore,
    MemoryAutomationStore,
    MemoryClaimStore,
    MemoryExecutionStore,
    MemoryFileStore,
    MemoryMessageStore,
    MemoryTaskStore,
)


@dataclass
class Services:
    """Everything an execution touches: the stores plus outbound capabilities."""

    claims: Any
    tasks: Any
    activity: Any
    files: Any
    messages: Any
    automations: Any
    executions: Any
    email: EmailProvider | None = None
    sms: SmsProvider | None = None
    transport: httpx.BaseTransport | None = None

    def email_provider(self) -> EmailProvider:
        return self.email or get_provider(settings.email_provider(), transport=self.transport)

    def sms_provider(self) -> SmsProvider:
        return self.sms or TelnyxProvider(transport=self.transport)

    def http_client(self) -> httpx.Client:
        return httpx.Client(timeout=settings.action_timeout_seconds(), transport=self.transport)


def memory_services(**overrides) -> Services:
    values = {
        "claims": MemoryClaimStore(),
        "tasks": MemoryTaskStore(),
        "activity": MemoryActivityStore(),
        "files": MemoryFileStore(),
        "messages": MemoryMessageStore(),
        "automations": MemoryAutomationStore(),
        "executions": MemoryExecutionStore(),
    }
    values.update(overrides)
    return Services(**values)


def build_services() -> Services:
    if not settings.use_db():
        return memory_services()
    from app.stores_db import (
        DbActivityStore,
        DbAutomationStore,
        DbClaimStore,
        DbExecutionStore,
        DbFileStore,
        DbMessageStore,
        DbTaskStore,
    )

    return Services(
        claims=DbClaimStore(),
        tasks=DbTaskStore(),
        activity=DbActivityStore(),
        files=DbFileStore(),
        messages=DbMessageStore(),
        automations=DbAutomationStore(),
        executions=DbExecutionStore(),
    )
