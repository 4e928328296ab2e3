"""Engine error taxonomy and its HTTP mapping."""

from __future__ import annotations


class EngineError(RuntimeError):
    code = "ENGINE_ERROR"
    status = 500

    def __init__(self, message: str, path: str | None = None, detail: dict | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.path = path
        self.detail = detail


class AuthenticationError(EngineError):
    code = "UNAUTHORIZED"
    status = 401


class ValidationError(EngineError):
    code = "VALIDATION_ERROR"
    status = 400


class NotFoundError(EngineError):
    code = "NOT_FOUND"
    status = 404


class ProviderError(EngineError):
    code = "PROVIDER_ERROR"
    status = 502


class PersistenceError(EngineError):
    code = "PERSISTENCE_ERROR"
    status = 500
