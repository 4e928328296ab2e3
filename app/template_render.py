from __future__ import annotations

from typing import Any

from jinja2 import StrictUndefined
from jinja2.sandbox import ImmutableSandboxedEnvironment

_ALLOWED_FILTERS = {
    "default",
    "lower",
    "upper",
    "trim",
    "replace",
}

_ALLOWED_TESTS = {
    "defined",
    "undefined",
    "none",
}

EMAIL_LAYOUT = '<div style="font-family: sans-serif;">{{ body }}</div>'


class _LockedSandbox(ImmutableSandboxedEnvironment):
    def is_safe_attribute(self, obj, attr, value) -> bool:
        return False

    def is_safe_callable(self, obj) -> bool:
        return False


def _env() -> _LockedSandbox:
    env = _LockedSandbox(autoescape=False, undefined=StrictUndefined)
    env.globals = {}
    env.filters = {key: val for key, val in env.filters.items() if key in _ALLOWED_FILTERS}
    env.tests = {key: val for key, val in env.tests.items() if key in _ALLOWED_TESTS}
    return env


def _sanitize_value(value: Any) -> Any:
    if value is None:
        return None
    if isinstance(value, (str, int, float, bool)):
        return value
    if isinstance(value, dict):
        return {str(key): _sanitize_value(val) for key, val in value.items()}
    if isinstance(value, (list, tuple)):
        return [_sanitize_value(val) for val in value]
    return str(value)


def render_template(text: str | None, context: dict[str, Any] | None) -> str:
    env = _env()
    tmpl = env.from_string(text or "")
    return tmpl.render(_sanitize_value(context or {}) or {})


def render_email_html(body: str) -> str:
    """Wrap plain message text in the email layout, newlines become <br>."""
    return render_template(EMAIL_LAYOUT, {"body": (body or "").replace("\n", "<br>")})
