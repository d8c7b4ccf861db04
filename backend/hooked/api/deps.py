"""Shared FastAPI dependencies. Tests override these through app.dependency_overrides."""
from fastapi import Header, Request

from hooked.config import settings
from hooked.core.errors import PermissionDenied, to_http
from hooked.handlers import TriggerRegistry, registry
from hooked.services.circuit_breaker import NotificationCircuitBreaker
from hooked.services.push import PushDispatcher


def get_dispatcher() -> PushDispatcher:
    from hooked.scheduler.notification_jobs import get_dispatcher as _get

    return _get()


def get_breaker(request: Request) -> NotificationCircuitBreaker:
    return request.app.state.circuit_breaker


def get_registry() -> TriggerRegistry:
    return registry


def require_api_key(x_api_key: str | None = Header(None, alias="x-api-key")) -> None:
    """Shared-secret guard. An unset API_KEY rejects every request."""
    expected = settings.api_key
    if not expected or (x_api_key or "").strip() != expected:
        raise to_http(PermissionDenied("Invalid API key"))
