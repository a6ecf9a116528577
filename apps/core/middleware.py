# apps/core/middleware.py

"""
Request context for audit stamping and structured logs.

The acting user and request are kept in thread local storage so models can
stamp ``created_by``/``updated_by`` without the request being passed around.
A request id is bound into structlog's context variables, so every log line
emitted while serving the request carries it.
"""

import threading
import uuid
from collections.abc import Callable

import structlog
from django.http import HttpRequest, HttpResponse

REQUEST_ID_HEADER = "HTTP_X_REQUEST_ID"

_request = threading.local()


class CurrentUserMiddleware:
    """Expose the current user and request, and tag logs with a request id."""

    def __init__(self, get_response: Callable[[HttpRequest], HttpResponse]) -> None:
        self.get_response = get_response

    def __call__(self, request: HttpRequest) -> HttpResponse:
        request_id = request.META.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        _request.user = getattr(request, "user", None)
        _request.request = request

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id, method=request.method, path=request.path
        )
        try:
            response = self.get_response(request)
            response["X-Request-ID"] = request_id
            return response
        finally:
            structlog.contextvars.clear_contextvars()
            for attr in ("user", "request"):
                if hasattr(_request, attr):
                    delattr(_request, attr)


def set_current_user(user) -> None:
    """Bind the acting user explicitly (DRF authenticates after middleware)."""
    _request.user = user
    structlog.contextvars.bind_contextvars(user_id=str(user.pk))


def get_current_user():
    """The acting user, or None outside a request."""
    return getattr(_request, "user", None)
