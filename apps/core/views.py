# apps/core/views.py

"""
Base viewsets with logging and common functionality.

Writes on orders, payments and refunds go through named actions, so the base
viewset only carries the read paths. Errors are not caught here; they reach
``apps.core.exceptions.service_exception_handler``.
"""

import structlog
from rest_framework import mixins, viewsets

from apps.core.exceptions import ServiceError
from apps.core.middleware import set_current_user

logger = structlog.get_logger(__name__)


class LoggingMixin:
    """
    Mixin that provides structured logging for viewset actions.
    """

    def log_action(self, action_name, extra_data=None):
        """
        Log an action with context information.
        """
        request = getattr(self, "request", None)
        user_info = "Anonymous"
        if request is not None and request.user and request.user.is_authenticated:
            user_info = f"User {request.user.pk} ({request.user.role})"

        log_data = {
            "action": action_name,
            "viewset": self.__class__.__name__,
            "user": user_info,
            "ip_address": self.get_client_ip(),
        }

        if extra_data:
            log_data.update(extra_data)

        logger.info(f"API Action: {action_name}", **log_data)

    def get_client_ip(self):
        """
        Get the client's IP address from the request.
        """
        request = getattr(self, "request", None)
        if request is None:
            return None
        x_forwarded_for = request.META.get("HTTP_X_FORWARDED_FOR")
        if x_forwarded_for:
            return x_forwarded_for.split(",")[0].strip()
        return request.META.get("REMOTE_ADDR")


class BaseViewSet(
    LoggingMixin,
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    viewsets.GenericViewSet,
):
    """
    Base viewset for the marketplace resources.
    Provides list and retrieve with logging; subclasses add named actions.
    """

    def initial(self, request, *args, **kwargs):
        super().initial(request, *args, **kwargs)

        # Audit stamping needs the DRF-authenticated user
        if request.user and request.user.is_authenticated:
            set_current_user(request.user)

        self.log_action(
            f"{request.method} {self.action}",
            extra_data={
                "path": request.path,
                "query_params": dict(request.query_params),
            },
        )

    def handle_exception(self, exc):
        if isinstance(exc, ServiceError):
            self.log_action(
                "rejected",
                extra_data={"code": exc.code, "error_message": exc.message},
            )
        else:
            self.log_action(
                "error",
                extra_data={
                    "error_type": exc.__class__.__name__,
                    "error_message": str(exc),
                },
            )
        return super().handle_exception(exc)

    def list(self, request, *args, **kwargs):
        response = super().list(request, *args, **kwargs)

        data = response.data if isinstance(response.data, dict) else {}
        self.log_action(
            "list_success",
            extra_data={
                "count": data.get("count"),
                "page": request.query_params.get("page", 1),
            },
        )
        return response

    def retrieve(self, request, *args, **kwargs):
        response = super().retrieve(request, *args, **kwargs)
        self.log_action("retrieve_success", extra_data={"object_id": kwargs.get("pk")})
        return response
