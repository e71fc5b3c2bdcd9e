from .dependencies import get_current_user, get_notifier, get_workflow
from .exceptions import APIException, AuthenticationException, AuthorizationException, register_exception_handlers
from .middleware import RequestContextMiddleware, RequestLoggingMiddleware

__all__ = [
    "get_current_user",
    "get_notifier",
    "get_workflow",
    "APIException",
    "AuthenticationException",
    "AuthorizationException",
    "register_exception_handlers",
    "RequestContextMiddleware",
    "RequestLoggingMiddleware",
]
