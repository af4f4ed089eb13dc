"""
API Module
"""
from .app import create_app
from .middleware import RequestLoggingMiddleware, SecurityHeadersMiddleware

__all__ = [
    "create_app",
    "RequestLoggingMiddleware",
    "SecurityHeadersMiddleware",
]
