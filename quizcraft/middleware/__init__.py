"""Middleware modules for Quizcraft"""

from .cors import setup_cors
from .logging_middleware import LoggingMiddleware
from .request_id import RequestIDMiddleware

__all__ = [
    "setup_cors",
    "RequestIDMiddleware",
    "LoggingMiddleware",
]
