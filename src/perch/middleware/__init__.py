"""Middleware: callables run on the request at the ``"begin"`` signal.

A middleware is any callable matching:
    def mw(request: Request) -> None

Built-in middleware:
    MethodOverride -- Honour a ``_method`` form field on POST requests
"""

from perch.middleware.pipeline import MiddlewarePipeline, MethodOverride
from perch.middleware.protocol import Middleware

__all__ = ["MethodOverride", "Middleware", "MiddlewarePipeline"]
