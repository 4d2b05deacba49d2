"""Routing: resolve a request into a handler and its parameters.

Exports:
    Route -- Resolved (handler, params) pair
    ControllerTarget -- Controller class + action id handler
    UrlManager -- Default pattern-table URL manager component
"""

from perch.routing.route import ControllerTarget, Route
from perch.routing.url_manager import UrlManager

__all__ = ["ControllerTarget", "Route", "UrlManager"]
