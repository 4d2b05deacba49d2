"""Middleware protocol.

A middleware is any callable matching::

    def my_mw(request: Request) -> None: ...

No base class required. The pipeline checks the shape, not the lineage.
Middleware runs before dispatch and may inspect or mutate the request
(headers are read-only, ``query``/``form``/``method`` are not). Raising
aborts the run before any controller is built.
"""

from typing import Protocol

from perch.http.request import Request


class Middleware(Protocol):
    """Protocol for perch middleware.

    Accepts both functions and callable objects::

        # Function middleware
        def strip_tracking(request: Request) -> None:
            request.query.pop("utm_source", None)

        # Class middleware
        class Maintenance:
            def __call__(self, request: Request) -> None:
                ...
    """

    def __call__(self, request: Request) -> None: ...
