"""Invoke helpers: bind request parameters to a callable's signature.

Controller actions and direct route handlers declare the parameters they
want by name. This module resolves them in one place::

    def action_view(self, id: int, page: int = 1): ...

    kwargs = bind_params(controller.action_view, {"id": "42"})
    # {"id": 42}

Resolution for each parameter:

1. ``request``: the current request (by name), when one is supplied
2. a key of *params*, coerced through the annotation for ``int``,
   ``float`` and ``bool`` annotations
3. the parameter default
4. ``**kwargs`` parameters receive every unused key
"""

import inspect
from collections.abc import Callable, Mapping
from typing import Any

from perch.errors import HTTPError

_TRUE = frozenset({"1", "true", "yes", "on"})

# Annotations may be strings under ``from __future__ import annotations``
_SCALARS: dict[Any, type] = {
    int: int,
    float: float,
    bool: bool,
    "int": int,
    "float": float,
    "bool": bool,
}


def _coerce(value: Any, annotation: Any) -> Any:
    target = _SCALARS.get(annotation) if isinstance(annotation, (type, str)) else None
    if target is None or not isinstance(value, str):
        return value
    if target is bool:
        return value.lower() in _TRUE
    try:
        return target(value)
    except ValueError as exc:
        msg = f"Invalid value {value!r}: expected {target.__name__}"
        raise HTTPError(status=400, detail=msg) from exc


def bind_params(
    func: Callable[..., Any],
    params: Mapping[str, Any],
    request: Any = None,
) -> dict[str, Any]:
    """Build keyword arguments for *func* from *params*.

    Raises:
        HTTPError: 400 if a required parameter is missing or cannot be
            coerced to its annotated type.
    """
    sig = inspect.signature(func)
    kwargs: dict[str, Any] = {}
    var_keyword = False

    for name, param in sig.parameters.items():
        if param.kind is inspect.Parameter.VAR_KEYWORD:
            var_keyword = True
            continue
        if param.kind is inspect.Parameter.VAR_POSITIONAL:
            continue
        if name == "request" and request is not None:
            kwargs[name] = request
        elif name in params:
            kwargs[name] = _coerce(params[name], param.annotation)
        elif param.default is inspect.Parameter.empty:
            msg = f"Missing required parameter {name!r}"
            raise HTTPError(status=400, detail=msg)

    if var_keyword:
        for key, value in params.items():
            kwargs.setdefault(key, value)
    return kwargs
