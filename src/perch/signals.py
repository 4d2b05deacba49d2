"""Named lifecycle signals.

A ``SignalBus`` is a synchronous broadcast point keyed by name. The
application sends ``"begin"`` before dispatch, ``"process_request"`` when
dispatch starts and ``"end"`` once the run is over; components and
middleware may connect their own names too.

Handlers run on the calling thread, in registration order, and receive
the sender plus any keyword payload::

    bus = SignalBus()
    bus.connect("end", lambda sender, **kw: print("bye"))
    bus.send("end", app)

There is no ordering guarantee between different signal names.
"""

from dataclasses import dataclass
from typing import Any

from perch._internal.types import SignalHandler
from perch.component import Component


@dataclass(slots=True)
class _Receiver:
    handler: SignalHandler
    once: bool


class SignalBus(Component):
    """Synchronous broadcast channel for lifecycle signals."""

    def __init__(self, **options: Any) -> None:
        super().__init__(**options)
        self._receivers: dict[str, list[_Receiver]] = {}

    def connect(self, name: str, handler: SignalHandler, *, once: bool = False) -> None:
        """Register *handler* for *name*.

        With ``once=True`` the handler is dropped after its first call.
        """
        self._receivers.setdefault(name, []).append(_Receiver(handler, once))

    def disconnect(self, name: str, handler: SignalHandler) -> bool:
        """Remove the first registration of *handler*. Returns True if found."""
        receivers = self._receivers.get(name, [])
        for i, receiver in enumerate(receivers):
            if receiver.handler == handler:
                del receivers[i]
                return True
        return False

    def receivers(self, name: str) -> list[SignalHandler]:
        return [r.handler for r in self._receivers.get(name, [])]

    def send(self, name: str, sender: Any, **kwargs: Any) -> list[Any]:
        """Call every handler of *name* in order and collect their results.

        Handlers registered while the signal is being sent are not called
        until the next send. Exceptions propagate and stop the broadcast.
        """
        receivers = list(self._receivers.get(name, []))
        results: list[Any] = []
        for receiver in receivers:
            if receiver.once:
                self._discard(name, receiver)
            results.append(receiver.handler(sender, **kwargs))
        return results

    def _discard(self, name: str, receiver: _Receiver) -> None:
        current = self._receivers.get(name, [])
        for i, registered in enumerate(current):
            if registered is receiver:
                del current[i]
                return
