import time
from typing import Callable, Dict, List, Optional
from storefront.auth.constants import logger
from storefront.auth.models import AuthEvent

AuthListener = Callable[[AuthEvent], None]


class AuthEventBus:
    """In-process fan-out of login/logout notifications.

    Delivery is best effort: a failing listener is logged and the rest still run.
    Listeners should treat an event as a hint and re-read storage.
    """

    def __init__(self):
        self._listeners: List[AuthListener] = []

    def subscribe(self, listener: AuthListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)
        return unsubscribe

    def publish(self, event_type: str, session_id: Optional[str] = None) -> AuthEvent:
        event = AuthEvent(type=event_type, timestamp=int(time.time() * 1000), session_id=session_id)
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception("auth.broadcast.listener_failed", extra={"event_type": event_type})
        return event

    def __len__(self):
        return len(self._listeners)


class AuthEventHub:
    """One AuthEventBus per device, so a login reaches only that visitor's other tabs."""

    def __init__(self):
        self._channels: Dict[str, AuthEventBus] = {}

    def channel(self, device_id: str) -> AuthEventBus:
        return self._channels.setdefault(device_id, AuthEventBus())

    def release(self, device_id: str) -> None:
        bus = self._channels.get(device_id)
        if bus is not None and not len(bus):
            del self._channels[device_id]

    def __len__(self):
        return len(self._channels)
