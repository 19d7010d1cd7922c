# meshprobe/bus/base.py
from abc import ABC, abstractmethod
from typing import Callable

# listener(topic, raw_payload); called synchronously in arrival order
Listener = Callable[[str, bytes], None]


class Bus(ABC):
    def __init__(self):
        self._listeners: list[Listener] = []

    @abstractmethod
    async def subscribe(self, pattern: str) -> None:
        """Subscribe to a topic pattern for the lifetime of the bus."""
        raise NotImplementedError

    @abstractmethod
    async def publish(self, topic: str, payload: str) -> None:
        raise NotImplementedError

    def add_listener(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: Listener) -> None:
        try:
            self._listeners.remove(listener)
        except ValueError:
            pass

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def dispatch(self, topic: str, payload: bytes) -> None:
        # snapshot: a listener may detach itself while being called
        for listener in list(self._listeners):
            listener(topic, payload)
