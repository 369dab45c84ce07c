# core/listeners.py
from __future__ import annotations

import logging
from typing import Any, Callable

logger = logging.getLogger(__name__)

Listener = Callable[[Any], None]
Disposer = Callable[[], None]

STATE = "state"
TIME = "time"
PLAYLIST = "playlist"


class ListenerRegistry:
    """
    Named broadcast channels (state, time, playlist, ...).

    Every `add()` returns a disposer that removes exactly that registration.
    Calling a disposer twice, or after `clear()`, does nothing.

    `notify()` iterates over a copy of the channel's listener list, so a
    listener may subscribe or unsubscribe others (or itself) while a broadcast
    is running. Listeners added during a broadcast are first called on the
    next one.
    """

    def __init__(self, channels: tuple[str, ...] = (STATE, TIME, PLAYLIST)):
        self._channels: dict[str, list[list[Listener]]] = {name: [] for name in channels}

    def add(self, channel: str, callback: Listener) -> Disposer:
        # Each registration gets its own box so the same callable can be added
        # twice and removed independently.
        entry = [callback]
        self._listeners(channel).append(entry)

        def dispose() -> None:
            entries = self._channels.get(channel)
            if not entries:
                return
            for i, e in enumerate(entries):
                if e is entry:
                    del entries[i]
                    return

        return dispose

    def notify(self, channel: str, payload: Any) -> None:
        for entry in list(self._listeners(channel)):
            try:
                entry[0](payload)
            except Exception:
                # A broken widget must not starve the others
                logger.exception("%s listener %r failed", channel, entry[0])

    def count(self, channel: str) -> int:
        return len(self._listeners(channel))

    def clear(self, channel: str | None = None) -> None:
        if channel is None:
            for entries in self._channels.values():
                entries.clear()
        else:
            self._listeners(channel).clear()

    def _listeners(self, channel: str) -> list[list[Listener]]:
        try:
            return self._channels[channel]
        except KeyError:
            raise ValueError(f"unknown channel: {channel!r}") from None
