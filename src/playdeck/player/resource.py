# player/resource.py
from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Callable

logger = logging.getLogger(__name__)


class ResourceEvent(str, Enum):
    PLAYING_STARTED = "playing-started"
    PLAYING_STOPPED = "playing-stopped"
    ERROR = "error"
    METADATA_READY = "metadata-ready"
    TIME_ADVANCED = "time-advanced"
    ENDED = "ended"


class PlaybackRejected(Exception):
    """The resource refused to start playback (nothing loaded, backend gone, ...)."""


class PlaybackResource:
    """
    The single shared output every playlist plays through.

    Contract for implementations:
      - load(source) replaces the current source and leaves the resource paused
        (emitting PLAYING_STOPPED if it was playing).
      - play() starts output, or raises PlaybackRejected. Failures that only show
        up later are reported with an ERROR event.
      - PLAYING_STARTED / PLAYING_STOPPED are emitted on every real transition.
      - At the end of a track, PLAYING_STOPPED is emitted before ENDED.
    """

    def __init__(self):
        self._observers: dict[ResourceEvent, list[Callable[..., None]]] = {}

    # ---- events ----

    def observe(self, event: ResourceEvent, on_event: Callable[..., None]) -> None:
        self._observers.setdefault(event, []).append(on_event)

    def _emit(self, event: ResourceEvent, *args: Any) -> None:
        for cb in list(self._observers.get(event, ())):
            try:
                cb(*args)
            except Exception:
                logger.exception("Resource observer for %s failed", event.value)

    # ---- state ----

    @property
    def source(self) -> str:
        raise NotImplementedError

    @property
    def current_time(self) -> float:
        raise NotImplementedError

    @property
    def duration(self) -> float:
        """Seconds, or 0.0 while unknown."""
        raise NotImplementedError

    # ---- controls ----

    def load(self, source: str) -> None:
        raise NotImplementedError

    def play(self) -> None:
        raise NotImplementedError

    def pause(self) -> None:
        raise NotImplementedError

    def seek(self, seconds: float) -> None:
        raise NotImplementedError
