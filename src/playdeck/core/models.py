# core/models.py
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any, Mapping, Optional, Protocol, Sequence

WaveformData = Sequence[float]


class PlaybackStatus(Enum):
    IDLE = auto()
    LOADED = auto()
    PLAYING = auto()
    PAUSED = auto()
    ERROR = auto()


class Teardown(Protocol):
    def destroy(self) -> None: ...


@dataclass(frozen=True)
class Track:
    title: str
    source_ref: str

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "Track":
        # accepts {"title", "src"} as written in page markup as well as our own field name
        ref = data.get("source_ref") or data.get("src") or ""
        return cls(title=str(data.get("title") or ""), source_ref=str(ref))


@dataclass(frozen=True)
class PlaylistMeta:
    artist: str | None = None
    year: str | None = None
    owner: Optional[Teardown] = None


@dataclass
class RegisteredPlaylist:
    name: str
    tracks: tuple[Track, ...]
    meta: PlaylistMeta = field(default_factory=PlaylistMeta)
    waveforms: dict[int, WaveformData] = field(default_factory=dict)

    @property
    def artist(self) -> str | None:
        return self.meta.artist

    @property
    def year(self) -> str | None:
        return self.meta.year


@dataclass
class Session:
    active_playlist_name: str | None = None
    current_index: int = 0
    is_playing: bool = False
    current_time: float = 0.0
    duration: float = 0.0
    status: PlaybackStatus = PlaybackStatus.IDLE
    last_error: str | None = None


@dataclass(frozen=True)
class StateSnapshot:
    is_playing: bool
    current_track: Track | None
    current_index: int
    playlist_name: str | None
    playlist_length: int
    current_time: float
    duration: float
    artist: str | None
    year: str | None
    status: PlaybackStatus = PlaybackStatus.IDLE


@dataclass(frozen=True)
class TimeSnapshot:
    current_time: float
    duration: float


@dataclass(frozen=True)
class PlaylistSummary:
    name: str
    track_count: int
    is_active: bool


@dataclass(frozen=True)
class PlaylistData:
    name: str
    artist: str | None
    year: str | None
    tracks: tuple[Track, ...]
    current_index: int = -1


@dataclass(frozen=True)
class PendingReconnect:
    playlist_name: str | None
    source_ref: str
    time: float
    was_playing: bool
