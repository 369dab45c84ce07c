"""
Playlist registry.
Holds every registered playlist by name together with its per-track waveform cache.
"""
from __future__ import annotations

import logging
from typing import Iterable, Optional

from playdeck.core.models import (
    PlaylistMeta,
    PlaylistSummary,
    RegisteredPlaylist,
    Track,
    WaveformData,
)

logger = logging.getLogger(__name__)


class PlaylistRegistry:
    """Name -> RegisteredPlaylist mapping, in registration order"""

    def __init__(self):
        self._playlists: dict[str, RegisteredPlaylist] = {}

    def register(self, name: str, tracks: Iterable[Track], meta: PlaylistMeta | None = None) -> RegisteredPlaylist:
        """
        Insert or replace a playlist.

        Waveforms computed for a previous registration under the same name are
        carried over, so a widget remount does not throw them away.
        """
        existing = self._playlists.get(name)
        waveforms = existing.waveforms if existing is not None else {}
        playlist = RegisteredPlaylist(
            name=name,
            tracks=tuple(tracks),
            meta=meta or PlaylistMeta(),
            waveforms=waveforms,
        )
        self._playlists[name] = playlist
        logger.debug("Registered playlist %r (%d tracks)", name, len(playlist.tracks))
        return playlist

    def unregister(self, name: str) -> Optional[RegisteredPlaylist]:
        removed = self._playlists.pop(name, None)
        if removed is not None:
            logger.debug("Unregistered playlist %r", name)
        return removed

    def clear(self) -> list[RegisteredPlaylist]:
        """Drop every playlist, returning what was removed"""
        removed = list(self._playlists.values())
        self._playlists = {}
        return removed

    def get(self, name: str | None) -> Optional[RegisteredPlaylist]:
        if name is None:
            return None
        return self._playlists.get(name)

    def names(self) -> list[str]:
        return list(self._playlists)

    def playlists(self) -> list[RegisteredPlaylist]:
        return list(self._playlists.values())

    def summaries(self, active_name: str | None) -> list[PlaylistSummary]:
        return [
            PlaylistSummary(name=p.name, track_count=len(p.tracks), is_active=p.name == active_name)
            for p in self._playlists.values()
        ]

    def set_waveform(self, name: str, index: int, data: WaveformData) -> None:
        playlist = self._playlists.get(name)
        if playlist is not None:
            playlist.waveforms[index] = data

    def get_waveform(self, name: str | None, index: int) -> Optional[WaveformData]:
        playlist = self.get(name)
        if playlist is None:
            return None
        return playlist.waveforms.get(index) or None

    def __contains__(self, name: object) -> bool:
        return name in self._playlists

    def __len__(self) -> int:
        return len(self._playlists)
