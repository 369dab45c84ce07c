"""
Audio manager.
Coordinates every registered playlist through one shared playback resource, so only
one playlist is audible at a time, and keeps any number of subscribed widgets in sync.
"""
from __future__ import annotations

import logging
import math
from dataclasses import replace
from typing import Any, Callable, Iterable, Mapping, Optional, Union

from playdeck.core.aliasing import NOT_FOUND
from playdeck.core.listeners import PLAYLIST, STATE, TIME, Disposer, ListenerRegistry
from playdeck.core.models import (
    PendingReconnect,
    PlaybackStatus,
    PlaylistData,
    PlaylistMeta,
    PlaylistSummary,
    RegisteredPlaylist,
    Session,
    StateSnapshot,
    TimeSnapshot,
    Track,
    WaveformData,
)
from playdeck.core.reconnect import capture_pending, match_pending
from playdeck.core.registry import PlaylistRegistry
from playdeck.player.resource import PlaybackRejected, PlaybackResource, ResourceEvent

logger = logging.getLogger(__name__)

TrackLike = Union[Track, Mapping[str, Any]]


def _seconds(value: Any) -> float:
    try:
        v = float(value or 0.0)
    except (TypeError, ValueError):
        return 0.0
    return v if math.isfinite(v) else 0.0


def coerce_tracks(tracks: Iterable[TrackLike]) -> tuple[Track, ...]:
    return tuple(t if isinstance(t, Track) else Track.from_mapping(t) for t in tracks)


class AudioManager:
    """
    Owns the Session and the playback resource.

    Every mutator finishes its Session updates and broadcasts before returning.
    `is_playing` only turns true from a resource PLAYING_STARTED event, so the
    Session always mirrors what the resource actually does.
    """

    def __init__(self, resource: PlaybackResource, restart_threshold_s: float = 3.0):
        self.resource = resource
        self.restart_threshold_s = restart_threshold_s

        self.registry = PlaylistRegistry()
        self.listeners = ListenerRegistry()
        self.session = Session()

        # Track list of the active selection; survives clear_players()
        self._current_tracks: tuple[Track, ...] = ()
        self._pending: Optional[PendingReconnect] = None
        self._cached_active: Optional[PlaylistData] = None

        self._bind_resource_events()

    # ----------------------------
    # Resource events
    # ----------------------------

    def _bind_resource_events(self) -> None:
        r = self.resource
        r.observe(ResourceEvent.TIME_ADVANCED, self._on_time_advanced)
        r.observe(ResourceEvent.ENDED, self._on_ended)
        r.observe(ResourceEvent.PLAYING_STARTED, self._on_playing_started)
        r.observe(ResourceEvent.PLAYING_STOPPED, self._on_playing_stopped)
        r.observe(ResourceEvent.ERROR, self._on_error)
        r.observe(ResourceEvent.METADATA_READY, self._on_metadata_ready)

    def _on_time_advanced(self, *_args: Any) -> None:
        self.listeners.notify(TIME, self._time_snapshot())

    def _on_ended(self, *_args: Any) -> None:
        self.next()

    def _on_playing_started(self, *_args: Any) -> None:
        self.session.is_playing = True
        self.session.status = PlaybackStatus.PLAYING
        self.session.last_error = None
        self.notify_state_change()

    def _on_playing_stopped(self, *_args: Any) -> None:
        self.session.is_playing = False
        if self.session.status != PlaybackStatus.ERROR:
            self.session.status = PlaybackStatus.PAUSED if self.session.active_playlist_name else PlaybackStatus.IDLE
        self.notify_state_change()

    def _on_error(self, message: Optional[str] = None, *_args: Any) -> None:
        logger.warning("Playback error on %r: %s", self.resource.source, message or "unknown error")
        self._fail(message)

    def _on_metadata_ready(self, *_args: Any) -> None:
        self.notify_state_change()
        self.listeners.notify(TIME, self._time_snapshot())

    def _fail(self, message: Optional[str]) -> None:
        self.session.is_playing = False
        self.session.status = PlaybackStatus.ERROR
        self.session.last_error = message
        self.notify_state_change()

    # ----------------------------
    # Registration
    # ----------------------------

    def register(self, name: str, tracks: Iterable[TrackLike], meta: PlaylistMeta | None = None) -> RegisteredPlaylist:
        """Register (or re-register) a playlist; its waveform cache survives re-registration."""
        playlist = self.registry.register(name, coerce_tracks(tracks), meta)
        self._notify_playlists()
        return playlist

    def unregister(self, name: str) -> None:
        """
        Remove a playlist for good. If it is the active one, playback stops and the
        active selection is dropped so the resource no longer points at a playlist
        whose metadata is gone.
        """
        if name not in self.registry:
            return

        was_active = self.session.active_playlist_name == name
        if was_active:
            self.pause()
            self.session.active_playlist_name = None
            self.session.current_index = 0
            self.session.status = PlaybackStatus.IDLE
            self._current_tracks = ()
            self._cached_active = None

        self.registry.unregister(name)
        self._notify_playlists()
        if was_active:
            self.notify_state_change()

    def clear_players(self) -> None:
        """
        Drop every registration on a transient teardown (e.g. a page change).

        The resource keeps playing. Owners get their destroy() hook first so their
        subscriptions are released, and a PendingReconnect is captured so the same
        playlist can pick the session back up once it registers again.
        """
        active = self.registry.get(self.session.active_playlist_name)
        if active is not None:
            self._cache_active(active)

        seen: set[int] = set()
        for playlist in self.registry.playlists():
            owner = playlist.meta.owner
            if owner is None or id(owner) in seen:
                continue
            seen.add(id(owner))
            try:
                owner.destroy()
            except Exception:
                logger.exception("Teardown of %r owner failed", playlist.name)

        self.registry.clear()
        self._pending = capture_pending(self.session, self.resource.source, self.resource.current_time)
        logger.debug("Cleared players; pending reconnect %r", self._pending)
        self._notify_playlists()

    def try_reconnect(self, name: str) -> bool:
        """
        Re-attach a freshly registered playlist to the playback that survived
        clear_players(). The pending record is single-use for its own name: a
        failed match discards it.
        """
        pending = self._pending
        if pending is None or pending.playlist_name != name:
            return False

        playlist = self.registry.get(name)
        if playlist is None:
            return False

        index = match_pending(pending, playlist.tracks)
        self._pending = None
        if index == NOT_FOUND:
            logger.debug("Reconnect to %r failed: %r not in playlist", name, pending.source_ref)
            return False

        self.session.active_playlist_name = name
        self._current_tracks = playlist.tracks
        self.session.current_index = index
        if self.session.is_playing:
            self.session.status = PlaybackStatus.PLAYING
        elif self.session.status == PlaybackStatus.IDLE:
            self.session.status = PlaybackStatus.LOADED
        logger.debug("Reconnected to %r at index %d", name, index)
        self.notify_state_change()
        return True

    @property
    def pending_reconnect(self) -> Optional[PendingReconnect]:
        return self._pending

    def get_playlists(self) -> list[PlaylistSummary]:
        return self.registry.summaries(self.session.active_playlist_name)

    # ----------------------------
    # Playback
    # ----------------------------

    def set_active_playlist(self, name: str) -> None:
        """Select a playlist at its first track without starting playback."""
        playlist = self.registry.get(name)
        if playlist is None or not playlist.tracks:
            return
        self._activate(playlist)
        self.load_track(0)

    def play_playlist(self, name: str, start_index: int = 0) -> None:
        """
        Start `name` at `start_index`. Always wins: whatever was active before is
        superseded because the one resource is redirected.
        """
        playlist = self.registry.get(name)
        if playlist is None:
            return
        if not 0 <= start_index < len(playlist.tracks):
            logger.debug("Ignoring play of %r at out-of-range index %d", name, start_index)
            return

        self._activate(playlist)
        self.load_track(start_index)
        self.play()

    def _activate(self, playlist: RegisteredPlaylist) -> None:
        self.session.active_playlist_name = playlist.name
        self._current_tracks = playlist.tracks

    def load_track(self, index: int) -> bool:
        if not 0 <= index < len(self._current_tracks):
            return False

        self.session.current_index = index
        track = self._current_tracks[index]
        self.resource.load(track.source_ref)
        if not self.session.is_playing:
            self.session.status = PlaybackStatus.LOADED
            self.session.last_error = None
        self.notify_state_change()
        return True

    def play(self) -> None:
        if not self._current_tracks:
            return
        try:
            self.resource.play()
        except PlaybackRejected as exc:
            logger.warning("Play of %r rejected: %s", self.resource.source, exc)
            self._fail(str(exc) or "playback rejected")

    def pause(self) -> None:
        self.resource.pause()

    def toggle_play(self) -> None:
        if self.session.active_playlist_name is None or not self._current_tracks:
            return
        if self.session.is_playing:
            self.pause()
        else:
            self.play()

    def next(self) -> None:
        if not self._current_tracks:
            return
        if self.session.current_index < len(self._current_tracks) - 1:
            self.load_track(self.session.current_index + 1)
            self.play()
        else:
            # End of playlist: back to the top, but silent
            self.load_track(0)
            self.pause()

    def previous(self) -> None:
        if not self._current_tracks:
            return
        if _seconds(self.resource.current_time) > self.restart_threshold_s:
            self.resource.seek(0.0)
            self.notify_state_change()
        elif self.session.current_index > 0:
            was_playing = self.session.is_playing
            self.load_track(self.session.current_index - 1)
            if was_playing:
                self.play()

    def seek(self, percent: float) -> None:
        duration = _seconds(self.resource.duration)
        if duration <= 0:
            return
        percent = min(1.0, max(0.0, float(percent)))
        self.resource.seek(percent * duration)
        self.listeners.notify(TIME, self._time_snapshot())

    # ----------------------------
    # Read-only views
    # ----------------------------

    @property
    def active_playlist_name(self) -> Optional[str]:
        return self.session.active_playlist_name

    @property
    def current_index(self) -> int:
        return self.session.current_index

    @property
    def is_playing(self) -> bool:
        return self.session.is_playing

    @property
    def status(self) -> PlaybackStatus:
        return self.session.status

    def get_current_track(self) -> Optional[Track]:
        if not 0 <= self.session.current_index < len(self._current_tracks):
            return None
        return self._current_tracks[self.session.current_index]

    def get_state(self) -> StateSnapshot:
        self._sync_position()
        artist = year = None
        playlist = self.registry.get(self.session.active_playlist_name)
        if playlist is not None:
            artist, year = playlist.artist, playlist.year
        elif self._cached_active is not None and self._cached_active.name == self.session.active_playlist_name:
            artist, year = self._cached_active.artist, self._cached_active.year

        return StateSnapshot(
            is_playing=self.session.is_playing,
            current_track=self.get_current_track(),
            current_index=self.session.current_index,
            playlist_name=self.session.active_playlist_name,
            playlist_length=len(self._current_tracks),
            current_time=self.session.current_time,
            duration=self.session.duration,
            artist=artist,
            year=year,
            status=self.session.status,
        )

    def notify_state_change(self) -> None:
        self.listeners.notify(STATE, self.get_state())

    def _time_snapshot(self) -> TimeSnapshot:
        self._sync_position()
        return TimeSnapshot(current_time=self.session.current_time, duration=self.session.duration)

    def _sync_position(self) -> None:
        self.session.current_time = _seconds(self.resource.current_time)
        self.session.duration = _seconds(self.resource.duration)

    def _notify_playlists(self) -> None:
        self.listeners.notify(PLAYLIST, self.get_playlists())

    # ----------------------------
    # Waveforms
    # ----------------------------

    def set_waveform(self, name: str, index: int, data: WaveformData) -> None:
        self.registry.set_waveform(name, index, data)

    def get_waveform(self, name: str, index: int) -> Optional[WaveformData]:
        return self.registry.get_waveform(name, index)

    def get_current_waveform(self) -> Optional[WaveformData]:
        if self.session.active_playlist_name is None:
            return None
        return self.get_waveform(self.session.active_playlist_name, self.session.current_index)

    # ----------------------------
    # Playlist data for display
    # ----------------------------

    def get_playlist_data(self, name: str) -> Optional[PlaylistData]:
        playlist = self.registry.get(name)
        if playlist is None:
            return None

        is_active = name == self.session.active_playlist_name
        if is_active:
            self._cache_active(playlist)
        return PlaylistData(
            name=playlist.name,
            artist=playlist.artist,
            year=playlist.year,
            tracks=playlist.tracks,
            current_index=self.session.current_index if is_active else -1,
        )

    def get_active_playlist_data(self) -> Optional[PlaylistData]:
        """Active playlist for the transport dropdown, surviving a clear_players()."""
        name = self.session.active_playlist_name
        if name is None:
            return None

        data = self.get_playlist_data(name)
        if data is not None:
            return data

        if self._cached_active is not None and self._cached_active.name == name:
            return replace(self._cached_active, current_index=self.session.current_index)
        return None

    def _cache_active(self, playlist: RegisteredPlaylist) -> None:
        self._cached_active = PlaylistData(
            name=playlist.name,
            artist=playlist.artist,
            year=playlist.year,
            tracks=playlist.tracks,
        )

    # ----------------------------
    # Subscriptions
    # ----------------------------

    def add_state_listener(self, callback: Callable[[StateSnapshot], None]) -> Disposer:
        return self.listeners.add(STATE, callback)

    def add_time_listener(self, callback: Callable[[TimeSnapshot], None]) -> Disposer:
        return self.listeners.add(TIME, callback)

    def add_playlist_listener(self, callback: Callable[[list[PlaylistSummary]], None]) -> Disposer:
        return self.listeners.add(PLAYLIST, callback)
