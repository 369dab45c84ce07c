# ui/playlist_controller.py
from __future__ import annotations

import logging
from typing import Callable, Iterable, Optional, Sequence

from playdeck.core.aliasing import NOT_FOUND, AliasResolver
from playdeck.core.manager import AudioManager, TrackLike, coerce_tracks
from playdeck.core.models import PlaylistMeta, StateSnapshot, TimeSnapshot, Track
from playdeck.core.utils import format_playlist_item, format_time, format_track_display, progress_percent

logger = logging.getLogger(__name__)


class PlaylistController:
    """
    Everything a playlist widget does except drawing.

    In normal mode the controller registers its own playlist. With `master_name`
    it registers nothing and acts as an alias: clicks play the matching track of
    the master playlist, and it only lights up while the master is playing one
    of its own tracks.

    The view hooks (`on_state`, `on_progress`) are called after the controller
    has updated its fields.
    """

    def __init__(
        self,
        manager: AudioManager,
        name: str,
        tracks: Iterable[TrackLike],
        *,
        artist: str | None = None,
        year: str | None = None,
        master_name: str | None = None,
        on_state: Optional[Callable[["PlaylistController"], None]] = None,
        on_progress: Optional[Callable[["PlaylistController"], None]] = None,
    ):
        self.manager = manager
        self.name = name or "Untitled"
        self.tracks: tuple[Track, ...] = coerce_tracks(tracks)
        self.artist = artist
        self.year = year
        self.master_name = master_name

        self.on_state = on_state
        self.on_progress = on_progress

        self.is_playing = False
        self.current_index = 0
        self.active_index = NOT_FOUND
        self.now_playing = self.format_track_display(self.tracks[0]) if self.tracks else ""
        self.progress = 0.0
        self.time_text = "0:00 / 0:00"

        self.alias: Optional[AliasResolver] = (
            AliasResolver(self.tracks, self._master_tracks) if master_name else None
        )

        self._unsubscribe_state: Optional[Callable[[], None]] = None
        self._unsubscribe_time: Optional[Callable[[], None]] = None

        if not self.master_name:
            self.manager.register(
                self.name,
                self.tracks,
                PlaylistMeta(artist=artist, year=year, owner=self),
            )
            self.manager.try_reconnect(self.name)

        self._bind()
        self.update_from_manager()

    # ----------------------------
    # Aliasing
    # ----------------------------

    @property
    def target_playlist(self) -> str:
        return self.master_name or self.name

    def _master_tracks(self) -> Optional[Sequence[Track]]:
        playlist = self.manager.registry.get(self.master_name)
        return playlist.tracks if playlist is not None else None

    def find_master_index(self, local_index: int) -> int:
        if self.alias is None:
            return NOT_FOUND
        return self.alias.local_to_master(local_index)

    def find_local_index(self, master_index: int) -> int:
        if self.alias is None:
            return NOT_FOUND
        return self.alias.master_to_local(master_index)

    def _is_target_active(self) -> bool:
        return self.manager.active_playlist_name == self.target_playlist

    # ----------------------------
    # Subscriptions
    # ----------------------------

    def _bind(self) -> None:
        self._unsubscribe_state = self.manager.add_state_listener(self.handle_manager_state)
        self._unsubscribe_time = self.manager.add_time_listener(self.handle_time)

    def destroy(self) -> None:
        """Release both subscriptions. Safe to call more than once."""
        if self._unsubscribe_state is not None:
            self._unsubscribe_state()
            self._unsubscribe_state = None
        if self._unsubscribe_time is not None:
            self._unsubscribe_time()
            self._unsubscribe_time = None

    @property
    def attached(self) -> bool:
        return self._unsubscribe_state is not None

    # ----------------------------
    # Manager -> widget
    # ----------------------------

    def handle_manager_state(self, state: StateSnapshot) -> None:
        if state.playlist_name == self.target_playlist:
            local_index = self.find_local_index(state.current_index) if self.master_name else state.current_index
            in_this_list = local_index >= 0

            self.is_playing = state.is_playing and in_this_list
            self.current_index = local_index if in_this_list else 0
            self.active_index = local_index if in_this_list else NOT_FOUND
            if in_this_list and state.current_track is not None:
                self.now_playing = self.format_track_display(state.current_track)
        else:
            # someone else owns the resource
            self.is_playing = False
            self.active_index = NOT_FOUND

        if self.on_state is not None:
            self.on_state(self)

    def handle_time(self, time: TimeSnapshot) -> None:
        if not self._is_target_active():
            return
        if self.master_name and self.find_local_index(self.manager.current_index) < 0:
            return
        self.update_progress(time)

    def update_progress(self, time: TimeSnapshot) -> None:
        self.progress = progress_percent(time.current_time, time.duration)
        self.time_text = f"{format_time(time.current_time)} / {format_time(time.duration)}"
        if self.on_progress is not None:
            self.on_progress(self)

    def update_from_manager(self) -> None:
        state = self.manager.get_state()
        if state.playlist_name == self.target_playlist:
            self.handle_manager_state(state)

    # ----------------------------
    # Widget -> manager
    # ----------------------------

    def toggle_play(self) -> None:
        if self.master_name:
            local_index = self.find_local_index(self.manager.current_index)
            if self._is_target_active() and local_index >= 0:
                self.manager.toggle_play()
            else:
                master_index = self.find_master_index(0)
                if master_index >= 0:
                    self.manager.play_playlist(self.master_name, master_index)
        elif self._is_target_active():
            self.manager.toggle_play()
        else:
            self.manager.play_playlist(self.name, 0)

    def select_track(self, index: int) -> None:
        if self.master_name:
            master_index = self.find_master_index(index)
            if master_index >= 0:
                self.manager.play_playlist(self.master_name, master_index)
            else:
                logger.debug("%r: track %d is not in master %r", self.name, index, self.master_name)
        else:
            self.manager.play_playlist(self.name, index)

    def seek(self, percent: float) -> None:
        if self._is_target_active():
            self.manager.seek(percent)

    # ----------------------------
    # Display
    # ----------------------------

    def format_track_display(self, track: Track) -> str:
        return format_track_display(track, self.name, self.artist, self.year)

    def format_playlist_item(self, track: Track, index: int) -> str:
        return format_playlist_item(track, index, self.name, self.artist, self.year)

    def waveform(self, index: int):
        if self.master_name:
            master_index = self.find_master_index(index)
            if master_index < 0:
                return None
            return self.manager.get_waveform(self.master_name, master_index)
        return self.manager.get_waveform(self.name, index)
