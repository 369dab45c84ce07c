# player/player.py
from __future__ import annotations

import logging
from typing import Any, Optional

from PySide6.QtCore import QObject, QTimer, QUrl
from PySide6.QtMultimedia import QAudioOutput, QMediaPlayer

from playdeck.core.config import PlaydeckConfig

from .mpv_ipc import MpvBackendConfig, MpvIpcBackend
from .resource import PlaybackRejected, PlaybackResource, ResourceEvent

logger = logging.getLogger(__name__)


def _to_url(source: str) -> QUrl:
    if "://" in source:
        return QUrl(source)
    return QUrl.fromLocalFile(source)


class Player(QObject, PlaybackResource):
    """
    The shared playback resource of the desktop app.

    Prefers mpv over JSON IPC and falls back to QMediaPlayer when mpv is missing
    or dies. Both backends are translated into ResourceEvents.
    """

    def __init__(self, config: PlaydeckConfig | None = None, *, use_mpv: bool = True):
        QObject.__init__(self)
        PlaybackResource.__init__(self)

        self.config = config or PlaydeckConfig()
        self._source: str = ""
        self._playing: bool = False

        # --- Backend selection ---
        self._use_mpv: bool = False
        self._mpv: Optional[MpvIpcBackend] = None

        # Qt fallback backend
        self.audio = QAudioOutput()
        self.media = QMediaPlayer()
        self.media.setAudioOutput(self.audio)
        self._volume_0_to_1: float = self.config.volume
        self.audio.setVolume(self._volume_0_to_1)

        self.media.positionChanged.connect(self._on_qt_position)
        self.media.durationChanged.connect(self._on_qt_duration)
        self.media.playbackStateChanged.connect(self._on_qt_state_changed)
        self.media.mediaStatusChanged.connect(self._on_qt_media_status)
        self.media.errorOccurred.connect(self._on_qt_error)

        # mpv pump: dispatches IPC messages on the GUI thread
        self._poll_timer = QTimer(self)
        self._poll_timer.setInterval(30)
        self._poll_timer.timeout.connect(self._poll)

        self._last_pos_s: float = -1.0

        if use_mpv:
            self._try_init_mpv()

    # ----------------------------
    # Backend init
    # ----------------------------

    def _try_init_mpv(self) -> None:
        backend = MpvIpcBackend(
            MpvBackendConfig(
                mpv_path=self.config.mpv_path,
                ipc_endpoint=self.config.mpv_ipc_endpoint,
                audio_only=True,
                keep_open=False,
            )
        )
        try:
            backend.start()
            backend.set_volume_0_to_1(self._volume_0_to_1)
        except (OSError, RuntimeError, TimeoutError) as e:
            logger.info("mpv unavailable (%s); using Qt Multimedia", e)
            return

        backend.observe_property("pause", self._on_mpv_pause)
        backend.observe_property("duration", self._on_mpv_duration)
        backend.observe_event("end-file", self._on_mpv_end_file)

        self._mpv = backend
        self._use_mpv = True
        self._poll_timer.start()

    def _fall_back_to_qt(self, reason: Any) -> None:
        logger.warning("mpv backend lost (%s); switching to Qt Multimedia", reason)
        self._use_mpv = False
        self._mpv = None
        self._poll_timer.stop()
        self._set_playing(False)
        if self._source:
            self.media.setSource(_to_url(self._source))
        self._emit(ResourceEvent.ERROR, f"mpv backend lost: {reason}")

    # ----------------------------
    # Qt backend handlers
    # ----------------------------

    def _on_qt_position(self, _ms: int) -> None:
        if not self._use_mpv:
            self._emit(ResourceEvent.TIME_ADVANCED)

    def _on_qt_duration(self, ms: int) -> None:
        if not self._use_mpv and ms > 0:
            self._emit(ResourceEvent.METADATA_READY)

    def _on_qt_state_changed(self, state: QMediaPlayer.PlaybackState) -> None:
        if self._use_mpv:
            return
        self._set_playing(state == QMediaPlayer.PlaybackState.PlayingState)

    def _on_qt_media_status(self, status: QMediaPlayer.MediaStatus) -> None:
        if self._use_mpv:
            return
        if status == QMediaPlayer.MediaStatus.EndOfMedia:
            self._set_playing(False)
            self._emit(ResourceEvent.ENDED)

    def _on_qt_error(self, error: QMediaPlayer.Error, error_string: str = "") -> None:
        if self._use_mpv or error == QMediaPlayer.Error.NoError:
            return
        self._set_playing(False)
        self._emit(ResourceEvent.ERROR, error_string or str(error))

    # ----------------------------
    # mpv handlers
    # ----------------------------

    def _on_mpv_pause(self, value: Any) -> None:
        self._set_playing(not bool(value) and bool(self._source))

    def _on_mpv_duration(self, value: Any) -> None:
        try:
            if value is not None and float(value) > 0:
                self._emit(ResourceEvent.METADATA_READY)
        except (TypeError, ValueError):
            pass

    def _on_mpv_end_file(self, msg: dict[str, Any]) -> None:
        reason = msg.get("reason")
        if reason == "eof":
            self._set_playing(False)
            self._emit(ResourceEvent.ENDED)
        elif reason == "error":
            self._set_playing(False)
            self._emit(ResourceEvent.ERROR, msg.get("file_error") or "mpv could not play file")

    def _poll(self) -> None:
        if not self._use_mpv or not self._mpv:
            return

        if not self._mpv.is_running():
            self._fall_back_to_qt("process exited")
            return

        self._mpv.process_messages(max_messages=500)

        # mpv coalesces pause changes, so load()+play() may never notify
        self._set_playing(bool(self._source) and not self._mpv.is_paused() and not self._mpv.is_idle())

        pos = self._mpv.position_s()
        if pos != self._last_pos_s:
            self._last_pos_s = pos
            self._emit(ResourceEvent.TIME_ADVANCED)

    # ----------------------------
    # Shared helpers
    # ----------------------------

    def _set_playing(self, playing: bool) -> None:
        if self._playing == playing:
            return
        self._playing = playing
        self._emit(ResourceEvent.PLAYING_STARTED if playing else ResourceEvent.PLAYING_STOPPED)

    # ----------------------------
    # PlaybackResource
    # ----------------------------

    @property
    def source(self) -> str:
        return self._source

    @property
    def current_time(self) -> float:
        if self._use_mpv and self._mpv:
            return self._mpv.position_s()
        return self.media.position() / 1000.0

    @property
    def duration(self) -> float:
        if self._use_mpv and self._mpv:
            return self._mpv.duration_s()
        return max(0, self.media.duration()) / 1000.0

    def load(self, source: str) -> None:
        self._source = source
        if self._use_mpv and self._mpv:
            try:
                self._mpv.load(source, start_playing=False)
            except (OSError, RuntimeError) as e:
                self._fall_back_to_qt(e)
            else:
                self._set_playing(False)
                return

        self.media.setSource(_to_url(source))
        self._set_playing(False)

    def play(self) -> None:
        if not self._source:
            raise PlaybackRejected("nothing loaded")

        if self._use_mpv and self._mpv:
            try:
                self._mpv.play()
            except (OSError, RuntimeError) as e:
                raise PlaybackRejected(f"mpv refused to play: {e}") from e
            return

        self.media.play()

    def pause(self) -> None:
        if self._use_mpv and self._mpv:
            try:
                self._mpv.pause()
            except (OSError, RuntimeError) as e:
                logger.warning("mpv pause failed: %s", e)
        else:
            self.media.pause()
        self._set_playing(False)

    def seek(self, seconds: float) -> None:
        seconds = max(0.0, float(seconds))
        if self._use_mpv and self._mpv:
            try:
                self._mpv.seek_seconds(seconds, exact=True)
            except (OSError, RuntimeError) as e:
                logger.warning("mpv seek failed: %s", e)
            return
        self.media.setPosition(int(seconds * 1000))

    # ----------------------------
    # Extras
    # ----------------------------

    def set_volume(self, volume_0_to_1: float) -> None:
        v = min(1.0, max(0.0, float(volume_0_to_1)))
        self._volume_0_to_1 = v
        if self._use_mpv and self._mpv:
            self._mpv.set_volume_0_to_1(v)
        else:
            self.audio.setVolume(v)

    def backend_name(self) -> str:
        return "mpv-ipc" if (self._use_mpv and self._mpv) else "qt-multimedia"

    def shutdown(self) -> None:
        self._poll_timer.stop()
        if self._mpv is not None:
            self._mpv.stop()
            self._mpv = None
        self._use_mpv = False
        self.media.stop()
