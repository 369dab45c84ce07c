"""
Player driven through a scripted mpv backend.

The fake mpv reports `pause` the way the real one does: only when the value
differs from what it last reported, so quick pause/unpause sequences inside one
poll interval produce no notification at all.
"""
import importlib
import sys
import types

import pytest
from PySide6.QtCore import QCoreApplication

from playdeck.core.config import PlaydeckConfig
from playdeck.core.manager import AudioManager
from playdeck.core.models import Track
from playdeck.player.resource import PlaybackRejected, ResourceEvent

STARTED = ResourceEvent.PLAYING_STARTED
STOPPED = ResourceEvent.PLAYING_STOPPED
ENDED = ResourceEvent.ENDED
ERROR = ResourceEvent.ERROR


class FakeSignal:
    def __init__(self):
        self.slots = []

    def connect(self, slot):
        self.slots.append(slot)


class FakeAudioOutput:
    def __init__(self):
        self.volume = None

    def setVolume(self, v):
        self.volume = v


class FakeMediaPlayer:
    def __init__(self):
        self.positionChanged = FakeSignal()
        self.durationChanged = FakeSignal()
        self.playbackStateChanged = FakeSignal()
        self.mediaStatusChanged = FakeSignal()
        self.errorOccurred = FakeSignal()
        self.source = None
        self.calls = []

    def setAudioOutput(self, out):
        self.output = out

    def setSource(self, url):
        self.source = url

    def play(self):
        self.calls.append("play")

    def pause(self):
        self.calls.append("pause")

    def stop(self):
        self.calls.append("stop")

    def position(self):
        return 0

    def duration(self):
        return 0

    def setPosition(self, ms):
        self.calls.append(("seek", ms))


class FakeMpv:
    fail_start = False
    instances = []

    def __init__(self, config=None):
        self.config = config
        self.paused = True
        self.idle = True
        self.reported_pause = True
        self.running = True
        self.fail_play = False
        self.path = None
        self.position = 0.0
        self.duration = 0.0
        self.volume = None
        self.observers = {}
        self.event_observers = {}
        self.queued_events = []
        FakeMpv.instances.append(self)

    # ---- lifecycle ----

    def start(self):
        if FakeMpv.fail_start:
            raise OSError("mpv not installed")

    def stop(self):
        self.running = False

    def is_running(self):
        return self.running

    # ---- observers ----

    def observe_property(self, name, cb):
        self.observers.setdefault(name, []).append(cb)

    def observe_event(self, name, cb):
        self.event_observers.setdefault(name, []).append(cb)

    def process_messages(self, max_messages=200):
        if self.paused != self.reported_pause:
            self.reported_pause = self.paused
            for cb in self.observers.get("pause", []):
                cb(self.paused)
        events, self.queued_events = self.queued_events, []
        for msg in events:
            for cb in self.event_observers.get(msg["event"], []):
                cb(msg)

    # ---- controls ----

    def load(self, path, start_playing=False):
        self.path = path
        self.paused = not start_playing
        self.idle = False
        self.position = 0.0

    def play(self):
        if self.fail_play:
            raise OSError("ipc pipe closed")
        self.paused = False

    def pause(self):
        self.paused = True

    def seek_seconds(self, sec, exact=False):
        self.position = sec

    def set_volume_0_to_1(self, v):
        self.volume = v

    def position_s(self):
        return self.position

    def duration_s(self):
        return self.duration

    def is_paused(self):
        return self.paused

    def is_idle(self):
        return self.idle

    # ---- test drivers ----

    def end_file(self, reason, **extra):
        self.idle = True
        self.queued_events.append({"event": "end-file", "reason": reason, **extra})


@pytest.fixture(scope="module", autouse=True)
def qt_core():
    return QCoreApplication.instance() or QCoreApplication([])


@pytest.fixture
def player_module(monkeypatch):
    try:
        import PySide6.QtMultimedia  # noqa: F401
    except ImportError:
        # no system audio libraries; Player only needs the two class names
        multimedia = types.ModuleType("PySide6.QtMultimedia")
        multimedia.QMediaPlayer = FakeMediaPlayer
        multimedia.QAudioOutput = FakeAudioOutput
        monkeypatch.setitem(sys.modules, "PySide6.QtMultimedia", multimedia)
        monkeypatch.delitem(sys.modules, "playdeck.player.player", raising=False)

    module = importlib.import_module("playdeck.player.player")
    monkeypatch.setattr(module, "QMediaPlayer", FakeMediaPlayer)
    monkeypatch.setattr(module, "QAudioOutput", FakeAudioOutput)
    monkeypatch.setattr(module, "MpvIpcBackend", FakeMpv)
    monkeypatch.setattr(FakeMpv, "fail_start", False)
    monkeypatch.setattr(FakeMpv, "instances", [])
    return module


@pytest.fixture
def player(player_module):
    p = player_module.Player(PlaydeckConfig(volume=0.4))
    yield p
    p.shutdown()


@pytest.fixture
def events(player):
    seen = []
    for ev in (STARTED, STOPPED, ENDED, ERROR):
        player.observe(ev, lambda *args, ev=ev: seen.append((ev, args)))
    return seen


def _kinds(events):
    return [ev for ev, _ in events]


class TestMpvBackend:
    def test_uses_mpv_when_it_starts(self, player):
        assert player.backend_name() == "mpv-ipc"
        assert FakeMpv.instances[-1].volume == 0.4

    def test_falls_back_to_qt_when_mpv_cannot_start(self, player_module):
        FakeMpv.fail_start = True
        p = player_module.Player(PlaydeckConfig())
        assert p.backend_name() == "qt-multimedia"
        p.shutdown()

    def test_play_after_load_emits_started(self, player, events):
        player.load("/music/a.mp3")
        player.play()
        player._poll()

        assert _kinds(events) == [STARTED]
        assert player.source == "/music/a.mp3"

    def test_load_while_playing_stops_and_stays_paused(self, player, events):
        mpv = FakeMpv.instances[-1]
        player.load("/music/a.mp3")
        player.play()
        player._poll()

        player.load("/music/b.mp3")
        player._poll()
        player._poll()

        assert _kinds(events) == [STARTED, STOPPED]
        assert mpv.paused is True
        assert mpv.path == "/music/b.mp3"

    def test_reload_and_play_within_one_poll_still_reports_playing(self, player, events):
        player.load("/music/a.mp3")
        player.play()
        player._poll()

        # pause goes False -> True -> False before mpv reports anything
        player.load("/music/b.mp3")
        player.play()
        player._poll()

        assert _kinds(events) == [STARTED, STOPPED, STARTED]

    def test_pause_is_not_undone_by_polling(self, player, events):
        player.load("/music/a.mp3")
        player.play()
        player._poll()

        player.pause()
        player._poll()
        player._poll()

        assert _kinds(events) == [STARTED, STOPPED]

    def test_end_of_file_emits_stopped_then_ended(self, player, events):
        mpv = FakeMpv.instances[-1]
        player.load("/music/a.mp3")
        player.play()
        player._poll()

        mpv.end_file("eof")
        player._poll()

        assert _kinds(events) == [STARTED, STOPPED, ENDED]

    def test_end_file_error_emits_error(self, player, events):
        mpv = FakeMpv.instances[-1]
        player.load("/music/missing.mp3")
        player.play()
        player._poll()

        mpv.end_file("error", file_error="loading failed")
        player._poll()

        assert _kinds(events)[-2:] == [STOPPED, ERROR]
        assert events[-1][1] == ("loading failed",)

    def test_play_without_source_is_rejected(self, player):
        with pytest.raises(PlaybackRejected):
            player.play()

    def test_transport_failure_on_play_is_rejected(self, player):
        FakeMpv.instances[-1].fail_play = True
        player.load("/music/a.mp3")
        with pytest.raises(PlaybackRejected):
            player.play()

    def test_fall_back_to_qt_emits_error(self, player, events):
        player.load("/music/a.mp3")
        player._fall_back_to_qt("socket closed")

        assert _kinds(events) == [ERROR]
        assert "socket closed" in events[-1][1][0]
        assert player.backend_name() == "qt-multimedia"
        assert player.media.source is not None

    def test_dead_mpv_process_falls_back_on_poll(self, player, events):
        player.load("/music/a.mp3")
        player.play()
        player._poll()

        FakeMpv.instances[-1].running = False
        player._poll()

        assert _kinds(events) == [STARTED, STOPPED, ERROR]
        assert player.backend_name() == "qt-multimedia"


class TestSessionFollowsMpv:
    def _tracks(self):
        return [Track(f"t{i}", f"/p1/t{i}.mp3") for i in range(3)]

    def test_auto_advance_keeps_session_playing(self, player):
        mpv = FakeMpv.instances[-1]
        manager = AudioManager(player)
        manager.register("P1", self._tracks())

        manager.play_playlist("P1", 0)
        player._poll()
        assert manager.is_playing is True

        mpv.end_file("eof")
        player._poll()

        assert manager.current_index == 1
        assert mpv.paused is False
        assert manager.is_playing is True

    def test_last_track_end_stops_session(self, player):
        mpv = FakeMpv.instances[-1]
        manager = AudioManager(player)
        manager.register("P1", self._tracks())

        manager.play_playlist("P1", 2)
        player._poll()
        mpv.end_file("eof")
        player._poll()

        assert manager.current_index == 0
        assert manager.is_playing is False
        assert mpv.paused is True

    def test_switching_playlists_while_playing(self, player):
        manager = AudioManager(player)
        manager.register("A", self._tracks())
        manager.register("B", [Track("b", "/p2/b.mp3")])

        manager.play_playlist("A", 0)
        player._poll()
        manager.play_playlist("B", 0)
        player._poll()

        assert manager.active_playlist_name == "B"
        assert manager.is_playing is True
