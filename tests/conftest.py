"""
Shared fixtures: an in-memory playback resource and a manager wired to it.

The core layer never touches Qt, so none of these tests need a QApplication.
"""
import pytest

from playdeck.core.manager import AudioManager
from playdeck.core.models import Track
from playdeck.player.resource import PlaybackRejected, PlaybackResource, ResourceEvent


class FakeResource(PlaybackResource):
    """Follows the PlaybackResource contract synchronously and records every call."""

    def __init__(self):
        super().__init__()
        self._source = ""
        self._time = 0.0
        self._duration = 0.0
        self.playing = False
        self.reject_play = False
        self.calls = []

    # ---- state ----

    @property
    def source(self):
        return self._source

    @property
    def current_time(self):
        return self._time

    @current_time.setter
    def current_time(self, value):
        self._time = value

    @property
    def duration(self):
        return self._duration

    @duration.setter
    def duration(self, value):
        self._duration = value

    # ---- controls ----

    def load(self, source):
        self.calls.append(("load", source))
        self._source = source
        self._time = 0.0
        if self.playing:
            self.playing = False
            self._emit(ResourceEvent.PLAYING_STOPPED)

    def play(self):
        self.calls.append(("play",))
        if self.reject_play:
            raise PlaybackRejected("autoplay blocked")
        if not self.playing:
            self.playing = True
            self._emit(ResourceEvent.PLAYING_STARTED)

    def pause(self):
        self.calls.append(("pause",))
        if self.playing:
            self.playing = False
            self._emit(ResourceEvent.PLAYING_STOPPED)

    def seek(self, seconds):
        self.calls.append(("seek", seconds))
        self._time = max(0.0, min(seconds, self._duration or seconds))

    # ---- test drivers ----

    def advance(self, seconds):
        self._time = seconds
        self._emit(ResourceEvent.TIME_ADVANCED)

    def metadata(self, duration):
        self._duration = duration
        self._emit(ResourceEvent.METADATA_READY)

    def finish(self):
        self.playing = False
        self._emit(ResourceEvent.PLAYING_STOPPED)
        self._emit(ResourceEvent.ENDED)

    def fail(self, message="decode error"):
        self.playing = False
        self._emit(ResourceEvent.ERROR, message)

    def loads(self):
        return [c[1] for c in self.calls if c[0] == "load"]


class Owner:
    """Stands in for a widget that owns a registration."""

    def __init__(self):
        self.destroyed = 0

    def destroy(self):
        self.destroyed += 1


@pytest.fixture
def resource():
    return FakeResource()


@pytest.fixture
def manager(resource):
    return AudioManager(resource, restart_threshold_s=3.0)


@pytest.fixture
def album_tracks():
    return [
        Track(title="One", source_ref="/music/album/01 One.mp3"),
        Track(title="Two", source_ref="/music/album/02 Two.mp3"),
        Track(title="Three", source_ref="/music/album/03 Three.mp3"),
    ]


@pytest.fixture
def library_tracks(album_tracks):
    return [
        Track(title="Intro", source_ref="/music/other/00 Intro.mp3"),
        *album_tracks,
        Track(title="Outro", source_ref="/music/other/99 Outro.mp3"),
    ]


@pytest.fixture
def make_owner():
    return Owner


@pytest.fixture
def recorder():
    """Callable that remembers every payload it was called with."""

    class Recorder:
        def __init__(self):
            self.calls = []

        def __call__(self, payload):
            self.calls.append(payload)

        @property
        def last(self):
            return self.calls[-1] if self.calls else None

    return Recorder
