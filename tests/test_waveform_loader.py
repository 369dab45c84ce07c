import pytest
from PySide6.QtCore import QCoreApplication

from playdeck.ui.workers.waveform_loader import WaveformLoader


@pytest.fixture(scope="module", autouse=True)
def qt_core():
    return QCoreApplication.instance() or QCoreApplication([])


class FakeClient:
    """Records clones and which refs each copy loaded."""

    def __init__(self, samples=None, parent=None):
        self.samples = samples or {}
        self.parent = parent
        self.clones = []
        self.loaded = []
        self.closed = False

    def clone(self):
        copy = FakeClient(self.samples, parent=self)
        self.clones.append(copy)
        return copy

    def load(self, source_ref):
        self.loaded.append(source_ref)
        if source_ref == "boom":
            raise RuntimeError("decoder crashed")
        return self.samples.get(source_ref)

    def close(self):
        self.closed = True


class TestWaveformLoader:
    def test_each_loader_gets_its_own_client(self):
        shared = FakeClient()
        a = WaveformLoader(shared, "A", [(0, "a.mp3")])
        b = WaveformLoader(shared, "B", [(0, "b.mp3")])

        assert a.client is not shared
        assert b.client is not shared
        assert a.client is not b.client
        assert len(shared.clones) == 2

    def test_run_emits_loaded_waveforms_in_index_order(self):
        shared = FakeClient({"one.mp3": [0.1], "three.mp3": [0.3]})
        loader = WaveformLoader(shared, "A", [(2, "three.mp3"), (0, "one.mp3"), (1, "boom")])
        loaded, finished = [], []
        loader.waveformLoaded.connect(lambda name, i, data: loaded.append((name, i, data)))
        loader.finished_signal.connect(lambda name, n: finished.append((name, n)))

        loader.run()

        assert loaded == [("A", 0, [0.1]), ("A", 2, [0.3])]
        assert finished == [("A", 2)]
        assert loader.client.loaded == ["one.mp3", "boom", "three.mp3"]
        assert loader.client.closed
        assert shared.loaded == []

    def test_for_playlist_skips_cached_indices(self, manager, album_tracks):
        manager.register("A", album_tracks)
        manager.set_waveform("A", 1, [0.5])

        loader = WaveformLoader.for_playlist(manager, FakeClient(), "A")

        assert loader.jobs == [(0, album_tracks[0].source_ref), (2, album_tracks[2].source_ref)]

    def test_for_playlist_nothing_to_do(self, manager, album_tracks):
        manager.register("A", album_tracks[:1])
        manager.set_waveform("A", 0, [0.5])

        assert WaveformLoader.for_playlist(manager, FakeClient(), "A") is None
        assert WaveformLoader.for_playlist(manager, FakeClient(), "missing") is None
