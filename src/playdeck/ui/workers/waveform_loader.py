# ui/workers/waveform_loader.py
from __future__ import annotations

import logging

from PySide6.QtCore import QThread, Signal

from playdeck.core.manager import AudioManager
from playdeck.core.waveform_client import WaveformClient

logger = logging.getLogger(__name__)


class WaveformLoader(QThread):
    """
    Fetches waveforms for one playlist off the GUI thread.

    Results come back through `waveformLoaded`; the receiver stores them in the
    manager on the GUI thread.
    """

    waveformLoaded = Signal(str, int, object)   # playlist name, track index, samples
    finished_signal = Signal(str, int)          # playlist name, loaded count

    def __init__(self, client: WaveformClient, playlist_name: str, jobs: list[tuple[int, str]], parent=None):
        super().__init__(parent)
        # requests.Session is not shared across loader threads
        self.client = client.clone()
        self.playlist_name = playlist_name
        # (index, source_ref); first track first so the visible one shows up quickly
        self.jobs = sorted(jobs)

    @classmethod
    def for_playlist(cls, manager: AudioManager, client: WaveformClient, name: str, parent=None) -> "WaveformLoader | None":
        """Loader for the tracks of `name` that have no cached waveform yet, or None."""
        playlist = manager.registry.get(name)
        if playlist is None:
            return None
        jobs = [
            (i, t.source_ref)
            for i, t in enumerate(playlist.tracks)
            if manager.get_waveform(name, i) is None
        ]
        if not jobs:
            return None
        return cls(client, name, jobs, parent)

    def run(self):
        loaded = 0
        try:
            for index, source_ref in self.jobs:
                if self.isInterruptionRequested():
                    break
                try:
                    data = self.client.load(source_ref)
                except Exception:
                    logger.exception("Waveform load for %s failed", source_ref)
                    continue
                if data is not None:
                    loaded += 1
                    self.waveformLoaded.emit(self.playlist_name, index, data)
        finally:
            self.client.close()
        self.finished_signal.emit(self.playlist_name, loaded)
