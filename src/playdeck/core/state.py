from __future__ import annotations
from dataclasses import dataclass
from typing import Optional

from PySide6.QtCore import QObject, Signal, Slot

from playdeck.core.config import PlaydeckConfig
from playdeck.core.manager import AudioManager
from playdeck.core.waveform_client import WaveformClient


@dataclass(frozen=True)
class Notify:
    message: str
    notify_type: str = "info"   # info/success/warn/error


class AppState(QObject):
    notification = Signal(object)   # emits Notify

    def __init__(self, config: PlaydeckConfig):
        super().__init__()
        self.config = config
        self.music_dir: Optional[str] = config.music_dir
        self.player = None
        self.manager: Optional[AudioManager] = None
        self.waveforms = WaveformClient(
            base_url=config.waveform_base_url,
            timeout_s=config.waveform_timeout_s,
        )
        self.queued_notifications: list[Notify] = []

    @Slot(str, str)
    def notify(self, message: str, notify_type: str = "info"):
        self.notification.emit(Notify(message=message, notify_type=notify_type))
