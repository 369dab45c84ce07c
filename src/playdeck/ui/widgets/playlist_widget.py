# ui/widgets/playlist_widget.py
from __future__ import annotations

from PySide6.QtCore import Qt, QSize
from PySide6.QtWidgets import (
    QWidget, QVBoxLayout, QHBoxLayout, QLabel, QListWidget, QListWidgetItem, QSlider, QToolButton
)

from playdeck.core.manager import AudioManager
from playdeck.ui.player_bar import SLIDER_STEPS, SVG_PAUSE, SVG_PLAY, svg_icon
from playdeck.ui.playlist_controller import PlaylistController


class PlaylistWidget(QWidget):
    """One album/playlist block on a page: now-playing line, play button, progress and track list."""

    def __init__(self, manager: AudioManager, name: str, tracks, *, artist=None, year=None,
                 master_name: str | None = None, parent=None):
        super().__init__(parent)
        self._dragging = False

        root = QVBoxLayout(self)
        root.setContentsMargins(8, 8, 8, 8)
        root.setSpacing(6)

        self.lbl_now = QLabel()
        self.lbl_now.setObjectName("PlaylistNowPlaying")

        controls = QHBoxLayout()
        self.btn_play = QToolButton()
        self.btn_play.setIconSize(QSize(20, 20))
        self.btn_play.setIcon(svg_icon(SVG_PLAY, 20))
        self.btn_play.setToolTip("Play")

        self.slider = QSlider(Qt.Orientation.Horizontal)
        self.slider.setRange(0, SLIDER_STEPS)
        self.lbl_time = QLabel("0:00 / 0:00")

        controls.addWidget(self.btn_play)
        controls.addWidget(self.slider, 1)
        controls.addWidget(self.lbl_time)

        root.addWidget(self.lbl_now)
        root.addLayout(controls)

        tracks = list(tracks)
        self.list = QListWidget() if len(tracks) > 1 else None
        if self.list is not None:
            self.list.setObjectName("PlaylistItems")
            root.addWidget(self.list)

        # Controller last: it syncs from the manager right away and calls back into the widgets
        self.controller = PlaylistController(
            manager,
            name,
            tracks,
            artist=artist,
            year=year,
            master_name=master_name,
            on_state=self._render_state,
            on_progress=self._render_progress,
        )

        if self.list is not None:
            for i, track in enumerate(self.controller.tracks):
                self.list.addItem(QListWidgetItem(self.controller.format_playlist_item(track, i)))
            self.list.itemClicked.connect(self._on_item_clicked)

        self.btn_play.clicked.connect(self.controller.toggle_play)
        self.slider.sliderPressed.connect(self._on_slider_pressed)
        self.slider.sliderReleased.connect(self._on_slider_released)

        self._render_state(self.controller)

    def destroy_controller(self) -> None:
        self.controller.destroy()

    # --- input ---
    def _on_item_clicked(self, item: QListWidgetItem):
        self.controller.select_track(self.list.row(item))

    def _on_slider_pressed(self):
        self._dragging = True

    def _on_slider_released(self):
        self._dragging = False
        self.controller.seek(self.slider.value() / SLIDER_STEPS)

    # --- controller -> view ---
    def _render_state(self, c: PlaylistController):
        self.lbl_now.setText(c.now_playing)
        self.btn_play.setIcon(svg_icon(SVG_PAUSE if c.is_playing else SVG_PLAY, 20))
        self.btn_play.setToolTip("Pause" if c.is_playing else "Play")

        if self.list is None:
            return
        for i in range(self.list.count()):
            item = self.list.item(i)
            font = item.font()
            font.setBold(i == c.active_index)
            item.setFont(font)
            has_waveform = c.waveform(i) is not None
            item.setToolTip("Waveform ready" if has_waveform else "")

    def _render_progress(self, c: PlaylistController):
        self.lbl_time.setText(c.time_text)
        if not self._dragging:
            self.slider.setValue(int(c.progress / 100.0 * SLIDER_STEPS))
