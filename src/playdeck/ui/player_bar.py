# ui/player_bar.py
from __future__ import annotations

from PySide6.QtCore import Qt, QSize, QByteArray
from PySide6.QtGui import QIcon, QPixmap, QPainter
from PySide6.QtSvg import QSvgRenderer
from PySide6.QtWidgets import QWidget, QHBoxLayout, QLabel, QToolButton, QSlider, QComboBox

from playdeck.core.manager import AudioManager
from playdeck.core.models import StateSnapshot, TimeSnapshot
from playdeck.core.utils import format_time

SLIDER_STEPS = 1000


def svg_icon(path_d: str, size: int = 20, color: str = "#e5e7eb") -> QIcon:
    svg = f"""
    <svg xmlns="http://www.w3.org/2000/svg" width="{size}" height="{size}" viewBox="0 0 24 24">
      <path d="{path_d}" fill="{color}"/>
    </svg>
    """.strip()

    renderer = QSvgRenderer(QByteArray(svg.encode("utf-8")))
    pm = QPixmap(size, size)
    pm.fill(Qt.transparent)

    p = QPainter(pm)
    renderer.render(p)
    p.end()

    return QIcon(pm)


SVG_PREV = "M6 18V6h2v12H6zm3.5-6L18 6v12l-8.5-6z"
SVG_NEXT = "M16 6v12h2V6h-2zM6 18l8.5-6L6 6v12z"
SVG_PLAY = "M8 5v14l11-7L8 5z"
SVG_PAUSE = "M6 5h4v14H6V5zm8 0h4v14h-4V5z"


class TransportBar(QWidget):
    """
    Global transport: lives as long as the window, so it subscribes once and
    never goes through clear_players().
    """

    def __init__(self, manager: AudioManager, parent=None):
        super().__init__(parent)
        self.manager = manager

        self._dragging = False
        self._dropdown_key: tuple | None = None

        root = QHBoxLayout(self)
        root.setContentsMargins(8, 6, 8, 6)
        root.setSpacing(10)

        # --- buttons ---
        self.btn_prev = QToolButton()
        self.btn_prev.setObjectName("BtnPrev")
        self.btn_prev.setIcon(svg_icon(SVG_PREV, 20))
        self.btn_prev.setIconSize(QSize(20, 20))
        self.btn_prev.setToolTip("Previous")

        self.btn_play = QToolButton()
        self.btn_play.setObjectName("BtnPlay")
        self.btn_play.setIconSize(QSize(22, 22))

        self.btn_next = QToolButton()
        self.btn_next.setObjectName("BtnNext")
        self.btn_next.setIcon(svg_icon(SVG_NEXT, 20))
        self.btn_next.setIconSize(QSize(20, 20))
        self.btn_next.setToolTip("Next")

        self._set_playing(False)

        # --- labels ---
        self.lbl_title = QLabel("Nothing playing")
        self.lbl_title.setMinimumWidth(220)
        self.lbl_title.setTextInteractionFlags(Qt.TextSelectableByMouse)
        self.lbl_title.setObjectName("NowPlaying")

        self.lbl_time = QLabel("0:00")
        self.lbl_dur = QLabel("0:00")

        # --- active playlist dropdown ---
        self.cmb_tracks = QComboBox()
        self.cmb_tracks.setObjectName("TrackCombo")
        self.cmb_tracks.setToolTip("Active playlist")
        self.cmb_tracks.setMinimumWidth(160)

        # --- slider (per mille of the duration) ---
        self.slider = QSlider(Qt.Orientation.Horizontal)
        self.slider.setRange(0, SLIDER_STEPS)

        root.addWidget(self.btn_prev)
        root.addWidget(self.btn_play)
        root.addWidget(self.btn_next)
        root.addSpacing(6)
        root.addWidget(self.lbl_title, 1)
        root.addWidget(self.cmb_tracks)
        root.addWidget(self.lbl_time)
        root.addWidget(self.slider, 3)
        root.addWidget(self.lbl_dur)

        # --- signals ---
        self.btn_prev.clicked.connect(self.manager.previous)
        self.btn_play.clicked.connect(self.manager.toggle_play)
        self.btn_next.clicked.connect(self.manager.next)

        self.slider.sliderPressed.connect(self._on_slider_pressed)
        self.slider.sliderReleased.connect(self._on_slider_released)
        self.slider.sliderMoved.connect(self._on_slider_moved)

        self.cmb_tracks.activated.connect(self._on_track_chosen)

        self._unsubscribe = [
            self.manager.add_state_listener(self._on_state),
            self.manager.add_time_listener(self._on_time),
        ]

        self.setObjectName("PlayerBar")
        self._apply_styles()
        self._on_state(self.manager.get_state())

    def detach(self) -> None:
        for dispose in self._unsubscribe:
            dispose()
        self._unsubscribe = []

    # --- slider handling ---
    def _on_slider_pressed(self):
        self._dragging = True

    def _on_slider_moved(self, value: int):
        duration = self.manager.session.duration
        self.lbl_time.setText(format_time(duration * value / SLIDER_STEPS))

    def _on_slider_released(self):
        self._dragging = False
        self.manager.seek(self.slider.value() / SLIDER_STEPS)

    # --- dropdown ---
    def _on_track_chosen(self, index: int):
        data = self.manager.get_active_playlist_data()
        if data is None or not 0 <= index < len(data.tracks):
            return
        if data.name in self.manager.registry:
            self.manager.play_playlist(data.name, index)
        elif self.manager.load_track(index):
            # playlist page is gone but its tracks are still the active selection
            self.manager.play()

    def _refresh_dropdown(self):
        data = self.manager.get_active_playlist_data()
        key = (data.name, data.tracks) if data else None
        if key != self._dropdown_key:
            self._dropdown_key = key
            self.cmb_tracks.blockSignals(True)
            self.cmb_tracks.clear()
            if data is not None:
                for i, track in enumerate(data.tracks):
                    self.cmb_tracks.addItem(f"{i + 1}. {track.title}")
            self.cmb_tracks.blockSignals(False)
        if data is not None and 0 <= data.current_index < self.cmb_tracks.count():
            self.cmb_tracks.setCurrentIndex(data.current_index)

    # --- manager updates ---
    def _on_state(self, state: StateSnapshot):
        track = state.current_track
        if track is None:
            self.lbl_title.setText("Nothing playing")
            self.slider.setValue(0)
            self.lbl_time.setText("0:00")
            self.lbl_dur.setText("0:00")
        else:
            title = f"{state.artist} - {track.title}" if state.artist else track.title
            if state.year:
                title += f" ({state.year})"
            self.lbl_title.setText(title)
            self.lbl_dur.setText(format_time(state.duration))
        self._set_playing(state.is_playing)
        self._refresh_dropdown()

    def _on_time(self, time: TimeSnapshot):
        self.lbl_dur.setText(format_time(time.duration))
        if self._dragging:
            return
        self.lbl_time.setText(format_time(time.current_time))
        if time.duration > 0:
            self.slider.setValue(int(time.current_time / time.duration * SLIDER_STEPS))
        else:
            self.slider.setValue(0)

    def _set_playing(self, playing: bool):
        if playing:
            self.btn_play.setIcon(svg_icon(SVG_PAUSE, 22))
            self.btn_play.setToolTip("Pause")
        else:
            self.btn_play.setIcon(svg_icon(SVG_PLAY, 22))
            self.btn_play.setToolTip("Play")

    def _apply_styles(self):
        self.setStyleSheet("""
        QWidget#PlayerBar {
            background-color: #020617;
            border-top: 1px solid #111827;
        }

        QToolButton {
            border: 1px solid transparent;
            background: transparent;
            padding: 6px;
            border-radius: 10px;
        }
        QToolButton:hover {
            background: #0b1222;
            border-color: #1f2937;
        }

        QToolButton#BtnPlay {
            background: #111827;
            border: 1px solid #1f2937;
            border-radius: 999px;
            padding: 8px;
        }
        QToolButton#BtnPlay:hover { border-color: #38bdf8; }

        QSlider::groove:horizontal {
            height: 4px;
            background: #0f172a;
            border-radius: 2px;
        }
        QSlider::handle:horizontal {
            width: 12px;
            height: 12px;
            margin: -4px 0;
            border-radius: 6px;
            background: #38bdf8;
        }
        QSlider::sub-page:horizontal {
            background: #38bdf8;
            border-radius: 2px;
        }

        QLabel { color: #9ca3af; font-size: 11px; }
        QLabel#NowPlaying { color: #e5e7eb; font-size: 12px; }

        QComboBox#TrackCombo {
            background: #0b1222;
            border: 1px solid #1f2937;
            border-radius: 10px;
            padding: 4px 8px;
            color: #e5e7eb;
            font-size: 11px;
        }
        QComboBox#TrackCombo:hover { border-color: #38bdf8; }
        """)
