from __future__ import annotations

import logging
from typing import Optional

from PySide6.QtWidgets import (
    QMainWindow, QWidget, QVBoxLayout, QHBoxLayout, QLabel, QListWidget, QScrollArea,
    QSplitter, QToolButton, QStyle, QFileDialog
)
from PySide6.QtCore import Qt
from PySide6.QtGui import QShortcut, QKeySequence

from playdeck.core.models import PlaybackStatus, PlaylistSummary, StateSnapshot
from playdeck.core.state import AppState, Notify
from playdeck.library.scan_library import FolderPlaylist, library_tracks
from playdeck.ui.player_bar import TransportBar
from playdeck.ui.playlist_controller import PlaylistController
from playdeck.ui.toast import Toast
from playdeck.ui.widgets.playlist_widget import PlaylistWidget
from playdeck.ui.workers.album_scanner import AlbumScanner
from playdeck.ui.workers.waveform_loader import WaveformLoader

logger = logging.getLogger(__name__)

LIBRARY_ROW = 0


class MainWindow(QMainWindow):
    """
    Page list on the left, one page on the right, transport at the bottom.

    Row 0 is the library page (the master playlist). Every other row is an album
    page: its widget aliases into the master, which stays registered through a
    hidden controller so playback survives page switches.
    """

    def __init__(self, app_state: AppState):
        super().__init__()
        self.setWindowTitle("Playdeck")
        self.resize(900, 600)
        self.app_state = app_state
        self.manager = app_state.manager
        self.config = app_state.config

        self.albums: list[FolderPlaylist] = []
        self._page_widgets: list[PlaylistWidget] = []
        self._hidden_controllers: list[PlaylistController] = []
        self._loaders: list[WaveformLoader] = []
        self._page: Optional[QWidget] = None
        self._scanner: Optional[AlbumScanner] = None
        self._last_error: Optional[str] = None

        # --- Shortcuts ---
        QShortcut(QKeySequence("Space"), self, activated=self.manager.toggle_play)
        QShortcut(QKeySequence("Ctrl+Right"), self, activated=self.manager.next)
        QShortcut(QKeySequence("Ctrl+Left"), self, activated=self.manager.previous)

        self.central_widget = QWidget()
        self.setCentralWidget(self.central_widget)
        self.layout = QVBoxLayout(self.central_widget)

        self.app_state.notification.connect(self._on_notify)

        # --- Top bar ---
        top_bar = QHBoxLayout()
        self.lbl_root = QLabel(self.config.music_dir or "No music folder")
        self.lbl_root.setObjectName("RootLabel")
        top_bar.addWidget(self.lbl_root, stretch=1)

        self.btn_open = QToolButton()
        self.btn_open.setIcon(self.style().standardIcon(QStyle.StandardPixmap.SP_DirOpenIcon))
        self.btn_open.setToolTip("Open music folder")
        self.btn_open.clicked.connect(self.open_folder)

        self.btn_refresh = QToolButton()
        self.btn_refresh.setIcon(self.style().standardIcon(QStyle.StandardPixmap.SP_BrowserReload))
        self.btn_refresh.setToolTip("Rescan")
        self.btn_refresh.clicked.connect(self.refresh_library)

        top_bar.addWidget(self.btn_open)
        top_bar.addWidget(self.btn_refresh)
        self.layout.addLayout(top_bar)

        # --- Pages ---
        splitter = QSplitter(Qt.Orientation.Horizontal)

        self.page_list = QListWidget()
        self.page_list.setObjectName("PageList")
        self.page_list.currentRowChanged.connect(self.show_page)
        splitter.addWidget(self.page_list)

        self.page_area = QScrollArea()
        self.page_area.setWidgetResizable(True)
        splitter.addWidget(self.page_area)

        splitter.setStretchFactor(0, 1)
        splitter.setStretchFactor(1, 3)
        self.layout.addWidget(splitter, 1)

        # --- Transport ---
        self.transport = TransportBar(self.manager, self)
        self.layout.addWidget(self.transport)

        self._unsubscribe = [
            self.manager.add_state_listener(self._on_manager_state),
            self.manager.add_playlist_listener(self._on_playlists_changed),
        ]

        self.show_queued_notifications()
        self.refresh_library()

        self.setStyleSheet(self.styleSheet() + """
            QListWidget#PageList {
                background: #020617;
                border: none;
                color: #e5e7eb;
            }
            QListWidget#PageList::item:selected {
                background: #0b1222;
                color: #38bdf8;
            }
            QLabel#RootLabel { color: #9ca3af; font-size: 11px; }
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
            """)

    # ------------------ scanning ------------------
    def open_folder(self):
        start = self.app_state.music_dir or ""
        folder = QFileDialog.getExistingDirectory(self, "Choose music folder", start)
        if not folder:
            return
        self.app_state.music_dir = folder
        self.lbl_root.setText(folder)
        self.refresh_library()

    def refresh_library(self):
        root = self.app_state.music_dir
        if not root:
            self._rebuild_pages([])
            return
        if self._scanner is not None and self._scanner.isRunning():
            return

        self.btn_refresh.setEnabled(False)
        self.statusBar().showMessage("Scanning library…")
        self._scanner = AlbumScanner(root)
        self._scanner.finished_signal.connect(self._scan_finished)
        self._scanner.start()

    def _scan_finished(self, ok: bool, msg: str, albums):
        self.btn_refresh.setEnabled(True)
        self.statusBar().showMessage(msg, 4000)
        if not ok:
            self.app_state.notify(msg, "error")
            return
        self._rebuild_pages(list(albums))

    def _rebuild_pages(self, albums: list[FolderPlaylist]):
        self.albums = albums
        self.page_list.blockSignals(True)
        self.page_list.clear()
        self.page_list.addItem(self.config.master_playlist)
        for album in albums:
            self.page_list.addItem(album.name)
        self.page_list.blockSignals(False)
        self.page_list.setCurrentRow(LIBRARY_ROW)
        self.show_page(LIBRARY_ROW)

    # ------------------ pages ------------------
    def show_page(self, row: int):
        if row < 0:
            return
        self._teardown_page()

        page = QWidget()
        layout = QVBoxLayout(page)
        layout.setContentsMargins(0, 0, 0, 0)

        master = self.config.master_playlist
        master_tracks = library_tracks(self.albums)

        if row == LIBRARY_ROW or row > len(self.albums):
            layout.addWidget(self._add_playlist_widget(master, master_tracks))
        else:
            album = self.albums[row - 1]
            # keeps the master registered while only the album is on screen
            self._hidden_controllers.append(PlaylistController(self.manager, master, master_tracks))
            layout.addWidget(self._add_playlist_widget(
                album.name, album.tracks, artist=album.artist, year=album.year, master_name=master,
            ))
        layout.addStretch(1)

        self._page = page
        self.page_area.setWidget(page)
        self._start_waveform_loaders()

    def _add_playlist_widget(self, name, tracks, **kwargs) -> PlaylistWidget:
        widget = PlaylistWidget(self.manager, name, tracks, **kwargs)
        self._page_widgets.append(widget)
        return widget

    def _teardown_page(self):
        self._stop_waveform_loaders()

        # alias widgets are not in the registry, so clear_players() cannot reach them
        for widget in self._page_widgets:
            widget.destroy_controller()
        for controller in self._hidden_controllers:
            controller.destroy()
        self._page_widgets = []
        self._hidden_controllers = []

        self.manager.clear_players()

        if self._page is not None:
            self.page_area.takeWidget()
            self._page.deleteLater()
            self._page = None

    # ------------------ waveforms ------------------
    def _start_waveform_loaders(self):
        for name in self.manager.registry.names():
            loader = WaveformLoader.for_playlist(self.manager, self.app_state.waveforms, name, self)
            if loader is None:
                continue
            loader.waveformLoaded.connect(self._on_waveform_loaded)
            loader.finished_signal.connect(self._on_waveforms_finished)
            self._loaders.append(loader)
            loader.start()

    def _stop_waveform_loaders(self):
        for loader in self._loaders:
            loader.requestInterruption()
        for loader in self._loaders:
            loader.wait()
        self._loaders = []

    def _on_waveform_loaded(self, name: str, index: int, data):
        self.manager.set_waveform(name, index, data)
        if name == self.manager.active_playlist_name and index == self.manager.current_index:
            self.manager.notify_state_change()

    def _on_waveforms_finished(self, name: str, loaded: int):
        logger.debug("Loaded %d waveforms for %r", loaded, name)
        if loaded:
            self.manager.notify_state_change()

    # ------------------ manager updates ------------------
    def _on_manager_state(self, state: StateSnapshot):
        if state.status is not PlaybackStatus.ERROR:
            self._last_error = None
            return
        message = self.manager.session.last_error or "Playback failed"
        if message != self._last_error:
            self._last_error = message
            self.app_state.notify(message, "error")

    def _on_playlists_changed(self, playlists: list[PlaylistSummary]):
        active = next((p for p in playlists if p.is_active), None)
        if active is None:
            self.statusBar().showMessage(f"{len(playlists)} playlist(s)")
        else:
            self.statusBar().showMessage(f"{len(playlists)} playlist(s), playing from {active.name}")

    # ------------------ notifications ------------------
    def _on_notify(self, n: Notify):
        if not n.message:
            return
        Toast.from_notify(self, n).show_bottom_right(bottom_offset=self.transport.height())

    def show_queued_notifications(self):
        for n in self.app_state.queued_notifications:
            self._on_notify(n)
        self.app_state.queued_notifications.clear()

    def closeEvent(self, event):
        self._teardown_page()
        for dispose in self._unsubscribe:
            dispose()
        self.transport.detach()
        if self.app_state.player is not None:
            self.app_state.player.shutdown()
        super().closeEvent(event)
