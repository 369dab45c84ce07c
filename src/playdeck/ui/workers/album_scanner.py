# ui/workers/album_scanner.py
from PySide6.QtCore import QThread, Signal

from playdeck.library.scan_library import scan_albums


class AlbumScanner(QThread):
    finished_signal = Signal(bool, str, object)    # ok, message, list[FolderPlaylist]

    def __init__(self, root: str):
        super().__init__()
        self.root = root

    def run(self):
        try:
            albums = scan_albums(self.root)
            self.finished_signal.emit(True, f"Found {len(albums)} albums", albums)
        except OSError as e:
            self.finished_signal.emit(False, f"Scan failed: {e}", [])
