import logging
import sys
from pathlib import Path

from PySide6.QtWidgets import QApplication

ROOT = Path(__file__).resolve().parent
SRC_DIR = ROOT / "src"

if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from playdeck.core.config import PlaydeckConfig
from playdeck.core.manager import AudioManager
from playdeck.core.state import AppState, Notify
from playdeck.player.player import Player
from playdeck.ui.main_window import MainWindow

logger = logging.getLogger("playdeck")


def init_app_state(config: PlaydeckConfig) -> AppState:
    app_state = AppState(config)

    try:
        app_state.player = Player(config)
    except Exception as e:
        logger.exception("Audio player init failed")
        app_state.player = Player(config, use_mpv=False)
        app_state.queued_notifications.append(
            Notify(message=f"Failed to initialize mpv, using Qt audio: {e}", notify_type="warn")
        )

    app_state.manager = AudioManager(app_state.player, restart_threshold_s=config.restart_threshold_s)
    return app_state


def main() -> int:
    config = PlaydeckConfig.from_env()
    logging.basicConfig(
        level=getattr(logging, config.log_level, logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    qt_app = QApplication(sys.argv)

    app_state = init_app_state(config)
    main_window = MainWindow(app_state)
    main_window.show()

    return qt_app.exec()


if __name__ == "__main__":
    raise SystemExit(main())
