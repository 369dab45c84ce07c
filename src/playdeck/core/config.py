"""
Runtime configuration for playdeck.
Defaults can be overridden through PLAYDECK_* environment variables.
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

logger = logging.getLogger(__name__)

ENV_PREFIX = "PLAYDECK_"


@dataclass(frozen=True)
class PlaydeckConfig:
    music_dir: Optional[str] = None
    master_playlist: str = "Library"

    # previous() restarts the current track past this position
    restart_threshold_s: float = 3.0

    volume: float = 0.7

    mpv_path: Optional[str] = None
    mpv_ipc_endpoint: Optional[str] = None

    # Used to resolve relative track refs for waveform lookup
    waveform_base_url: Optional[str] = None
    waveform_timeout_s: float = 10.0

    log_level: str = "WARNING"

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "PlaydeckConfig":
        env = os.environ if environ is None else environ
        defaults = cls()

        def _str(key: str, default: Optional[str]) -> Optional[str]:
            v = env.get(ENV_PREFIX + key)
            if v is None:
                return default
            return v.strip() or default

        def _float(key: str, default: float) -> float:
            raw = env.get(ENV_PREFIX + key)
            if raw is None or not raw.strip():
                return default
            try:
                return float(raw)
            except ValueError:
                logger.warning("Ignoring %s%s=%r (not a number)", ENV_PREFIX, key, raw)
                return default

        return cls(
            music_dir=_str("MUSIC_DIR", defaults.music_dir),
            master_playlist=_str("MASTER_PLAYLIST", defaults.master_playlist) or defaults.master_playlist,
            restart_threshold_s=max(0.0, _float("RESTART_THRESHOLD", defaults.restart_threshold_s)),
            volume=min(1.0, max(0.0, _float("VOLUME", defaults.volume))),
            mpv_path=_str("MPV_PATH", defaults.mpv_path),
            mpv_ipc_endpoint=_str("MPV_IPC", defaults.mpv_ipc_endpoint),
            waveform_base_url=_str("WAVEFORM_BASE_URL", defaults.waveform_base_url),
            waveform_timeout_s=_float("WAVEFORM_TIMEOUT", defaults.waveform_timeout_s),
            log_level=(_str("LOG_LEVEL", defaults.log_level) or defaults.log_level).upper(),
        )

    def music_path(self) -> Optional[Path]:
        if not self.music_dir:
            return None
        return Path(self.music_dir).expanduser()
