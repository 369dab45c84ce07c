from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Optional
from urllib.parse import unquote, urljoin, urlsplit, urlunsplit

import requests

from playdeck.core.models import WaveformData

logger = logging.getLogger(__name__)


def waveform_candidates(audio_path: str) -> list[str]:
    """
    Where a pre-generated waveform for `audio_path` may live:
      1) same directory:   /album/foo.mp3          -> /album/waveforms/foo.json
      2) parent directory: /show/episodes/foo.mp3  -> /show/waveforms/foo.json
    """
    parts = audio_path.split("/")
    filename = parts.pop()
    stem = filename.rsplit(".", 1)[0] if "." in filename else filename
    if not parts:
        # bare file name: relative to the current directory
        return [f"waveforms/{stem}.json"]
    directory = "/".join(parts)

    candidates = [f"{directory}/waveforms/{stem}.json"]
    if len(parts) > 1:
        parent = "/".join(parts[:-1])
        candidates.append(f"{parent}/waveforms/{stem}.json")
    return candidates


def _parse_samples(data) -> Optional[WaveformData]:
    if not isinstance(data, list):
        return None
    try:
        return [min(1.0, max(0.0, float(v))) for v in data]
    except (TypeError, ValueError):
        return None


class WaveformClient:
    """
    Loads pre-generated waveform JSON (a flat list of 0..1 amplitudes) for a track.

    Local paths are read from disk. http(s) refs, and root-relative refs when a
    base_url is configured, are fetched over HTTP.
    """

    def __init__(self, base_url: str | None = None, timeout_s: float = 10.0, user_agent: str = "playdeck/0.1"):
        self.base_url = base_url.rstrip("/") + "/" if base_url else None
        self.timeout_s = timeout_s
        self.user_agent = user_agent
        self.session = requests.Session()
        self.session.headers.update({"User-Agent": user_agent})

    def clone(self) -> "WaveformClient":
        """Same settings, own requests.Session (one per worker thread)."""
        return WaveformClient(base_url=self.base_url, timeout_s=self.timeout_s, user_agent=self.user_agent)

    def close(self) -> None:
        self.session.close()

    def load(self, source_ref: str) -> Optional[WaveformData]:
        if not source_ref:
            return None

        url = self._as_url(source_ref)
        if url is not None:
            return self._load_remote(url)
        return self._load_local(source_ref)

    def _as_url(self, source_ref: str) -> Optional[str]:
        if source_ref.startswith(("http://", "https://")):
            return source_ref
        if self.base_url and not Path(unquote(source_ref)).exists():
            return urljoin(self.base_url, source_ref.lstrip("/"))
        return None

    def _load_remote(self, url: str) -> Optional[WaveformData]:
        scheme, netloc, path, _query, _fragment = urlsplit(url)
        for candidate in waveform_candidates(path):
            json_url = urlunsplit((scheme, netloc, candidate, "", ""))
            try:
                r = self.session.get(json_url, timeout=self.timeout_s)
            except requests.RequestException as e:
                logger.warning("Waveform fetch failed for %s: %s", json_url, e)
                continue
            if r.status_code != 200:
                logger.debug("No waveform at %s (%s)", json_url, r.status_code)
                continue
            try:
                samples = _parse_samples(r.json())
            except ValueError:
                samples = None
            if samples is not None:
                return samples
        return None

    def _load_local(self, source_ref: str) -> Optional[WaveformData]:
        for candidate in waveform_candidates(Path(unquote(source_ref)).as_posix()):
            p = Path(candidate)
            if not p.is_file():
                continue
            try:
                with open(p, "r", encoding="utf-8") as f:
                    samples = _parse_samples(json.load(f))
            except (OSError, ValueError) as e:
                logger.warning("Failed to read waveform %s: %s", p, e)
                continue
            if samples is not None:
                return samples
        logger.debug("No waveform for %s", source_ref)
        return None
