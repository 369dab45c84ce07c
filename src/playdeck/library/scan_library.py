# src/playdeck/library/scan_library.py
from __future__ import annotations

import os
import logging
from dataclasses import dataclass
from typing import Optional

from mutagen import File as MutagenFile
from mutagen._util import MutagenError

from playdeck.core.models import Track

logger = logging.getLogger(__name__)

AUDIO_EXTS = {".mp3", ".m4a", ".flac", ".ogg", ".opus", ".wav"}


@dataclass(frozen=True)
class TrackInfo:
    track: Track
    album: str | None
    artist: str | None
    year: str | None
    track_number: int | None


@dataclass(frozen=True)
class FolderPlaylist:
    name: str
    directory: str
    tracks: tuple[Track, ...]
    artist: str | None = None
    year: str | None = None


def _first(easy, key: str) -> str | None:
    v = easy.get(key)
    if not v:
        return None
    if isinstance(v, list):
        return (str(v[0]).strip() if v else None) or None
    s = str(v).strip()
    return s or None


def _parse_track_number(raw: str | None) -> int | None:
    if not raw:
        return None
    try:
        head = str(raw).split("/")[0].strip()
        return int(head)
    except ValueError:
        return None


def _parse_year(raw: str | None) -> str | None:
    # "1997-03-10" / "1997"
    if not raw:
        return None
    head = raw.strip()[:4]
    return head if head.isdigit() else None


def read_track_info(path: str) -> TrackInfo:
    """
    Title/album/artist/year from tags. Files mutagen cannot read still become a
    track titled after the file name.
    """
    fallback_title = os.path.splitext(os.path.basename(path))[0]
    try:
        audio = MutagenFile(path, easy=True)
    except (MutagenError, OSError) as e:
        logger.warning("Failed to read tags from %s: %s", path, e)
        audio = None

    if audio is None:
        return TrackInfo(
            track=Track(title=fallback_title, source_ref=path),
            album=None,
            artist=None,
            year=None,
            track_number=None,
        )

    artist = (
        _first(audio, "albumartist")
        or _first(audio, "album artist")
        or _first(audio, "artist")
    )
    return TrackInfo(
        track=Track(title=_first(audio, "title") or fallback_title, source_ref=path),
        album=_first(audio, "album"),
        artist=artist,
        year=_parse_year(_first(audio, "date")),
        track_number=_parse_track_number(_first(audio, "tracknumber")),
    )


def load_folder_playlist(directory: str) -> Optional[FolderPlaylist]:
    """
    One album folder -> one playlist. Only files directly inside `directory`
    count; tracks are ordered by track number, then file name.
    """
    if not os.path.isdir(directory):
        return None

    infos: list[TrackInfo] = []
    for fn in sorted(os.listdir(directory)):
        path = os.path.join(directory, fn)
        if os.path.isfile(path) and os.path.splitext(fn)[1].lower() in AUDIO_EXTS:
            infos.append(read_track_info(path))

    if not infos:
        return None

    infos.sort(key=lambda i: (i.track_number is None, i.track_number or 0, os.path.basename(i.track.source_ref)))
    first = infos[0]
    return FolderPlaylist(
        name=first.album or os.path.basename(os.path.normpath(directory)),
        directory=directory,
        tracks=tuple(i.track for i in infos),
        artist=first.artist,
        year=first.year,
    )


def scan_albums(root: str) -> list[FolderPlaylist]:
    """Every folder under `root` that directly holds audio files, as a playlist."""
    albums: list[FolderPlaylist] = []
    if not root or not os.path.isdir(root):
        return albums

    for dirpath, dirnames, _ in os.walk(root):
        dirnames.sort()
        playlist = load_folder_playlist(dirpath)
        if playlist is not None:
            albums.append(playlist)

    # Two folders tagged with the same album name would collide in the registry
    seen: dict[str, int] = {}
    unique: list[FolderPlaylist] = []
    for album in albums:
        count = seen.get(album.name, 0)
        seen[album.name] = count + 1
        if count:
            album = FolderPlaylist(
                name=f"{album.name} ({count + 1})",
                directory=album.directory,
                tracks=album.tracks,
                artist=album.artist,
                year=album.year,
            )
        unique.append(album)
    return unique


def library_tracks(albums: list[FolderPlaylist]) -> tuple[Track, ...]:
    """The master list: every album's tracks, album after album."""
    return tuple(t for album in albums for t in album.tracks)
