# core/aliasing.py
from __future__ import annotations

from typing import Callable, Optional, Sequence
from urllib.parse import unquote

from playdeck.core.models import Track

NOT_FOUND = -1


def normalize_ref(ref: str) -> str:
    """
    Percent-decode a source reference so "/a/My%20Song.mp3" and "/a/My Song.mp3"
    compare equal.
    """
    return unquote(ref or "")


def find_matching_index(
    source: Optional[Sequence[Track]],
    target: Optional[Sequence[Track]],
    index: int,
) -> int:
    """
    Index of the first track in `target` with the same normalized source_ref as
    `source[index]`, or NOT_FOUND.

    Duplicate refs in `target` are not disambiguated: the first one wins.
    """
    if source is None or target is None:
        return NOT_FOUND
    if not 0 <= index < len(source):
        return NOT_FOUND

    wanted = normalize_ref(source[index].source_ref)
    for i, track in enumerate(target):
        if normalize_ref(track.source_ref) == wanted:
            return i
    return NOT_FOUND


class AliasResolver:
    """
    Translates indices between a local track list and the master playlist it
    aliases. The master is looked up on every call because either list can be
    re-registered at any time.
    """

    def __init__(self, local_tracks: Sequence[Track], master_lookup: Callable[[], Optional[Sequence[Track]]]):
        self.local_tracks = local_tracks
        self._master_lookup = master_lookup

    def local_to_master(self, local_index: int) -> int:
        return find_matching_index(self.local_tracks, self._master_lookup(), local_index)

    def master_to_local(self, master_index: int) -> int:
        return find_matching_index(self._master_lookup(), self.local_tracks, master_index)
