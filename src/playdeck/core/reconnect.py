# core/reconnect.py
from __future__ import annotations

from typing import Sequence

from playdeck.core.aliasing import NOT_FOUND
from playdeck.core.models import PendingReconnect, Session, Track


def capture_pending(session: Session, source_ref: str, current_time: float) -> PendingReconnect:
    return PendingReconnect(
        playlist_name=session.active_playlist_name,
        source_ref=source_ref or "",
        time=float(current_time or 0.0),
        was_playing=session.is_playing,
    )


def match_pending(pending: PendingReconnect, tracks: Sequence[Track]) -> int:
    """
    Find the track the resource is still pointing at.

    The resource may hold an absolute form of the reference (a resolved path or
    URL), so a track matches when its ref is contained in the captured one.
    """
    if not pending.source_ref:
        return NOT_FOUND
    for i, track in enumerate(tracks):
        if track.source_ref and track.source_ref in pending.source_ref:
            return i
    return NOT_FOUND
