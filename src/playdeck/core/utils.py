import math

from playdeck.core.models import Track


def format_time(seconds: float | None) -> str:
    """
    m:ss for a position in seconds. Unknown / NaN positions show as 0:00.
    """
    if seconds is None or not math.isfinite(seconds) or seconds < 0:
        return "0:00"
    total = int(seconds)
    return f"{total // 60}:{total % 60:02d}"


def format_track_display(track: Track, album: str | None, artist: str | None = None, year: str | None = None) -> str:
    """
    Now-playing line: "{artist} - {title} - {album} ({year})".
    Missing parts are skipped.
    """
    parts = []
    if artist:
        parts.append(artist)
    parts.append(track.title)
    if album:
        parts.append(album)

    display = " - ".join(parts)
    if year:
        display += f" ({year})"
    return display


def format_playlist_item(track: Track, index: int, album: str | None, artist: str | None = None, year: str | None = None) -> str:
    """Playlist row: "{artist} - {n}. {title} - {album} ({year})" with a 1-based n."""
    numbered = Track(title=f"{index + 1}. {track.title}", source_ref=track.source_ref)
    return format_track_display(numbered, album, artist, year)


def progress_percent(current_time: float, duration: float) -> float:
    if not duration or not math.isfinite(duration) or duration <= 0:
        return 0.0
    return min(100.0, max(0.0, current_time / duration * 100.0))
