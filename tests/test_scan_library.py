import os

import pytest
from mutagen._util import MutagenError

from playdeck.library import scan_library
from playdeck.library.scan_library import (
    library_tracks,
    load_folder_playlist,
    read_track_info,
    scan_albums,
)

TAGS = {
    "b.mp3": {"title": ["Second"], "album": ["Blue"], "artist": ["Band"], "date": ["1997-03-10"], "tracknumber": ["2/9"]},
    "a.mp3": {"title": ["First"], "album": ["Blue"], "artist": ["Band"], "date": ["1997"], "tracknumber": ["1"]},
    "c.flac": {"title": ["Third"], "album": ["Blue"], "albumartist": ["Band & Friends"], "artist": ["Guest"]},
}


@pytest.fixture
def fake_tags(monkeypatch):
    def fake_file(path, easy=False):
        name = os.path.basename(path)
        if name == "broken.mp3":
            raise MutagenError("unreadable")
        return TAGS.get(name)

    monkeypatch.setattr(scan_library, "MutagenFile", fake_file)


def _touch(directory, *names):
    directory.mkdir(parents=True, exist_ok=True)
    for n in names:
        (directory / n).write_bytes(b"")


class TestReadTrackInfo:
    def test_tags(self, tmp_path, fake_tags):
        _touch(tmp_path, "b.mp3")
        info = read_track_info(str(tmp_path / "b.mp3"))
        assert info.track.title == "Second"
        assert info.track.source_ref == str(tmp_path / "b.mp3")
        assert info.album == "Blue"
        assert info.artist == "Band"
        assert info.year == "1997"
        assert info.track_number == 2

    def test_album_artist_wins(self, tmp_path, fake_tags):
        _touch(tmp_path, "c.flac")
        assert read_track_info(str(tmp_path / "c.flac")).artist == "Band & Friends"

    def test_untagged_and_unreadable_fall_back_to_file_name(self, tmp_path, fake_tags):
        _touch(tmp_path, "plain song.mp3", "broken.mp3")
        plain = read_track_info(str(tmp_path / "plain song.mp3"))
        broken = read_track_info(str(tmp_path / "broken.mp3"))

        assert plain.track.title == "plain song"
        assert broken.track.title == "broken"
        assert broken.album is None and broken.track_number is None


class TestFolders:
    def test_folder_playlist_orders_by_track_number(self, tmp_path, fake_tags):
        _touch(tmp_path / "blue", "c.flac", "b.mp3", "a.mp3", "cover.jpg")

        playlist = load_folder_playlist(str(tmp_path / "blue"))

        assert playlist.name == "Blue"
        assert [t.title for t in playlist.tracks] == ["First", "Second", "Third"]
        assert playlist.artist == "Band"
        assert playlist.year == "1997"

    def test_untagged_folder_uses_folder_name(self, tmp_path, fake_tags):
        _touch(tmp_path / "Live Set", "2 two.mp3", "1 one.mp3")
        playlist = load_folder_playlist(str(tmp_path / "Live Set"))
        assert playlist.name == "Live Set"
        assert [t.title for t in playlist.tracks] == ["1 one", "2 two"]

    def test_folder_without_audio(self, tmp_path, fake_tags):
        _touch(tmp_path / "art", "cover.jpg")
        assert load_folder_playlist(str(tmp_path / "art")) is None
        assert load_folder_playlist(str(tmp_path / "missing")) is None

    def test_scan_albums_and_library(self, tmp_path, fake_tags):
        _touch(tmp_path / "blue", "a.mp3", "b.mp3")
        _touch(tmp_path / "copy of blue", "c.flac")
        _touch(tmp_path / "zz", "x.mp3")

        albums = scan_albums(str(tmp_path))

        assert [a.name for a in albums] == ["Blue", "Blue (2)", "zz"]
        assert [t.title for t in library_tracks(albums)] == ["First", "Second", "Third", "x"]

    def test_scan_missing_root(self, tmp_path):
        assert scan_albums(str(tmp_path / "nope")) == []
        assert scan_albums("") == []
