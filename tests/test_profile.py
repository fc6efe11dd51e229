"""Tests for profile aggregation."""

from factories import FakeCatalog, make_artist, make_track

from taste_discovery.models.catalog import Playlist
from taste_discovery.profile import MAX_PLAYLISTS_WITH_TRACKS, ProfileAggregator


def _playlists(count: int):
    return [Playlist(id=f"p{i}", name=f"List {i}", owner_id="listener") for i in range(count)]


class TestProfileAggregator:
    def test_collects_every_signal(self) -> None:
        catalog = FakeCatalog(
            liked=[make_track("l1")],
            playlists=_playlists(1),
            playlist_tracks={"p0": [make_track("p0t")]},
            recent=[make_track("r1")],
            top_tracks=[make_track("t1")],
            top_artists=[make_artist("a1", "Band", ["indie"])],
        )
        profile = ProfileAggregator(catalog).collect()
        assert [t.id for t in profile.liked_tracks] == ["l1"]
        assert [t.id for t in profile.recent_tracks] == ["r1"]
        assert [t.id for t in profile.top_tracks] == ["t1"]
        assert [a.id for a in profile.top_artists] == ["a1"]
        assert [t.id for t in profile.playlist_tracks["p0"]] == ["p0t"]
        assert profile.audio_features == {}

    def test_failed_signal_is_empty_and_siblings_complete(self) -> None:
        catalog = FakeCatalog(
            liked=[make_track("l1")],
            recent=[make_track("r1")],
            top_artists=[make_artist("a1", "Band")],
            failing={"recent", "top_tracks"},
        )
        profile = ProfileAggregator(catalog).collect()
        assert profile.recent_tracks == []
        assert profile.top_tracks == []
        assert [t.id for t in profile.liked_tracks] == ["l1"]
        assert [a.id for a in profile.top_artists] == ["a1"]

    def test_only_first_playlists_fetch_tracks(self) -> None:
        catalog = FakeCatalog(playlists=_playlists(15))
        profile = ProfileAggregator(catalog).collect()
        assert len(profile.playlists) == 15
        assert len(catalog.calls_named("playlist_tracks")) == MAX_PLAYLISTS_WITH_TRACKS
        assert set(profile.playlist_tracks) == {f"p{i}" for i in range(MAX_PLAYLISTS_WITH_TRACKS)}

    def test_failed_playlist_yields_empty_list(self) -> None:
        catalog = FakeCatalog(
            playlists=_playlists(2),
            playlist_tracks={"p0": [make_track("x")], "p1": [make_track("y")]},
            failing={"playlist:p0"},
        )
        profile = ProfileAggregator(catalog).collect()
        assert profile.playlist_tracks["p0"] == []
        assert [t.id for t in profile.playlist_tracks["p1"]] == ["y"]

    def test_uses_medium_term_top_lists(self) -> None:
        catalog = FakeCatalog()
        ProfileAggregator(catalog, max_workers=1).collect()
        assert catalog.calls_named("top_tracks") == [("top_tracks", "medium_term", 50)]
        assert catalog.calls_named("top_artists") == [("top_artists", "medium_term", 50)]
