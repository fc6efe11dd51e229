"""Tests for catalog records and profile models."""

import math

from factories import make_artist, make_track

from taste_discovery.models.catalog import (
    NEUTRAL_FEATURES, AudioFeatureVector, Playlist, Track, track_key, tracks_from_items,
)
from taste_discovery.models.profile import TasteProfile, UserMusicProfile


def _track_payload(track_id: str = "t1", **overrides) -> dict:
    payload = {
        "id": track_id,
        "name": "Song",
        "artists": [{"id": "a1", "name": "Band"}],
        "album": {"id": "al1", "name": "Record", "images": [{"url": "http://img", "height": 64, "width": 64}]},
        "popularity": 42,
        "duration_ms": 200000,
        "external_urls": {"spotify": "https://open.spotify.com/track/t1"},
    }
    payload.update(overrides)
    return payload


class TestTrackFromApi:
    def test_full_payload(self) -> None:
        track = Track.from_api(_track_payload())
        assert track.id == "t1"
        assert track.primary_artist_name == "Band"
        assert track.album.images[0].url == "http://img"
        assert track.popularity == 42
        assert track.external_url == "https://open.spotify.com/track/t1"

    def test_popularity_clamped(self) -> None:
        assert Track.from_api(_track_payload(popularity=250)).popularity == 100
        assert Track.from_api(_track_payload(popularity=None)).popularity == 0

    def test_missing_album_and_artists(self) -> None:
        track = Track.from_api({"id": "t2", "name": "Bare"})
        assert track.artists == ()
        assert track.primary_artist_name == ""
        assert track.album.id == ""

    def test_name_key_is_lower_case(self) -> None:
        track = make_track("t1", name="Hello World", artist="The Band")
        assert track.name_key == "the band-hello world"
        assert track_key("The Band", "Hello World") == track.name_key


class TestTracksFromItems:
    def test_skips_null_and_local_entries(self) -> None:
        items = [
            {"track": _track_payload("t1")},
            {"track": None},
            {"track": _track_payload(None)},
            "garbage",
        ]
        tracks = tracks_from_items(items)
        assert [t.id for t in tracks] == ["t1"]

    def test_bare_track_list(self) -> None:
        tracks = tracks_from_items([_track_payload("t1"), _track_payload("t2")], key=None)
        assert [t.id for t in tracks] == ["t1", "t2"]


class TestAudioFeatureVector:
    def test_parses_complete_entry(self) -> None:
        raw = {"id": "t1", **NEUTRAL_FEATURES, "tempo": 98}
        vector = AudioFeatureVector.from_api(raw)
        assert vector is not None
        assert vector.tempo == 98.0
        assert vector.value("energy") == 0.5

    def test_null_entry(self) -> None:
        assert AudioFeatureVector.from_api(None) is None

    def test_incomplete_entry(self) -> None:
        raw = {"id": "t1", **NEUTRAL_FEATURES}
        raw["energy"] = None
        assert AudioFeatureVector.from_api(raw) is None

    def test_non_finite_entry(self) -> None:
        raw = {"id": "t1", **NEUTRAL_FEATURES, "valence": math.nan}
        assert AudioFeatureVector.from_api(raw) is None

    def test_neutral_vector(self) -> None:
        vector = AudioFeatureVector.neutral("x")
        assert vector.id == "x"
        assert vector.danceability == 0.5
        assert vector.instrumentalness == 0.1
        assert vector.liveness == 0.2
        assert vector.speechiness == 0.1
        assert vector.tempo == 120.0


class TestPlaylist:
    def test_owner_fields(self) -> None:
        playlist = Playlist.from_api({
            "id": "p1", "name": "Mix", "owner": {"id": "me", "display_name": "Me"}, "tracks": {"total": 12},
        })
        assert playlist.owner_id == "me"
        assert playlist.owner_name == "Me"
        assert playlist.track_total == 12


class TestTasteProfile:
    def test_default_is_neutral(self) -> None:
        taste = TasteProfile.default()
        assert taste.avg_danceability == 0.5
        assert taste.avg_tempo == 120.0
        assert taste.preferred_genres == ()

    def test_average_lookup(self) -> None:
        taste = TasteProfile.default()
        assert taste.average("valence") == 0.5
        assert taste.average("loudness") is None


class TestUserMusicProfile:
    def test_known_track_ids_cover_liked_recent_and_playlists(self) -> None:
        profile = UserMusicProfile(
            liked_tracks=[make_track("l1")],
            recent_tracks=[make_track("r1")],
            playlist_tracks={"p1": [make_track("p1t")]},
            top_tracks=[make_track("top1")],
        )
        assert profile.known_track_ids() == {"l1", "r1", "p1t"}

    def test_known_track_keys(self) -> None:
        profile = UserMusicProfile(
            liked_tracks=[make_track("l1", name="One", artist="A")],
            recent_tracks=[make_track("r1", name="Two", artist="B")],
        )
        assert profile.known_track_keys() == {"a-one", "b-two"}

    def test_artist_name_prefers_top_artists(self) -> None:
        profile = UserMusicProfile(
            top_artists=[make_artist("art1", "Top Name")],
            liked_tracks=[make_track("l1", artist="Track Name", artist_id="art2")],
        )
        assert profile.artist_name("art1") == "Top Name"
        assert profile.artist_name("art2") == "Track Name"
        assert profile.artist_name("missing") is None

    def test_stats(self) -> None:
        profile = UserMusicProfile(liked_tracks=[make_track("l1")], playlist_tracks={"p": [make_track("x")]})
        stats = profile.stats()
        assert stats["total_liked_tracks"] == 1
        assert stats["total_playlist_tracks"] == 1
        assert stats["audio_features_count"] == 0
