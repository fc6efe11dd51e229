"""Tests for the Spotify client, using a mocked HTTP session."""

import json
from unittest.mock import MagicMock, patch

import pytest
import requests

from taste_discovery.exceptions import CatalogAuthError, QuotaError
from taste_discovery.models.catalog import NEUTRAL_FEATURES
from taste_discovery.services.spotify import (
    SpotifyAPI, build_recommendation_params, validate_feature_targets,
)


def _response(status: int = 200, payload=None, headers=None) -> requests.Response:
    response = requests.Response()
    response.status_code = status
    response._content = json.dumps(payload if payload is not None else {}).encode()
    response.encoding = "utf-8"
    response.url = "https://api.test/v1/endpoint"
    response.headers.update(headers or {})
    return response


def _track(track_id: str) -> dict:
    return {"id": track_id, "name": f"Song {track_id}", "artists": [{"id": "a", "name": "Band"}]}


@pytest.fixture
def api() -> SpotifyAPI:
    client = SpotifyAPI(token="token", base_url="https://api.test/v1", retries=3)
    client.session = MagicMock()
    return client


@pytest.fixture(autouse=True)
def no_sleep():
    with patch("taste_discovery.services.spotify.time.sleep") as sleep:
        yield sleep


class TestConstruction:
    def test_empty_token_rejected(self) -> None:
        with pytest.raises(ValueError):
            SpotifyAPI(token="")

    def test_bearer_header(self) -> None:
        client = SpotifyAPI(token="abc")
        assert client.session.headers["Authorization"] == "Bearer abc"


class TestRequests:
    def test_user_info(self, api: SpotifyAPI) -> None:
        api.session.get.return_value = _response(payload={"id": "listener"})
        assert api.get_user_info()["id"] == "listener"
        url = api.session.get.call_args[0][0]
        assert url == "https://api.test/v1/me"

    def test_user_info_without_id(self, api: SpotifyAPI) -> None:
        api.session.get.return_value = _response(payload={"display_name": "x"})
        with pytest.raises(ValueError):
            api.get_user_info()

    def test_unauthorized_raises_auth_error(self, api: SpotifyAPI) -> None:
        api.session.get.return_value = _response(status=401)
        with pytest.raises(CatalogAuthError) as excinfo:
            api.get_user_info()
        assert excinfo.value.status_code == 401
        assert api.session.get.call_count == 1

    def test_server_error_is_retried(self, api: SpotifyAPI, no_sleep: MagicMock) -> None:
        api.session.get.side_effect = [_response(status=503), _response(payload={"id": "listener"})]
        assert api.get_user_info()["id"] == "listener"
        assert api.session.get.call_count == 2
        assert no_sleep.called

    def test_rate_limit_honours_retry_after(self, api: SpotifyAPI, no_sleep: MagicMock) -> None:
        api.session.get.side_effect = [
            _response(status=429, headers={"Retry-After": "7"}),
            _response(payload={"id": "listener"}),
        ]
        api.get_user_info()
        no_sleep.assert_any_call(7)

    def test_client_error_not_retried(self, api: SpotifyAPI) -> None:
        api.session.get.return_value = _response(status=404)
        with pytest.raises(requests.exceptions.HTTPError):
            api.get_user_info()
        assert api.session.get.call_count == 1

    def test_connection_errors_exhaust_retries(self, api: SpotifyAPI) -> None:
        api.session.get.side_effect = requests.exceptions.ConnectionError("down")
        with pytest.raises(requests.exceptions.ConnectionError):
            api.get_user_info()
        assert api.session.get.call_count == 3


class TestListeningSignals:
    def test_liked_tracks_follow_cursor(self, api: SpotifyAPI) -> None:
        api.session.get.side_effect = [
            _response(payload={"items": [{"track": _track("t1")}], "next": "https://api.test/v1/me/tracks?offset=50"}),
            _response(payload={"items": [{"track": _track("t2")}, {"track": None}], "next": None}),
        ]
        tracks = api.get_liked_tracks()
        assert [t.id for t in tracks] == ["t1", "t2"]
        second_call = api.session.get.call_args_list[1]
        assert second_call[0][0] == "https://api.test/v1/me/tracks?offset=50"
        assert second_call[1]["params"] is None

    def test_liked_tracks_stop_on_empty_page(self, api: SpotifyAPI) -> None:
        api.session.get.return_value = _response(payload={"items": [], "next": "https://api.test/v1/me/tracks?offset=50"})
        assert api.get_liked_tracks() == []
        assert api.session.get.call_count == 1

    def test_owned_playlists_exclude_provider(self, api: SpotifyAPI) -> None:
        api.session.get.return_value = _response(payload={"items": [
            {"id": "p1", "name": "Mine", "owner": {"id": "listener"}},
            {"id": "p2", "name": "Today's Top Hits", "owner": {"id": "spotify"}},
        ]})
        assert [p.id for p in api.get_owned_playlists()] == ["p1"]

    def test_top_tracks_are_bare_objects(self, api: SpotifyAPI) -> None:
        api.session.get.return_value = _response(payload={"items": [_track("t1")]})
        tracks = api.get_top_tracks(limit=500)
        assert [t.id for t in tracks] == ["t1"]
        assert api.session.get.call_args[1]["params"]["limit"] == 50

    def test_top_artists(self, api: SpotifyAPI) -> None:
        api.session.get.return_value = _response(payload={"items": [
            {"id": "a1", "name": "Band", "genres": ["indie"], "popularity": 61},
        ]})
        artists = api.get_top_artists()
        assert artists[0].genres == ("indie",)
        assert artists[0].popularity == 61

    def test_unexpected_shape_gives_empty_list(self, api: SpotifyAPI) -> None:
        api.session.get.return_value = _response(payload={"error": "nope"})
        assert api.get_recently_played() == []


class TestAudioFeatures:
    def test_more_than_hundred_ids_rejected_before_request(self, api: SpotifyAPI) -> None:
        with pytest.raises(QuotaError):
            api.get_audio_features([f"t{i}" for i in range(101)])
        api.session.get.assert_not_called()

    def test_empty_ids(self, api: SpotifyAPI) -> None:
        assert api.get_audio_features([]) == []
        api.session.get.assert_not_called()

    def test_null_entries_dropped(self, api: SpotifyAPI) -> None:
        api.session.get.return_value = _response(payload={"audio_features": [
            {"id": "t1", **NEUTRAL_FEATURES},
            None,
        ]})
        features = api.get_audio_features(["t1", "t2"])
        assert [f.id for f in features] == ["t1"]
        assert api.session.get.call_args[1]["params"] == {"ids": "t1,t2"}


class TestSeededRecommendations:
    def test_zero_seeds_rejected_before_request(self, api: SpotifyAPI) -> None:
        with pytest.raises(QuotaError):
            api.get_recommendations(feature_targets={"energy": 0.5})
        api.session.get.assert_not_called()

    def test_returns_tracks(self, api: SpotifyAPI) -> None:
        api.session.get.return_value = _response(payload={"tracks": [_track("t1")]})
        tracks = api.get_recommendations(seed_genres=["pop"], limit=5)
        assert [t.id for t in tracks] == ["t1"]
        params = api.session.get.call_args[1]["params"]
        assert params["seed_genres"] == "pop"
        assert params["limit"] == 5


class TestRecommendationParams:
    def test_seed_cap_prefers_tracks_then_artists(self) -> None:
        params = build_recommendation_params(
            seed_tracks=["t1", "t2"], seed_artists=["a1", "a2"], seed_genres=["pop", "rock"],
        )
        assert params["seed_tracks"] == "t1,t2"
        assert params["seed_artists"] == "a1,a2"
        assert params["seed_genres"] == "pop"

    def test_out_of_range_target_dropped(self) -> None:
        params = build_recommendation_params(
            seed_genres=["pop"], feature_targets={"danceability": 2.0, "energy": 0.8},
        )
        assert "target_danceability" not in params
        assert params["target_energy"] == 0.8

    def test_limit_clamped(self) -> None:
        assert build_recommendation_params(seed_genres=["pop"], limit=1000)["limit"] == 100
        assert build_recommendation_params(seed_genres=["pop"], limit=0)["limit"] == 1


class TestValidateFeatureTargets:
    def test_tempo_must_be_positive(self) -> None:
        assert validate_feature_targets({"tempo": 0}) == {}
        assert validate_feature_targets({"tempo": 128}) == {"tempo": 128.0}

    def test_unknown_and_non_numeric_dropped(self) -> None:
        assert validate_feature_targets({"loudness": 0.5, "valence": "high", "energy": True}) == {}

    def test_none_input(self) -> None:
        assert validate_feature_targets(None) == {}
