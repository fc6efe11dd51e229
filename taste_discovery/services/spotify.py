"""Spotify Web API client: listening signals, audio features, search and seeded recommendations"""
import logging
import math
import time
from typing import Any, Dict, List, Optional, Sequence

import requests

from taste_discovery.exceptions import CatalogAuthError, QuotaError
from taste_discovery.models.catalog import (
    FEATURE_NAMES, Artist, AudioFeatureVector, Playlist, Track, tracks_from_items,
)

logger = logging.getLogger(__name__)

# --- Provider limits ---
MAX_PAGE_SIZE = 50 # Spotify max for library/top/recent endpoints
MAX_AUDIO_FEATURE_IDS = 100 # Spotify max ids per audio-features call
MAX_PLAYLIST_PAGE = 100
MAX_SEEDS = 5 # Combined cap across seed tracks, artists and genres
MAX_RECOMMENDATION_LIMIT = 100
# Base delay in seconds for retries on rate limit
RATE_LIMIT_RETRY_BASE_DELAY = 2
# Playlists owned by this account are provider-curated, not the listener's
PROVIDER_OWNER_ID = 'spotify'
# ------------------------------------


def _items(response_data: Any, context: str) -> List[Any]:
    """Return the 'items' list of a paging object, or [] when the shape is unexpected"""
    if isinstance(response_data, dict) and isinstance(response_data.get('items'), list):
        return response_data['items']
    logger.warning(f"Unexpected response format for {context}: {response_data}")
    return []


class SpotifyAPI:
    """Handles all Spotify API interactions with consistent formatting"""

    def __init__(self, token: str, base_url: str = "https://api.spotify.com/v1",
                 timeout: int = 15, retries: int = 3):
        """
        Initialize with Spotify access token
        """
        if not token:
            raise ValueError("Spotify token cannot be empty")
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.retries = max(1, retries)
        self.session = requests.Session()
        self.session.headers.update({
            'Authorization': f'Bearer {token}',
            'Accept': 'application/json'
        })

    def get_user_info(self) -> Dict[str, Any]:
        """Get basic user profile information; used to validate the credential"""
        user_info = self._make_request('me')
        if not (isinstance(user_info, dict) and 'id' in user_info):
            logger.error(f"Invalid user info response received: {user_info}")
            raise ValueError("Failed to fetch valid user info from Spotify.")
        return user_info

    def get_liked_tracks(self) -> List[Track]:
        """
        Get every saved track by following the paging cursor until exhausted.
        There is no upper bound other than what the provider returns.
        """
        tracks: List[Track] = []
        endpoint: Optional[str] = 'me/tracks'
        params: Optional[Dict[str, Any]] = {'limit': MAX_PAGE_SIZE, 'offset': 0}
        page_count = 0
        while endpoint:
            response_data = self._make_request(endpoint, params)
            page = _items(response_data, 'liked tracks')
            page_count += 1
            tracks.extend(tracks_from_items(page))
            next_url = response_data.get('next') if isinstance(response_data, dict) else None
            if not page or not next_url:
                break
            # The cursor link already carries limit/offset
            endpoint, params = next_url, None
        logger.info(f"Retrieved {len(tracks)} liked tracks in {page_count} pages")
        return tracks

    def get_owned_playlists(self, limit: int = 50) -> List[Playlist]:
        """Get the listener's playlists, excluding provider-curated ones"""
        response_data = self._make_request('me/playlists', {'limit': min(max(1, limit), MAX_PAGE_SIZE)})
        playlists = [Playlist.from_api(p) for p in _items(response_data, 'playlists') if isinstance(p, dict)]
        owned = [p for p in playlists if p.id and p.owner_id != PROVIDER_OWNER_ID]
        logger.info(f"Fetched {len(playlists)} playlists, {len(owned)} owned by the listener")
        return owned

    def get_playlist_tracks(self, playlist_id: str, limit: int = 100) -> List[Track]:
        response_data = self._make_request(
            f'playlists/{playlist_id}/tracks', {'limit': min(max(1, limit), MAX_PLAYLIST_PAGE)}
        )
        return tracks_from_items(_items(response_data, f'playlist {playlist_id}'))

    def get_recently_played(self, limit: int = 50) -> List[Track]:
        """
        Get recently played tracks

        Args:
            limit: Number of plays to fetch (max 50 per Spotify API docs)
        """
        response_data = self._make_request('me/player/recently-played', {'limit': min(max(1, limit), MAX_PAGE_SIZE)})
        return tracks_from_items(_items(response_data, 'recently played'))

    def get_top_tracks(self, time_range: str = 'medium_term', limit: int = 50) -> List[Track]:
        """
        Get user's top tracks

        Args:
            time_range: short_term (4 weeks), medium_term (6 months), or long_term (years)
            limit: Number of tracks to fetch (Spotify API max is 50).
        """
        actual_limit = min(max(1, limit), MAX_PAGE_SIZE)
        logger.info(f"Fetching top tracks (range: {time_range}, limit: {actual_limit})...")
        response_data = self._make_request('me/top/tracks', {'time_range': time_range, 'limit': actual_limit})
        return tracks_from_items(_items(response_data, f'top tracks ({time_range})'), key=None)

    def get_top_artists(self, time_range: str = 'medium_term', limit: int = 50) -> List[Artist]:
        """Get user's top artists

        Args:
            time_range: short_term (4 weeks), medium_term (6 months), or long_term (years)
            limit: Number of artists to fetch (Spotify API max is 50).
        """
        actual_limit = min(max(1, limit), MAX_PAGE_SIZE)
        logger.info(f"Fetching top artists (range: {time_range}, limit: {actual_limit})...")
        response_data = self._make_request('me/top/artists', {'time_range': time_range, 'limit': actual_limit})
        return [
            Artist.from_api(a) for a in _items(response_data, f'top artists ({time_range})')
            if isinstance(a, dict) and a.get('id')
        ]

    def get_audio_features(self, track_ids: Sequence[str]) -> List[AudioFeatureVector]:
        """Get audio features for at most 100 tracks; null entries are dropped, never fabricated"""
        ids = [track_id for track_id in track_ids if track_id]
        if len(ids) > MAX_AUDIO_FEATURE_IDS:
            raise QuotaError(
                f"Audio features can be requested for at most {MAX_AUDIO_FEATURE_IDS} tracks per call, got {len(ids)}"
            )
        if not ids:
            return []
        response_data = self._make_request('audio-features', {'ids': ','.join(ids)})
        raw_features = response_data.get('audio_features') if isinstance(response_data, dict) else None
        if not isinstance(raw_features, list):
            logger.warning(f"Unexpected response format for audio features: {response_data}")
            return []
        features = [f for f in (AudioFeatureVector.from_api(raw) for raw in raw_features) if f is not None]
        logger.debug(f"Resolved audio features for {len(features)}/{len(ids)} tracks")
        return features

    def search_tracks(self, query: str, limit: int = 20) -> List[Track]:
        response_data = self._make_request('search', {'q': query, 'type': 'track', 'limit': min(max(1, limit), MAX_PAGE_SIZE)})
        tracks = response_data.get('tracks') if isinstance(response_data, dict) else None
        return tracks_from_items(_items(tracks, f'search "{query}"'), key=None)

    def get_recommendations(self,
                            seed_tracks: Optional[Sequence[str]] = None,
                            seed_artists: Optional[Sequence[str]] = None,
                            seed_genres: Optional[Sequence[str]] = None,
                            feature_targets: Optional[Dict[str, Any]] = None,
                            limit: int = 20) -> List[Track]:
        """
        Get seeded recommendations.

        Seeds are taken in track, artist, genre order until the combined cap of 5
        is reached. Targets outside their valid range are dropped rather than sent.

        Raises:
            QuotaError: If no seed is supplied (checked before any request)
        """
        params = build_recommendation_params(seed_tracks, seed_artists, seed_genres, feature_targets, limit)
        logger.info(f"Requesting seeded recommendations with params: {params}")
        response_data = self._make_request('recommendations', params)
        raw_tracks = response_data.get('tracks') if isinstance(response_data, dict) else None
        if not isinstance(raw_tracks, list):
            logger.warning(f"Unexpected response format for recommendations: {response_data}")
            return []
        return tracks_from_items(raw_tracks, key=None)

    def _make_request(self, endpoint: str, params: Optional[Dict[str, Any]] = None) -> Dict:
        """Make authenticated request to Spotify API with retries"""
        url = endpoint if endpoint.startswith('http') else f'{self.base_url}/{endpoint}'
        attempt = 0
        last_exception: Optional[Exception] = None

        while attempt < self.retries:
            attempt += 1
            try:
                logger.debug(f"Attempt {attempt}/{self.retries}: Making request to {url}")
                response = self.session.get(url, params=params, timeout=self.timeout)
                response.raise_for_status() # Raises HTTPError for bad responses (4xx or 5xx)
                try:
                    json_response = response.json()
                except ValueError:
                    logger.error(f"Failed to decode JSON response from {url}. Status: {response.status_code}. Response text: {response.text[:200]}")
                    return {}
                return json_response if isinstance(json_response, dict) else {}
            except requests.exceptions.HTTPError as e:
                last_exception = e; response = e.response
                status = response.status_code if response is not None else 0
                logger.warning(f"HTTP Error on attempt {attempt} for {url}: {e}")
                if status in (401, 403):
                    logger.error(f"Spotify rejected the token ({status}) for {url}. Cannot proceed.")
                    raise CatalogAuthError(status) from e
                elif status == 429:
                    retry_after = _retry_after_seconds(response, attempt)
                    if attempt >= self.retries: break
                    logger.warning(f"Rate limit hit (429) for {url}. Retrying after {retry_after} seconds...")
                    time.sleep(retry_after); continue
                elif status >= 500: logger.warning(f"Spotify server error ({status}) for {url}. Retrying...")
                else: logger.error(f"Client error ({status}) for {url}. Aborting request."); raise
            except requests.exceptions.RequestException as e:
                last_exception = e; logger.warning(f"Request Error on attempt {attempt} for {url}: {e}. Retrying...")
            if attempt < self.retries:
                sleep_time = RATE_LIMIT_RETRY_BASE_DELAY * (1.5 ** (attempt - 1)) + (0.5 * attempt)
                logger.info(f"Waiting {sleep_time:.2f}s before next retry for {url}...")
                time.sleep(sleep_time)

        logger.error(f"Request failed after {self.retries} attempts for {url}.")
        raise last_exception or requests.exceptions.RetryError(f"Request failed after {self.retries} attempts for {url}")


def _retry_after_seconds(response: requests.Response, attempt: int) -> int:
    default = RATE_LIMIT_RETRY_BASE_DELAY * (2 ** (attempt - 1))
    try:
        retry_after = int(response.headers.get('Retry-After', default))
    except (TypeError, ValueError):
        retry_after = default
    return max(1, min(retry_after, 60))


def validate_feature_targets(feature_targets: Optional[Dict[str, Any]]) -> Dict[str, float]:
    """
    Keep only targets the catalog accepts: known feature names with finite
    numeric values, in [0, 1] except tempo, which must be positive.
    """
    valid: Dict[str, float] = {}
    for key, value in (feature_targets or {}).items():
        if value is None:
            continue
        if key not in FEATURE_NAMES:
            logger.warning(f"Ignoring unknown audio feature target '{key}'")
            continue
        if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
            logger.warning(f"Invalid audio feature value for {key}: {value!r}. Must be numeric.")
            continue
        if key == 'tempo':
            if value <= 0:
                logger.warning(f"Invalid tempo target {value}. Must be positive.")
                continue
        elif not 0 <= value <= 1:
            logger.warning(f"Invalid audio feature value for {key}: {value}. Must be 0-1.")
            continue
        valid[key] = float(value)
    return valid


def build_recommendation_params(seed_tracks: Optional[Sequence[str]] = None,
                                seed_artists: Optional[Sequence[str]] = None,
                                seed_genres: Optional[Sequence[str]] = None,
                                feature_targets: Optional[Dict[str, Any]] = None,
                                limit: int = 20) -> Dict[str, Any]:
    """Assemble query parameters for the recommendations endpoint, enforcing seed limits"""
    params: Dict[str, Any] = {'limit': min(max(1, limit), MAX_RECOMMENDATION_LIMIT)}
    total_seeds = 0
    for param_name, seeds in (('seed_tracks', seed_tracks), ('seed_artists', seed_artists), ('seed_genres', seed_genres)):
        allowed = MAX_SEEDS - total_seeds
        chosen = [s for s in (seeds or []) if s][:allowed]
        if chosen:
            params[param_name] = ','.join(chosen)
            total_seeds += len(chosen)

    if total_seeds == 0:
        raise QuotaError('Spotify recommendations API requires at least one seed (track, artist, or genre)')

    for key, value in validate_feature_targets(feature_targets).items():
        params[f'target_{key}'] = value
    return params
