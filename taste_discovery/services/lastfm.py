"""Last.fm similarity service client"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import requests

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SimilarArtist:
    name: str
    match: Optional[float] = None


@dataclass(frozen=True)
class SimilarTrack:
    artist_name: str
    name: str
    match: Optional[float] = None


def _parse_match(value: Any) -> Optional[float]:
    """Last.fm returns match scores as strings; clamp to [0, 1]"""
    if value is None:
        return None
    try:
        return max(0.0, min(1.0, float(value)))
    except (TypeError, ValueError):
        return None


def _as_list(value: Any) -> List[Dict[str, Any]]:
    # Single results come back as a bare object instead of a list
    if isinstance(value, dict):
        return [value]
    if isinstance(value, list):
        return [v for v in value if isinstance(v, dict)]
    return []


def _track_from_api(data: Dict[str, Any]) -> Optional[SimilarTrack]:
    artist = data.get('artist')
    artist_name = artist.get('name') if isinstance(artist, dict) else artist
    if not (isinstance(artist_name, str) and artist_name and data.get('name')):
        return None
    return SimilarTrack(artist_name=artist_name, name=data['name'], match=_parse_match(data.get('match')))


class LastFmAPI:
    """
    Read-only access to Last.fm's similarity graph.

    The service is optional: every call returns [] when the client has no
    API key or when the request fails, so callers fall back to search-only
    discovery.
    """

    def __init__(self, api_key: Optional[str], base_url: str = "https://ws.audioscrobbler.com/2.0/",
                 timeout: int = 15):
        self.api_key = api_key or ''
        self.base_url = base_url
        self.timeout = timeout
        self.session = requests.Session()

    def is_configured(self) -> bool:
        return bool(self.api_key)

    def get_similar_artists(self, artist_name: str, limit: int = 30) -> List[SimilarArtist]:
        data = self._call('artist.getSimilar', {'artist': artist_name, 'limit': limit, 'autocorrect': 1})
        artists = _as_list((data.get('similarartists') or {}).get('artist'))
        return [
            SimilarArtist(name=a['name'], match=_parse_match(a.get('match')))
            for a in artists if a.get('name')
        ][:limit]

    def get_similar_tracks(self, artist_name: str, track_name: str, limit: int = 30) -> List[SimilarTrack]:
        data = self._call('track.getSimilar', {
            'artist': artist_name, 'track': track_name, 'limit': limit, 'autocorrect': 1
        })
        tracks = _as_list((data.get('similartracks') or {}).get('track'))
        return [t for t in (_track_from_api(raw) for raw in tracks) if t is not None][:limit]

    def get_top_tracks_for_tag(self, tag: str, limit: int = 50) -> List[SimilarTrack]:
        data = self._call('tag.getTopTracks', {'tag': tag, 'limit': limit})
        tracks = _as_list((data.get('tracks') or {}).get('track'))
        return [t for t in (_track_from_api(raw) for raw in tracks) if t is not None][:limit]

    def _call(self, method: str, params: Dict[str, Any]) -> Dict[str, Any]:
        if not self.is_configured():
            logger.debug(f"Last.fm not configured, skipping {method}")
            return {}
        query = {'method': method, 'api_key': self.api_key, 'format': 'json', **params}
        try:
            response = self.session.get(self.base_url, params=query, timeout=self.timeout)
            response.raise_for_status()
            data = response.json()
        except (requests.exceptions.RequestException, ValueError) as e:
            logger.warning(f"Last.fm error for {method} ({params}): {e}")
            return {}
        if not isinstance(data, dict):
            return {}
        if 'error' in data:
            logger.warning(f"Last.fm returned error {data.get('error')} for {method}: {data.get('message')}")
            return {}
        return data
