"""Catalog records: tracks, artists, playlists and audio feature vectors"""
import math
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

FEATURE_NAMES: Tuple[str, ...] = (
    'danceability', 'energy', 'valence', 'acousticness',
    'instrumentalness', 'liveness', 'speechiness', 'tempo',
)

# Stand-in values for tracks whose features could not be resolved
NEUTRAL_FEATURES: Dict[str, float] = {
    'danceability': 0.5,
    'energy': 0.5,
    'valence': 0.5,
    'acousticness': 0.5,
    'instrumentalness': 0.1,
    'liveness': 0.2,
    'speechiness': 0.1,
    'tempo': 120.0,
}


def _as_int(value: Any, default: int = 0) -> int:
    try:
        return int(value) if value is not None else default
    except (TypeError, ValueError):
        return default


@dataclass(frozen=True)
class ArtistRef:
    """Artist as referenced from a track"""
    id: str
    name: str

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> 'ArtistRef':
        return cls(id=data.get('id') or '', name=data.get('name') or '')


@dataclass(frozen=True)
class Image:
    url: str
    height: Optional[int] = None
    width: Optional[int] = None


@dataclass(frozen=True)
class Album:
    id: str
    name: str
    images: Tuple[Image, ...] = ()

    @classmethod
    def from_api(cls, data: Optional[Dict[str, Any]]) -> 'Album':
        data = data or {}
        images = tuple(
            Image(url=img['url'], height=img.get('height'), width=img.get('width'))
            for img in data.get('images') or []
            if isinstance(img, dict) and img.get('url')
        )
        return cls(id=data.get('id') or '', name=data.get('name') or '', images=images)


@dataclass(frozen=True)
class Track:
    """Snapshot of a catalog track at fetch time"""
    id: str
    name: str
    artists: Tuple[ArtistRef, ...]
    album: Album
    popularity: int = 0
    duration_ms: int = 0
    external_url: Optional[str] = None

    @property
    def primary_artist_name(self) -> str:
        return self.artists[0].name if self.artists else ''

    @property
    def name_key(self) -> str:
        """Identifier-independent key used to match tracks across services"""
        return track_key(self.primary_artist_name, self.name)

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> 'Track':
        """Build a Track from a Spotify track object"""
        artists = tuple(
            ArtistRef.from_api(a) for a in data.get('artists') or [] if isinstance(a, dict)
        )
        popularity = max(0, min(100, _as_int(data.get('popularity'))))
        external_urls = data.get('external_urls')
        return cls(
            id=data.get('id') or '',
            name=data.get('name') or '',
            artists=artists,
            album=Album.from_api(data.get('album')),
            popularity=popularity,
            duration_ms=max(0, _as_int(data.get('duration_ms'))),
            external_url=external_urls.get('spotify') if isinstance(external_urls, dict) else None,
        )


def track_key(artist_name: str, track_name: str) -> str:
    return f"{artist_name}-{track_name}".lower()


@dataclass(frozen=True)
class Artist:
    id: str
    name: str
    genres: Tuple[str, ...] = ()
    popularity: int = 0
    followers: int = 0

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> 'Artist':
        followers = data.get('followers')
        return cls(
            id=data.get('id') or '',
            name=data.get('name') or '',
            genres=tuple(g for g in data.get('genres') or [] if isinstance(g, str)),
            popularity=max(0, min(100, _as_int(data.get('popularity')))),
            followers=_as_int(followers.get('total')) if isinstance(followers, dict) else 0,
        )


@dataclass(frozen=True)
class Playlist:
    id: str
    name: str
    owner_id: str = ''
    owner_name: str = ''
    track_total: int = 0

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> 'Playlist':
        owner = data.get('owner') if isinstance(data.get('owner'), dict) else {}
        tracks = data.get('tracks') if isinstance(data.get('tracks'), dict) else {}
        return cls(
            id=data.get('id') or '',
            name=data.get('name') or '',
            owner_id=owner.get('id') or '',
            owner_name=owner.get('display_name') or '',
            track_total=_as_int(tracks.get('total')),
        )


@dataclass(frozen=True)
class AudioFeatureVector:
    """Eight numeric descriptors of a track; tempo is in BPM, the rest in [0, 1]"""
    id: str
    danceability: float
    energy: float
    valence: float
    acousticness: float
    instrumentalness: float
    liveness: float
    speechiness: float
    tempo: float

    def value(self, feature: str) -> float:
        return getattr(self, feature)

    @classmethod
    def neutral(cls, track_id: str) -> 'AudioFeatureVector':
        return cls(id=track_id, **NEUTRAL_FEATURES)

    @classmethod
    def from_api(cls, data: Optional[Dict[str, Any]]) -> Optional['AudioFeatureVector']:
        """Parse a Spotify audio-features object; None when the entry is null or incomplete"""
        if not isinstance(data, dict) or not data.get('id'):
            return None
        values = {}
        for name in FEATURE_NAMES:
            raw = data.get(name)
            if isinstance(raw, bool) or not isinstance(raw, (int, float)) or not math.isfinite(raw):
                return None
            values[name] = float(raw)
        return cls(id=data['id'], **values)


def tracks_from_items(items: List[Any], key: Optional[str] = 'track') -> List[Track]:
    """Extract tracks from a list of wrapper objects (saved/recent/playlist items), skipping local or null entries"""
    tracks: List[Track] = []
    for item in items or []:
        data = item.get(key) if (key and isinstance(item, dict)) else item
        if isinstance(data, dict) and data.get('id'):
            tracks.append(Track.from_api(data))
    return tracks
