"""Domain models for a listener's raw corpus and derived taste profile"""
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set, Tuple

from taste_discovery.models.catalog import (
    NEUTRAL_FEATURES, Artist, AudioFeatureVector, Playlist, Track,
)

@dataclass(frozen=True)
class GenreWeight:
    genre: str
    weight: float

@dataclass(frozen=True)
class ArtistWeight:
    artist_id: str
    weight: float

@dataclass(frozen=True)
class TasteProfile:
    """Averaged audio features plus ranked genre and artist preferences"""
    avg_danceability: float
    avg_energy: float
    avg_valence: float
    avg_acousticness: float
    avg_instrumentalness: float
    avg_liveness: float
    avg_speechiness: float
    avg_tempo: float
    preferred_genres: Tuple[GenreWeight, ...] = ()
    preferred_artists: Tuple[ArtistWeight, ...] = ()

    def average(self, feature: str) -> Optional[float]:
        """Listener average for one feature name (e.g. 'energy'), None if unknown"""
        return getattr(self, f'avg_{feature}', None)

    @classmethod
    def default(cls,
                preferred_genres: Tuple[GenreWeight, ...] = (),
                preferred_artists: Tuple[ArtistWeight, ...] = ()) -> 'TasteProfile':
        """Neutral profile used when no feature vectors could be resolved"""
        return cls(
            **{f'avg_{name}': value for name, value in NEUTRAL_FEATURES.items()},
            preferred_genres=preferred_genres,
            preferred_artists=preferred_artists,
        )

@dataclass
class UserMusicProfile:
    """
    A listener's full raw corpus plus the derived taste profile.
    Built fresh for every request and never shared between listeners.
    """
    liked_tracks: List[Track] = field(default_factory=list)
    playlists: List[Playlist] = field(default_factory=list)
    playlist_tracks: Dict[str, List[Track]] = field(default_factory=dict)
    recent_tracks: List[Track] = field(default_factory=list)
    top_tracks: List[Track] = field(default_factory=list)
    top_artists: List[Artist] = field(default_factory=list)
    audio_features: Dict[str, AudioFeatureVector] = field(default_factory=dict)
    taste_profile: TasteProfile = field(default_factory=TasteProfile.default)

    def all_playlist_tracks(self) -> List[Track]:
        return [track for tracks in self.playlist_tracks.values() for track in tracks]

    def known_track_ids(self) -> Set[str]:
        """Catalog ids the listener already has (liked, recent, playlists)"""
        ids = {t.id for t in self.liked_tracks}
        ids.update(t.id for t in self.recent_tracks)
        ids.update(t.id for t in self.all_playlist_tracks())
        ids.discard('')
        return ids

    def known_track_keys(self) -> Set[str]:
        """Name keys of liked and recent tracks, for matching similarity-service results"""
        keys = {t.name_key for t in self.liked_tracks}
        keys.update(t.name_key for t in self.recent_tracks)
        return keys

    def artist_name(self, artist_id: str) -> Optional[str]:
        """Resolve a display name for an artist id from whatever the corpus contains"""
        for artist in self.top_artists:
            if artist.id == artist_id and artist.name:
                return artist.name
        for track in self.liked_tracks + self.recent_tracks + self.top_tracks:
            for ref in track.artists:
                if ref.id == artist_id and ref.name:
                    return ref.name
        return None

    def stats(self) -> Dict[str, int]:
        return {
            'total_liked_tracks': len(self.liked_tracks),
            'total_playlists': len(self.playlists),
            'total_playlist_tracks': len(self.all_playlist_tracks()),
            'total_recent_tracks': len(self.recent_tracks),
            'total_top_tracks': len(self.top_tracks),
            'total_top_artists': len(self.top_artists),
            'audio_features_count': len(self.audio_features),
        }
