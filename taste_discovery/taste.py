"""Taste profile calculation from listening history and audio features"""
import logging
import math
from dataclasses import replace
from typing import Dict, Iterable, List, Sequence, Tuple

import requests

from taste_discovery.exceptions import DiscoveryError
from taste_discovery.models.catalog import FEATURE_NAMES, NEUTRAL_FEATURES, Artist, AudioFeatureVector, Track
from taste_discovery.models.profile import ArtistWeight, GenreWeight, TasteProfile, UserMusicProfile
from taste_discovery.services.spotify import MAX_AUDIO_FEATURE_IDS, SpotifyAPI

logger = logging.getLogger(__name__)

# --- Priority subset caps (bound audio-feature API cost) ---
RECENT_PRIORITY_CAP = 200
LIKED_PRIORITY_CAP = 500
LIKED_CONSIDERED = 300
# --- Preference list sizes ---
MAX_PREFERRED_GENRES = 10
MAX_PREFERRED_ARTISTS = 20
# ------------------------------------


def _unique_by_id(tracks: Iterable[Track]) -> List[Track]:
    seen = set()
    unique = []
    for track in tracks:
        if track.id and track.id not in seen:
            seen.add(track.id)
            unique.append(track)
    return unique


def fetch_feature_map(catalog: SpotifyAPI, track_ids: Sequence[str]) -> Dict[str, AudioFeatureVector]:
    """Fetch feature vectors in batches of 100; a failed batch is logged and skipped"""
    ids = list(dict.fromkeys(track_id for track_id in track_ids if track_id))
    features: Dict[str, AudioFeatureVector] = {}
    batch_count = math.ceil(len(ids) / MAX_AUDIO_FEATURE_IDS)
    for index in range(batch_count):
        batch = ids[index * MAX_AUDIO_FEATURE_IDS:(index + 1) * MAX_AUDIO_FEATURE_IDS]
        try:
            for vector in catalog.get_audio_features(batch):
                features[vector.id] = vector
            logger.info(f"Processed audio features batch {index + 1}/{batch_count}")
        except (requests.exceptions.RequestException, DiscoveryError, ValueError) as e:
            logger.warning(f"Error getting audio features for batch {index + 1}/{batch_count}: {e}")
    return features


class TasteProfileCalculator:
    """Reduces a listener's raw signals and feature vectors into one TasteProfile"""

    def __init__(self, catalog: SpotifyAPI):
        self.catalog = catalog

    def analyze(self, profile: UserMusicProfile) -> UserMusicProfile:
        """Resolve feature vectors for the priority subset and derive the taste profile"""
        universe = self.all_tracks(profile)
        priority = self.select_priority_tracks(profile.top_tracks, profile.recent_tracks, profile.liked_tracks)
        logger.info(f"Total tracks: {len(universe)}, Priority tracks for analysis: {len(priority)}")

        features = self.fetch_feature_map([t.id for t in priority])
        taste = self.calculate_taste_profile(universe, features, profile.top_artists)
        return replace(profile, audio_features=features, taste_profile=taste)

    def select_priority_tracks(self, top_tracks: Sequence[Track], recent_tracks: Sequence[Track],
                               liked_tracks: Sequence[Track]) -> List[Track]:
        """
        Pick the tracks worth spending audio-feature calls on, in strict order:

        - every top track
        - recent tracks while the subset holds fewer than 200
        - the first 300 liked tracks while the subset holds fewer than 500

        Playlist tracks are never promoted into this subset.
        """
        priority: List[Track] = []
        seen = set()

        def add(track: Track) -> None:
            if track.id and track.id not in seen:
                seen.add(track.id)
                priority.append(track)

        for track in top_tracks:
            add(track)
        for track in recent_tracks:
            if len(priority) < RECENT_PRIORITY_CAP:
                add(track)
        for track in liked_tracks[:LIKED_CONSIDERED]:
            if len(priority) < LIKED_PRIORITY_CAP:
                add(track)
        return priority

    def all_tracks(self, profile: UserMusicProfile) -> List[Track]:
        """Full track universe: top, recent, liked, then playlist tracks, unique by id"""
        return _unique_by_id(
            list(profile.top_tracks) + list(profile.recent_tracks)
            + list(profile.liked_tracks) + profile.all_playlist_tracks()
        )

    def fetch_feature_map(self, track_ids: Sequence[str]) -> Dict[str, AudioFeatureVector]:
        return fetch_feature_map(self.catalog, track_ids)

    def calculate_taste_profile(self, tracks: Sequence[Track], features: Dict[str, AudioFeatureVector],
                                top_artists: Sequence[Artist]) -> TasteProfile:
        """
        Average each feature over the tracks that have a resolved vector.
        With no vectors at all, the neutral default profile is returned; genre
        and artist preferences are derived from top artists either way.
        """
        preferred_genres = self.rank_genres(top_artists)
        preferred_artists = self.rank_artists(top_artists)

        valid = [features[t.id] for t in tracks if t.id in features]
        logger.info(f"Calculating taste profile from {len(valid)} tracks with audio features (out of {len(tracks)} total tracks)")
        if not valid:
            logger.warning("No audio features available, using default taste profile")
            return TasteProfile.default(preferred_genres, preferred_artists)

        averages = {}
        for name in FEATURE_NAMES:
            mean = sum(v.value(name) for v in valid) / len(valid)
            if name == 'tempo':
                averages[f'avg_{name}'] = mean if math.isfinite(mean) and mean > 0 else NEUTRAL_FEATURES['tempo']
            else:
                averages[f'avg_{name}'] = min(1.0, max(0.0, mean))

        return TasteProfile(**averages, preferred_genres=preferred_genres, preferred_artists=preferred_artists)

    def rank_genres(self, top_artists: Sequence[Artist]) -> Tuple[GenreWeight, ...]:
        """Each genre accumulates the popularity of every top artist tagged with it"""
        weights: Dict[str, float] = {}
        for artist in top_artists:
            for genre in artist.genres:
                weights[genre] = weights.get(genre, 0) + artist.popularity
        # sorted() is stable, so ties keep first-seen order
        ranked = sorted(weights.items(), key=lambda item: item[1], reverse=True)
        return tuple(GenreWeight(genre=g, weight=w) for g, w in ranked[:MAX_PREFERRED_GENRES])

    def rank_artists(self, top_artists: Sequence[Artist]) -> Tuple[ArtistWeight, ...]:
        ranked = sorted(top_artists, key=lambda a: a.popularity, reverse=True)
        return tuple(ArtistWeight(artist_id=a.id, weight=a.popularity) for a in ranked[:MAX_PREFERRED_ARTISTS])
