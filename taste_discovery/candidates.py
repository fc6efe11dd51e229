"""Candidate discovery strategies and the generator that chains them"""
import logging
from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Sequence, Set, Tuple

import requests

from taste_discovery.config import Settings
from taste_discovery.exceptions import DiscoveryError
from taste_discovery.models.catalog import AudioFeatureVector, Track, track_key
from taste_discovery.models.profile import UserMusicProfile
from taste_discovery.models.recommendation import Candidate, CustomRequest, Recommendation, SourceType
from taste_discovery.scoring import SimilarityScorer
from taste_discovery.services.lastfm import LastFmAPI
from taste_discovery.services.spotify import MAX_SEEDS, SpotifyAPI
from taste_discovery.taste import fetch_feature_map

logger = logging.getLogger(__name__)

# --- Discovery fan-out bounds ---
SEED_ARTIST_COUNT = 5
SIMILAR_ARTISTS_PER_SEED = 10
SIMILAR_ARTISTS_USED = 3
TRACKS_PER_SIMILAR_ARTIST = 5
SEED_TRACK_COUNT = 3
SIMILAR_TRACKS_PER_SEED = 5
GENRE_SEED_COUNT = 3
TRACKS_PER_GENRE = 10
# ------------------------------------

CUSTOM_REASON = 'Custom discovery based on your preferences'

RECOVERABLE_ERRORS = (requests.exceptions.RequestException, DiscoveryError, ValueError)

# A pending candidate before feature resolution: track, reasons, match score
Pending = Tuple[Track, List[str], Optional[float]]


def _with_features(catalog: SpotifyAPI, pending: Sequence[Pending], source: SourceType) -> List[Candidate]:
    """Attach real feature vectors where the catalog has them, the neutral vector otherwise"""
    features = fetch_feature_map(catalog, [track.id for track, _, _ in pending])
    candidates = []
    for track, reasons, match in pending:
        vector = features.get(track.id)
        candidates.append(Candidate(
            track=track,
            features=vector or AudioFeatureVector.neutral(track.id),
            source=source,
            reasons=list(reasons),
            match_score=match,
            features_resolved=vector is not None,
        ))
    missing = sum(1 for c in candidates if not c.features_resolved)
    if missing:
        logger.info(f"Using neutral audio features for {missing}/{len(candidates)} {source.value} candidates")
    return candidates


def _match_pct(match: Optional[float]) -> int:
    return round((match or 0) * 100)


class CandidateStrategy(ABC):
    """
    One way of proposing tracks for a listener.

    `seen` holds lower-cased "artist-track" keys already used, shared across
    strategies in one generation pass. Similarity-service and catalog ids are
    not comparable, so this boundary dedups by name rather than id.
    """
    name = 'strategy'

    @abstractmethod
    def generate(self, profile: UserMusicProfile, limit: int,
                 seen: Optional[Set[str]] = None) -> List[Candidate]:
        raise NotImplementedError

    @staticmethod
    def _seen_for(profile: UserMusicProfile, seen: Optional[Set[str]]) -> Set[str]:
        return profile.known_track_keys() if seen is None else seen


class CollaborativeStrategy(CandidateStrategy):
    """Similar artists of the listener's favourites, resolved to catalog tracks"""
    name = 'collaborative'

    def __init__(self, catalog: SpotifyAPI, similarity: LastFmAPI):
        self.catalog = catalog
        self.similarity = similarity

    def generate(self, profile: UserMusicProfile, limit: int,
                 seen: Optional[Set[str]] = None) -> List[Candidate]:
        seen = self._seen_for(profile, seen)
        pending: List[Pending] = []
        if limit <= 0 or not self.similarity.is_configured():
            return []

        for preference in profile.taste_profile.preferred_artists[:SEED_ARTIST_COUNT]:
            artist_name = profile.artist_name(preference.artist_id)
            if not artist_name:
                continue
            logger.info(f"Getting similar artists for: {artist_name}")
            for similar in self.similarity.get_similar_artists(artist_name, SIMILAR_ARTISTS_PER_SEED)[:SIMILAR_ARTISTS_USED]:
                try:
                    tracks = self.catalog.search_tracks(f'artist:"{similar.name}"', TRACKS_PER_SIMILAR_ARTIST)
                except RECOVERABLE_ERRORS as e:
                    logger.warning(f"Search failed for similar artist {similar.name}: {e}")
                    continue
                for track in tracks:
                    if not track.id or track.name_key in seen:
                        continue
                    seen.add(track.name_key)
                    reasons = [
                        f"Similar to {artist_name} ({_match_pct(similar.match)}% match)",
                        'Discovered via Last.fm recommendations',
                    ]
                    pending.append((track, reasons, similar.match))
                    if len(pending) >= limit:
                        return _with_features(self.catalog, pending, SourceType.COLLABORATIVE)
        return _with_features(self.catalog, pending, SourceType.COLLABORATIVE)


class TrackSimilarityStrategy(CandidateStrategy):
    """Tracks the similarity service links to the listener's most-liked tracks"""
    name = 'track-similarity'

    def __init__(self, catalog: SpotifyAPI, similarity: LastFmAPI):
        self.catalog = catalog
        self.similarity = similarity

    def generate(self, profile: UserMusicProfile, limit: int,
                 seen: Optional[Set[str]] = None) -> List[Candidate]:
        seen = self._seen_for(profile, seen)
        pending: List[Pending] = []
        if limit <= 0 or not self.similarity.is_configured():
            return []

        for liked in profile.liked_tracks[:SEED_TRACK_COUNT]:
            artist_name, track_name = liked.primary_artist_name, liked.name
            if not artist_name or not track_name:
                continue
            logger.info(f"Getting similar tracks for: {artist_name} - {track_name}")
            for similar in self.similarity.get_similar_tracks(artist_name, track_name, SIMILAR_TRACKS_PER_SEED):
                key = track_key(similar.artist_name, similar.name)
                if key in seen:
                    continue
                seen.add(key)
                try:
                    results = self.catalog.search_tracks(
                        f'artist:"{similar.artist_name}" track:"{similar.name}"', 1
                    )
                except RECOVERABLE_ERRORS as e:
                    logger.warning(f"Search failed for {similar.artist_name} - {similar.name}: {e}")
                    continue
                if not results or not results[0].id:
                    continue
                if results[0].name_key != key and results[0].name_key in seen:
                    continue
                track = results[0]
                seen.add(track.name_key)
                reasons = [
                    f'Similar to "{track_name}" by {artist_name} ({_match_pct(similar.match)}% match)',
                    'Track-based Last.fm recommendation',
                ]
                pending.append((track, reasons, similar.match))
                if len(pending) >= limit:
                    return _with_features(self.catalog, pending, SourceType.CONTENT_BASED)
        return _with_features(self.catalog, pending, SourceType.CONTENT_BASED)


class SeededContentStrategy(CandidateStrategy):
    """Catalog seeded recommendations aimed at the listener's average features"""
    name = 'seeded-content'

    def __init__(self, catalog: SpotifyAPI, scorer: SimilarityScorer):
        self.catalog = catalog
        self.scorer = scorer

    def generate(self, profile: UserMusicProfile, limit: int,
                 seen: Optional[Set[str]] = None) -> List[Candidate]:
        seen = self._seen_for(profile, seen)
        taste = profile.taste_profile
        seed_artists = [a.artist_id for a in taste.preferred_artists[:2]]
        seed_genres = [g.genre for g in taste.preferred_genres[:3]]
        if limit <= 0 or not (seed_artists or seed_genres):
            return []

        tracks = self.catalog.get_recommendations(
            seed_artists=seed_artists,
            seed_genres=seed_genres,
            feature_targets={
                'danceability': taste.avg_danceability,
                'energy': taste.avg_energy,
                'valence': taste.avg_valence,
                'acousticness': taste.avg_acousticness,
                'tempo': taste.avg_tempo,
            },
            limit=limit,
        )
        fresh = []
        for track in tracks:
            if track.id and track.name_key not in seen:
                seen.add(track.name_key)
                fresh.append(track)
        candidates = _with_features(self.catalog, [(t, [], None) for t in fresh[:limit]], SourceType.HYBRID)
        for candidate in candidates:
            candidate.match_score = 1.0
            candidate.reasons = self.scorer.generate_reasons(taste, candidate.features, candidate.track)
        return candidates


class GenreSearchStrategy(CandidateStrategy):
    """
    Discovery from the listener's top genres; used when nothing else produced
    candidates. Last.fm tag charts are tried first when the service is
    configured, catalog genre search otherwise or when a tag has no resolvable
    tracks.
    """
    name = 'genre-search'

    def __init__(self, catalog: SpotifyAPI, year_filter: str = 'year:2020-2024',
                 similarity: Optional[LastFmAPI] = None):
        self.catalog = catalog
        self.year_filter = year_filter
        self.similarity = similarity

    def generate(self, profile: UserMusicProfile, limit: int,
                 seen: Optional[Set[str]] = None) -> List[Candidate]:
        seen = self._seen_for(profile, seen)
        candidates: List[Candidate] = []
        logger.info("Falling back to genre-based search recommendations...")

        for preference in profile.taste_profile.preferred_genres[:GENRE_SEED_COUNT]:
            if len(candidates) >= limit:
                break
            try:
                tracks = self._genre_tracks(preference.genre)
            except RECOVERABLE_ERRORS as e:
                logger.warning(f"Genre search failed for {preference.genre}: {e}")
                continue
            for track in tracks:
                if len(candidates) >= limit:
                    break
                if not track.id or track.name_key in seen:
                    continue
                seen.add(track.name_key)
                candidates.append(Candidate(
                    track=track,
                    features=AudioFeatureVector.neutral(track.id),
                    source=SourceType.CONTENT_BASED,
                    reasons=[f'Based on your interest in {preference.genre}', 'Genre-based discovery'],
                    match_score=1.0,
                    features_resolved=False,
                ))
        return candidates

    def _genre_tracks(self, genre: str) -> List[Track]:
        if self.similarity is not None and self.similarity.is_configured():
            tracks = self._tag_tracks(genre)
            if tracks:
                return tracks
        return self.catalog.search_tracks(f'genre:"{genre}" {self.year_filter}', TRACKS_PER_GENRE)

    def _tag_tracks(self, genre: str) -> List[Track]:
        """Resolve the tag's top Last.fm tracks to catalog tracks by exact search"""
        resolved: List[Track] = []
        for tagged in self.similarity.get_top_tracks_for_tag(genre, TRACKS_PER_GENRE):
            try:
                results = self.catalog.search_tracks(f'artist:"{tagged.artist_name}" track:"{tagged.name}"', 1)
            except RECOVERABLE_ERRORS as e:
                logger.warning(f"Search failed for {tagged.artist_name} - {tagged.name}: {e}")
                continue
            if results and results[0].id:
                resolved.append(results[0])
        logger.info(f"Resolved {len(resolved)} Last.fm top tracks for tag {genre}")
        return resolved


class CandidateGenerator:
    """
    Runs strategies in order until the limit is met, then the fallback if
    nothing at all was produced. A failing strategy is logged and skipped.
    """

    def __init__(self, strategies: Sequence[CandidateStrategy],
                 fallback: Optional[CandidateStrategy] = None):
        self.strategies = list(strategies)
        self.fallback = fallback

    @classmethod
    def default(cls, catalog: SpotifyAPI, similarity: LastFmAPI,
                scorer: SimilarityScorer, settings: Settings) -> 'CandidateGenerator':
        strategies: List[CandidateStrategy] = []
        if similarity.is_configured():
            strategies.append(CollaborativeStrategy(catalog, similarity))
            strategies.append(TrackSimilarityStrategy(catalog, similarity))
        else:
            logger.warning('Last.fm API key not configured, falling back to search-based recommendations')
        if settings.ENABLE_SEEDED_DISCOVERY:
            strategies.append(SeededContentStrategy(catalog, scorer))
        return cls(strategies, fallback=GenreSearchStrategy(catalog, settings.FALLBACK_YEAR_FILTER, similarity))

    def generate(self, profile: UserMusicProfile, limit: int) -> List[Candidate]:
        if limit <= 0:
            return []
        seen = profile.known_track_keys()
        candidates: List[Candidate] = []

        for strategy in self.strategies:
            remaining = limit - len(candidates)
            if remaining <= 0:
                break
            produced = self._run(strategy, profile, remaining, seen)
            candidates.extend(produced[:remaining])

        if not candidates and self.fallback is not None:
            candidates.extend(self._run(self.fallback, profile, limit, seen)[:limit])

        logger.info(f"Generated {len(candidates)} candidates")
        return candidates

    def _run(self, strategy: CandidateStrategy, profile: UserMusicProfile,
             limit: int, seen: Set[str]) -> List[Candidate]:
        try:
            produced = strategy.generate(profile, limit, seen)
        except Exception as e:
            logger.exception(f"Candidate strategy {strategy.name} failed: {e}")
            return []
        logger.info(f"Strategy {strategy.name} produced {len(produced)} candidates")
        return produced


class CustomStrategy:
    """
    Explicit discovery request. The requested features are the target, so
    results are not compared against any taste profile and score 1.0.
    """

    def __init__(self, catalog: SpotifyAPI, default_seed_genres: Sequence[str] = ('pop', 'rock'),
                 max_limit: int = 100):
        self.catalog = catalog
        self.default_seed_genres = list(default_seed_genres)
        self.max_limit = max_limit

    def resolve_seeds(self, request: CustomRequest) -> Dict[str, List[str]]:
        """Default genres when none are given, then cap seeds at 5 combined (tracks, then artists, then genres)"""
        seeds = {
            'seed_tracks': [s for s in request.seed_tracks if s],
            'seed_artists': [s for s in request.seed_artists if s],
            'seed_genres': [s for s in request.seed_genres if s],
        }
        if not seeds['seed_genres']:
            seeds['seed_genres'] = list(self.default_seed_genres)
        remaining = MAX_SEEDS
        for key in ('seed_tracks', 'seed_artists', 'seed_genres'):
            seeds[key] = seeds[key][:remaining]
            remaining -= len(seeds[key])
        return seeds

    def generate(self, request: CustomRequest) -> List[Recommendation]:
        limit = min(request.limit, self.max_limit)
        if limit <= 0:
            return []
        seeds = self.resolve_seeds(request)
        logger.info(f"Generating custom recommendations with targets {request.feature_targets} and seeds {seeds}")
        tracks = self.catalog.get_recommendations(feature_targets=request.feature_targets, limit=limit, **seeds)

        unique: List[Track] = []
        ids = set()
        for track in tracks:
            if track.id and track.id not in ids:
                ids.add(track.id)
                unique.append(track)
        unique = unique[:limit]

        features = fetch_feature_map(self.catalog, [t.id for t in unique])
        return [
            Recommendation(
                track=track,
                audio_features=features.get(track.id) or AudioFeatureVector.neutral(track.id),
                similarity_score=1.0,
                reasons=[CUSTOM_REASON],
                source_type=SourceType.CUSTOM,
            )
            for track in unique
        ]
