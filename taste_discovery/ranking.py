"""Merging, scoring, explaining and ranking of discovery candidates"""
import logging
import random
from typing import Iterable, List, Optional, Sequence, Set

from taste_discovery.models.catalog import Album, ArtistRef, AudioFeatureVector, Track
from taste_discovery.models.profile import UserMusicProfile
from taste_discovery.models.recommendation import (
    Candidate, Recommendation, RecommendationStats, SourceType,
)
from taste_discovery.scoring import SimilarityScorer

logger = logging.getLogger(__name__)

PLACEHOLDER_REASON = 'Placeholder recommendation - discovery services unavailable'

# Returned when every strategy came back empty, so callers always get a well-formed list
PLACEHOLDER_TRACKS = (
    ('placeholder-1', 'Discover Weekly Placeholder Track 1', 'Placeholder Artist 1'),
    ('placeholder-2', 'Discover Weekly Placeholder Track 2', 'Placeholder Artist 2'),
    ('placeholder-3', 'Discover Weekly Placeholder Track 3', 'Placeholder Artist 3'),
)


def placeholder_recommendations() -> List[Recommendation]:
    recommendations = []
    for track_id, name, artist in PLACEHOLDER_TRACKS:
        track = Track(
            id=track_id,
            name=name,
            artists=(ArtistRef(id=f'{track_id}-artist', name=artist),),
            album=Album(id=f'{track_id}-album', name='Placeholder Album'),
            popularity=50,
            duration_ms=200000,
        )
        recommendations.append(Recommendation(
            track=track,
            audio_features=AudioFeatureVector.neutral(track_id),
            similarity_score=0.5,
            reasons=[PLACEHOLDER_REASON],
            source_type=SourceType.CONTENT_BASED,
        ))
    return recommendations


class RecommendationRanker:
    """
    Turns merged candidates into the final list.

    Ordering is deliberately noisy: candidates are shuffled once and sorted by
    score plus uniform jitter, so repeated requests for the same listener vary
    while keeping roughly the same quality. Pass a seeded `rng` for
    repeatable output.
    """

    def __init__(self, scorer: Optional[SimilarityScorer] = None, rng: Optional[random.Random] = None,
                 jitter: float = 0.1):
        self.scorer = scorer or SimilarityScorer()
        self.rng = rng or random.Random()
        self.jitter = max(0.0, jitter)

    def merge(self, candidates: Iterable[Candidate], exclude_ids: Set[str]) -> List[Candidate]:
        """Drop duplicate track ids (first occurrence wins) and tracks the listener already has"""
        merged = []
        seen_ids: Set[str] = set()
        for candidate in candidates:
            track_id = candidate.track.id
            if not track_id or track_id in seen_ids or track_id in exclude_ids:
                continue
            seen_ids.add(track_id)
            merged.append(candidate)
        return merged

    def score(self, candidate: Candidate, profile: UserMusicProfile) -> Recommendation:
        taste = profile.taste_profile
        audio_score = self.scorer.calculate_similarity(taste, candidate.features)
        similarity = self.scorer.combine(candidate.match_score, audio_score)
        reasons = list(candidate.reasons) or self.scorer.generate_reasons(taste, candidate.features, candidate.track)
        return Recommendation(
            track=candidate.track,
            audio_features=candidate.features,
            similarity_score=similarity,
            reasons=reasons,
            source_type=candidate.source,
        )

    def order(self, recommendations: Sequence[Recommendation]) -> List[Recommendation]:
        shuffled = list(recommendations)
        self.rng.shuffle(shuffled)
        keyed = [(r.similarity_score + self.rng.uniform(-self.jitter, self.jitter), r) for r in shuffled]
        keyed.sort(key=lambda item: item[0], reverse=True)
        return [r for _, r in keyed]

    def rank(self, candidates: Iterable[Candidate], profile: UserMusicProfile,
             limit: int) -> List[Recommendation]:
        """
        Merge, score and order candidates, truncated to `limit`.
        Falls back to the placeholder set when nothing survives.
        """
        if limit <= 0:
            return []
        merged = self.merge(candidates, profile.known_track_ids())
        ranked = self.order([self.score(c, profile) for c in merged])[:limit]
        if not ranked:
            logger.warning("No recommendations survived ranking, returning placeholder set")
            return placeholder_recommendations()[:limit]
        logger.info(f"Ranked {len(ranked)} recommendations from {len(merged)} unique candidates")
        return ranked


def build_stats(recommendations: Sequence[Recommendation]) -> RecommendationStats:
    """Summarize what was actually returned"""
    counts = {source: 0 for source in SourceType}
    for recommendation in recommendations:
        counts[recommendation.source_type] += 1
    total = len(recommendations)
    average = sum(r.similarity_score for r in recommendations) / total if total else 0.0
    return RecommendationStats(
        total_recommendations=total,
        content_based_count=counts[SourceType.CONTENT_BASED],
        collaborative_count=counts[SourceType.COLLABORATIVE],
        hybrid_count=counts[SourceType.HYBRID],
        custom_count=counts[SourceType.CUSTOM],
        avg_similarity_score=round(average, 4),
        placeholder=total > 0 and all(r.reasons == [PLACEHOLDER_REASON] for r in recommendations),
    )
