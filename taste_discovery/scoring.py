"""Audio similarity scoring and recommendation explanations"""
from typing import Dict, List, Optional

from taste_discovery.models.catalog import AudioFeatureVector, Track
from taste_discovery.models.profile import TasteProfile

# Per-feature weights; scores are normalised by the total weight of the features compared
FEATURE_WEIGHTS: Dict[str, float] = {
    'danceability': 0.15,
    'energy': 0.15,
    'valence': 0.15,
    'acousticness': 0.10,
    'instrumentalness': 0.05,
    'liveness': 0.05,
    'speechiness': 0.05,
    'tempo': 0.10,
}
# Tempo is scaled into a rough [0, 1] range before comparison
TEMPO_SCALE = 200.0
REASON_THRESHOLD = 0.2
HIDDEN_GEM_POPULARITY = 30
POPULAR_POPULARITY = 70
# Used when the similarity service gives no (or a zero) match score
DEFAULT_MATCH_SCORE = 0.5
GENERIC_REASON = 'Based on your overall music taste'

class SimilarityScorer:
    """Scores tracks against a listener's taste profile and explains the match"""

    def calculate_similarity(self, taste: TasteProfile, features: AudioFeatureVector) -> float:
        """
        Weighted mean of per-feature similarity, 1 - |listener average - track value|,
        over the features both sides define. Result lies in [0, 1].
        """
        total_similarity = 0.0
        total_weight = 0.0
        for feature, weight in FEATURE_WEIGHTS.items():
            user_value = taste.average(feature)
            track_value = features.value(feature)
            if user_value is None or track_value is None:
                continue
            if feature == 'tempo':
                user_value = user_value / TEMPO_SCALE
                track_value = track_value / TEMPO_SCALE
            similarity = max(0.0, 1.0 - abs(user_value - track_value))
            total_similarity += similarity * weight
            total_weight += weight
        if total_weight <= 0:
            return 0.0
        return min(1.0, total_similarity / total_weight)

    def combine(self, match_score: Optional[float], audio_score: float) -> float:
        """Blend a similarity-service match fraction with the audio score"""
        match = match_score or DEFAULT_MATCH_SCORE
        return max(0.0, min(1.0, match * audio_score))

    def generate_reasons(self, taste: TasteProfile, features: AudioFeatureVector, track: Track) -> List[str]:
        """Human-readable reasons for a match; never empty"""
        reasons: List[str] = []

        if abs(taste.avg_energy - features.energy) < REASON_THRESHOLD:
            reasons.append(f"Matches your energy level ({round(features.energy * 100)}%)")

        if abs(taste.avg_danceability - features.danceability) < REASON_THRESHOLD:
            reasons.append(f"Perfect danceability for you ({round(features.danceability * 100)}%)")

        if abs(taste.avg_valence - features.valence) < REASON_THRESHOLD:
            reasons.append(f"Matches your mood preferences ({round(features.valence * 100)}% positivity)")

        if track.popularity > POPULAR_POPULARITY:
            reasons.append('Popular track you might have missed')
        elif track.popularity < HIDDEN_GEM_POPULARITY:
            reasons.append('Hidden gem discovery')

        if not reasons:
            reasons.append(GENERIC_REASON)

        return reasons
