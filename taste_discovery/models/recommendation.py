"""Candidate, recommendation and response model definitions"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional
from pydantic import BaseModel, Field

from taste_discovery.models.catalog import AudioFeatureVector, Track
from taste_discovery.models.profile import TasteProfile

class SourceType(str, Enum):
    CONTENT_BASED = 'content-based'
    COLLABORATIVE = 'collaborative'
    HYBRID = 'hybrid'
    CUSTOM = 'custom'

@dataclass
class Candidate:
    """
    A track proposed by a discovery strategy, before ranking.

    match_score is the similarity-service match fraction (1.0 when the
    strategy has no such signal); the final score is derived from it and the
    audio similarity by the ranker.
    """
    track: Track
    features: AudioFeatureVector
    source: SourceType
    reasons: List[str] = field(default_factory=list)
    match_score: Optional[float] = 1.0
    features_resolved: bool = True

@dataclass(frozen=True)
class Recommendation:
    track: Track
    audio_features: AudioFeatureVector
    similarity_score: float
    reasons: List[str]
    source_type: SourceType

class RecommendationStats(BaseModel):
    """Summary of what a recommendation call actually produced"""
    total_recommendations: int = 0
    content_based_count: int = 0
    collaborative_count: int = 0
    hybrid_count: int = 0
    custom_count: int = 0
    avg_similarity_score: float = 0.0
    placeholder: bool = Field(False, description="True when discovery failed and the fixed placeholder set was returned")

class RecommendationResponse(BaseModel):
    recommendations: List[Recommendation]
    taste_profile: TasteProfile
    stats: RecommendationStats

class CustomRequest(BaseModel):
    """Explicit discovery request: the targets are the taste, no profile is consulted"""
    feature_targets: Dict[str, float] = Field(default_factory=dict, description="Partial target audio features")
    seed_genres: List[str] = Field(default_factory=list)
    seed_artists: List[str] = Field(default_factory=list)
    seed_tracks: List[str] = Field(default_factory=list)
    limit: int = Field(20, description="Number of tracks to request")

class CustomRecommendationResponse(BaseModel):
    recommendations: List[Recommendation]
    requested_targets: Optional[Dict[str, float]] = None
    stats: RecommendationStats
