"""Entry points: profile building, taste-based and custom recommendations"""
import logging
import random
from typing import Any, Callable, Dict, List, Optional, Union

import requests

from taste_discovery.candidates import CandidateGenerator, CustomStrategy
from taste_discovery.config import Settings, settings as default_settings
from taste_discovery.models.profile import TasteProfile, UserMusicProfile
from taste_discovery.models.recommendation import (
    Candidate, CustomRecommendationResponse, CustomRequest, Recommendation, RecommendationResponse,
)
from taste_discovery.profile import ProfileAggregator
from taste_discovery.ranking import RecommendationRanker, build_stats, placeholder_recommendations
from taste_discovery.scoring import SimilarityScorer
from taste_discovery.services.lastfm import LastFmAPI
from taste_discovery.services.spotify import SpotifyAPI
from taste_discovery.taste import TasteProfileCalculator

logger = logging.getLogger(__name__)

class RecommendationEngine:
    """
    Orchestrates one listener request end to end.

    Nothing is cached between calls: every request fetches its own corpus,
    so concurrent requests for different listeners share no mutable state.
    Credential problems and malformed custom requests propagate to the
    caller; failures inside discovery degrade to fewer (or placeholder)
    recommendations.
    """

    def __init__(self,
                 settings: Optional[Settings] = None,
                 catalog_factory: Optional[Callable[[str], SpotifyAPI]] = None,
                 similarity: Optional[LastFmAPI] = None,
                 rng: Optional[random.Random] = None):
        self.settings = settings or default_settings
        self.catalog_factory = catalog_factory or self._default_catalog
        self.similarity = similarity or LastFmAPI(
            api_key=self.settings.LASTFM_API_KEY,
            base_url=self.settings.LASTFM_API_URL,
            timeout=self.settings.REQUEST_TIMEOUT_SECONDS,
        )
        self.scorer = SimilarityScorer()
        self.ranker = RecommendationRanker(self.scorer, rng=rng, jitter=self.settings.RANKING_JITTER)

    def _default_catalog(self, credential: str) -> SpotifyAPI:
        return SpotifyAPI(
            token=credential,
            base_url=self.settings.SPOTIFY_API_URL,
            timeout=self.settings.REQUEST_TIMEOUT_SECONDS,
            retries=self.settings.REQUEST_RETRIES,
        )

    def _clamp_limit(self, limit: Optional[int]) -> int:
        if limit is None:
            limit = self.settings.DEFAULT_LIMIT
        return max(0, min(int(limit), self.settings.MAX_LIMIT))

    def build_user_music_profile(self, credential: str, catalog: Optional[SpotifyAPI] = None) -> UserMusicProfile:
        """
        Validate the credential, aggregate the listener's corpus and derive
        their taste profile.

        Raises:
            ValueError: If the credential is empty
            CatalogAuthError: If the catalog rejects the credential
        """
        catalog = catalog or self.catalog_factory(credential)
        user = catalog.get_user_info()
        logger.info(f"Credential accepted for user {user.get('id')}")

        raw_profile = ProfileAggregator(catalog, max_workers=self.settings.MAX_WORKERS).collect()
        profile = TasteProfileCalculator(catalog).analyze(raw_profile)
        logger.info(f"Built profile: {profile.stats()}")
        return profile

    def get_recommendations(self, credential: str, limit: Optional[int] = None) -> RecommendationResponse:
        """
        Ranked, explained recommendations for the listener behind `credential`.
        Always returns a response unless the credential is missing or rejected;
        stats reflect what was actually produced.
        """
        limit = self._clamp_limit(limit)
        catalog = self.catalog_factory(credential)
        try:
            profile = self.build_user_music_profile(credential, catalog=catalog)
        except requests.exceptions.RequestException as e:
            logger.error(f"Could not build user music profile, returning placeholder set: {e}")
            placeholder = placeholder_recommendations()[:limit]
            return RecommendationResponse(
                recommendations=placeholder,
                taste_profile=TasteProfile.default(),
                stats=build_stats(placeholder),
            )

        recommendations: List[Recommendation]
        try:
            generator = CandidateGenerator.default(catalog, self.similarity, self.scorer, self.settings)
            candidates: List[Candidate] = generator.generate(profile, limit)
            recommendations = self.ranker.rank(candidates, profile, limit)
        except Exception as e:
            logger.exception(f"Recommendation generation failed, returning placeholder set: {e}")
            recommendations = placeholder_recommendations()[:limit]

        stats = build_stats(recommendations)
        logger.info(f"Returning {stats.total_recommendations} recommendations (placeholder: {stats.placeholder})")
        return RecommendationResponse(
            recommendations=recommendations,
            taste_profile=profile.taste_profile,
            stats=stats,
        )

    def get_custom_recommendations(self, credential: str,
                                   request: Union[CustomRequest, Dict[str, Any]]) -> CustomRecommendationResponse:
        """
        Recommendations for explicit feature targets and seeds.

        Raises:
            ValueError: If the credential is empty or the request is malformed
            QuotaError: If the request cannot be expressed within the catalog's seed limits
        """
        if not isinstance(request, CustomRequest):
            request = CustomRequest.model_validate(request)
        request = request.model_copy(update={'limit': self._clamp_limit(request.limit)})

        catalog = self.catalog_factory(credential)
        strategy = CustomStrategy(catalog, self.settings.DEFAULT_SEED_GENRES, self.settings.MAX_LIMIT)
        recommendations = strategy.generate(request)
        return CustomRecommendationResponse(
            recommendations=recommendations,
            requested_targets=request.feature_targets or None,
            stats=build_stats(recommendations),
        )
