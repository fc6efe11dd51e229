"""Entry point for generating recommendations for one listener"""
import json
import logging
import os
import sys
import traceback

from taste_discovery.config import settings
from taste_discovery.engine import RecommendationEngine

logging.basicConfig(level=logging.INFO, format='%(message)s')
logger = logging.getLogger(__name__)

def run() -> None:
    """Generate recommendations for the listener behind SPOTIFY_TOKEN."""
    try:
        if not settings.SPOTIFY_TOKEN:
            raise ValueError("SPOTIFY_TOKEN is required")

        # Log config (excluding sensitive data)
        logger.info("Using configuration:")
        safe_config = settings.model_dump(exclude={'SPOTIFY_TOKEN', 'LASTFM_API_KEY'})
        logger.info(json.dumps(safe_config, indent=2))

        engine = RecommendationEngine(settings)
        response = engine.get_recommendations(settings.SPOTIFY_TOKEN, settings.DEFAULT_LIMIT)

        os.makedirs(settings.OUTPUT_DIR, exist_ok=True)
        output_path = os.path.join(settings.OUTPUT_DIR, "recommendations.json")
        with open(output_path, 'w') as f:
            json.dump(response.model_dump(mode='json'), f, indent=2)

        logger.info(f"Wrote {response.stats.total_recommendations} recommendations to {output_path}")

    except Exception as e:
        logger.error(f"Error during recommendation generation: {e}")
        traceback.print_exc()
        sys.exit(1)

if __name__ == "__main__":
    run()
