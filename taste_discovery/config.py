"""Application configuration and environment settings"""
from typing import List, Optional
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    """Application settings loaded from environment variables"""
    # Catalog (Spotify) access; the token is only read by the CLI entry point
    SPOTIFY_TOKEN: Optional[str] = Field(None, description="Spotify API access token")
    SPOTIFY_API_URL: str = Field("https://api.spotify.com/v1", description="Spotify Web API base URL")

    # Similarity service (Last.fm); leaving the key unset disables collaborative discovery
    LASTFM_API_KEY: Optional[str] = Field(None, description="Last.fm API key")
    LASTFM_API_URL: str = Field("https://ws.audioscrobbler.com/2.0/", description="Last.fm API base URL")

    # Transport
    REQUEST_TIMEOUT_SECONDS: int = Field(15, description="Timeout for a single HTTP request")
    REQUEST_RETRIES: int = Field(3, description="Attempts per catalog request")
    MAX_WORKERS: int = Field(5, description="Thread pool size for profile aggregation")

    # Recommendation behaviour
    DEFAULT_LIMIT: int = Field(20, description="Default number of recommendations")
    MAX_LIMIT: int = Field(100, description="Upper bound on requested recommendations")
    FALLBACK_YEAR_FILTER: str = Field("year:2020-2024", description="Year filter for genre-based discovery")
    DEFAULT_SEED_GENRES: List[str] = Field(["pop", "rock"], description="Seeds used when a custom request has none")
    ENABLE_SEEDED_DISCOVERY: bool = Field(False, description="Run the seeded content-based strategy")
    RANKING_JITTER: float = Field(0.1, description="Half-width of the random score jitter applied when ranking")

    # Output directory for the CLI
    OUTPUT_DIR: str = Field("/output", description="Directory for output files")

    @property
    def lastfm_configured(self) -> bool:
        """Whether the similarity service can be used"""
        return bool(self.LASTFM_API_KEY)

    model_config = SettingsConfigDict(
        env_file='.env',
        env_file_encoding='utf-8',
        case_sensitive=True
    )

settings = Settings()
