"""Collects a listener's raw listening signals from the catalog"""
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Dict, List, Sequence

import requests

from taste_discovery.exceptions import DiscoveryError
from taste_discovery.models.catalog import Playlist, Track
from taste_discovery.models.profile import UserMusicProfile
from taste_discovery.services.spotify import SpotifyAPI

logger = logging.getLogger(__name__)

# --- Fetch bounds ---
MAX_PLAYLISTS = 50
MAX_PLAYLISTS_WITH_TRACKS = 10 # Caps external calls per request
RECENT_LIMIT = 50
TOP_LIMIT = 50
TOP_TIME_RANGE = 'medium_term'
# ------------------------------------

# Collaborator failures a single signal is allowed to absorb
RECOVERABLE_ERRORS = (requests.exceptions.RequestException, DiscoveryError, ValueError)


class ProfileAggregator:
    """Fans out to the catalog to gather every raw signal for one listener"""

    def __init__(self, catalog: SpotifyAPI, max_workers: int = 5):
        self.catalog = catalog
        self.max_workers = max(1, max_workers)

    def collect(self) -> UserMusicProfile:
        """
        Fetch liked tracks, owned playlists, recent plays, top tracks and top
        artists concurrently, then tracks for the first playlists.

        Each signal is isolated: a failure is logged and that signal comes
        back empty while its siblings complete. The feature map and taste
        profile are left at their defaults.
        """
        logger.info("Building user music profile...")
        fetches: Dict[str, Callable[[], List[Any]]] = {
            'liked_tracks': self.catalog.get_liked_tracks,
            'playlists': lambda: self.catalog.get_owned_playlists(limit=MAX_PLAYLISTS),
            'recent_tracks': lambda: self.catalog.get_recently_played(limit=RECENT_LIMIT),
            'top_tracks': lambda: self.catalog.get_top_tracks(time_range=TOP_TIME_RANGE, limit=TOP_LIMIT),
            'top_artists': lambda: self.catalog.get_top_artists(time_range=TOP_TIME_RANGE, limit=TOP_LIMIT),
        }

        results: Dict[str, List[Any]] = {}
        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            futures = {name: executor.submit(fetch) for name, fetch in fetches.items()}
            for name, future in futures.items():
                try:
                    results[name] = future.result()
                except RECOVERABLE_ERRORS as e:
                    logger.warning(f"Error fetching {name.replace('_', ' ')}: {e}")
                    results[name] = []

        playlists = results['playlists'][:MAX_PLAYLISTS]
        playlist_tracks = self._fetch_playlist_tracks(playlists[:MAX_PLAYLISTS_WITH_TRACKS])

        profile = UserMusicProfile(
            liked_tracks=results['liked_tracks'],
            playlists=playlists,
            playlist_tracks=playlist_tracks,
            recent_tracks=results['recent_tracks'],
            top_tracks=results['top_tracks'],
            top_artists=results['top_artists'],
        )
        logger.info(f"Collected raw profile: {profile.stats()}")
        return profile

    def _fetch_playlist_tracks(self, playlists: Sequence[Playlist]) -> Dict[str, List[Track]]:
        playlist_tracks: Dict[str, List[Track]] = {}
        for playlist in playlists:
            try:
                playlist_tracks[playlist.id] = self.catalog.get_playlist_tracks(playlist.id)
            except RECOVERABLE_ERRORS as e:
                logger.warning(f"Error getting playlist {playlist.name}: {e}")
                playlist_tracks[playlist.id] = []
        return playlist_tracks
