"""Shared Spotify OAuth client setup.

The credential file is owned by credentials.CredentialStore, so spotipy is
always given an in-memory cache and never writes a .cache file of its own.
"""

import requests as _requests
import spotipy
from spotipy.cache_handler import MemoryCacheHandler
from spotipy.oauth2 import SpotifyOAuth

BACKUP_SCOPES = "user-read-private playlist-modify-private"


def create_oauth(config, state=None, cache_handler=None):
    """Create the SpotifyOAuth manager for this app.

    Args:
        config: Loaded config.Config.
        state: Anti-CSRF nonce embedded in the authorization URL.
        cache_handler: Token cache; defaults to an empty in-memory cache.
    """
    return SpotifyOAuth(
        client_id=config.client_id,
        client_secret=config.client_secret,
        redirect_uri=config.redirect_uri,
        scope=BACKUP_SCOPES,
        state=state,
        open_browser=False,
        cache_handler=cache_handler or MemoryCacheHandler(),
    )


def create_client(oauth):
    """Create and return a spotipy.Spotify instance using the given auth manager."""
    session = _requests.Session()
    session.mount("https://", _requests.adapters.HTTPAdapter(max_retries=0))

    return spotipy.Spotify(auth_manager=oauth, requests_session=session)
