"""Produces one authorized Spotify client per run.

Two paths:
  - no credential file: run the browser login through a local callback listener
  - credential file present: load it, refresh it if it has expired, and save
    the refreshed credential when the access token changed
"""

import secrets

import requests
from spotipy.cache_handler import MemoryCacheHandler
from spotipy.oauth2 import SpotifyOauthError

from auth_server import AuthorizationSession, start_listener, stop_listener
from credentials import Credential, CredentialStore
from errors import TokenRefreshFailure
from log_setup import get_logger
from spotify_client import BACKUP_SCOPES, create_client, create_oauth

log = get_logger("auth")


class Authorizer:
    def __init__(self, config, store=None, oauth_factory=create_oauth,
                 client_factory=create_client, timeout=None, out=print):
        self.config = config
        self.store = store or CredentialStore(config.token_file)
        self.oauth_factory = oauth_factory
        self.client_factory = client_factory
        self.timeout = timeout if timeout is not None else config.auth_timeout
        self.out = out

    def authorize(self):
        """Return an authorized spotipy.Spotify client, using the cheapest valid path."""
        if not self.store.exists():
            log.info("No cached token, starting browser login")
            return self.interactive()

        credential = self.store.load()
        log.debug(f"Loaded cached token from {self.store.path}")
        credential = self.validate(credential)
        return self.client_for(credential)

    def validate(self, credential):
        """Refresh an expired credential. Saves it only if the access token changed."""
        if not credential.is_expired():
            return credential

        if not credential.refresh_token:
            raise TokenRefreshFailure("cached token expired and has no refresh token")

        oauth = self.oauth_factory(self.config)
        try:
            token_info = oauth.refresh_access_token(credential.refresh_token)
        except (SpotifyOauthError, requests.exceptions.RequestException) as e:
            raise TokenRefreshFailure(f"could not refresh token: {e}") from e
        if not token_info or not token_info.get("access_token"):
            raise TokenRefreshFailure("token endpoint returned no access token")

        refreshed = Credential.from_token_info(token_info)
        if not refreshed.refresh_token:
            refreshed.refresh_token = credential.refresh_token
        if not refreshed.scope:
            refreshed.scope = credential.scope

        if refreshed.access_token != credential.access_token:
            log.info("got refreshed token, saving it")
            self.store.save(refreshed)
        return refreshed

    def client_for(self, credential):
        """Build a client whose auth manager starts with this credential cached."""
        cache = MemoryCacheHandler(token_info=credential.to_token_info(BACKUP_SCOPES))
        oauth = self.oauth_factory(self.config, cache_handler=cache)
        return self.client_factory(oauth)

    def interactive(self):
        """Run the browser login and block until the callback delivers a client."""
        state = secrets.token_urlsafe(16)
        session = AuthorizationSession(
            oauth=self.oauth_factory(self.config, state=state),
            store=self.store,
            client_factory=self.client_for,
            state=state,
        )

        host, port, path = self.config.listen_address()
        server = start_listener(session, host, port, path)
        try:
            self.out(
                "Please log in to Spotify by visiting the following page in your browser:",
                session.authorize_url(),
            )
            client = session.wait(self.timeout)
        finally:
            stop_listener(server)

        log.info("Login completed")
        return client
