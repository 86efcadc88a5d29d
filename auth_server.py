"""One-shot local HTTP listener that catches the OAuth redirect.

The AuthorizationSession is handed to the server at construction time, so the
request handler has no module-level state and can be driven directly in tests.
"""

import queue
import secrets
import threading
from http.server import BaseHTTPRequestHandler, HTTPServer
from urllib.parse import parse_qs, urlparse

import requests
from spotipy.oauth2 import SpotifyOauthError

from credentials import Credential
from errors import (
    AuthorizationTimeout, CallbackListenerError, CredentialWriteError, OAuthExchangeFailure,
)
from log_setup import get_logger

log = get_logger("auth")

LOGIN_COMPLETED = "Login Completed!"
TOKEN_ERROR = "Couldn't get token"
SAVE_ERROR = "Couldn't save token"


class AuthorizationSession:
    """Ephemeral state of one interactive authorization.

    Holds the anti-CSRF nonce and a one-shot channel that carries the
    authorized client (or the error that ended the flow) from the callback
    handler back to the waiting caller.
    """

    def __init__(self, oauth, store, client_factory, state=None):
        self.oauth = oauth
        self.store = store
        self.client_factory = client_factory
        self.state = state or secrets.token_urlsafe(16)
        self._channel = queue.Queue(maxsize=1)

    def authorize_url(self):
        return self.oauth.get_authorize_url(state=self.state)

    def complete(self, code, state):
        """Exchange an authorization code and persist the resulting credential.

        Returns (credential, client). The credential file is written before
        this returns, so it is on disk before anything is published.
        """
        if state != self.state:
            raise OAuthExchangeFailure("state mismatch in authorization callback")
        if not code:
            raise OAuthExchangeFailure("authorization callback carried no code")

        try:
            self.oauth.get_access_token(code, as_dict=False, check_cache=False)
        except (SpotifyOauthError, requests.exceptions.RequestException) as e:
            raise OAuthExchangeFailure(f"could not exchange authorization code: {e}") from e

        token_info = self.oauth.cache_handler.get_cached_token()
        if not token_info or not token_info.get("access_token"):
            raise OAuthExchangeFailure("token endpoint returned no access token")

        credential = Credential.from_token_info(token_info)
        self.store.save(credential)
        log.debug(f"Saved new credential to {self.store.path}")
        return credential, self.client_factory(credential)

    def publish(self, client):
        self._put((client, None))

    def fail(self, error):
        self._put((None, error))

    def _put(self, outcome):
        try:
            self._channel.put_nowait(outcome)
        except queue.Full:
            log.warning("Authorization already completed, ignoring extra callback")

    def wait(self, timeout=None):
        """Block until the callback delivers a client. Raises the delivered error, if any."""
        try:
            client, error = self._channel.get(timeout=timeout)
        except queue.Empty:
            raise AuthorizationTimeout(f"no authorization callback within {timeout:g}s")
        if error is not None:
            raise error
        return client


class CallbackHandler(BaseHTTPRequestHandler):
    """Handles the redirect from the Spotify accounts service."""

    server_version = "WeeklyBackup/1.0"

    def do_GET(self):
        parsed = urlparse(self.path)
        if parsed.path != self.server.callback_path:
            self._respond(404, "Not found")
            return

        session = self.server.session
        qs = parse_qs(parsed.query)
        code = qs.get("code", [None])[0]
        state = qs.get("state", [None])[0]

        if "error" in qs:
            error = OAuthExchangeFailure(f"authorization denied: {qs['error'][0]}")
            log.error(str(error))
            self._respond(403, TOKEN_ERROR)
            session.fail(error)
            return

        try:
            _, client = session.complete(code, state)
        except OAuthExchangeFailure as e:
            log.error(str(e))
            self._respond(403, TOKEN_ERROR)
            session.fail(e)
            return
        except CredentialWriteError as e:
            log.error(str(e))
            self._respond(500, SAVE_ERROR)
            session.fail(e)
            return
        except Exception as e:
            log.exception("Unexpected error while completing authorization")
            self._respond(403, TOKEN_ERROR)
            session.fail(OAuthExchangeFailure(f"could not complete authorization: {e}"))
            return

        self._respond(200, LOGIN_COMPLETED)
        session.publish(client)

    def _respond(self, status, body):
        data = body.encode("utf-8")
        self.send_response(status)
        self.send_header("Content-Type", "text/plain; charset=utf-8")
        self.send_header("Content-Length", str(len(data)))
        self.end_headers()
        self.wfile.write(data)

    def log_message(self, format, *args):
        log.debug(f"{self.address_string()} {format % args}")


class CallbackServer(HTTPServer):
    def __init__(self, address, session, callback_path="/callback"):
        self.session = session
        self.callback_path = callback_path
        super().__init__(address, CallbackHandler)


def start_listener(session, host, port, path="/callback"):
    """Bind the callback server and serve it from a daemon thread."""
    try:
        server = CallbackServer((host, port), session, callback_path=path)
    except OSError as e:
        raise CallbackListenerError(f"could not listen on {host}:{port}: {e}") from e
    thread = threading.Thread(target=server.serve_forever, name="oauth-callback", daemon=True)
    thread.start()
    log.debug(f"Listening for the OAuth callback on {host}:{server.server_address[1]}{path}")
    return server


def stop_listener(server):
    server.shutdown()
    server.server_close()
