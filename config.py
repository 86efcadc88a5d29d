"""Configuration loaded from a .env file.

Copy .env.example to .env and fill in your Spotify app credentials.
Process environment variables take precedence over values in the file.
"""

import math
import os
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlparse

from dotenv import dotenv_values

from errors import ConfigLoadError

DEFAULT_ENV_FILE = ".env"
DEFAULT_REDIRECT_URI = "http://localhost:8080/callback"
DEFAULT_TOKEN_FILE = "token.data"
DEFAULT_SOURCE_PLAYLIST = "Discover Weekly"


@dataclass
class Config:
    client_id: str
    client_secret: str
    redirect_uri: str = DEFAULT_REDIRECT_URI
    token_file: str = DEFAULT_TOKEN_FILE
    source_playlist: str = DEFAULT_SOURCE_PLAYLIST
    auth_timeout: Optional[float] = None

    def listen_address(self):
        """Return (host, port, path) the callback listener should serve."""
        parsed = urlparse(self.redirect_uri)
        if not parsed.hostname:
            raise ConfigLoadError(f"Redirect URI has no host: {self.redirect_uri}")
        port = parsed.port
        if port is None:
            port = 443 if parsed.scheme == "https" else 80
        return parsed.hostname, port, parsed.path or "/"


def parse_timeout(value):
    """Parse a timeout in seconds. Empty means wait forever (None)."""
    if value is None or str(value).strip() == "":
        return None
    try:
        seconds = float(value)
    except ValueError:
        raise ConfigLoadError(f"AUTH_TIMEOUT must be a number of seconds, got {value!r}")
    if not math.isfinite(seconds) or seconds <= 0:
        raise ConfigLoadError(f"AUTH_TIMEOUT must be a positive, finite number of seconds, got {value!r}")
    return seconds


def load_config(env_file=DEFAULT_ENV_FILE):
    """Load the .env file and return a Config. A missing file is fatal."""
    if not os.path.isfile(env_file):
        raise ConfigLoadError(f"No .env file found at {env_file}")

    values = {k: v for k, v in dotenv_values(env_file).items() if v is not None}
    for key in ("SPOTIFY_ID", "SPOTIFY_SECRET", "SPOTIFY_REDIRECT_URI",
                "TOKEN_FILE", "SOURCE_PLAYLIST", "AUTH_TIMEOUT"):
        if os.environ.get(key):
            values[key] = os.environ[key]

    missing = [k for k in ("SPOTIFY_ID", "SPOTIFY_SECRET") if not values.get(k)]
    if missing:
        raise ConfigLoadError(f"Missing {', '.join(missing)} in {env_file}")

    return Config(
        client_id=values["SPOTIFY_ID"],
        client_secret=values["SPOTIFY_SECRET"],
        redirect_uri=values.get("SPOTIFY_REDIRECT_URI") or DEFAULT_REDIRECT_URI,
        token_file=values.get("TOKEN_FILE") or DEFAULT_TOKEN_FILE,
        source_playlist=values.get("SOURCE_PLAYLIST") or DEFAULT_SOURCE_PLAYLIST,
        auth_timeout=parse_timeout(values.get("AUTH_TIMEOUT")),
    )
