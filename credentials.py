"""Cached OAuth credential and the flat file it lives in.

The file holds one JSON token object:
  {"access_token", "refresh_token", "token_type", "expiry", "scope"}
and is overwritten wholesale every time the credential changes.
"""

import json
import os
import time
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from errors import CredentialFileMalformed, CredentialFileUnreadable, CredentialWriteError

EXPIRY_LEEWAY = 60  # seconds, same margin spotipy uses


def parse_expiry(value):
    """Parse an RFC 3339 expiry. Accepts a trailing 'Z' and nanosecond fractions."""
    if value in (None, ""):
        return None
    if not isinstance(value, str):
        raise ValueError(f"expiry must be a string, got {type(value).__name__}")
    s = value.strip()
    if s.endswith("Z") or s.endswith("z"):
        s = s[:-1] + "+00:00"
    # Trim fractional seconds to microseconds
    if "." in s:
        head, rest = s.split(".", 1)
        digits = len(rest) - len(rest.lstrip("0123456789"))
        s = f"{head}.{rest[:min(digits, 6)].ljust(6, '0')}{rest[digits:]}"
    dt = datetime.fromisoformat(s)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    # Zero time means "no expiry"
    if dt.year <= 1:
        return None
    return dt.astimezone(timezone.utc)


@dataclass
class Credential:
    access_token: str
    refresh_token: Optional[str] = None
    token_type: str = "Bearer"
    expiry: Optional[datetime] = None
    scope: Optional[str] = None

    def is_expired(self, now=None, leeway=EXPIRY_LEEWAY):
        if self.expiry is None:
            return False
        now = now or datetime.now(timezone.utc)
        return self.expiry - timedelta(seconds=leeway) <= now

    def to_json(self):
        data = {"access_token": self.access_token, "token_type": self.token_type}
        if self.refresh_token:
            data["refresh_token"] = self.refresh_token
        data["expiry"] = self.expiry.isoformat() if self.expiry else None
        if self.scope:
            data["scope"] = self.scope
        return data

    @classmethod
    def from_json(cls, obj):
        if not isinstance(obj, dict):
            raise ValueError("token must be a JSON object")
        access_token = obj.get("access_token")
        if not isinstance(access_token, str) or not access_token:
            raise ValueError("token has no access_token")
        return cls(
            access_token=access_token,
            refresh_token=obj.get("refresh_token") or None,
            token_type=obj.get("token_type") or "Bearer",
            expiry=parse_expiry(obj.get("expiry")),
            scope=obj.get("scope") or None,
        )

    def to_token_info(self, default_scope=None):
        """Convert to the token_info dict spotipy's auth managers work with."""
        if self.expiry is not None:
            expires_at = int(self.expiry.timestamp())
        else:
            # No known expiry: treat as valid for the usual hour
            expires_at = int(time.time()) + 3600
        return {
            "access_token": self.access_token,
            "token_type": self.token_type,
            "refresh_token": self.refresh_token,
            "scope": self.scope or default_scope,
            "expires_at": expires_at,
            "expires_in": max(expires_at - int(time.time()), 0),
        }

    @classmethod
    def from_token_info(cls, info):
        expiry = None
        if info.get("expires_at"):
            expiry = datetime.fromtimestamp(int(info["expires_at"]), tz=timezone.utc)
        elif info.get("expires_in"):
            expiry = datetime.now(timezone.utc) + timedelta(seconds=int(info["expires_in"]))
        return cls(
            access_token=info["access_token"],
            refresh_token=info.get("refresh_token") or None,
            token_type=info.get("token_type") or "Bearer",
            expiry=expiry,
            scope=info.get("scope") or None,
        )


class CredentialStore:
    """The single flat credential file."""

    def __init__(self, path):
        self.path = path

    def exists(self):
        return os.path.isfile(self.path)

    def load(self):
        try:
            with open(self.path, encoding="utf-8") as f:
                raw = f.read()
        except (OSError, UnicodeDecodeError) as e:
            raise CredentialFileUnreadable(f"could not read {self.path}: {e}") from e

        try:
            return Credential.from_json(json.loads(raw))
        except (ValueError, TypeError) as e:
            raise CredentialFileMalformed(f"could not unmarshal token in {self.path}: {e}") from e

    def save(self, credential):
        try:
            with open(self.path, "w", encoding="utf-8") as f:
                json.dump(credential.to_json(), f)
        except OSError as e:
            raise CredentialWriteError(f"could not write {self.path}: {e}") from e
