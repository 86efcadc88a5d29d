"""Back up a playlist into a new private playlist labelled with the ISO week.

Search policy: the first search result for the source name is used as-is.
If several playlists share the name, no disambiguation is attempted.
"""

from datetime import datetime, timezone

import requests
import spotipy.exceptions

from errors import PlaylistAPIFailure, PlaylistNotFound
from log_setup import get_logger

PLAYLIST_ADD_BATCH_SIZE = 100
SEARCH_LIMIT = 10

log = get_logger("backup")

_API_ERRORS = (spotipy.exceptions.SpotifyException, requests.exceptions.RequestException)


def week_label(now=None):
    """Return (iso_year, iso_week) for now (UTC)."""
    now = now or datetime.now(timezone.utc)
    year, week, _ = now.astimezone(timezone.utc).isocalendar()
    return year, week


def backup_name(year, week):
    return f"Backup year: {year} week: {week}"


def find_playlist(sp, name):
    """Return the id of the first playlist the search returns for name."""
    try:
        result = sp.search(q=name, type="playlist", limit=SEARCH_LIMIT)
    except _API_ERRORS as e:
        raise PlaylistAPIFailure(f"could not get playlists: {e}") from e

    items = [p for p in (result.get("playlists") or {}).get("items") or [] if p]
    if not items:
        raise PlaylistNotFound(f"no playlist found for '{name}'")

    first = items[0]
    log.debug(f"Using playlist '{first.get('name')}' ({first['id']}) out of {len(items)} result(s)")
    return first["id"]


def get_track_ids(sp, playlist_id):
    """Read every track id of a playlist, in playlist order."""
    track_ids = []
    skipped = 0
    try:
        page = sp.playlist_items(playlist_id, additional_types=("track",))
        while page:
            for item in page.get("items", []):
                track = item.get("track") if item else None
                if not track or not track.get("id"):
                    skipped += 1
                    continue
                track_ids.append(track["id"])
            page = sp.next(page) if page.get("next") else None
    except _API_ERRORS as e:
        raise PlaylistAPIFailure(f"could not get playlist {playlist_id}: {e}") from e

    if skipped:
        log.debug(f"Skipped {skipped} items without a track id (local files or removed tracks)")
    return track_ids


def create_backup(sp, user_id, name, track_ids):
    """Create a private playlist and add track_ids to it in order. Returns its id."""
    try:
        result = sp.user_playlist_create(user_id, name, public=False, description="")
    except _API_ERRORS as e:
        raise PlaylistAPIFailure(f"could not create playlist: {e}") from e
    playlist_id = result["id"]
    log.debug(f"Created playlist: {playlist_id}")

    uris = [f"spotify:track:{tid}" for tid in track_ids]
    try:
        for batch_start in range(0, len(uris), PLAYLIST_ADD_BATCH_SIZE):
            batch = uris[batch_start:batch_start + PLAYLIST_ADD_BATCH_SIZE]
            sp.playlist_add_items(playlist_id, batch)
    except _API_ERRORS as e:
        raise PlaylistAPIFailure(f"could not add tracks to '{name}': {e}") from e
    return playlist_id


def backup_playlist(sp, source_name, now=None):
    """Copy the tracks of source_name into a new weekly backup playlist."""
    try:
        user_id = sp.current_user()["id"]
    except _API_ERRORS as e:
        raise PlaylistAPIFailure(f"could not get current user: {e}") from e

    source_id = find_playlist(sp, source_name)
    track_ids = get_track_ids(sp, source_id)
    log.info(f"{source_name}: {len(track_ids)} tracks")

    name = backup_name(*week_label(now))
    playlist_id = create_backup(sp, user_id, name, track_ids)
    log.info(f"Created '{name}' with {len(track_ids)} tracks")

    return {"playlist_id": playlist_id, "name": name, "tracks": track_ids}
