#!/usr/bin/env python3
"""
Back up your weekly Spotify recommendations into a dated private playlist.

Usage:
  python3 backup.py                                  # Back up "Discover Weekly"
  python3 backup.py --playlist "Release Radar"       # Back up another playlist
  python3 backup.py --env-file ~/backup.env          # Use another .env file
  python3 backup.py --timeout 300                    # Give up on browser login after 5 minutes
  python3 backup.py -v                               # Debug output on the console

The first run prints a login URL; later runs reuse (and refresh) token.data.
"""

import argparse
import logging
import sys

from authorizer import Authorizer
from config import DEFAULT_ENV_FILE, load_config, parse_timeout
from errors import BackupError
from log_setup import get_logger, reset_latest, set_console_level, use_log_dir
from playlist_backup import backup_playlist

log = get_logger("backup")


class HelpOnErrorParser(argparse.ArgumentParser):
    def error(self, message):
        self.print_help(sys.stderr)
        sys.stderr.write(f"\nerror: {message}\n")
        sys.exit(2)


def build_parser():
    parser = HelpOnErrorParser(description="Back up a Spotify playlist into a weekly copy")
    parser.add_argument("--env-file", default=DEFAULT_ENV_FILE, help="Path to the .env file (default: .env)")
    parser.add_argument("--token-file", help="Credential file (default: TOKEN_FILE or token.data)")
    parser.add_argument("--playlist", metavar="NAME", help="Playlist to back up (default: SOURCE_PLAYLIST or Discover Weekly)")
    parser.add_argument("--timeout", metavar="SECONDS", help="Give up waiting for the browser login after SECONDS")
    parser.add_argument("--log-dir", metavar="DIR", help="Where to write log files (default: WEEKLY_BACKUP_LOG_DIR or ./logs)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Show debug output on the console")
    return parser


def run(args):
    config = load_config(args.env_file)
    if args.token_file:
        config.token_file = args.token_file
    if args.playlist:
        config.source_playlist = args.playlist
    if args.timeout is not None:
        config.auth_timeout = parse_timeout(args.timeout)

    sp = Authorizer(config).authorize()
    return backup_playlist(sp, config.source_playlist)


def main(argv=None):
    args = build_parser().parse_args(argv)
    if args.log_dir:
        use_log_dir(args.log_dir)
    reset_latest()
    if args.verbose:
        set_console_level(logging.DEBUG)

    try:
        run(args)
    except BackupError as e:
        log.error(f"Error: {e}")
        sys.exit(1)
    except KeyboardInterrupt:
        log.error("Interrupted.")
        sys.exit(130)


if __name__ == "__main__":
    main()
