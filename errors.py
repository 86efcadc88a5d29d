"""Errors raised by the backup stages.

Every stage raises; only backup.main() decides to terminate the process.
"""


class BackupError(Exception):
    """Base class for all errors that end a backup run."""


class ConfigLoadError(BackupError):
    pass


class CredentialFileUnreadable(BackupError):
    pass


class CredentialFileMalformed(BackupError):
    pass


class CredentialWriteError(BackupError):
    pass


class TokenRefreshFailure(BackupError):
    pass


class OAuthExchangeFailure(BackupError):
    pass


class CallbackListenerError(BackupError):
    pass


class AuthorizationTimeout(BackupError):
    pass


class PlaylistAPIFailure(BackupError):
    pass


class PlaylistNotFound(PlaylistAPIFailure):
    pass
