"""collabsync exception classes."""


class CollabSyncError(Exception):
    """Base exception for all collabsync errors."""


class ValidationError(CollabSyncError):
    """Raised when a desired collaborator entry is malformed."""


class FormatError(CollabSyncError):
    """Raised when a collaborator document matches no recognized shape."""


class RemoteAccessError(CollabSyncError):
    """Raised on any failure talking to the remote repository."""
