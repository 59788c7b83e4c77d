"""
Error taxonomy shared by the item model and the sync engine.

Every failure a sync session can hit has its own type so the
command line can report it without guessing.
"""

from __future__ import annotations


class MtdError(Exception):
    """Base class for all errors raised by mtd."""


class NotFound(MtdError):
    """An item-model operation referenced an id that does not exist."""

    def __init__(self, kind: str, item_id: int):
        self.kind = kind
        self.item_id = item_id
        super().__init__(f"No {kind} with the given id: {item_id}")


class SyncError(MtdError):
    """Base class for failures that abort a sync session."""


class TransportError(SyncError):
    """The byte stream to the peer failed."""


class ConnectionRefused(TransportError):
    """The server could not be reached within the configured timeout."""


class Timeout(TransportError):
    """The peer did not deliver a complete frame in time."""


class ConnectionClosed(TransportError):
    """The peer went away or a write could not be completed."""


class FrameTooLarge(ConnectionClosed):
    """A frame length exceeded the accepted maximum."""


class AuthenticationFailure(SyncError):
    """A frame did not decrypt: wrong secret, tampering or corruption."""


class MalformedPayload(SyncError):
    """A frame decrypted fine but did not contain a valid collection."""


class StorageError(MtdError):
    """The stored list could not be read back."""
