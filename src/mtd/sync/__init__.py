"""
Encrypted sync -- one server, many clients, one merged list.

Every payload is sealed with AES-256-GCM under the shared secret,
framed with a length prefix, and reconciled on arrival.
"""

from .crypt import SecureCodec
from .merge import MergeReport, merge, reconcile
from .session import SessionState, SyncClient, SyncOutcome, SyncServer
from .transport import FrameTransport

__all__ = [
    "FrameTransport",
    "MergeReport",
    "SecureCodec",
    "SessionState",
    "SyncClient",
    "SyncOutcome",
    "SyncServer",
    "merge",
    "reconcile",
]
