"""
Sync session -- one encrypted exchange between a client and the server.

    client                                server
      |  CONNECTING                          |
      |---- [sealed client list] ----------->|  EXCHANGING
      |                                      |  MERGING     (own list + client's)
      |                                      |  PERSISTING
      |<--- [sealed merged list] ------------|
      |  EXCHANGING                          |  DONE
      |  MERGING     (own list + reply)      |
      |  PERSISTING                          |
      |  DONE                                |

Any step can fail into FAILED. Failures are raised to the caller as
their own exception types and never retried. A server that cannot
authenticate the client's payload answers with an empty frame, which
the client reports as an authentication failure rather than a
dropped connection. Only a payload that has
been fully received, authenticated and decoded is ever merged, so a
failed session never touches stored state.

The server handles one connection at a time; further connections
wait in the listen backlog.
"""

from __future__ import annotations

import logging
import socket
import socketserver
from datetime import datetime
from enum import Enum
from typing import Callable, Optional

from pydantic import BaseModel, Field, ValidationError

from ..errors import (
    AuthenticationFailure,
    ConnectionRefused,
    MalformedPayload,
    MtdError,
    TransportError,
)
from ..models import TdList, utcnow
from ..storage import CollectionStore
from .crypt import SecureCodec
from .merge import MergeReport, reconcile
from .transport import FrameTransport

logger = logging.getLogger("mtd.sync.session")

Clock = Callable[[], datetime]


class SessionState(str, Enum):
    """Where a sync session currently is."""

    CONNECTING = "connecting"
    EXCHANGING = "exchanging"
    MERGING = "merging"
    PERSISTING = "persisting"
    DONE = "done"
    FAILED = "failed"


class SyncOutcome(BaseModel):
    """Result of a completed session."""

    state: SessionState
    peer: Optional[str] = None
    collection: TdList = Field(default_factory=TdList)
    report: MergeReport = Field(default_factory=MergeReport)
    history: list[SessionState] = Field(default_factory=list)


class SyncSession:
    """State and steps shared by both ends of an exchange.

    Args:
        store: Where this instance's list lives.
        secret: Pre-shared secret.
        timeout: Seconds allowed for connecting and for each frame.
        clock: Source of the current instant, used for expiry.
    """

    role = "peer"

    def __init__(
        self,
        store: CollectionStore,
        secret: bytes,
        timeout: float,
        clock: Clock = utcnow,
    ) -> None:
        self.store = store
        self.timeout = timeout
        self.clock = clock
        self._codec = SecureCodec(secret)
        self.state = SessionState.CONNECTING
        self.history: list[SessionState] = [SessionState.CONNECTING]
        self.error: Optional[BaseException] = None

    def _enter(self, state: SessionState) -> None:
        logger.debug("%s session: %s -> %s", self.role, self.state.value, state.value)
        self.state = state
        self.history.append(state)

    def _fail(self, exc: BaseException) -> None:
        self.error = exc
        logger.warning(
            "%s session failed while %s: %s", self.role, self.state.value, exc
        )
        self._enter(SessionState.FAILED)

    def seal(self, collection: TdList) -> bytes:
        return self._codec.encrypt(collection.to_json().encode("utf-8"))

    def open(self, sealed: bytes) -> TdList:
        """Authenticate, decrypt and decode a peer's list.

        Raises:
            AuthenticationFailure: If the payload does not verify.
            MalformedPayload: If it verifies but is not a valid list.
        """
        plaintext = self._codec.decrypt(sealed)
        try:
            return TdList.from_json(plaintext)
        except (ValidationError, ValueError) as exc:
            raise MalformedPayload(f"Peer sent an invalid list: {exc}") from exc

    def merge_and_persist(
        self, local: TdList, remote: TdList, local_first: bool = False
    ) -> tuple[TdList, MergeReport]:
        self._enter(SessionState.MERGING)
        merged, report = reconcile(local, remote, self.clock(), local_first)

        self._enter(SessionState.PERSISTING)
        self.store.save_collection(merged)
        return merged, report

    def outcome(self, collection: TdList, report: MergeReport, peer: str) -> SyncOutcome:
        return SyncOutcome(
            state=self.state,
            peer=peer,
            collection=collection,
            report=report,
            history=list(self.history),
        )


class SyncClient(SyncSession):
    """Client end: sends its list first, adopts the merge of the reply.

    Args:
        address: (host, port) of the server.
        store: Where this instance's list lives.
        secret: Pre-shared secret.
        timeout: Seconds allowed for connecting and for each frame.
        clock: Source of the current instant.
    """

    role = "client"

    def __init__(
        self,
        address: tuple[str, int],
        store: CollectionStore,
        secret: bytes,
        timeout: float,
        clock: Clock = utcnow,
    ) -> None:
        super().__init__(store, secret, timeout, clock)
        self.address = address

    def _connect(self) -> FrameTransport:
        host, port = self.address
        try:
            sock = socket.create_connection((host, port), timeout=self.timeout)
        except OSError as exc:
            raise ConnectionRefused(f"Could not connect to {host}:{port}: {exc}") from exc
        return FrameTransport(sock, timeout=self.timeout)

    def sync(self) -> SyncOutcome:
        """Run one exchange with the server.

        Returns:
            The outcome, in state DONE.

        Raises:
            SyncError: The specific failure; the session is FAILED.
            StorageError: The local list could not be read; nothing was sent.
        """
        peer = "%s:%d" % self.address
        try:
            local = self.store.load_collection()
            transport = self._connect()
            with transport:
                self._enter(SessionState.EXCHANGING)
                transport.send_frame(self.seal(local))
                reply = transport.recv_frame()
                if not reply:
                    raise AuthenticationFailure(
                        f"{peer} could not decrypt our data: the shared secrets differ"
                    )
                remote = self.open(reply)

            merged, report = self.merge_and_persist(local, remote)
        except Exception as exc:
            self._fail(exc)
            raise

        self._enter(SessionState.DONE)
        logger.info(
            "Synced with %s: %d todos, %d tasks",
            peer, len(merged.todos), len(merged.tasks),
        )
        return self.outcome(merged, report, peer)


class ServerSession(SyncSession):
    """Server end: receives first, merges, persists, then replies."""

    role = "server"

    def _refuse(self, transport: FrameTransport) -> None:
        """Tell the client its payload did not authenticate."""
        try:
            transport.send_frame(b"")
        except TransportError as exc:
            logger.debug("Could not send refusal: %s", exc)

    def serve(self, stream, peer: str) -> SyncOutcome:
        """Run one exchange over an accepted connection.

        Raises:
            SyncError: The specific failure; the session is FAILED.
            StorageError: The server's own list could not be read.
        """
        transport = FrameTransport(stream, timeout=self.timeout)
        try:
            self._enter(SessionState.EXCHANGING)
            try:
                remote = self.open(transport.recv_frame())
            except AuthenticationFailure:
                self._refuse(transport)
                raise

            local = self.store.load_collection()
            merged, report = self.merge_and_persist(local, remote, local_first=True)

            transport.send_frame(self.seal(merged))
        except Exception as exc:
            self._fail(exc)
            raise
        finally:
            transport.abort()

        self._enter(SessionState.DONE)
        logger.info(
            "Synced with %s: %d todos, %d tasks (%d added, %d expired)",
            peer, len(merged.todos), len(merged.tasks),
            report.todos_added + report.tasks_added, report.todos_expired,
        )
        return self.outcome(merged, report, peer)


class SyncRequestHandler(socketserver.BaseRequestHandler):
    """Runs one ServerSession per accepted connection."""

    server: "SyncServer"

    def handle(self) -> None:
        peer = "%s:%s" % self.client_address[:2]
        session = ServerSession(
            self.server.store,
            self.server.secret,
            self.server.io_timeout,
            self.server.clock,
        )
        try:
            outcome = session.serve(self.request, peer)
        except MtdError as exc:
            self.server.record_failure(peer, exc)
            return
        self.server.record_success(outcome)


class SyncServer(socketserver.TCPServer):
    """The authoritative instance. Serves sessions strictly one at a time.

    Args:
        address: (host, port) to bind. Port 0 picks a free port.
        store: Where the authoritative list lives.
        secret: Pre-shared secret.
        timeout: Seconds allowed for each frame.
        clock: Source of the current instant.
    """

    allow_reuse_address = True

    def __init__(
        self,
        address: tuple[str, int],
        store: CollectionStore,
        secret: bytes,
        timeout: float,
        clock: Clock = utcnow,
    ) -> None:
        # Fail on a bad secret before binding.
        SecureCodec(secret)
        self.store = store
        self.secret = secret
        self.io_timeout = timeout
        self.clock = clock
        self.sessions_completed = 0
        self.sessions_failed = 0
        self.last_outcome: Optional[SyncOutcome] = None
        self.last_error: Optional[BaseException] = None
        super().__init__(address, SyncRequestHandler)

    @property
    def port(self) -> int:
        return self.server_address[1]

    def record_success(self, outcome: SyncOutcome) -> None:
        self.sessions_completed += 1
        self.last_outcome = outcome

    def record_failure(self, peer: str, exc: BaseException) -> None:
        self.sessions_failed += 1
        self.last_error = exc
        logger.error("Sync with %s failed: %s", peer, exc)

    def handle_error(self, request, client_address) -> None:
        self.sessions_failed += 1
        logger.exception("Unexpected error in sync session with %s", client_address)
