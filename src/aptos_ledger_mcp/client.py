"""High-level client for the Aptos app on a Ledger device.

Each public operation issues one or more strictly sequential APDU
exchanges over the transport it is given. The status word of every
response is checked before the next frame is sent, and the first error
aborts the whole operation.
"""

from __future__ import annotations

import logging
import threading
from enum import Enum
from functools import wraps
from typing import Iterable

from .errors import DeviceBusyError, ProtocolError
from .models.results import AddressData, AppVersion, SignatureData
from .protocol.commands import (
    build_get_public_key,
    build_get_version,
    build_sign_chunks,
    build_sign_path,
)
from .protocol.framing import ApduRequest
from .protocol.parser import (
    StatusWord,
    check_response,
    parse_public_key,
    parse_signature,
    parse_version,
)
from .protocol.path import PathElement, as_path
from .transport.base import Transport

logger = logging.getLogger(__name__)


def _exclusive(method):
    """Refuse to start an operation while another one is in flight."""

    @wraps(method)
    def wrapper(self, *args, **kwargs):
        if not self._lock.acquire(blocking=False):
            raise DeviceBusyError(
                f"Cannot start {method.__name__}: another operation is pending on the device"
            )
        try:
            return method(self, *args, **kwargs)
        finally:
            self._lock.release()

    return wrapper


def exchange(transport: Transport, apdu: ApduRequest) -> bytes:
    """Send one frame and return its body once the status word is OK."""
    logger.debug("=> %r", apdu)
    raw = transport.send(
        apdu.cla, apdu.ins, apdu.p1, apdu.p2, apdu.data, [StatusWord.OK]
    )
    logger.debug("<= %s", bytes(raw).hex())
    return check_response(raw)


class SignState(Enum):
    """Phases of a SIGN_TX exchange."""

    IDLE = "idle"
    PATH_SENT = "path_sent"
    TX_CHUNK = "tx_chunk"
    TX_SENT = "tx_sent"
    ABORTED = "aborted"


class SignTransactionSession:
    """State machine driving one SIGN_TX exchange.

    ``IDLE -> PATH_SENT -> TX_CHUNK (while chunks remain) -> TX_SENT``.
    Any failure moves the session to ``ABORTED`` and re-raises; there is
    no resume.
    """

    def __init__(self, transport: Transport, path: Iterable[PathElement], tx: bytes) -> None:
        self._transport = transport
        self._path = tuple(path)
        self._chunks = build_sign_chunks(bytes(tx))
        self._next_chunk = 0
        self.state = SignState.IDLE
        self.signature: SignatureData | None = None

    @property
    def frames_remaining(self) -> int:
        return len(self._chunks) - self._next_chunk

    def _expect(self, *states: SignState) -> None:
        if self.state not in states:
            raise ProtocolError(
                f"Sign session is {self.state.value}, expected "
                f"{' or '.join(s.value for s in states)}"
            )

    def _abort(self) -> None:
        logger.debug(
            "Sign session aborted in state %s with %d frame(s) unsent",
            self.state.value,
            self.frames_remaining,
        )
        self.state = SignState.ABORTED

    def send_path(self) -> None:
        """Prime the device with the signing key path."""
        self._expect(SignState.IDLE)
        try:
            exchange(self._transport, build_sign_path(self._path))
        except Exception:
            self._abort()
            raise
        self.state = SignState.PATH_SENT

    def send_chunk(self) -> None:
        """Send the next transaction frame.

        Intermediate responses are only status-checked; the last one is
        parsed for the signature.
        """
        self._expect(SignState.PATH_SENT, SignState.TX_CHUNK)
        apdu = self._chunks[self._next_chunk]
        try:
            body = exchange(self._transport, apdu)
            if apdu.is_last:
                self.signature = parse_signature(body)
        except Exception:
            self._abort()
            raise
        self._next_chunk += 1
        self.state = SignState.TX_SENT if apdu.is_last else SignState.TX_CHUNK

    def run(self) -> SignatureData:
        """Drive the session to completion and return the signature."""
        self.send_path()
        while self.state is not SignState.TX_SENT:
            self.send_chunk()
        return self.signature


class AptosClient:
    """Aptos app API.

    The transport is owned by the caller and is never opened, closed or
    reconfigured here.

    Example::

        client = AptosClient(transport)
        client.get_address("m/44'/637'/0'/0'/0'").address_hex
    """

    def __init__(self, transport: Transport) -> None:
        self.transport = transport
        self._lock = threading.Lock()

    @_exclusive
    def get_version(self) -> AppVersion:
        """Get the version of the Aptos app."""
        body = exchange(self.transport, build_get_version())
        version = parse_version(body)
        logger.info("Aptos app version %s", version)
        return version

    @_exclusive
    def get_address(
        self, path: str | Iterable[PathElement | int], display: bool = False
    ) -> AddressData:
        """Get the public key, chain code and address for a derivation path.

        Because Aptos uses Ed25519 keys, every path index is hardened.

        Args:
            path: A path string such as ``m/44'/637'/0'/0'/0'`` or a
                sequence of :class:`PathElement` or raw 32-bit indices.
            display: Ask the device to display the address for confirmation.
        """
        body = exchange(self.transport, build_get_public_key(as_path(path), display))
        return parse_public_key(body)

    @_exclusive
    def sign_transaction(
        self, path: str | Iterable[PathElement | int], tx: bytes
    ) -> SignatureData:
        """Sign a serialized transaction with the key at ``path``."""
        session = SignTransactionSession(self.transport, as_path(path), tx)
        logger.debug(
            "Signing %d-byte transaction in %d frame(s)", len(tx), session.frames_remaining
        )
        return session.run()
