"""Exception hierarchy for the Aptos Ledger client.

Every failure aborts the operation in progress; nothing is retried and no
partial result is returned.
"""

from __future__ import annotations


class LedgerError(Exception):
    """Base class for all errors raised by this package."""


class EncodingError(LedgerError, ValueError):
    """A request could not be encoded (path too long, bad path text, ...)."""


class TransportError(LedgerError, ConnectionError):
    """The connection to the device failed or produced a malformed packet."""


class DeviceBusyError(TransportError):
    """An operation was started while another one is still in flight."""


class ProtocolError(LedgerError):
    """The device response does not match the expected layout."""


class DeviceError(LedgerError):
    """The device answered with a non-success status word."""

    def __init__(self, status: int, message: str | None = None) -> None:
        self.status = status
        if message is None:
            message = describe_status(status)
        super().__init__(f"Failure with status code 0x{status:04X}: {message}")
        self.message = message


_STATUS_MESSAGES: dict[int, str] = {
    0x5515: "device is locked",
    0x6700: "incorrect data length",
    0x6985: "request denied by the user",
    0x6A80: "invalid data",
    0x6B00: "incorrect p1/p2",
    0x6D00: "instruction not supported",
    0x6E00: "class not supported (is the Aptos app open?)",
    0x6F00: "technical problem",
}


def describe_status(status: int) -> str:
    """Return a short human description of a status word."""
    return _STATUS_MESSAGES.get(status, "unknown error")
