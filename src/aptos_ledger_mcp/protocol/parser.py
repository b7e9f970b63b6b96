"""Response parsing for device messages.

Every response is ``body || status`` where the status word is the last two
bytes, big-endian. Length-prefixed fields in the body are read through
:class:`ResponseReader`, which refuses to read past the end of the buffer.
"""

from __future__ import annotations

from enum import IntEnum

from ..errors import DeviceError, ProtocolError
from ..models.results import AddressData, AppVersion, SignatureData
from .address import derive_address


class StatusWord(IntEnum):
    """Status words returned by the Aptos app."""

    OK = 0x9000
    DEVICE_LOCKED = 0x5515
    WRONG_LENGTH = 0x6700
    DENIED_BY_USER = 0x6985
    INVALID_DATA = 0x6A80
    WRONG_P1_P2 = 0x6B00
    INS_NOT_SUPPORTED = 0x6D00
    CLA_NOT_SUPPORTED = 0x6E00
    TECHNICAL_PROBLEM = 0x6F00


def split_response(raw: bytes) -> tuple[bytes, int]:
    """Separate a raw response into its body and status word."""
    if len(raw) < 2:
        raise ProtocolError(f"Response of {len(raw)} bytes has no status word")
    return bytes(raw[:-2]), int.from_bytes(raw[-2:], "big")


def check_status(status: int) -> None:
    """Raise :class:`DeviceError` unless ``status`` is the success code."""
    if status != StatusWord.OK:
        raise DeviceError(status)


def check_response(raw: bytes) -> bytes:
    """Split a raw response, check its status and return the body."""
    body, status = split_response(raw)
    check_status(status)
    return body


class ResponseReader:
    """Bounds-checked cursor over a response body."""

    def __init__(self, data: bytes) -> None:
        self._data = bytes(data)
        self._offset = 0

    @property
    def offset(self) -> int:
        return self._offset

    @property
    def remaining(self) -> int:
        return len(self._data) - self._offset

    def read(self, size: int) -> bytes:
        if size < 0 or size > self.remaining:
            raise ProtocolError(
                f"Cannot read {size} bytes at offset {self._offset}, "
                f"only {self.remaining} remain"
            )
        chunk = self._data[self._offset : self._offset + size]
        self._offset += size
        return chunk

    def read_byte(self) -> int:
        return self.read(1)[0]

    def skip(self, size: int) -> None:
        self.read(size)

    def read_length_prefixed(self) -> bytes:
        """Read a one-byte length followed by that many bytes."""
        return self.read(self.read_byte())


def parse_version(body: bytes) -> AppVersion:
    """Parse a GET_VERSION body: major, minor, patch."""
    reader = ResponseReader(body)
    return AppVersion(
        major=reader.read_byte(),
        minor=reader.read_byte(),
        patch=reader.read_byte(),
    )


def parse_public_key(body: bytes) -> AddressData:
    """Parse a GET_PUBLIC_KEY body and derive the address.

    The public key field length counts one reserved prefix byte that
    precedes the key itself; the chain code length is exact::

        [L1] [prefix] [L1 - 1 key bytes] [L2] [L2 chain code bytes]
    """
    reader = ResponseReader(body)
    key_field_len = reader.read_byte()
    if key_field_len == 0:
        raise ProtocolError("Public key field length must count its prefix byte")
    reader.skip(1)
    public_key = reader.read(key_field_len - 1)
    chain_code = reader.read_length_prefixed()
    return AddressData(
        public_key=public_key,
        chain_code=chain_code,
        address=derive_address(public_key),
    )


def parse_signature(body: bytes) -> SignatureData:
    """Parse the final SIGN_TX body: one length byte then the signature."""
    return SignatureData(signature=ResponseReader(body).read_length_prefixed())
