"""APDU command frames and payload chunking.

Frame layout::

    +-------+-------------+------+------+--------+------------------+
    |  CLA  | Instruction |  P1  |  P2  |   Lc   |     Payload      |
    | 1 byte|   1 byte    |1 byte|1 byte| 1 byte |  0-255 bytes     |
    +-------+-------------+------+------+--------+------------------+

- CLA: 0x5B, the Aptos app class byte
- P2: 0x80 while more frames follow, 0x00 on the last frame
- Lc: number of payload bytes in this frame
"""

from __future__ import annotations

from dataclasses import dataclass

from ..errors import EncodingError

CLA = 0x5B
MAX_APDU_LEN = 255

P2_MORE = 0x80
P2_LAST = 0x00


@dataclass(frozen=True)
class ApduRequest:
    """A single outbound APDU."""

    ins: int
    p1: int
    p2: int
    data: bytes = b""
    cla: int = CLA

    def to_bytes(self) -> bytes:
        return bytes([self.cla, self.ins, self.p1, self.p2, len(self.data)]) + self.data

    @property
    def is_last(self) -> bool:
        return self.p2 != P2_MORE

    def __repr__(self) -> str:
        return (
            f"ApduRequest(cla=0x{self.cla:02X}, ins=0x{self.ins:02X}, "
            f"p1=0x{self.p1:02X}, p2=0x{self.p2:02X}, "
            f"data={self.data.hex() if self.data else '(empty)'})"
        )


def build_apdu(ins: int, p1: int, p2: int, data: bytes = b"") -> ApduRequest:
    """Build a single APDU for a payload known to fit in one frame.

    Raises:
        EncodingError: If the payload is larger than 255 bytes or a
            header field does not fit in a byte.
    """
    if len(data) > MAX_APDU_LEN:
        raise EncodingError(
            f"Payload of {len(data)} bytes exceeds the {MAX_APDU_LEN}-byte frame limit"
        )
    for name, value in (("ins", ins), ("p1", p1), ("p2", p2)):
        if not 0 <= value <= 0xFF:
            raise EncodingError(f"{name} must be 0-255, got {value}")
    return ApduRequest(ins=ins, p1=p1, p2=p2, data=bytes(data))


def build_frames(ins: int, p1: int, p2: int, data: bytes = b"") -> list[ApduRequest]:
    """Split a payload into as many APDUs as needed.

    Every frame except the last carries exactly 255 bytes with P2 set to
    "more", and P1 is incremented after each of them so a multi-frame
    sequence doubles as a sequence counter. The last frame carries the
    remainder with the caller's ``p2``. An empty payload still produces
    one frame.
    """
    frames: list[ApduRequest] = []
    offset = 0
    while len(data) - offset > MAX_APDU_LEN:
        frames.append(build_apdu(ins, p1, P2_MORE, data[offset : offset + MAX_APDU_LEN]))
        offset += MAX_APDU_LEN
        p1 += 1

    frames.append(build_apdu(ins, p1, p2, data[offset:]))
    return frames
