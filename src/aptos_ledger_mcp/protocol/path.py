"""Derivation path model and its wire encoding.

Wire layout::

    +--------+------------------+------------------+-----+
    | Count  |    Index 0       |    Index 1       | ... |
    | 1 byte | 4 bytes, BE      | 4 bytes, BE      |     |
    +--------+------------------+------------------+-----+

Aptos keys are Ed25519, so as per SLIP-0010 every index is hardened.
The hardened marker is carried explicitly on each element and the offset
is only added at encoding time.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, Sequence

from ..errors import EncodingError, ProtocolError

HARDENED = 0x80000000
MAX_PATH_DEPTH = 255

_COMPONENT = re.compile(r"(\d+)['hH]?", re.ASCII)


@dataclass(frozen=True)
class PathElement:
    """One derivation path index plus its hardened marker."""

    index: int
    hardened: bool = True

    def __post_init__(self) -> None:
        if not 0 <= self.index < HARDENED:
            raise EncodingError(
                f"Path index must be 0-{HARDENED - 1}, got {self.index}"
            )

    @classmethod
    def hardened_index(cls, index: int) -> PathElement:
        return cls(index=index, hardened=True)

    @classmethod
    def from_value(cls, value: int) -> PathElement:
        """Split a raw 32-bit value into its index and hardened marker."""
        if not 0 <= value <= 0xFFFFFFFF:
            raise EncodingError(f"Path value must be a 32-bit unsigned integer, got {value}")
        return cls(index=value & ~HARDENED, hardened=bool(value & HARDENED))

    @property
    def value(self) -> int:
        """The 32-bit value sent to the device."""
        return self.index | HARDENED if self.hardened else self.index

    def __str__(self) -> str:
        return f"{self.index}'" if self.hardened else str(self.index)


DerivationPath = tuple[PathElement, ...]


def parse_path(text: str) -> DerivationPath:
    """Parse a BIP-32 style path string such as ``m/44'/637'/0'/0'/0'``.

    Every component is promoted to a hardened index, whether or not it
    carries a ``'`` or ``h`` suffix.

    Raises:
        EncodingError: If a component is empty, not a number, or too large.
    """
    components = text.strip().split("/")
    if components and components[0].lower() == "m":
        components = components[1:]
    if components == [""]:
        return ()

    elements = []
    for component in components:
        match = _COMPONENT.fullmatch(component)
        if match is None:
            raise EncodingError(f"Invalid path component {component!r} in {text!r}")
        elements.append(PathElement.hardened_index(int(match.group(1))))
    return tuple(elements)


def as_path(path: str | Iterable[PathElement | int]) -> DerivationPath:
    """Accept a path string, or an iterable of elements or raw indices.

    Raw integer indices are promoted to hardened like parsed strings.
    """
    if isinstance(path, str):
        return parse_path(path)
    elements = []
    for item in path:
        if isinstance(item, PathElement):
            elements.append(item)
        elif isinstance(item, int) and not isinstance(item, bool):
            elements.append(PathElement.hardened_index(PathElement.from_value(item).index))
        else:
            raise EncodingError(f"Invalid path element {item!r}")
    return tuple(elements)


def format_path(path: Sequence[PathElement]) -> str:
    return "/".join(["m", *(str(e) for e in path)])


def encode_path(path: Sequence[PathElement]) -> bytes:
    """Encode a derivation path into the device's binary layout.

    Raises:
        EncodingError: If the path has more than 255 elements.
    """
    if len(path) > MAX_PATH_DEPTH:
        raise EncodingError(
            f"Derivation path has {len(path)} elements, at most "
            f"{MAX_PATH_DEPTH} can be encoded"
        )
    buf = bytearray([len(path)])
    for element in path:
        buf += element.value.to_bytes(4, "big")
    return bytes(buf)


def decode_path(data: bytes) -> DerivationPath:
    """Decode the binary layout produced by :func:`encode_path`."""
    if not data:
        raise ProtocolError("Empty derivation path buffer")
    count = data[0]
    if len(data) < 1 + 4 * count:
        raise ProtocolError(
            f"Path declares {count} elements but buffer holds "
            f"{(len(data) - 1) // 4}"
        )
    elements = []
    for i in range(count):
        value = int.from_bytes(data[1 + 4 * i : 5 + 4 * i], "big")
        elements.append(PathElement.from_value(value))
    return tuple(elements)
