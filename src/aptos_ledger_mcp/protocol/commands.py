"""Instruction codes and request builders for the Aptos app."""

from __future__ import annotations

from enum import IntEnum
from typing import Sequence

from .framing import ApduRequest, P2_LAST, P2_MORE, build_apdu, build_frames
from .path import PathElement, encode_path

P1_NON_CONFIRM = 0x00
P1_CONFIRM = 0x01
P1_START = 0x00
# First P1 of the transaction chunks, after the path frame at P1_START
P1_TX_FIRST = 0x01


class Instruction(IntEnum):
    """Instruction identifiers understood by the Aptos app."""

    GET_VERSION = 0x03
    GET_PUBLIC_KEY = 0x05
    SIGN_TX = 0x06


def build_get_version() -> ApduRequest:
    """Build a GET_VERSION request (no payload, no confirmation)."""
    return build_apdu(Instruction.GET_VERSION, P1_NON_CONFIRM, P2_LAST)


def build_get_public_key(path: Sequence[PathElement], display: bool = False) -> ApduRequest:
    """Build a GET_PUBLIC_KEY request.

    Args:
        path: Derivation path of the key.
        display: Ask the device to show the address for confirmation.
    """
    p1 = P1_CONFIRM if display else P1_NON_CONFIRM
    return build_apdu(Instruction.GET_PUBLIC_KEY, p1, P2_LAST, encode_path(path))


def build_sign_path(path: Sequence[PathElement]) -> ApduRequest:
    """Build the first SIGN_TX frame, which primes the device with the key path."""
    return build_apdu(Instruction.SIGN_TX, P1_START, P2_MORE, encode_path(path))


def build_sign_chunks(tx: bytes) -> list[ApduRequest]:
    """Build the SIGN_TX frames carrying the serialized transaction."""
    return build_frames(Instruction.SIGN_TX, P1_TX_FIRST, P2_LAST, tx)
