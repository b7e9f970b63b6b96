"""Protocol layer: path encoding, APDU framing, command builders, and response parsing."""

from .framing import ApduRequest, build_apdu, build_frames
from .commands import Instruction
from .path import PathElement, encode_path, parse_path
