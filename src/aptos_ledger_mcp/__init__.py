"""Aptos app client for Ledger hardware wallets, with an MCP server front end."""

from .client import AptosClient, SignState, SignTransactionSession
from .errors import (
    DeviceBusyError,
    DeviceError,
    EncodingError,
    LedgerError,
    ProtocolError,
    TransportError,
)
from .models import AddressData, AppVersion, SignatureData
from .protocol.address import derive_address, format_address
from .protocol.path import PathElement, encode_path, parse_path

__version__ = "0.1.0"
