"""Transport layer: the interface the client consumes and the Ledger USB adapter."""

from .base import SW_OK, Transport
from .hid_connection import DeviceInfo, HIDConnection
