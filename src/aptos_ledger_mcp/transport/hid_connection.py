"""USB HID connection to a Ledger device.

Device discovery, HID channel framing and the APDU exchange are handled by
``ledgerblue``; this module adapts its dongle to the ``send`` transport
interface and maps its ``CommException`` onto this package's errors.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Sequence

from ledgerblue.comm import getDongle
from ledgerblue.commException import CommException

from ..errors import DeviceError, EncodingError, TransportError
from .base import SW_OK

logger = logging.getLogger(__name__)

LEDGER_VENDOR_ID = 0x2C97
EXCHANGE_TIMEOUT_MS = 20000


@dataclass
class DeviceInfo:
    """Basic device identification from USB descriptors."""

    vendor_id: int = LEDGER_VENDOR_ID
    manufacturer: str = ""
    product: str = ""


class HIDConnection:
    """Manages the connection to a Ledger device through a ledgerblue dongle.

    Implements the ``send`` transport interface used by
    :class:`~aptos_ledger_mcp.client.AptosClient`.

    Usage::

        with HIDConnection() as conn:
            client = AptosClient(conn)
            print(client.get_version())
    """

    def __init__(self, timeout_ms: int = EXCHANGE_TIMEOUT_MS, debug: bool = False) -> None:
        self._timeout_ms = timeout_ms
        self._debug = debug
        self._dongle = None
        self._device_info = DeviceInfo()

    @property
    def connected(self) -> bool:
        return self._dongle is not None

    @property
    def device_info(self) -> DeviceInfo:
        return self._device_info

    def __enter__(self) -> HIDConnection:
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def open(self) -> DeviceInfo:
        """Open the first Ledger device found.

        Raises:
            TransportError: If no device can be found or opened.
        """
        try:
            dongle = getDongle(self._debug)
        except (CommException, OSError) as e:
            raise TransportError(
                f"Could not connect to Ledger device. Ensure the device is "
                f"connected, unlocked, and you have permissions. Last error: {e}"
            ) from e

        self._dongle = dongle
        # The hidapi backend exposes the underlying hid.device
        device = getattr(dongle, "device", None)
        if device is not None and hasattr(device, "get_product_string"):
            self._device_info = DeviceInfo(
                manufacturer=device.get_manufacturer_string() or "",
                product=device.get_product_string() or "",
            )

        logger.info(
            "Connected: %s %s",
            self._device_info.manufacturer,
            self._device_info.product,
        )
        return self._device_info

    def close(self) -> None:
        """Close the connection."""
        if self._dongle is None:
            return

        try:
            self._dongle.close()
        except OSError as e:
            logger.warning("Error closing device: %s", e)
        finally:
            self._dongle = None
            logger.info("Disconnected")

    def exchange(self, apdu: bytes) -> bytes:
        """Send one serialized APDU and return the response with its status word.

        Raises:
            TransportError: If not connected or on I/O failure.
        """
        if self._dongle is None:
            raise TransportError("Not connected to device")

        logger.debug("=> %s", apdu.hex())
        try:
            data = bytes(self._dongle.exchange(apdu, timeout=self._timeout_ms))
            status = SW_OK
        except CommException as e:
            # ledgerblue raises for every status other than success
            data = bytes(e.data or b"")
            status = e.sw
        except OSError as e:
            raise TransportError(f"HID exchange failed: {e}") from e

        response = data + status.to_bytes(2, "big")
        logger.debug("<= %s", response.hex())
        return response

    def send(
        self,
        cla: int,
        ins: int,
        p1: int,
        p2: int,
        data: bytes = b"",
        acceptable_statuses: Sequence[int] = (SW_OK,),
    ) -> bytes:
        """Build an APDU, exchange it, and check the status word.

        Raises:
            DeviceError: If the status word is not acceptable.
        """
        if len(data) > 0xFF:
            raise EncodingError(f"APDU data of {len(data)} bytes exceeds 255")
        response = self.exchange(bytes([cla, ins, p1, p2, len(data)]) + data)
        status = int.from_bytes(response[-2:], "big")
        if status not in acceptable_statuses:
            raise DeviceError(status)
        return response
