"""MCP server entry point for the Aptos Ledger app.

Exposes tools and resources via the Model Context Protocol
using the official Python MCP SDK with stdio transport.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from mcp.server.fastmcp import FastMCP

from .client import AptosClient
from .errors import DeviceError, LedgerError
from .protocol.path import format_path, parse_path
from .transport.hid_connection import HIDConnection

logger = logging.getLogger(__name__)

mcp = FastMCP(
    "aptos-ledger",
    instructions="MCP server for the Aptos app on Ledger hardware wallets",
)

# Global connection state
_connection: HIDConnection | None = None
_client: AptosClient | None = None


def _get_client() -> AptosClient:
    """Get the client bound to the active connection, raising if not connected."""
    global _client
    if _connection is None or not _connection.connected:
        raise RuntimeError(
            "Not connected to device. Use the 'connect' tool first."
        )
    if _client is None or _client.transport is not _connection:
        _client = AptosClient(_connection)
    return _client


def _error(e: Exception) -> dict[str, Any]:
    result: dict[str, Any] = {"error": str(e)}
    if isinstance(e, DeviceError):
        result["status"] = f"0x{e.status:04X}"
    return result


# ─── CONNECTION TOOLS ─────────────────────────────────────────────────

@mcp.tool()
def connect() -> dict[str, Any]:
    """Establish a USB connection to the Ledger device.

    Auto-discovers the device by the Ledger USB vendor ID (0x2C97), then
    queries the Aptos app version to confirm the app is open.
    """
    global _connection
    if _connection is not None and _connection.connected:
        return {
            "connected": True,
            "message": "Already connected",
            "model": _connection.device_info.product,
        }

    _connection = HIDConnection()
    try:
        info = _connection.open()
    except LedgerError as e:
        _connection = None
        return _error(e)

    result: dict[str, Any] = {
        "connected": True,
        "model": info.product,
        "manufacturer": info.manufacturer,
    }

    try:
        result["app_version"] = _get_client().get_version().version
    except LedgerError as e:
        logger.warning("Aptos app did not answer: %s", e)
        result["warning"] = f"Aptos app not reachable: {e}"

    return result


@mcp.tool()
def disconnect() -> dict[str, bool]:
    """Close the USB connection to the device."""
    global _connection, _client
    _client = None
    if _connection is None:
        return {"disconnected": True}
    _connection.close()
    _connection = None
    return {"disconnected": True}


# ─── APP TOOLS ────────────────────────────────────────────────────────

@mcp.tool()
def get_app_version() -> dict[str, Any]:
    """Read the version of the Aptos app running on the device."""
    client = _get_client()
    try:
        return client.get_version().to_dict()
    except LedgerError as e:
        return _error(e)


@mcp.tool()
def get_address(path: str, display: bool = False) -> dict[str, Any]:
    """Derive the public key and account address for a BIP-32 path.

    Every path index is promoted to hardened, as Aptos uses Ed25519 keys.

    Args:
        path: Derivation path, e.g. "m/44'/637'/0'/0'/0'".
        display: Show the address on the device for confirmation.
    """
    client = _get_client()
    try:
        elements = parse_path(path)
        result = client.get_address(elements, display=display).to_dict()
    except LedgerError as e:
        return _error(e)
    result["path"] = format_path(elements)
    return result


@mcp.tool()
def sign_transaction(path: str, transaction_hex: str) -> dict[str, Any]:
    """Sign a serialized Aptos transaction on the device.

    The user must approve the transaction on the device screen.

    Args:
        path: Derivation path of the signing key.
        transaction_hex: Signing message bytes, hex encoded (an optional
            0x prefix is accepted).
    """
    text = transaction_hex.strip()
    if text.lower().startswith("0x"):
        text = text[2:]
    try:
        tx = bytes.fromhex(text)
    except ValueError:
        return {"error": "transaction_hex is not valid hex"}

    client = _get_client()
    try:
        result = client.sign_transaction(parse_path(path), tx).to_dict()
    except LedgerError as e:
        return _error(e)
    result["tx_length"] = len(tx)
    return result


# ─── RESOURCES ───────────────────────────────────────────────────────

@mcp.resource("aptos://device/info")
def resource_device_info() -> str:
    """Connected device identification and Aptos app version."""
    if _connection is None or not _connection.connected:
        return json.dumps({"connected": False})

    info = _connection.device_info
    data: dict[str, Any] = {
        "connected": True,
        "manufacturer": info.manufacturer,
        "model": info.product,
    }
    try:
        data["app_version"] = _get_client().get_version().version
    except LedgerError as e:
        data["error"] = str(e)
    return json.dumps(data, indent=2)


# ─── ENTRY POINT ─────────────────────────────────────────────────────

def main():
    """Run the MCP server with stdio transport."""
    logging.basicConfig(level=logging.INFO)
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
