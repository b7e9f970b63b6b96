"""Typed results returned by the client operations."""

from __future__ import annotations

from dataclasses import dataclass

from ..protocol.address import format_address


@dataclass(frozen=True)
class AppVersion:
    """Version of the Aptos app running on the device."""

    major: int
    minor: int
    patch: int

    @property
    def version(self) -> str:
        return f"{self.major}.{self.minor}.{self.patch}"

    def __str__(self) -> str:
        return self.version

    def to_dict(self) -> dict:
        return {"version": self.version}


@dataclass(frozen=True)
class AddressData:
    """Public key material for one derivation path and its account address."""

    public_key: bytes
    chain_code: bytes
    address: bytes  # SHA3-256 digest, never derived from the chain code

    @property
    def address_hex(self) -> str:
        return format_address(self.address)

    def to_dict(self) -> dict:
        return {
            "public_key": self.public_key.hex(),
            "chain_code": self.chain_code.hex(),
            "address": self.address_hex,
        }

    def __repr__(self) -> str:
        return f"AddressData(address={self.address_hex}, public_key={self.public_key.hex()})"


@dataclass(frozen=True)
class SignatureData:
    """Signature returned at the end of a SIGN_TX exchange."""

    signature: bytes

    def to_dict(self) -> dict:
        return {"signature": self.signature.hex()}
