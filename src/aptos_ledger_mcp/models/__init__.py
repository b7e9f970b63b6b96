"""Data models for operation results."""

from .results import AddressData, AppVersion, SignatureData
