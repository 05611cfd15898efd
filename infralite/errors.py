"""
infralite.errors
AUTHOR: carter-vin

Error taxonomy for the sampling and delivery pipeline

Only ConfigError is fatal (startup). Everything else is cycle-local:
the poll loop logs it and keeps running.
"""

from __future__ import annotations


class InfraLiteError(Exception):
    """Base class for agent errors."""


class ConfigError(InfraLiteError):
    """Missing or invalid configuration; process must not enter the poll loop."""


class SourceUnavailable(InfraLiteError):
    """Statistics source missing or unreadable."""


class ParseError(InfraLiteError):
    """Malformed numeric field in a statistics source."""


class SamplerError(InfraLiteError):
    """A sampler could not produce a snapshot."""


class EncodeError(InfraLiteError):
    """Payload serialization or compression failed."""


class DeliveryError(InfraLiteError):
    """Transport failure or non-success status after all attempts."""
