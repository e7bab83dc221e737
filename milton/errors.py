"""Exception types raised across Milton."""
from __future__ import annotations


class MiltonError(Exception):
    """Base class for errors a caller is expected to handle."""
    pass


class ConfigError(MiltonError):
    """Raised when the configuration cannot describe a valid model panel."""
    pass


class StoreError(MiltonError):
    """Raised when durable state cannot be read, decoded or written."""
    pass


class ResolutionError(MiltonError):
    """Raised when a resolution attempt fails before it could be committed."""
    pass
