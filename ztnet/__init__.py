"""ZTNET: web management console for ZeroTier networks."""

__version__ = "0.1.0"
