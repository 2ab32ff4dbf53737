"""Read-only mirror of a collateralized lending position."""

__version__ = "0.1.0"
