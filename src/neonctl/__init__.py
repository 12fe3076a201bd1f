"""neonctl: command-line client for the Neon control-plane API."""

__version__ = "0.1.0"
