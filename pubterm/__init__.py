"""Terminal client for the Public.com trading API."""

__version__ = "0.1.0"
