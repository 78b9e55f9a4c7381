"""E2E runner service: provisions test API keys and triggers end-to-end runs."""

__version__ = "0.1.0"
