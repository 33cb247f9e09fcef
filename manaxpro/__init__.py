"""Synchronous client for the Manax API service: HTTP endpoints and Server-Sent Events streams."""

__version__ = "0.1.0"

__all__ = ["client", "sse", "streaming", "transport", "types"]