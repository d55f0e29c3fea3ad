"""API middleware."""

from tron_gateway.api.middleware.cors import setup_cors

__all__ = ["setup_cors"]
