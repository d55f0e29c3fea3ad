"""Persistence: async SQLAlchemy engine and session management."""

from tron_gateway.datastore.client import Datastore, engine_options

__all__ = ["Datastore", "engine_options"]
