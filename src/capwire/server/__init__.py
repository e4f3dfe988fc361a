"""Exposing side: request dispatch and the built-in self-description."""

from __future__ import annotations

from capwire.server.dispatcher import Dispatcher
from capwire.server.metadata import MetadataApi, describe_registry

__all__ = ["Dispatcher", "MetadataApi", "describe_registry"]
