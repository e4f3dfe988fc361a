"""Calling side: transports and remote proxies."""

from __future__ import annotations

from capwire.client.proxy import Client, RemoteApis, RemoteFunction, RemoteModule, build_proxies
from capwire.client.transport import LocalTransport, Transport

__all__ = [
    "Client",
    "LocalTransport",
    "RemoteApis",
    "RemoteFunction",
    "RemoteModule",
    "Transport",
    "build_proxies",
]
