"""capwire - expose named, versioned capabilities over any message transport.

The exposing side registers functions, modules and constants in a Registry
and answers requests through a Dispatcher. The calling side discovers what
is exposed and builds proxies with a Client.

Exports:
    __version__: Package version string.
"""

from __future__ import annotations

__version__ = "0.1.0"

from capwire.capabilities.base import CapabilityDescriptor, CapabilityKind, MemberExclusions
from capwire.capabilities.registry import Registry
from capwire.client.proxy import Client
from capwire.client.transport import LocalTransport, Transport
from capwire.protocol import METADATA_API_NAME, Reply, Request
from capwire.server.dispatcher import Dispatcher

__all__ = [
    "CapabilityDescriptor",
    "CapabilityKind",
    "Client",
    "Dispatcher",
    "LocalTransport",
    "METADATA_API_NAME",
    "MemberExclusions",
    "Registry",
    "Reply",
    "Request",
    "Transport",
    "__version__",
]
