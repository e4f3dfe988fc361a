"""Capability variants and the versioned registry.

Usage:
    from capwire.capabilities import Registry

    registry = Registry()
    registry.add_function("add", lambda a, b, reply: reply(None, a + b), "1.0.0")
"""

from __future__ import annotations

from capwire.capabilities.base import (
    Capability,
    CapabilityDescriptor,
    CapabilityKind,
    ConstantCapability,
    FunctionCapability,
    MemberExclusions,
    ModuleCapability,
    RemoteCapability,
    create_capability,
)
from capwire.capabilities.registry import Registry

__all__ = [
    "Capability",
    "CapabilityDescriptor",
    "CapabilityKind",
    "ConstantCapability",
    "FunctionCapability",
    "MemberExclusions",
    "ModuleCapability",
    "Registry",
    "RemoteCapability",
    "create_capability",
]
