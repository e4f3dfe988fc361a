"""Built-in self-description capability.

Registered by every Registry under the reserved name ``$metadata$``. Its only
member, ``getApis``, replies with the descriptor document: a mapping from
capability name to the descriptor of that name's highest stored version.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from capwire.core.console import get_logger
from capwire.protocol import ReplyCallback

if TYPE_CHECKING:
    from capwire.capabilities.registry import Registry

logger = get_logger("metadata")


def describe_registry(registry: Registry) -> dict[str, dict[str, Any]]:
    """Build the plain-data descriptor document for ``registry``."""
    return {name: descriptor.to_document() for name, descriptor in registry.descriptors().items()}


class MetadataApi:
    def __init__(self, registry: Registry) -> None:
        self._registry = registry

    def getApis(self, reply: ReplyCallback) -> None:  # noqa: N802 - wire member name
        apis = describe_registry(self._registry)
        logger.debug("getApis() -> %s", sorted(apis))
        reply(None, apis)


__all__ = ["MetadataApi", "describe_registry"]
