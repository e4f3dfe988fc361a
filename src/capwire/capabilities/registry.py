"""Versioned capability registry.

The registry is the single store of every capability a process exposes:

    registry = Registry(default_version="*")
    registry.add_function("add", add, "1.0.0")
    registry.add_module("fs", fs_api, "2.1.0")
    registry.add_constant("motd", "hello", "0.1.0")

    registry.get("fs", "^2.0.0")           # highest stored 2.x version
    registry.resolve("fs", "^3.0.0")       # Err(NoMatchingVersionError(...))

Entries are keyed by name and exact version. Re-adding a (name, version)
pair replaces the previous capability; nothing is ever removed. There is no
internal locking: callers on several threads must serialize add() and get().
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from typing import Any

from capwire import __version__
from capwire.capabilities.base import (
    Capability,
    CapabilityDescriptor,
    CapabilityKind,
    MemberExclusions,
    create_capability,
)
from capwire.core.config import RegistryConfig
from capwire.core.console import get_logger
from capwire.core.result import (
    CapwireError,
    ConfigurationError,
    Err,
    InvalidCapabilityError,
    InvalidRequestError,
    NoMatchingVersionError,
    Ok,
    Result,
    UnknownCapabilityError,
)
from capwire.core.versioning import best_satisfying, is_valid_range, latest as latest_version
from capwire.protocol import GET_APIS_MEMBER, METADATA_API_NAME

logger = get_logger("registry")


class Registry:
    """Per-process store of capabilities across all their versions."""

    def __init__(
        self,
        default_version: str | None = None,
        *,
        exclusions: MemberExclusions | None = None,
        config: RegistryConfig | None = None,
    ) -> None:
        """
        Initialize the registry.

        Args:
            default_version: Version range applied when a lookup names none.
                Falls back to ``config.default_version``.
            exclusions: Default member exclusions for add_module(). Falls back
                to the exclusions in ``config``.
            config: Registry settings; defaults to ``RegistryConfig()``. Config
                files and ``CAPWIRE_REGISTRY__*`` variables are not read here;
                pass ``load_config()[0].registry`` to apply them.

        Raises:
            ConfigurationError: the default version is not a range expression.
        """
        config = config or RegistryConfig()
        self._default_version = default_version or config.default_version
        if not is_valid_range(self._default_version):
            raise ConfigurationError(f"invalid default version range {self._default_version!r}")
        self._exclusions = exclusions or MemberExclusions(
            exclude_exact=frozenset(config.exclude_exact),
            exclude_prefix=frozenset(config.exclude_prefix),
            exclude_pattern=tuple(config.exclude_pattern),
        )
        self._entries: dict[str, dict[str, Capability]] = {}

        # Imported here: metadata depends on this module.
        from capwire.server.metadata import MetadataApi

        self.add_module(
            METADATA_API_NAME,
            MetadataApi(self),
            __version__,
            MemberExclusions(),
            members=[GET_APIS_MEMBER],
        )

    @property
    def default_version(self) -> str:
        return self._default_version

    @property
    def exclusions(self) -> MemberExclusions:
        return self._exclusions

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def add(self, kind: CapabilityKind | str, name: str, artifact: Any, version: str, **options: Any) -> Capability:
        """Construct a capability of ``kind`` and store it under (name, version).

        Raises:
            InvalidCapabilityError: name or version is invalid, or the artifact
                does not fit the kind.
        """
        if not isinstance(name, str) or not name:
            raise InvalidCapabilityError("api name must be a non-empty string", context={"name": name})

        if kind == CapabilityKind.MODULE:
            options.setdefault("exclusions", self._exclusions)

        capability = create_capability(kind, name, artifact, version, **options)
        versions = self._entries.setdefault(name, {})
        if capability.version in versions:
            logger.debug("replacing api %s@%s", name, capability.version)
        versions[capability.version] = capability
        logger.debug("added %s api %s@%s", capability.kind.value, name, capability.version)
        return capability

    def add_function(self, name: str, fn: Callable[..., Any], version: str) -> Capability:
        return self.add(CapabilityKind.FUNCTION, name, fn, version)

    def add_module(
        self,
        name: str,
        module: Any,
        version: str,
        exclusions: MemberExclusions | None = None,
        *,
        members: Iterable[str] | None = None,
    ) -> Capability:
        options: dict[str, Any] = {}
        if exclusions is not None:
            options["exclusions"] = exclusions
        if members is not None:
            options["members"] = members
        return self.add(CapabilityKind.MODULE, name, module, version, **options)

    def add_constant(self, name: str, value: Any, version: str) -> Capability:
        return self.add(CapabilityKind.CONSTANT, name, value, version)

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    def resolve(self, name: str, version_range: str | None = None) -> Result[Capability, CapwireError]:
        """Find the highest stored version of ``name`` satisfying ``version_range``.

        Args:
            name: The capability name
            version_range: A semver range expression; defaults to the
                registry's default version

        Returns:
            Ok(capability), or Err with UnknownCapabilityError when nothing is
            stored under ``name``, InvalidRequestError when the range does not
            parse, and NoMatchingVersionError when no stored
            version satisfies the range.
        """
        versions = self._entries.get(name)
        if not versions:
            return Err(UnknownCapabilityError(f"remote does not expose {name} api"))

        target = version_range if isinstance(version_range, str) and version_range else self._default_version
        if not is_valid_range(target):
            return Err(InvalidRequestError(f"invalid version range {target!r}", context={"api": name}))
        best = best_satisfying(versions, target)
        if best is None:
            return Err(
                NoMatchingVersionError(
                    f"could not find an api version that satisfies {target} for api {name}",
                    context={"available": ", ".join(sorted(versions))},
                )
            )
        return Ok(versions[best])

    def get(self, name: str, version_range: str | None = None) -> Capability:
        """Like resolve(), raising the error instead of returning it."""
        return self.resolve(name, version_range).unwrap()

    def get_artifact(self, name: str, version_range: str | None = None) -> Any:
        return self.resolve(name, version_range).map(lambda capability: capability.artifact).unwrap()

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def names(self, *, include_reserved: bool = False) -> list[str]:
        return [name for name in self._entries if include_reserved or name != METADATA_API_NAME]

    def versions(self, name: str) -> list[str]:
        return list(self._entries.get(name, {}))

    def latest(self, name: str) -> Capability | None:
        """Return the capability at the highest released version of ``name``.

        Prereleases are not considered, so a name stored only as prereleases
        has no latest version.
        """
        version = latest_version(self._entries.get(name, {}))
        if version is None:
            return None
        return self._entries[name][version]

    def descriptors(self) -> dict[str, CapabilityDescriptor]:
        """Descriptor of the latest version of every non-reserved name.

        Names without a released version are left out.
        """
        result: dict[str, CapabilityDescriptor] = {}
        for name in self.names():
            capability = self.latest(name)
            if capability is not None:
                result[name] = capability.descriptor
        return result

    def __contains__(self, name: object) -> bool:
        return name in self._entries

    def __len__(self) -> int:
        return sum(len(versions) for versions in self._entries.values())


__all__ = ["Registry"]
