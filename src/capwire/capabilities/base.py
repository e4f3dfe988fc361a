"""Capability variants.

A capability is one named, versioned unit of remotely invokable behavior.
The kind is fixed at registration and each kind dispatches on its own:

    - FunctionCapability: calls the function with ``(*args, reply)``
    - ModuleCapability: calls ``artifact.<member>(*args, reply)``
    - ConstantCapability: replies ``(None, value)`` immediately
    - RemoteCapability: reserved, cannot be constructed yet
"""

from __future__ import annotations

import re
import types
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable, Mapping
from enum import Enum
from typing import Any, ClassVar

from pydantic import BaseModel, ConfigDict, Field, field_validator

from capwire.core.console import get_logger
from capwire.core.result import (
    InvalidCapabilityError,
    InvalidRequestError,
    UnsupportedCapabilityError,
    UnsupportedMemberError,
)
from capwire.core.versioning import clean_version
from capwire.protocol import Reply, Request

logger = get_logger("capabilities")


class CapabilityKind(str, Enum):
    FUNCTION = "Function"
    MODULE = "Module"
    CONSTANT = "Constant"
    REMOTE = "Remote"


class CapabilityDescriptor(BaseModel):
    """Serializable self-description of a capability."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    kind: CapabilityKind
    name: str
    version: str
    member_names: list[str] | None = Field(default=None, alias="memberNames")

    def to_document(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class MemberExclusions(BaseModel):
    """Which module member names are hidden from dispatch."""

    model_config = ConfigDict(frozen=True)

    exclude_exact: frozenset[str] = frozenset({"constructor"})
    exclude_prefix: frozenset[str] = frozenset({"_"})
    exclude_pattern: tuple[str, ...] = ()

    @field_validator("exclude_pattern")
    @classmethod
    def ensure_patterns_compile(cls, v: tuple[str, ...]) -> tuple[str, ...]:
        for pattern in v:
            try:
                re.compile(pattern)
            except re.error as exc:
                # Raised as-is: pydantic only wraps ValueError and AssertionError.
                raise InvalidCapabilityError(
                    f"invalid member exclusion pattern {pattern!r}: {exc}", context={"pattern": pattern}
                ) from exc
        return v

    def excludes(self, name: str) -> bool:
        if name in self.exclude_exact:
            return True
        if any(name.startswith(prefix) for prefix in self.exclude_prefix):
            return True
        return any(re.search(pattern, name) for pattern in self.exclude_pattern)

    def filter(self, names: Iterable[str]) -> list[str]:
        return [name for name in names if not self.excludes(name)]


class Capability(ABC):
    """Base class for all capability kinds."""

    kind: ClassVar[CapabilityKind]

    def __init__(self, name: str, artifact: Any, version: str) -> None:
        if not isinstance(name, str) or not name:
            raise InvalidCapabilityError("missing api name")
        if not version:
            raise InvalidCapabilityError("missing api version", context={"name": name})

        cleaned = clean_version(version)
        if cleaned is None:
            raise InvalidCapabilityError(f'invalid version "{version}"', context={"name": name})

        self._name = name
        self._version = cleaned
        self._artifact = artifact

    @property
    def name(self) -> str:
        return self._name

    @property
    def version(self) -> str:
        return self._version

    @property
    def artifact(self) -> Any:
        return self._artifact

    @property
    def descriptor(self) -> CapabilityDescriptor:
        return CapabilityDescriptor(kind=self.kind, name=self.name, version=self.version)

    @abstractmethod
    def dispatch(self, request: Request, reply: Reply) -> None:
        """Invoke the artifact for ``request``; completion is signalled via ``reply``."""

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.name!r}, {self.version!r})"


class FunctionCapability(Capability):
    kind = CapabilityKind.FUNCTION

    def __init__(self, name: str, fn: Callable[..., Any], version: str) -> None:
        super().__init__(name, fn, version)
        if not callable(fn):
            raise InvalidCapabilityError("function api must be callable", context={"name": name})

    def dispatch(self, request: Request, reply: Reply) -> None:
        self.artifact(*request.args, reply)


class ModuleCapability(Capability):
    """A module, mapping or object whose callable members are exposed.

    Members are either given explicitly or discovered once here: a Python
    module, mapping or plain namespace exposes its own keys, any other object
    exposes the public callables of its class hierarchy.
    """

    kind = CapabilityKind.MODULE

    def __init__(
        self,
        name: str,
        module: Any,
        version: str,
        *,
        members: Iterable[str] | None = None,
        exclusions: MemberExclusions | None = None,
    ) -> None:
        super().__init__(name, module, version)
        self._exclusions = exclusions or MemberExclusions()
        candidates = list(members) if members is not None else _discover_members(module)
        self._member_names = tuple(dict.fromkeys(self._exclusions.filter(candidates)))

    @property
    def member_names(self) -> tuple[str, ...]:
        return self._member_names

    @property
    def descriptor(self) -> CapabilityDescriptor:
        return CapabilityDescriptor(
            kind=self.kind,
            name=self.name,
            version=self.version,
            member_names=list(self._member_names),
        )

    def dispatch(self, request: Request, reply: Reply) -> None:
        member_name = request.member_name

        if member_name is None:
            reply(InvalidRequestError("missing member name", context={"api": self.name}))
            return
        if not member_name.strip():
            reply(InvalidRequestError("empty member name", context={"api": self.name}))
            return

        member = self._lookup(member_name)
        if member is None or not callable(member):
            reply(
                UnsupportedMemberError(
                    "unsupported in this api", context={"api": self.name, "member": member_name}
                )
            )
            return

        member(*request.args, reply)

    def _lookup(self, member_name: str) -> Any:
        if member_name not in self._member_names:
            return None
        if isinstance(self.artifact, Mapping):
            return self.artifact.get(member_name)
        # Bound methods keep the module instance as receiver.
        return getattr(self.artifact, member_name, None)


class ConstantCapability(Capability):
    kind = CapabilityKind.CONSTANT

    def dispatch(self, request: Request, reply: Reply) -> None:
        reply(None, self.artifact)


class RemoteCapability(Capability):
    """Reserved for delegating to another registry; not implemented."""

    kind = CapabilityKind.REMOTE

    def __init__(self, name: str, artifact: Any, version: str) -> None:
        raise UnsupportedCapabilityError("remote capabilities are not supported", context={"name": name})

    def dispatch(self, request: Request, reply: Reply) -> None:  # pragma: no cover - unreachable
        raise NotImplementedError


_CAPABILITY_TYPES: dict[CapabilityKind, type[Capability]] = {
    CapabilityKind.FUNCTION: FunctionCapability,
    CapabilityKind.MODULE: ModuleCapability,
    CapabilityKind.CONSTANT: ConstantCapability,
    CapabilityKind.REMOTE: RemoteCapability,
}


def create_capability(kind: CapabilityKind | str, name: str, artifact: Any, version: str, **options: Any) -> Capability:
    """Construct the capability class registered for ``kind``.

    ``options`` are passed through to ModuleCapability (``members``,
    ``exclusions``) and rejected for the other kinds.
    """
    try:
        kind = CapabilityKind(kind)
    except ValueError as exc:
        raise InvalidCapabilityError(f"unknown capability kind {kind!r}", context={"name": name}) from exc

    cls = _CAPABILITY_TYPES[kind]
    if options and cls is not ModuleCapability:
        raise InvalidCapabilityError(
            f"{kind.value} capabilities take no options", context={"options": sorted(options)}
        )
    return cls(name, artifact, version, **options)


def _discover_members(artifact: Any) -> list[str]:
    if isinstance(artifact, Mapping):
        return [key for key in artifact if isinstance(key, str)]
    if isinstance(artifact, (types.ModuleType, types.SimpleNamespace)):
        return list(vars(artifact))
    # Class-like instance: methods defined anywhere on its class hierarchy.
    names: list[str] = []
    for klass in type(artifact).__mro__:
        if klass is object:
            continue
        for attr, value in vars(klass).items():
            if callable(value) or isinstance(value, (staticmethod, classmethod)):
                names.append(attr)
    return names


__all__ = [
    "Capability",
    "CapabilityDescriptor",
    "CapabilityKind",
    "ConstantCapability",
    "FunctionCapability",
    "MemberExclusions",
    "ModuleCapability",
    "RemoteCapability",
    "create_capability",
]
