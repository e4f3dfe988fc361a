"""Remote proxies for the calling side.

A client asks the remote self-description capability what is callable and
synthesizes stand-ins for it:

    client = Client(transport)
    client.refresh(lambda err, rpc: rpc.fs.read("a.txt", on_read))

Every proxy call takes its callback as the last positional argument and
sends ``{"apiName", "memberName"?, "args"}`` through the transport. The
callback receives the remote reply unchanged. Each refresh rebuilds
``client.rpc`` wholesale; proxies from earlier refreshes keep working for as
long as their capability exists remotely.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator, Mapping
from typing import Any

from pydantic import ValidationError

from capwire.capabilities.base import CapabilityDescriptor, CapabilityKind
from capwire.core.console import get_logger
from capwire.core.result import (
    CapwireError,
    ContractViolationError,
    MissingCallbackError,
    Result,
    TransportError,
)
from capwire.core.versioning import ANY_VERSION
from capwire.protocol import (
    GET_APIS_MEMBER,
    METADATA_API_NAME,
    Reply,
    ReplyCallback,
    Request,
    future_reply,
)

logger = get_logger("client")

SendFn = Callable[[Request, ReplyCallback], None]


class ProxyNamespace:
    """Attribute and item access over a fixed set of proxies."""

    __slots__ = ("_label", "_entries")

    def __init__(self, label: str, entries: Mapping[str, Any]) -> None:
        self._label = label
        self._entries = dict(entries)

    def __getattr__(self, name: str) -> Any:
        entries = object.__getattribute__(self, "_entries")
        try:
            return entries[name]
        except KeyError:
            raise AttributeError(f"{self._label} has no remote member {name!r}") from None

    def __getitem__(self, name: str) -> Any:
        return self._entries[name]

    def __contains__(self, name: object) -> bool:
        return name in self._entries

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __dir__(self) -> list[str]:
        return list(self._entries)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._label!r}, {sorted(self._entries)})"


class RemoteFunction:
    """Callable stand-in for one remote function, constant or module member."""

    def __init__(self, send: SendFn, api_name: str, member_name: str | None = None) -> None:
        self._send = send
        self.api_name = api_name
        self.member_name = member_name

    def __call__(self, *args: Any) -> None:
        if not args or not callable(args[-1]):
            raise MissingCallbackError("missing callback argument", context={"api": self._label})
        *params, callback = args
        self._send(self._request(params), callback)

    async def acall(self, *args: Any) -> Result[Any, Any]:
        """Send the call and await the reply as a Result."""
        reply, future = future_reply()
        self._send(self._request(list(args)), reply)
        return await future

    def _request(self, params: list[Any]) -> Request:
        return Request(api_name=self.api_name, member_name=self.member_name, args=tuple(params))

    @property
    def _label(self) -> str:
        return f"{self.api_name}.{self.member_name}" if self.member_name else self.api_name

    def __repr__(self) -> str:
        return f"RemoteFunction({self._label!r})"


class RemoteModule(ProxyNamespace):
    """Stand-in for a remote module; its attributes are exactly the member names."""


class RemoteApis(ProxyNamespace):
    """All proxies built from one descriptor document."""


def build_proxies(descriptors: Mapping[str, Any], send: SendFn) -> RemoteApis:
    """Synthesize one proxy per descriptor, skipping the reserved name.

    Raises:
        CapwireError: a descriptor does not have the descriptor shape.
    """
    proxies: dict[str, RemoteFunction | RemoteModule] = {}
    for name, raw in descriptors.items():
        if name == METADATA_API_NAME:
            continue
        try:
            descriptor = CapabilityDescriptor.model_validate(raw)
        except ValidationError as exc:
            raise CapwireError("invalid descriptor document", context={"api": name}) from exc

        if descriptor.kind is CapabilityKind.MODULE:
            members = descriptor.member_names or []
            logger.debug("api '%s' has %d members", name, len(members))
            proxies[name] = RemoteModule(name, {member: RemoteFunction(send, name, member) for member in members})
        else:
            logger.debug("api '%s' is a %s", name, descriptor.kind.value)
            proxies[name] = RemoteFunction(send, name)
    return RemoteApis("rpc", proxies)


class Client:
    """Calling side of a transport.

    Args:
        transport: An object exposing ``send(envelope, reply)``, e.g.::

            client = Client(LocalTransport(dispatcher))
    """

    def __init__(self, transport: Any) -> None:
        if not callable(getattr(transport, "send", None)):
            raise ContractViolationError("transport must expose a send(envelope, reply) method")
        self._transport = transport
        self.rpc = RemoteApis("rpc", {})

    def send(self, request: Request, callback: ReplyCallback) -> None:
        """Hand ``request`` to the transport; ``callback`` gets the reply once."""
        reply = Reply.wrap(callback)
        envelope = request.to_envelope()
        logger.debug("send %s", envelope)
        try:
            self._transport.send(envelope, reply)
        except Exception as exc:
            if reply.done:
                raise
            logger.exception("transport failed to send %s", request.api_name)
            error = TransportError(f"failed to send request: {exc}", context={"api": request.api_name})
            error.__cause__ = exc
            reply(error)

    def send_api_method_call(
        self,
        api_name: str,
        version: str | None,
        member_name: str,
        args: list[Any],
        callback: ReplyCallback,
    ) -> None:
        """Call ``api_name.member_name(*args)`` remotely.

        Example:
            client.send_api_method_call("fs", "*", "write_file", ["test", "test"], on_done)
        """
        logger.debug("send_api_method_call() %s@%s.%s", api_name, version, member_name)
        self.send(Request(api_name=api_name, member_name=member_name, version=version, args=tuple(args)), callback)

    def send_api_call(self, api_name: str, version: str | None, callback: ReplyCallback) -> None:
        """Call a remote function or read a remote constant without arguments."""
        logger.debug("send_api_call() %s@%s", api_name, version)
        self.send(Request(api_name=api_name, version=version), callback)

    def refresh(self, callback: ReplyCallback) -> None:
        """Rebuild ``self.rpc`` from the remote descriptor document.

        ``callback`` receives ``(None, self.rpc)`` on success.
        """
        logger.debug("refresh()")

        def _on_apis(error: Any = None, apis: Any = None, *_: Any) -> None:
            if error is not None:
                callback(error)
                return
            if not isinstance(apis, Mapping):
                callback(CapwireError("invalid descriptor document", context={"type": type(apis).__name__}))
                return
            try:
                rpc = build_proxies(apis, self.send)
            except CapwireError as exc:
                callback(exc)
                return
            self.rpc = rpc
            logger.debug("api names: %s", list(rpc))
            callback(None, self.rpc)

        self.send_api_method_call(METADATA_API_NAME, ANY_VERSION, GET_APIS_MEMBER, [], _on_apis)

    async def arefresh(self) -> Result[RemoteApis, Any]:
        reply, future = future_reply()
        self.refresh(reply)
        return await future

    async def call(
        self,
        api_name: str,
        *args: Any,
        member_name: str | None = None,
        version: str | None = None,
    ) -> Result[Any, Any]:
        """Send one request and await its reply as a Result."""
        reply, future = future_reply()
        self.send(Request(api_name=api_name, member_name=member_name, version=version, args=args), reply)
        return await future

    @classmethod
    def create(cls, transport: Any, callback: ReplyCallback) -> Client:
        """Construct a client and refresh it in one step."""
        client = cls(transport)
        client.refresh(callback)
        return client


__all__ = [
    "Client",
    "ProxyNamespace",
    "RemoteApis",
    "RemoteFunction",
    "RemoteModule",
    "build_proxies",
]
