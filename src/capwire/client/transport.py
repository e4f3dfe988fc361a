"""Transport contract and an in-process transport.

A transport is anything with ``send(envelope, reply)``: it delivers the
plain-data envelope to a remote dispatcher and eventually calls
``reply(error, *values)`` once. Encoding, medium and delivery guarantees are
the transport's business.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from typing import Any, Protocol, runtime_checkable

from capwire.core.console import get_logger
from capwire.core.error_middleware import error_from_wire, error_to_wire
from capwire.core.result import TransportError
from capwire.protocol import ReplyCallback
from capwire.server.dispatcher import Dispatcher

logger = get_logger("transport")


@runtime_checkable
class Transport(Protocol):
    def send(self, envelope: Mapping[str, Any], reply: ReplyCallback) -> None: ...


class LocalTransport:
    """Deliver envelopes to a dispatcher in the same process.

    With ``serialize=True`` (the default) requests and replies are JSON
    round-tripped, so only plain data crosses, and errors travel in their
    wire shape and come back as RemoteError.
    """

    def __init__(self, dispatcher: Dispatcher, *, serialize: bool = True) -> None:
        self._dispatcher = dispatcher
        self._serialize = serialize

    def send(self, envelope: Mapping[str, Any], reply: ReplyCallback) -> None:
        if not self._serialize:
            self._dispatcher.dispatch(envelope, reply)
            return

        try:
            payload = json.loads(json.dumps(envelope))
        except (TypeError, ValueError) as exc:
            reply(TransportError(f"cannot encode request: {exc}", context={"api": envelope.get("apiName")}))
            return

        def _on_reply(error: Any = None, *values: Any) -> None:
            try:
                encoded = json.dumps({"error": error_to_wire(error), "values": list(values)})
            except (TypeError, ValueError) as exc:
                reply(TransportError(f"cannot encode reply: {exc}", context={"api": payload.get("apiName")}))
                return
            decoded = json.loads(encoded)
            reply(error_from_wire(decoded["error"]), *decoded["values"])

        self._dispatcher.dispatch(payload, _on_reply)


__all__ = ["LocalTransport", "Transport"]
