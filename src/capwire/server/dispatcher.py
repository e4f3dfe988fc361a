"""Request dispatch for the exposing side.

Turns an inbound request into a resolved capability and invokes it:

    dispatcher = Dispatcher(registry)
    dispatcher.dispatch(
        {"apiName": "fs", "memberName": "read", "version": "^1.0.0", "args": ["a.txt"]},
        lambda err, *values: ...,
    )

Error handling contract:
- A missing or non-callable reply is a call-site defect and raises
  ContractViolationError; there is no channel left to report it through.
- Every other failure (invalid request, unknown capability, no matching
  version, unsupported member) is delivered through the reply.
- Exceptions a capability raises before replying become a
  CapabilityInvocationError reply; after replying they are logged.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from capwire.capabilities.registry import Registry
from capwire.core.console import get_logger
from capwire.core.result import (
    CapabilityInvocationError,
    ContractViolationError,
    Err,
    InvalidRequestError,
    ReplyAlreadySentError,
    Result,
)
from capwire.protocol import Reply, ReplyCallback, Request, future_reply

logger = get_logger("dispatcher")


class Dispatcher:
    """Dispatches requests to the capabilities of one registry."""

    def __init__(self, registry: Registry) -> None:
        self._registry = registry

    @property
    def registry(self) -> Registry:
        return self._registry

    def dispatch(self, request: Request | Mapping[str, Any] | None, reply: Reply | ReplyCallback) -> None:
        """Dispatch ``request``; exactly one reply is delivered.

        Args:
            request: A Request or a transport envelope mapping
            reply: Called as ``reply(error, *values)``

        Raises:
            ContractViolationError: ``reply`` is not callable.
        """
        if not callable(reply):
            raise ContractViolationError("missing or invalid reply argument")
        reply = Reply.wrap(reply)

        logger.debug("dispatch(%r)", request)

        try:
            message = Request.from_envelope(request)  # type: ignore[arg-type]
        except InvalidRequestError as exc:
            logger.debug("rejected request %r: %s", request, exc)
            reply(exc)
            return

        resolved = self._registry.resolve(message.api_name, message.version)
        if isinstance(resolved, Err):
            logger.debug("error %s while dispatching to api %s", resolved.error, message.api_name)
            reply(resolved.error)
            return

        capability = resolved.value
        logger.debug("found api %r for %s", capability, message.api_name)

        try:
            capability.dispatch(message, reply)
        except ReplyAlreadySentError:
            logger.exception("api %r replied more than once", capability)
        except Exception as exc:
            if reply.done:
                logger.exception("api %r raised after replying", capability)
                return
            logger.exception("api %r raised while handling %s", capability, message.member_name or "call")
            error = CapabilityInvocationError(
                f"api {capability.name} failed: {exc}",
                context={"api": capability.name, "version": capability.version},
            )
            error.__cause__ = exc
            reply(error)

    async def call(self, request: Request | Mapping[str, Any]) -> Result[Any, Any]:
        """Dispatch ``request`` and await its single reply as a Result.

        Waits for as long as the capability takes to reply; wrap in
        ``asyncio.wait_for`` to bound it.
        """
        reply, future = future_reply()
        self.dispatch(request, reply)
        return await future


__all__ = ["Dispatcher"]
