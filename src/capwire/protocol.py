"""Request envelopes and the reply continuation.

A request crosses the transport as a plain mapping::

    {"apiName": "fs", "memberName": "read", "version": "^1.0.0", "args": ["a.txt"]}

Replies travel back through a single callback invoked as
``reply(error, *values)``. ``Reply`` wraps that callback so it fires exactly
once and records the outcome as a ``Result``.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from capwire.core.console import get_logger
from capwire.core.result import (
    ContractViolationError,
    Err,
    InvalidRequestError,
    Ok,
    ReplyAlreadySentError,
    Result,
)

logger = get_logger("protocol")

METADATA_API_NAME = "$metadata$"
GET_APIS_MEMBER = "getApis"

ReplyCallback = Callable[..., Any]


class Request(BaseModel):
    """One call to a named capability, as carried by a transport."""

    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="ignore")

    api_name: str = Field(alias="apiName", min_length=1)
    member_name: str | None = Field(default=None, alias="memberName")
    version: str | None = None
    args: tuple[Any, ...] = Field(default_factory=tuple)

    @classmethod
    def from_envelope(cls, envelope: Request | Mapping[str, Any]) -> Request:
        """Validate a transport envelope.

        Raises:
            InvalidRequestError: the envelope is not a mapping, has no usable
                api name, or carries fields of the wrong type.
        """
        if isinstance(envelope, Request):
            return envelope
        if not isinstance(envelope, Mapping):
            raise InvalidRequestError(f"invalid request {envelope!r}")

        api_name = envelope.get("apiName", envelope.get("api_name"))
        if api_name is None:
            raise InvalidRequestError(f"missing api name {api_name}")
        if not isinstance(api_name, str) or not api_name.strip():
            raise InvalidRequestError(f"invalid api name {api_name!r}")

        data = dict(envelope)
        if data.get("args") is None:
            data["args"] = ()
        try:
            return cls.model_validate(data)
        except ValidationError as exc:
            raise InvalidRequestError(
                f"invalid request for api {api_name}", context={"detail": exc.errors()[0]["msg"]}
            ) from exc

    def to_envelope(self) -> dict[str, Any]:
        """Plain-data form handed to a transport; unset optional fields are omitted."""
        envelope: dict[str, Any] = {"apiName": self.api_name}
        if self.member_name is not None:
            envelope["memberName"] = self.member_name
        if self.version is not None:
            envelope["version"] = self.version
        envelope["args"] = list(self.args)
        return envelope


class Reply:
    """Exactly-once reply continuation.

    Calling the reply with ``(error, *values)`` records the outcome and
    forwards the same arguments to ``sink``. A second call raises
    ``ReplyAlreadySentError`` and the sink is not invoked again.
    """

    def __init__(self, sink: ReplyCallback) -> None:
        if not callable(sink):
            raise ContractViolationError("missing or invalid reply argument")
        self._sink = sink
        self._result: Result[Any, Any] | None = None

    @classmethod
    def wrap(cls, reply: Reply | ReplyCallback) -> Reply:
        return reply if isinstance(reply, Reply) else cls(reply)

    @property
    def done(self) -> bool:
        return self._result is not None

    @property
    def result(self) -> Result[Any, Any] | None:
        return self._result

    def __call__(self, error: Any = None, *values: Any) -> None:
        if self._result is not None:
            raise ReplyAlreadySentError("reply was already sent")
        self._result = to_result(error, *values)
        self._sink(error, *values)

    def __repr__(self) -> str:
        state = "pending" if self._result is None else repr(self._result)
        return f"Reply({state})"


def to_result(error: Any = None, *values: Any) -> Result[Any, Any]:
    """Fold callback-style reply arguments into a Result.

    Multi-value replies become a tuple; a reply with no values is ``Ok(None)``.
    """
    if error is not None:
        return Err(error)
    if not values:
        return Ok(None)
    if len(values) == 1:
        return Ok(values[0])
    return Ok(tuple(values))


def future_reply(loop: asyncio.AbstractEventLoop | None = None) -> tuple[Reply, asyncio.Future[Result[Any, Any]]]:
    """Create a Reply whose outcome resolves an asyncio future."""
    loop = loop or asyncio.get_running_loop()
    future: asyncio.Future[Result[Any, Any]] = loop.create_future()

    def _resolve(error: Any = None, *values: Any) -> None:
        if future.done():
            logger.debug("reply arrived after the awaiting future was cancelled")
            return
        future.set_result(to_result(error, *values))

    def _sink(error: Any = None, *values: Any) -> None:
        # Replies may arrive from a transport thread.
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is loop:
            _resolve(error, *values)
        else:
            loop.call_soon_threadsafe(_resolve, error, *values)

    return Reply(_sink), future


__all__ = [
    "GET_APIS_MEMBER",
    "METADATA_API_NAME",
    "Reply",
    "ReplyCallback",
    "Request",
    "future_reply",
    "to_result",
]
