"""Tests for server/dispatcher.py - request validation, resolution and invocation."""

from __future__ import annotations

from typing import Any

import pytest

from capwire.capabilities.registry import Registry
from capwire.core.result import (
    CapabilityInvocationError,
    ContractViolationError,
    Err,
    InvalidRequestError,
    NoMatchingVersionError,
    Ok,
    UnknownCapabilityError,
    UnsupportedMemberError,
)
from capwire.protocol import Reply, Request
from capwire.server.dispatcher import Dispatcher
from tests.mocks.apis import Counter
from tests.mocks.transport import Recorder


@pytest.fixture
def registry() -> Registry:
    return Registry()


@pytest.fixture
def dispatcher(registry: Registry) -> Dispatcher:
    return Dispatcher(registry)


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


class TestValidation:
    @pytest.mark.parametrize("reply", [None, "reply", 42])
    def test_non_callable_reply_raises(self, dispatcher: Dispatcher, reply: Any) -> None:
        with pytest.raises(ContractViolationError):
            dispatcher.dispatch({"apiName": "x"}, reply)

    def test_missing_api_name_is_replied(self, dispatcher: Dispatcher, recorder: Recorder) -> None:
        dispatcher.dispatch({"args": []}, recorder)
        assert isinstance(recorder.error, InvalidRequestError)
        assert "missing api name" in str(recorder.error)

    @pytest.mark.parametrize("api_name", ["", "   ", 42, ["x"]])
    def test_invalid_api_name_is_replied(
        self, dispatcher: Dispatcher, recorder: Recorder, api_name: Any
    ) -> None:
        dispatcher.dispatch({"apiName": api_name}, recorder)
        assert isinstance(recorder.error, InvalidRequestError)
        assert "invalid api name" in str(recorder.error)

    def test_missing_request_is_replied(self, dispatcher: Dispatcher, recorder: Recorder) -> None:
        dispatcher.dispatch(None, recorder)
        assert isinstance(recorder.error, InvalidRequestError)

    def test_malformed_args_are_replied(
        self, dispatcher: Dispatcher, registry: Registry, recorder: Recorder
    ) -> None:
        registry.add_constant("answer", 42, "1.0.0")
        dispatcher.dispatch({"apiName": "answer", "args": "not-a-list"}, recorder)
        assert isinstance(recorder.error, InvalidRequestError)


# ---------------------------------------------------------------------------
# Resolution
# ---------------------------------------------------------------------------


class TestResolution:
    def test_unknown_capability(self, dispatcher: Dispatcher, recorder: Recorder) -> None:
        dispatcher.dispatch({"apiName": "nope"}, recorder)
        assert isinstance(recorder.error, UnknownCapabilityError)
        assert "does not expose nope" in str(recorder.error)

    def test_no_matching_version(
        self, dispatcher: Dispatcher, registry: Registry, recorder: Recorder
    ) -> None:
        registry.add_constant("answer", 42, "1.0.0")
        dispatcher.dispatch({"apiName": "answer", "version": "^2.0.0"}, recorder)
        assert isinstance(recorder.error, NoMatchingVersionError)
        assert "satisfies ^2.0.0" in str(recorder.error)

    def test_malformed_version_range(
        self, dispatcher: Dispatcher, registry: Registry, recorder: Recorder
    ) -> None:
        registry.add_constant("answer", 42, "1.0.0")
        dispatcher.dispatch({"apiName": "answer", "version": "not a range ^^"}, recorder)
        assert isinstance(recorder.error, InvalidRequestError)
        assert "invalid version range" in str(recorder.error)

    def test_version_range_selects_capability(
        self, dispatcher: Dispatcher, registry: Registry, recorder: Recorder
    ) -> None:
        for version in ("1.0.0", "1.2.0", "2.0.0"):
            registry.add_constant("answer", version, version)
        dispatcher.dispatch({"apiName": "answer", "version": "^1.0.0"}, recorder)
        assert recorder.calls == [(None, "1.2.0")]


# ---------------------------------------------------------------------------
# Function capabilities
# ---------------------------------------------------------------------------


class TestFunctionDispatch:
    def test_args_then_reply(self, dispatcher: Dispatcher, registry: Registry, recorder: Recorder) -> None:
        received: list[tuple[Any, ...]] = []

        def fn(*args: Any) -> None:
            received.append(args)
            args[-1](None, "done")

        registry.add_function("fn", fn, "1.0.0")
        reply = Reply(recorder)
        dispatcher.dispatch({"apiName": "fn", "args": [1, 2]}, reply)

        assert received == [(1, 2, reply)]
        assert recorder.calls == [(None, "done")]

    def test_missing_args_default_to_empty(
        self, dispatcher: Dispatcher, registry: Registry, recorder: Recorder
    ) -> None:
        registry.add_function("ping", lambda reply: reply(None, "pong"), "1.0.0")
        dispatcher.dispatch({"apiName": "ping"}, recorder)
        assert recorder.calls == [(None, "pong")]

    def test_multi_value_reply_is_forwarded(
        self, dispatcher: Dispatcher, registry: Registry, recorder: Recorder
    ) -> None:
        registry.add_function("pair", lambda reply: reply(None, 1, 2), "1.0.0")
        dispatcher.dispatch({"apiName": "pair"}, recorder)
        assert recorder.calls == [(None, 1, 2)]

    def test_capability_error_is_forwarded_verbatim(
        self, dispatcher: Dispatcher, registry: Registry, recorder: Recorder
    ) -> None:
        registry.add_function("oops", lambda reply: reply("plain string error"), "1.0.0")
        dispatcher.dispatch({"apiName": "oops"}, recorder)
        assert recorder.calls == [("plain string error",)]

    def test_raising_capability_replies_invocation_error(
        self, dispatcher: Dispatcher, registry: Registry, recorder: Recorder
    ) -> None:
        def boom(reply: Any) -> None:
            raise RuntimeError("kaboom")

        registry.add_function("boom", boom, "1.0.0")
        dispatcher.dispatch({"apiName": "boom"}, recorder)

        assert isinstance(recorder.error, CapabilityInvocationError)
        assert isinstance(recorder.error.__cause__, RuntimeError)

    def test_wrong_arity_replies_invocation_error(
        self, dispatcher: Dispatcher, registry: Registry, recorder: Recorder
    ) -> None:
        registry.add_function("ping", lambda reply: reply(None, "pong"), "1.0.0")
        dispatcher.dispatch({"apiName": "ping", "args": [1, 2, 3]}, recorder)
        assert isinstance(recorder.error, CapabilityInvocationError)

    def test_raising_after_reply_keeps_single_reply(
        self, dispatcher: Dispatcher, registry: Registry, recorder: Recorder
    ) -> None:
        def late(reply: Any) -> None:
            reply(None, "first")
            raise RuntimeError("after reply")

        registry.add_function("late", late, "1.0.0")
        dispatcher.dispatch({"apiName": "late"}, recorder)
        assert recorder.calls == [(None, "first")]

    def test_double_reply_is_suppressed(
        self, dispatcher: Dispatcher, registry: Registry, recorder: Recorder
    ) -> None:
        def twice(reply: Any) -> None:
            reply(None, "first")
            reply(None, "second")

        registry.add_function("twice", twice, "1.0.0")
        dispatcher.dispatch({"apiName": "twice"}, recorder)
        assert recorder.calls == [(None, "first")]


# ---------------------------------------------------------------------------
# Module capabilities
# ---------------------------------------------------------------------------


class TestModuleDispatch:
    def test_missing_member_name(self, dispatcher: Dispatcher, registry: Registry, recorder: Recorder) -> None:
        registry.add_module("counter", Counter(), "1.0.0")
        dispatcher.dispatch({"apiName": "counter", "args": [1]}, recorder)
        assert isinstance(recorder.error, InvalidRequestError)
        assert "missing member name" in str(recorder.error)

    def test_blank_member_name(self, dispatcher: Dispatcher, registry: Registry, recorder: Recorder) -> None:
        registry.add_module("counter", Counter(), "1.0.0")
        dispatcher.dispatch({"apiName": "counter", "memberName": "  "}, recorder)
        assert isinstance(recorder.error, InvalidRequestError)

    def test_unknown_member(self, dispatcher: Dispatcher, registry: Registry, recorder: Recorder) -> None:
        registry.add_module("counter", Counter(), "1.0.0")
        dispatcher.dispatch({"apiName": "counter", "memberName": "nope"}, recorder)
        assert isinstance(recorder.error, UnsupportedMemberError)
        assert "unsupported in this api" in str(recorder.error)

    def test_excluded_member_is_unsupported(
        self, dispatcher: Dispatcher, registry: Registry, recorder: Recorder
    ) -> None:
        registry.add_module("counter", Counter(), "1.0.0")
        dispatcher.dispatch({"apiName": "counter", "memberName": "_reset"}, recorder)
        assert isinstance(recorder.error, UnsupportedMemberError)

    def test_non_callable_member_is_unsupported(
        self, dispatcher: Dispatcher, registry: Registry, recorder: Recorder
    ) -> None:
        registry.add_module("settings", {"level": 3}, "1.0.0")
        dispatcher.dispatch({"apiName": "settings", "memberName": "level"}, recorder)
        assert isinstance(recorder.error, UnsupportedMemberError)

    def test_member_is_bound_to_module(self, dispatcher: Dispatcher, registry: Registry) -> None:
        counter = Counter()
        registry.add_module("counter", counter, "1.0.0")

        first, second = Recorder(), Recorder()
        dispatcher.dispatch({"apiName": "counter", "memberName": "increment", "args": [2]}, first)
        dispatcher.dispatch({"apiName": "counter", "memberName": "increment", "args": [3]}, second)

        assert first.calls == [(None, 2)]
        assert second.calls == [(None, 5)]
        assert counter.count == 5

    def test_mapping_member(self, dispatcher: Dispatcher, registry: Registry, recorder: Recorder) -> None:
        registry.add_module("ops", {"neg": lambda x, reply: reply(None, -x)}, "1.0.0")
        dispatcher.dispatch({"apiName": "ops", "memberName": "neg", "args": [4]}, recorder)
        assert recorder.calls == [(None, -4)]


# ---------------------------------------------------------------------------
# Constant capabilities
# ---------------------------------------------------------------------------


class TestConstantDispatch:
    def test_constant_ignores_args_and_member(
        self, dispatcher: Dispatcher, registry: Registry, recorder: Recorder
    ) -> None:
        registry.add_constant("answer", 42, "1.0.0")
        dispatcher.dispatch({"apiName": "answer", "memberName": "x", "args": [1, 2]}, recorder)
        assert recorder.calls == [(None, 42)]

    @pytest.mark.parametrize("value", ["foo", 42, False, None])
    def test_constant_values(self, dispatcher: Dispatcher, registry: Registry, value: Any) -> None:
        recorder = Recorder()
        registry.add_constant("value", value, "1.0.0")
        dispatcher.dispatch(Request(api_name="value"), recorder)
        assert recorder.calls == [(None, value)]


# ---------------------------------------------------------------------------
# Awaitable calls
# ---------------------------------------------------------------------------


class TestCall:
    @pytest.mark.asyncio
    async def test_call_returns_ok(self, dispatcher: Dispatcher, registry: Registry) -> None:
        registry.add_module("counter", Counter(), "1.0.0")
        result = await dispatcher.call({"apiName": "counter", "memberName": "increment", "args": [4]})
        assert result == Ok(4)

    @pytest.mark.asyncio
    async def test_call_multi_value_is_tuple(self, dispatcher: Dispatcher, registry: Registry) -> None:
        registry.add_module("counter", Counter(), "1.0.0")
        result = await dispatcher.call({"apiName": "counter", "memberName": "split", "args": [7, 3]})
        assert result == Ok((2, 1))

    @pytest.mark.asyncio
    async def test_call_returns_err(self, dispatcher: Dispatcher) -> None:
        result = await dispatcher.call({"apiName": "missing"})
        assert isinstance(result, Err)
        assert isinstance(result.error, UnknownCapabilityError)
